from __future__ import annotations

from datetime import datetime

import pytest

from spacesync.domain.spaces import NewSpace
from spacesync.persistence.store import SqlSpaceStore


CREATED = datetime(2024, 3, 1, 12, 30, 45)


@pytest.mark.asyncio
async def test_insert_and_list(sqlite_sessionmaker) -> None:
    store = SqlSpaceStore(sqlite_sessionmaker)
    assert await store.insert_space(NewSpace("B", "master", CREATED)) is True
    assert await store.insert_space(NewSpace("A", "dev", CREATED)) is True

    rows = await store.list_spaces()
    assert [row.key for row in rows] == [("A", "dev"), ("B", "master")]
    assert rows[0].created_at == CREATED
    assert rows[0].decommissioned is False
    assert rows[0].decommission_date is None
    assert rows[0].present_in_inventory is False


@pytest.mark.asyncio
async def test_duplicate_insert_is_skipped(sqlite_sessionmaker) -> None:
    store = SqlSpaceStore(sqlite_sessionmaker)
    assert await store.insert_space(NewSpace("A", "dev", CREATED)) is True
    assert await store.insert_space(NewSpace("A", "dev", datetime(2020, 1, 1))) is False

    rows = await store.list_spaces()
    assert len(rows) == 1
    assert rows[0].created_at == CREATED


@pytest.mark.asyncio
async def test_decommission_flag_round_trip(sqlite_sessionmaker) -> None:
    store = SqlSpaceStore(sqlite_sessionmaker)
    await store.insert_space(NewSpace("A", "dev", CREATED))
    await store.insert_space(NewSpace("A", "master", CREATED))
    stamp = datetime(2026, 10, 17, 8, 0, 0)

    await store.set_decommissioned("A", "dev", decommissioned=True, decommission_date=stamp)
    rows = {row.key: row for row in await store.list_spaces()}
    assert rows[("A", "dev")].decommissioned is True
    assert rows[("A", "dev")].decommission_date == stamp
    assert rows[("A", "master")].decommissioned is False

    await store.set_decommissioned("A", "dev", decommissioned=False, decommission_date=None)
    rows = {row.key: row for row in await store.list_spaces()}
    assert rows[("A", "dev")].decommissioned is False
    assert rows[("A", "dev")].decommission_date is None


@pytest.mark.asyncio
async def test_presence_updates_every_environment_of_a_name(sqlite_sessionmaker) -> None:
    store = SqlSpaceStore(sqlite_sessionmaker)
    await store.insert_space(NewSpace("A", "dev", CREATED))
    await store.insert_space(NewSpace("A", "master", CREATED))
    await store.insert_space(NewSpace("B", "dev", CREATED))

    await store.set_present_in_inventory("A", True)
    rows = {row.key: row for row in await store.list_spaces()}
    assert rows[("A", "dev")].present_in_inventory is True
    assert rows[("A", "master")].present_in_inventory is True
    assert rows[("B", "dev")].present_in_inventory is False


@pytest.mark.asyncio
async def test_names_are_bound_not_interpolated(sqlite_sessionmaker) -> None:
    store = SqlSpaceStore(sqlite_sessionmaker)
    tricky = "O'Brien' OR '1'='1"
    await store.insert_space(NewSpace(tricky, "dev", CREATED))
    await store.insert_space(NewSpace("Other", "dev", CREATED))

    await store.set_present_in_inventory(tricky, True)
    rows = {row.name: row for row in await store.list_spaces()}
    assert rows[tricky].present_in_inventory is True
    assert rows["Other"].present_in_inventory is False
