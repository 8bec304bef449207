from __future__ import annotations

from datetime import datetime, timezone

from spacesync.domain.spaces import StoredSpace, Unit, to_record_timestamp
from spacesync.services.reconciler import (
    missing_installations,
    plan_decommission_changes,
    plan_insertions,
    plan_presence_changes,
)


CREATED = datetime(2024, 3, 1, 12, 30, 45, 123000, tzinfo=timezone.utc)
NOW = datetime(2026, 10, 17, 8, 0, 0)


def _unit(name: str, *environments: str, unit_id: str | None = None) -> Unit:
    return Unit(unit_id=unit_id or name, display_name=name, created_at=CREATED, sub_environments=environments)


def test_missing_installations_single_pair() -> None:
    assert missing_installations([_unit("A", "master")], {}) == [("A", "master")]


def test_missing_installations_skips_installed_pairs() -> None:
    units = [_unit("A", "master", "dev"), _unit("B", "master")]
    installed = {"A": {"master"}, "B": {"master"}}
    assert missing_installations(units, installed) == [("A", "dev")]


def test_missing_installations_keys_on_space_id() -> None:
    units = [_unit("Marketing", "master", unit_id="sp1")]
    assert missing_installations(units, {"sp1": {"master"}}) == []
    assert missing_installations(units, {"Marketing": {"master"}}) == [("sp1", "master")]


def test_plan_insertions_uses_space_created_at() -> None:
    planned = plan_insertions([_unit("A", "master")], [])
    assert len(planned) == 1
    assert planned[0].key == ("A", "master")
    assert planned[0].created_at == datetime(2024, 3, 1, 12, 30, 45)


def test_plan_insertions_never_reinserts_existing_key() -> None:
    stored = [StoredSpace("A", "master", created_at=datetime(1999, 1, 1))]
    assert plan_insertions([_unit("A", "master", "dev")], stored) == plan_insertions(
        [_unit("A", "dev")], []
    )
    assert [space.key for space in plan_insertions([_unit("A", "master")], stored)] == []


def test_plan_insertions_collapses_duplicate_live_keys() -> None:
    planned = plan_insertions([_unit("A", "master", unit_id="1"), _unit("A", "master", unit_id="2")], [])
    assert [space.key for space in planned] == [("A", "master")]


def test_missing_space_is_decommissioned_with_date() -> None:
    stored = [StoredSpace("X", "dev", created_at=None, decommissioned=False)]
    changes = plan_decommission_changes([_unit("A", "master")], stored, now=NOW)
    assert len(changes) == 1
    assert changes[0].name == "X"
    assert changes[0].environment == "dev"
    assert changes[0].decommissioned is True
    assert changes[0].decommission_date == NOW


def test_reappearing_space_is_recommissioned() -> None:
    stored = [StoredSpace("X", "dev", created_at=None, decommissioned=True, decommission_date=NOW)]
    changes = plan_decommission_changes([_unit("X", "dev")], stored, now=NOW)
    assert len(changes) == 1
    assert changes[0].decommissioned is False
    assert changes[0].decommission_date is None


def test_decommission_skips_rows_already_in_target_state() -> None:
    stored = [
        StoredSpace("A", "master", created_at=None, decommissioned=False),
        StoredSpace("Y", "dev", created_at=None, decommissioned=True, decommission_date=NOW),
    ]
    assert plan_decommission_changes([_unit("A", "master")], stored, now=NOW) == []


def test_decommission_matches_on_environment_too() -> None:
    stored = [StoredSpace("A", "staging", created_at=None)]
    changes = plan_decommission_changes([_unit("A", "master")], stored, now=NOW)
    assert [(change.name, change.environment, change.decommissioned) for change in changes] == [
        ("A", "staging", True)
    ]


def test_presence_changes_only_for_mismatches() -> None:
    stored = [
        StoredSpace("A", "dev", created_at=None, present_in_inventory=False),
        StoredSpace("B", "dev", created_at=None, present_in_inventory=True),
        StoredSpace("C", "dev", created_at=None, present_in_inventory=True),
        StoredSpace("D", "dev", created_at=None, present_in_inventory=False),
    ]
    changes = plan_presence_changes(stored, {"A", "C"})
    assert [(change.name, change.present_in_inventory) for change in changes] == [("A", True), ("B", False)]


def test_presence_change_emitted_once_per_name() -> None:
    stored = [
        StoredSpace("A", "dev", created_at=None, present_in_inventory=False),
        StoredSpace("A", "master", created_at=None, present_in_inventory=False),
    ]
    assert len(plan_presence_changes(stored, {"A"})) == 1


def test_to_record_timestamp_drops_zone_and_fraction() -> None:
    assert to_record_timestamp(CREATED) == datetime(2024, 3, 1, 12, 30, 45)
    assert to_record_timestamp(datetime(2024, 3, 1, 1, 2, 3, 999)).microsecond == 0
