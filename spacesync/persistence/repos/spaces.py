from __future__ import annotations

from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from spacesync.domain.models import SpaceRecord
from spacesync.domain.spaces import NewSpace, StoredSpace


def _to_stored(row: SpaceRecord) -> StoredSpace:
    return StoredSpace(
        name=row.name,
        environment=row.environment,
        created_at=row.created_at,
        decommissioned=bool(row.decommissioned),
        decommission_date=row.decommission_date,
        present_in_inventory=bool(row.present_in_inventory),
    )


async def list_spaces(session: AsyncSession) -> list[StoredSpace]:
    result = await session.execute(select(SpaceRecord).order_by(SpaceRecord.name, SpaceRecord.environment))
    return [_to_stored(row) for row in result.scalars().all()]


async def create_space(session: AsyncSession, space: NewSpace) -> SpaceRecord:
    # New rows start active and absent from the presence oracle.
    row = SpaceRecord(
        name=space.name,
        environment=space.environment,
        created_at=space.created_at,
        decommissioned=0,
        decommission_date=None,
        present_in_inventory=0,
    )
    session.add(row)
    return row


async def set_decommissioned(
    session: AsyncSession,
    *,
    name: str,
    environment: str,
    decommissioned: bool,
    decommission_date: datetime | None,
) -> int:
    result = await session.execute(
        update(SpaceRecord)
        .where(SpaceRecord.name == name, SpaceRecord.environment == environment)
        .values(decommissioned=int(decommissioned), decommission_date=decommission_date)
    )
    return int(result.rowcount or 0)


async def set_present_in_inventory(session: AsyncSession, *, name: str, present: bool) -> int:
    # Presence is tracked per space name across all of its environments.
    result = await session.execute(
        update(SpaceRecord).where(SpaceRecord.name == name).values(present_in_inventory=int(present))
    )
    return int(result.rowcount or 0)
