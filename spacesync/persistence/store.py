from __future__ import annotations

import logging
from datetime import datetime
from typing import Protocol

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from spacesync.core.errors import DatabaseError
from spacesync.domain.spaces import NewSpace, StoredSpace
from spacesync.persistence.repos import spaces as spaces_repo


logger = logging.getLogger(__name__)


class SpaceStore(Protocol):
    async def list_spaces(self) -> list[StoredSpace]:
        ...

    async def insert_space(self, space: NewSpace) -> bool:
        ...

    async def set_decommissioned(
        self,
        name: str,
        environment: str,
        *,
        decommissioned: bool,
        decommission_date: datetime | None,
    ) -> None:
        ...

    async def set_present_in_inventory(self, name: str, present: bool) -> None:
        ...


class SqlSpaceStore:
    """SpaceStore backed by the `spaces` table.

    Every write opens its own session so throttled writes can run concurrently.
    All statements go through SQLAlchemy bound parameters.
    """

    def __init__(self, sessionmaker: async_sessionmaker[AsyncSession]) -> None:
        self._sessionmaker = sessionmaker

    async def list_spaces(self) -> list[StoredSpace]:
        try:
            async with self._sessionmaker() as session:
                return await spaces_repo.list_spaces(session)
        except SQLAlchemyError as exc:
            raise DatabaseError("Failed to read spaces snapshot") from exc

    async def insert_space(self, space: NewSpace) -> bool:
        # Returns False when the key already exists so overlapping passes converge.
        try:
            async with self._sessionmaker() as session:
                await spaces_repo.create_space(session, space)
                await session.commit()
        except IntegrityError:
            logger.info("space_insert_skipped_existing name=%s environment=%s", space.name, space.environment)
            return False
        except SQLAlchemyError as exc:
            raise DatabaseError(f"Failed to insert space {space.name}/{space.environment}") from exc
        logger.info("space_inserted name=%s environment=%s", space.name, space.environment)
        return True

    async def set_decommissioned(
        self,
        name: str,
        environment: str,
        *,
        decommissioned: bool,
        decommission_date: datetime | None,
    ) -> None:
        try:
            async with self._sessionmaker() as session:
                await spaces_repo.set_decommissioned(
                    session,
                    name=name,
                    environment=environment,
                    decommissioned=decommissioned,
                    decommission_date=decommission_date,
                )
                await session.commit()
        except SQLAlchemyError as exc:
            raise DatabaseError(f"Failed to update decommission flag for {name}/{environment}") from exc
        logger.info(
            "space_decommission_updated name=%s environment=%s decommissioned=%s",
            name,
            environment,
            int(decommissioned),
        )

    async def set_present_in_inventory(self, name: str, present: bool) -> None:
        try:
            async with self._sessionmaker() as session:
                await spaces_repo.set_present_in_inventory(session, name=name, present=present)
                await session.commit()
        except SQLAlchemyError as exc:
            raise DatabaseError(f"Failed to update presence flag for {name}") from exc
        logger.info("space_presence_updated name=%s present_in_inventory=%s", name, int(present))
