from __future__ import annotations

import asyncio
from dataclasses import replace
from datetime import datetime

from spacesync.domain.spaces import InstalledIndex, NewSpace, StoredSpace, Unit


class FakeContentful:
    # Serves as inventory source, installation index and installer at once.

    def __init__(self, units: list[Unit], installed: InstalledIndex | None = None) -> None:
        self.units = list(units)
        self.installed: InstalledIndex = {key: set(value) for key, value in (installed or {}).items()}
        self.install_calls: list[tuple[str, str]] = []
        self.install_errors: dict[tuple[str, str], Exception] = {}
        self.list_units_error: Exception | None = None

    async def list_units(self) -> list[Unit]:
        if self.list_units_error is not None:
            raise self.list_units_error
        return list(self.units)

    async def list_installed(self) -> InstalledIndex:
        return {key: set(value) for key, value in self.installed.items()}

    async def install_app(self, unit_id: str, environment_id: str) -> bool:
        self.install_calls.append((unit_id, environment_id))
        await asyncio.sleep(0)
        error = self.install_errors.get((unit_id, environment_id))
        if error is not None:
            raise error
        self.installed.setdefault(unit_id, set()).add(environment_id)
        return True


class InMemorySpaceStore:
    def __init__(self, rows: list[StoredSpace] | None = None) -> None:
        self.rows: dict[tuple[str, str], StoredSpace] = {row.key: row for row in rows or []}
        self.writes: list[tuple] = []
        self.fail_names: set[str] = set()
        self.active_presence_writes = 0
        self.peak_presence_writes = 0

    async def list_spaces(self) -> list[StoredSpace]:
        return sorted(self.rows.values(), key=lambda row: row.key)

    async def insert_space(self, space: NewSpace) -> bool:
        self.writes.append(("insert", space.name, space.environment))
        if space.name in self.fail_names:
            raise RuntimeError(f"insert failed for {space.name}")
        if space.key in self.rows:
            return False
        self.rows[space.key] = StoredSpace(
            name=space.name,
            environment=space.environment,
            created_at=space.created_at,
        )
        return True

    async def set_decommissioned(
        self,
        name: str,
        environment: str,
        *,
        decommissioned: bool,
        decommission_date: datetime | None,
    ) -> None:
        self.writes.append(("decommission", name, environment, decommissioned))
        if name in self.fail_names:
            raise RuntimeError(f"decommission failed for {name}")
        row = self.rows[(name, environment)]
        self.rows[(name, environment)] = replace(
            row, decommissioned=decommissioned, decommission_date=decommission_date
        )

    async def set_present_in_inventory(self, name: str, present: bool) -> None:
        self.writes.append(("presence", name, present))
        self.active_presence_writes += 1
        self.peak_presence_writes = max(self.peak_presence_writes, self.active_presence_writes)
        try:
            await asyncio.sleep(0)
            if name in self.fail_names:
                raise RuntimeError(f"presence failed for {name}")
            for key, row in list(self.rows.items()):
                if row.name == name:
                    self.rows[key] = replace(row, present_in_inventory=present)
        finally:
            self.active_presence_writes -= 1


class FakeOracle:
    def __init__(self, names: set[str]) -> None:
        self.names = set(names)

    async def list_present_names(self) -> set[str]:
        return set(self.names)
