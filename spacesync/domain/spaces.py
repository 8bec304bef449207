from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone


# unit_id -> environment ids where the app is installed.
InstalledIndex = dict[str, set[str]]
# (name, environment) primary key of a stored space row.
SpaceKey = tuple[str, str]


def to_record_timestamp(value: datetime) -> datetime:
    # Stored timestamps are naive UTC with second precision.
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value.replace(microsecond=0)


def utc_now() -> datetime:
    return to_record_timestamp(datetime.now(timezone.utc))


@dataclass(frozen=True)
class Unit:
    """A live space with its canonical, de-duplicated environment ids."""

    unit_id: str
    display_name: str
    created_at: datetime
    sub_environments: tuple[str, ...] = field(default_factory=tuple)

    def keys(self) -> list[SpaceKey]:
        return [(self.display_name, environment) for environment in self.sub_environments]


@dataclass(frozen=True)
class StoredSpace:
    # Snapshot view of a persisted row; flags are exposed as booleans.
    name: str
    environment: str
    created_at: datetime | None
    decommissioned: bool = False
    decommission_date: datetime | None = None
    present_in_inventory: bool = False

    @property
    def key(self) -> SpaceKey:
        return (self.name, self.environment)


@dataclass(frozen=True)
class NewSpace:
    name: str
    environment: str
    created_at: datetime

    @property
    def key(self) -> SpaceKey:
        return (self.name, self.environment)


@dataclass(frozen=True)
class DecommissionChange:
    name: str
    environment: str
    decommissioned: bool
    decommission_date: datetime | None


@dataclass(frozen=True)
class PresenceChange:
    name: str
    present_in_inventory: bool


def live_keys(units: list[Unit]) -> set[SpaceKey]:
    keys: set[SpaceKey] = set()
    for unit in units:
        keys.update(unit.keys())
    return keys
