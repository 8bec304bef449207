from __future__ import annotations

import asyncio
import logging
from dataclasses import asdict, dataclass
from datetime import datetime
from functools import partial
from typing import Any, Callable, Iterable, Sequence

from spacesync.domain.spaces import (
    DecommissionChange,
    InstalledIndex,
    NewSpace,
    PresenceChange,
    StoredSpace,
    Unit,
    live_keys,
    to_record_timestamp,
    utc_now,
)
from spacesync.persistence.store import SpaceStore
from spacesync.providers.contentful.base import CapabilityInstaller, InstallationIndex, InventorySource
from spacesync.providers.inventory.base import PresenceOracle
from spacesync.services.rate_limiter import RateLimiter
from spacesync.services.telemetry import increment_counter, set_gauge


logger = logging.getLogger(__name__)


def missing_installations(units: Sequence[Unit], installed: InstalledIndex) -> list[tuple[str, str]]:
    # Every live (space, environment) pair without an installation, in enumeration order.
    pairs: list[tuple[str, str]] = []
    seen: set[tuple[str, str]] = set()
    for unit in units:
        done = installed.get(unit.unit_id, set())
        for environment in unit.sub_environments:
            pair = (unit.unit_id, environment)
            if environment in done or pair in seen:
                continue
            seen.add(pair)
            pairs.append(pair)
    return pairs


def plan_insertions(units: Sequence[Unit], stored: Iterable[StoredSpace]) -> list[NewSpace]:
    # Keys already stored are never re-inserted, whatever their other fields hold.
    known = {space.key for space in stored}
    planned: list[NewSpace] = []
    for unit in units:
        for name, environment in unit.keys():
            if (name, environment) in known:
                continue
            known.add((name, environment))
            planned.append(
                NewSpace(
                    name=name,
                    environment=environment,
                    created_at=to_record_timestamp(unit.created_at),
                )
            )
    return planned


def plan_decommission_changes(
    units: Sequence[Unit], stored: Iterable[StoredSpace], *, now: datetime
) -> list[DecommissionChange]:
    live = live_keys(list(units))
    changes: list[DecommissionChange] = []
    for space in stored:
        if space.key in live:
            if space.decommissioned:
                changes.append(DecommissionChange(space.name, space.environment, False, None))
        elif not space.decommissioned:
            changes.append(DecommissionChange(space.name, space.environment, True, now))
    return changes


def plan_presence_changes(stored: Iterable[StoredSpace], present_names: set[str]) -> list[PresenceChange]:
    # Presence is written per name; emit a change when any row of that name disagrees.
    changes: list[PresenceChange] = []
    emitted: set[str] = set()
    for space in stored:
        if space.name in emitted:
            continue
        present = space.name in present_names
        if space.present_in_inventory != present:
            emitted.add(space.name)
            changes.append(PresenceChange(space.name, present))
    return changes


def _chunks(items: Sequence[Any], size: int) -> Iterable[Sequence[Any]]:
    size = max(1, size)
    for start in range(0, len(items), size):
        yield items[start : start + size]


@dataclass
class ReconcileReport:
    units: int = 0
    pairs: int = 0
    installs_attempted: int = 0
    installs_succeeded: int = 0
    installs_failed: int = 0
    installs_deferred: int = 0
    inserted: int = 0
    insert_skipped: int = 0
    decommissioned: int = 0
    recommissioned: int = 0
    presence_updates: int = 0
    write_failures: int = 0

    def as_dict(self) -> dict[str, int]:
        return asdict(self)


class SpaceReconciler:
    """Reconciles live spaces against app installations, the spaces table and the presence oracle.

    A pass runs its phases strictly in order: installation, persistence,
    presence. Individual install and write failures are logged and counted;
    failures to enumerate or read a snapshot abort the pass.
    """

    def __init__(
        self,
        *,
        inventory: InventorySource,
        installations: InstallationIndex,
        installer: CapabilityInstaller,
        store: SpaceStore,
        rate_limiter: RateLimiter,
        oracle: PresenceOracle | None = None,
        presence_chunk_size: int = 20,
        install_max_per_pass: int = 0,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._inventory = inventory
        self._installations = installations
        self._installer = installer
        self._store = store
        self._limiter = rate_limiter
        self._oracle = oracle
        self._presence_chunk_size = max(1, presence_chunk_size)
        self._install_max_per_pass = max(0, install_max_per_pass)
        self._clock = clock

    async def run(self) -> ReconcileReport:
        report = ReconcileReport()
        units, installed = await asyncio.gather(
            self._inventory.list_units(),
            self._installations.list_installed(),
        )
        report.units = len(units)
        report.pairs = sum(len(unit.sub_environments) for unit in units)
        set_gauge("reconcile_live_pairs", report.pairs)

        await self.install_missing(units, installed, report)
        await self.sync_records(units, report)
        if self._oracle is not None:
            await self.sync_presence(report)

        logger.info(
            "reconcile_pass_completed %s",
            " ".join(f"{key}={value}" for key, value in report.as_dict().items()),
        )
        return report

    async def install_missing(
        self, units: Sequence[Unit], installed: InstalledIndex, report: ReconcileReport | None = None
    ) -> ReconcileReport:
        report = report or ReconcileReport()
        pairs = missing_installations(units, installed)
        if self._install_max_per_pass and len(pairs) > self._install_max_per_pass:
            report.installs_deferred = len(pairs) - self._install_max_per_pass
            pairs = pairs[: self._install_max_per_pass]
            logger.info("install_deferred count=%s", report.installs_deferred)

        # Submit every install before awaiting any so the limiter sees the full backlog.
        futures = [
            self._limiter.submit(partial(self._installer.install_app, unit_id, environment))
            for unit_id, environment in pairs
        ]
        report.installs_attempted = len(futures)
        outcomes = await asyncio.gather(*futures, return_exceptions=True)
        for (unit_id, environment), outcome in zip(pairs, outcomes):
            if isinstance(outcome, BaseException) or outcome is not True:
                report.installs_failed += 1
                increment_counter("app_install_failed_total")
                logger.warning(
                    "app_install_failed space_id=%s environment=%s error=%s",
                    unit_id,
                    environment,
                    outcome if isinstance(outcome, BaseException) else "unsuccessful status",
                )
            else:
                report.installs_succeeded += 1
                increment_counter("app_install_succeeded_total")
                logger.info("app_installed space_id=%s environment=%s", unit_id, environment)
        return report

    async def sync_records(self, units: Sequence[Unit], report: ReconcileReport | None = None) -> ReconcileReport:
        report = report or ReconcileReport()
        stored = await self._store.list_spaces()
        insertions = plan_insertions(units, stored)
        changes = plan_decommission_changes(units, stored, now=self._clock())

        # Each write goes through the limiter on its own; no multi-row statements.
        insert_futures = [self._limiter.submit(partial(self._store.insert_space, space)) for space in insertions]
        change_futures = [
            self._limiter.submit(
                partial(
                    self._store.set_decommissioned,
                    change.name,
                    change.environment,
                    decommissioned=change.decommissioned,
                    decommission_date=change.decommission_date,
                )
            )
            for change in changes
        ]
        insert_outcomes, change_outcomes = await asyncio.gather(
            asyncio.gather(*insert_futures, return_exceptions=True),
            asyncio.gather(*change_futures, return_exceptions=True),
        )

        for space, outcome in zip(insertions, insert_outcomes):
            if isinstance(outcome, BaseException):
                self._record_write_failure(report, "insert", f"{space.name}/{space.environment}", outcome)
            elif outcome is False:
                report.insert_skipped += 1
            else:
                report.inserted += 1
        for change, outcome in zip(changes, change_outcomes):
            if isinstance(outcome, BaseException):
                self._record_write_failure(report, "decommission", f"{change.name}/{change.environment}", outcome)
            elif change.decommissioned:
                report.decommissioned += 1
            else:
                report.recommissioned += 1
        return report

    async def sync_presence(self, report: ReconcileReport | None = None) -> ReconcileReport:
        report = report or ReconcileReport()
        if self._oracle is None:
            return report
        present_names = await self._oracle.list_present_names()
        # Re-read so rows inserted earlier in this pass get a presence flag too.
        stored = await self._store.list_spaces()
        changes = plan_presence_changes(stored, present_names)
        for chunk in _chunks(changes, self._presence_chunk_size):
            outcomes = await asyncio.gather(
                *(self._store.set_present_in_inventory(change.name, change.present_in_inventory) for change in chunk),
                return_exceptions=True,
            )
            for change, outcome in zip(chunk, outcomes):
                if isinstance(outcome, BaseException):
                    self._record_write_failure(report, "presence", change.name, outcome)
                else:
                    report.presence_updates += 1
        return report

    def _record_write_failure(
        self, report: ReconcileReport, kind: str, target: str, exc: BaseException
    ) -> None:
        report.write_failures += 1
        increment_counter(f"store_write_failed_total.{kind}")
        logger.warning("store_write_failed kind=%s target=%s error=%s", kind, target, exc)

