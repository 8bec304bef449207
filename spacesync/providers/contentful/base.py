from __future__ import annotations

from typing import Protocol

from spacesync.domain.spaces import InstalledIndex, Unit


class InventorySource(Protocol):
    async def list_units(self) -> list[Unit]:
        ...


class InstallationIndex(Protocol):
    async def list_installed(self) -> InstalledIndex:
        ...


class CapabilityInstaller(Protocol):
    async def install_app(self, unit_id: str, environment_id: str) -> bool:
        ...
