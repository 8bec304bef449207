from __future__ import annotations

from spacesync.providers.inventory.base import PresenceOracle
from spacesync.providers.inventory.client import InventoryApiClient

__all__ = ["InventoryApiClient", "PresenceOracle"]
