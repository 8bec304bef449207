from __future__ import annotations

# Re-export the Contentful boundary for centralized imports.

from spacesync.providers.contentful.base import CapabilityInstaller, InstallationIndex, InventorySource
from spacesync.providers.contentful.client import ContentfulClient, canonical_environment_id

__all__ = [
    "CapabilityInstaller",
    "ContentfulClient",
    "InstallationIndex",
    "InventorySource",
    "canonical_environment_id",
]
