from __future__ import annotations


class SpaceSyncError(Exception):
    """Base error for spacesync."""


class ProviderConfigError(SpaceSyncError):
    """Missing or invalid provider configuration."""


class TransientIOError(SpaceSyncError):
    """Network failure, timeout or 5xx from an external call."""


class AuthError(SpaceSyncError):
    """Credential rejected by an external system."""


class NotFoundError(SpaceSyncError):
    """Requested secret or record does not exist."""


class SecretNotFoundError(NotFoundError):
    """Secret missing from the secret provider."""


class DataError(SpaceSyncError):
    """Malformed payload or key material."""


class DatabaseError(SpaceSyncError):
    """Persistent store failure."""
