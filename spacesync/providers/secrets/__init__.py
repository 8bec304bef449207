from __future__ import annotations

from spacesync.core.config import get_settings
from spacesync.providers.secrets.base import SecretProvider
from spacesync.providers.secrets.env import EnvSecretProvider, StaticSecretProvider


def get_secret_provider() -> SecretProvider:
    return EnvSecretProvider(prefix=get_settings().secret_env_prefix)


__all__ = [
    "EnvSecretProvider",
    "SecretProvider",
    "StaticSecretProvider",
    "get_secret_provider",
]
