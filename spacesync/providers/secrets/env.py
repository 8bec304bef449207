from __future__ import annotations

import os
from typing import Final, Mapping

from spacesync.core.errors import SecretNotFoundError


def secret_env_name(name: str, prefix: str = "") -> str:
    # Vault-style names (kebab-case) map onto SCREAMING_SNAKE environment variables.
    return f"{prefix}{name}".replace("-", "_").replace(".", "_").upper()


class EnvSecretProvider:
    provider: Final[str] = "env"

    def __init__(self, *, prefix: str = "", environ: Mapping[str, str] | None = None) -> None:
        self._prefix = prefix
        self._environ = environ if environ is not None else os.environ

    async def get_secret(self, name: str) -> str:
        key = secret_env_name(name, self._prefix)
        value = self._environ.get(key)
        if not value:
            raise SecretNotFoundError(f"Secret {name} not found (expected env var {key})")
        return value


class StaticSecretProvider:
    provider: Final[str] = "static"

    def __init__(self, secrets: Mapping[str, str]) -> None:
        self._secrets = dict(secrets)

    async def get_secret(self, name: str) -> str:
        try:
            return self._secrets[name]
        except KeyError as exc:
            raise SecretNotFoundError(f"Secret {name} not found") from exc
