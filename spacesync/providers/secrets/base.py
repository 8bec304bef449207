from __future__ import annotations

from typing import Protocol


class SecretProvider(Protocol):
    async def get_secret(self, name: str) -> str:
        ...
