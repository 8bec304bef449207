from __future__ import annotations

from typing import Protocol


class PresenceOracle(Protocol):
    async def list_present_names(self) -> set[str]:
        ...
