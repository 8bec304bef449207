from __future__ import annotations

from pathlib import Path

import pytest

from spacesync.core.config import get_settings
from spacesync.domain.models import Base
from spacesync.persistence.db import build_engine, build_sessionmaker
from spacesync.services.telemetry import reset_telemetry


@pytest.fixture(autouse=True)
def reset_module_state() -> None:
    # Keep counters and cached settings isolated between tests.
    reset_telemetry()
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
async def sqlite_sessionmaker(tmp_path: Path):
    # File-backed sqlite so every session sees the same database.
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'spaces.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield build_sessionmaker(engine)
    await engine.dispose()
