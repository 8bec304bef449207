from __future__ import annotations

import pytest

from spacesync.core.errors import AuthError, TransientIOError
from spacesync.services.resilience import RetryPolicy, retry_async
from spacesync.services.telemetry import counters_snapshot


@pytest.mark.asyncio
async def test_retry_async_retries_transient() -> None:
    calls = {"count": 0}

    async def flaky() -> str:
        calls["count"] += 1
        if calls["count"] < 2:
            raise TransientIOError("timeout")
        return "ok"

    result = await retry_async(
        flaky,
        policy=RetryPolicy(timeout_ms=100, max_attempts=2, backoff_ms=1),
    )
    assert result == "ok"
    assert calls["count"] == 2
    assert counters_snapshot()["external_retries_total"] == 1


@pytest.mark.asyncio
async def test_retry_async_does_not_retry_auth_errors() -> None:
    calls = {"count": 0}

    async def rejected() -> str:
        calls["count"] += 1
        raise AuthError("bad token")

    with pytest.raises(AuthError):
        await retry_async(rejected, policy=RetryPolicy(timeout_ms=100, max_attempts=3, backoff_ms=1))
    assert calls["count"] == 1


@pytest.mark.asyncio
async def test_retry_async_gives_up_after_max_attempts() -> None:
    calls = {"count": 0}

    async def down() -> str:
        calls["count"] += 1
        raise TimeoutError("still down")

    with pytest.raises(TimeoutError):
        await retry_async(down, policy=RetryPolicy(timeout_ms=100, max_attempts=3, backoff_ms=1))
    assert calls["count"] == 3
