from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any
from uuid import uuid4

from redis.asyncio import Redis
from redis.exceptions import RedisError

from spacesync.core.config import get_settings


logger = logging.getLogger(__name__)

RECONCILE_LOCK_KEY = "spacesync:reconcile:lock"

_local_lock = asyncio.Lock()
_local_lock_owner: str | None = None


@dataclass(slots=True)
class RunLock:
    token: str
    redis: Any | None
    local: bool


def get_lock_redis() -> Redis:
    return Redis.from_url(get_settings().redis_url, encoding="utf-8", decode_responses=True)


async def _acquire_local(token: str) -> RunLock | None:
    global _local_lock_owner
    if _local_lock.locked():
        return None
    await _local_lock.acquire()
    _local_lock_owner = token
    return RunLock(token=token, redis=None, local=True)


async def acquire_run_lock(redis: Any | None = None) -> RunLock | None:
    """Take the reconcile lock or return None when another pass holds it.

    Uses Redis SET NX EX so concurrent workers skip overlapping passes; falls
    back to an in-process lock when Redis is not reachable.
    """
    settings = get_settings()
    token = uuid4().hex
    ttl_s = max(5, int(settings.reconcile_lock_ttl_s))
    if redis is not None:
        try:
            acquired = await redis.set(RECONCILE_LOCK_KEY, token, nx=True, ex=ttl_s)
        except (RedisError, OSError) as exc:
            logger.warning("reconcile_lock_redis_unavailable", exc_info=exc)
        else:
            if not acquired:
                return None
            return RunLock(token=token, redis=redis, local=False)
    return await _acquire_local(token)


async def release_run_lock(lock: RunLock) -> None:
    # Release only if this pass still owns the token to avoid clobbering a newer holder.
    global _local_lock_owner
    if lock.local:
        if _local_lock.locked() and _local_lock_owner == lock.token:
            _local_lock_owner = None
            _local_lock.release()
        return
    if lock.redis is None:
        return
    try:
        current = await lock.redis.get(RECONCILE_LOCK_KEY)
        value = current.decode("utf-8") if isinstance(current, (bytes, bytearray)) else str(current or "")
        if value == lock.token:
            await lock.redis.delete(RECONCILE_LOCK_KEY)
    except (RedisError, OSError) as exc:
        # The TTL expires the key if the release cannot reach Redis.
        logger.warning("reconcile_lock_release_failed", exc_info=exc)
