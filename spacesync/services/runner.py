from __future__ import annotations

import asyncio
import logging
import math
import time
from typing import Any

from spacesync.core.config import Settings, get_settings
from spacesync.persistence.db import open_sessionmaker
from spacesync.persistence.store import SqlSpaceStore
from spacesync.providers.contentful.client import ContentfulClient
from spacesync.providers.inventory.client import InventoryApiClient
from spacesync.providers.secrets import SecretProvider, get_secret_provider
from spacesync.services.locks import acquire_run_lock, release_run_lock
from spacesync.services.rate_limiter import RateLimiter
from spacesync.services.reconciler import SpaceReconciler
from spacesync.services.telemetry import (
    counters_snapshot,
    external_latency_by_integration,
    gauges_snapshot,
    increment_counter,
    set_gauge,
)


logger = logging.getLogger(__name__)


async def _resolve_secret(secrets: SecretProvider, name: str | None, fallback: str | None) -> str | None:
    if name:
        return await secrets.get_secret(name)
    return fallback


async def run_configured_pass(settings: Settings, secrets: SecretProvider) -> dict[str, Any]:
    # Resolve credentials concurrently, then wire clients for exactly one pass.
    access_token, database_url, inventory_key = await asyncio.gather(
        _resolve_secret(secrets, settings.contentful_access_token_secret_name, settings.contentful_access_token),
        _resolve_secret(secrets, settings.database_url_secret_name, settings.database_url),
        _resolve_secret(secrets, settings.inventory_api_auth_key_secret_name, None),
    )
    presence_enabled = settings.presence_sync_enabled and bool(settings.inventory_api_url) and bool(inventory_key)
    if settings.presence_sync_enabled and not presence_enabled:
        logger.warning("presence_sync_not_configured")

    contentful = ContentfulClient(
        access_token or "",
        organization_id=settings.contentful_organization_id,
        app_definition_id=settings.contentful_app_definition_id,
    )
    oracle: InventoryApiClient | None = None
    limiter = RateLimiter(settings.rate_limit_batch_size, settings.rate_limit_cooldown_ms)
    try:
        if presence_enabled:
            oracle = InventoryApiClient(settings.inventory_api_url, inventory_key or "")
        async with open_sessionmaker(database_url or settings.database_url) as sessionmaker:
            reconciler = SpaceReconciler(
                inventory=contentful,
                installations=contentful,
                installer=contentful,
                store=SqlSpaceStore(sessionmaker),
                rate_limiter=limiter,
                oracle=oracle,
                presence_chunk_size=settings.presence_write_chunk_size,
                install_max_per_pass=settings.install_max_per_pass,
            )
            report = await reconciler.run()
    finally:
        await limiter.aclose()
        await contentful.aclose()
        if oracle is not None:
            await oracle.aclose()
    return {"status": "completed", **report.as_dict()}


def _log_telemetry_summary(window_s: int) -> None:
    logger.info(
        "reconcile_telemetry counters=%s gauges=%s external=%s",
        counters_snapshot(),
        gauges_snapshot(),
        external_latency_by_integration(window_s),
    )


async def run_reconcile_pass(
    *,
    settings: Settings | None = None,
    secrets: SecretProvider | None = None,
    redis: Any | None = None,
) -> dict[str, Any]:
    """Run one reconciliation pass behind the run lock and the top-level error boundary.

    Failures are logged and counted, then re-raised so the scheduling
    trigger records the invocation as failed. The next scheduled pass starts
    from scratch.
    """
    settings = settings or get_settings()
    secrets = secrets or get_secret_provider()
    lock = None
    if settings.reconcile_lock_enabled:
        lock = await acquire_run_lock(redis)
        if lock is None:
            logger.info("reconcile_pass_skipped reason=lock_held")
            increment_counter("reconcile_pass_skipped_total")
            return {"status": "skipped_lock"}

    start = time.monotonic()
    try:
        result = await run_configured_pass(settings, secrets)
    except Exception:
        increment_counter("reconcile_pass_failed_total")
        logger.exception("reconcile_pass_failed")
        raise
    else:
        increment_counter("reconcile_pass_completed_total")
    finally:
        duration_s = time.monotonic() - start
        set_gauge("reconcile_pass_duration_s", duration_s)
        _log_telemetry_summary(max(1, math.ceil(duration_s)))
        if lock is not None:
            await release_run_lock(lock)
    return result

