from __future__ import annotations

import logging

from arq.connections import RedisSettings
from arq.cron import cron

from spacesync.core.config import get_settings
from spacesync.core.logging import configure_logging
from spacesync.services.runner import run_reconcile_pass


logger = logging.getLogger(__name__)


def parse_cron_minutes(raw: str) -> set[int]:
    # Accept "0,30" style lists; fall back to the top of the hour.
    minutes = {int(part) for part in raw.split(",") if part.strip().isdigit()}
    minutes = {minute for minute in minutes if 0 <= minute < 60}
    return minutes or {0}


async def reconcile_spaces(ctx) -> dict:
    # Share the worker's Redis connection for the run lock.
    return await run_reconcile_pass(redis=ctx.get("redis"))


async def _startup(ctx) -> None:
    configure_logging()
    logger.info("reconcile_worker_started")


class WorkerSettings:
    # Keep worker configuration as class attributes for arq CLI compatibility.
    settings = get_settings()
    redis_settings = RedisSettings.from_dsn(settings.redis_url)
    queue_name = settings.reconcile_queue_name
    # A failed pass is retried by the next scheduled run, not by arq.
    max_tries = 1
    job_timeout = max(60, int(settings.reconcile_lock_ttl_s))
    functions = [reconcile_spaces]
    cron_jobs = [
        cron(
            reconcile_spaces,
            minute=parse_cron_minutes(settings.reconcile_cron_minutes),
            run_at_startup=settings.reconcile_run_at_startup,
            unique=True,
        )
    ]
    on_startup = _startup
