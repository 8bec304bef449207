from __future__ import annotations

import argparse
import asyncio
import sys

from spacesync.core.config import get_settings
from spacesync.core.errors import (
    AuthError,
    DatabaseError,
    DataError,
    NotFoundError,
    ProviderConfigError,
    TransientIOError,
)
from spacesync.core.logging import configure_logging
from spacesync.services.locks import get_lock_redis
from spacesync.services.runner import run_reconcile_pass


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Run one space reconciliation pass.")
    parser.add_argument("--no-lock", action="store_true", help="Skip the cross-process run lock")
    parser.add_argument("--log-level", default=None, help="Override LOG_LEVEL for this run")
    return parser


def _format_error(exc: Exception) -> tuple[int, str]:
    # Map known failures to stable, actionable messages.
    if isinstance(exc, ProviderConfigError):
        return 2, f"CONFIG_INVALID: {exc}"
    if isinstance(exc, AuthError):
        return 3, f"AUTH_ERROR: {exc}"
    if isinstance(exc, NotFoundError):
        return 3, f"NOT_FOUND: {exc}"
    if isinstance(exc, TransientIOError):
        return 4, f"TRANSIENT_IO_ERROR: {exc}"
    if isinstance(exc, DataError):
        return 5, f"DATA_ERROR: {exc}"
    if isinstance(exc, DatabaseError):
        return 6, f"DATABASE_ERROR: {exc}"
    return 1, f"UNKNOWN_ERROR: {exc}"


async def _run(args: argparse.Namespace) -> int:
    settings = get_settings()
    if args.no_lock:
        settings = settings.model_copy(update={"reconcile_lock_enabled": False})
        result = await run_reconcile_pass(settings=settings)
    else:
        redis = get_lock_redis()
        try:
            result = await run_reconcile_pass(settings=settings, redis=redis)
        finally:
            await redis.aclose()
    print(" ".join(f"{key}={value}" for key, value in result.items()))
    return 0


def main() -> int:
    args = _build_parser().parse_args()
    configure_logging(args.log_level)
    try:
        return asyncio.run(_run(args))
    except Exception as exc:  # noqa: BLE001 - mapped to an exit code
        code, message = _format_error(exc)
        print(message, file=sys.stderr)
        return code


if __name__ == "__main__":
    sys.exit(main())
