from __future__ import annotations

import logging

from spacesync.core.config import get_settings


_configured = False


def configure_logging(level: str | None = None) -> None:
    # Apply the configured level once per process; later calls are no-ops.
    global _configured
    if _configured:
        return
    resolved = (level or get_settings().log_level).upper()
    logging.basicConfig(
        level=getattr(logging, resolved, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    _configured = True
