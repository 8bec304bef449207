from __future__ import annotations

import logging
import time
from typing import Any, Callable

import httpx

from spacesync.core.errors import AuthError, DataError, NotFoundError, SpaceSyncError, TransientIOError
from spacesync.services.resilience import RetryPolicy, retry_async
from spacesync.services.telemetry import record_external_call


logger = logging.getLogger(__name__)


class HttpStatusError(TransientIOError):
    # Carries the status code so retry_async treats 5xx and 429 as retryable.
    def __init__(self, message: str, status_code: int) -> None:
        super().__init__(message)
        self.status_code = status_code


def raise_for_response(response: httpx.Response, *, integration: str) -> None:
    status = response.status_code
    if status < 400:
        return
    message = f"{integration} responded with status {status}"
    if status in {401, 403}:
        raise AuthError(message)
    if status == 404:
        raise NotFoundError(message)
    if status == 429 or status >= 500:
        raise HttpStatusError(message, status)
    raise DataError(message)


async def send_request(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    *,
    integration: str,
    policy: RetryPolicy | None = None,
    retryable: Callable[[Exception], bool] | None = None,
    **kwargs: Any,
) -> httpx.Response:
    """Send one request with retries, mapping failures onto the spacesync taxonomy."""
    start = time.monotonic()

    async def _call() -> httpx.Response:
        response = await client.request(method, url, **kwargs)
        raise_for_response(response, integration=integration)
        return response

    try:
        response = await retry_async(_call, policy=policy, retryable=retryable, name=integration)
    except SpaceSyncError:
        record_external_call(
            integration=integration,
            latency_ms=(time.monotonic() - start) * 1000.0,
            success=False,
        )
        raise
    except (httpx.TimeoutException, httpx.NetworkError, TimeoutError) as exc:
        record_external_call(
            integration=integration,
            latency_ms=(time.monotonic() - start) * 1000.0,
            success=False,
        )
        raise TransientIOError(f"{integration} request failed: {exc.__class__.__name__}") from exc
    record_external_call(
        integration=integration,
        latency_ms=(time.monotonic() - start) * 1000.0,
        success=True,
    )
    return response


def decode_json(response: httpx.Response, *, integration: str) -> Any:
    try:
        return response.json()
    except ValueError as exc:
        raise DataError(f"{integration} returned a non-JSON payload") from exc
