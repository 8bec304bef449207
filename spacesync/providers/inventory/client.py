from __future__ import annotations

import logging

import httpx
from pydantic import BaseModel, TypeAdapter, ValidationError

from spacesync.core.config import get_settings
from spacesync.core.errors import DataError, ProviderConfigError
from spacesync.providers.http import decode_json, send_request
from spacesync.services.resilience import RetryPolicy


logger = logging.getLogger(__name__)


class InventoryEntry(BaseModel):
    name: str


_entries_adapter = TypeAdapter(list[InventoryEntry])


class InventoryApiClient:
    # Read-only presence oracle; authenticates with a password-only basic auth credential.

    def __init__(
        self,
        url: str,
        auth_key: str,
        *,
        client: httpx.AsyncClient | None = None,
        retry_policy: RetryPolicy | None = None,
    ) -> None:
        if not url:
            raise ProviderConfigError("inventory_api_url is required")
        self._url = url
        self._auth = httpx.BasicAuth(username="", password=auth_key)
        self._retry_policy = retry_policy
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=get_settings().ext_call_timeout_ms / 1000.0)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def list_present_names(self) -> set[str]:
        response = await send_request(
            self._client,
            "GET",
            self._url,
            integration="inventory.presence",
            policy=self._retry_policy,
            auth=self._auth,
        )
        payload = decode_json(response, integration="inventory.presence")
        try:
            entries = _entries_adapter.validate_python(payload)
        except ValidationError as exc:
            raise DataError("Malformed inventory presence payload") from exc
        names = {entry.name for entry in entries}
        logger.info("inventory_presence_listed count=%s", len(names))
        return names
