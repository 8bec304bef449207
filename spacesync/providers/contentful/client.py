from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Any, AsyncIterator

import httpx
from pydantic import BaseModel, Field, ValidationError

from spacesync.core.config import get_settings
from spacesync.core.errors import DataError, ProviderConfigError
from spacesync.domain.spaces import InstalledIndex, Unit
from spacesync.providers.http import decode_json, send_request
from spacesync.services.resilience import RetryPolicy


logger = logging.getLogger(__name__)

CONTENTFUL_CONTENT_TYPE = "application/vnd.contentful.management.v1+json"
READY_STATUS = "ready"


class LinkSys(BaseModel):
    id: str | None = None


class Link(BaseModel):
    sys: LinkSys = Field(default_factory=LinkSys)


class CollectionPage(BaseModel):
    items: list[dict[str, Any]] = Field(default_factory=list)
    skip: int = 0
    limit: int = 0
    total: int = 0


class SpaceSys(BaseModel):
    id: str
    created_at: datetime = Field(alias="createdAt")


class SpaceItem(BaseModel):
    name: str
    sys: SpaceSys


class EnvironmentSys(BaseModel):
    id: str
    status: Link | None = None
    aliased_environment: Link | None = Field(default=None, alias="aliasedEnvironment")


class EnvironmentItem(BaseModel):
    sys: EnvironmentSys


class InstallationSys(BaseModel):
    space: Link | None = None
    environment: Link | None = None


class InstallationItem(BaseModel):
    sys: InstallationSys


def canonical_environment_id(item: EnvironmentItem) -> str | None:
    # Only ready environments count; an alias resolves to the environment it points at.
    status = item.sys.status.sys.id if item.sys.status is not None else None
    if status != READY_STATUS:
        return None
    aliased = item.sys.aliased_environment.sys.id if item.sys.aliased_environment is not None else None
    return aliased or item.sys.id


def _parse(model: type[BaseModel], payload: Any, *, what: str) -> Any:
    try:
        return model.model_validate(payload)
    except ValidationError as exc:
        raise DataError(f"Malformed Contentful {what} payload") from exc


def _never_retry(exc: Exception) -> bool:
    return False


class ContentfulClient:
    """Contentful Management API client covering spaces, environments and app installations."""

    def __init__(
        self,
        access_token: str,
        *,
        organization_id: str,
        app_definition_id: str,
        base_url: str | None = None,
        page_size: int | None = None,
        client: httpx.AsyncClient | None = None,
        retry_policy: RetryPolicy | None = None,
    ) -> None:
        if not access_token:
            raise ProviderConfigError("Contentful access token is required")
        if not app_definition_id:
            raise ProviderConfigError("contentful_app_definition_id is required")
        settings = get_settings()
        self._organization_id = organization_id
        self._app_definition_id = app_definition_id
        self._page_size = max(1, int(page_size or settings.contentful_page_size))
        self._retry_policy = retry_policy
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            base_url=base_url or f"https://{settings.contentful_api_url}",
            headers={
                "Authorization": f"Bearer {access_token}",
                "Content-Type": CONTENTFUL_CONTENT_TYPE,
            },
            timeout=settings.ext_call_timeout_ms / 1000.0,
        )

    @property
    def app_definition_id(self) -> str:
        return self._app_definition_id

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "ContentfulClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def _get_page(self, path: str, params: dict[str, Any], *, integration: str) -> CollectionPage:
        response = await send_request(
            self._client,
            "GET",
            path,
            integration=integration,
            policy=self._retry_policy,
            params=params,
        )
        return _parse(CollectionPage, decode_json(response, integration=integration), what="collection")

    async def _iter_pages(
        self, path: str, *, integration: str, params: dict[str, Any] | None = None
    ) -> AsyncIterator[list[dict[str, Any]]]:
        # Drain skip/limit pagination until skip + limit reaches total.
        skip = 0
        while True:
            page = await self._get_page(
                path,
                {**(params or {}), "skip": skip, "limit": self._page_size},
                integration=integration,
            )
            yield page.items
            limit = page.limit or len(page.items)
            if limit <= 0 or page.skip + limit >= page.total:
                return
            skip = page.skip + limit

    async def list_environments(self, space_id: str) -> tuple[str, ...]:
        environments: list[str] = []
        async for items in self._iter_pages(
            f"/spaces/{space_id}/environments", integration="contentful.environments"
        ):
            for raw in items:
                environment_id = canonical_environment_id(_parse(EnvironmentItem, raw, what="environment"))
                if environment_id and environment_id not in environments:
                    environments.append(environment_id)
        return tuple(environments)

    async def list_units(self) -> list[Unit]:
        units: list[Unit] = []
        async for items in self._iter_pages("/spaces", integration="contentful.spaces"):
            spaces = [_parse(SpaceItem, raw, what="space") for raw in items]
            # Environments of one page of spaces are fetched concurrently.
            environments = await asyncio.gather(*(self.list_environments(space.sys.id) for space in spaces))
            units.extend(
                Unit(
                    unit_id=space.sys.id,
                    display_name=space.name,
                    created_at=space.sys.created_at,
                    sub_environments=space_environments,
                )
                for space, space_environments in zip(spaces, environments)
            )
        logger.info("contentful_units_listed count=%s", len(units))
        return units

    async def list_installed(self) -> InstalledIndex:
        installed: InstalledIndex = {}
        params = {"sys.organization.sys.id[in]": self._organization_id} if self._organization_id else None
        async for items in self._iter_pages(
            f"/app_definitions/{self._app_definition_id}/app_installations",
            integration="contentful.app_installations",
            params=params,
        ):
            for raw in items:
                item = _parse(InstallationItem, raw, what="app installation")
                space_id = item.sys.space.sys.id if item.sys.space is not None else None
                environment_id = item.sys.environment.sys.id if item.sys.environment is not None else None
                if space_id and environment_id:
                    installed.setdefault(space_id, set()).add(environment_id)
        return installed

    async def install_app(self, unit_id: str, environment_id: str) -> bool:
        # Single attempt: a failed install waits for the next pass so the limiter cadence holds.
        response = await send_request(
            self._client,
            "PUT",
            f"/spaces/{unit_id}/environments/{environment_id}/app_installations/{self._app_definition_id}",
            integration="contentful.install_app",
            policy=self._retry_policy,
            retryable=_never_retry,
            json={},
        )
        return response.status_code in {200, 201}
