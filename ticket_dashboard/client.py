"""Async HTTP client for the ticket page, group aggregation and snapshot endpoints."""

from __future__ import annotations

import logging
from typing import Any, Sequence

import httpx

from .config import DashboardSettings
from .errors import FetchError, MalformedResponseError
from .models import FilterQuery, GroupNode, TicketPage

logger = logging.getLogger(__name__)

TICKETS_PATH = "/api/tickets"
SNAPSHOTS_PATH = "/api/snapshots"


class TicketApiClient:
    """Thin wrapper over ``httpx.AsyncClient``.

    Transport failures and non-2xx responses raise :class:`FetchError`.
    Bodies with an unexpected shape are logged and treated as empty results.
    """

    def __init__(
        self,
        base_url: str = "http://localhost:8000",
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._http = httpx.AsyncClient(base_url=base_url, timeout=timeout, transport=transport)

    @classmethod
    def from_settings(
        cls,
        settings: DashboardSettings,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> "TicketApiClient":
        return cls(base_url=settings.api_base_url, timeout=settings.request_timeout, transport=transport)

    async def __aenter__(self) -> "TicketApiClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    async def _request_json(self, method: str, url: str, **kwargs: Any) -> Any:
        try:
            response = await self._http.request(method, url, **kwargs)
        except httpx.HTTPError as exc:
            raise FetchError(f"{method} {url} failed: {exc}") from exc

        if response.is_error:
            raise FetchError(
                f"{method} {url} returned HTTP {response.status_code}",
                status_code=response.status_code,
            )

        try:
            return response.json()
        except ValueError:
            logger.warning("%s %s returned a non-JSON body", method, url)
            return None

    async def fetch_page(self, query: FilterQuery, page: int, limit: int) -> TicketPage:
        payload = await self._request_json("GET", TICKETS_PATH, params=query.to_params(page, limit))
        try:
            return TicketPage.from_payload(payload, page=page, limit=limit)
        except MalformedResponseError as exc:
            logger.warning("Malformed ticket page %s: %s", page, exc)
            return TicketPage.empty(page=page, limit=limit)

    async def fetch_groups(self, query: FilterQuery, levels: Sequence[str]) -> list[GroupNode]:
        body: dict[str, Any] = {"groupByLevels": list(levels), **query.filter_params()}
        payload = await self._request_json("POST", TICKETS_PATH, json=body)
        groups = payload.get("groups") if isinstance(payload, dict) else None
        if not isinstance(groups, list):
            logger.warning("Malformed group response for %s", list(levels))
            return []
        try:
            return [GroupNode.from_payload(item) for item in groups]
        except MalformedResponseError as exc:
            logger.warning("Malformed group node in response: %s", exc)
            return []

    async def fetch_snapshot(self, name: str) -> dict[str, Any]:
        payload = await self._request_json("GET", f"{SNAPSHOTS_PATH}/{name}")
        if not isinstance(payload, dict):
            logger.warning("Snapshot %s is not a JSON object", name)
            return {}
        return payload
