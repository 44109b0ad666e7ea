"""Session orchestration: wires filter state to the ticket list and the group tree."""

from __future__ import annotations

import asyncio
import logging
from datetime import date
from pathlib import Path
from typing import Iterable

import httpx
from fastapi import FastAPI

from .api_server import create_app
from .client import TicketApiClient
from .config import DashboardSettings
from .errors import FetchError
from .export import CsvExport, export_groups, export_tickets
from .filters import FilterStateManager
from .grouping import GroupAggregator
from .models import DrillDown, FilterQuery, GroupNode
from .paging import PagedFetchController
from .ticket_store import TicketStore

logger = logging.getLogger(__name__)

VIEW_MODES = ("table", "grouped")


def build_client(settings: DashboardSettings, app: FastAPI | None = None) -> TicketApiClient:
    """Client for the configured backend, or an in-process one over a local ticket dump."""
    if app is None and settings.data_path is not None:
        app = create_app(TicketStore.from_file(settings.data_path), settings.snapshot_dir)
    if app is not None:
        return TicketApiClient.from_settings(settings, transport=httpx.ASGITransport(app=app))
    return TicketApiClient.from_settings(settings)


class DashboardSession:
    """One ticket table widget.

    Filter changes are observed through :class:`FilterStateManager` and turn
    into exactly one refetch task for whichever view is active. Mutations must
    happen on the running event loop.
    """

    def __init__(
        self,
        client: TicketApiClient,
        settings: DashboardSettings | None = None,
        filters: FilterStateManager | None = None,
        group_levels: Iterable[str] = ("project",),
    ) -> None:
        self.settings = settings or DashboardSettings()
        self.client = client
        self.filters = filters or FilterStateManager(debounce_seconds=self.settings.search_debounce_seconds)
        self.listing = PagedFetchController(client, page_size=self.settings.page_size)
        self.groups = GroupAggregator(client, levels=group_levels)
        self.view_mode = "table"
        self.refetch_count = 0
        self._tasks: set[asyncio.Task] = set()
        self._settle_task: asyncio.Task | None = None
        self.filters.subscribe(self._on_query_change)

    @property
    def query(self) -> FilterQuery:
        return self.filters.effective

    @property
    def active_filter_count(self) -> int:
        return self.filters.active_filter_count

    def _schedule(self, coro) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def _refetch(self) -> asyncio.Task:
        self.refetch_count += 1
        if self.view_mode == "table":
            return self._schedule(self.listing.reset(self.query))
        return self._schedule(self.groups.refresh(self.query))

    def _on_query_change(self, query: FilterQuery) -> None:
        logger.debug("Effective query changed: %s", query)
        self._refetch()

    def set_search(self, text: str) -> None:
        """Record a keystroke; the search is committed once typing pauses for the debounce window."""
        self.filters.set_search(text)
        if self.filters.search_pending and (self._settle_task is None or self._settle_task.done()):
            self._settle_task = self._schedule(self.filters.settle())

    async def start(self) -> None:
        self._refetch()
        await self.wait_idle()

    async def wait_idle(self) -> None:
        while self._tasks:
            await asyncio.gather(*list(self._tasks))

    async def set_view_mode(self, mode: str) -> None:
        if mode not in VIEW_MODES:
            raise ValueError(f"Unknown view mode: {mode}")
        if mode == self.view_mode:
            return
        self.view_mode = mode
        self._refetch()
        await self.wait_idle()

    async def set_group_levels(self, levels: Iterable[str]) -> None:
        self.groups.set_levels(levels)
        if self.view_mode == "grouped":
            self._refetch()
            await self.wait_idle()

    async def activate_group(self, node: GroupNode) -> None:
        """Expand/collapse a parent group, or drill from a leaf into the ticket list."""
        if node.has_children:
            self.groups.toggle(node.key)
            return
        self.view_mode = "table"
        if not self.filters.apply_group_values(node.values):
            self._refetch()
        await self.wait_idle()

    async def apply_drill_down(self, drill_down: DrillDown) -> None:
        self.view_mode = "table"
        if not self.filters.apply_drill_down(drill_down):
            self._refetch()
        await self.wait_idle()

    async def scroll(self, scroll_top: float, client_height: float, scroll_height: float) -> bool:
        if self.view_mode != "table":
            return False
        return await self.listing.on_scroll(scroll_top, client_height, scroll_height)

    async def export(self, today: date | None = None) -> CsvExport | None:
        """CSV of the active view, or ``None`` when the tickets cannot be fetched."""
        if self.view_mode == "table":
            try:
                return await export_tickets(self.client, self.query, limit=self.settings.export_limit, today=today)
            except FetchError as exc:
                logger.error("Export failed: %s", exc)
                return None
        return export_groups(self.groups.groups, self.groups.levels, today=today)

    async def export_to(self, directory: str | Path | None = None, today: date | None = None) -> Path | None:
        artifact = await self.export(today=today)
        if artifact is None:
            return None
        return artifact.write(directory or self.settings.export_dir)
