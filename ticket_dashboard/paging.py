"""Incremental ticket list loading with scroll-triggered pagination."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from .constants import PAGE_SIZE, SCROLL_LOAD_THRESHOLD
from .errors import FetchError
from .models import FilterOptions, FilterQuery, Ticket

if TYPE_CHECKING:
    from .client import TicketApiClient

logger = logging.getLogger(__name__)


class PagedFetchController:
    """Owns the flat ticket list for the current effective query.

    Each ``reset`` starts a new generation; responses belonging to an older
    generation are dropped so a superseded query can never overwrite the
    current result set.
    """

    def __init__(
        self,
        client: "TicketApiClient",
        page_size: int = PAGE_SIZE,
        scroll_threshold: float = SCROLL_LOAD_THRESHOLD,
    ) -> None:
        self.client = client
        self.page_size = page_size
        self.scroll_threshold = scroll_threshold
        self.query = FilterQuery()
        self.tickets: list[Ticket] = []
        self.page = 1
        self.total = 0
        self.total_pages = 0
        self.has_more = True
        self.loading = False
        self.loading_more = False
        self.load_failed = False
        self.filter_options: FilterOptions | None = None
        self._seen_ids: set[str] = set()
        self._generation = 0

    @property
    def generation(self) -> int:
        return self._generation

    async def reset(self, query: FilterQuery) -> bool:
        self._generation += 1
        generation = self._generation
        self.query = query
        self.page = 1
        self.tickets = []
        self._seen_ids = set()
        self.has_more = True
        self.loading = True
        self.loading_more = False
        self.load_failed = False

        try:
            result = await self.client.fetch_page(query, 1, self.page_size)
        except FetchError as exc:
            if generation == self._generation:
                logger.error("Failed to fetch tickets: %s", exc)
                self.loading = False
                self.load_failed = True
                self.has_more = False
            return False

        if generation != self._generation:
            logger.debug("Discarding stale page 1 (generation %s)", generation)
            return False

        self.tickets = []
        self._append(result.tickets)
        self.total = result.pagination.total
        self.total_pages = result.pagination.total_pages
        self.has_more = 1 < self.total_pages
        if result.filter_options is not None:
            self.filter_options = result.filter_options
        self.loading = False
        return True

    async def load_more(self) -> bool:
        if self.loading or self.loading_more or not self.has_more:
            return False

        generation = self._generation
        next_page = self.page + 1
        self.loading_more = True
        try:
            result = await self.client.fetch_page(self.query, next_page, self.page_size)
        except FetchError as exc:
            if generation == self._generation:
                logger.warning("Failed to fetch page %s: %s", next_page, exc)
                self.loading_more = False
            return False

        if generation != self._generation:
            logger.debug("Discarding stale page %s (generation %s)", next_page, generation)
            return False
        if next_page != self.page + 1:
            logger.debug("Discarding out-of-order page %s (current page %s)", next_page, self.page)
            self.loading_more = False
            return False

        self._append(result.tickets)
        self.page = next_page
        self.total = result.pagination.total
        self.total_pages = result.pagination.total_pages
        self.has_more = self.page < self.total_pages
        if result.filter_options is not None:
            self.filter_options = result.filter_options
        self.loading_more = False
        return True

    def _append(self, tickets: tuple[Ticket, ...] | list[Ticket]) -> None:
        for ticket in tickets:
            if ticket.id in self._seen_ids:
                continue
            self._seen_ids.add(ticket.id)
            self.tickets.append(ticket)

    def should_load_more(self, scroll_top: float, client_height: float, scroll_height: float) -> bool:
        if self.loading or self.loading_more or not self.has_more:
            return False
        return scroll_top + client_height >= scroll_height * self.scroll_threshold

    async def on_scroll(self, scroll_top: float, client_height: float, scroll_height: float) -> bool:
        if not self.should_load_more(scroll_top, client_height, scroll_height):
            return False
        return await self.load_more()
