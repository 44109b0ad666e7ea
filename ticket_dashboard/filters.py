"""Filter state: raw query for controlled inputs, debounced effective query for fetching."""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Callable, Iterable, Mapping

from .constants import MULTI_SELECT_FIELDS, SEARCH_DEBOUNCE_SECONDS
from .models import DrillDown, FilterQuery, dedupe_keep_order

logger = logging.getLogger(__name__)

QueryListener = Callable[[FilterQuery], None]


@dataclass(frozen=True)
class EffectiveState:
    query: FilterQuery
    should_refetch: bool


def compute_effective_state(raw: FilterQuery, effective: FilterQuery, search_settled: bool) -> EffectiveState:
    """Derive the query to fetch with from the raw input state.

    Every field follows ``raw`` immediately except ``search``, which only
    follows once its debounce window has settled.
    """
    search = raw.search if search_settled else effective.search
    query = raw.with_changes(search=search)
    return EffectiveState(query=query, should_refetch=query != effective)


def toggle_selection(current: Iterable[str], value: str) -> tuple[str, ...]:
    current = tuple(current)
    if value in current:
        return tuple(item for item in current if item != value)
    return (*current, value)


class FilterStateManager:
    def __init__(
        self,
        debounce_seconds: float = SEARCH_DEBOUNCE_SECONDS,
        clock: Callable[[], float] = time.monotonic,
        initial: FilterQuery | None = None,
    ) -> None:
        self.debounce_seconds = debounce_seconds
        self._clock = clock
        self.raw = initial or FilterQuery()
        self.effective = self.raw
        self._search_deadline: float | None = None
        self._listeners: list[QueryListener] = []

    def subscribe(self, listener: QueryListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    @property
    def search_pending(self) -> bool:
        return self._search_deadline is not None

    @property
    def active_filter_count(self) -> int:
        selected = sum(len(self.raw.selection(name)) for name in MULTI_SELECT_FIELDS)
        return selected + (1 if self.raw.category else 0)

    def _apply(self, raw: FilterQuery, search_settled: bool = False) -> bool:
        self.raw = raw
        if search_settled or raw.search == self.effective.search:
            self._search_deadline = None
            search_settled = True
        state = compute_effective_state(raw, self.effective, search_settled)
        if not state.should_refetch:
            return False
        self.effective = state.query
        for listener in list(self._listeners):
            listener(state.query)
        return True

    def set_search(self, text: str) -> None:
        self.raw = self.raw.with_changes(search=text)
        if text == self.effective.search:
            self._search_deadline = None
            return
        self._search_deadline = self._clock() + self.debounce_seconds

    def poll(self) -> bool:
        """Commit a pending search once the quiet period has elapsed."""
        if self._search_deadline is None or self._clock() < self._search_deadline:
            return False
        return self._apply(self.raw, search_settled=True)

    async def settle(self) -> bool:
        while self._search_deadline is not None:
            remaining = self._search_deadline - self._clock()
            if remaining > 0:
                await asyncio.sleep(remaining)
                continue
            return self.poll()
        return False

    def toggle(self, field_name: str, value: str) -> bool:
        current = self.raw.selection(field_name)
        return self._apply(self.raw.with_changes(**{field_name: toggle_selection(current, value)}))

    def set_selection(self, field_name: str, values: Iterable[str]) -> bool:
        if field_name not in MULTI_SELECT_FIELDS:
            raise KeyError(field_name)
        return self._apply(self.raw.with_changes(**{field_name: dedupe_keep_order(values)}))

    def toggle_all(self, field_name: str, options: Iterable[str]) -> bool:
        """Select every option, or clear the field when all are already selected."""
        options = dedupe_keep_order(options)
        current = self.raw.selection(field_name)
        if options and set(options) <= set(current):
            return self.set_selection(field_name, ())
        return self.set_selection(field_name, [*current, *[o for o in options if o not in current]])

    def set_category(self, category: str) -> bool:
        return self._apply(self.raw.with_changes(category=category))

    def sort_by(self, field_name: str) -> bool:
        if self.raw.sort_field == field_name:
            order = "asc" if self.raw.sort_order == "desc" else "desc"
            return self._apply(self.raw.with_changes(sort_order=order))
        return self._apply(self.raw.with_changes(sort_field=field_name, sort_order="asc"))

    def clear_filters(self) -> bool:
        cleared = self.raw.with_changes(search="", status=(), project=(), priority=(), assignee=(), category="")
        return self._apply(cleared, search_settled=True)

    def apply_group_values(self, values: Mapping[str, str]) -> bool:
        """Narrow the filters to a leaf group's field values in one update."""
        changes: dict[str, object] = {}
        for name in MULTI_SELECT_FIELDS:
            if values.get(name):
                changes[name] = (values[name],)
        if values.get("category"):
            changes["category"] = values["category"]
        if not changes:
            return False
        return self._apply(self.raw.with_changes(**changes))

    def apply_drill_down(self, drill_down: DrillDown) -> bool:
        cleared = self.raw.with_changes(search="", status=(), project=(), priority=(), assignee=(), category="")
        if drill_down.type == "project":
            cleared = cleared.with_changes(project=(drill_down.value,))
        elif drill_down.type == "category":
            cleared = cleared.with_changes(category=drill_down.value)
        elif drill_down.type in ("search", "dateRange"):
            cleared = cleared.with_changes(search=drill_down.value)
        else:
            logger.warning("Ignoring unknown drill-down type %r", drill_down.type)
            return False
        return self._apply(cleared, search_settled=True)
