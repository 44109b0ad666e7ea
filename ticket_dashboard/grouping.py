"""Hierarchical group aggregation: expand/collapse state, render rows and export flattening."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Iterable, Sequence

from .constants import GROUP_BY_FIELDS, MAX_GROUP_LEVELS
from .errors import FetchError, InvalidGroupingError
from .models import FilterQuery, GroupNode

if TYPE_CHECKING:
    from .client import TicketApiClient

logger = logging.getLogger(__name__)


def completion_rate(completed: int | float, count: int | float) -> float:
    """Percentage of completed tickets, rounded to one decimal.

    Defined as 0 for an empty group and clamped to [0, 100].
    """
    if not count:
        return 0.0
    rate = round(float(completed) / float(count) * 100.0, 1)
    return min(max(rate, 0.0), 100.0)


def normalize_levels(levels: Iterable[str]) -> tuple[str, ...]:
    levels = tuple(levels)
    if not 1 <= len(levels) <= MAX_GROUP_LEVELS:
        raise InvalidGroupingError(f"Expected 1-{MAX_GROUP_LEVELS} grouping levels, got {len(levels)}")
    unknown = [level for level in levels if level not in GROUP_BY_FIELDS]
    if unknown:
        raise InvalidGroupingError(f"Unknown grouping fields: {unknown}")
    if len(set(levels)) != len(levels):
        raise InvalidGroupingError(f"Grouping levels must be distinct: {list(levels)}")
    return levels


@dataclass(frozen=True)
class GroupRow:
    node: GroupNode
    depth: int
    expanded: bool

    @property
    def has_children(self) -> bool:
        return self.node.has_children


def visible_group_rows(nodes: Sequence[GroupNode], expanded: set[str] | frozenset[str]) -> list[GroupRow]:
    """Pre-order rows to render: children appear only under expanded keys."""
    rows: list[GroupRow] = []
    stack: list[tuple[GroupNode, int]] = [(node, 0) for node in reversed(nodes)]
    while stack:
        node, depth = stack.pop()
        is_open = node.key in expanded
        rows.append(GroupRow(node=node, depth=depth, expanded=is_open))
        if node.children and is_open:
            stack.extend((child, depth + 1) for child in reversed(node.children))
    return rows


def flatten_group_tree(nodes: Sequence[GroupNode], levels: Sequence[str]) -> list[list[str]]:
    """Flatten a group tree into indent-style export rows, parent before children.

    Each row has one column per grouping level, filled only at the node's own
    depth, followed by count, completed, completion rate and average resolution.
    """
    rows: list[list[str]] = []
    stack: list[tuple[GroupNode, int]] = [(node, 0) for node in reversed(nodes)]
    while stack:
        node, depth = stack.pop()
        row = [node.values.get(level, "") if i == depth else "" for i, level in enumerate(levels)]
        row.append(str(node.count))
        row.append(str(node.completed))
        row.append(f"{_format_number(node.completion_rate)}%")
        row.append(_format_number(node.avg_resolution) if node.avg_resolution > 0 else "")
        rows.append(row)
        if node.children:
            stack.extend((child, depth + 1) for child in reversed(node.children))
    return rows


def _format_number(value: float) -> str:
    if float(value).is_integer():
        return str(int(value))
    return f"{value:.1f}"


def check_group_counts(nodes: Sequence[GroupNode]) -> list[str]:
    """Keys of non-leaf nodes whose count differs from the sum of their children."""
    offending: list[str] = []
    stack = list(nodes)
    while stack:
        node = stack.pop()
        if node.children:
            if node.count != sum(child.count for child in node.children):
                offending.append(node.key)
            stack.extend(node.children)
    return offending


def leaf_filter_values(node: GroupNode) -> dict[str, str]:
    if node.has_children:
        raise ValueError(f"Group {node.key!r} is not a leaf")
    return dict(node.values)


class GroupAggregator:
    def __init__(self, client: "TicketApiClient", levels: Iterable[str] = ("project",)) -> None:
        self.client = client
        self.levels: tuple[str, ...] = normalize_levels(levels)
        self.groups: list[GroupNode] = []
        self.expanded: set[str] = set()
        self.loading = False
        self.load_failed = False
        self._generation = 0

    def set_levels(self, levels: Iterable[str]) -> None:
        self.levels = normalize_levels(levels)
        self.groups = []
        self.expanded = set()
        self._generation += 1

    def add_level(self) -> str:
        if len(self.levels) >= MAX_GROUP_LEVELS:
            raise InvalidGroupingError(f"At most {MAX_GROUP_LEVELS} grouping levels are supported")
        unused = next(name for name in GROUP_BY_FIELDS if name not in self.levels)
        self.set_levels((*self.levels, unused))
        return unused

    def remove_level(self, index: int) -> None:
        levels = list(self.levels)
        del levels[index]
        self.set_levels(levels)

    def replace_level(self, index: int, field_name: str) -> None:
        levels = list(self.levels)
        levels[index] = field_name
        self.set_levels(levels)

    def toggle(self, key: str) -> bool:
        if key in self.expanded:
            self.expanded.discard(key)
            return False
        self.expanded.add(key)
        return True

    def is_expanded(self, key: str) -> bool:
        return key in self.expanded

    def rows(self) -> list[GroupRow]:
        return visible_group_rows(self.groups, self.expanded)

    def export_rows(self) -> list[list[str]]:
        return flatten_group_tree(self.groups, self.levels)

    async def refresh(self, query: FilterQuery) -> bool:
        self._generation += 1
        generation = self._generation
        levels = self.levels
        self.loading = True
        try:
            groups = await self.client.fetch_groups(query, levels)
        except FetchError as exc:
            if generation == self._generation:
                logger.error("Failed to fetch grouped data for %s: %s", "/".join(levels), exc)
                self.load_failed = True
                self.loading = False
            return False

        if generation != self._generation:
            logger.debug("Discarding stale group response (generation %s)", generation)
            return False

        offending = check_group_counts(groups)
        if offending:
            logger.warning("Group counts do not match child totals for %s", offending)

        self.groups = groups
        self.load_failed = False
        self.loading = False
        return True
