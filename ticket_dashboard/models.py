"""Value objects shared by the filter, listing and grouping components."""

from __future__ import annotations

import math
import numbers
from dataclasses import dataclass, replace
from typing import Any, Iterable, Mapping

from .constants import MULTI_SELECT_FIELDS, SORT_FIELDS, SORT_ORDERS, TRUE_VALUES
from .errors import MalformedResponseError


def _as_str(value: Any, default: str = "") -> str:
    if value is None:
        return default
    return str(value)


def parse_flag(value: Any) -> bool:
    """Read a completion flag given as a bool, a 0/1 number or a yes/true string."""
    if value is None or isinstance(value, bool):
        return bool(value)
    if isinstance(value, numbers.Number):
        return not math.isnan(value) and bool(value)
    return str(value).strip().lower() in TRUE_VALUES


def _as_minutes(value: Any) -> float | None:
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError) as exc:
        raise MalformedResponseError(f"Expected minutes, got {value!r}") from exc


def _as_count(payload: Mapping[str, Any], name: str) -> int:
    try:
        return int(payload.get(name) or 0)
    except (TypeError, ValueError) as exc:
        raise MalformedResponseError(f"Group field {name!r} is not numeric") from exc


def _as_float(payload: Mapping[str, Any], name: str) -> float:
    try:
        return float(payload.get(name) or 0.0)
    except (TypeError, ValueError) as exc:
        raise MalformedResponseError(f"Group field {name!r} is not numeric") from exc


@dataclass(frozen=True)
class Ticket:
    id: str
    key: str
    title: str
    status: str
    priority: str
    project: str
    assignee: str
    created: str
    response_time: float | None = None
    resolution_time: float | None = None
    complete: bool = False

    @classmethod
    def from_payload(cls, payload: Any) -> "Ticket":
        if not isinstance(payload, Mapping) or "id" not in payload:
            raise MalformedResponseError(f"Ticket payload is not an object with an id: {payload!r}")
        return cls(
            id=_as_str(payload["id"]),
            key=_as_str(payload.get("key")),
            title=_as_str(payload.get("title")),
            status=_as_str(payload.get("status")),
            priority=_as_str(payload.get("priority")),
            project=_as_str(payload.get("project")),
            assignee=_as_str(payload.get("assignee")),
            created=_as_str(payload.get("created")),
            response_time=_as_minutes(payload.get("responseTime")),
            resolution_time=_as_minutes(payload.get("resolutionTime")),
            complete=parse_flag(payload.get("complete")),
        )


@dataclass(frozen=True)
class FilterOptions:
    statuses: tuple[str, ...] = ()
    projects: tuple[str, ...] = ()
    priorities: tuple[str, ...] = ()
    assignees: tuple[str, ...] = ()

    @classmethod
    def from_payload(cls, payload: Any) -> "FilterOptions":
        if not isinstance(payload, Mapping):
            raise MalformedResponseError("filterOptions is not an object")
        return cls(
            statuses=tuple(str(v) for v in payload.get("statuses") or []),
            projects=tuple(str(v) for v in payload.get("projects") or []),
            priorities=tuple(str(v) for v in payload.get("priorities") or []),
            assignees=tuple(str(v) for v in payload.get("assignees") or []),
        )

    def for_field(self, name: str) -> tuple[str, ...]:
        return {
            "status": self.statuses,
            "project": self.projects,
            "priority": self.priorities,
            "assignee": self.assignees,
        }[name]


@dataclass(frozen=True)
class Pagination:
    page: int
    limit: int
    total: int
    total_pages: int

    @property
    def has_more(self) -> bool:
        return self.page < self.total_pages


@dataclass(frozen=True)
class TicketPage:
    tickets: tuple[Ticket, ...]
    pagination: Pagination
    filter_options: FilterOptions | None = None

    @classmethod
    def empty(cls, page: int, limit: int) -> "TicketPage":
        return cls(tickets=(), pagination=Pagination(page=page, limit=limit, total=0, total_pages=0))

    @classmethod
    def from_payload(cls, payload: Any, page: int, limit: int) -> "TicketPage":
        if not isinstance(payload, Mapping):
            raise MalformedResponseError("Ticket page response is not an object")
        raw_tickets = payload.get("tickets")
        raw_pagination = payload.get("pagination")
        if not isinstance(raw_tickets, list) or not isinstance(raw_pagination, Mapping):
            raise MalformedResponseError("Ticket page response lacks tickets/pagination")
        try:
            pagination = Pagination(
                page=int(raw_pagination.get("page", page)),
                limit=int(raw_pagination.get("limit", limit)),
                total=int(raw_pagination["total"]),
                total_pages=int(raw_pagination["totalPages"]),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise MalformedResponseError(f"Invalid pagination block: {raw_pagination!r}") from exc

        raw_options = payload.get("filterOptions")
        return cls(
            tickets=tuple(Ticket.from_payload(item) for item in raw_tickets),
            pagination=pagination,
            filter_options=FilterOptions.from_payload(raw_options) if raw_options is not None else None,
        )


@dataclass(frozen=True)
class GroupNode:
    """One row of a hierarchical aggregate.

    ``children`` is ``None`` at the leaf level; a non-leaf node always carries
    its complete child list.
    """

    key: str
    values: dict[str, str]
    count: int
    completed: int
    avg_resolution: float = 0.0
    completion_rate: float = 0.0
    children: tuple["GroupNode", ...] | None = None

    @property
    def has_children(self) -> bool:
        return bool(self.children)

    @classmethod
    def from_payload(cls, payload: Any) -> "GroupNode":
        if not isinstance(payload, Mapping) or "key" not in payload:
            raise MalformedResponseError(f"Group payload is not an object with a key: {payload!r}")
        values = payload.get("values") or {}
        if not isinstance(values, Mapping):
            raise MalformedResponseError("Group values is not an object")
        raw_children = payload.get("children")
        if raw_children is not None and not isinstance(raw_children, list):
            raise MalformedResponseError("Group children is not a list")
        return cls(
            key=str(payload["key"]),
            values={str(k): _as_str(v) for k, v in values.items()},
            count=_as_count(payload, "count"),
            completed=_as_count(payload, "completed"),
            avg_resolution=_as_float(payload, "avgResolution"),
            completion_rate=_as_float(payload, "completionRate"),
            children=tuple(cls.from_payload(child) for child in raw_children) if raw_children else None,
        )

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "key": self.key,
            "values": dict(self.values),
            "count": self.count,
            "completed": self.completed,
            "avgResolution": self.avg_resolution,
            "completionRate": self.completion_rate,
        }
        if self.children:
            payload["children"] = [child.to_payload() for child in self.children]
        return payload


@dataclass(frozen=True)
class FilterQuery:
    search: str = ""
    status: tuple[str, ...] = ()
    project: tuple[str, ...] = ()
    priority: tuple[str, ...] = ()
    assignee: tuple[str, ...] = ()
    category: str = ""
    sort_field: str = "created"
    sort_order: str = "desc"

    def __post_init__(self) -> None:
        if self.sort_field not in SORT_FIELDS:
            raise ValueError(f"Unknown sort field: {self.sort_field}")
        if self.sort_order not in SORT_ORDERS:
            raise ValueError(f"Unknown sort order: {self.sort_order}")

    def with_changes(self, **changes: Any) -> "FilterQuery":
        for name in MULTI_SELECT_FIELDS:
            if name in changes:
                changes[name] = tuple(changes[name])
        return replace(self, **changes)

    def selection(self, name: str) -> tuple[str, ...]:
        if name not in MULTI_SELECT_FIELDS:
            raise KeyError(name)
        return getattr(self, name)

    def filter_params(self) -> dict[str, str]:
        return {
            "search": self.search,
            "status": ",".join(self.status),
            "project": ",".join(self.project),
            "priority": ",".join(self.priority),
            "assignee": ",".join(self.assignee),
            "category": self.category,
        }

    def to_params(self, page: int, limit: int) -> dict[str, str]:
        params = {"page": str(page), "limit": str(limit)}
        params.update(self.filter_params())
        params["sortField"] = self.sort_field
        params["sortOrder"] = self.sort_order
        return params


@dataclass(frozen=True)
class DrillDown:
    """Filter pushed from an overview chart into the ticket list."""

    type: str
    value: str
    label: str = ""
    date_start: str | None = None
    date_end: str | None = None


def split_csv_param(value: str | None) -> list[str]:
    if not value:
        return []
    return [item for item in value.split(",") if item]


def dedupe_keep_order(values: Iterable[str]) -> list[str]:
    out: list[str] = []
    seen: set[str] = set()
    for value in values:
        if value in seen:
            continue
        seen.add(value)
        out.append(value)
    return out
