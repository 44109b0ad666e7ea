"""In-memory ticket store answering page and group-by queries with pandas."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import pandas as pd

from .constants import (
    FILTER_OPTION_LIMITS,
    MAX_PAGE_LIMIT,
    MULTI_SELECT_FIELDS,
    SORT_COLUMNS,
    SORT_FIELDS,
    SORT_ORDERS,
)
from .grouping import completion_rate, normalize_levels
from .preprocessing import preprocess_tickets, read_ticket_dump

GROUP_KEY_SEPARATOR = "|"


@dataclass
class TicketCriteria:
    search: str = ""
    selections: dict[str, list[str]] = field(default_factory=dict)
    category: str = ""
    sort_field: str = "created"
    sort_order: str = "desc"

    def __post_init__(self) -> None:
        unknown = set(self.selections) - set(MULTI_SELECT_FIELDS)
        if unknown:
            raise ValueError(f"Unknown filter fields: {sorted(unknown)}")
        if self.sort_field not in SORT_FIELDS:
            raise ValueError(f"Unknown sort field: {self.sort_field}")
        if self.sort_order not in SORT_ORDERS:
            raise ValueError(f"Unknown sort order: {self.sort_order}")


def _ticket_records(frame: pd.DataFrame) -> list[dict[str, Any]]:
    records: list[dict[str, Any]] = []
    for row in frame.itertuples(index=False):
        records.append(
            {
                "id": row.id,
                "key": row.key,
                "title": row.title,
                "status": row.status,
                "priority": row.priority,
                "project": row.project,
                "assignee": row.assignee,
                "created": row.created,
                "responseTime": None if pd.isna(row.response_time) else float(row.response_time),
                "resolutionTime": None if pd.isna(row.resolution_time) else float(row.resolution_time),
                "complete": bool(row.complete),
            }
        )
    return records


class TicketStore:
    def __init__(self, tickets: pd.DataFrame) -> None:
        self.tickets = tickets

    @classmethod
    def from_dataframe(cls, raw_df: pd.DataFrame) -> "TicketStore":
        return cls(preprocess_tickets(raw_df))

    @classmethod
    def from_file(cls, path: str | Path) -> "TicketStore":
        return cls.from_dataframe(read_ticket_dump(path))

    def __len__(self) -> int:
        return len(self.tickets)

    def filter(self, criteria: TicketCriteria) -> pd.DataFrame:
        filtered = self.tickets

        if criteria.search:
            needle = criteria.search.lower()
            mask = (
                filtered["title"].str.lower().str.contains(needle, regex=False)
                | filtered["key"].str.lower().str.contains(needle, regex=False)
                | filtered["assignee"].str.lower().str.contains(needle, regex=False)
            )
            filtered = filtered[mask]

        for col, values in criteria.selections.items():
            if not values:
                continue
            filtered = filtered[filtered[col].isin(set(values))]

        if criteria.category:
            filtered = filtered[filtered["category"] == criteria.category]

        return filtered

    def page(self, criteria: TicketCriteria, page: int = 1, limit: int = 100) -> dict[str, Any]:
        if page < 1:
            raise ValueError("page must be >= 1")
        if limit < 1:
            raise ValueError("limit must be >= 1")
        limit = min(limit, MAX_PAGE_LIMIT)

        filtered = self.filter(criteria)
        ordered = filtered.sort_values(
            [SORT_COLUMNS[criteria.sort_field], "id"],
            ascending=[criteria.sort_order == "asc", True],
            na_position="last",
            kind="mergesort",
        )
        total = int(len(ordered))
        window = ordered.iloc[(page - 1) * limit : page * limit]

        return {
            "tickets": _ticket_records(window),
            "pagination": {
                "page": page,
                "limit": limit,
                "total": total,
                "totalPages": math.ceil(total / limit),
            },
            "filterOptions": self.filter_options() if page == 1 else None,
        }

    def filter_options(self) -> dict[str, list[str]]:
        columns = {"statuses": "status", "projects": "project", "priorities": "priority", "assignees": "assignee"}
        options: dict[str, list[str]] = {}
        for name, col in columns.items():
            counts = self.tickets[col].value_counts(sort=True)
            limit = FILTER_OPTION_LIMITS[name]
            values = counts.index.astype(str).tolist()
            options[name] = values[:limit] if limit is not None else values
        return options

    def group_tree(self, levels: list[str], criteria: TicketCriteria) -> list[dict[str, Any]]:
        levels = list(normalize_levels(levels))
        filtered = self.filter(criteria)
        return _build_groups(filtered, levels, depth=0, parent_values={})


def _summarize(frame: pd.DataFrame) -> dict[str, Any]:
    count = int(len(frame))
    completed = int(frame["complete"].sum())
    resolved = frame["resolution_time"].dropna()
    avg_resolution = round(float(resolved.mean()) / 60.0, 1) if not resolved.empty else 0.0
    return {
        "count": count,
        "completed": completed,
        "avgResolution": avg_resolution,
        "completionRate": completion_rate(completed, count),
    }


def _build_groups(
    frame: pd.DataFrame,
    levels: list[str],
    depth: int,
    parent_values: dict[str, str],
) -> list[dict[str, Any]]:
    field_name = levels[depth]
    groups: list[dict[str, Any]] = []
    for value, members in frame.groupby(field_name, sort=False, dropna=False):
        values = {**parent_values, field_name: str(value)}
        node: dict[str, Any] = {
            "key": GROUP_KEY_SEPARATOR.join(values[level] for level in levels[: depth + 1]),
            "values": values,
            **_summarize(members),
        }
        if depth + 1 < len(levels):
            node["children"] = _build_groups(members, levels, depth + 1, values)
        groups.append(node)

    groups.sort(key=lambda item: (-item["count"], item["key"]))
    return groups
