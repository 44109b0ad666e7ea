"""CSV export of the flat ticket list and of grouped aggregates."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from pathlib import Path
from typing import TYPE_CHECKING, Iterable, Sequence

import pandas as pd

from .constants import EXPORT_MAX_ROWS, GROUP_EXPORT_METRIC_HEADERS, TICKET_EXPORT_HEADERS
from .grouping import flatten_group_tree
from .models import FilterQuery, GroupNode, Ticket

if TYPE_CHECKING:
    from .client import TicketApiClient

logger = logging.getLogger(__name__)


@dataclass
class CsvExport:
    filename: str
    content: str
    rows: int

    def write(self, directory: str | Path) -> Path:
        target_dir = Path(directory)
        target_dir.mkdir(parents=True, exist_ok=True)
        path = target_dir / self.filename
        path.write_text(self.content, encoding="utf-8")
        logger.info("Wrote %s rows to %s", self.rows, path)
        return path


def build_csv(headers: Sequence[str], rows: Iterable[Sequence[object]]) -> str:
    frame = pd.DataFrame(list(rows), columns=list(headers), dtype=object)
    return frame.to_csv(index=False, lineterminator="\n").rstrip("\n")


def export_filename(levels: Sequence[str] | None = None, today: date | None = None) -> str:
    stamp = (today or date.today()).isoformat()
    if levels:
        return f"tickets-grouped-{'-'.join(levels)}-{stamp}.csv"
    return f"tickets-export-{stamp}.csv"


def _created_date(value: str) -> str:
    if not value:
        return ""
    parsed = pd.to_datetime(value, errors="coerce")
    if pd.isna(parsed):
        return ""
    return parsed.date().isoformat()


def ticket_export_row(ticket: Ticket) -> list[str]:
    resolution_hours = ""
    if ticket.resolution_time:
        resolution_hours = str(int(round(ticket.resolution_time / 60.0)))
    return [
        ticket.key,
        ticket.title,
        ticket.status,
        ticket.priority,
        ticket.project,
        ticket.assignee,
        _created_date(ticket.created),
        resolution_hours,
        "Yes" if ticket.complete else "No",
    ]


def tickets_to_csv(tickets: Iterable[Ticket]) -> str:
    return build_csv(TICKET_EXPORT_HEADERS, (ticket_export_row(ticket) for ticket in tickets))


def group_export_headers(levels: Sequence[str]) -> list[str]:
    return [level[:1].upper() + level[1:] for level in levels] + GROUP_EXPORT_METRIC_HEADERS


def groups_to_csv(nodes: Sequence[GroupNode], levels: Sequence[str]) -> str:
    return build_csv(group_export_headers(levels), flatten_group_tree(nodes, levels))


async def export_tickets(
    client: "TicketApiClient",
    query: FilterQuery,
    limit: int = EXPORT_MAX_ROWS,
    today: date | None = None,
) -> CsvExport:
    """Re-fetch up to ``limit`` tickets for ``query`` and render them as CSV."""
    limit = min(limit, EXPORT_MAX_ROWS)
    page = await client.fetch_page(query, 1, limit)
    if page.pagination.total > len(page.tickets):
        logger.info("Export truncated to %s of %s tickets", len(page.tickets), page.pagination.total)
    return CsvExport(
        filename=export_filename(today=today),
        content=tickets_to_csv(page.tickets),
        rows=len(page.tickets),
    )


def export_groups(nodes: Sequence[GroupNode], levels: Sequence[str], today: date | None = None) -> CsvExport:
    return CsvExport(
        filename=export_filename(levels, today=today),
        content=groups_to_csv(nodes, levels),
        rows=len(flatten_group_tree(nodes, levels)),
    )
