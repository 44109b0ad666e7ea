from __future__ import annotations

import asyncio
import math
from collections.abc import AsyncGenerator

import httpx
import pandas as pd
import pytest

from ticket_dashboard.api_server import create_app
from ticket_dashboard.client import TicketApiClient
from ticket_dashboard.errors import FetchError
from ticket_dashboard.models import FilterOptions, FilterQuery, GroupNode, Pagination, Ticket, TicketPage
from ticket_dashboard.ticket_store import TicketStore


def make_ticket(index: int, status: str = "Open", **overrides) -> Ticket:
    fields = {
        "id": f"t{index}",
        "key": f"SUP-{index}",
        "title": f"Ticket {index}",
        "status": status,
        "priority": "Medium",
        "project": "Servicing",
        "assignee": "alice",
        "created": f"2024-01-{(index % 28) + 1:02d}T08:00:00Z",
        "response_time": None,
        "resolution_time": None,
        "complete": False,
    }
    fields.update(overrides)
    return Ticket(**fields)


def make_node(key: str, values: dict[str, str], count: int, completed: int = 0, children=None) -> GroupNode:
    return GroupNode(
        key=key,
        values=values,
        count=count,
        completed=completed,
        completion_rate=round(completed / count * 100, 1) if count else 0.0,
        children=tuple(children) if children else None,
    )


class FakeClock:
    def __init__(self, start: float = 0.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeTicketClient:
    """In-memory stand-in for :class:`TicketApiClient`.

    ``page_gates`` / ``group_gates`` map a 1-based call number to an event the
    call waits on, so tests can hold a response back and deliver it late.
    """

    def __init__(self, tickets: list[Ticket] | None = None, groups: list[GroupNode] | None = None) -> None:
        self.tickets = list(tickets or [])
        self.groups = list(groups or [])
        self.page_calls: list[tuple[FilterQuery, int, int]] = []
        self.group_calls: list[tuple[FilterQuery, tuple[str, ...]]] = []
        self.fail_pages: set[int] = set()
        self.fail_groups = False
        self.page_gates: dict[int, asyncio.Event] = {}
        self.group_gates: dict[int, asyncio.Event] = {}

    def _matching(self, query: FilterQuery) -> list[Ticket]:
        matching = self.tickets
        for name in ("status", "project", "priority", "assignee"):
            selected = query.selection(name)
            if selected:
                matching = [ticket for ticket in matching if getattr(ticket, name) in selected]
        return matching

    async def fetch_page(self, query: FilterQuery, page: int, limit: int) -> TicketPage:
        self.page_calls.append((query, page, limit))
        gate = self.page_gates.get(len(self.page_calls))
        if gate is not None:
            await gate.wait()
        if page in self.fail_pages:
            raise FetchError("GET /api/tickets returned HTTP 500", status_code=500)

        matching = self._matching(query)
        total = len(matching)
        start = (page - 1) * limit
        options = None
        if page == 1:
            options = FilterOptions(statuses=tuple(dict.fromkeys(ticket.status for ticket in self.tickets)))
        return TicketPage(
            tickets=tuple(matching[start : start + limit]),
            pagination=Pagination(page=page, limit=limit, total=total, total_pages=math.ceil(total / limit)),
            filter_options=options,
        )

    async def fetch_groups(self, query: FilterQuery, levels) -> list[GroupNode]:
        self.group_calls.append((query, tuple(levels)))
        gate = self.group_gates.get(len(self.group_calls))
        if gate is not None:
            await gate.wait()
        if self.fail_groups:
            raise FetchError("POST /api/tickets returned HTTP 503", status_code=503)
        return list(self.groups)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def raw_ticket_df() -> pd.DataFrame:
    return pd.DataFrame(
        {
            "ticket_uuid": ["u1", "u2", "u3", "u4", "u5", "u6"],
            "ticket_key": ["SUP-1", "SUP-2", "SUP-3", "SUP-4", "SUP-5", "SUP-6"],
            "ticket_title": [
                "Payment not applied",
                "Escrow shortage question",
                "Need payoff statement",
                "Loan 1234567890 status",
                "Automatic reply: out of office",
                "Printer jam",
            ],
            "ticket_status": ["Open", "Closed", "Closed", "Open", "Closed", "In Progress"],
            "ticket_priority": ["High", "Medium", "Low", "High", "Low", "Medium"],
            "project_name": ["Servicing", "Servicing", "Origination", "Origination", "Servicing", "Servicing"],
            "assigned_user_name": ["alice", "bob", "alice", None, "carol", "bob"],
            "ticket_created_at_utc": [
                "2024-01-01T08:00:00Z",
                "2024-01-02T08:00:00Z",
                "2024-01-03T08:00:00Z",
                "2024-01-04T08:00:00Z",
                "2024-01-05T08:00:00Z",
                "2024-01-06T08:00:00Z",
            ],
            "time_to_first_response_in_minutes": [10, 15, 5, None, 1, 20],
            "time_to_resolution_in_minutes": [None, 120, 240, None, 30, None],
            "is_ticket_complete": ["false", "true", "TRUE", "false", "1", "no"],
        }
    )


@pytest.fixture
def store(raw_ticket_df: pd.DataFrame) -> TicketStore:
    return TicketStore.from_dataframe(raw_ticket_df)


@pytest.fixture
def bulk_ticket_df() -> pd.DataFrame:
    """150 tickets: 100 Open and 50 Closed, spread over five assignees and two projects."""
    rows = []
    for i in range(150):
        rows.append(
            {
                "id": f"b{i:03d}",
                "key": f"BULK-{i}",
                "title": f"Bulk ticket {i}",
                "status": "Open" if i < 100 else "Closed",
                "priority": "High" if i % 3 == 0 else "Low",
                "project": "Servicing" if i % 2 == 0 else "Origination",
                "assignee": f"agent{i % 5}",
                "created": f"2024-02-01T{i % 24:02d}:00:00Z",
                "resolution_time": None if i < 100 else 60,
                "complete": i >= 100,
            }
        )
    return pd.DataFrame(rows)


@pytest.fixture
def bulk_store(bulk_ticket_df: pd.DataFrame) -> TicketStore:
    return TicketStore.from_dataframe(bulk_ticket_df)


@pytest.fixture
async def api_client(bulk_store: TicketStore) -> AsyncGenerator[TicketApiClient, None]:
    """Client wired to the reference backend in-process."""
    transport = httpx.ASGITransport(app=create_app(bulk_store))
    async with TicketApiClient(base_url="http://test", transport=transport) as client:
        yield client
