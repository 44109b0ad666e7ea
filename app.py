from __future__ import annotations

import asyncio
from dataclasses import asdict, dataclass
from typing import Any

import pandas as pd
import streamlit as st
from fastapi import FastAPI

from ticket_dashboard.api_server import create_app
from ticket_dashboard.categorization import known_categories
from ticket_dashboard.client import TicketApiClient
from ticket_dashboard.config import DashboardSettings, configure_logging
from ticket_dashboard.constants import GROUP_BY_FIELDS, MAX_GROUP_LEVELS, MULTI_SELECT_FIELDS, SNAPSHOT_NAMES, SORT_FIELDS
from ticket_dashboard.dashboard import DashboardSession, build_client
from ticket_dashboard.errors import FetchError
from ticket_dashboard.export import CsvExport
from ticket_dashboard.filters import FilterStateManager
from ticket_dashboard.grouping import GroupRow
from ticket_dashboard.models import FilterOptions, FilterQuery, GroupNode
from ticket_dashboard.snapshots import (
    category_totals,
    sentiment_comparison,
    snapshot_section,
    summarize_heatmap,
)
from ticket_dashboard.ticket_store import TicketStore
from ticket_dashboard.visualization import build_category_figure, build_heatmap_figure, build_sentiment_figure


settings = DashboardSettings.from_env()
configure_logging(settings.log_level)

st.set_page_config(page_title="Ticket Dashboard", page_icon="🎫", layout="wide")

_FILTER_LABELS = {"status": "Status", "project": "Project", "priority": "Priority", "assignee": "Assignee"}


@st.cache_resource(show_spinner=False)
def _local_backend(data_path: str, snapshot_dir: str | None) -> FastAPI:
    return create_app(TicketStore.from_file(data_path), snapshot_dir)


@dataclass
class ViewState:
    tickets: pd.DataFrame
    total: int
    has_more: bool
    load_failed: bool
    filter_options: FilterOptions | None
    group_rows: list[GroupRow]
    groups_failed: bool
    active_filters: int
    export: CsvExport | None
    snapshots: dict[str, dict[str, Any]]


async def _fetch_snapshot(client: TicketApiClient, name: str) -> dict[str, Any]:
    try:
        return await client.fetch_snapshot(name)
    except FetchError:
        return {}


async def _load_view(
    query: FilterQuery,
    pages: int,
    view_mode: str,
    levels: list[str],
    expanded: set[str],
    backend: FastAPI | None,
    with_export: bool = False,
) -> ViewState:
    async with build_client(settings, app=backend) as client:
        session = DashboardSession(client, settings, filters=FilterStateManager(initial=query), group_levels=levels)
        session.view_mode = view_mode
        await session.start()
        while view_mode == "table" and session.listing.page < pages and session.listing.has_more:
            if not await session.listing.load_more():
                break
        session.groups.expanded = set(expanded)

        return ViewState(
            tickets=pd.DataFrame([asdict(ticket) for ticket in session.listing.tickets]),
            total=session.listing.total if view_mode == "table" else sum(node.count for node in session.groups.groups),
            has_more=session.listing.has_more,
            load_failed=session.listing.load_failed,
            filter_options=session.listing.filter_options,
            group_rows=session.groups.rows(),
            groups_failed=session.groups.load_failed,
            active_filters=session.active_filter_count,
            export=await session.export() if with_export else None,
            snapshots={name: await _fetch_snapshot(client, name) for name in SNAPSHOT_NAMES},
        )


def _init_state() -> None:
    st.session_state.setdefault("pages", 1)
    st.session_state.setdefault("expanded", set())
    st.session_state.setdefault("filter_options", FilterOptions())
    st.session_state.setdefault("view_mode", "table")
    st.session_state.setdefault("group_levels", ["project"])
    st.session_state.setdefault("last_query", None)
    st.session_state.setdefault("export_requested", False)
    st.session_state.setdefault("export", None)


def _clear_filters() -> None:
    st.session_state["search"] = ""
    st.session_state["filter_category"] = ""
    for name in MULTI_SELECT_FIELDS:
        st.session_state[f"filter_{name}"] = []


def _load_more() -> None:
    st.session_state["pages"] += 1


def _toggle_group(key: str) -> None:
    expanded: set[str] = st.session_state["expanded"]
    if key in expanded:
        expanded.discard(key)
    else:
        expanded.add(key)


def _drill_into(node: GroupNode) -> None:
    for name in MULTI_SELECT_FIELDS:
        if node.values.get(name):
            st.session_state[f"filter_{name}"] = [node.values[name]]
    if node.values.get("category"):
        st.session_state["filter_category"] = node.values["category"]
    st.session_state["view_mode"] = "table"


def _reset_expanded() -> None:
    st.session_state["expanded"] = set()


def _request_export() -> None:
    st.session_state["export_requested"] = True


_init_state()

st.title("Ticket Dashboard")
st.caption("Filter, page through and group support tickets, then export what you see as CSV.")

backend = None
if settings.data_path is not None:
    backend = _local_backend(str(settings.data_path), str(settings.snapshot_dir) if settings.snapshot_dir else None)

st.sidebar.header("Filters")
search = st.sidebar.text_input("Search", key="search", placeholder="Title, key or assignee")

options: FilterOptions = st.session_state["filter_options"]
selections: dict[str, list[str]] = {}
for name in MULTI_SELECT_FIELDS:
    selected = st.session_state.get(f"filter_{name}", [])
    choices = list(dict.fromkeys([*options.for_field(name), *selected]))
    selections[name] = st.sidebar.multiselect(_FILTER_LABELS[name], choices, key=f"filter_{name}")

category = st.sidebar.selectbox(
    "Category",
    ["", *known_categories()],
    key="filter_category",
    format_func=lambda value: value or "All categories",
)
sort_field = st.sidebar.selectbox("Sort by", list(SORT_FIELDS), index=SORT_FIELDS.index("created"))
sort_order = st.sidebar.radio("Order", ["desc", "asc"], horizontal=True)
st.sidebar.button("Clear filters", on_click=_clear_filters)

query = FilterQuery(
    search=search.strip(),
    status=tuple(selections["status"]),
    project=tuple(selections["project"]),
    priority=tuple(selections["priority"]),
    assignee=tuple(selections["assignee"]),
    category=category,
    sort_field=sort_field,
    sort_order=sort_order,
)
if query != st.session_state["last_query"]:
    st.session_state["last_query"] = query
    st.session_state["pages"] = 1

view_mode = st.radio("View", ["table", "grouped"], key="view_mode", horizontal=True, format_func=str.capitalize)
levels = st.multiselect(
    "Group by",
    list(GROUP_BY_FIELDS),
    key="group_levels",
    max_selections=MAX_GROUP_LEVELS,
    on_change=_reset_expanded,
)
if not levels:
    st.warning("Pick at least one grouping field; grouping by project.")
    levels = ["project"]

export_key = (query, view_mode, tuple(levels))
export_requested = st.session_state["export_requested"]
st.session_state["export_requested"] = False

state = asyncio.run(
    _load_view(
        query,
        st.session_state["pages"],
        view_mode,
        levels,
        st.session_state["expanded"],
        backend,
        with_export=export_requested,
    )
)
if state.export is not None:
    st.session_state["export"] = (export_key, state.export)
if state.filter_options is not None:
    st.session_state["filter_options"] = state.filter_options

col1, col2, col3 = st.columns(3)
col1.metric("Matching Tickets", f"{state.total}")
col2.metric("Loaded", f"{len(state.tickets)}")
col3.metric("Active Filters", f"{state.active_filters}")

tickets_tab, insights_tab = st.tabs(["Tickets", "Insights"])

with tickets_tab:
    if view_mode == "table":
        if state.load_failed:
            st.error("Failed to load tickets.")
        elif state.tickets.empty:
            st.info("No tickets match the current filters.")
        else:
            st.dataframe(state.tickets, use_container_width=True, hide_index=True)
        if state.has_more:
            st.button("Load more", on_click=_load_more)
    else:
        if state.groups_failed:
            st.error("Failed to load grouped data.")
        for row in state.group_rows:
            node = row.node
            label = node.values.get(levels[row.depth], node.key)
            summary = f"{label} | {node.count} tickets | {node.completion_rate}% complete"
            _, body = st.columns([0.02 + row.depth * 0.05, 1])
            if row.has_children:
                marker = "▾" if row.expanded else "▸"
                body.button(f"{marker} {summary}", key=f"group-{node.key}", on_click=_toggle_group, args=(node.key,))
            else:
                body.button(f"• {summary}", key=f"group-{node.key}", on_click=_drill_into, args=(node,))

    cached = st.session_state["export"]
    if cached is not None and cached[0] == export_key:
        artifact: CsvExport = cached[1]
        st.download_button(
            f"Download CSV ({artifact.rows} rows)",
            data=artifact.content.encode("utf-8"),
            file_name=artifact.filename,
            mime="text/csv",
        )
    else:
        if export_requested:
            st.error("Export failed.")
        st.button("Prepare CSV export", key="prepare_export", on_click=_request_export)

with insights_tab:
    cells = snapshot_section(state.snapshots["processed-stats"], "heatmaps", "dayHour", "data")
    if cells:
        heatmap = summarize_heatmap(cells)
        st.subheader("Call Volume by Day and Hour")
        st.plotly_chart(build_heatmap_figure(heatmap), use_container_width=True)
        st.caption(f"Peak day: {heatmap.peak_row} | Peak hour: {heatmap.peak_column} | Total: {heatmap.total}")

    category_stats = snapshot_section(state.snapshots["category-stats"], "data")
    fig = build_category_figure(category_totals(category_stats or []))
    if fig is not None:
        st.subheader("Categories")
        st.plotly_chart(fig, use_container_width=True)

    sentiment = snapshot_section(state.snapshots["deep-analysis"], "summary")
    if sentiment:
        fig = build_sentiment_figure(sentiment_comparison(sentiment))
        st.subheader("Agent vs Customer Sentiment")
        st.plotly_chart(fig, use_container_width=True)

    if not any(state.snapshots.values()):
        st.info("No analytics snapshots are available.")
