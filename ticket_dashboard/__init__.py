"""Ticket aggregation and listing engine package."""

from .client import TicketApiClient
from .config import DashboardSettings, configure_logging
from .dashboard import DashboardSession
from .filters import FilterStateManager, compute_effective_state
from .grouping import GroupAggregator, flatten_group_tree
from .models import FilterQuery, GroupNode, Ticket
from .paging import PagedFetchController

__all__ = [
    "DashboardSession",
    "DashboardSettings",
    "FilterQuery",
    "FilterStateManager",
    "GroupAggregator",
    "GroupNode",
    "PagedFetchController",
    "Ticket",
    "TicketApiClient",
    "compute_effective_state",
    "configure_logging",
    "flatten_group_tree",
]
