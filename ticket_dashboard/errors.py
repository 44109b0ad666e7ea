"""Exception types raised by the dashboard engine."""

from __future__ import annotations


class DashboardError(Exception):
    """Base class for dashboard errors."""


class FetchError(DashboardError):
    """A request to the ticket backend failed (transport error or non-2xx)."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class MalformedResponseError(DashboardError):
    """A backend response did not have the expected shape."""


class InvalidGroupingError(DashboardError, ValueError):
    """Grouping levels were empty, too many, duplicated or unknown."""
