"""
Typed exceptions for the resource dashboard core.

Only caller contract violations raise. Sparse data (no records, no history,
missing allocations) is never an error and resolves to empty results.
"""


class ResourceDashboardError(Exception):
    """Base class for all errors raised by the package."""

    code: str = "RESOURCE_DASHBOARD_ERROR"


class MonthFilterError(ResourceDashboardError, ValueError):
    """A month token is malformed or a range runs backwards."""

    code: str = "INVALID_MONTH_FILTER"

    def __init__(self, message: str, token: str | None = None):
        self.token = token
        super().__init__(message)
