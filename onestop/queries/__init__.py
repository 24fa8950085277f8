"""Read-side query package."""

from onestop.queries.dashboard import DashboardQueries, month_bounds

__all__ = ["DashboardQueries", "month_bounds"]
