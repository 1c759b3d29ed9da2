"""Query package."""

from billtracker.queries.engine import DUE_SOON_DAYS, QueryEngine

__all__ = ["DUE_SOON_DAYS", "QueryEngine"]
