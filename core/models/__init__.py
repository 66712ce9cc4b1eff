"""Pydantic data models shared across all components."""

from core.models.market import Alert, EventSummary, FeatureRow, MarketSnapshot
from core.models.results import ApiResponse, RefreshResult

__all__ = [
    "Alert",
    "EventSummary",
    "FeatureRow",
    "MarketSnapshot",
    "ApiResponse",
    "RefreshResult",
]
