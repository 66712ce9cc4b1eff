"""Market models -- upstream snapshots, derived features, alerts.

Prices are on the exchange's 0-100 cent scale. Timestamps are ISO-8601 UTC
strings, passed through from the upstream payload unchanged.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


def utc_now_iso() -> str:
    """Current UTC time as 'YYYY-MM-DDTHH:MM:SSZ'."""
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


class MarketSnapshot(BaseModel):
    """One upstream market object, flattened to the fields we keep."""

    ticker: str = ""
    event_ticker: str = ""
    status: str = ""
    category: str = ""
    yes_bid: float = 0.0
    yes_ask: float = 0.0
    last_price: float = 0.0
    volume: float = 0.0
    updated_at: str = Field(default_factory=utc_now_iso)


class FeatureRow(BaseModel):
    """Normalized features derived from a single MarketSnapshot."""

    model_config = ConfigDict(frozen=True)

    ticker: str
    ts: str
    mid: float = 0.0
    spread: float = 0.0
    prob: float = 0.0
    volume: float = 0.0


AlertType = Literal["price_jump", "wide_spread"]


class Alert(BaseModel):
    """An anomaly raised by the AlertEvaluator."""

    ticker: str
    ts: str
    type: AlertType
    score: float
    details: str = ""


class EventSummary(BaseModel):
    """Markets aggregated by event and category."""

    event_ticker: str
    category: str = ""
    market_count: int = 0
    total_volume: float = 0.0
    updated_at: str = ""
