"""Feature derivation -- raw market object -> MarketSnapshot -> FeatureRow.

Pure functions. Unknown or mistyped fields fall back to "" / 0.0, so every
input produces a result; a snapshot with an empty ticker is the caller's
signal to skip it.
"""

from __future__ import annotations

import math
from typing import Any

from core.models.market import FeatureRow, MarketSnapshot, utc_now_iso


def _get_str(market: dict, key: str) -> str:
    value = market.get(key)
    return value if isinstance(value, str) else ""


def _get_float(market: dict, key: str) -> float:
    value = market.get(key)
    # bool is an int subclass but never a price; NaN and inf read as missing
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0.0
    number = float(value)
    return number if math.isfinite(number) else 0.0


def parse_market_snapshot(market: Any) -> MarketSnapshot:
    """Flatten one upstream market object."""
    if not isinstance(market, dict):
        market = {}

    return MarketSnapshot(
        ticker=_get_str(market, "ticker"),
        event_ticker=_get_str(market, "event_ticker"),
        status=_get_str(market, "status"),
        category=_get_str(market, "category"),
        yes_bid=_get_float(market, "yes_bid"),
        yes_ask=_get_float(market, "yes_ask"),
        last_price=_get_float(market, "last_price"),
        volume=_get_float(market, "volume"),
        updated_at=_get_str(market, "updated_at") or utc_now_iso(),
    )


def compute_features(snapshot: MarketSnapshot) -> FeatureRow:
    """Derive mid, spread and implied probability.

    A two-sided quote gives mid/spread from bid and ask; otherwise the last
    trade stands in for mid with zero spread. Probability prefers the last
    trade, then mid, on the 0-1 scale.
    """
    if snapshot.yes_bid > 0 and snapshot.yes_ask > 0:
        mid = (snapshot.yes_bid + snapshot.yes_ask) / 2.0
        spread = snapshot.yes_ask - snapshot.yes_bid
    else:
        mid = snapshot.last_price
        spread = 0.0

    if snapshot.last_price > 0:
        prob = snapshot.last_price / 100.0
    elif mid > 0:
        prob = mid / 100.0
    else:
        prob = 0.0

    return FeatureRow(
        ticker=snapshot.ticker,
        ts=snapshot.updated_at,
        mid=mid,
        spread=spread,
        prob=prob,
        volume=snapshot.volume,
    )
