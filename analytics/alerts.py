"""Alert evaluator -- per-ticker anomaly detection against the last seen row.

Each ticker is either unseen or tracked with exactly one previous FeatureRow.
The first observation only sets the baseline. Later observations are checked
against two independent rules, and the tracked row is always replaced,
whether or not anything fired.

Not safe for concurrent evaluate() calls; the ingestion orchestrator
serializes refreshes.
"""

from __future__ import annotations

import logging

from core.models.market import Alert, FeatureRow

logger = logging.getLogger(__name__)


class AlertEvaluator:
    """Stateful price-jump / wide-spread detector."""

    def __init__(self, jump_threshold: float = 5.0, spread_threshold: float = 10.0) -> None:
        self.jump_threshold = jump_threshold
        self.spread_threshold = spread_threshold
        self._last: dict[str, FeatureRow] = {}

    @property
    def tracked_count(self) -> int:
        return len(self._last)

    def last_seen(self, ticker: str) -> FeatureRow | None:
        return self._last.get(ticker)

    def evaluate(self, row: FeatureRow) -> list[Alert]:
        """Compare `row` with the previous row for its ticker, then track it."""
        prev = self._last.get(row.ticker)
        alerts: list[Alert] = []

        if prev is not None:
            jump = self._price_jump(prev, row)
            if jump:
                alerts.append(jump)
            spread = self._wide_spread(row)
            if spread:
                alerts.append(spread)

        self._last[row.ticker] = row

        for alert in alerts:
            logger.info("Alert %s on %s: %s", alert.type, alert.ticker, alert.details)
        return alerts

    def _price_jump(self, prev: FeatureRow, row: FeatureRow) -> Alert | None:
        delta = abs(row.mid - prev.mid)
        if not (delta >= self.jump_threshold and row.mid > 0 and prev.mid > 0):
            return None
        return Alert(
            ticker=row.ticker,
            ts=row.ts,
            type="price_jump",
            score=delta,
            details=f"mid moved from {prev.mid:g} to {row.mid:g}",
        )

    def _wide_spread(self, row: FeatureRow) -> Alert | None:
        if not row.spread >= self.spread_threshold:
            return None
        return Alert(
            ticker=row.ticker,
            ts=row.ts,
            type="wide_spread",
            score=row.spread,
            details=f"spread {row.spread:g} at or above {self.spread_threshold:g}",
        )
