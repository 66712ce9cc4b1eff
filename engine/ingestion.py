"""Ingestion orchestrator -- one refresh cycle from upstream page to stored alerts.

For every market on the page:
1. Parse it into a MarketSnapshot (skip if it has no ticker)
2. Upsert the market row
3. Compute and append its FeatureRow
4. Evaluate alerts and append each one

Refreshes are serialized: the AlertEvaluator has exactly one writer.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from analytics.alerts import AlertEvaluator
from analytics.features import compute_features, parse_market_snapshot
from core.data.store import Store
from core.models.results import RefreshResult
from exchange.client import KalshiClient

logger = logging.getLogger(__name__)


def extract_markets(data: Any) -> list | None:
    """Pull the market list out of a /markets response.

    Accepts a bare list or an object with a "markets" list. Returns None for
    any other shape.
    """
    if isinstance(data, dict) and "markets" in data:
        data = data["markets"]
    if isinstance(data, list):
        return data
    return None


class IngestionOrchestrator:
    """Drives fetch -> parse -> persist -> features -> alerts."""

    def __init__(
        self,
        client: KalshiClient,
        store: Store,
        evaluator: AlertEvaluator,
        default_limit: int = 100,
    ) -> None:
        self._client = client
        self._store = store
        self._evaluator = evaluator
        self._default_limit = default_limit
        self._lock = asyncio.Lock()

    @property
    def default_limit(self) -> int:
        return self._default_limit

    @property
    def running(self) -> bool:
        return self._lock.locked()

    async def refresh(self, limit: int | None = None) -> RefreshResult:
        """Run one refresh. Waits for any refresh already in flight."""
        async with self._lock:
            return await self._refresh(limit or self._default_limit)

    async def _refresh(self, limit: int) -> RefreshResult:
        result = RefreshResult(limit=limit)

        response = await self._client.list_markets(limit=limit)
        if response.error:
            result.error = response.error
            logger.warning("Refresh ingested nothing: %s error from /markets", response.error)
            return result

        markets = extract_markets(response.data)
        if markets is None:
            result.error = "shape"
            logger.warning("Markets response is not a list (status %d)", response.status_code)
            return result

        result.fetched = len(markets)
        for market in markets:
            try:
                self._ingest_one(market, result)
            except Exception:
                result.failed += 1
                logger.exception("Failed to ingest market %r", _ticker_of(market))

        logger.info(
            "Refresh done: %d fetched, %d processed, %d skipped, %d alerts",
            result.fetched, result.processed, result.skipped, result.alerts,
        )
        return result

    def _ingest_one(self, market: Any, result: RefreshResult) -> None:
        snapshot = parse_market_snapshot(market)
        if not snapshot.ticker:
            result.skipped += 1
            return

        if not self._store.upsert_market(snapshot, market):
            result.storage_failures += 1

        feature = compute_features(snapshot)
        if self._store.insert_feature(feature, market) is None:
            result.storage_failures += 1

        for alert in self._evaluator.evaluate(feature):
            result.alerts += 1
            if self._store.insert_alert(alert) is None:
                result.storage_failures += 1

        result.processed += 1


def _ticker_of(market: Any) -> str:
    if isinstance(market, dict):
        return str(market.get("ticker", ""))
    return ""
