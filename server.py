"""Lightweight aiohttp server -- the query API.

Maps URL + query params onto Store reads and the ingestion orchestrator and
serializes the results to JSON. No logic of its own beyond parameter parsing.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from aiohttp import web

if TYPE_CHECKING:
    from core.data.store import Store
    from engine.ingestion import IngestionOrchestrator

logger = logging.getLogger(__name__)


# SQLite binds integers as signed 64-bit
MAX_LIMIT = 2**63 - 1


class BadParam(ValueError):
    pass


def create_app(store: Store, orchestrator: IngestionOrchestrator) -> web.Application:
    """Create and configure the aiohttp application."""
    app = web.Application()

    # Store references for route handlers
    app["store"] = store
    app["orchestrator"] = orchestrator

    # Register routes
    app.router.add_get("/health", handle_health)
    app.router.add_get("/markets", handle_list_markets)
    app.router.add_post("/markets/refresh", handle_refresh)
    app.router.add_get("/alerts", handle_recent_alerts)
    app.router.add_get(r"/features/{ticker:[A-Za-z0-9_-]+}", handle_latest_features)
    app.router.add_get("/events", handle_list_events)

    return app


def _limit(request: web.Request, default: int) -> int:
    raw = request.query.get("limit")
    if raw is None or raw == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        raise BadParam(f"limit must be an integer, got {raw!r}") from None
    if value <= 0:
        raise BadParam("limit must be positive")
    if value > MAX_LIMIT:
        raise BadParam(f"limit must be at most {MAX_LIMIT}")
    return value


def _bad_request(exc: BadParam) -> web.Response:
    return web.json_response({"error": str(exc)}, status=400)


# ---------------------------------------------------------------------------
# Route handlers
# ---------------------------------------------------------------------------

async def handle_health(request: web.Request) -> web.Response:
    """GET /health -- liveness marker."""
    return web.Response(text="ok", content_type="text/plain")


async def handle_list_markets(request: web.Request) -> web.Response:
    """GET /markets?limit=200&search=..."""
    store: Store = request.app["store"]
    try:
        limit = _limit(request, 200)
    except BadParam as exc:
        return _bad_request(exc)

    markets = store.list_markets(limit=limit, search=request.query.get("search", ""))
    return web.json_response([m.model_dump(mode="json") for m in markets])


async def handle_refresh(request: web.Request) -> web.Response:
    """POST /markets/refresh?limit=100 -- run one ingestion cycle now."""
    orchestrator: IngestionOrchestrator = request.app["orchestrator"]
    try:
        limit = _limit(request, 100)
    except BadParam as exc:
        return _bad_request(exc)

    result = await orchestrator.refresh(limit)
    logger.info("On-demand refresh: %s", result.model_dump())
    return web.json_response({"status": "ok", "limit": limit})


async def handle_recent_alerts(request: web.Request) -> web.Response:
    """GET /alerts?limit=50"""
    store: Store = request.app["store"]
    try:
        limit = _limit(request, 50)
    except BadParam as exc:
        return _bad_request(exc)

    alerts = store.recent_alerts(limit=limit)
    return web.json_response([a.model_dump(mode="json") for a in alerts])


async def handle_latest_features(request: web.Request) -> web.Response:
    """GET /features/{ticker}?limit=50"""
    store: Store = request.app["store"]
    try:
        limit = _limit(request, 50)
    except BadParam as exc:
        return _bad_request(exc)

    features = store.latest_features(request.match_info["ticker"], limit=limit)
    return web.json_response([f.model_dump(mode="json") for f in features])


async def handle_list_events(request: web.Request) -> web.Response:
    """GET /events?limit=100&search=... -- markets aggregated per event."""
    store: Store = request.app["store"]
    try:
        limit = _limit(request, 100)
    except BadParam as exc:
        return _bad_request(exc)

    events = store.list_events(limit=limit, search=request.query.get("search", ""))
    return web.json_response([e.model_dump(mode="json") for e in events])
