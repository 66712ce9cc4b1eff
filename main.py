"""Kalshi Risk Desk entrypoint -- wires all components together and starts the server.

Usage:
    python main.py
    python main.py --config /path/to/config.yaml
    python main.py --once          # single refresh, then exit
"""

from __future__ import annotations

import argparse
import asyncio
import logging

from aiohttp import web

from analytics.alerts import AlertEvaluator
from core.config import AppConfig, load_config
from core.data.store import Store
from engine.ingestion import IngestionOrchestrator
from exchange.client import KalshiClient
from scheduler.runner import RefreshScheduler
from server import create_app


def setup_logging(level: str) -> None:
    """Configure logging for the application."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    # Quiet down noisy libraries
    logging.getLogger("aiohttp").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Kalshi market risk desk")
    parser.add_argument(
        "--config", "-c",
        type=str,
        default=None,
        help="Path to config.yaml (default: ~/.kalshi-desk/config.yaml)",
    )
    parser.add_argument(
        "--env",
        type=str,
        default=None,
        help="Path to .env file (default: ~/.kalshi-desk/.env)",
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Run a single refresh and exit",
    )
    return parser.parse_args()


def build_components(config: AppConfig) -> tuple[KalshiClient, Store, IngestionOrchestrator]:
    """Construct client, store and orchestrator. Key and store errors are fatal here."""
    client = KalshiClient(
        base_url=config.kalshi.resolved_base_url,
        api_key=config.kalshi.api_key,
        private_key_path=config.kalshi.private_key_path,
        timeout=config.kalshi.timeout_seconds,
    )
    store = Store(config.storage.db_path, lock_timeout=config.storage.lock_timeout_seconds)
    evaluator = AlertEvaluator(
        jump_threshold=config.alerts.jump_threshold,
        spread_threshold=config.alerts.spread_threshold,
    )
    orchestrator = IngestionOrchestrator(
        client=client,
        store=store,
        evaluator=evaluator,
        default_limit=config.refresh.limit,
    )
    return client, store, orchestrator


async def run(config: AppConfig, once: bool = False) -> None:
    """Initialize all components and start the server."""
    logger = logging.getLogger("riskdesk")
    client, store, orchestrator = build_components(config)
    logger.info("Kalshi Risk Desk using %s", config.kalshi.resolved_base_url)
    if not client.has_credentials:
        logger.warning("No Kalshi API key/private key configured; authenticated calls will be rejected")

    if once:
        logger.info("Running one-time refresh")
        try:
            await orchestrator.refresh()
        finally:
            await client.close()
            store.close()
        return

    if config.refresh.on_start:
        await orchestrator.refresh()

    scheduler = RefreshScheduler(
        orchestrator,
        interval_seconds=config.refresh.interval_seconds,
    )
    app = create_app(store=store, orchestrator=orchestrator)

    await scheduler.start()

    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, config.server.host, config.server.port)
    await site.start()

    logger.info(
        "Kalshi Risk Desk running at http://%s:%d",
        config.server.host,
        config.server.port,
    )

    # Run until interrupted
    try:
        await asyncio.Event().wait()
    except (KeyboardInterrupt, asyncio.CancelledError):
        pass
    finally:
        logger.info("Shutting down...")
        await scheduler.stop()
        await runner.cleanup()
        await client.close()
        store.close()
        logger.info("Shutdown complete")


def main() -> None:
    args = parse_args()
    setup_logging("INFO")
    config = load_config(config_path=args.config, env_path=args.env)
    logging.getLogger().setLevel(getattr(logging, config.logging.level.upper(), logging.INFO))
    try:
        asyncio.run(run(config, once=args.once))
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
