from __future__ import annotations

import json
from pathlib import Path
from typing import Callable

import httpx
import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from analytics.alerts import AlertEvaluator
from core.data.store import Store
from engine.ingestion import IngestionOrchestrator
from exchange.client import KalshiClient

BASE_URL = "https://demo.test/trade-api/v2"


@pytest.fixture(scope="session")
def rsa_private_key() -> rsa.RSAPrivateKey:
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture
def key_file(tmp_path: Path, rsa_private_key: rsa.RSAPrivateKey) -> Path:
    path = tmp_path / "kalshi.pem"
    path.write_bytes(
        rsa_private_key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.TraditionalOpenSSL,
            encryption_algorithm=serialization.NoEncryption(),
        )
    )
    return path


@pytest.fixture
def store(tmp_path: Path):
    s = Store(tmp_path / "data" / "kalshi.db", lock_timeout=1.0)
    yield s
    s.close()


def make_market(ticker: str = "FED-24DEC-T4.50", **overrides) -> dict:
    market = {
        "ticker": ticker,
        "event_ticker": "FED-24DEC",
        "status": "open",
        "category": "Economics",
        "yes_bid": 40,
        "yes_ask": 44,
        "last_price": 42,
        "volume": 1200,
        "updated_at": "2024-11-01T12:00:00Z",
    }
    market.update(overrides)
    return market


class MarketsFeed:
    """Mutable upstream /markets fake for httpx.MockTransport."""

    def __init__(self, body: object | None = None) -> None:
        self.body: object = body if body is not None else {"markets": [], "cursor": ""}
        self.status = 200
        self.requests: list[httpx.Request] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if isinstance(self.body, str):
            return httpx.Response(self.status, text=self.body)
        return httpx.Response(self.status, content=json.dumps(self.body).encode())


@pytest.fixture
def feed() -> MarketsFeed:
    return MarketsFeed()


@pytest.fixture
async def client(feed: MarketsFeed):
    c = KalshiClient(base_url=BASE_URL, transport=httpx.MockTransport(feed.handler))
    yield c
    await c.close()


@pytest.fixture
def evaluator() -> AlertEvaluator:
    return AlertEvaluator(jump_threshold=5.0, spread_threshold=10.0)


@pytest.fixture
def orchestrator(client: KalshiClient, store: Store, evaluator: AlertEvaluator) -> IngestionOrchestrator:
    return IngestionOrchestrator(client=client, store=store, evaluator=evaluator, default_limit=100)


@pytest.fixture
def market_factory() -> Callable[..., dict]:
    return make_market
