"""Kalshi trade API client -- fetches via httpx.

Public market endpoints are unauthenticated. /portfolio is signed with the
RequestSigner when an API key and private key are configured; without them
the request goes out unsigned and upstream rejects it.

No call raises: transport and parse failures are logged and come back as an
ApiResponse with an empty object and `error` set.
"""

from __future__ import annotations

import json
import logging
import time
from pathlib import Path
from typing import Any

import httpx

from core.errors import MarketApiError, ParseError, SigningError, TransportError
from core.models.results import ApiResponse
from exchange.signer import RequestSigner

logger = logging.getLogger(__name__)

HEADER_KEY = "KALSHI-ACCESS-KEY"
HEADER_SIGNATURE = "KALSHI-ACCESS-SIGNATURE"
HEADER_TIMESTAMP = "KALSHI-ACCESS-TIMESTAMP"


def _now_ms() -> str:
    return str(int(time.time() * 1000))


class KalshiClient:
    """Async client for the Kalshi trade API.

    Usage:
        client = KalshiClient(base_url=DEMO_BASE_URL)
        page = await client.list_markets(limit=100)
        markets = page.data.get("markets", [])
    """

    def __init__(
        self,
        base_url: str,
        api_key: str = "",
        private_key_path: str | Path = "",
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        # KeyLoadError propagates: a configured but unusable key is fatal.
        self._signer = RequestSigner(private_key_path) if api_key and private_key_path else None
        self._client = httpx.AsyncClient(
            timeout=timeout,
            transport=transport,
            headers={"User-Agent": "kalshi-risk-desk/0.1", "Accept": "application/json"},
        )

    @property
    def name(self) -> str:
        return "kalshi"

    @property
    def has_credentials(self) -> bool:
        return self._signer is not None

    # ------------------------------------------------------------------
    # Endpoints
    # ------------------------------------------------------------------

    async def list_markets(self, limit: int = 100, cursor: str | None = None) -> ApiResponse:
        """GET /markets -- one page, the cursor is passed through as-is."""
        return await self._request("GET", "/markets", params=self._page_params(limit, cursor))

    async def get_market(self, ticker: str) -> ApiResponse:
        """GET /markets/{ticker}."""
        return await self._request("GET", f"/markets/{ticker}")

    async def list_events(self, limit: int = 100, cursor: str | None = None) -> ApiResponse:
        """GET /events -- one page."""
        return await self._request("GET", "/events", params=self._page_params(limit, cursor))

    async def get_portfolio(self) -> ApiResponse:
        """GET /portfolio -- authenticated."""
        path = "/portfolio"
        return await self._request("GET", path, headers=self.build_auth_headers("GET", path))

    # ------------------------------------------------------------------
    # Auth
    # ------------------------------------------------------------------

    def build_auth_headers(self, method: str, path: str, body: str = "") -> dict[str, str]:
        """Build the three KALSHI-ACCESS-* headers, or none at all."""
        if self._signer is None:
            logger.warning("Kalshi credentials missing; sending %s %s unauthenticated", method, path)
            return {}

        timestamp = _now_ms()
        payload = RequestSigner.build_payload(timestamp, method, path, body)
        try:
            signature = self._signer.sign(payload)
        except SigningError:
            logger.exception("Failed to sign %s %s; sending unauthenticated", method, path)
            return {}

        return {
            HEADER_KEY: self._api_key,
            HEADER_SIGNATURE: signature,
            HEADER_TIMESTAMP: timestamp,
        }

    # ------------------------------------------------------------------
    # Plumbing
    # ------------------------------------------------------------------

    @staticmethod
    def _page_params(limit: int, cursor: str | None) -> dict[str, Any]:
        params: dict[str, Any] = {"limit": limit}
        if cursor:
            params["cursor"] = cursor
        return params

    async def _request(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> ApiResponse:
        url = self._base_url + path
        try:
            response = await self._send(method, url, params=params, headers=headers)
        except TransportError as exc:
            logger.warning("Kalshi %s %s failed: %s", method, path, exc)
            return ApiResponse(error=exc.kind)

        if response.status_code >= 400:
            logger.warning("Kalshi returned %d for %s %s", response.status_code, method, path)

        result = ApiResponse(status_code=response.status_code, headers=dict(response.headers))
        try:
            result.data = self._decode(response.text)
        except MarketApiError as exc:
            logger.warning("Kalshi %s %s returned unparseable body: %s", method, path, exc)
            result.error = exc.kind
        return result

    async def _send(
        self,
        method: str,
        url: str,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        try:
            return await self._client.request(method, url, params=params, headers=headers)
        except httpx.HTTPError as exc:
            raise TransportError(str(exc) or type(exc).__name__) from exc

    @staticmethod
    def _decode(body: str) -> Any:
        if not body.strip():
            return {}
        try:
            return json.loads(body)
        except json.JSONDecodeError as exc:
            raise ParseError(str(exc)) from exc

    async def close(self) -> None:
        """Close the HTTP client."""
        await self._client.aclose()
