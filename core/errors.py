"""Exception hierarchy for the risk desk.

Only KeyLoadError and StorageError (at construction) are expected to reach
the entrypoint. The rest are raised and caught inside their own layer and
turned into empty results.
"""

from __future__ import annotations


class RiskDeskError(Exception):
    """Base class for all risk desk errors."""


class KeyLoadError(RiskDeskError):
    """The private signing key could not be read or parsed."""


class SigningError(RiskDeskError):
    """The signing operation itself failed."""


class MarketApiError(RiskDeskError):
    """Base class for upstream API failures."""

    kind = "api"


class TransportError(MarketApiError):
    """Network failure or timeout talking to the upstream API."""

    kind = "transport"


class ParseError(MarketApiError):
    """Upstream response body was not valid JSON."""

    kind = "parse"


class StorageError(RiskDeskError):
    """SQLite failure or store lock timeout."""
