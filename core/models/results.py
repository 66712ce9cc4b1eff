"""Outcome models -- what each fail-soft boundary actually did."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field


class ApiResponse(BaseModel):
    """Result of one upstream API call.

    `data` is always a JSON value; on transport or parse failure it is an
    empty object and `error` says which.
    """

    status_code: int = 0
    data: Any = Field(default_factory=dict)
    headers: dict[str, str] = Field(default_factory=dict)
    error: Literal["transport", "parse"] | None = None

    @property
    def ok(self) -> bool:
        return self.error is None and 200 <= self.status_code < 300


class RefreshResult(BaseModel):
    """Counters for one ingestion cycle."""

    limit: int
    fetched: int = 0
    processed: int = 0
    skipped: int = 0
    alerts: int = 0
    storage_failures: int = 0
    failed: int = 0
    error: str | None = None
