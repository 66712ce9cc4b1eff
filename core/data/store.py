"""SQLite storage layer for markets, features and alerts.

`markets` holds the latest snapshot per ticker (upsert). `features` and
`alerts` are append-only logs whose AUTOINCREMENT ids follow insertion order.

Every statement runs under one store-wide lock with a bounded wait. Failures
are logged and turned into False / None / [] -- callers never see a sqlite
exception once the store is constructed.
"""

from __future__ import annotations

import json
import logging
import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator, Sequence

from core.errors import StorageError
from core.models.market import Alert, EventSummary, FeatureRow, MarketSnapshot

logger = logging.getLogger(__name__)

_SCHEMA = """
    CREATE TABLE IF NOT EXISTS markets (
        ticker TEXT PRIMARY KEY,
        event_ticker TEXT,
        status TEXT,
        category TEXT,
        yes_bid REAL,
        yes_ask REAL,
        last_price REAL,
        volume REAL,
        updated_at TEXT,
        raw_json TEXT
    );

    CREATE INDEX IF NOT EXISTS idx_markets_updated
        ON markets(updated_at);

    CREATE TABLE IF NOT EXISTS features (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        ticker TEXT,
        ts TEXT,
        mid REAL,
        spread REAL,
        prob REAL,
        volume REAL,
        raw_json TEXT
    );

    CREATE INDEX IF NOT EXISTS idx_features_ticker
        ON features(ticker, id);

    CREATE TABLE IF NOT EXISTS alerts (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        ticker TEXT,
        ts TEXT,
        type TEXT,
        score REAL,
        details TEXT
    );
"""


def _raw_json(raw: Any) -> str:
    if isinstance(raw, str):
        return raw
    return json.dumps(raw, separators=(",", ":"), default=str)


def _fold(value: Any) -> Any:
    return value.casefold() if isinstance(value, str) else value


def _like_pattern(search: str) -> str:
    """Substring LIKE pattern with %, _ and the escape char matched literally."""
    escaped = search.casefold().replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


class Store:
    """Thread-safe SQLite store.

    Usage:
        store = Store("data/kalshi.db")
        store.upsert_market(snapshot, raw)
        store.list_markets(limit=50, search="FED")
    """

    def __init__(self, db_path: str | Path, lock_timeout: float = 5.0) -> None:
        self._db_path = str(db_path)
        self._lock_timeout = lock_timeout
        self._lock = threading.Lock()
        self._db: sqlite3.Connection | None = None
        self._init_sqlite()

    # ------------------------------------------------------------------
    # SQLite
    # ------------------------------------------------------------------

    def _init_sqlite(self) -> None:
        """Open the database and create tables if needed. Raises StorageError."""
        try:
            if self._db_path != ":memory:":
                Path(self._db_path).parent.mkdir(parents=True, exist_ok=True)
            self._db = sqlite3.connect(
                self._db_path,
                timeout=self._lock_timeout,
                check_same_thread=False,
            )
            self._db.row_factory = sqlite3.Row
            self._db.create_function("fold", 1, _fold, deterministic=True)
            self._db.execute("PRAGMA journal_mode=WAL")
            self._db.executescript(_SCHEMA)
            self._db.commit()
        except (OSError, sqlite3.Error) as exc:
            raise StorageError(f"Failed to open store at {self._db_path}: {exc}") from exc
        logger.info("SQLite initialized at %s", self._db_path)

    @property
    def db(self) -> sqlite3.Connection:
        if self._db is None:
            raise StorageError("Store not initialized")
        return self._db

    def close(self) -> None:
        """Close the SQLite connection."""
        with self._lock:
            if self._db:
                self._db.close()
                self._db = None

    @contextmanager
    def _locked(self, operation: str) -> Iterator[sqlite3.Connection]:
        if not self._lock.acquire(timeout=self._lock_timeout):
            raise StorageError(
                f"{operation}: store lock not acquired within {self._lock_timeout:g}s"
            )
        try:
            yield self.db
        finally:
            self._lock.release()

    def _write(self, operation: str, sql: str, params: Sequence[Any]) -> sqlite3.Cursor | None:
        """Run one write statement and commit. Returns None on failure."""
        try:
            with self._locked(operation) as db:
                cursor = db.execute(sql, params)
                db.commit()
                return cursor
        except (sqlite3.Error, StorageError, OverflowError, ValueError):
            logger.exception("Store %s failed", operation)
            return None

    def _read(self, operation: str, sql: str, params: Sequence[Any]) -> list[sqlite3.Row]:
        """Run one query. Returns [] on failure."""
        try:
            with self._locked(operation) as db:
                return db.execute(sql, params).fetchall()
        except (sqlite3.Error, StorageError, OverflowError, ValueError):
            logger.exception("Store %s failed", operation)
            return []

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def upsert_market(self, snapshot: MarketSnapshot, raw: Any) -> bool:
        """Insert or overwrite every column of the market row for this ticker."""
        cursor = self._write(
            "upsert_market",
            """INSERT INTO markets
               (ticker, event_ticker, status, category, yes_bid, yes_ask,
                last_price, volume, updated_at, raw_json)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
               ON CONFLICT(ticker) DO UPDATE SET
                   event_ticker=excluded.event_ticker,
                   status=excluded.status,
                   category=excluded.category,
                   yes_bid=excluded.yes_bid,
                   yes_ask=excluded.yes_ask,
                   last_price=excluded.last_price,
                   volume=excluded.volume,
                   updated_at=excluded.updated_at,
                   raw_json=excluded.raw_json""",
            (
                snapshot.ticker,
                snapshot.event_ticker,
                snapshot.status,
                snapshot.category,
                snapshot.yes_bid,
                snapshot.yes_ask,
                snapshot.last_price,
                snapshot.volume,
                snapshot.updated_at,
                _raw_json(raw),
            ),
        )
        return cursor is not None

    def insert_feature(self, row: FeatureRow, raw: Any) -> int | None:
        """Append a feature row. Returns its id, or None if the write was dropped."""
        cursor = self._write(
            "insert_feature",
            """INSERT INTO features (ticker, ts, mid, spread, prob, volume, raw_json)
               VALUES (?, ?, ?, ?, ?, ?, ?)""",
            (row.ticker, row.ts, row.mid, row.spread, row.prob, row.volume, _raw_json(raw)),
        )
        return cursor.lastrowid if cursor is not None else None

    def insert_alert(self, alert: Alert) -> int | None:
        """Append an alert. Returns its id, or None if the write was dropped."""
        cursor = self._write(
            "insert_alert",
            """INSERT INTO alerts (ticker, ts, type, score, details)
               VALUES (?, ?, ?, ?, ?)""",
            (alert.ticker, alert.ts, alert.type, alert.score, alert.details),
        )
        return cursor.lastrowid if cursor is not None else None

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def recent_alerts(self, limit: int = 50) -> list[Alert]:
        """Most recently inserted alerts first."""
        rows = self._read(
            "recent_alerts",
            "SELECT ticker, ts, type, score, details FROM alerts ORDER BY id DESC LIMIT ?",
            (limit,),
        )
        return [
            Alert(
                ticker=r["ticker"] or "",
                ts=r["ts"] or "",
                type=r["type"],
                score=r["score"] or 0.0,
                details=r["details"] or "",
            )
            for r in rows
        ]

    def latest_features(self, ticker: str, limit: int = 50) -> list[FeatureRow]:
        """Most recently inserted feature rows for one ticker first."""
        rows = self._read(
            "latest_features",
            """SELECT ticker, ts, mid, spread, prob, volume FROM features
               WHERE ticker = ? ORDER BY id DESC LIMIT ?""",
            (ticker, limit),
        )
        return [
            FeatureRow(
                ticker=r["ticker"] or "",
                ts=r["ts"] or "",
                mid=r["mid"] or 0.0,
                spread=r["spread"] or 0.0,
                prob=r["prob"] or 0.0,
                volume=r["volume"] or 0.0,
            )
            for r in rows
        ]

    def list_markets(self, limit: int = 200, search: str = "") -> list[MarketSnapshot]:
        """Latest snapshot per ticker, newest update first.

        `search` is a case-insensitive substring matched against ticker,
        event ticker and category. Both sides are Unicode case-folded, so
        "é" finds "É".
        """
        sql = """SELECT ticker, event_ticker, status, category, yes_bid, yes_ask,
                        last_price, volume, updated_at
                 FROM markets"""
        params: list[Any] = []
        if search:
            pattern = _like_pattern(search)
            sql += """ WHERE fold(ticker) LIKE ? ESCAPE '\\'
                          OR fold(event_ticker) LIKE ? ESCAPE '\\'
                          OR fold(category) LIKE ? ESCAPE '\\'"""
            params.extend([pattern, pattern, pattern])
        sql += " ORDER BY updated_at DESC LIMIT ?"
        params.append(limit)

        return [self._row_to_snapshot(r) for r in self._read("list_markets", sql, params)]

    def list_events(self, limit: int = 100, search: str = "") -> list[EventSummary]:
        """Markets grouped by (event_ticker, category), most recently updated first."""
        sql = """SELECT event_ticker, category, COUNT(*) AS market_count,
                        COALESCE(SUM(volume), 0) AS total_volume,
                        MAX(updated_at) AS updated_at
                 FROM markets
                 WHERE event_ticker IS NOT NULL AND event_ticker != ''"""
        params: list[Any] = []
        if search:
            pattern = _like_pattern(search)
            sql += """ AND (fold(event_ticker) LIKE ? ESCAPE '\\'
                            OR fold(category) LIKE ? ESCAPE '\\')"""
            params.extend([pattern, pattern])
        sql += " GROUP BY event_ticker, category ORDER BY MAX(updated_at) DESC LIMIT ?"
        params.append(limit)

        return [
            EventSummary(
                event_ticker=r["event_ticker"],
                category=r["category"] or "",
                market_count=r["market_count"],
                total_volume=r["total_volume"] or 0.0,
                updated_at=r["updated_at"] or "",
            )
            for r in self._read("list_events", sql, params)
        ]

    def _row_to_snapshot(self, row: sqlite3.Row) -> MarketSnapshot:
        return MarketSnapshot(
            ticker=row["ticker"],
            event_ticker=row["event_ticker"] or "",
            status=row["status"] or "",
            category=row["category"] or "",
            yes_bid=row["yes_bid"] or 0.0,
            yes_ask=row["yes_ask"] or 0.0,
            last_price=row["last_price"] or 0.0,
            volume=row["volume"] or 0.0,
            updated_at=row["updated_at"] or "",
        )
