"""SQLite handle and schema shared by the job queue and the time-series stores.

Connections are short-lived and opened in autocommit mode; callers that need a multi-statement
transaction issue BEGIN themselves.
"""

import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

_BUSY_TIMEOUT_S = 30.0

SCHEMA = """
CREATE TABLE IF NOT EXISTS bot_job_queue (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    chat_id TEXT NOT NULL,
    command TEXT NOT NULL,
    pair TEXT NOT NULL,
    exchange TEXT NOT NULL DEFAULT 'binance',
    status TEXT NOT NULL DEFAULT 'pending',
    error TEXT,
    created_at INTEGER NOT NULL,
    updated_at INTEGER NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_job_status_created ON bot_job_queue(status, created_at);
CREATE INDEX IF NOT EXISTS idx_job_chat_status ON bot_job_queue(chat_id, status);

CREATE TABLE IF NOT EXISTS candles (
    exchange TEXT NOT NULL,
    pair TEXT NOT NULL,
    interval TEXT NOT NULL,
    open_time_ms INTEGER NOT NULL,
    open REAL NOT NULL,
    high REAL NOT NULL,
    low REAL NOT NULL,
    close REAL NOT NULL,
    volume REAL NOT NULL,
    PRIMARY KEY (exchange, pair, interval, open_time_ms)
);

CREATE TABLE IF NOT EXISTS price_snapshots (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    exchange TEXT NOT NULL,
    pair TEXT NOT NULL,
    price REAL NOT NULL,
    high REAL NOT NULL,
    low REAL NOT NULL,
    recorded_at INTEGER NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_price_pair_time ON price_snapshots(exchange, pair, recorded_at);

CREATE TABLE IF NOT EXISTS sentiment_reports (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    moon_count INTEGER NOT NULL,
    moon_level TEXT NOT NULL,
    crash_count INTEGER NOT NULL,
    crash_level TEXT NOT NULL,
    created_at INTEGER NOT NULL
);
"""


class Database:
    """File-backed SQLite database; construct once at startup and pass to each store."""

    def __init__(self, path: str) -> None:
        self.path = Path(path)

    def init_schema(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with self.connection() as conn:
            conn.executescript(SCHEMA)

    @contextmanager
    def connection(self) -> Iterator[sqlite3.Connection]:
        conn = sqlite3.connect(
            self.path,
            timeout=_BUSY_TIMEOUT_S,
            isolation_level=None,
            check_same_thread=False,
        )
        conn.row_factory = sqlite3.Row
        try:
            yield conn
        finally:
            conn.close()

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """Yield a connection holding the database write lock until commit."""

        with self.connection() as conn:
            conn.execute("BEGIN IMMEDIATE")
            try:
                yield conn
            except BaseException:
                conn.execute("ROLLBACK")
                raise
            conn.execute("COMMIT")
