"""Time-series stores keyed by (exchange, pair): candles, price snapshots and sentiment reports."""

from typing import Iterable

from cryptobot.core.db import Database
from cryptobot.core.time_utils import utc_now_ms
from cryptobot.core.types import Exchange, PriceSample, SentimentLevel


class CandleStore:
    """OHLCV candles with upsert semantics on (exchange, pair, interval, open_time_ms)."""

    def __init__(self, database: Database) -> None:
        self._db = database

    def upsert(self, exchange: Exchange, pair: str, interval: str, samples: Iterable[PriceSample]) -> int:
        rows = [
            (exchange.value, pair, interval, s.timestamp, s.open, s.high, s.low, s.close, s.volume)
            for s in samples
        ]
        if not rows:
            return 0

        with self._db.connection() as conn:
            conn.executemany(
                """
                INSERT INTO candles(exchange, pair, interval, open_time_ms, open, high, low, close, volume)
                VALUES(?,?,?,?,?,?,?,?,?)
                ON CONFLICT(exchange, pair, interval, open_time_ms) DO UPDATE SET
                    open=excluded.open,
                    high=excluded.high,
                    low=excluded.low,
                    close=excluded.close,
                    volume=excluded.volume
                """,
                rows,
            )
        return len(rows)

    def load(self, exchange: Exchange, pair: str, interval: str, limit: int) -> list[PriceSample]:
        """Return the newest `limit` candles in ascending time order."""

        with self._db.connection() as conn:
            rows = conn.execute(
                """
                SELECT open_time_ms, open, high, low, close, volume FROM candles
                WHERE exchange=? AND pair=? AND interval=?
                ORDER BY open_time_ms DESC LIMIT ?
                """,
                (exchange.value, pair, interval, limit),
            ).fetchall()

        return [
            PriceSample(
                timestamp=int(row["open_time_ms"]),
                open=float(row["open"]),
                high=float(row["high"]),
                low=float(row["low"]),
                close=float(row["close"]),
                volume=float(row["volume"]),
            )
            for row in reversed(rows)
        ]


class PriceHistoryStore:
    """Append-only last-price snapshots recorded by the price command."""

    def __init__(self, database: Database) -> None:
        self._db = database

    def record(self, exchange: Exchange, pair: str, price: float, high: float, low: float) -> None:
        with self._db.connection() as conn:
            conn.execute(
                "INSERT INTO price_snapshots(exchange, pair, price, high, low, recorded_at) VALUES(?,?,?,?,?,?)",
                (exchange.value, pair, price, high, low, utc_now_ms()),
            )

    def latest(self, exchange: Exchange, pair: str, limit: int = 1) -> list[tuple[int, float]]:
        """Return (recorded_at_ms, price) pairs, newest first."""

        with self._db.connection() as conn:
            rows = conn.execute(
                """
                SELECT recorded_at, price FROM price_snapshots
                WHERE exchange=? AND pair=? ORDER BY recorded_at DESC, id DESC LIMIT ?
                """,
                (exchange.value, pair, limit),
            ).fetchall()
        return [(int(row["recorded_at"]), float(row["price"])) for row in rows]


class SentimentReportStore:
    def __init__(self, database: Database) -> None:
        self._db = database

    def save(self, moon: SentimentLevel, crash: SentimentLevel) -> None:
        with self._db.connection() as conn:
            conn.execute(
                """
                INSERT INTO sentiment_reports(moon_count, moon_level, crash_count, crash_level, created_at)
                VALUES(?,?,?,?,?)
                """,
                (moon.count, moon.full_name, crash.count, crash.full_name, utc_now_ms()),
            )

    def latest(self) -> dict[str, object] | None:
        with self._db.connection() as conn:
            row = conn.execute(
                "SELECT moon_count, moon_level, crash_count, crash_level, created_at "
                "FROM sentiment_reports ORDER BY id DESC LIMIT 1"
            ).fetchone()
        return dict(row) if row is not None else None


class StoredSeriesSource:
    """Price series backed by stored candles of one exchange and interval."""

    def __init__(self, store: CandleStore, exchange: Exchange, interval: str = "1d") -> None:
        self._store = store
        self.exchange = exchange
        self.interval = interval

    async def get_recent_closes(self, symbol: str, count: int) -> list[float]:
        return [sample.close for sample in self._store.load(self.exchange, symbol, self.interval, count)]

    async def get_candles(self, symbol: str, interval: str, limit: int) -> list[PriceSample]:
        return self._store.load(self.exchange, symbol, interval, limit)
