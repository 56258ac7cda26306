"""SQLite-backed candle, price snapshot and sentiment report stores."""

import asyncio

from cryptobot.core.db import Database
from cryptobot.core.indicators import sentiment_level
from cryptobot.core.store import CandleStore, PriceHistoryStore, SentimentReportStore, StoredSeriesSource
from cryptobot.core.types import Exchange, PriceSample


def _sample(day: int, close: float) -> PriceSample:
    return PriceSample(
        timestamp=1_700_000_000_000 + day * 86_400_000,
        open=close,
        high=close + 1,
        low=close - 1,
        close=close,
        volume=1.0,
    )


def test_candle_upsert_overwrites_same_open_time(database: Database) -> None:
    store = CandleStore(database)
    store.upsert(Exchange.BINANCE, "BTCUSDT", "1d", [_sample(0, 10.0), _sample(1, 11.0)])
    store.upsert(Exchange.BINANCE, "BTCUSDT", "1d", [_sample(1, 12.0)])

    closes = [sample.close for sample in store.load(Exchange.BINANCE, "BTCUSDT", "1d", 10)]

    assert closes == [10.0, 12.0]


def test_candle_load_returns_newest_window_ascending(database: Database) -> None:
    store = CandleStore(database)
    store.upsert(Exchange.INDODAX, "BTC_IDR", "1d", [_sample(day, float(day)) for day in (3, 1, 4, 0, 2)])

    samples = store.load(Exchange.INDODAX, "BTC_IDR", "1d", 3)

    assert [sample.close for sample in samples] == [2.0, 3.0, 4.0]


def test_candles_are_namespaced_by_exchange_and_pair(database: Database) -> None:
    store = CandleStore(database)
    store.upsert(Exchange.BINANCE, "BTCUSDT", "1d", [_sample(0, 1.0)])
    store.upsert(Exchange.INDODAX, "BTC_IDR", "1d", [_sample(0, 2.0)])

    assert store.load(Exchange.BINANCE, "BTC_IDR", "1d", 5) == []
    assert store.load(Exchange.INDODAX, "BTC_IDR", "1d", 5)[0].close == 2.0
    assert store.load(Exchange.BINANCE, "BTCUSDT'; DROP TABLE candles;--", "1d", 5) == []
    assert store.load(Exchange.BINANCE, "BTCUSDT", "1d", 5)[0].close == 1.0


def test_stored_series_source_reads_closes(database: Database) -> None:
    store = CandleStore(database)
    store.upsert(Exchange.INDODAX, "ETH_IDR", "1d", [_sample(day, 100.0 + day) for day in range(5)])
    source = StoredSeriesSource(store, Exchange.INDODAX)

    closes = asyncio.run(source.get_recent_closes("ETH_IDR", 2))

    assert closes == [103.0, 104.0]


def test_price_history_newest_first(database: Database) -> None:
    history = PriceHistoryStore(database)
    history.record(Exchange.BINANCE, "BTCUSDT", 1.0, 1.0, 1.0)
    history.record(Exchange.BINANCE, "BTCUSDT", 2.0, 2.0, 2.0)

    prices = [price for _, price in history.latest(Exchange.BINANCE, "BTCUSDT", limit=5)]

    assert prices == [2.0, 1.0]


def test_sentiment_report_round_trip(database: Database) -> None:
    reports = SentimentReportStore(database)
    assert reports.latest() is None

    reports.save(sentiment_level(45, True), sentiment_level(0, False))

    latest = reports.latest()
    assert latest is not None
    assert latest["moon_count"] == 45
    assert latest["moon_level"] == "🌟 Super Moon 1"
    assert latest["crash_level"] == "⚪ Neutral Market"
