"""Shared fakes for the notification sink and market data sources."""

from pathlib import Path

import pytest

from cryptobot.core.db import Database
from cryptobot.core.types import PriceSample, Ticker


class RecordingSink:
    def __init__(self, fail: bool = False) -> None:
        self.texts: list[tuple[str, str]] = []
        self.images: list[tuple[str, str, str]] = []
        self.fail = fail

    async def send_text(self, chat_id: str, text: str) -> None:
        if self.fail:
            raise RuntimeError("telegram unavailable")
        self.texts.append((chat_id, text))

    async def send_image(self, chat_id: str, url: str, caption: str = "") -> None:
        if self.fail:
            raise RuntimeError("telegram unavailable")
        self.images.append((chat_id, url, caption))


class StaticSource:
    """Market data source answering from fixed closes; raises for pairs listed in `broken`."""

    def __init__(self, closes: dict[str, list[float]] | None = None, broken: tuple[str, ...] = ()) -> None:
        self.closes = closes or {}
        self.broken = broken
        self.calls: list[tuple[str, str, int]] = []

    def _samples(self, symbol: str, limit: int) -> list[PriceSample]:
        if symbol in self.broken:
            raise RuntimeError(f"upstream down for {symbol}")
        closes = self.closes.get(symbol, [])[-limit:]
        return [
            PriceSample(
                timestamp=1_700_000_000_000 + idx * 86_400_000,
                open=close,
                high=close * 1.01,
                low=close * 0.99,
                close=close,
                volume=10.0,
            )
            for idx, close in enumerate(closes)
        ]

    async def get_ticker(self, symbol: str) -> Ticker:
        if symbol in self.broken:
            raise RuntimeError(f"upstream down for {symbol}")
        last = self.closes.get(symbol, [100.0])[-1]
        return Ticker(symbol=symbol, last_price=last, high=last * 1.1, low=last * 0.9, volume=5.0, change_percent=1.5)

    async def get_candles(self, symbol: str, interval: str, limit: int) -> list[PriceSample]:
        self.calls.append((symbol, interval, limit))
        return self._samples(symbol, limit)

    async def get_recent_closes(self, symbol: str, count: int) -> list[float]:
        return [sample.close for sample in self._samples(symbol, count)]


def zigzag(count: int, start: float = 100.0) -> list[float]:
    return [start + (idx % 7) * 1.5 - (idx % 3) * 2.0 + idx * 0.1 for idx in range(count)]


@pytest.fixture
def database(tmp_path: Path) -> Database:
    db = Database(str(tmp_path / "bot.db"))
    db.init_schema()
    return db


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()
