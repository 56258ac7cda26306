"""Structural interfaces for the collaborators the dispatcher and services depend on."""

from typing import Protocol, Sequence

from cryptobot.core.types import PriceSample, Ticker


class PriceSeriesSource(Protocol):
    async def get_recent_closes(self, symbol: str, count: int) -> list[float]:
        """Closing prices ordered oldest to newest."""

    async def get_candles(self, symbol: str, interval: str, limit: int) -> list[PriceSample]:
        """Candles ordered oldest to newest, timestamps in epoch milliseconds."""


class MarketDataSource(PriceSeriesSource, Protocol):
    async def get_ticker(self, symbol: str) -> Ticker:
        """Last price and 24h statistics."""


class TickerFeed(Protocol):
    async def get_all_tickers(self) -> Sequence[Ticker]:
        """24h statistics for every listed pair."""


class NotificationSink(Protocol):
    async def send_text(self, chat_id: str, text: str) -> None:
        ...

    async def send_image(self, chat_id: str, url: str, caption: str = "") -> None:
        ...
