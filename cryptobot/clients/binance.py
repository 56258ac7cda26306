"""Binance spot REST client (public market-data endpoints only)."""

from typing import Any

from cryptobot.clients.http import JsonHttpClient
from cryptobot.core.errors import UpstreamFetchFailure
from cryptobot.core.time_utils import to_epoch_ms
from cryptobot.core.types import PriceSample, Ticker

_SOURCE = "binance"
_MAX_KLINE_LIMIT = 1000


def parse_kline(row: Any) -> PriceSample:
    """Kline row: [open_time, open, high, low, close, volume, close_time, ...]."""

    try:
        return PriceSample(
            timestamp=to_epoch_ms(row[0]),
            open=float(row[1]),
            high=float(row[2]),
            low=float(row[3]),
            close=float(row[4]),
            volume=float(row[5]),
        )
    except (IndexError, KeyError, TypeError, ValueError) as exc:
        raise UpstreamFetchFailure(_SOURCE, f"malformed kline row: {row!r}") from exc


def parse_ticker(payload: Any) -> Ticker:
    try:
        return Ticker(
            symbol=str(payload["symbol"]).upper(),
            last_price=float(payload["lastPrice"]),
            high=float(payload["highPrice"]),
            low=float(payload["lowPrice"]),
            volume=float(payload["volume"]),
            change_percent=float(payload["priceChangePercent"]),
        )
    except (KeyError, TypeError, ValueError) as exc:
        raise UpstreamFetchFailure(_SOURCE, f"malformed 24h ticker payload for {payload!r:.80}") from exc


class BinanceClient:
    """Market data source for Binance pairs such as BTCUSDT."""

    def __init__(self, http: JsonHttpClient) -> None:
        self.http = http

    async def get_ticker(self, symbol: str) -> Ticker:
        payload = await self.http.get_json("/api/v3/ticker/24hr", {"symbol": symbol.upper()})
        if not isinstance(payload, dict):
            raise UpstreamFetchFailure(_SOURCE, f"Failed to fetch price data for {symbol}")
        return parse_ticker(payload)

    async def get_all_tickers(self) -> list[Ticker]:
        payload = await self.http.get_json("/api/v3/ticker/24hr")
        if not isinstance(payload, list):
            raise UpstreamFetchFailure(_SOURCE, "Failed to fetch 24h tickers")
        return [parse_ticker(item) for item in payload]

    async def get_candles(
        self,
        symbol: str,
        interval: str,
        limit: int,
        start_time_ms: int | None = None,
        end_time_ms: int | None = None,
    ) -> list[PriceSample]:
        params: dict[str, Any] = {
            "symbol": symbol.upper(),
            "interval": interval,
            "limit": max(1, min(limit, _MAX_KLINE_LIMIT)),
        }
        if start_time_ms is not None:
            params["startTime"] = start_time_ms
        if end_time_ms is not None:
            params["endTime"] = end_time_ms

        payload = await self.http.get_json("/api/v3/klines", params)
        if not isinstance(payload, list):
            raise UpstreamFetchFailure(_SOURCE, f"Failed to fetch {interval} klines for {symbol}")

        samples = [parse_kline(row) for row in payload]
        samples.sort(key=lambda sample: sample.timestamp)
        return samples

    async def get_recent_closes(self, symbol: str, count: int, interval: str = "1d") -> list[float]:
        return [sample.close for sample in await self.get_candles(symbol, interval, count)]
