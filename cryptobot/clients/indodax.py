"""Indodax public REST client; pairs use the BASE_QUOTE form, e.g. BTC_IDR."""

from typing import Any

from cryptobot.clients.http import JsonHttpClient
from cryptobot.core.errors import UnsupportedInterval, UpstreamFetchFailure
from cryptobot.core.time_utils import to_epoch_ms
from cryptobot.core.types import PriceSample, Ticker

_SOURCE = "indodax"
_DAILY_INTERVALS = frozenset({"1d", "d", "1day"})


def _api_pair(symbol: str) -> str:
    return symbol.lower()


def _field(row: dict[str, Any], *names: str) -> Any:
    for name in names:
        if name in row:
            return row[name]
    raise KeyError(names[0])


def parse_ohlc_row(row: Any) -> PriceSample:
    """Rows carry Time (seconds) plus Open/High/Low/Close/Volume, in either letter case."""

    try:
        return PriceSample(
            timestamp=to_epoch_ms(_field(row, "Time", "time")),
            open=float(_field(row, "Open", "open")),
            high=float(_field(row, "High", "high")),
            low=float(_field(row, "Low", "low")),
            close=float(_field(row, "Close", "close")),
            volume=float(_field(row, "Volume", "volume")),
        )
    except (KeyError, TypeError, ValueError) as exc:
        raise UpstreamFetchFailure(_SOURCE, f"malformed OHLC row: {row!r}") from exc


def parse_ticker(symbol: str, payload: Any) -> Ticker:
    try:
        base = symbol.split("_", 1)[0].lower()
        return Ticker(
            symbol=symbol.upper(),
            last_price=float(payload["last"]),
            high=float(payload["high"]),
            low=float(payload["low"]),
            volume=float(payload.get(f"vol_{base}", 0.0)),
        )
    except (KeyError, TypeError, ValueError, AttributeError) as exc:
        raise UpstreamFetchFailure(_SOURCE, f"malformed ticker payload for {symbol}") from exc


class IndodaxClient:
    """Market data source for Indodax; only daily candles are available."""

    def __init__(self, http: JsonHttpClient) -> None:
        self.http = http

    async def get_ticker(self, symbol: str) -> Ticker:
        payload = await self.http.get_json(f"/ticker/{_api_pair(symbol).replace('_', '')}")
        ticker = payload.get("ticker") if isinstance(payload, dict) else None
        if not isinstance(ticker, dict):
            raise UpstreamFetchFailure(_SOURCE, f"Failed to fetch price data for {symbol}")
        return parse_ticker(symbol, ticker)

    async def get_all_tickers(self) -> list[Ticker]:
        payload = await self.http.get_json("/tickers")
        tickers = payload.get("tickers") if isinstance(payload, dict) else None
        if not isinstance(tickers, dict):
            raise UpstreamFetchFailure(_SOURCE, "Failed to fetch tickers")
        return [parse_ticker(name.upper(), item) for name, item in tickers.items()]

    async def get_candles(self, symbol: str, interval: str, limit: int) -> list[PriceSample]:
        if interval.lower() not in _DAILY_INTERVALS:
            raise UnsupportedInterval(_SOURCE, f"Indodax only provides daily candles, not {interval}")

        payload = await self.http.get_json(
            f"/v2/ohcl/{_api_pair(symbol)}", {"period": "D"}, use_cache=False
        )
        if not isinstance(payload, list) or not payload:
            raise UpstreamFetchFailure(_SOURCE, f"Failed to fetch daily candles for {symbol}")

        samples = sorted((parse_ohlc_row(row) for row in payload), key=lambda sample: sample.timestamp)
        return samples[-limit:] if limit > 0 else []

    async def get_recent_closes(self, symbol: str, count: int) -> list[float]:
        return [sample.close for sample in await self.get_candles(symbol, "1d", count)]
