"""Per-command job handlers: fetch series, compute, render, deliver.

Handlers raise on missing or insufficient upstream data; the dispatcher turns that into a failed
job and an error reply.
"""

import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Mapping

from cryptobot.core.charts import ChartURLBuilder
from cryptobot.core.config import Settings
from cryptobot.core.errors import InsufficientData, UpstreamFetchFailure
from cryptobot.core.formatting import indicator_message, price_message
from cryptobot.core.indicators import latest_signal, stoch_rsi
from cryptobot.core.interfaces import MarketDataSource, NotificationSink
from cryptobot.core.store import PriceHistoryStore
from cryptobot.core.symbols import Symbol
from cryptobot.core.types import Command, Exchange, Job

logger = logging.getLogger(__name__)

JobHandler = Callable[[Job], Awaitable[None]]

_KNOWN_QUOTES = ("FDUSD", "USDT", "USDC", "BUSD", "TUSD", "BTC", "ETH", "BNB", "EUR", "TRY", "IDR")


@dataclass(frozen=True, slots=True)
class IndicatorParams:
    rsi_period: int = 14
    stoch_period: int = 14
    smooth_k: int = 3
    smooth_d: int = 3

    @classmethod
    def from_settings(cls, settings: Settings) -> "IndicatorParams":
        return cls(
            rsi_period=settings.RSI_PERIOD,
            stoch_period=settings.STOCH_PERIOD,
            smooth_k=settings.STOCH_SMOOTH_K,
            smooth_d=settings.STOCH_SMOOTH_D,
        )

    @property
    def min_closes(self) -> int:
        return self.rsi_period + self.stoch_period + self.smooth_k + self.smooth_d - 2


def job_symbol(job: Job, default_quotes: Mapping[Exchange, str]) -> Symbol:
    """Recover base/quote from the stored exchange-native pair."""

    if job.exchange is Exchange.INDODAX and "_" in job.pair:
        base, quote = job.pair.split("_", 1)
        return Symbol.of(job.exchange, base, quote)

    default_quote = default_quotes.get(job.exchange, "")
    for quote in (default_quote, *_KNOWN_QUOTES):
        if quote and job.pair.endswith(quote) and len(job.pair) > len(quote):
            return Symbol.of(job.exchange, job.pair[: -len(quote)], quote)
    return Symbol(exchange=job.exchange, base=job.pair, quote="")


class CommandHandlers:
    """Price, Chart, Candlestick and Indicator handlers sharing their collaborators."""

    CHART_INTERVAL = "5m"
    CHART_LIMIT = 12
    CANDLESTICK_INTERVAL = "1d"
    CANDLESTICK_LIMIT = 30
    INDICATOR_INTERVALS = {Exchange.BINANCE: "4h", Exchange.INDODAX: "1d"}
    INDICATOR_LIMIT = 100

    def __init__(
        self,
        sources: Mapping[Exchange, MarketDataSource],
        sink: NotificationSink,
        charts: ChartURLBuilder,
        price_history: PriceHistoryStore | None = None,
        default_quotes: Mapping[Exchange, str] | None = None,
        indicator_params: IndicatorParams | None = None,
    ) -> None:
        self.sources = dict(sources)
        self.sink = sink
        self.charts = charts
        self.price_history = price_history
        self.default_quotes = dict(default_quotes or {Exchange.BINANCE: "USDT", Exchange.INDODAX: "IDR"})
        self.indicator_params = indicator_params or IndicatorParams()

    def as_mapping(self) -> dict[Command, JobHandler]:
        return {
            Command.PRICE: self.price,
            Command.CHART: self.chart,
            Command.CANDLESTICK: self.candlestick,
            Command.INDICATOR: self.indicator,
        }

    def _source(self, job: Job) -> MarketDataSource:
        source = self.sources.get(job.exchange)
        if source is None:
            raise UpstreamFetchFailure(job.exchange.value, f"No market data source for {job.exchange.value}")
        return source

    async def price(self, job: Job) -> None:
        symbol = job_symbol(job, self.default_quotes)
        ticker = await self._source(job).get_ticker(job.pair)
        await self.sink.send_text(job.chat_id, price_message(symbol, ticker))

        if self.price_history is not None:
            self.price_history.record(job.exchange, job.pair, ticker.last_price, ticker.high, ticker.low)

    async def chart(self, job: Job) -> None:
        symbol = job_symbol(job, self.default_quotes)
        samples = await self._source(job).get_candles(job.pair, self.CHART_INTERVAL, self.CHART_LIMIT)
        url = self.charts.line(samples, job.pair, self.CHART_INTERVAL, symbol.quote)
        if not url:
            raise UpstreamFetchFailure("chart", f"Failed to fetch chart data for {job.pair}")

        caption = f"📈 *{job.pair} Line Chart*\n5-minute intervals (Last hour)"
        await self.sink.send_image(job.chat_id, url, caption)

    async def candlestick(self, job: Job) -> None:
        symbol = job_symbol(job, self.default_quotes)
        samples = await self._source(job).get_candles(
            job.pair, self.CANDLESTICK_INTERVAL, self.CANDLESTICK_LIMIT
        )
        url = self.charts.candlestick(samples, job.pair, symbol.quote)
        if not url:
            raise UpstreamFetchFailure("chart", f"Failed to fetch candlestick data for {job.pair}")

        caption = f"🕯️ *{job.pair} Candlestick Chart*\nDaily candles (Last {len(samples)} days)"
        await self.sink.send_image(job.chat_id, url, caption)

    async def indicator(self, job: Job) -> None:
        symbol = job_symbol(job, self.default_quotes)
        params = self.indicator_params
        interval = self.INDICATOR_INTERVALS.get(job.exchange, "1d")
        samples = await self._source(job).get_candles(job.pair, interval, self.INDICATOR_LIMIT)
        closes = [sample.close for sample in samples]

        if len(closes) < params.min_closes:
            raise InsufficientData(
                "indicator",
                f"Not enough data for StochRSI on {job.pair}: {len(closes)} of {params.min_closes} candles",
                required=params.min_closes,
                available=len(closes),
            )

        result = stoch_rsi(closes, params.rsi_period, params.stoch_period, params.smooth_k, params.smooth_d)
        signal = latest_signal(result)
        if signal is None:
            raise InsufficientData(
                "indicator",
                f"Insufficient data for StochRSI calculation on {job.pair}",
                required=params.min_closes,
                available=len(closes),
            )

        await self.sink.send_text(job.chat_id, indicator_message(symbol, signal))
        logger.info(
            "indicator_computed",
            extra={"job_id": job.id, "pair": job.pair, "condition": signal.condition.value},
        )

        url = self.charts.stoch_rsi(result.k, result.d, job.pair)
        if url:
            await self.sink.send_image(job.chat_id, url, f"StochRSI Chart for {job.pair}")
