"""Construct-once wiring of the handles every service shares."""

from dataclasses import dataclass
from typing import Mapping

import httpx

from cryptobot.clients.binance import BinanceClient
from cryptobot.clients.http import JsonHttpClient, ResponseCache
from cryptobot.clients.indodax import IndodaxClient
from cryptobot.clients.telegram import TelegramSink
from cryptobot.core.charts import ChartURLBuilder
from cryptobot.core.commands import CommandRouter
from cryptobot.core.config import Settings
from cryptobot.core.db import Database
from cryptobot.core.interfaces import MarketDataSource, NotificationSink
from cryptobot.core.jobs import JobQueue
from cryptobot.core.store import CandleStore, PriceHistoryStore, SentimentReportStore
from cryptobot.core.types import Exchange
from cryptobot.services.worker.dispatcher import JobDispatcher
from cryptobot.services.worker.handlers import CommandHandlers, IndicatorParams


@dataclass(slots=True)
class Container:
    settings: Settings
    database: Database
    queue: JobQueue
    candles: CandleStore
    price_history: PriceHistoryStore
    sentiment_reports: SentimentReportStore
    http: httpx.AsyncClient
    binance: BinanceClient
    indodax: IndodaxClient
    sources: dict[Exchange, MarketDataSource]
    sink: NotificationSink
    charts: ChartURLBuilder
    router: CommandRouter
    dispatcher: JobDispatcher

    async def aclose(self) -> None:
        await self.http.aclose()
        close = getattr(self.sink, "close", None)
        if close is not None:
            await close()


def build_container(
    settings: Settings,
    *,
    sink: NotificationSink | None = None,
    sources: Mapping[Exchange, MarketDataSource] | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> Container:
    """Build every shared handle; raises ConfigurationError when BOT_TOKEN is missing and no sink is given."""

    database = Database(settings.DATABASE_PATH)
    database.init_schema()
    resolved_sink = sink if sink is not None else TelegramSink(
        settings.BOT_TOKEN,
        attempts=settings.HTTP_MAX_ATTEMPTS,
        backoff_s=settings.HTTP_BACKOFF_S,
    )

    http = httpx.AsyncClient(
        timeout=settings.HTTP_TIMEOUT_S,
        headers={"Accept": "application/json"},
        transport=transport,
    )
    binance = BinanceClient(
        JsonHttpClient(
            http,
            base_url=settings.BINANCE_REST_URL,
            source="binance",
            attempts=settings.HTTP_MAX_ATTEMPTS,
            backoff_s=settings.HTTP_BACKOFF_S,
            cache=ResponseCache(settings.HTTP_CACHE_TTL_S),
        )
    )
    indodax = IndodaxClient(
        JsonHttpClient(
            http,
            base_url=settings.INDODAX_REST_URL,
            source="indodax",
            attempts=settings.HTTP_MAX_ATTEMPTS,
            backoff_s=settings.HTTP_BACKOFF_S,
            cache=ResponseCache(settings.HTTP_CACHE_TTL_S),
        )
    )
    resolved_sources: dict[Exchange, MarketDataSource] = (
        dict(sources) if sources is not None else {Exchange.BINANCE: binance, Exchange.INDODAX: indodax}
    )

    queue = JobQueue(database)
    price_history = PriceHistoryStore(database)
    charts = ChartURLBuilder(settings.QUICKCHART_URL)
    default_quotes = settings.default_quotes()
    handlers = CommandHandlers(
        sources=resolved_sources,
        sink=resolved_sink,
        charts=charts,
        price_history=price_history,
        default_quotes=default_quotes,
        indicator_params=IndicatorParams.from_settings(settings),
    )

    return Container(
        settings=settings,
        database=database,
        queue=queue,
        candles=CandleStore(database),
        price_history=price_history,
        sentiment_reports=SentimentReportStore(database),
        http=http,
        binance=binance,
        indodax=indodax,
        sources=resolved_sources,
        sink=resolved_sink,
        charts=charts,
        router=CommandRouter(queue, default_quotes, settings.DEFAULT_BASE.strip().upper() or "BTC"),
        dispatcher=JobDispatcher(
            queue=queue,
            handlers=handlers.as_mapping(),
            sink=resolved_sink,
            batch_size=settings.WORKER_BATCH_SIZE,
            job_delay_s=settings.WORKER_JOB_DELAY_S,
        ),
    )
