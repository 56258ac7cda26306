"""Market sentiment scan over Binance 24h tickers, persisted and pushed to the notification chat."""

import asyncio
import logging
from dataclasses import dataclass

from cryptobot.core.config import get_settings
from cryptobot.core.errors import BotError, ConfigurationError
from cryptobot.core.formatting import sentiment_alert_message
from cryptobot.core.indicators import sentiment_level
from cryptobot.core.interfaces import NotificationSink, TickerFeed
from cryptobot.core.logging import configure_logging
from cryptobot.core.store import SentimentReportStore
from cryptobot.core.types import SentimentLevel
from cryptobot.services.container import build_container

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class SentimentReport:
    moon: SentimentLevel
    crash: SentimentLevel
    scanned: int
    alerted: bool


async def run_sentiment_scan(
    feed: TickerFeed,
    reports: SentimentReportStore,
    sink: NotificationSink,
    chat_id: str,
    quote: str = "USDT",
    threshold: float = 5.0,
    min_count: int = 10,
) -> SentimentReport:
    """Count movers above +threshold and below -threshold among `quote` pairs."""

    quote = quote.upper()
    moon_count = 0
    crash_count = 0
    scanned = 0
    for ticker in await feed.get_all_tickers():
        if not ticker.symbol.endswith(quote) or ticker.change_percent is None:
            continue
        scanned += 1
        if ticker.change_percent >= threshold:
            moon_count += 1
        elif ticker.change_percent <= -threshold:
            crash_count += 1

    moon = sentiment_level(moon_count, is_moon=True)
    crash = sentiment_level(crash_count, is_moon=False)
    reports.save(moon, crash)
    logger.info(
        "sentiment_scanned",
        extra={"scanned": scanned, "moon": moon.full_name, "crash": crash.full_name},
    )

    alerted = False
    if moon_count >= min_count or crash_count >= min_count:
        if chat_id:
            await sink.send_text(chat_id, sentiment_alert_message(moon, crash, threshold, min_count))
            alerted = True
        else:
            logger.warning("sentiment_alert_skipped", extra={"reason": "NOTIFY_CHAT_ID is not configured"})

    return SentimentReport(moon=moon, crash=crash, scanned=scanned, alerted=alerted)


async def _run() -> int:
    settings = get_settings()
    configure_logging(settings.LOG_LEVEL, service="sentiment")

    try:
        container = build_container(settings)
    except ConfigurationError as exc:
        logger.error("sentiment_configuration_error", extra={"error": exc.message})
        return 1

    try:
        await run_sentiment_scan(
            feed=container.binance,
            reports=container.sentiment_reports,
            sink=container.sink,
            chat_id=settings.NOTIFY_CHAT_ID,
            quote=settings.SENTIMENT_QUOTE,
            threshold=settings.SENTIMENT_CHANGE_THRESHOLD,
            min_count=settings.SENTIMENT_ALERT_MIN_COUNT,
        )
    except BotError as exc:
        logger.error("sentiment_scan_failed", extra={"source": exc.source, "error": exc.message})
        return 1
    finally:
        await container.aclose()
    return 0


def main() -> int:
    """Run a single sentiment scan, for cron."""

    return asyncio.run(_run())


if __name__ == "__main__":
    raise SystemExit(main())
