"""Periodic StochRSI check over stored daily closes with one grouped alert per run."""

import asyncio
import logging
from typing import Sequence

from cryptobot.clients.retry import Sleep
from cryptobot.clients.telegram import TelegramSink
from cryptobot.core.config import get_settings
from cryptobot.core.db import Database
from cryptobot.core.errors import ConfigurationError
from cryptobot.core.formatting import stoch_alert_message
from cryptobot.core.indicators import latest_signal, stoch_rsi
from cryptobot.core.interfaces import NotificationSink, PriceSeriesSource
from cryptobot.core.logging import configure_logging
from cryptobot.core.store import CandleStore, StoredSeriesSource
from cryptobot.core.symbols import Symbol
from cryptobot.core.types import Signal, SignalCondition
from cryptobot.services.worker.handlers import IndicatorParams

logger = logging.getLogger(__name__)


async def run_stoch_alert(
    source: PriceSeriesSource,
    pairs: Sequence[str],
    sink: NotificationSink,
    chat_id: str,
    params: IndicatorParams = IndicatorParams(),
    min_closes: int = 0,
    lookback: int = 100,
    pair_delay_s: float = 0.5,
    sleep: Sleep = asyncio.sleep,
) -> list[tuple[str, Signal]]:
    """Collect non-Neutral signals for `pairs` and send them as one message; returns the signals."""

    required = max(min_closes, params.min_closes)
    signals: list[tuple[str, Signal]] = []
    for index, pair in enumerate(pairs):
        if index > 0 and pair_delay_s:
            await sleep(pair_delay_s)

        try:
            closes = await source.get_recent_closes(pair, lookback)
            if len(closes) < required:
                logger.info(
                    "stoch_alert_insufficient_data",
                    extra={"pair": pair, "available": len(closes), "required": required},
                )
                continue

            result = stoch_rsi(closes, params.rsi_period, params.stoch_period, params.smooth_k, params.smooth_d)
            signal = latest_signal(result)
            if signal is None:
                logger.info("stoch_alert_no_signal", extra={"pair": pair})
                continue
        except asyncio.CancelledError:
            raise
        except Exception as exc:  # noqa: BLE001
            logger.error("stoch_alert_pair_failed", extra={"pair": pair, "error": str(exc)})
            continue

        if signal.condition is not SignalCondition.NEUTRAL:
            logger.info("stoch_alert_signal", extra={"pair": pair, "condition": signal.condition.value})
            signals.append((pair, signal))

    if signals:
        await sink.send_text(chat_id, stoch_alert_message(signals))
    logger.info("stoch_alert_completed", extra={"checked": len(pairs), "signals": len(signals)})
    return signals


async def _run() -> int:
    settings = get_settings()
    configure_logging(settings.LOG_LEVEL, service="stochrsi_alert")

    if not settings.NOTIFY_CHAT_ID:
        logger.error("stoch_alert_configuration_error", extra={"error": "NOTIFY_CHAT_ID is not configured"})
        return 1
    try:
        sink = TelegramSink(
            settings.BOT_TOKEN,
            attempts=settings.HTTP_MAX_ATTEMPTS,
            backoff_s=settings.HTTP_BACKOFF_S,
        )
    except ConfigurationError as exc:
        logger.error("stoch_alert_configuration_error", extra={"error": exc.message})
        return 1

    database = Database(settings.DATABASE_PATH)
    database.init_schema()
    exchange = settings.alert_exchange()
    quote = settings.default_quotes()[exchange]
    pairs = [Symbol.of(exchange, base, quote).pair for base in settings.alert_bases()]

    try:
        await run_stoch_alert(
            source=StoredSeriesSource(CandleStore(database), exchange, "1d"),
            pairs=pairs,
            sink=sink,
            chat_id=settings.NOTIFY_CHAT_ID,
            params=IndicatorParams.from_settings(settings),
            min_closes=settings.ALERT_MIN_CLOSES,
            lookback=settings.ALERT_LOOKBACK,
            pair_delay_s=settings.ALERT_PAIR_DELAY_S,
        )
    finally:
        await sink.close()
    return 0


def main() -> int:
    """Run one StochRSI check, for cron."""

    return asyncio.run(_run())


if __name__ == "__main__":
    raise SystemExit(main())
