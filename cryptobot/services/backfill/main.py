"""One-shot daily candle backfill into the candle store."""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Mapping, Sequence

from cryptobot.clients.retry import Sleep
from cryptobot.core.config import get_settings
from cryptobot.core.interfaces import PriceSeriesSource
from cryptobot.core.logging import configure_logging
from cryptobot.core.store import CandleStore
from cryptobot.core.symbols import Symbol
from cryptobot.core.types import Exchange
from cryptobot.services.container import build_container

logger = logging.getLogger(__name__)

_INTERVAL = "1d"


@dataclass(slots=True)
class BackfillSummary:
    stored: dict[str, int] = field(default_factory=dict)
    failed: dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.failed


async def backfill(
    sources: Mapping[Exchange, PriceSeriesSource],
    store: CandleStore,
    bases: Sequence[str],
    default_quotes: Mapping[Exchange, str],
    exchanges: Sequence[Exchange] = (Exchange.BINANCE,),
    days: int = 365,
    pair_delay_s: float = 1.0,
    sleep: Sleep = asyncio.sleep,
) -> BackfillSummary:
    """Fetch `days` daily candles for every base on every exchange; failures are recorded, not raised."""

    summary = BackfillSummary()
    first = True
    for exchange in exchanges:
        source = sources.get(exchange)
        for base in bases:
            if not first and pair_delay_s:
                await sleep(pair_delay_s)
            first = False

            symbol = Symbol.of(exchange, base, default_quotes[exchange])
            key = f"{exchange.value}:{symbol.pair}"
            try:
                if source is None:
                    raise LookupError(f"no source for {exchange.value}")
                samples = await source.get_candles(symbol.pair, _INTERVAL, days)
                stored = store.upsert(exchange, symbol.pair, _INTERVAL, samples)
            except asyncio.CancelledError:
                raise
            except Exception as exc:  # noqa: BLE001
                summary.failed[key] = str(exc)
                logger.error("backfill_pair_failed", extra={"pair": key, "error": str(exc)})
                continue

            summary.stored[key] = stored
            logger.info("backfill_pair_stored", extra={"pair": key, "candles": stored})

    return summary


class _NullSink:
    async def send_text(self, chat_id: str, text: str) -> None:
        return None

    async def send_image(self, chat_id: str, url: str, caption: str = "") -> None:
        return None


async def _run() -> int:
    settings = get_settings()
    configure_logging(settings.LOG_LEVEL, service="backfill")

    # backfill never sends messages
    container = build_container(settings, sink=_NullSink())
    try:
        summary = await backfill(
            sources=container.sources,
            store=container.candles,
            bases=settings.supported_bases(),
            default_quotes=settings.default_quotes(),
            exchanges=settings.backfill_exchanges(),
            days=settings.BACKFILL_DAYS,
            pair_delay_s=settings.BACKFILL_SLEEP_S,
        )
    finally:
        await container.aclose()

    logger.info(
        "backfill_completed",
        extra={"stored": summary.stored, "failed": sorted(summary.failed)},
    )
    return 0 if summary.ok else 1


def main() -> int:
    """Run the backfill; exit code 1 when any pair failed."""

    return asyncio.run(_run())


if __name__ == "__main__":
    raise SystemExit(main())
