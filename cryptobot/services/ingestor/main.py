"""Binance spot websocket ingestor that upserts closed klines into the candle store."""

import asyncio
import inspect
import json
import logging
from typing import Any

import websockets
from websockets.exceptions import ConnectionClosed

from cryptobot.core.config import Settings, get_settings
from cryptobot.core.db import Database
from cryptobot.core.logging import configure_logging
from cryptobot.core.scheduling import install_signal_handlers
from cryptobot.core.store import CandleStore
from cryptobot.core.symbols import Symbol
from cryptobot.core.types import Exchange, PriceSample

_RECONNECT_INITIAL_BACKOFF_S = 1.0
_RECONNECT_MAX_BACKOFF_S = 30.0
_WS_PING_INTERVAL_S = 30
_WS_RECV_TIMEOUT_S = 1.0


def subscribe_streams(pairs: tuple[str, ...], intervals: tuple[str, ...]) -> list[str]:
    return [f"{pair.lower()}@kline_{interval}" for pair in pairs for interval in intervals]


def _websocket_connect_kwargs() -> dict[str, Any]:
    kwargs: dict[str, Any] = {"ping_interval": _WS_PING_INTERVAL_S}
    if "proxy" in inspect.signature(websockets.connect).parameters:
        kwargs["proxy"] = None
    return kwargs


def parse_closed_kline(payload: dict[str, Any]) -> tuple[str, str, PriceSample] | None:
    """Return (pair, interval, sample) for a closed kline event, None for anything else."""

    if "data" in payload and isinstance(payload["data"], dict):
        payload = payload["data"]

    if payload.get("e") != "kline":
        return None

    kline = payload.get("k")
    if not isinstance(kline, dict) or not kline.get("x"):
        return None

    try:
        pair = str(payload.get("s") or kline["s"]).upper()
        interval = str(kline["i"]).lower()
        sample = PriceSample(
            timestamp=int(kline["t"]),
            open=float(kline["o"]),
            high=float(kline["h"]),
            low=float(kline["l"]),
            close=float(kline["c"]),
            volume=float(kline["v"]),
        )
    except (KeyError, TypeError, ValueError):
        return None

    return pair, interval, sample


async def _consume_stream(
    settings: Settings,
    store: CandleStore,
    streams: list[str],
    logger: logging.Logger,
    shutdown_event: asyncio.Event,
) -> None:
    async with websockets.connect(
        settings.BINANCE_WS_URL,
        **_websocket_connect_kwargs(),
    ) as ws:
        logger.info(
            "ingestor_connected",
            extra={"url": settings.BINANCE_WS_URL, "stream_count": len(streams)},
        )

        await ws.send(
            json.dumps(
                {"method": "SUBSCRIBE", "params": streams, "id": 1},
                ensure_ascii=True,
                separators=(",", ":"),
            )
        )
        logger.info("ingestor_subscribed", extra={"streams": streams})

        while not shutdown_event.is_set():
            try:
                raw_message = await asyncio.wait_for(ws.recv(), timeout=_WS_RECV_TIMEOUT_S)
            except asyncio.TimeoutError:
                continue
            except ConnectionClosed:
                raise

            try:
                payload = json.loads(raw_message)
            except json.JSONDecodeError:
                logger.warning("ingestor_invalid_json_message")
                continue

            if not isinstance(payload, dict):
                continue

            if payload.get("result") is None and payload.get("id") == 1:
                logger.info("ingestor_subscribe_ack")
                continue

            parsed = parse_closed_kline(payload)
            if parsed is None:
                continue

            pair, interval, sample = parsed
            store.upsert(Exchange.BINANCE, pair, interval, [sample])
            logger.debug(
                "ingestor_candle_stored",
                extra={"pair": pair, "interval": interval, "open_time_ms": sample.timestamp},
            )


async def _run() -> int:
    settings = get_settings()
    configure_logging(settings.LOG_LEVEL, service="ingestor")
    logger = logging.getLogger(__name__)
    shutdown_event = asyncio.Event()

    quote = settings.default_quotes()[Exchange.BINANCE]
    pairs = tuple(Symbol.of(Exchange.BINANCE, base, quote).pair for base in settings.supported_bases())
    intervals = settings.ingest_intervals()
    if not pairs:
        logger.error("ingestor_invalid_symbols")
        return 1
    if not intervals:
        logger.error("ingestor_invalid_intervals")
        return 1

    database = Database(settings.DATABASE_PATH)
    database.init_schema()
    store = CandleStore(database)
    streams = subscribe_streams(pairs, intervals)

    install_signal_handlers(shutdown_event, logger, "ingestor_shutdown_signal")
    logger.info(
        "ingestor_startup",
        extra={
            "exchange": Exchange.BINANCE.value,
            "pairs": list(pairs),
            "intervals": list(intervals),
            "url": settings.BINANCE_WS_URL,
        },
    )

    backoff_s = _RECONNECT_INITIAL_BACKOFF_S
    while not shutdown_event.is_set():
        try:
            await _consume_stream(
                settings=settings,
                store=store,
                streams=streams,
                logger=logger,
                shutdown_event=shutdown_event,
            )
            backoff_s = _RECONNECT_INITIAL_BACKOFF_S
        except asyncio.CancelledError:
            raise
        except Exception as exc:  # noqa: BLE001
            if shutdown_event.is_set():
                break
            logger.warning(
                "ingestor_connection_lost",
                extra={"error": str(exc), "reconnect_in_s": backoff_s},
            )
            try:
                await asyncio.wait_for(shutdown_event.wait(), timeout=backoff_s)
            except asyncio.TimeoutError:
                pass
            backoff_s = min(backoff_s * 2, _RECONNECT_MAX_BACKOFF_S)

    logger.info("ingestor_shutdown")
    return 0


def main() -> int:
    """Run the ingestor process until interrupted."""

    try:
        return asyncio.run(_run())
    except KeyboardInterrupt:
        return 0


if __name__ == "__main__":
    raise SystemExit(main())
