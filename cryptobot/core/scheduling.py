"""Triggers that decide when a batch action runs, kept apart from what the action does."""

import asyncio
import logging
import signal
from typing import Any, Awaitable, Callable, Protocol

BatchAction = Callable[[], Awaitable[Any]]


class Trigger(Protocol):
    async def run(self, action: BatchAction) -> None:
        ...


class OnceTrigger:
    """Run the action a single time, for external schedulers such as cron."""

    async def run(self, action: BatchAction) -> None:
        await action()


class IntervalTrigger:
    """Run the action repeatedly with a fixed pause until the shutdown event is set."""

    def __init__(self, interval_s: float, shutdown_event: asyncio.Event, logger: logging.Logger) -> None:
        self.interval_s = max(0.0, interval_s)
        self.shutdown_event = shutdown_event
        self.logger = logger

    async def run(self, action: BatchAction) -> None:
        while not self.shutdown_event.is_set():
            try:
                await action()
            except asyncio.CancelledError:
                raise
            except Exception as exc:  # noqa: BLE001
                self.logger.exception("trigger_action_failed", extra={"error": str(exc)})
            try:
                await asyncio.wait_for(self.shutdown_event.wait(), timeout=self.interval_s)
            except asyncio.TimeoutError:
                pass


def _request_shutdown(
    shutdown_event: asyncio.Event, logger: logging.Logger, event: str, signal_name: str
) -> None:
    if shutdown_event.is_set():
        return
    logger.info(event, extra={"signal": signal_name})
    shutdown_event.set()


def install_signal_handlers(
    shutdown_event: asyncio.Event, logger: logging.Logger, event: str = "shutdown_signal"
) -> None:
    """Set `shutdown_event` on SIGINT or SIGTERM, logging `event` once."""

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(
                sig,
                _request_shutdown,
                shutdown_event,
                logger,
                event,
                sig.name,
            )
        except NotImplementedError:
            signal_name = sig.name
            signal.signal(
                sig,
                lambda *_, signal_name=signal_name: _request_shutdown(
                    shutdown_event, logger, event, signal_name
                ),
            )
