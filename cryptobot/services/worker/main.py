"""Job queue worker: drives JobDispatcher batches from an interval or one-shot trigger."""

import asyncio
import logging

from cryptobot.core.config import get_settings
from cryptobot.core.errors import ConfigurationError
from cryptobot.core.logging import configure_logging
from cryptobot.core.scheduling import IntervalTrigger, OnceTrigger, Trigger, install_signal_handlers
from cryptobot.services.container import build_container


async def _run() -> int:
    settings = get_settings()
    configure_logging(settings.LOG_LEVEL, service="worker")
    logger = logging.getLogger(__name__)
    shutdown_event = asyncio.Event()

    try:
        container = build_container(settings)
    except ConfigurationError as exc:
        logger.error("worker_configuration_error", extra={"error": exc.message})
        return 1

    trigger: Trigger
    if settings.WORKER_RUN_ONCE:
        trigger = OnceTrigger()
    else:
        install_signal_handlers(shutdown_event, logger, "worker_shutdown_signal")
        trigger = IntervalTrigger(settings.WORKER_POLL_INTERVAL_S, shutdown_event, logger)

    logger.info(
        "worker_startup",
        extra={
            "batch_size": settings.WORKER_BATCH_SIZE,
            "job_delay_s": settings.WORKER_JOB_DELAY_S,
            "poll_interval_s": settings.WORKER_POLL_INTERVAL_S,
            "run_once": settings.WORKER_RUN_ONCE,
            "database": settings.DATABASE_PATH,
        },
    )

    try:
        await trigger.run(container.dispatcher.run_batch)
    finally:
        await container.aclose()

    logger.info("worker_shutdown")
    return 0


def main() -> int:
    """Run the worker until interrupted, or for one batch when WORKER_RUN_ONCE is set."""

    try:
        return asyncio.run(_run())
    except KeyboardInterrupt:
        return 0


if __name__ == "__main__":
    raise SystemExit(main())
