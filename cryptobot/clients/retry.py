"""Bounded retry with exponential backoff for single upstream calls."""

import asyncio
import logging
from typing import Awaitable, Callable, TypeVar

from cryptobot.core.errors import UpstreamFetchFailure

T = TypeVar("T")

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]


async def retry_async(
    operation: Callable[[], Awaitable[T]],
    *,
    source: str,
    attempts: int,
    backoff_s: float,
    retry_on: tuple[type[BaseException], ...],
    sleep: Sleep = asyncio.sleep,
) -> T:
    """Run operation up to `attempts` times, waiting backoff_s * 2**n between tries."""

    attempts = max(1, attempts)
    last_error: BaseException | None = None

    for attempt in range(1, attempts + 1):
        try:
            return await operation()
        except retry_on as exc:
            last_error = exc
            if attempt == attempts:
                break
            delay_s = backoff_s * (2 ** (attempt - 1))
            logger.warning(
                "upstream_call_retry",
                extra={"source": source, "attempt": attempt, "error": str(exc), "retry_in_s": delay_s},
            )
            await sleep(delay_s)

    logger.error(
        "upstream_call_failed",
        extra={"source": source, "attempts": attempts, "error": str(last_error)},
    )
    raise UpstreamFetchFailure(source, f"{source} request failed after {attempts} attempts: {last_error}")
