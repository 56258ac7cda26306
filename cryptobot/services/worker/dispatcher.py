"""Single-pass batch dispatcher over the job queue.

A pass claims up to `batch_size` pending jobs and runs them strictly one after another, pausing
between jobs. A failing job is marked failed and reported to its chat; the rest of the batch
continues.
"""

import asyncio
import logging
from typing import Mapping

from cryptobot.clients.retry import Sleep
from cryptobot.core.errors import BotError, UnknownCommandError
from cryptobot.core.formatting import failure_message
from cryptobot.core.interfaces import NotificationSink
from cryptobot.core.jobs import JobQueue
from cryptobot.core.types import BatchResult, Command, Job
from cryptobot.services.worker.handlers import JobHandler

logger = logging.getLogger(__name__)


def _error_text(exc: BaseException) -> str:
    if isinstance(exc, BotError):
        return exc.message
    return str(exc) or exc.__class__.__name__


class JobDispatcher:
    def __init__(
        self,
        queue: JobQueue,
        handlers: Mapping[Command, JobHandler],
        sink: NotificationSink,
        batch_size: int = 10,
        job_delay_s: float = 0.5,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self.queue = queue
        self.handlers = dict(handlers)
        self.sink = sink
        self.batch_size = max(1, batch_size)
        self.job_delay_s = max(0.0, job_delay_s)
        self._sleep = sleep

    async def run_batch(self) -> BatchResult:
        """Claim one batch and process it; returns outcome counters."""

        jobs = self.queue.dequeue(self.batch_size)
        if not jobs:
            return BatchResult()

        logger.info("worker_batch_claimed", extra={"claimed": len(jobs), "job_ids": [job.id for job in jobs]})
        done = 0
        failed = 0
        for index, job in enumerate(jobs):
            if index > 0 and self.job_delay_s:
                await self._sleep(self.job_delay_s)

            if await self._process(job):
                done += 1
            else:
                failed += 1

        result = BatchResult(claimed=len(jobs), done=done, failed=failed)
        logger.info("worker_batch_completed", extra={"claimed": result.claimed, "done": done, "failed": failed})
        return result

    async def _process(self, job: Job) -> bool:
        try:
            handler = self.handlers.get(job.command)
            if handler is None:
                raise UnknownCommandError("worker", f"Unknown command: {job.command.value}")
            await handler(job)
        except asyncio.CancelledError:
            raise
        except Exception as exc:  # noqa: BLE001
            error = _error_text(exc)
            logger.error(
                "worker_job_failed",
                extra={"job_id": job.id, "command": job.command.value, "pair": job.pair, "error": error},
                exc_info=not isinstance(exc, BotError),
            )
            self.queue.mark_failed(job.id, error)
            await self._notify_failure(job, error)
            return False

        self.queue.mark_done(job.id)
        logger.info("worker_job_done", extra={"job_id": job.id, "command": job.command.value, "pair": job.pair})
        return True

    async def _notify_failure(self, job: Job, error: str) -> None:
        try:
            await self.sink.send_text(job.chat_id, failure_message(error))
        except Exception as exc:  # noqa: BLE001
            logger.warning(
                "worker_failure_notice_undelivered",
                extra={"job_id": job.id, "chat_id": job.chat_id, "error": str(exc)},
            )
