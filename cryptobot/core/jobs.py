"""Durable FIFO job queue for chat commands.

Lifecycle: pending -> processing -> done | failed, plus pending -> cancelled. Dequeue claims rows
inside a write transaction so overlapping dispatcher runs never receive the same job.
"""

import logging
import sqlite3

from cryptobot.core.db import Database
from cryptobot.core.time_utils import utc_now_ms
from cryptobot.core.types import Command, Exchange, Job, JobStatus

logger = logging.getLogger(__name__)

_JOB_COLUMNS = "id, chat_id, command, pair, exchange, status, error, created_at"


def _row_to_job(row: sqlite3.Row) -> Job:
    return Job(
        id=int(row["id"]),
        chat_id=str(row["chat_id"]),
        command=Command(row["command"]),
        pair=str(row["pair"]),
        exchange=Exchange(row["exchange"]),
        status=JobStatus(row["status"]),
        created_at_ms=int(row["created_at"]),
        error=row["error"],
    )


class JobQueue:
    """Job table access; the table owns the authoritative status of every job."""

    def __init__(self, database: Database) -> None:
        self._db = database

    def enqueue(self, chat_id: str, command: Command, pair: str, exchange: Exchange = Exchange.BINANCE) -> int:
        """Insert a pending job; identical commands are never merged."""

        now_ms = utc_now_ms()
        with self._db.connection() as conn:
            cursor = conn.execute(
                """
                INSERT INTO bot_job_queue(chat_id, command, pair, exchange, status, created_at, updated_at)
                VALUES(?,?,?,?,?,?,?)
                """,
                (str(chat_id), command.value, pair, exchange.value, JobStatus.PENDING.value, now_ms, now_ms),
            )
            job_id = int(cursor.lastrowid)

        logger.info(
            "job_enqueued",
            extra={"job_id": job_id, "chat_id": str(chat_id), "command": command.value, "pair": pair},
        )
        return job_id

    def dequeue(self, batch_size: int) -> list[Job]:
        """Claim up to batch_size pending jobs, oldest first, and return them as processing."""

        if batch_size <= 0:
            return []

        now_ms = utc_now_ms()
        with self._db.transaction() as conn:
            ids = [
                int(row["id"])
                for row in conn.execute(
                    "SELECT id FROM bot_job_queue WHERE status=? ORDER BY created_at ASC, id ASC LIMIT ?",
                    (JobStatus.PENDING.value, batch_size),
                )
            ]
            if not ids:
                return []

            placeholders = ",".join("?" for _ in ids)
            conn.execute(
                f"UPDATE bot_job_queue SET status=?, updated_at=? WHERE status=? AND id IN ({placeholders})",
                (JobStatus.PROCESSING.value, now_ms, JobStatus.PENDING.value, *ids),
            )
            rows = conn.execute(
                f"SELECT {_JOB_COLUMNS} FROM bot_job_queue WHERE id IN ({placeholders}) "
                "ORDER BY created_at ASC, id ASC",
                ids,
            ).fetchall()

        return [_row_to_job(row) for row in rows]

    def cancel(self, chat_id: str) -> int:
        """Cancel every still-pending job of a chat; claimed jobs are left alone."""

        with self._db.connection() as conn:
            cursor = conn.execute(
                "UPDATE bot_job_queue SET status=?, updated_at=? WHERE chat_id=? AND status=?",
                (JobStatus.CANCELLED.value, utc_now_ms(), str(chat_id), JobStatus.PENDING.value),
            )
            cancelled = cursor.rowcount

        logger.info("jobs_cancelled", extra={"chat_id": str(chat_id), "cancelled": cancelled})
        return cancelled

    def mark_done(self, job_id: int) -> None:
        self._finish(job_id, JobStatus.DONE, None)

    def mark_failed(self, job_id: int, error: str) -> None:
        self._finish(job_id, JobStatus.FAILED, error)

    def get(self, job_id: int) -> Job | None:
        with self._db.connection() as conn:
            row = conn.execute(f"SELECT {_JOB_COLUMNS} FROM bot_job_queue WHERE id=?", (job_id,)).fetchone()
        return _row_to_job(row) if row is not None else None

    def count_by_status(self, status: JobStatus) -> int:
        with self._db.connection() as conn:
            row = conn.execute("SELECT COUNT(*) FROM bot_job_queue WHERE status=?", (status.value,)).fetchone()
        return int(row[0])

    def _finish(self, job_id: int, status: JobStatus, error: str | None) -> None:
        with self._db.connection() as conn:
            cursor = conn.execute(
                "UPDATE bot_job_queue SET status=?, error=?, updated_at=? WHERE id=? AND status=?",
                (status.value, error, utc_now_ms(), job_id, JobStatus.PROCESSING.value),
            )
            updated = cursor.rowcount
        if updated == 0:
            logger.warning("job_finish_ignored", extra={"job_id": job_id, "status": status.value})
