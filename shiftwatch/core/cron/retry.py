"""RetryScheduler — bounded exponential backoff for failed job runs."""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from datetime import datetime, timedelta, tzinfo
from typing import Any

from apscheduler.job import Job
from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.date import DateTrigger
from loguru import logger

from shiftwatch.memory.base import JobConfigStore

DEFAULT_BACKOFF_SECONDS = (60, 300, 900)

# Job names may not contain it, so retry timer ids never collide with cron timer ids
TIMER_ID_SEPARATOR = ":"


@dataclass
class RetryTimer:
    """A pending out-of-band retry for one job."""

    job_name: str
    attempt: int
    delay_s: int
    due_at: datetime
    timer: Job


def _timer_id(job_name: str) -> str:
    return f"retry{TIMER_ID_SEPARATOR}{job_name}"


class RetryScheduler:
    """Arms one-shot DateTrigger retries, at most one pending per job name.

    The delay for a retry is ``backoff[retry_count]`` (clamped to the last
    entry). ``retry_count`` is persisted before the timer is armed, so a crash
    in between loses a retry rather than repeating one.
    """

    def __init__(
        self,
        scheduler: AsyncIOScheduler,
        store: JobConfigStore,
        backoff_seconds: Sequence[int] = DEFAULT_BACKOFF_SECONDS,
        timezone: tzinfo | None = None,
    ):
        if not backoff_seconds:
            raise ValueError("backoff_seconds must not be empty")
        self._scheduler = scheduler
        self.store = store
        self.backoff_seconds = tuple(backoff_seconds)
        self._timezone = timezone
        self._pending: dict[str, RetryTimer] = {}

    def delay_for(self, retry_count: int) -> int:
        """Backoff delay (seconds) for the retry following ``retry_count`` earlier retries."""
        return self.backoff_seconds[min(retry_count, len(self.backoff_seconds) - 1)]

    def schedule_retry(
        self, job_name: str, fire: Callable[[], Awaitable[Any]]
    ) -> RetryTimer | None:
        """Arm the next retry, or mark the job failed_max_retries. Returns the timer."""
        config = self.store.get_job_config(job_name)
        if config is None:
            logger.warning(f"Retry requested for unknown job: {job_name}")
            return None

        if not config.is_enabled:
            self.cancel(job_name)
            logger.info(f"Job {job_name} is paused, no retry armed")
            return None

        if config.retry_count >= config.max_retries:
            self.cancel(job_name)
            self.store.mark_max_retries(job_name)
            logger.warning(
                f"Job {job_name} exhausted retries ({config.retry_count}/{config.max_retries})"
            )
            return None

        delay = self.delay_for(config.retry_count)
        attempt = self.store.increment_retry_count(job_name)
        self.cancel(job_name)

        due_at = datetime.now(self._timezone) + timedelta(seconds=delay)
        timer = self._scheduler.add_job(
            self._fire,
            trigger=DateTrigger(run_date=due_at, timezone=self._timezone),
            id=_timer_id(job_name),
            name=_timer_id(job_name),
            args=[job_name, fire],
            replace_existing=True,
        )
        pending = RetryTimer(job_name, attempt, delay, due_at, timer)
        self._pending[job_name] = pending
        logger.info(
            f"Retry {attempt}/{config.max_retries} for {job_name} in {delay}s"
        )
        return pending

    async def _fire(self, job_name: str, fire: Callable[[], Awaitable[Any]]) -> None:
        # fire() may arm the next retry, so drop this one first
        self._pending.pop(job_name, None)
        logger.info(f"Retry firing: {job_name}")
        await fire()

    def get_pending(self, job_name: str) -> RetryTimer | None:
        return self._pending.get(job_name)

    def has_pending(self, job_name: str) -> bool:
        return job_name in self._pending

    def cancel(self, job_name: str) -> bool:
        """Cancel the pending retry for ``job_name``. Returns True if one existed."""
        pending = self._pending.pop(job_name, None)
        if pending is None:
            return False
        try:
            self._scheduler.remove_job(_timer_id(job_name))
        except JobLookupError:
            pass  # fired concurrently
        logger.debug(f"Pending retry cancelled: {job_name}")
        return True

    def cancel_all(self) -> None:
        for job_name in list(self._pending):
            self.cancel(job_name)
