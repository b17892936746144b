"""JobExecutor — runs one attempt of a job and records its outcome.

State machine per attempt::

    Idle ─▶ Running ─▶ Success
                   └─▶ Failed ─▶ RetryScheduled ─▶ Running
                              └─▶ FailedMaxRetries

Side effects are strictly ordered: the run-log row is created before the
handler runs and finalized before the job config is updated. Handler errors
are recorded and never propagate past ``run()``.
"""

from __future__ import annotations

import asyncio
import inspect
import time
from datetime import datetime, tzinfo
from functools import partial

from loguru import logger

from shiftwatch.core.cron.expression import next_run
from shiftwatch.core.cron.retry import RetryScheduler
from shiftwatch.core.cron.types import (
    ErrorKind,
    JobHandler,
    JobResult,
    RunOutcome,
    RunSource,
)
from shiftwatch.memory.base import AutomationBackend


class JobExecutor:
    """Execution wrapper shared by scheduled fires, retries and manual triggers.

    Holds a per-job in-flight guard: a second attempt for a job that is
    already running is rejected with ``error_kind="busy"`` and leaves no
    run-log row.
    """

    def __init__(
        self,
        store: AutomationBackend,
        retries: RetryScheduler,
        timezone: tzinfo | None = None,
    ):
        self.store = store
        self.retries = retries
        self.timezone = timezone
        self._in_flight: set[str] = set()

    def now(self) -> datetime:
        return datetime.now(self.timezone)

    def is_running(self, job_name: str) -> bool:
        return job_name in self._in_flight

    async def run(
        self,
        job_name: str,
        handler: JobHandler,
        source: str = RunSource.SCHEDULE,
    ) -> RunOutcome | None:
        """Execute one attempt. Returns None when a scheduled fire hits a disabled job."""
        if source == RunSource.SCHEDULE:
            config = self.store.get_job_config(job_name)
            if config is None or not config.is_enabled:
                logger.debug(f"Job {job_name} is disabled, skipping scheduled run")
                return None

        if job_name in self._in_flight:
            logger.warning(f"Job {job_name} already running, rejecting {source} run")
            return RunOutcome(
                job_name=job_name,
                success=False,
                message=f"Job '{job_name}' is already running",
                error_kind=ErrorKind.BUSY,
            )

        self._in_flight.add(job_name)
        try:
            return await self._execute(job_name, handler, source)
        finally:
            self._in_flight.discard(job_name)

    async def _execute(
        self, job_name: str, handler: JobHandler, source: str
    ) -> RunOutcome:
        logger.info(f"Job running: {job_name} (source={source})")
        run_id = self.store.start_run(job_name, self.now())
        start = time.monotonic()
        try:
            raw = handler()
            if inspect.isawaitable(raw):
                raw = await raw
            result = JobResult.from_handler(raw)
        except asyncio.CancelledError:
            self.store.fail_run(run_id, self.now(), "cancelled")
            raise
        except Exception as e:
            duration_ms = int((time.monotonic() - start) * 1000)
            error = str(e) or type(e).__name__
            logger.error(f"Job {job_name} failed after {duration_ms}ms: {error}")
            finished = self.now()
            self.store.fail_run(run_id, finished, error)
            self.store.record_failure(
                job_name, finished, error, self._next_run(job_name, finished)
            )
            self.retries.schedule_retry(
                job_name, partial(self.run, job_name, handler, source=RunSource.RETRY)
            )
            return RunOutcome(
                job_name=job_name,
                success=False,
                message=f"Job '{job_name}' failed: {error}",
                run_id=run_id,
                duration_ms=duration_ms,
                error=error,
                error_kind=ErrorKind.HANDLER_ERROR,
            )

        duration_ms = int((time.monotonic() - start) * 1000)
        finished = self.now()
        self.store.complete_run(run_id, finished, result)
        self.store.record_success(
            job_name, finished, result.details, self._next_run(job_name, finished)
        )
        logger.info(
            f"Job completed: {job_name} in {duration_ms}ms "
            f"(processed={result.processed}, created={result.created}, "
            f"skipped={result.skipped})"
        )
        return RunOutcome(
            job_name=job_name,
            success=True,
            message=f"Job '{job_name}' completed",
            run_id=run_id,
            duration_ms=duration_ms,
            counts=result.counts,
            details=result.details,
        )

    def _next_run(self, job_name: str, after: datetime) -> datetime | None:
        # re-read: the schedule may have changed while the handler ran
        config = self.store.get_job_config(job_name)
        return next_run(config.cron_schedule, after) if config else None
