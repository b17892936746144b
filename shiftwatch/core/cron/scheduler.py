"""AutomationScheduler — APScheduler + SQLite bridge for automation jobs.

Job configs are persisted (source of truth for enabled flag, schedule and
retry state) and registered with APScheduler for execution. Each instance
owns its own registry, retry timers and executor.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime, timedelta
from functools import partial
from zoneinfo import ZoneInfo

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from loguru import logger

from shiftwatch.core.config.schema import AutomationConfig
from shiftwatch.core.cron.executor import JobExecutor
from shiftwatch.core.cron.expression import is_valid_cron, next_run
from shiftwatch.core.cron.registry import JobRegistry
from shiftwatch.core.cron.retry import TIMER_ID_SEPARATOR, RetryScheduler
from shiftwatch.core.cron.types import (
    ActionResult,
    ErrorKind,
    JobConfig,
    JobDefinition,
    JobHandler,
    JobStatus,
    RunOutcome,
    RunSource,
)
from shiftwatch.memory.base import AutomationBackend


class AutomationScheduler:
    """Registers automation jobs and exposes pause/resume/trigger/reschedule.

    Admin operations never raise for bad input: unknown names and invalid
    schedules come back as ``ActionResult``/``RunOutcome`` with
    ``success=False`` and an ``error_kind``.
    """

    def __init__(self, store: AutomationBackend, config: AutomationConfig | None = None):
        self.store = store
        self.config = config or AutomationConfig()
        self.timezone = ZoneInfo(self.config.timezone)
        self._scheduler = AsyncIOScheduler(
            timezone=self.timezone,
            job_defaults={"coalesce": True, "max_instances": 1},
        )
        self.registry = JobRegistry(self._scheduler, self.timezone)
        self.retries = RetryScheduler(
            self._scheduler, store, self.config.backoff_seconds, self.timezone
        )
        self.executor = JobExecutor(store, self.retries, self.timezone)

    def now(self) -> datetime:
        return datetime.now(self.timezone)

    @property
    def running(self) -> bool:
        return self._scheduler.running

    # ── Lifecycle ─────────────────────────────────────────────

    async def start(self) -> None:
        """Reconcile interrupted runs and start firing timers."""
        self.recover_interrupted_runs()
        self._scheduler.start()
        logger.info(
            f"AutomationScheduler started with {len(self.registry.names())} jobs "
            f"(tz={self.config.timezone})"
        )

    async def stop(self) -> None:
        """Stop every timer. In-flight runs are left to finish."""
        self.registry.unregister_all()
        self.retries.cancel_all()
        if self._scheduler.running:
            self._scheduler.shutdown(wait=False)
        logger.info("AutomationScheduler stopped")

    def recover_interrupted_runs(self) -> int:
        """Fail run-log rows left ``running`` by a previous process."""
        now = self.now()
        cutoff = now - timedelta(seconds=self.config.interrupted_grace_s)
        return self.store.fail_interrupted_runs(cutoff, now)

    # ── Registration ──────────────────────────────────────────

    def seed_job(self, definition: JobDefinition) -> bool:
        """Create the job's config row if absent. Existing rows are left untouched."""
        config = JobConfig.from_definition(definition)
        config.next_run_at = next_run(config.cron_schedule, self.now())
        return self.store.seed_job_config(config)

    def seed_jobs(self, definitions: Iterable[JobDefinition]) -> int:
        return sum(1 for d in definitions if self.seed_job(d))

    def add_job(
        self,
        job_name: str,
        schedule: str,
        handler: JobHandler,
        display_name: str = "",
        description: str = "",
        category: str = "general",
        max_retries: int | None = None,
    ) -> bool:
        """Seed-if-absent, then wire a live timer under the persisted schedule.

        A schedule changed through ``reschedule`` survives restarts because
        the stored ``cron_schedule`` wins over ``schedule``.
        """
        if TIMER_ID_SEPARATOR in job_name:
            logger.error(
                f"Invalid job name {job_name!r}: '{TIMER_ID_SEPARATOR}' is reserved for retry timers"
            )
            return False
        self.seed_job(
            JobDefinition(
                job_name=job_name,
                cron_schedule=schedule,
                display_name=display_name,
                description=description,
                category=category,
                max_retries=(
                    self.config.default_max_retries if max_retries is None else max_retries
                ),
            )
        )
        config = self.store.get_job_config(job_name)
        try:
            self.registry.register(
                job_name,
                config.cron_schedule,
                handler,
                partial(self.executor.run, job_name, handler, source=RunSource.SCHEDULE),
                enabled=config.is_enabled,
            )
        except ValueError as e:
            logger.error(f"Failed to register job {job_name}: {e}")
            return False

        self.store.set_next_run(job_name, next_run(config.cron_schedule, self.now()))
        logger.info(
            f"Job registered: {job_name} ({config.cron_schedule}"
            f"{'' if config.is_enabled else ', paused'})"
        )
        return True

    # ── Admin control surface ─────────────────────────────────

    def _exists(self, job_name: str) -> bool:
        return (
            self.registry.is_registered(job_name)
            or self.store.get_job_config(job_name) is not None
        )

    @staticmethod
    def _not_found(job_name: str) -> ActionResult:
        return ActionResult(
            success=False,
            job_name=job_name,
            message=f"Job '{job_name}' not found",
            error_kind=ErrorKind.NOT_FOUND,
        )

    def pause(self, job_name: str) -> ActionResult:
        """Disable scheduled firing and drop any pending retry. Idempotent."""
        if not self._exists(job_name):
            return self._not_found(job_name)
        self.store.set_enabled(job_name, False)
        self.registry.pause(job_name)
        self.retries.cancel(job_name)
        logger.info(f"Job paused: {job_name}")
        return ActionResult(success=True, job_name=job_name, message="Job paused")

    def resume(self, job_name: str) -> ActionResult:
        """Re-enable scheduled firing with a fresh retry budget."""
        config = self.store.get_job_config(job_name)
        if config is None:
            return self._not_found(job_name)
        self.store.set_enabled(
            job_name, True, next_run(config.cron_schedule, self.now())
        )
        self.registry.resume(job_name)
        logger.info(f"Job resumed: {job_name}")
        return ActionResult(success=True, job_name=job_name, message="Job resumed")

    async def trigger_now(self, job_name: str) -> RunOutcome:
        """Run immediately, ignoring ``is_enabled``, after resetting ``retry_count``."""
        entry = self.registry.get(job_name)
        if entry is None:
            if self.store.get_job_config(job_name) is None:
                return RunOutcome(
                    job_name=job_name,
                    success=False,
                    message=f"Job '{job_name}' not found",
                    error_kind=ErrorKind.NOT_FOUND,
                )
            return RunOutcome(
                job_name=job_name,
                success=False,
                message=f"Job '{job_name}' has no registered handler",
                error_kind=ErrorKind.NO_HANDLER,
            )

        if self.executor.is_running(job_name):
            return RunOutcome(
                job_name=job_name,
                success=False,
                message=f"Job '{job_name}' is already running",
                error_kind=ErrorKind.BUSY,
            )

        self.store.reset_retry_count(job_name)
        self.retries.cancel(job_name)
        logger.info(f"Manual trigger: {job_name}")
        return await self.executor.run(job_name, entry.handler, source=RunSource.MANUAL)

    def reschedule(self, job_name: str, schedule: str) -> ActionResult:
        """Swap the live timer to ``schedule`` and persist it. Invalid input mutates nothing."""
        config = self.store.get_job_config(job_name)
        if config is None:
            return self._not_found(job_name)

        schedule = " ".join(str(schedule).split())
        if not is_valid_cron(schedule):
            return ActionResult(
                success=False,
                job_name=job_name,
                message=f"Invalid cron expression: '{schedule}'",
                error_kind=ErrorKind.INVALID_SCHEDULE,
            )

        entry = self.registry.get(job_name)
        if entry is not None:
            self.registry.register(
                job_name, schedule, entry.handler, entry.fire, enabled=config.is_enabled
            )
        self.store.set_schedule(job_name, schedule, next_run(schedule, self.now()))
        logger.info(f"Job rescheduled: {job_name} ({config.cron_schedule} → {schedule})")
        return ActionResult(
            success=True, job_name=job_name, message=f"Schedule updated to '{schedule}'"
        )

    # ── Status projections ────────────────────────────────────

    def _status(self, config: JobConfig) -> JobStatus:
        pending = self.retries.get_pending(config.job_name)
        return JobStatus(
            **config.model_dump(),
            is_registered=self.registry.is_registered(config.job_name),
            has_pending_retry=pending is not None,
            retry_due_at=pending.due_at if pending else None,
        )

    def get_status(self, job_name: str) -> JobStatus | None:
        config = self.store.get_job_config(job_name)
        return self._status(config) if config else None

    def get_all_statuses(self) -> list[JobStatus]:
        return [self._status(c) for c in self.store.list_job_configs()]
