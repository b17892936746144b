"""JobRegistry — which job names are wired to a live APScheduler timer."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import tzinfo
from typing import Any

from apscheduler.job import Job
from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from loguru import logger

from shiftwatch.core.cron.expression import cron_trigger
from shiftwatch.core.cron.types import JobHandler


@dataclass
class RegistryEntry:
    """Live wiring for one job name (process lifetime only)."""

    job_name: str
    schedule: str
    handler: JobHandler
    fire: Callable[[], Awaitable[Any]]
    timer: Job
    active: bool = True


class JobRegistry:
    """In-memory map of job name → live cron timer.

    One registry belongs to one scheduler instance. Registering a name twice
    replaces the previous timer.
    """

    def __init__(self, scheduler: AsyncIOScheduler, timezone: tzinfo):
        self._scheduler = scheduler
        self._timezone = timezone
        self._entries: dict[str, RegistryEntry] = {}

    def register(
        self,
        job_name: str,
        schedule: str,
        handler: JobHandler,
        fire: Callable[[], Awaitable[Any]],
        enabled: bool = True,
    ) -> RegistryEntry:
        """Install a CronTrigger timer calling ``fire``. Raises ValueError on a bad schedule."""
        trigger = cron_trigger(schedule, self._timezone)
        timer = self._scheduler.add_job(
            fire,
            trigger=trigger,
            id=job_name,
            name=job_name,
            replace_existing=True,
        )
        entry = RegistryEntry(job_name, schedule, handler, fire, timer)
        self._entries[job_name] = entry
        if not enabled:
            self._scheduler.pause_job(job_name)
            entry.active = False
        logger.debug(
            f"Timer installed: {job_name} ({schedule}, {'active' if enabled else 'paused'})"
        )
        return entry

    def get(self, job_name: str) -> RegistryEntry | None:
        return self._entries.get(job_name)

    def is_registered(self, job_name: str) -> bool:
        return job_name in self._entries

    def is_active(self, job_name: str) -> bool:
        entry = self._entries.get(job_name)
        return bool(entry and entry.active)

    def names(self) -> list[str]:
        return list(self._entries)

    def pause(self, job_name: str) -> bool:
        """Stop the live timer. Returns False if the name is not registered."""
        entry = self._entries.get(job_name)
        if entry is None:
            return False
        if entry.active:
            self._scheduler.pause_job(job_name)
            entry.active = False
        return True

    def resume(self, job_name: str) -> bool:
        """Restart the live timer. Returns False if the name is not registered."""
        entry = self._entries.get(job_name)
        if entry is None:
            return False
        if not entry.active:
            self._scheduler.resume_job(job_name)
            entry.active = True
        return True

    def unregister(self, job_name: str) -> bool:
        entry = self._entries.pop(job_name, None)
        if entry is None:
            return False
        try:
            self._scheduler.remove_job(job_name)
        except JobLookupError:
            pass  # already gone from APScheduler
        return True

    def unregister_all(self) -> None:
        """Stop every live timer (process shutdown)."""
        for job_name in list(self._entries):
            self.unregister(job_name)
            logger.info(f"Timer stopped: {job_name}")
