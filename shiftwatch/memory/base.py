"""Store interfaces — the write contracts the scheduling engine depends on."""

from __future__ import annotations

import abc
from datetime import datetime
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from shiftwatch.core.cron.types import JobConfig, JobResult, RunLogEntry


class JobConfigStore(abc.ABC):
    """Durable per-job settings, keyed by ``job_name``.

    Every method touches a single row; no call spans several jobs.
    Mutators return False when the job does not exist.
    """

    @abc.abstractmethod
    def seed_job_config(self, config: JobConfig) -> bool:
        """Insert ``config`` if its name is absent. Returns True if a row was created."""

    @abc.abstractmethod
    def get_job_config(self, job_name: str) -> JobConfig | None: ...

    @abc.abstractmethod
    def list_job_configs(self) -> list[JobConfig]: ...

    @abc.abstractmethod
    def set_enabled(
        self, job_name: str, enabled: bool, next_run_at: datetime | None = None
    ) -> bool:
        """Toggle ``is_enabled``. Enabling also resets ``retry_count`` to 0."""

    @abc.abstractmethod
    def set_schedule(
        self, job_name: str, cron_schedule: str, next_run_at: datetime | None
    ) -> bool: ...

    @abc.abstractmethod
    def set_next_run(self, job_name: str, next_run_at: datetime | None) -> bool: ...

    @abc.abstractmethod
    def reset_retry_count(self, job_name: str) -> bool: ...

    @abc.abstractmethod
    def increment_retry_count(self, job_name: str) -> int:
        """Add one to ``retry_count`` and return the new value."""

    @abc.abstractmethod
    def record_success(
        self,
        job_name: str,
        ran_at: datetime,
        details: str | None,
        next_run_at: datetime | None,
    ) -> None:
        """last_run_status=success, retry_count=0."""

    @abc.abstractmethod
    def record_failure(
        self,
        job_name: str,
        ran_at: datetime,
        error: str,
        next_run_at: datetime | None,
    ) -> None:
        """last_run_status=failed; retry_count untouched."""

    @abc.abstractmethod
    def mark_max_retries(self, job_name: str) -> None:
        """last_run_status=failed_max_retries."""


class RunLogStore(abc.ABC):
    """Append-only audit trail of execution attempts."""

    @abc.abstractmethod
    def start_run(self, job_name: str, started_at: datetime) -> int:
        """Create a ``running`` entry and return its id."""

    @abc.abstractmethod
    def complete_run(
        self, run_id: int, completed_at: datetime, result: JobResult
    ) -> bool:
        """Finalize a running entry as success. False if it was already final."""

    @abc.abstractmethod
    def fail_run(self, run_id: int, completed_at: datetime, error: str) -> bool:
        """Finalize a running entry as failed. False if it was already final."""

    @abc.abstractmethod
    def get_run(self, run_id: int) -> RunLogEntry | None: ...

    @abc.abstractmethod
    def get_runs(
        self,
        job_name: str | None = None,
        status: str | None = None,
        limit: int = 50,
    ) -> list[RunLogEntry]:
        """Most recent first."""

    @abc.abstractmethod
    def fail_interrupted_runs(self, started_before: datetime, now: datetime) -> int:
        """Finalize stale ``running`` entries as failed. Returns how many."""

    @abc.abstractmethod
    def get_run_stats(self, now: datetime) -> dict[str, Any]: ...


class AutomationBackend(JobConfigStore, RunLogStore):
    """Both store contracts behind one object, as the engine consumes them."""
