"""Automation job types — mirror the automation_config / automation_run_log tables."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

# A unit of work. Async handlers are awaited; plain callables are accepted too.
JobHandler = Callable[[], Any]


class RunStatus:
    """Values of ``automation_run_log.status``."""

    RUNNING = "running"
    SUCCESS = "success"
    FAILED = "failed"


class LastRunStatus:
    """Values of ``automation_config.last_run_status``."""

    SUCCESS = "success"
    FAILED = "failed"
    FAILED_MAX_RETRIES = "failed_max_retries"


class RunSource:
    """What caused an execution attempt."""

    SCHEDULE = "schedule"
    RETRY = "retry"
    MANUAL = "manual"


class ErrorKind:
    """Machine-readable failure reasons for admin results."""

    NOT_FOUND = "not_found"
    INVALID_SCHEDULE = "invalid_schedule"
    NO_HANDLER = "no_handler"
    BUSY = "busy"
    HANDLER_ERROR = "handler_error"


class JobDefinition(BaseModel):
    """Seed metadata for a job; becomes a JobConfig row on first registration."""

    job_name: str
    cron_schedule: str
    display_name: str = ""
    description: str = ""
    category: str = "general"
    max_retries: int = 3


class JobConfig(BaseModel):
    """Durable per-job settings — one automation_config row."""

    job_name: str
    display_name: str = ""
    description: str = ""
    cron_schedule: str
    category: str = "general"
    is_enabled: bool = True
    retry_count: int = 0
    max_retries: int = 3
    last_run_at: datetime | None = None
    last_run_status: str | None = None
    last_run_details: str | None = None
    next_run_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_definition(cls, definition: JobDefinition) -> JobConfig:
        return cls(
            job_name=definition.job_name,
            display_name=definition.display_name or definition.job_name,
            description=definition.description,
            cron_schedule=definition.cron_schedule,
            category=definition.category,
            max_retries=definition.max_retries,
        )


class RunLogEntry(BaseModel):
    """One execution attempt — one automation_run_log row."""

    id: int
    job_name: str
    started_at: datetime
    completed_at: datetime | None = None
    status: str = RunStatus.RUNNING
    items_processed: int = 0
    items_created: int = 0
    items_skipped: int = 0
    error_message: str | None = None
    details: str | None = None


class JobResult(BaseModel):
    """What a handler reports back.

    Handlers may return ``None``, a mapping, a ``JobResult`` or any pydantic
    model carrying the same fields. ``total`` is accepted for ``processed``
    and ``message`` for ``details``; missing counters default to 0.
    """

    model_config = ConfigDict(extra="ignore")

    processed: int = Field(default=0, ge=0)
    created: int = Field(default=0, ge=0)
    skipped: int = Field(default=0, ge=0)
    details: str | None = None

    @field_validator("processed", "created", "skipped", mode="before")
    @classmethod
    def _none_is_zero(cls, value: Any) -> Any:
        return 0 if value is None else value

    @field_validator("details", mode="before")
    @classmethod
    def _stringify_details(cls, value: Any) -> Any:
        if value is None or isinstance(value, str):
            return value
        return str(value)

    @classmethod
    def from_handler(cls, raw: Any) -> JobResult:
        """Normalize a handler's return value. Raises TypeError on unknown shapes."""
        if raw is None:
            return cls()
        if isinstance(raw, JobResult):
            return raw
        if isinstance(raw, BaseModel):
            raw = raw.model_dump()
        if not isinstance(raw, Mapping):
            raise TypeError(
                f"Handler returned unsupported result type {type(raw).__name__}"
            )
        data = dict(raw)
        if data.get("processed") is None and "total" in data:
            data["processed"] = data["total"]
        if data.get("details") is None and "message" in data:
            data["details"] = data["message"]
        return cls.model_validate(data)

    @property
    def counts(self) -> dict[str, int]:
        return {
            "processed": self.processed,
            "created": self.created,
            "skipped": self.skipped,
        }


class RunOutcome(BaseModel):
    """Synchronous result of an execution attempt (returned by manual triggers)."""

    job_name: str
    success: bool
    message: str = ""
    run_id: int | None = None
    duration_ms: int = 0
    counts: dict[str, int] = Field(
        default_factory=lambda: {"processed": 0, "created": 0, "skipped": 0}
    )
    details: str | None = None
    error: str | None = None
    error_kind: str | None = None


class ActionResult(BaseModel):
    """Structured result of an admin mutation — failures are returned, not raised."""

    success: bool
    job_name: str
    message: str = ""
    error_kind: str | None = None


class JobStatus(JobConfig):
    """Read-only projection: JobConfig + live registry / retry state."""

    is_registered: bool = False
    has_pending_retry: bool = False
    retry_due_at: datetime | None = None
