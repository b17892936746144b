"""Automation scheduling — APScheduler + SQLite bridge."""

from shiftwatch.core.cron.expression import cron_trigger, is_valid_cron, next_run, parse_cron
from shiftwatch.core.cron.scheduler import AutomationScheduler
from shiftwatch.core.cron.types import (
    ActionResult,
    JobConfig,
    JobDefinition,
    JobResult,
    JobStatus,
    RunLogEntry,
    RunOutcome,
)

__all__ = [
    "ActionResult",
    "AutomationScheduler",
    "JobConfig",
    "JobDefinition",
    "JobResult",
    "JobStatus",
    "RunLogEntry",
    "RunOutcome",
    "cron_trigger",
    "is_valid_cron",
    "next_run",
    "parse_cron",
]
