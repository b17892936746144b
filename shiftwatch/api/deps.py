"""FastAPI dependency injection — pull singletons from app.state."""

from __future__ import annotations

from fastapi import Request

from shiftwatch.core.config.schema import Config
from shiftwatch.core.cron.scheduler import AutomationScheduler
from shiftwatch.memory.store import AutomationStore


def get_config(request: Request) -> Config:
    """Get Config singleton from app state."""
    return request.app.state.config


def get_store(request: Request) -> AutomationStore:
    """Get AutomationStore singleton from app state."""
    return request.app.state.store


def get_scheduler(request: Request) -> AutomationScheduler:
    """Get AutomationScheduler singleton from app state."""
    return request.app.state.scheduler
