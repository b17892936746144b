"""API request / response models."""

from __future__ import annotations

from pydantic import BaseModel


class HealthResponse(BaseModel):
    status: str
    version: str
    scheduler_running: bool = False


class JobUpdate(BaseModel):
    """PATCH /automation/jobs/{name} body. Omitted fields are left alone."""

    is_enabled: bool | None = None
    cron_schedule: str | None = None
