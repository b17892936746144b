"""Automation admin endpoints — job status, pause/resume, schedule, manual runs, history."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query

from shiftwatch.api.deps import get_scheduler, get_store
from shiftwatch.api.models import JobUpdate
from shiftwatch.core.cron.scheduler import AutomationScheduler
from shiftwatch.core.cron.types import ErrorKind
from shiftwatch.memory.store import AutomationStore

router = APIRouter(prefix="/automation", tags=["automation"])

_ERROR_STATUS = {
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.INVALID_SCHEDULE: 400,
    ErrorKind.NO_HANDLER: 409,
    ErrorKind.BUSY: 409,
    ErrorKind.HANDLER_ERROR: 500,
}


def _raise_for(error_kind: str | None, message: str) -> None:
    raise HTTPException(status_code=_ERROR_STATUS.get(error_kind, 400), detail=message)


@router.get("/jobs")
async def list_jobs(scheduler: AutomationScheduler = Depends(get_scheduler)):
    """All jobs with live registry and retry state."""
    jobs = scheduler.get_all_statuses()
    return {"jobs": [j.model_dump(mode="json") for j in jobs]}


@router.get("/jobs/{name}")
async def get_job(name: str, scheduler: AutomationScheduler = Depends(get_scheduler)):
    """Status of one job."""
    status = scheduler.get_status(name)
    if status is None:
        raise HTTPException(status_code=404, detail=f"Job '{name}' not found")
    return status.model_dump(mode="json")


@router.patch("/jobs/{name}")
async def update_job(
    name: str,
    body: JobUpdate,
    scheduler: AutomationScheduler = Depends(get_scheduler),
):
    """Toggle enabled and/or change the schedule."""
    if scheduler.get_status(name) is None:
        raise HTTPException(status_code=404, detail=f"Job '{name}' not found")

    if body.cron_schedule is not None:
        result = scheduler.reschedule(name, body.cron_schedule)
        if not result.success:
            _raise_for(result.error_kind, result.message)

    if body.is_enabled is not None:
        result = scheduler.resume(name) if body.is_enabled else scheduler.pause(name)
        if not result.success:
            _raise_for(result.error_kind, result.message)

    return scheduler.get_status(name).model_dump(mode="json")


@router.post("/jobs/{name}/run")
async def run_job(name: str, scheduler: AutomationScheduler = Depends(get_scheduler)):
    """Manual trigger — runs even when the job is paused."""
    outcome = await scheduler.trigger_now(name)
    if not outcome.success:
        _raise_for(outcome.error_kind, outcome.message)
    return {
        "message": outcome.message,
        "run_id": outcome.run_id,
        "duration": outcome.duration_ms,
        "counts": outcome.counts,
        "details": outcome.details,
    }


@router.get("/jobs/{name}/logs")
async def job_logs(
    name: str,
    limit: int = Query(default=50, ge=1, le=500),
    store: AutomationStore = Depends(get_store),
):
    """Run history of one job, newest first."""
    logs = store.get_runs(job_name=name, limit=limit)
    return {"logs": [entry.model_dump(mode="json") for entry in logs]}


@router.get("/runs")
async def recent_runs(
    limit: int = Query(default=50, ge=1, le=500),
    status: str | None = Query(default=None),
    job_name: str | None = Query(default=None),
    store: AutomationStore = Depends(get_store),
):
    """Recent runs across all jobs, with display name and category."""
    configs = {c.job_name: c for c in store.list_job_configs()}
    runs = []
    for entry in store.get_runs(job_name=job_name, status=status, limit=limit):
        row = entry.model_dump(mode="json")
        config = configs.get(entry.job_name)
        row["display_name"] = config.display_name if config else None
        row["category"] = config.category if config else None
        runs.append(row)
    return {"runs": runs}


@router.get("/stats")
async def run_stats(
    scheduler: AutomationScheduler = Depends(get_scheduler),
    store: AutomationStore = Depends(get_store),
):
    """Aggregate run statistics (today / week / month, success rate, series)."""
    return store.get_run_stats(scheduler.now())
