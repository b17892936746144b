"""FastAPI application factory."""

from __future__ import annotations

from collections.abc import Mapping
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger

from shiftwatch import __version__
from shiftwatch.api.automation import router as automation_router
from shiftwatch.api.models import HealthResponse
from shiftwatch.core.config.loader import load_config
from shiftwatch.core.cron.scheduler import AutomationScheduler
from shiftwatch.core.cron.types import JobHandler
from shiftwatch.jobs.loader import register_jobs, resolve_handlers
from shiftwatch.memory.store import AutomationStore


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup: Config → AutomationStore → AutomationScheduler → jobs. Shutdown: stop timers."""
    config = load_config()
    store = AutomationStore(str(config.db_path))
    scheduler = AutomationScheduler(store, config.automation)

    # Injected handlers win over configured references for the same name
    handlers = {
        **resolve_handlers(config.automation.handlers),
        **getattr(app.state, "handlers", {}),
    }
    registered = register_jobs(scheduler, config.automation, handlers)
    await scheduler.start()

    app.state.config = config
    app.state.store = store
    app.state.scheduler = scheduler

    logger.info(f"shiftwatch API started — {len(registered)} jobs registered")
    yield

    await scheduler.stop()
    logger.info("shiftwatch API shutting down")


def create_app(handlers: Mapping[str, JobHandler] | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    ``handlers`` maps job names to work functions; they are registered at
    startup alongside any configured under ``automation.handlers``.
    """
    app = FastAPI(
        title="shiftwatch API",
        description="Automation scheduling and execution engine",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.handlers = dict(handlers or {})

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(automation_router)

    @app.get("/health", response_model=HealthResponse)
    async def health(request: Request):
        """Health check."""
        scheduler = getattr(request.app.state, "scheduler", None)
        return HealthResponse(
            status="ok",
            version=__version__,
            scheduler_running=bool(scheduler and scheduler.running),
        )

    return app


app = create_app()
