"""Handler wiring — turn configured references into registered jobs."""

from __future__ import annotations

import importlib
from collections.abc import Mapping
from typing import TYPE_CHECKING

from loguru import logger

from shiftwatch.core.cron.types import JobDefinition, JobHandler
from shiftwatch.jobs.catalog import catalog_definitions

if TYPE_CHECKING:
    from shiftwatch.core.config.schema import AutomationConfig
    from shiftwatch.core.cron.scheduler import AutomationScheduler


class HandlerResolutionError(ValueError):
    """A configured handler reference cannot be imported or is not callable."""


def resolve_handler(ref: str) -> JobHandler:
    """Import ``"package.module:function"`` (dotted attributes allowed after the colon)."""
    module_name, sep, attr_path = ref.partition(":")
    if not sep or not module_name or not attr_path:
        raise HandlerResolutionError(
            f"Invalid handler reference '{ref}', expected 'module:function'"
        )
    try:
        obj = importlib.import_module(module_name)
    except ImportError as e:
        raise HandlerResolutionError(f"Cannot import '{module_name}': {e}") from e

    for part in attr_path.split("."):
        try:
            obj = getattr(obj, part)
        except AttributeError as e:
            raise HandlerResolutionError(
                f"'{module_name}' has no attribute '{attr_path}'"
            ) from e

    if not callable(obj):
        raise HandlerResolutionError(f"Handler '{ref}' is not callable")
    return obj


def resolve_handlers(refs: Mapping[str, str]) -> dict[str, JobHandler]:
    return {name: resolve_handler(ref) for name, ref in refs.items()}


def register_jobs(
    scheduler: AutomationScheduler,
    config: AutomationConfig,
    handlers: Mapping[str, JobHandler],
) -> list[str]:
    """Seed the catalogue (if enabled) and register every job that has a handler.

    Jobs outside the catalogue need a schedule in ``automation.schedules``.
    Returns the names that were registered.
    """
    definitions = {
        d.job_name: d
        for d in catalog_definitions(config.schedules, config.default_max_retries)
    }
    if config.seed_catalog:
        seeded = scheduler.seed_jobs(definitions.values())
        logger.info(f"Catalogue seeded: {seeded} new of {len(definitions)} jobs")

    registered = []
    for name, handler in handlers.items():
        definition = definitions.get(name)
        if definition is None:
            schedule = config.schedules.get(name)
            if not schedule:
                logger.error(f"No schedule configured for job {name}, not registered")
                continue
            definition = JobDefinition(
                job_name=name,
                cron_schedule=schedule,
                max_retries=config.default_max_retries,
            )
        if scheduler.add_job(
            definition.job_name,
            definition.cron_schedule,
            handler,
            display_name=definition.display_name,
            description=definition.description,
            category=definition.category,
            max_retries=definition.max_retries,
        ):
            registered.append(name)
    return registered
