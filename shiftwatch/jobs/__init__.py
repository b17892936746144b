"""Built-in automation jobs — catalogue and handler wiring."""

from shiftwatch.jobs.catalog import CATALOG, catalog_definitions
from shiftwatch.jobs.loader import (
    HandlerResolutionError,
    register_jobs,
    resolve_handler,
    resolve_handlers,
)

__all__ = [
    "CATALOG",
    "HandlerResolutionError",
    "catalog_definitions",
    "register_jobs",
    "resolve_handler",
    "resolve_handlers",
]
