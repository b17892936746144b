"""shiftwatch — automation scheduling and execution engine for the staffing CRM."""

__version__ = "0.4.0"
