"""Built-in job catalogue — names, schedules and display metadata.

Handlers are not defined here: message content, invoice math and shift
expansion live in the CRM services and are wired in by name.
"""

from __future__ import annotations

from collections.abc import Mapping

from shiftwatch.core.cron.types import JobDefinition

CATALOG: tuple[JobDefinition, ...] = (
    # Notifications
    JobDefinition(
        job_name="daily-shift-reminders",
        cron_schedule="0 7 * * *",
        display_name="Today's shift reminders",
        description="WhatsApp reminder to every guard assigned to a shift today.",
        category="notifications",
    ),
    JobDefinition(
        job_name="tomorrow-shift-reminders",
        cron_schedule="0 20 * * *",
        display_name="Tomorrow's shift reminders",
        description="Evening reminder for shifts starting tomorrow.",
        category="notifications",
    ),
    JobDefinition(
        job_name="weekly-summary",
        cron_schedule="0 8 * * 1",
        display_name="Weekly summary",
        description="Shifts, events, leads and revenue digest sent to managers.",
        category="notifications",
    ),
    # Alerts
    JobDefinition(
        job_name="overdue-invoice-check",
        cron_schedule="0 9 * * *",
        display_name="Overdue invoices",
        description="Alert managers about sent invoices past their due date.",
        category="alerts",
    ),
    JobDefinition(
        job_name="document-expiry-check",
        cron_schedule="0 8 * * *",
        display_name="Expiring documents",
        description="Employee documents expiring within 14 days.",
        category="alerts",
    ),
    JobDefinition(
        job_name="contract-expiry-check",
        cron_schedule="30 8 * * *",
        display_name="Expiring contracts",
        description="Active customer contracts ending within 30 days.",
        category="alerts",
    ),
    JobDefinition(
        job_name="unassigned-events-check",
        cron_schedule="0 10 * * *",
        display_name="Understaffed events",
        description="Events in the next 3 days with fewer guards than required.",
        category="alerts",
    ),
    JobDefinition(
        job_name="certification-expiry-check",
        cron_schedule="30 7 * * *",
        display_name="Expiring certifications",
        description="Guard certifications expiring within 14 days.",
        category="alerts",
    ),
    JobDefinition(
        job_name="unresolved-incidents-check",
        cron_schedule="0 11 * * *",
        display_name="Unresolved incidents",
        description="Incidents open or under investigation for 48 hours or more.",
        category="alerts",
    ),
    JobDefinition(
        job_name="alert-escalation",
        cron_schedule="*/15 * * * *",
        display_name="Alert escalation",
        description="Escalate unacknowledged alerts past their escalation delay.",
        category="alerts",
    ),
    # Generation
    JobDefinition(
        job_name="auto-shift-generation",
        cron_schedule="0 6 * * 0",
        display_name="Auto shift generation",
        description="Create next week's shifts from auto-generate templates.",
        category="shifts",
    ),
    JobDefinition(
        job_name="monthly-invoices",
        cron_schedule="0 6 1 * *",
        display_name="Monthly invoices",
        description="Draft invoices for active monthly contracts.",
        category="invoices",
    ),
)


def catalog_definitions(
    schedules: Mapping[str, str] | None = None,
    max_retries: int | None = None,
) -> list[JobDefinition]:
    """Catalogue with operator schedule overrides and retry ceiling applied."""
    schedules = schedules or {}
    updates: dict = {}
    if max_retries is not None:
        updates["max_retries"] = max_retries
    return [
        d.model_copy(
            update={**updates, "cron_schedule": schedules.get(d.job_name, d.cron_schedule)}
        )
        for d in CATALOG
    ]
