"""Tests for AutomationScheduler — registration, admin controls, status."""

from __future__ import annotations

from datetime import timedelta
from unittest.mock import AsyncMock

import pytest

from shiftwatch.core.config.schema import AutomationConfig
from shiftwatch.core.cron.scheduler import AutomationScheduler
from shiftwatch.jobs.catalog import CATALOG
from shiftwatch.memory.store import AutomationStore


@pytest.fixture
def store(tmp_path):
    return AutomationStore(str(tmp_path / "test.db"))


@pytest.fixture
def sched(store):
    return AutomationScheduler(store)


@pytest.fixture
def handler():
    return AsyncMock(return_value={"processed": 3, "created": 1, "message": "sent 3"})


# ── Registration ─────────────────────────────────────────────


def test_add_job_seeds_and_registers(sched, store, handler):
    assert sched.add_job(
        "daily-shift-reminders", "0 7 * * *", handler,
        display_name="Today's shift reminders", category="notifications",
    )
    cfg = store.get_job_config("daily-shift-reminders")
    assert cfg.display_name == "Today's shift reminders"
    assert cfg.next_run_at is not None
    assert (cfg.next_run_at.hour, cfg.next_run_at.minute) == (7, 0)
    assert sched.registry.is_registered("daily-shift-reminders")
    assert sched.registry.is_active("daily-shift-reminders")


def test_add_job_display_name_defaults_to_job_name(sched, store, handler):
    sched.add_job("custom-job", "0 5 * * *", handler)
    assert store.get_job_config("custom-job").display_name == "custom-job"


def test_persisted_schedule_wins(sched, store, handler):
    """A schedule changed at runtime survives re-registration with the code default."""
    sched.add_job("daily-shift-reminders", "0 7 * * *", handler)
    sched.reschedule("daily-shift-reminders", "0 6 * * *")

    restarted = AutomationScheduler(store)
    restarted.add_job("daily-shift-reminders", "0 7 * * *", handler)
    assert restarted.registry.get("daily-shift-reminders").schedule == "0 6 * * *"
    assert store.get_job_config("daily-shift-reminders").cron_schedule == "0 6 * * *"


def test_disabled_job_registers_paused(sched, store, handler):
    sched.add_job("daily-shift-reminders", "0 7 * * *", handler)
    sched.pause("daily-shift-reminders")

    restarted = AutomationScheduler(store)
    restarted.add_job("daily-shift-reminders", "0 7 * * *", handler)
    assert restarted.registry.is_registered("daily-shift-reminders")
    assert not restarted.registry.is_active("daily-shift-reminders")


def test_add_job_invalid_schedule(sched, store, handler):
    assert sched.add_job("broken", "not a cron", handler) is False
    assert not sched.registry.is_registered("broken")


def test_add_job_rejects_retry_timer_separator(sched, store, handler):
    """A job named like a retry timer id would share its APScheduler id."""
    assert sched.add_job("retry:daily-shift-reminders", "0 7 * * *", handler) is False
    assert store.get_job_config("retry:daily-shift-reminders") is None
    assert not sched.registry.is_registered("retry:daily-shift-reminders")

    assert sched.add_job("daily-shift-reminders", "0 7 * * *", handler)


def test_seed_jobs_idempotent(sched, store):
    assert sched.seed_jobs(CATALOG) == len(CATALOG)
    assert sched.seed_jobs(CATALOG) == 0
    assert len(store.list_job_configs()) == len(CATALOG)


def test_seeded_retry_ceiling_from_config(store):
    sched = AutomationScheduler(store, AutomationConfig(default_max_retries=5))
    sched.add_job("custom-job", "0 5 * * *", AsyncMock())
    assert store.get_job_config("custom-job").max_retries == 5


# ── pause / resume ───────────────────────────────────────────


def test_pause_and_resume(sched, store, handler):
    sched.add_job("daily-shift-reminders", "0 7 * * *", handler)

    result = sched.pause("daily-shift-reminders")
    assert result.success
    assert store.get_job_config("daily-shift-reminders").is_enabled is False
    assert not sched.registry.is_active("daily-shift-reminders")

    # idempotent
    assert sched.pause("daily-shift-reminders").success

    result = sched.resume("daily-shift-reminders")
    assert result.success
    assert store.get_job_config("daily-shift-reminders").is_enabled is True
    assert sched.registry.is_active("daily-shift-reminders")


def test_pause_unregistered_but_persisted(sched, store):
    sched.seed_jobs(CATALOG[:1])
    result = sched.pause(CATALOG[0].job_name)
    assert result.success
    assert store.get_job_config(CATALOG[0].job_name).is_enabled is False


def test_resume_resets_retry_count(sched, store, handler):
    sched.add_job("daily-shift-reminders", "0 7 * * *", handler)
    store.increment_retry_count("daily-shift-reminders")
    sched.pause("daily-shift-reminders")
    sched.resume("daily-shift-reminders")
    assert store.get_job_config("daily-shift-reminders").retry_count == 0


def test_pause_unknown(sched):
    result = sched.pause("nope")
    assert not result.success
    assert result.error_kind == "not_found"
    assert sched.resume("nope").error_kind == "not_found"


# ── reschedule ───────────────────────────────────────────────


def test_reschedule(sched, store, handler):
    sched.add_job("daily-shift-reminders", "0 7 * * *", handler)

    result = sched.reschedule("daily-shift-reminders", "0  9 * * *")
    assert result.success
    cfg = store.get_job_config("daily-shift-reminders")
    assert cfg.cron_schedule == "0 9 * * *"
    assert cfg.next_run_at.hour == 9
    entry = sched.registry.get("daily-shift-reminders")
    assert entry.schedule == "0 9 * * *"
    assert entry.handler is handler


def test_reschedule_keeps_paused_state(sched, store, handler):
    sched.add_job("daily-shift-reminders", "0 7 * * *", handler)
    sched.pause("daily-shift-reminders")
    sched.reschedule("daily-shift-reminders", "0 9 * * *")
    assert not sched.registry.is_active("daily-shift-reminders")
    assert store.get_job_config("daily-shift-reminders").is_enabled is False


def test_reschedule_invalid_changes_nothing(sched, store, handler):
    sched.add_job("daily-shift-reminders", "0 7 * * *", handler)
    before = store.get_job_config("daily-shift-reminders")

    result = sched.reschedule("daily-shift-reminders", "every morning")
    assert not result.success
    assert result.error_kind == "invalid_schedule"

    after = store.get_job_config("daily-shift-reminders")
    assert after.cron_schedule == "0 7 * * *"
    assert after.updated_at == before.updated_at
    assert sched.registry.get("daily-shift-reminders").schedule == "0 7 * * *"


def test_reschedule_unknown_checked_first(sched):
    assert sched.reschedule("nope", "garbage").error_kind == "not_found"


def test_reschedule_unregistered_persists(sched, store):
    sched.seed_jobs(CATALOG[:1])
    name = CATALOG[0].job_name
    assert sched.reschedule(name, "15 7 * * *").success
    assert store.get_job_config(name).cron_schedule == "15 7 * * *"
    assert not sched.registry.is_registered(name)


# ── status ───────────────────────────────────────────────────


def test_all_statuses_unregistered(sched):
    sched.seed_jobs(CATALOG[:3])
    statuses = sched.get_all_statuses()
    assert len(statuses) == 3
    assert all(s.is_registered is False for s in statuses)
    assert all(s.has_pending_retry is False for s in statuses)


def test_status(sched, handler):
    sched.add_job("daily-shift-reminders", "0 7 * * *", handler)
    status = sched.get_status("daily-shift-reminders")
    assert status.is_registered
    assert status.cron_schedule == "0 7 * * *"
    assert sched.get_status("nope") is None


# ── lifecycle ────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_start_recovers_interrupted_runs(sched, store, handler):
    sched.add_job("daily-shift-reminders", "0 7 * * *", handler)
    stale = store.start_run("daily-shift-reminders", sched.now() - timedelta(hours=1))

    await sched.start()
    try:
        assert sched.running
        entry = store.get_run(stale)
        assert entry.status == "failed"
        assert entry.error_message == "interrupted"
    finally:
        await sched.stop()

    assert not sched.registry.names()


def test_recovery_grace_period(store):
    sched = AutomationScheduler(store, AutomationConfig(interrupted_grace_s=600))
    recent = store.start_run("job-a", sched.now() - timedelta(seconds=30))
    assert sched.recover_interrupted_runs() == 0
    assert store.get_run(recent).status == "running"


def test_independent_instances(tmp_path, handler):
    a = AutomationScheduler(AutomationStore(str(tmp_path / "a.db")))
    b = AutomationScheduler(AutomationStore(str(tmp_path / "b.db")))
    a.add_job("daily-shift-reminders", "0 7 * * *", handler)
    assert a.registry.is_registered("daily-shift-reminders")
    assert not b.registry.is_registered("daily-shift-reminders")
