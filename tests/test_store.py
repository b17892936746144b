"""Tests for shiftwatch.memory.store."""

from datetime import datetime, timedelta
from zoneinfo import ZoneInfo

import pytest

from shiftwatch.core.cron.types import JobConfig, JobResult
from shiftwatch.memory.store import AutomationStore

TZ = ZoneInfo("Asia/Jerusalem")


@pytest.fixture
def store(tmp_path):
    return AutomationStore(str(tmp_path / "test.db"))


def _config(name="daily-shift-reminders", schedule="0 7 * * *", **kw):
    return JobConfig(job_name=name, cron_schedule=schedule, display_name=name, **kw)


def _now():
    return datetime.now(TZ)


# ── Job config ───────────────────────────────────────────────


def test_seed_creates_row(store):
    assert store.seed_job_config(_config(category="notifications"))
    cfg = store.get_job_config("daily-shift-reminders")
    assert cfg.cron_schedule == "0 7 * * *"
    assert cfg.category == "notifications"
    assert cfg.is_enabled is True
    assert cfg.retry_count == 0
    assert cfg.max_retries == 3
    assert cfg.last_run_status is None
    assert cfg.updated_at is not None


def test_seed_is_idempotent(store):
    """Seeding an existing name keeps the stored row."""
    store.seed_job_config(_config())
    store.set_schedule("daily-shift-reminders", "0 6 * * *", None)

    assert store.seed_job_config(_config()) is False
    assert store.get_job_config("daily-shift-reminders").cron_schedule == "0 6 * * *"
    assert len(store.list_job_configs()) == 1


def test_get_unknown(store):
    assert store.get_job_config("nope") is None
    assert store.set_enabled("nope", False) is False
    assert store.set_schedule("nope", "0 7 * * *", None) is False


def test_list_sorted_by_category(store):
    store.seed_job_config(_config("b-job", category="notifications"))
    store.seed_job_config(_config("a-job", category="notifications"))
    store.seed_job_config(_config("z-job", category="alerts"))
    assert [c.job_name for c in store.list_job_configs()] == ["z-job", "a-job", "b-job"]


def test_enable_resets_retry_count(store):
    store.seed_job_config(_config())
    store.increment_retry_count("daily-shift-reminders")
    store.set_enabled("daily-shift-reminders", False)

    cfg = store.get_job_config("daily-shift-reminders")
    assert cfg.is_enabled is False
    assert cfg.retry_count == 1  # disabling keeps the count

    next_at = _now() + timedelta(hours=1)
    store.set_enabled("daily-shift-reminders", True, next_at)
    cfg = store.get_job_config("daily-shift-reminders")
    assert cfg.is_enabled is True
    assert cfg.retry_count == 0
    assert cfg.next_run_at == next_at


def test_retry_count(store):
    store.seed_job_config(_config())
    assert store.increment_retry_count("daily-shift-reminders") == 1
    assert store.increment_retry_count("daily-shift-reminders") == 2
    store.reset_retry_count("daily-shift-reminders")
    assert store.get_job_config("daily-shift-reminders").retry_count == 0


def test_record_success_and_failure(store):
    store.seed_job_config(_config())
    store.increment_retry_count("daily-shift-reminders")

    store.record_failure("daily-shift-reminders", _now(), "smtp down", None)
    cfg = store.get_job_config("daily-shift-reminders")
    assert cfg.last_run_status == "failed"
    assert cfg.last_run_details == "smtp down"
    assert cfg.retry_count == 1

    store.record_success("daily-shift-reminders", _now(), "sent 4", None)
    cfg = store.get_job_config("daily-shift-reminders")
    assert cfg.last_run_status == "success"
    assert cfg.last_run_details == "sent 4"
    assert cfg.retry_count == 0

    store.mark_max_retries("daily-shift-reminders")
    assert store.get_job_config("daily-shift-reminders").last_run_status == "failed_max_retries"


# ── Run log ──────────────────────────────────────────────────


def test_run_lifecycle_success(store):
    run_id = store.start_run("daily-shift-reminders", _now())
    entry = store.get_run(run_id)
    assert entry.status == "running"
    assert entry.completed_at is None

    assert store.complete_run(
        run_id, _now(), JobResult(processed=5, created=2, skipped=3, details="ok")
    )
    entry = store.get_run(run_id)
    assert entry.status == "success"
    assert (entry.items_processed, entry.items_created, entry.items_skipped) == (5, 2, 3)
    assert entry.details == "ok"
    assert entry.completed_at is not None


def test_run_lifecycle_failure(store):
    run_id = store.start_run("daily-shift-reminders", _now())
    assert store.fail_run(run_id, _now(), "boom")
    entry = store.get_run(run_id)
    assert entry.status == "failed"
    assert entry.error_message == "boom"


def test_finalized_run_is_immutable(store):
    run_id = store.start_run("daily-shift-reminders", _now())
    store.complete_run(run_id, _now(), JobResult(processed=1))

    assert store.fail_run(run_id, _now(), "late") is False
    assert store.complete_run(run_id, _now(), JobResult(processed=9)) is False
    entry = store.get_run(run_id)
    assert entry.status == "success"
    assert entry.items_processed == 1
    assert entry.error_message is None


def test_get_runs_newest_first_and_filters(store):
    base = _now() - timedelta(hours=3)
    ids = [store.start_run("job-a", base + timedelta(minutes=i)) for i in range(3)]
    other = store.start_run("job-b", base + timedelta(minutes=10))
    store.fail_run(ids[0], _now(), "x")

    assert [r.id for r in store.get_runs()] == [other, ids[2], ids[1], ids[0]]
    assert [r.id for r in store.get_runs(job_name="job-a", limit=2)] == [ids[2], ids[1]]
    assert [r.id for r in store.get_runs(status="failed")] == [ids[0]]


def test_fail_interrupted_runs(store):
    now = _now()
    stale = store.start_run("job-a", now - timedelta(hours=1))
    fresh = store.start_run("job-a", now - timedelta(seconds=5))
    done = store.start_run("job-a", now - timedelta(hours=2))
    store.complete_run(done, now - timedelta(hours=2), JobResult())

    assert store.fail_interrupted_runs(now - timedelta(minutes=10), now) == 1
    assert store.get_run(stale).status == "failed"
    assert store.get_run(stale).error_message == "interrupted"
    assert store.get_run(fresh).status == "running"
    assert store.get_run(done).status == "success"


# ── Stats ────────────────────────────────────────────────────


def test_stats_empty(store):
    stats = store.get_run_stats(_now())
    assert stats["today"]["count"] == 0
    assert stats["month"]["total_processed"] == 0
    assert stats["success_rate"] == 100
    assert stats["most_active"] is None
    assert stats["most_failed"] is None
    assert stats["runs_over_time"] == []
    assert stats["job_counts"] == {"total": 0, "enabled": 0, "disabled": 0}


def test_stats_counts(store):
    store.seed_job_config(_config("job-a"))
    store.seed_job_config(_config("job-b"))
    store.set_enabled("job-b", False)

    now = _now()
    for _ in range(3):
        run_id = store.start_run("job-a", now)
        store.complete_run(run_id, now, JobResult(processed=4, created=1))
    run_id = store.start_run("job-b", now)
    store.fail_run(run_id, now, "boom")

    stats = store.get_run_stats(now)
    assert stats["today"] == {"count": 4, "success_count": 3, "failed_count": 1}
    assert stats["month"]["total_processed"] == 12
    assert stats["month"]["total_created"] == 3
    assert stats["success_rate"] == 75
    assert stats["most_active"]["job_name"] == "job-a"
    assert stats["most_active"]["run_count"] == 3
    assert stats["most_failed"] == {"job_name": "job-b", "fail_count": 1, "display_name": "job-b"}
    assert stats["runs_over_time"][-1]["total"] == 4
    assert stats["job_counts"] == {"total": 2, "enabled": 1, "disabled": 1}
