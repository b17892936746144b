"""SQLite-based automation store for shiftwatch.

Two tables:
    automation_config   — one row per job name (JobConfigStore)
    automation_run_log  — one row per execution attempt (RunLogStore)
"""

from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

from loguru import logger

from shiftwatch.core.cron.types import (
    JobConfig,
    JobResult,
    LastRunStatus,
    RunLogEntry,
    RunStatus,
)
from shiftwatch.memory.base import AutomationBackend

INTERRUPTED_ERROR = "interrupted"


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def _utcnow() -> str:
    return datetime.now(timezone.utc).isoformat()


class AutomationStore(AutomationBackend):
    """SQLite automation store — single source of truth for job state."""

    def __init__(self, db_path: str = "data/shiftwatch.db"):
        self.db_path = db_path
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self._init_db()
        logger.info(f"AutomationStore initialized: {db_path}")

    @contextmanager
    def _get_conn(self):
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode=WAL")
        try:
            yield conn
        finally:
            conn.close()

    def _init_db(self):
        with self._get_conn() as conn:
            conn.executescript(_SCHEMA)
            conn.commit()

    def _update_config(self, job_name: str, assignments: str, params: tuple) -> bool:
        with self._get_conn() as conn:
            cur = conn.execute(
                f"UPDATE automation_config SET {assignments}, updated_at = ? "
                "WHERE job_name = ?",
                (*params, _utcnow(), job_name),
            )
            conn.commit()
        return cur.rowcount > 0

    # ════════════════════════════════════════════════════════════
    # JOB CONFIG
    # ════════════════════════════════════════════════════════════

    def seed_job_config(self, config: JobConfig) -> bool:
        with self._get_conn() as conn:
            cur = conn.execute(
                """INSERT OR IGNORE INTO automation_config
                   (job_name, display_name, description, cron_schedule, category,
                    is_enabled, retry_count, max_retries, next_run_at, updated_at)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                (
                    config.job_name, config.display_name, config.description,
                    config.cron_schedule, config.category, int(config.is_enabled),
                    config.retry_count, config.max_retries,
                    _iso(config.next_run_at), _utcnow(),
                ),
            )
            conn.commit()
        created = cur.rowcount > 0
        if created:
            logger.info(f"Job config seeded: {config.job_name} ({config.cron_schedule})")
        return created

    def get_job_config(self, job_name: str) -> JobConfig | None:
        with self._get_conn() as conn:
            row = conn.execute(
                "SELECT * FROM automation_config WHERE job_name = ?", (job_name,)
            ).fetchone()
        return JobConfig(**dict(row)) if row else None

    def list_job_configs(self) -> list[JobConfig]:
        with self._get_conn() as conn:
            rows = conn.execute(
                "SELECT * FROM automation_config ORDER BY category, job_name"
            ).fetchall()
        return [JobConfig(**dict(r)) for r in rows]

    def set_enabled(
        self, job_name: str, enabled: bool, next_run_at: datetime | None = None
    ) -> bool:
        if enabled:
            return self._update_config(
                job_name,
                "is_enabled = 1, retry_count = 0, next_run_at = ?",
                (_iso(next_run_at),),
            )
        return self._update_config(job_name, "is_enabled = 0", ())

    def set_schedule(
        self, job_name: str, cron_schedule: str, next_run_at: datetime | None
    ) -> bool:
        return self._update_config(
            job_name,
            "cron_schedule = ?, next_run_at = ?",
            (cron_schedule, _iso(next_run_at)),
        )

    def set_next_run(self, job_name: str, next_run_at: datetime | None) -> bool:
        return self._update_config(job_name, "next_run_at = ?", (_iso(next_run_at),))

    def reset_retry_count(self, job_name: str) -> bool:
        return self._update_config(job_name, "retry_count = 0", ())

    def increment_retry_count(self, job_name: str) -> int:
        self._update_config(job_name, "retry_count = retry_count + 1", ())
        with self._get_conn() as conn:
            row = conn.execute(
                "SELECT retry_count FROM automation_config WHERE job_name = ?",
                (job_name,),
            ).fetchone()
        return row["retry_count"] if row else 0

    def record_success(
        self,
        job_name: str,
        ran_at: datetime,
        details: str | None,
        next_run_at: datetime | None,
    ) -> None:
        self._update_config(
            job_name,
            """last_run_at = ?, last_run_status = ?, last_run_details = ?,
               retry_count = 0, next_run_at = ?""",
            (_iso(ran_at), LastRunStatus.SUCCESS, details, _iso(next_run_at)),
        )

    def record_failure(
        self,
        job_name: str,
        ran_at: datetime,
        error: str,
        next_run_at: datetime | None,
    ) -> None:
        self._update_config(
            job_name,
            "last_run_at = ?, last_run_status = ?, last_run_details = ?, next_run_at = ?",
            (_iso(ran_at), LastRunStatus.FAILED, error, _iso(next_run_at)),
        )

    def mark_max_retries(self, job_name: str) -> None:
        self._update_config(
            job_name, "last_run_status = ?", (LastRunStatus.FAILED_MAX_RETRIES,)
        )

    # ════════════════════════════════════════════════════════════
    # RUN LOG
    # ════════════════════════════════════════════════════════════

    def start_run(self, job_name: str, started_at: datetime) -> int:
        with self._get_conn() as conn:
            cur = conn.execute(
                """INSERT INTO automation_run_log (job_name, started_at, status)
                   VALUES (?, ?, ?)""",
                (job_name, _iso(started_at), RunStatus.RUNNING),
            )
            conn.commit()
        return cur.lastrowid

    def complete_run(
        self, run_id: int, completed_at: datetime, result: JobResult
    ) -> bool:
        with self._get_conn() as conn:
            cur = conn.execute(
                """UPDATE automation_run_log
                   SET status = ?, completed_at = ?, items_processed = ?,
                       items_created = ?, items_skipped = ?, details = ?
                   WHERE id = ? AND status = ?""",
                (
                    RunStatus.SUCCESS, _iso(completed_at), result.processed,
                    result.created, result.skipped, result.details,
                    run_id, RunStatus.RUNNING,
                ),
            )
            conn.commit()
        return cur.rowcount > 0

    def fail_run(self, run_id: int, completed_at: datetime, error: str) -> bool:
        with self._get_conn() as conn:
            cur = conn.execute(
                """UPDATE automation_run_log
                   SET status = ?, completed_at = ?, error_message = ?
                   WHERE id = ? AND status = ?""",
                (RunStatus.FAILED, _iso(completed_at), error, run_id, RunStatus.RUNNING),
            )
            conn.commit()
        return cur.rowcount > 0

    def get_run(self, run_id: int) -> RunLogEntry | None:
        with self._get_conn() as conn:
            row = conn.execute(
                "SELECT * FROM automation_run_log WHERE id = ?", (run_id,)
            ).fetchone()
        return RunLogEntry(**dict(row)) if row else None

    def get_runs(
        self,
        job_name: str | None = None,
        status: str | None = None,
        limit: int = 50,
    ) -> list[RunLogEntry]:
        clauses, params = [], []
        if job_name:
            clauses.append("job_name = ?")
            params.append(job_name)
        if status:
            clauses.append("status = ?")
            params.append(status)
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        with self._get_conn() as conn:
            rows = conn.execute(
                f"""SELECT * FROM automation_run_log {where}
                    ORDER BY started_at DESC, id DESC LIMIT ?""",
                (*params, limit),
            ).fetchall()
        return [RunLogEntry(**dict(r)) for r in rows]

    def fail_interrupted_runs(self, started_before: datetime, now: datetime) -> int:
        with self._get_conn() as conn:
            cur = conn.execute(
                """UPDATE automation_run_log
                   SET status = ?, completed_at = ?, error_message = ?
                   WHERE status = ? AND started_at <= ?""",
                (
                    RunStatus.FAILED, _iso(now), INTERRUPTED_ERROR,
                    RunStatus.RUNNING, _iso(started_before),
                ),
            )
            conn.commit()
        if cur.rowcount:
            logger.warning(f"Marked {cur.rowcount} interrupted run(s) as failed")
        return cur.rowcount

    # ── Aggregates ─────────────────────────────────────────────

    def get_run_stats(self, now: datetime) -> dict[str, Any]:
        """Run counts per period, success rate, busiest/most failing job, daily series."""
        today = now.replace(hour=0, minute=0, second=0, microsecond=0)
        week = _iso(today - timedelta(days=7))
        month = _iso(today - timedelta(days=30))
        series_from = _iso(today - timedelta(days=14))

        with self._get_conn() as conn:
            def period(since: str, with_items: bool = False) -> dict[str, Any]:
                extra = (
                    """, COALESCE(SUM(items_processed), 0) AS total_processed,
                       COALESCE(SUM(items_created), 0) AS total_created"""
                    if with_items else ""
                )
                row = conn.execute(
                    f"""SELECT COUNT(*) AS count,
                              COALESCE(SUM(CASE WHEN status = 'success' THEN 1 ELSE 0 END), 0)
                                  AS success_count,
                              COALESCE(SUM(CASE WHEN status = 'failed' THEN 1 ELSE 0 END), 0)
                                  AS failed_count{extra}
                        FROM automation_run_log WHERE started_at >= ?""",
                    (since,),
                ).fetchone()
                return dict(row)

            today_runs = period(_iso(today))
            week_runs = period(week)
            month_runs = period(month, with_items=True)

            most_active = conn.execute(
                """SELECT arl.job_name, COUNT(*) AS run_count, ac.display_name
                   FROM automation_run_log arl
                   LEFT JOIN automation_config ac ON arl.job_name = ac.job_name
                   WHERE arl.started_at >= ?
                   GROUP BY arl.job_name
                   ORDER BY run_count DESC, arl.job_name
                   LIMIT 1""",
                (month,),
            ).fetchone()

            most_failed = conn.execute(
                """SELECT arl.job_name, COUNT(*) AS fail_count, ac.display_name
                   FROM automation_run_log arl
                   LEFT JOIN automation_config ac ON arl.job_name = ac.job_name
                   WHERE arl.status = 'failed' AND arl.started_at >= ?
                   GROUP BY arl.job_name
                   ORDER BY fail_count DESC, arl.job_name
                   LIMIT 1""",
                (month,),
            ).fetchone()

            series = conn.execute(
                """SELECT substr(started_at, 1, 10) AS day,
                          COUNT(*) AS total,
                          SUM(CASE WHEN status = 'success' THEN 1 ELSE 0 END) AS success,
                          SUM(CASE WHEN status = 'failed' THEN 1 ELSE 0 END) AS failed
                   FROM automation_run_log
                   WHERE started_at >= ?
                   GROUP BY day
                   ORDER BY day""",
                (series_from,),
            ).fetchall()

            job_counts = conn.execute(
                """SELECT COUNT(*) AS total,
                          COALESCE(SUM(CASE WHEN is_enabled = 1 THEN 1 ELSE 0 END), 0)
                              AS enabled,
                          COALESCE(SUM(CASE WHEN is_enabled = 0 THEN 1 ELSE 0 END), 0)
                              AS disabled
                   FROM automation_config"""
            ).fetchone()

        total = month_runs["count"]
        success_rate = (
            round(month_runs["success_count"] / total * 100) if total else 100
        )
        return {
            "today": today_runs,
            "week": week_runs,
            "month": month_runs,
            "success_rate": success_rate,
            "most_active": dict(most_active) if most_active else None,
            "most_failed": dict(most_failed) if most_failed else None,
            "runs_over_time": [dict(r) for r in series],
            "job_counts": dict(job_counts),
        }


# ════════════════════════════════════════════════════════════
# SCHEMA
# ════════════════════════════════════════════════════════════

_SCHEMA = """
-- 1. Per-job settings + last outcome summary
CREATE TABLE IF NOT EXISTS automation_config (
    job_name TEXT PRIMARY KEY,
    display_name TEXT NOT NULL DEFAULT '',
    description TEXT NOT NULL DEFAULT '',
    cron_schedule TEXT NOT NULL,
    category TEXT NOT NULL DEFAULT 'general',
    is_enabled INTEGER NOT NULL DEFAULT 1,
    retry_count INTEGER NOT NULL DEFAULT 0,
    max_retries INTEGER NOT NULL DEFAULT 3,
    last_run_at TEXT,
    last_run_status TEXT,
    last_run_details TEXT,
    next_run_at TEXT,
    updated_at TEXT
);

-- 2. Execution attempts (audit trail)
CREATE TABLE IF NOT EXISTS automation_run_log (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    job_name TEXT NOT NULL,
    started_at TEXT NOT NULL,
    completed_at TEXT,
    status TEXT NOT NULL DEFAULT 'running',
    items_processed INTEGER NOT NULL DEFAULT 0,
    items_created INTEGER NOT NULL DEFAULT 0,
    items_skipped INTEGER NOT NULL DEFAULT 0,
    error_message TEXT,
    details TEXT
);
CREATE INDEX IF NOT EXISTS idx_run_log_job ON automation_run_log(job_name, started_at DESC);
CREATE INDEX IF NOT EXISTS idx_run_log_started ON automation_run_log(started_at DESC);
"""
