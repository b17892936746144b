"""shiftwatch CLI — Typer-based command-line interface."""

from __future__ import annotations

import asyncio

import typer
from rich.console import Console
from rich.table import Table

from shiftwatch import __version__

app = typer.Typer(
    name="shiftwatch",
    help="shiftwatch - automation scheduling engine",
    no_args_is_help=True,
)

console = Console()


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"shiftwatch v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        None, "--version", "-v", callback=_version_callback, is_eager=True
    ),
) -> None:
    """shiftwatch - automation scheduling engine."""


def _open_scheduler():
    """Config → store → unstarted scheduler, for offline admin commands."""
    from shiftwatch.core.config.loader import load_config
    from shiftwatch.core.cron.scheduler import AutomationScheduler
    from shiftwatch.memory.store import AutomationStore

    config = load_config()
    store = AutomationStore(str(config.db_path))
    return config, store, AutomationScheduler(store, config.automation)


def _fmt(value) -> str:
    if value is None:
        return "-"
    if hasattr(value, "strftime"):
        return value.strftime("%Y-%m-%d %H:%M")
    return str(value)


def _report(result) -> None:
    if result.success:
        console.print(f"[green]{result.message}[/green]")
        return
    console.print(f"[red]Error:[/red] {result.message}")
    raise typer.Exit(code=1)


# ════════════════════════════════════════════════════════════
# run — start API server (and the scheduler with it)
# ════════════════════════════════════════════════════════════


@app.command()
def run(
    port: int | None = typer.Option(None, "--port", "-p", help="Port number"),
    host: str | None = typer.Option(None, "--host", "-h", help="Host address"),
    reload: bool = typer.Option(False, "--reload", help="Enable auto-reload"),
) -> None:
    """Start the API server (uvicorn) with the automation scheduler."""
    import uvicorn

    from shiftwatch.core.config.loader import load_config

    config = load_config()
    host = host or config.api.host
    port = port or config.api.port

    console.print(f"[green]Starting shiftwatch API on {host}:{port}[/green]")
    uvicorn.run("shiftwatch.api.app:app", host=host, port=port, reload=reload)


# ════════════════════════════════════════════════════════════
# jobs / logs / runs / stats — read-only views
# ════════════════════════════════════════════════════════════


@app.command()
def jobs() -> None:
    """List automation jobs and their last outcome."""
    _, _, scheduler = _open_scheduler()
    statuses = scheduler.get_all_statuses()

    if not statuses:
        console.print("[dim]No automation jobs found.[/dim]")
        return

    table = Table(title="Automation Jobs")
    table.add_column("Job", style="cyan")
    table.add_column("Category", style="blue")
    table.add_column("Cron", style="yellow")
    table.add_column("Enabled", style="green")
    table.add_column("Last Run", style="dim")
    table.add_column("Status")
    table.add_column("Retries", justify="right")
    table.add_column("Next Run", style="dim")

    for job in statuses:
        table.add_row(
            job.job_name,
            job.category,
            job.cron_schedule,
            str(job.is_enabled),
            _fmt(job.last_run_at),
            _fmt(job.last_run_status),
            f"{job.retry_count}/{job.max_retries}",
            _fmt(job.next_run_at),
        )

    console.print(table)


def _runs_table(title: str, entries) -> Table:
    table = Table(title=title)
    table.add_column("ID", justify="right", style="dim")
    table.add_column("Job", style="cyan")
    table.add_column("Started", style="dim")
    table.add_column("Status")
    table.add_column("Processed", justify="right")
    table.add_column("Created", justify="right")
    table.add_column("Skipped", justify="right")
    table.add_column("Error / Details", style="white")

    colors = {"success": "green", "failed": "red", "running": "yellow"}
    for e in entries:
        color = colors.get(e.status, "white")
        table.add_row(
            str(e.id),
            e.job_name,
            _fmt(e.started_at),
            f"[{color}]{e.status}[/{color}]",
            str(e.items_processed),
            str(e.items_created),
            str(e.items_skipped),
            e.error_message or e.details or "",
        )
    return table


@app.command()
def logs(
    job_name: str = typer.Argument(help="Job name"),
    limit: int = typer.Option(20, "--limit", "-n", help="Number of runs"),
) -> None:
    """Show the run history of one job."""
    _, store, _ = _open_scheduler()
    entries = store.get_runs(job_name=job_name, limit=limit)

    if not entries:
        console.print(f"[dim]No runs recorded for {job_name}.[/dim]")
        return
    console.print(_runs_table(f"Runs: {job_name}", entries))


@app.command()
def runs(
    limit: int = typer.Option(20, "--limit", "-n", help="Number of runs"),
    status: str | None = typer.Option(None, "--status", "-s", help="running / success / failed"),
) -> None:
    """Show recent runs across all jobs."""
    _, store, _ = _open_scheduler()
    entries = store.get_runs(status=status, limit=limit)

    if not entries:
        console.print("[dim]No runs recorded.[/dim]")
        return
    console.print(_runs_table("Recent Runs", entries))


@app.command()
def stats() -> None:
    """Show run statistics."""
    _, store, scheduler = _open_scheduler()
    data = store.get_run_stats(scheduler.now())

    table = Table(title="Automation Stats")
    table.add_column("Key", style="cyan")
    table.add_column("Value", style="green")

    for period in ("today", "week", "month"):
        p = data[period]
        table.add_row(
            f"Runs ({period})",
            f"{p['count']} ({p['success_count']} ok, {p['failed_count']} failed)",
        )
    table.add_row("Success rate (30d)", f"{data['success_rate']}%")
    table.add_row("Items processed (30d)", str(data["month"]["total_processed"]))
    table.add_row("Items created (30d)", str(data["month"]["total_created"]))
    if data["most_active"]:
        table.add_row(
            "Most active",
            f"{data['most_active']['job_name']} ({data['most_active']['run_count']})",
        )
    if data["most_failed"]:
        table.add_row(
            "Most failed",
            f"{data['most_failed']['job_name']} ({data['most_failed']['fail_count']})",
        )
    counts = data["job_counts"]
    table.add_row(
        "Jobs", f"{counts['total']} ({counts['enabled']} enabled, {counts['disabled']} paused)"
    )

    console.print(table)


# ════════════════════════════════════════════════════════════
# pause / resume / reschedule / trigger — admin controls
# ════════════════════════════════════════════════════════════


@app.command()
def pause(job_name: str = typer.Argument(help="Job name")) -> None:
    """Pause scheduled runs of a job."""
    _, _, scheduler = _open_scheduler()
    _report(scheduler.pause(job_name))


@app.command()
def resume(job_name: str = typer.Argument(help="Job name")) -> None:
    """Resume scheduled runs of a job."""
    _, _, scheduler = _open_scheduler()
    _report(scheduler.resume(job_name))


@app.command()
def reschedule(
    job_name: str = typer.Argument(help="Job name"),
    cron_expr: str = typer.Argument(help='5-field cron expression, e.g. "0 7 * * *"'),
) -> None:
    """Change a job's cron schedule."""
    _, _, scheduler = _open_scheduler()
    _report(scheduler.reschedule(job_name, cron_expr))


@app.command()
def trigger(job_name: str = typer.Argument(help="Job name")) -> None:
    """Run a job now in this process, even if it is paused.

    Uses the handlers configured under ``automation.handlers``. A failure is
    recorded, but its retry only fires inside a running server.
    """
    from shiftwatch.jobs.loader import HandlerResolutionError, register_jobs, resolve_handlers

    config, _, scheduler = _open_scheduler()
    try:
        handlers = resolve_handlers(config.automation.handlers)
    except HandlerResolutionError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(code=1)

    async def _trigger():
        register_jobs(scheduler, config.automation, handlers)
        return await scheduler.trigger_now(job_name)

    outcome = asyncio.run(_trigger())
    if outcome.success:
        c = outcome.counts
        console.print(
            f"[green]{outcome.message}[/green] in {outcome.duration_ms}ms "
            f"(processed={c['processed']}, created={c['created']}, skipped={c['skipped']})"
        )
        if outcome.details:
            console.print(outcome.details)
        return
    console.print(f"[red]Error:[/red] {outcome.message}")
    raise typer.Exit(code=1)


if __name__ == "__main__":
    app()
