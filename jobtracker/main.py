"""jobtracker CLI entry point."""

from __future__ import annotations

import asyncio
import json
from datetime import datetime
from typing import TYPE_CHECKING, Any, Awaitable, Callable, TypeVar

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

app = typer.Typer(
    name="jobtracker",
    no_args_is_help=True,
)
template_app = typer.Typer(help="Manage recurring job templates.", no_args_is_help=True)
app.add_typer(template_app, name="template")

console = Console()

if TYPE_CHECKING:
    from .config.schema import Config
    from .store.base import JobStore

T = TypeVar("T")


def _version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        from . import __version__

        console.print(f"jobtracker v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
) -> None:
    """Recurring job expansion for the job tracker."""
    pass


def _load() -> Config:
    from .config.loader import configure_logging, ensure_dirs, load_config

    config = load_config()
    configure_logging(config)
    ensure_dirs(config)
    return config


def _with_store(config: Config, fn: Callable[[JobStore], Awaitable[T]]) -> T:
    """Open the configured store, run ``fn`` against it and close it."""
    from .store import open_store

    async def runner() -> T:
        store = open_store(config)
        try:
            return await fn(store)
        finally:
            await store.close()

    return asyncio.run(runner())


def _parse_when(value: str | None, option: str) -> datetime | None:
    from .jobs.types import parse_timestamp

    if value is None:
        return None
    try:
        return parse_timestamp(value)
    except ValueError:
        console.print(f"[red]{option} must be an ISO-8601 timestamp, got '{value}'[/red]")
        raise typer.Exit(1)


def _fmt(value: datetime | None) -> str:
    return value.strftime("%Y-%m-%d %H:%M") if value else "-"


@app.command()
def run(
    now: str = typer.Option(None, "--now", help="Reference time (ISO-8601), defaults to now."),
    as_json: bool = typer.Option(False, "--json", help="Print the summary as JSON."),
) -> None:
    """Run one expansion and cleanup pass."""
    from .recurrence.service import RecurrenceService

    config = _load()
    when = _parse_when(now, "--now")

    summary = _with_store(
        config, lambda store: RecurrenceService.from_config(config, store).run_once(when)
    )

    if as_json:
        console.print_json(json.dumps(summary.to_dict()))
    else:
        console.print(
            Panel.fit(
                f"[bold]Instances created:[/bold] {summary.instances_created}\n"
                f"[bold]Templates processed:[/bold] {summary.templates_processed}\n"
                f"[bold]Instances retired:[/bold] {summary.instances_retired}\n"
                f"[bold]Errors:[/bold] {summary.errors}",
                title="Recurrence pass",
                border_style="red" if summary.errors else "green",
            )
        )
    if summary.errors:
        raise typer.Exit(1)


async def _serve(config: Config) -> None:
    from .recurrence.service import RecurrenceService
    from .store import open_store

    store = open_store(config)
    service = RecurrenceService.from_config(config, store)
    await service.start()
    try:
        await asyncio.Event().wait()
    except asyncio.CancelledError:
        pass
    finally:
        await service.stop()
        await store.close()


@app.command()
def serve() -> None:
    """Expand recurring templates on the configured cron schedule."""
    config = _load()
    console.print(
        Panel.fit(
            "[bold blue]jobtracker[/bold blue] recurrence service is running\n"
            f"Schedule: {config.recurrence.schedule}\n"
            f"Store: {config.store.backend}\n"
            "Press Ctrl+C to stop",
            title="Serve",
            border_style="blue",
        )
    )
    try:
        asyncio.run(_serve(config))
    except KeyboardInterrupt:
        console.print("\n[yellow]Service stopped.[/yellow]")


@app.command()
def cleanup(
    days: int = typer.Option(None, "--days", help="Retention window in days."),
) -> None:
    """Delete completed instances older than the retention window."""
    from datetime import timedelta

    from .recurrence.retention import retire_stale_instances

    config = _load()
    window = timedelta(days=days) if days is not None else config.recurrence.retention_window
    removed = _with_store(config, lambda store: retire_stale_instances(store, window))
    console.print(f"Retired {removed} completed instance(s).")


@app.command()
def complete(job_id: str = typer.Argument(..., help="Job id.")) -> None:
    """Mark a job as completed."""
    from .jobs.manager import JobManager, JobNotFoundError
    from .recurrence.rules import RecurrenceConfigError

    config = _load()
    try:
        job = _with_store(config, lambda store: JobManager(store).complete_job(job_id))
    except JobNotFoundError:
        console.print(f"[red]Job {job_id} not found[/red]")
        raise typer.Exit(1)
    except RecurrenceConfigError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)
    console.print(f"[green]Completed:[/green] {job.title} ({job.id})")


@template_app.command("create")
def template_create(
    title: str = typer.Option(..., "--title", "-t", help="Job title."),
    type: str = typer.Option("weekly", "--type", help="daily, weekly or monthly."),
    interval: int = typer.Option(1, "--interval", "-i", help="Repeat every N units."),
    days: str = typer.Option(None, "--days", help="Weekdays for weekly, e.g. 1,3 (0=Sunday)."),
    day_of_month: int = typer.Option(None, "--day-of-month", help="Day for monthly (1-31)."),
    start: str = typer.Option(None, "--start", help="First possible occurrence (ISO-8601)."),
    end: str = typer.Option(None, "--end", help="Last possible occurrence (ISO-8601)."),
    description: str = typer.Option("", "--description", "-d"),
    priority: str = typer.Option("medium", "--priority", "-p", help="low, medium or high."),
) -> None:
    """Create a recurring template."""
    from .jobs.manager import JobManager
    from .jobs.types import Priority, RecurrencePattern, RecurrenceType
    from .recurrence.rules import RecurrenceConfigError, describe_pattern

    config = _load()
    try:
        pattern = RecurrencePattern(
            type=RecurrenceType(type),
            interval=interval,
            days_of_week=[int(d) for d in days.split(",") if d.strip()] if days else None,
            day_of_month=day_of_month,
        )
        prio = Priority(priority)
    except ValueError as e:
        console.print(f"[red]Invalid option: {e}[/red]")
        raise typer.Exit(1)

    start_at = _parse_when(start, "--start")
    end_at = _parse_when(end, "--end")

    try:
        template = _with_store(
            config,
            lambda store: JobManager(store).create_template(
                title,
                pattern,
                start=start_at,
                end_date=end_at,
                description=description,
                priority=prio,
            ),
        )
    except RecurrenceConfigError as e:
        console.print(f"[red]Invalid recurrence: {e}[/red]")
        raise typer.Exit(1)

    console.print(
        f"[green]Created template[/green] '{template.title}' (id: {template.id}), "
        f"{describe_pattern(template.recurrence_pattern)}, "
        f"first occurrence {_fmt(template.next_occurrence)}"
    )


@template_app.command("list")
def template_list() -> None:
    """List recurring templates."""
    from .recurrence.rules import describe_pattern

    config = _load()
    templates = _with_store(config, lambda store: store.list_recurring_templates())
    if not templates:
        console.print("No recurring templates.")
        return

    table = Table(title="Recurring templates")
    table.add_column("ID", style="dim")
    table.add_column("Title")
    table.add_column("Pattern")
    table.add_column("Next occurrence")
    table.add_column("Ends")
    for t in templates:
        table.add_row(
            t.id,
            t.title,
            describe_pattern(t.recurrence_pattern) if t.recurrence_pattern else "-",
            _fmt(t.next_occurrence),
            _fmt(t.recurrence_end_date),
        )
    console.print(table)


@template_app.command("preview")
def template_preview(
    template_id: str = typer.Argument(..., help="Template id."),
    count: int = typer.Option(5, "--count", "-n", help="Number of occurrences."),
) -> None:
    """Show the upcoming occurrences of a template."""
    from .jobs.manager import JobManager, JobNotFoundError

    config = _load()
    try:
        dates = _with_store(config, lambda store: JobManager(store).preview(template_id, count))
    except JobNotFoundError:
        console.print(f"[red]Template {template_id} not found[/red]")
        raise typer.Exit(1)
    if not dates:
        console.print("No upcoming occurrences.")
        return
    for d in dates:
        console.print(f"  {d.strftime('%a %Y-%m-%d %H:%M')}")


@app.command()
def status() -> None:
    """Show jobtracker configuration."""
    from . import __version__
    from .config.loader import CONFIG_FILE

    config = _load()
    config_exists = CONFIG_FILE.exists()
    store_line: Any = config.store_path if config.store.backend == "json" else config.supabase.url
    console.print(
        Panel.fit(
            f"[bold]Version:[/bold] {__version__}\n"
            f"[bold]Config file:[/bold] {CONFIG_FILE} {'[green](exists)[/green]' if config_exists else '[red](missing)[/red]'}\n"
            f"[bold]Store:[/bold] {config.store.backend} ({store_line or 'not configured'})\n"
            f"\n[bold]Schedule:[/bold] {config.recurrence.schedule}\n"
            f"[bold]Retention:[/bold] {config.recurrence.retention_days} days "
            f"({'enabled' if config.recurrence.retire_completed else 'disabled'})\n"
            f"[bold]Max concurrency:[/bold] {config.recurrence.max_concurrency}\n"
            f"[bold]Log level:[/bold] {config.logging.level}",
            title="jobtracker status",
            border_style="blue",
        )
    )


if __name__ == "__main__":
    app()
