"""CLI entry point for lifestream — built with Typer."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import date, datetime
from typing import Iterator, List, Optional

import typer
from rich.console import Console
from rich.markdown import Markdown
from rich.table import Table

from lifestream.core.errors import ConfigError, LifestreamError, UpstreamUnavailable

app = typer.Typer(
    name="lifestream",
    help="Journal logs in, periodic reports and cues digests out.",
    no_args_is_help=True,
)
log_app = typer.Typer(help="Record and browse journal entries.")
report_app = typer.Typer(help="Generate and manage reports.")
todo_app = typer.Typer(help="Manage todo items.")
service_app = typer.Typer(help="Background service management.")

app.add_typer(log_app, name="log")
app.add_typer(report_app, name="report")
app.add_typer(todo_app, name="todo")
app.add_typer(service_app, name="service")

console = Console()


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show pipeline logging"),
) -> None:
    if verbose:
        from rich.logging import RichHandler

        logging.basicConfig(
            level=logging.INFO,
            format="%(message)s",
            handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        )


@contextmanager
def _errors() -> Iterator[None]:
    """Print library errors in red and exit non-zero."""
    try:
        yield
    except UpstreamUnavailable as e:
        console.print(f"[red]LLM backend unavailable:[/red] {e.message}")
        raise typer.Exit(code=2)
    except LifestreamError as e:
        console.print(f"[red]{e.message}[/red]")
        raise typer.Exit(code=1)
    except (ConfigError, FileNotFoundError) as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(code=1)


def _components(config: str | None = None):
    from lifestream.core.config import load_config
    from lifestream.service import build_components

    return build_components(load_config(config))


def _fmt_millis(ts: int) -> str:
    return datetime.fromtimestamp(ts / 1000).strftime("%Y-%m-%d %H:%M")


# ── Log ─────────────────────────────────────────────────────────────────────

@log_app.command("add")
def log_add(
    text: str = typer.Argument(..., help="Entry text"),
    tag: Optional[List[str]] = typer.Option(None, "--tag", "-t", help="Tag (repeatable)"),
    config: Optional[str] = typer.Option(None, "--config", "-c", help="Path to config"),
) -> None:
    """Record a journal entry."""
    with _errors():
        parts = _components(config)
        entry = parts.logs.append_log(parts.reports.user_id, text, tag or ())
    console.print(f"[green]Logged[/green] {entry.id[:8]} at {_fmt_millis(entry.timestamp)}")


@log_app.command("ls")
def log_ls(
    start: Optional[str] = typer.Option(None, "--date", "-d", help="Day (YYYY-MM-DD), default today"),
    end: Optional[str] = typer.Option(None, "--end", help="Last day of a range"),
    config: Optional[str] = typer.Option(None, "--config", "-c", help="Path to config"),
) -> None:
    """List journal entries of a day or range."""
    from lifestream.core.models import parse_period_date

    with _errors():
        start_day = parse_period_date(start, "date") if start else date.today()
        end_day = parse_period_date(end, "end") if end else start_day
        parts = _components(config)
        entries = parts.logs.list_logs(parts.reports.user_id, start_day, end_day)

    if not entries:
        console.print("[dim]No entries.[/dim]")
        return
    for e in entries:
        tags = f" [magenta]{', '.join(e.tags)}[/magenta]" if e.tags else ""
        console.print(f"[dim]{_fmt_millis(e.timestamp)}[/dim] [cyan]{e.id[:8]}[/cyan] {e.content}{tags}")


def _resolve_log_id(parts, prefix: str) -> str:
    """Full entry id for an id or the 8-char prefix that ``log ls`` shows."""
    from lifestream.core.errors import NotFoundError, ValidationError

    matches = [
        e.id for e in parts.logs.list_logs(parts.reports.user_id, date.min, date.max)
        if e.id.startswith(prefix)
    ]
    if not matches:
        raise NotFoundError(f"Log entry not found: {prefix}")
    if len(matches) > 1:
        raise ValidationError(f"Ambiguous log id prefix: {prefix}")
    return matches[0]


@log_app.command("edit")
def log_edit(
    entry_id: str = typer.Argument(..., help="Entry ID (or its first 8 chars)"),
    text: str = typer.Argument(..., help="New entry text"),
    tag: Optional[List[str]] = typer.Option(None, "--tag", "-t", help="Replace tags (repeatable)"),
    config: Optional[str] = typer.Option(None, "--config", "-c", help="Path to config"),
) -> None:
    """Rewrite a journal entry; its time stays the same."""
    with _errors():
        parts = _components(config)
        entry = parts.logs.update_log(
            parts.reports.user_id, _resolve_log_id(parts, entry_id), text, tag or None
        )
    console.print(f"[green]Updated[/green] {entry.id[:8]}")


@log_app.command("rm")
def log_rm(
    entry_id: str = typer.Argument(..., help="Entry ID (or its first 8 chars)"),
    config: Optional[str] = typer.Option(None, "--config", "-c", help="Path to config"),
) -> None:
    """Delete a journal entry."""
    with _errors():
        parts = _components(config)
        full_id = _resolve_log_id(parts, entry_id)
        parts.logs.delete_log(parts.reports.user_id, full_id)
    console.print(f"[green]Entry {full_id[:8]} deleted.[/green]")


# ── Report ──────────────────────────────────────────────────────────────────

@report_app.command("generate")
def report_generate(
    report_type: str = typer.Argument(..., help="DAILY, WEEKLY, MONTHLY or YEARLY"),
    start: str = typer.Argument(..., help="Period start (YYYY-MM-DD)"),
    end: Optional[str] = typer.Argument(None, help="Period end, defaults to start"),
    language: str = typer.Option("en", "--lang", "-l", help="Output language: en, zh"),
    name: Optional[str] = typer.Option(None, "--name", "-n", help="Human period name"),
    force: bool = typer.Option(False, "--force", "-f", help="Regenerate an existing report"),
    config: Optional[str] = typer.Option(None, "--config", "-c", help="Path to config"),
) -> None:
    """Generate (or fetch) the report for a period."""
    from lifestream.modules.reports import GenerationRequest

    with _errors():
        request = GenerationRequest.parse(report_type, start, end or start, language, name, force)
        parts = _components(config)
        with console.status("Generating report..."):
            result = parts.reports.generate_report(request)

    report = result.report
    if not result.generated:
        console.print(f"[yellow]Report exists[/yellow] ({report.id}); use --force to regenerate.")
    console.print(Markdown(report.content))
    console.print(f"[dim]{report.type.value} {report.period_start} ~ {report.period_end} — {report.id}[/dim]")


@app.command()
def cues(
    start: str = typer.Argument(..., help="Period start (YYYY-MM-DD)"),
    end: Optional[str] = typer.Argument(None, help="Period end, defaults to start"),
    language: str = typer.Option("en", "--lang", "-l", help="Output language: en, zh"),
    name: Optional[str] = typer.Option(None, "--name", "-n", help="Human period name"),
    report_type: Optional[str] = typer.Option(
        None, "--type", "-t", help="Grouping for long ranges; derived from the range when omitted"
    ),
    config: Optional[str] = typer.Option(None, "--config", "-c", help="Path to config"),
) -> None:
    """Generate a standalone Cues digest (not saved)."""
    from lifestream.modules.reports import GenerationRequest

    with _errors():
        request = GenerationRequest.for_cues(start, end or start, language, name, report_type)
        parts = _components(config)
        with console.status("Generating cues..."):
            content = parts.reports.generate_cues(request)
    console.print(Markdown(content))


@report_app.command("ls")
def report_ls(
    report_type: Optional[str] = typer.Option(None, "--type", "-t", help="Filter by type"),
    config: Optional[str] = typer.Option(None, "--config", "-c", help="Path to config"),
) -> None:
    """List stored reports, newest first."""
    with _errors():
        reports = _components(config).reports.list_reports(report_type)

    if not reports:
        console.print("[dim]No reports.[/dim]")
        return

    table = Table(title="Reports")
    table.add_column("ID", style="cyan")
    table.add_column("Type", style="magenta", width=8)
    table.add_column("Period", style="white")
    table.add_column("Created", style="dim")
    for r in reports:
        period = str(r.period_start) if r.period_start == r.period_end else f"{r.period_start} ~ {r.period_end}"
        table.add_row(r.id, r.type.value, period, _fmt_millis(r.created_at))
    console.print(table)


@report_app.command("show")
def report_show(
    report_id: str = typer.Argument(..., help="Report ID"),
    cues_only: bool = typer.Option(False, "--cues", help="Show only the Cues section"),
    raw: bool = typer.Option(False, "--raw", help="Print Markdown source"),
    config: Optional[str] = typer.Option(None, "--config", "-c", help="Path to config"),
) -> None:
    """Show one report."""
    from lifestream.modules.postprocess import extract_cues_section

    with _errors():
        report = _components(config).reports.get_report(report_id)

    content = report.content
    if cues_only:
        section = extract_cues_section(content)
        if section is None:
            console.print("[dim]This report has no Cues section.[/dim]")
            return
        content = section
    console.print(content if raw else Markdown(content))


@report_app.command("rm")
def report_rm(
    report_id: str = typer.Argument(..., help="Report ID"),
    config: Optional[str] = typer.Option(None, "--config", "-c", help="Path to config"),
) -> None:
    """Delete a report."""
    with _errors():
        _components(config).reports.delete_report(report_id)
    console.print(f"[green]Report {report_id} deleted.[/green]")


@report_app.command("todos")
def report_todos(
    report_id: str = typer.Argument(..., help="Report ID"),
    config: Optional[str] = typer.Option(None, "--config", "-c", help="Path to config"),
) -> None:
    """Add a report's action items to the todo list."""
    from lifestream.modules.todo import sync_action_items

    with _errors():
        parts = _components(config)
        report = parts.reports.get_report(report_id)
        added = sync_action_items(report, parts.todos, parts.reports.user_id)

    if not added:
        console.print("[dim]No new action items.[/dim]")
        return
    for t in added:
        console.print(f"[green]Todo added:[/green] {t['id']} — {t['text']}")


# ── Todo ────────────────────────────────────────────────────────────────────

@todo_app.command("add")
def todo_add(
    text: str = typer.Argument(..., help="Todo text"),
    config: Optional[str] = typer.Option(None, "--config", "-c", help="Path to config"),
) -> None:
    """Add a todo by hand."""
    with _errors():
        parts = _components(config)
        todo = parts.todos.add_todo(parts.reports.user_id, text, source="manual")
    console.print(f"[green]Todo added:[/green] {todo['id']} — {todo['text']}")


@todo_app.command("ls")
def todo_ls(
    all_: bool = typer.Option(False, "--all", "-a", help="Include completed todos"),
    config: Optional[str] = typer.Option(None, "--config", "-c", help="Path to config"),
) -> None:
    """List todos."""
    with _errors():
        parts = _components(config)
        todos = parts.todos.list_todos(parts.reports.user_id, include_done=all_)

    if not todos:
        console.print("[dim]No active todos.[/dim]")
        return

    table = Table(title="Todos")
    table.add_column("ID", style="cyan", width=10)
    table.add_column("Task", style="white")
    table.add_column("Source", style="magenta")
    table.add_column("Done", style="green", width=5)
    for t in todos:
        table.add_row(t["id"], t["text"][:60], t["source"], "x" if t["done"] else "")
    console.print(table)


@todo_app.command("done")
def todo_done(
    todo_id: str = typer.Argument(..., help="Todo ID to mark as done"),
    config: Optional[str] = typer.Option(None, "--config", "-c", help="Path to config"),
) -> None:
    """Mark a todo as completed."""
    with _errors():
        parts = _components(config)
        parts.todos.complete_todo(parts.reports.user_id, todo_id)
    console.print(f"[green]Todo {todo_id} marked as done.[/green]")


@todo_app.command("rm")
def todo_rm(
    todo_id: str = typer.Argument(..., help="Todo ID to delete"),
    config: Optional[str] = typer.Option(None, "--config", "-c", help="Path to config"),
) -> None:
    """Delete a todo."""
    with _errors():
        parts = _components(config)
        parts.todos.remove_todo(parts.reports.user_id, todo_id)
    console.print(f"[green]Todo {todo_id} deleted.[/green]")


# ── Service ─────────────────────────────────────────────────────────────────

@service_app.command("start")
def svc_start(config: Optional[str] = typer.Option(None, "--config", "-c", help="Path to config")) -> None:
    """Start the background service."""
    from lifestream.core.config import load_config
    from lifestream.service import start_service

    with _errors():
        cfg = load_config(config)
    start_service(cfg, config_path=config)


@service_app.command("stop")
def svc_stop() -> None:
    """Stop the background service."""
    from lifestream.service import stop_service

    stop_service()


@service_app.command("status")
def svc_status() -> None:
    """Check service status."""
    from lifestream.service import service_status

    service_status()


if __name__ == "__main__":
    app()
