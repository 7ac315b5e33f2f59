"""CLI commands for TradeBench.

Commands:
- years: List training years
- questions / guides: Browse reference data
- progress / reset-progress / history: Inspect and manage a user's progress
- config: Show the resolved configuration
- serve: Run the Web API
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, TypeVar

import structlog
import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from tradebench.api import ApiClient, create_api_client
from tradebench.config.app_config import load_app_config
from tradebench.config.years import get_year, list_years
from tradebench.errors import TradeBenchError

T = TypeVar("T")

app = typer.Typer(
    name="tradebench",
    help="Exam preparation for pipe-trade apprentices.",
    no_args_is_help=True,
)

console = Console()


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show info and debug logs"),
) -> None:
    level = logging.DEBUG if verbose else logging.WARNING
    structlog.configure(wrapper_class=structlog.make_filtering_bound_logger(level))


def _run(operation: Callable[[ApiClient], Awaitable[T]]) -> T:
    """Run an async operation against the configured client, or exit on error."""

    async def runner() -> T:
        async with create_api_client() as client:
            return await operation(client)

    try:
        return asyncio.run(runner())
    except TradeBenchError as e:
        console.print(f"[red]✗ {e.message}[/red]")
        raise typer.Exit(code=1)


def _truncate(text: str, max_len: int = 80) -> str:
    """Truncate text with ellipsis if too long."""
    if len(text) <= max_len:
        return text
    return text[:max_len - 3] + "..."


def _check_year(year: int) -> None:
    if get_year(year) is None:
        console.print(f"[red]✗ Unknown year: {year}[/red]")
        console.print(f"  Available: {', '.join(str(y.number) for y in list_years())}")
        raise typer.Exit(code=1)


# =============================================================================
# REFERENCE DATA
# =============================================================================


@app.command()
def years() -> None:
    """List training years."""
    table = Table(show_header=True, header_style="bold")
    table.add_column("Year", justify="center", width=6)
    table.add_column("Title", style="cyan")
    table.add_column("Description")

    for year in list_years():
        table.add_row(str(year.number), f"{year.icon} {year.title}".strip(), year.description)

    console.print(table)


@app.command()
def questions(
    year: int | None = typer.Option(None, "--year", "-y", help="Training year"),
    section: str | None = typer.Option(None, "--section", "-s", help="Section name"),
    difficulty: str | None = typer.Option(
        None, "--difficulty", "-d", help="easy, medium or hard"
    ),
) -> None:
    """List practice questions."""
    rows = _run(lambda c: c.questions.get_all(year=year, section=section, difficulty=difficulty))

    if not rows:
        console.print("[yellow]⚠ No questions found[/yellow]")
        return

    table = Table(show_header=True, header_style="bold")
    table.add_column("ID", style="cyan")
    table.add_column("Year", justify="center", width=6)
    table.add_column("Section")
    table.add_column("Difficulty", width=10)
    table.add_column("Question", width=60)

    for q in rows:
        table.add_row(q.id, str(q.year), q.section or "-", q.difficulty or "-", _truncate(q.text))

    console.print(table)
    console.print(f"\n[dim]{len(rows)} question(s)[/dim]")


@app.command()
def guides(
    year: int | None = typer.Option(None, "--year", "-y", help="Training year"),
    section: str | None = typer.Option(None, "--section", "-s", help="Section name"),
) -> None:
    """List study guides."""
    rows = _run(lambda c: c.study_guides.get_all(year=year, section=section))

    if not rows:
        console.print("[yellow]⚠ No study guides found[/yellow]")
        return

    table = Table(show_header=True, header_style="bold")
    table.add_column("ID", style="cyan")
    table.add_column("Year", justify="center", width=6)
    table.add_column("Section")
    table.add_column("Title")

    for g in rows:
        table.add_row(g.id, str(g.year), g.section or "-", g.title)

    console.print(table)


# =============================================================================
# PROGRESS
# =============================================================================


def _readiness_color(label: str) -> str:
    return {"READY": "green", "LIKELY": "cyan", "NEEDS WORK": "yellow"}.get(label, "red")


@app.command()
def progress(
    user_id: str = typer.Argument(..., help="User ID"),
    year: int = typer.Argument(..., help="Training year"),
) -> None:
    """Show a user's progress for one year."""
    _check_year(year)
    doc = _run(lambda c: c.user_progress.get(user_id, year))

    stats: dict[str, Any] = doc.statistics
    if not stats.get("total_answered"):
        console.print(f"[yellow]⚠ No progress recorded for {user_id} in year {year}[/yellow]")
        return

    readiness = doc.exam_readiness
    label = readiness.get("label", "NOT READY")
    color = _readiness_color(label)
    header = (
        f"[bold]{readiness.get('score', 0):.1f}[/bold] - [{color}]{label}[/{color}]\n"
        f"Correct: {stats.get('total_correct', 0)}/{stats.get('total_answered', 0)} | "
        f"Accuracy: {stats.get('accuracy', 0):.1f}% | "
        f"Quizzes: {stats.get('quizzes_completed', 0)}\n"
        f"Study streak: {doc.streak_data.get('study_days', 0)} day(s) | "
        f"Best run: {doc.streak_data.get('best_correct', 0)}"
    )
    console.print(Panel(header, title=f"[bold]{user_id} · year {year}[/bold]", expand=False))

    if doc.weak_areas:
        table = Table(show_header=True, header_style="bold", title="Weak areas")
        table.add_column("Section", style="cyan")
        table.add_column("Answered", justify="center")
        table.add_column("Incorrect", justify="center")
        table.add_column("Accuracy", justify="center")
        for area in doc.weak_areas:
            table.add_row(
                area["section"],
                str(area["answered"]),
                str(area["incorrect"]),
                f"{area['accuracy']:.1f}%",
            )
        console.print(table)


@app.command(name="reset-progress")
def reset_progress(
    user_id: str = typer.Argument(..., help="User ID"),
    year: int = typer.Argument(..., help="Training year"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
) -> None:
    """Clear a user's progress for one year."""
    _check_year(year)
    if not yes and not typer.confirm(f"Reset progress for {user_id} in year {year}?"):
        console.print("[dim]Cancelled[/dim]")
        raise typer.Exit(code=0)

    _run(lambda c: c.user_progress.reset(user_id, year))
    console.print(f"[green]✓ Progress reset for {user_id} (year {year})[/green]")


@app.command()
def history(
    user_id: str = typer.Argument(..., help="User ID"),
    year: int = typer.Argument(..., help="Training year"),
    limit: int | None = typer.Option(None, "--limit", "-n", help="Max sessions"),
) -> None:
    """Show completed quiz sessions, newest first."""
    _check_year(year)
    limit = limit or load_app_config().history_limit
    sessions = _run(lambda c: c.quiz_sessions.get_history(user_id, year, limit=limit))

    if not sessions:
        console.print("[yellow]⚠ No completed quizzes[/yellow]")
        return

    table = Table(show_header=True, header_style="bold")
    table.add_column("Completed", style="cyan")
    table.add_column("Mode")
    table.add_column("Score", justify="center")
    table.add_column("Time", justify="right")

    for s in sessions:
        pct = s.score / s.total_questions if s.total_questions else 0.0
        color = "green" if pct >= 0.7 else "red"
        table.add_row(
            (s.completed_at or "")[:19].replace("T", " "),
            s.quiz_mode,
            f"[{color}]{s.score}/{s.total_questions}[/{color}]",
            f"{s.time_taken}s",
        )

    console.print(table)


# =============================================================================
# OPERATIONS
# =============================================================================


@app.command()
def config() -> None:
    """Show the resolved configuration."""
    cfg = load_app_config()
    mode_color = "green" if cfg.backend.is_remote else "yellow"

    console.print(f"  [dim]mode:[/dim]         [{mode_color}]{cfg.backend.mode}[/{mode_color}]")
    if cfg.backend.is_remote:
        console.print(f"  [dim]backend:[/dim]      {cfg.backend.url}")
        admin = "yes" if cfg.backend.service_role_key else "no"
        console.print(f"  [dim]admin key:[/dim]    {admin}")
    else:
        console.print(f"  [dim]database:[/dim]     {cfg.storage.local_db_path}")
    console.print(f"  [dim]default year:[/dim] {cfg.default_year}")
    console.print(f"  [dim]history:[/dim]      {cfg.history_limit}")


@app.command()
def serve(
    host: str = typer.Option("127.0.0.1", "--host", help="Bind address"),
    port: int = typer.Option(8000, "--port", "-p", help="Port"),
    reload: bool = typer.Option(False, "--reload", help="Auto-reload on code changes"),
) -> None:
    """Run the Web API with uvicorn."""
    import uvicorn

    console.print(f"[blue]Serving TradeBench API on http://{host}:{port}[/blue]")
    uvicorn.run(
        "tradebench.web.api:create_app",
        factory=True,
        host=host,
        port=port,
        reload=reload,
    )


if __name__ == "__main__":
    app()
