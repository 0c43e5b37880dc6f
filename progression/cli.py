"""
Progression CLI - inspect and reset the local progress store.

Usage:
    progression stats                      # Counts across all users
    progression progress USER              # Lesson progress for a user
    progression attempts USER TEST         # Attempts of a user on a test
    progression unlocked USER 1 2 3        # Unlock status of lessons
    progression reset --user USER --yes    # Clear one user's data
    progression reset --yes                # Clear everything

Debug and support tooling; learners never see this.
"""

from __future__ import annotations

import asyncio
from typing import Annotated

import typer
from rich.console import Console
from rich.table import Table

from progression.config import configure_logging, get_settings
from progression.factory import ProgressionServices, build_services

app = typer.Typer(
    name="progression",
    help="Inspect and reset local lesson progression data",
    add_completion=False,
    rich_markup_mode="rich",
)

console = Console()


def _fmt_time(value) -> str:
    return value.strftime("%Y-%m-%d %H:%M") if value else "-"


async def _with_services(fn):
    services = build_services(get_settings())
    try:
        return await fn(services)
    finally:
        await services.aclose()


# =============================================================================
# Commands
# =============================================================================


@app.command()
def stats() -> None:
    """Show record counts across all users."""

    async def run(services: ProgressionServices):
        return await services.store.get_debug_stats()

    result = asyncio.run(_with_services(run))

    table = Table(title="Local Store")
    table.add_column("Metric", style="cyan")
    table.add_column("Count", justify="right")
    for name, value in result.to_dict().items():
        table.add_row(name.replace("_", " "), str(value))
    console.print(table)


@app.command()
def progress(
    user_id: Annotated[str, typer.Argument(help="User id")],
) -> None:
    """Show lesson progress for a user."""

    async def run(services: ProgressionServices):
        return await services.controller.get_lesson_progress(user_id)

    records = sorted(asyncio.run(_with_services(run)), key=lambda r: r.lesson_id)
    if not records:
        console.print(f"[yellow]No progress recorded for {user_id}[/]")
        return

    table = Table(title=f"Lesson progress: {user_id}")
    table.add_column("Lesson", justify="right", style="cyan")
    table.add_column("Book", justify="right")
    table.add_column("Status")
    table.add_column("Passed")
    table.add_column("Best", justify="right")
    table.add_column("Attempts", justify="right")
    table.add_column("Unlocked")
    for r in records:
        table.add_row(
            str(r.lesson_id),
            str(r.book_id) if r.book_id is not None else "-",
            r.status.value,
            "yes" if r.test_passed else "no",
            f"{r.best_score:g}%",
            str(r.total_attempts),
            _fmt_time(r.unlocked_at),
        )
    console.print(table)


@app.command()
def attempts(
    user_id: Annotated[str, typer.Argument(help="User id")],
    test_id: Annotated[int, typer.Argument(help="Test id")],
) -> None:
    """List a user's attempts on one test."""

    async def run(services: ProgressionServices):
        return await services.store.get_user_test_attempts(user_id, test_id)

    rows = asyncio.run(_with_services(run))
    if not rows:
        console.print(f"[yellow]No attempts on test {test_id} for {user_id}[/]")
        return

    table = Table(title=f"Attempts: {user_id} / test {test_id}")
    table.add_column("#", justify="right", style="cyan")
    table.add_column("Score", justify="right")
    table.add_column("Correct", justify="right")
    table.add_column("Result")
    table.add_column("Started")
    table.add_column("Completed")
    for a in rows:
        result = ("[green]PASSED[/]" if a.passed else "[red]FAILED[/]") if a.is_completed else "[dim]in progress[/]"
        table.add_row(
            str(a.attempt_number),
            f"{a.score:g}%",
            f"{a.correct_answers}/{a.total_questions}",
            result,
            _fmt_time(a.started_at),
            _fmt_time(a.completed_at),
        )
    console.print(table)


@app.command()
def unlocked(
    user_id: Annotated[str, typer.Argument(help="User id")],
    lesson_ids: Annotated[list[int], typer.Argument(help="Lesson ids to check")],
) -> None:
    """Show which lessons are unlocked for a user."""

    async def run(services: ProgressionServices):
        return await services.controller.get_lesson_unlock_status(user_id, lesson_ids)

    status = asyncio.run(_with_services(run))
    for lesson_id, is_unlocked in status.items():
        mark = "[green]unlocked[/]" if is_unlocked else "[red]locked[/]"
        console.print(f"Lesson {lesson_id}: {mark}")


@app.command()
def reset(
    user_id: Annotated[str | None, typer.Option("--user", "-u", help="Only clear this user")] = None,
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Skip confirmation")] = False,
) -> None:
    """Clear local progress data."""
    scope = f"user {user_id}" if user_id else "ALL users"
    if not yes and not typer.confirm(f"Delete local progress for {scope}?"):
        raise typer.Abort()

    async def run(services: ProgressionServices):
        if user_id:
            await services.controller.reset_user_data(user_id)
        else:
            await services.controller.clear_all_data()

    asyncio.run(_with_services(run))
    console.print(f"[green]Cleared local progress for {scope}[/]")


# =============================================================================
# Entry Point
# =============================================================================


def main() -> None:
    """CLI entry point."""
    configure_logging("WARNING")
    app()


if __name__ == "__main__":
    main()
