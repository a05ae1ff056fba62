"""CLI entry point for playtime.

Uses Click to expose the ``playtime`` command group.  Subcommands build
and store practice plans from score highlights and run them as timed
sessions in the terminal.
"""

from __future__ import annotations

import asyncio
import sys
from pathlib import Path
from typing import Callable, Optional, TypeVar

import click

import playtime
from playtime.cli.console import format_minutes, run_plan
from playtime.config import Settings, load_settings
from playtime.core.plan import PRACTICE_METHODS, PracticePlan
from playtime.core.planner import PracticePlanner
from playtime.errors import PlaytimeError
from playtime.logging import configure_logging
from playtime.storage import JsonHighlightSource, JsonPlanStore

T = TypeVar("T")


def _run(action: Callable[[], T]) -> T:
    """Execute *action*, converting ``PlaytimeError`` to a CLI error.

    On ``PlaytimeError`` the message is printed to stderr and the process
    exits with code 1.
    """
    try:
        return action()
    except PlaytimeError as exc:
        click.echo(str(exc), err=True)
        sys.exit(1)


def _planner(settings: Settings) -> PracticePlanner:
    return PracticePlanner(
        JsonPlanStore(settings.data_dir),
        JsonHighlightSource(settings.data_dir),
        settings.plan_defaults,
    )


def _describe(plan: PracticePlan) -> str:
    return (
        f"[{plan.id}] {plan.name}: {plan.total_sections} sections, "
        f"{format_minutes(plan.estimated_time_minutes)} estimated of "
        f"{format_minutes(plan.duration_minutes)} (focus: {plan.focus})"
    )


@click.group()
@click.version_option(version=playtime.__version__, prog_name="playtime")
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Path to a config.yaml file.",
)
@click.option("-v", "--verbose", is_flag=True, help="Log engine activity to stderr.")
@click.pass_context
def cli(ctx: click.Context, config_path: Optional[Path], verbose: bool) -> None:
    """playtime: timed practice sessions built from score highlights."""
    settings = _run(lambda: load_settings(config_path))
    configure_logging("DEBUG" if verbose else settings.log_level, format_json=settings.log_json)
    ctx.obj = settings


@cli.command()
@click.argument("score_id")
@click.pass_obj
def plans(settings: Settings, score_id: str) -> None:
    """List the practice plans saved for SCORE_ID."""
    found = _run(lambda: _planner(settings).plans_for_score(score_id))
    if not found:
        click.echo(f"No practice plans for score {score_id}")
        sys.exit(1)
    for plan in found:
        click.echo(_describe(plan))


@cli.command()
@click.argument("score_id")
@click.option("--name", default=None, help="Session name.")
@click.option("--focus", default=None, help="Session focus, e.g. accuracy or tempo.")
@click.option("--duration", type=int, default=None, help="Session budget in minutes.")
@click.option("--minutes", type=float, default=None, help="Target minutes for every section.")
@click.option(
    "--method",
    default=None,
    help=f"Practice method for every section ({', '.join(PRACTICE_METHODS)}).",
)
@click.pass_obj
def plan(
    settings: Settings,
    score_id: str,
    name: Optional[str],
    focus: Optional[str],
    duration: Optional[int],
    minutes: Optional[float],
    method: Optional[str],
) -> None:
    """Create or update the practice plan for SCORE_ID from its highlights."""
    planner = _planner(settings)
    _run(lambda: planner.select_score(score_id))

    entries = planner.draft_entries()
    for entry in entries:
        if minutes is not None:
            entry["target_time_minutes"] = minutes
        if method is not None:
            entry["practice_method"] = method

    header = planner.draft_header()
    overrides = {"name": name, "focus": focus, "duration_minutes": duration}
    header.update({key: value for key, value in overrides.items() if value is not None})

    action = "updated" if planner.is_editing_existing_plan else "saved"
    saved = _run(lambda: planner.save(entries, header))
    click.echo(f'Practice plan "{saved.name}" {action}')
    click.echo(_describe(saved))


@cli.command()
@click.argument("plan_id", type=int)
@click.pass_obj
def show(settings: Settings, plan_id: int) -> None:
    """Show the sections of practice plan PLAN_ID."""
    found = _run(lambda: _planner(settings).load_plan(plan_id))
    click.echo(_describe(found))
    for number, section in enumerate(found.sections, start=1):
        line = (
            f"  {number}. highlight {section.highlight_id}: {section.practice_method}, "
            f"{format_minutes(section.target_time_minutes)}"
        )
        if section.notes:
            line += f" ({section.notes})"
        click.echo(line)


@cli.command()
@click.argument("plan_id", type=int)
@click.pass_obj
def delete(settings: Settings, plan_id: int) -> None:
    """Delete practice plan PLAN_ID."""
    _run(lambda: _planner(settings).delete_plan(plan_id))
    click.echo(f"Practice plan {plan_id} deleted")


@cli.command()
@click.argument("plan_id", type=int)
@click.pass_obj
def run(settings: Settings, plan_id: int) -> None:
    """Run practice plan PLAN_ID as a timed session."""
    found = _run(lambda: _planner(settings).load_plan(plan_id))
    highlights = JsonHighlightSource(settings.data_dir)
    try:
        summary = _run(
            lambda: asyncio.run(run_plan(found, settings.tick_interval_seconds, highlight_store=highlights))
        )
    except KeyboardInterrupt:
        click.echo("\nSession interrupted", err=True)
        sys.exit(130)
    sys.exit(0 if summary.completed else 1)
