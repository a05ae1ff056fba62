"""Runs a practice session in the terminal.

Session notifications are echoed with Click, and single-line commands
typed on stdin drive the session while the asyncio loop keeps time.
"""

from __future__ import annotations

import asyncio
import sys
from typing import Any, Callable, Optional, TextIO

import click

from playtime.core.collaborators import HighlightSource, SessionListener
from playtime.core.plan import PracticePlan
from playtime.core.session import SessionOrchestrator, SessionSnapshot, SessionSummary
from playtime.core.timer import format_remaining

HELP_TEXT = (
    "Commands: p = pause/resume, n = next section, r = repeat section, q = quit, "
    "note TEXT, c red|amber|green"
)


def format_minutes(minutes: float) -> str:
    return f"{minutes:g} min"


class ConsoleListener(SessionListener):
    """Echoes session progress and reports the final summary."""

    def __init__(self, on_finished: Callable[[SessionSummary], None], echo: Callable[..., Any] = click.echo) -> None:
        self._on_finished = on_finished
        self._echo = echo

    def on_section_started(self, snapshot: SessionSnapshot) -> None:
        section = snapshot.section
        self._echo(
            f"Section {snapshot.section_number} of {snapshot.total_sections}: "
            f"highlight {section.highlight_id} ({section.practice_method}, "
            f"{format_minutes(section.target_time_minutes)})"
        )
        if section.notes:
            self._echo(f"  Notes: {section.notes}")

    def on_tick(self, remaining_seconds: int) -> None:
        self._echo(f"\r  {format_remaining(remaining_seconds)} remaining ", nl=False)

    def on_pause_changed(self, is_paused: bool) -> None:
        self._echo("\n  Paused" if is_paused else "\n  Resumed")

    def on_section_time_up(self, snapshot: SessionSnapshot) -> None:
        self._echo(f"\n  Time's up for section {snapshot.section_number}!")

    def on_session_completed(self, summary: SessionSummary) -> None:
        self._echo(
            f"\nSession complete: {summary.sections_completed} of {summary.total_sections} sections, "
            f"{format_remaining(summary.practiced_seconds)} practised "
            f"(estimated {format_minutes(summary.estimated_time_minutes)})"
        )
        self._echo_section_details(summary)
        self._on_finished(summary)

    def on_session_exited(self, summary: SessionSummary) -> None:
        self._echo(
            f"\nSession exited after {summary.sections_completed} of {summary.total_sections} sections"
        )
        self._echo_section_details(summary)
        self._on_finished(summary)

    def _echo_section_details(self, summary: SessionSummary) -> None:
        for index, note in sorted(summary.section_notes.items()):
            self._echo(f"  Section {index + 1} notes: {note}")
        for index, level in sorted(summary.section_confidence.items()):
            self._echo(f"  Section {index + 1} confidence: {level}")


class ConsoleFocus:
    """Prints which highlight to look at; the terminal cannot scroll a score."""

    def __init__(self, echo: Callable[..., Any] = click.echo) -> None:
        self._echo = echo

    def focus_on_highlight(self, highlight_id: str, **options: Any) -> None:
        self._echo(f"  Focus: highlight {highlight_id}")

    def exit_focus_mode(self) -> None:
        self._echo("  Focus mode off")


def handle_command(orchestrator: SessionOrchestrator, line: str, echo: Callable[..., Any] = click.echo) -> bool:
    """Apply one typed command.  Returns ``False`` for unknown input."""
    command, _, argument = line.strip().partition(" ")
    command = command.lower()
    if command in ("p", "pause", "resume"):
        return orchestrator.toggle_pause()
    if command in ("n", "next", "skip"):
        return orchestrator.skip()
    if command in ("r", "repeat"):
        return orchestrator.repeat_section()
    if command in ("q", "quit", "exit"):
        return orchestrator.stop()
    if command == "note" and argument.strip():
        return orchestrator.record_section_note(argument.strip())
    if command in ("c", "confidence") and orchestrator.record_section_confidence(argument.strip()):
        return True
    if command:
        echo(HELP_TEXT)
    return False


async def run_plan(
    plan: PracticePlan,
    tick_interval: float = 1.0,
    stdin: Optional[TextIO] = None,
    echo: Callable[..., Any] = click.echo,
    highlight_store: Optional[HighlightSource] = None,
) -> SessionSummary:
    """Run *plan* until it completes or the user quits."""
    loop = asyncio.get_running_loop()
    finished: asyncio.Future[SessionSummary] = loop.create_future()

    def _finish(summary: SessionSummary) -> None:
        if not finished.done():
            finished.set_result(summary)

    orchestrator = SessionOrchestrator(
        listener=ConsoleListener(_finish, echo),
        highlight_focus=ConsoleFocus(echo),
        highlight_store=highlight_store,
        loop=loop,
        tick_interval=tick_interval,
    )

    stream = stdin if stdin is not None else sys.stdin
    reading = False
    if stream.isatty():
        def _on_input() -> None:
            line = stream.readline()
            if not line:
                loop.remove_reader(stream.fileno())
                return
            handle_command(orchestrator, line, echo)

        loop.add_reader(stream.fileno(), _on_input)
        reading = True
        echo(HELP_TEXT)

    orchestrator.start(plan)
    try:
        return await finished
    finally:
        if reading:
            loop.remove_reader(stream.fileno())
        orchestrator.stop()
