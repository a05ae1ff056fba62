"""Tests for the terminal session runner."""

import asyncio
import io
from unittest.mock import MagicMock

import pytest

from playtime.cli.console import ConsoleFocus, ConsoleListener, HELP_TEXT, handle_command, run_plan
from playtime.core.plan import PracticePlan, PracticeSection
from playtime.core.session import SessionOrchestrator


def _plan(*minutes: float) -> PracticePlan:
    sections = tuple(
        PracticeSection(f"hl-{i}", "metronome", m, "slow down" if i == 0 else "")
        for i, m in enumerate(minutes)
    )
    return PracticePlan(name="Etude", focus="accuracy", duration_minutes=30, sections=sections, score_id="1")


class Recorder:
    """Collects echoed lines."""

    def __init__(self) -> None:
        self.lines: list[str] = []

    def __call__(self, message: str = "", nl: bool = True, **_kwargs) -> None:
        self.lines.append(message)

    @property
    def text(self) -> str:
        return "\n".join(self.lines)


# ---------------------------------------------------------------------------
# ConsoleListener
# ---------------------------------------------------------------------------


class TestConsoleListener:
    """Session notifications become terminal output."""

    def test_full_run_output(self, loop) -> None:
        echo = Recorder()
        finished = MagicMock()
        orchestrator = SessionOrchestrator(
            listener=ConsoleListener(finished, echo), highlight_focus=ConsoleFocus(echo), loop=loop
        )

        orchestrator.start(_plan(0.05, 1))
        loop.advance(3)
        orchestrator.record_section_note("better")
        orchestrator.skip()

        assert "Section 1 of 2: highlight hl-0 (metronome, 0.05 min)" in echo.text
        assert "  Notes: slow down" in echo.text
        assert "  Focus: highlight hl-0" in echo.text
        assert "\r  00:02 remaining " in echo.lines
        assert "Time's up for section 1!" in echo.text
        assert "Section 2 of 2: highlight hl-1 (metronome, 1 min)" in echo.text
        assert "Session complete: 2 of 2 sections" in echo.text
        assert "  Section 2 notes: better" in echo.text
        assert "  Focus mode off" in echo.text
        finished.assert_called_once()
        assert finished.call_args.args[0].completed

    def test_confidence_written_back_and_summarised(self, loop) -> None:
        echo = Recorder()
        store = MagicMock()
        orchestrator = SessionOrchestrator(
            listener=ConsoleListener(MagicMock(), echo), highlight_store=store, loop=loop
        )
        orchestrator.start(_plan(1))
        handle_command(orchestrator, "c amber", echo)
        orchestrator.skip()

        store.update_confidence.assert_called_once_with("hl-0", "amber")
        assert "  Section 1 confidence: amber" in echo.lines

    def test_exit_output(self, loop) -> None:
        echo = Recorder()
        finished = MagicMock()
        orchestrator = SessionOrchestrator(listener=ConsoleListener(finished, echo), loop=loop)
        orchestrator.start(_plan(1, 1))
        orchestrator.toggle_pause()
        orchestrator.stop()

        assert "\n  Paused" in echo.lines
        assert "Session exited after 0 of 2 sections" in echo.text
        assert not finished.call_args.args[0].completed


# ---------------------------------------------------------------------------
# handle_command()
# ---------------------------------------------------------------------------


class TestHandleCommand:
    """Typed commands map onto orchestrator operations."""

    @pytest.mark.parametrize(
        ("line", "method"),
        [
            ("p\n", "toggle_pause"),
            ("pause", "toggle_pause"),
            ("n\n", "skip"),
            ("NEXT", "skip"),
            ("r", "repeat_section"),
            ("q", "stop"),
            ("exit", "stop"),
        ],
    )
    def test_commands(self, line, method) -> None:
        orchestrator = MagicMock(spec=SessionOrchestrator)
        getattr(orchestrator, method).return_value = True
        assert handle_command(orchestrator, line, Recorder()) is True
        getattr(orchestrator, method).assert_called_once_with()

    @pytest.mark.parametrize("line", ["c red", "confidence Green\n", "C a"])
    def test_confidence(self, line) -> None:
        orchestrator = MagicMock(spec=SessionOrchestrator)
        orchestrator.record_section_confidence.return_value = True
        assert handle_command(orchestrator, line, Recorder()) is True
        orchestrator.record_section_confidence.assert_called_once_with(line.strip().partition(" ")[2])

    def test_unknown_confidence_prints_help(self) -> None:
        echo = Recorder()
        orchestrator = MagicMock(spec=SessionOrchestrator)
        orchestrator.record_section_confidence.return_value = False
        assert handle_command(orchestrator, "c purple", echo) is False
        assert echo.lines == [HELP_TEXT]

    def test_note(self) -> None:
        orchestrator = MagicMock(spec=SessionOrchestrator)
        orchestrator.record_section_note.return_value = True
        assert handle_command(orchestrator, "note  watch bar 9 \n", Recorder())
        orchestrator.record_section_note.assert_called_once_with("watch bar 9")

    def test_unknown_command_prints_help(self) -> None:
        echo = Recorder()
        assert handle_command(MagicMock(spec=SessionOrchestrator), "dance", echo) is False
        assert echo.lines == [HELP_TEXT]

    def test_blank_line_is_ignored(self) -> None:
        echo = Recorder()
        assert handle_command(MagicMock(spec=SessionOrchestrator), "\n", echo) is False
        assert echo.lines == []


# ---------------------------------------------------------------------------
# run_plan()
# ---------------------------------------------------------------------------


class TestRunPlan:
    """run_plan() drives a real asyncio loop until the session ends."""

    def test_runs_to_completion(self) -> None:
        echo = Recorder()
        summary = asyncio.run(run_plan(_plan(0.01, 0), tick_interval=0.01, stdin=io.StringIO(), echo=echo))
        assert summary.completed
        assert summary.sections_completed == 2
        assert "Session complete" in echo.text
