"""Session orchestrator: runs a practice plan section by section.

The orchestrator is the only owner of the live :class:`SessionState` and
of its countdown timer.  Starting a new session tears down the old one
first, so at most one timer is ever scheduled.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Callable, Mapping, Optional

from playtime.core.collaborators import (
    HighlightFocus,
    HighlightSource,
    NullHighlightFocus,
    NullHighlightSource,
    SessionListener,
)
from playtime.core.plan import PracticePlan, PracticeSection, normalize_confidence
from playtime.core.timer import CountdownTimer
from playtime.errors import EmptyPlanError
from playtime.logging import get_logger, get_session_logger

logger = get_logger(__name__)

TimerFactory = Callable[..., CountdownTimer]


@dataclass
class SessionState:
    """Live state of the running session.  Private to the orchestrator."""

    plan: PracticePlan
    timer: CountdownTimer
    started_at: float
    current_section_index: int = 0
    section_notes: dict[int, str] = field(default_factory=dict)
    section_confidence: dict[int, str] = field(default_factory=dict)
    practiced_seconds: int = 0

    @property
    def is_paused(self) -> bool:
        return self.timer.is_paused

    @property
    def is_running(self) -> bool:
        return self.timer.is_running

    @property
    def current_section(self) -> PracticeSection:
        return self.plan.sections[self.current_section_index]


@dataclass(frozen=True)
class SessionSnapshot:
    """Read-only view of the session handed to listeners."""

    plan: PracticePlan
    section_index: int
    section: PracticeSection
    remaining_seconds: int
    is_paused: bool
    section_notes: Mapping[int, str]

    @property
    def section_number(self) -> int:
        return self.section_index + 1

    @property
    def total_sections(self) -> int:
        return self.plan.total_sections


@dataclass(frozen=True)
class SessionSummary:
    """What a finished (or abandoned) session amounted to."""

    plan_name: str
    score_id: Optional[str]
    completed: bool
    sections_completed: int
    total_sections: int
    estimated_time_minutes: float
    practiced_seconds: int
    wall_seconds: float
    section_notes: Mapping[int, str]
    section_confidence: Mapping[int, str] = field(default_factory=dict)


class SessionOrchestrator:
    """Sequences a plan's sections, one fresh countdown per section."""

    def __init__(
        self,
        listener: Optional[SessionListener] = None,
        highlight_focus: Optional[HighlightFocus] = None,
        highlight_store: Optional[HighlightSource] = None,
        loop: Optional[asyncio.AbstractEventLoop] = None,
        timer_factory: TimerFactory = CountdownTimer,
        tick_interval: float = 1.0,
    ) -> None:
        self._listener = listener or SessionListener()
        self._focus = highlight_focus or NullHighlightFocus()
        self._highlights = highlight_store or NullHighlightSource()
        self._loop = loop
        self._timer_factory = timer_factory
        self._tick_interval = tick_interval
        self._session: Optional[SessionState] = None
        self._log = logger

    # -- public API ----------------------------------------------------------

    def start(self, plan: PracticePlan) -> SessionSnapshot:
        """Start running *plan* from its first section.

        Raises :class:`EmptyPlanError` before touching any state when the
        plan has no sections.  A session that is already running is torn
        down silently.
        """
        if not plan.sections:
            logger.error("Cannot start session, plan has no sections", plan_name=plan.name)
            raise EmptyPlanError(f'Practice plan "{plan.name}" has no sections to practice')

        if self._session is not None:
            logger.info(
                "Replacing active session",
                previous_plan=self._session.plan.name,
                section_index=self._session.current_section_index,
            )
            self._teardown()

        loop = self._resolve_loop()
        self._log = get_session_logger(__name__, plan.name, plan.score_id)
        timer = self._new_timer()
        self._session = SessionState(plan=plan, timer=timer, started_at=loop.time())
        self._log.info("Practice session started", total_sections=plan.total_sections)
        self._begin_section()
        return self.snapshot()

    def toggle_pause(self) -> bool:
        if self._session is None:
            logger.debug("toggle_pause ignored, no active session")
            return False
        return self._session.timer.toggle_pause()

    def skip(self) -> bool:
        """Move on to the next section without waiting for the countdown."""
        if self._session is None:
            logger.debug("skip ignored, no active session")
            return False
        return self._session.timer.manual_advance()

    def stop(self) -> bool:
        """Leave the session immediately.  Not reported as a completion."""
        if self._session is None:
            logger.debug("stop ignored, no active session")
            return False
        self._session.timer.stop()
        return True

    def repeat_section(self) -> bool:
        """Restart the current section's countdown from its full target."""
        session = self._session
        if session is None:
            logger.debug("repeat_section ignored, no active session")
            return False
        session.practiced_seconds += session.timer.elapsed_seconds
        session.timer.destroy()
        session.timer = self._new_timer()
        self._log.info("Repeating section", section_index=session.current_section_index)
        self._begin_section()
        return True

    def record_section_note(self, text: str) -> bool:
        """Attach *text* to the section currently being practised."""
        if self._session is None:
            logger.debug("record_section_note ignored, no active session")
            return False
        self._session.section_notes[self._session.current_section_index] = text
        return True

    def record_section_confidence(self, level: Any) -> bool:
        """Rate the current section's highlight red, amber or green.

        The rating is kept for the summary and written back to the highlight
        store.  A store failure is logged; the rating is still kept.
        """
        session = self._session
        if session is None:
            logger.debug("record_section_confidence ignored, no active session")
            return False
        colour = normalize_confidence(level)
        if colour is None:
            self._log.debug("Unknown confidence level ignored", level=level)
            return False

        session.section_confidence[session.current_section_index] = colour
        highlight_id = session.current_section.highlight_id
        self._log.info("Section confidence recorded", highlight_id=highlight_id, confidence=colour)
        try:
            self._highlights.update_confidence(highlight_id, colour)
        except Exception:
            self._log.warning(
                "Could not store highlight confidence",
                highlight_id=highlight_id,
                confidence=colour,
                exc_info=True,
            )
        return True

    @property
    def is_active(self) -> bool:
        return self._session is not None

    @property
    def current_section(self) -> Optional[PracticeSection]:
        return self._session.current_section if self._session is not None else None

    def snapshot(self) -> Optional[SessionSnapshot]:
        session = self._session
        if session is None:
            return None
        return SessionSnapshot(
            plan=session.plan,
            section_index=session.current_section_index,
            section=session.current_section,
            remaining_seconds=session.timer.remaining_seconds,
            is_paused=session.is_paused,
            section_notes=MappingProxyType(dict(session.section_notes)),
        )

    # -- timer callbacks -----------------------------------------------------

    def _on_tick(self, remaining_seconds: int) -> None:
        self._listener.on_tick(remaining_seconds)

    def _on_pause_toggle(self, is_paused: bool) -> None:
        self._log.info("Section pause toggled", is_paused=is_paused)
        self._listener.on_pause_changed(is_paused)

    def _on_complete(self) -> None:
        session = self._session
        if session is None:
            return
        index, timer = session.current_section_index, session.timer
        self._log.info("Section time up", section_index=index)
        self._listener.on_section_time_up(self.snapshot())
        # A listener that repeated or stopped the section has already moved on.
        if self._session is not session or session.timer is not timer:
            return
        if session.current_section_index != index:
            return
        self._advance_to_next_section()

    def _on_manual_advance(self) -> None:
        if self._session is None:
            return
        self._log.info("Section skipped", section_index=self._session.current_section_index)
        self._advance_to_next_section()

    def _on_exit(self) -> None:
        session = self._session
        if session is None:
            return
        self._log.info("Practice session exited", section_index=session.current_section_index)
        summary = self._summarize(session, completed=False)
        self._teardown()
        self._exit_focus()
        self._listener.on_session_exited(summary)

    # -- private helpers -----------------------------------------------------

    def _advance_to_next_section(self) -> None:
        session = self._session
        if session is None:
            return

        session.practiced_seconds += session.timer.elapsed_seconds
        session.timer.destroy()
        session.current_section_index += 1

        if session.current_section_index < session.plan.total_sections:
            session.timer = self._new_timer()
            self._log.info("Moving to next section", section_index=session.current_section_index)
            self._listener.on_section_advanced(session.current_section_index)
            self._begin_section()
            return

        summary = self._summarize(session, completed=True)
        self._log.info(
            "Practice session completed",
            practiced_seconds=summary.practiced_seconds,
            estimated_time_minutes=summary.estimated_time_minutes,
        )
        self._session = None
        self._exit_focus()
        self._listener.on_session_completed(summary)

    def _begin_section(self) -> None:
        session = self._session
        if session is None:
            return
        section = session.current_section
        session.timer.start(section.target_time_minutes)
        self._focus_on(section.highlight_id)
        self._listener.on_section_started(self.snapshot())

    def _new_timer(self) -> CountdownTimer:
        return self._timer_factory(
            on_tick=self._on_tick,
            on_complete=self._on_complete,
            on_pause_toggle=self._on_pause_toggle,
            on_manual_advance=self._on_manual_advance,
            on_exit=self._on_exit,
            loop=self._loop,
            interval=self._tick_interval,
        )

    def _teardown(self) -> None:
        if self._session is not None:
            self._session.timer.destroy()
            self._session = None

    def _summarize(self, session: SessionState, completed: bool) -> SessionSummary:
        sections_done = session.current_section_index
        practiced = session.practiced_seconds
        if not completed:
            practiced += session.timer.elapsed_seconds
        return SessionSummary(
            plan_name=session.plan.name,
            score_id=session.plan.score_id,
            completed=completed,
            sections_completed=min(sections_done, session.plan.total_sections),
            total_sections=session.plan.total_sections,
            estimated_time_minutes=session.plan.estimated_time_minutes,
            practiced_seconds=practiced,
            wall_seconds=self._resolve_loop().time() - session.started_at,
            section_notes=MappingProxyType(dict(session.section_notes)),
            section_confidence=MappingProxyType(dict(session.section_confidence)),
        )

    def _focus_on(self, highlight_id: str, **options: Any) -> None:
        try:
            self._focus.focus_on_highlight(highlight_id, **options)
        except Exception:
            self._log.warning("Could not focus highlight", highlight_id=highlight_id, exc_info=True)

    def _exit_focus(self) -> None:
        try:
            self._focus.exit_focus_mode()
        except Exception:
            self._log.warning("Could not exit focus mode", exc_info=True)

    def _resolve_loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop
