"""Contracts for the components the session engine talks to.

Each contract comes with a do-nothing implementation so the engine never
has to check whether a collaborator is present.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol, Sequence, runtime_checkable

if TYPE_CHECKING:
    from playtime.core.plan import Highlight, PracticePlan
    from playtime.core.session import SessionSnapshot, SessionSummary


@runtime_checkable
class HighlightFocus(Protocol):
    """Brings a highlighted score region into view."""

    def focus_on_highlight(self, highlight_id: str, **options: Any) -> None: ...

    def exit_focus_mode(self) -> None: ...


class NullHighlightFocus:
    """Focus collaborator used when nothing can be highlighted."""

    def focus_on_highlight(self, highlight_id: str, **options: Any) -> None:
        return None

    def exit_focus_mode(self) -> None:
        return None


@runtime_checkable
class PlanPersistence(Protocol):
    """Durable storage for practice plans."""

    def save(self, plan: PracticePlan) -> int: ...

    def update(self, plan_id: int, plan: PracticePlan) -> int: ...

    def load(self, plan_id: int) -> PracticePlan | None: ...

    def load_plans_for_score(self, score_id: str) -> Sequence[PracticePlan]: ...

    def delete(self, plan_id: int) -> None: ...


@runtime_checkable
class HighlightSource(Protocol):
    """Provides the highlights marked on a score and stores their confidence."""

    def load_highlights(self, score_id: str) -> Sequence[Highlight]: ...

    def update_confidence(self, highlight_id: str, level: str) -> None: ...


class NullHighlightSource:
    def load_highlights(self, score_id: str) -> Sequence[Highlight]:
        return []

    def update_confidence(self, highlight_id: str, level: str) -> None:
        return None


class SessionListener:
    """Receives session notifications.  Override the hooks you need.

    Every argument is a read-only value; listeners never see the live
    session state.
    """

    def on_section_started(self, snapshot: SessionSnapshot) -> None:
        """A section's countdown has just begun."""

    def on_tick(self, remaining_seconds: int) -> None:
        """One second of the current section has passed."""

    def on_pause_changed(self, is_paused: bool) -> None:
        """The current section was paused or resumed."""

    def on_section_time_up(self, snapshot: SessionSnapshot) -> None:
        """The current section ran out of time (not sent for skips)."""

    def on_section_advanced(self, new_index: int) -> None:
        """The session moved on to the section at *new_index*."""

    def on_session_completed(self, summary: SessionSummary) -> None:
        """The last section finished."""

    def on_session_exited(self, summary: SessionSummary) -> None:
        """The user left the session before the end."""
