"""Exception hierarchy for the practice session engine.

Invalid input is defaulted and invalid-state calls are logged no-ops, so
everything here is either a precondition violation (raised before any
state changes) or a wrapped collaborator failure.
"""

from __future__ import annotations


class PlaytimeError(Exception):
    """Base class for errors reported to the user."""


class SessionStartError(PlaytimeError):
    """Raised when a session cannot be started."""


class EmptyPlanError(SessionStartError):
    """Raised when a plan has no sections to practice or save."""

    def __init__(self, message: str = "No practice sections available") -> None:
        super().__init__(message)


class MissingScoreError(PlaytimeError):
    """Raised when an operation needs a score and none is selected."""

    def __init__(self, message: str = "No active score selected") -> None:
        super().__init__(message)


class PersistenceError(PlaytimeError):
    """Raised when the plan store cannot read or write a plan."""

    def __init__(
        self,
        message: str,
        *,
        score_id: str | None = None,
        plan_name: str | None = None,
    ) -> None:
        super().__init__(message)
        self.score_id = score_id
        self.plan_name = plan_name


class PlanNotFoundError(PersistenceError):
    """Raised when a plan id does not exist in the store."""

    def __init__(self, plan_id: object) -> None:
        super().__init__(f"Practice plan {plan_id} not found")
        self.plan_id = plan_id


class PlanSaveError(PersistenceError):
    """Raised when saving or updating a plan fails; nothing was changed."""
