"""Plan editing workflow: pick a score, edit its plan, save or update it.

The planner keeps track of the score being edited and the plan loaded
for it.  That loaded plan decides whether saving inserts a new record or
overwrites the existing one.  A failed save leaves everything as it was,
so the user can simply try again.
"""

from __future__ import annotations

import dataclasses
from typing import Any, Iterable, Mapping, Optional

from playtime.core.collaborators import HighlightSource, NullHighlightSource, PlanPersistence
from playtime.core.plan import (
    Highlight,
    PlanDefaults,
    PracticePlan,
    build_from_sections,
    entries_from_highlights,
    entries_from_plan,
    to_persistable_plan,
)
from playtime.errors import (
    EmptyPlanError,
    MissingScoreError,
    PersistenceError,
    PlanNotFoundError,
    PlanSaveError,
)
from playtime.logging import get_logger

logger = get_logger(__name__)


class PracticePlanner:
    """Builds, saves and reloads practice plans for one score at a time."""

    def __init__(
        self,
        persistence: PlanPersistence,
        highlight_source: Optional[HighlightSource] = None,
        defaults: PlanDefaults = PlanDefaults(),
    ) -> None:
        self._persistence = persistence
        self._highlights = highlight_source or NullHighlightSource()
        self._defaults = defaults
        self.current_score_id: Optional[str] = None
        self.current_plan: Optional[PracticePlan] = None
        self._draft: list[dict[str, Any]] = []

    # -- score selection -----------------------------------------------------

    def select_score(self, score_id: str) -> Optional[PracticePlan]:
        """Make *score_id* the active score and load its latest plan.

        Returns the loaded plan, or ``None`` when the score has no plan yet;
        in that case :meth:`draft_entries` holds one row per highlight.  A
        plan store that cannot be read raises :class:`PersistenceError` and
        leaves no score selected, so a later save cannot insert a duplicate.
        """
        score_id = str(score_id)
        self.current_score_id = None
        self.current_plan = None
        self._draft = []

        try:
            plans = list(self._persistence.load_plans_for_score(score_id))
        except PersistenceError as exc:
            logger.error("Could not load practice plans for score", score_id=score_id, error=str(exc))
            raise
        except OSError as exc:
            logger.error("Could not load practice plans for score", score_id=score_id, error=str(exc))
            raise PersistenceError(
                f"Could not load practice plans for score {score_id}: {exc}", score_id=score_id
            ) from exc

        self.current_score_id = score_id

        if plans:
            self.current_plan = max(plans, key=lambda plan: (plan.created_at or "", plan.id or 0))
            logger.info(
                "Found existing practice plan for score",
                score_id=self.current_score_id,
                plan_id=self.current_plan.id,
                plan_name=self.current_plan.name,
            )
            return self.current_plan

        self._draft = entries_from_highlights(self._load_highlights(), self._defaults)
        logger.debug(
            "No practice plans found for score",
            score_id=self.current_score_id,
            highlight_count=len(self._draft),
        )
        return None

    def draft_entries(self) -> list[dict[str, Any]]:
        """Editable section rows for the active score."""
        if self.current_plan is not None:
            return entries_from_plan(self.current_plan)
        return [dict(entry) for entry in self._draft]

    def draft_header(self) -> dict[str, Any]:
        plan = self.current_plan
        if plan is None:
            return {
                "name": self._defaults.name,
                "focus": self._defaults.focus,
                "duration_minutes": self._defaults.duration_minutes,
            }
        return {"name": plan.name, "focus": plan.focus, "duration_minutes": plan.duration_minutes}

    @property
    def is_editing_existing_plan(self) -> bool:
        return self.current_plan is not None and self.current_plan.id is not None

    # -- building and saving -------------------------------------------------

    def build_preview(
        self, entries: Iterable[Mapping[str, Any]], header: Optional[Mapping[str, Any]] = None
    ) -> PracticePlan:
        """Build a transient plan, e.g. to run a session before saving."""
        plan = build_from_sections(entries, header, self._defaults)
        if self.current_score_id is not None:
            plan = to_persistable_plan(plan, self.current_score_id)
        self._warn_if_over_budget(plan)
        return plan

    def save(
        self, entries: Iterable[Mapping[str, Any]], header: Optional[Mapping[str, Any]] = None
    ) -> PracticePlan:
        """Save the edited plan, updating the loaded one if there is one.

        Raises :class:`MissingScoreError` or :class:`EmptyPlanError` before
        anything is written, and :class:`PlanSaveError` if the store fails.
        """
        if self.current_score_id is None:
            raise MissingScoreError()

        built = build_from_sections(entries, header, self._defaults)
        if not built.sections:
            raise EmptyPlanError("No practice sections to save")

        is_update = self.is_editing_existing_plan
        existing_id = self.current_plan.id if is_update else None
        plan = to_persistable_plan(built, self.current_score_id, existing_id)
        self._warn_if_over_budget(plan)

        logger.info(
            "Saving practice plan",
            score_id=plan.score_id,
            plan_name=plan.name,
            total_sections=plan.total_sections,
            is_update=is_update,
            existing_plan_id=existing_id,
        )
        try:
            if is_update:
                plan_id = self._persistence.update(existing_id, plan)
            else:
                plan_id = self._persistence.save(plan)
            stored = self._persistence.load(plan_id)
        except (PersistenceError, OSError, ValueError) as exc:
            logger.error(
                "Failed to save practice plan",
                score_id=plan.score_id,
                plan_name=plan.name,
                is_update=is_update,
                error=str(exc),
            )
            raise PlanSaveError(
                f"Failed to save practice plan: {exc}", score_id=plan.score_id, plan_name=plan.name
            ) from exc

        saved = stored if stored is not None else dataclasses.replace(plan, id=plan_id)
        self.current_plan = saved
        logger.info("Practice plan saved", plan_id=plan_id, plan_name=saved.name, is_update=is_update)
        return saved

    # -- loading -------------------------------------------------------------

    def load_plan(self, plan_id: int) -> PracticePlan:
        plan = self._persistence.load(plan_id)
        if plan is None:
            logger.error("Practice plan not found", plan_id=plan_id)
            raise PlanNotFoundError(plan_id)
        return plan

    def plans_for_score(self, score_id: str) -> list[PracticePlan]:
        return list(self._persistence.load_plans_for_score(str(score_id)))

    def delete_plan(self, plan_id: int) -> None:
        self._persistence.delete(plan_id)
        if self.current_plan is not None and self.current_plan.id == plan_id:
            self.current_plan = None
        logger.info("Practice plan deleted", plan_id=plan_id)

    # -- private helpers -----------------------------------------------------

    def _load_highlights(self) -> list[Highlight]:
        try:
            return list(self._highlights.load_highlights(self.current_score_id))
        except (PersistenceError, OSError, ValueError) as exc:
            logger.warning("Could not load highlights", score_id=self.current_score_id, error=str(exc))
            return []

    def _warn_if_over_budget(self, plan: PracticePlan) -> None:
        if plan.budget_delta_minutes < 0:
            logger.warning(
                "Estimated practice time exceeds session duration",
                plan_name=plan.name,
                estimated_time_minutes=plan.estimated_time_minutes,
                duration_minutes=plan.duration_minutes,
            )
