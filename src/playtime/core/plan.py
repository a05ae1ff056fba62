"""Practice plan value objects and the pure plan builder.

Nothing in this module performs I/O.  Plans are frozen: editing a plan
means building a new value and handing it to the persistence layer.
"""

from __future__ import annotations

import dataclasses
import math
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping

from playtime.errors import MissingScoreError

PRACTICE_METHODS = (
    "slow-practice",
    "hands-separate",
    "metronome",
    "tempo-practice",
    "chunking",
    "repetition",
)

# Position is the numeric confidence level: red is 0, green is 2.
CONFIDENCE_LEVELS = ("red", "amber", "green")


@dataclass(frozen=True)
class PlanDefaults:
    """Fallback values applied when form fields are blank or invalid."""

    name: str = "Untitled Session"
    focus: str = "accuracy"
    duration_minutes: int = 30
    target_time_minutes: float = 5
    practice_method: str = "slow-practice"


@dataclass(frozen=True)
class PracticeSection:
    """One timed unit of work targeting a highlighted score region."""

    highlight_id: str
    practice_method: str = "slow-practice"
    target_time_minutes: float = 5
    notes: str = ""

    def to_dict(self) -> dict[str, Any]:
        return dataclasses.asdict(self)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> PracticeSection:
        return cls(
            highlight_id=str(data["highlight_id"]),
            practice_method=data.get("practice_method") or "slow-practice",
            target_time_minutes=_coerce_minutes(data.get("target_time_minutes"), 5),
            notes=data.get("notes") or "",
        )


@dataclass(frozen=True)
class PracticePlan:
    """An ordered list of sections plus header metadata.

    ``total_sections`` and ``estimated_time_minutes`` are always derived
    from ``sections``.  ``duration_minutes`` is the user's own budget and
    is kept independently of the estimate.
    """

    name: str
    focus: str
    duration_minutes: int
    sections: tuple[PracticeSection, ...] = ()
    score_id: str | None = None
    id: int | None = None
    created_at: str | None = None

    @property
    def total_sections(self) -> int:
        return len(self.sections)

    @property
    def estimated_time_minutes(self) -> float:
        return sum(section.target_time_minutes for section in self.sections)

    @property
    def budget_delta_minutes(self) -> float:
        """Minutes left in the budget after the estimate (negative when over)."""
        return self.duration_minutes - self.estimated_time_minutes

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "focus": self.focus,
            "duration_minutes": self.duration_minutes,
            "score_id": self.score_id,
            "created_at": self.created_at,
            "total_sections": self.total_sections,
            "estimated_time_minutes": self.estimated_time_minutes,
            "sections": [section.to_dict() for section in self.sections],
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> PracticePlan:
        """Rebuild a plan from a stored record; derived fields are recomputed."""
        score_id = data.get("score_id")
        return cls(
            name=data.get("name") or PlanDefaults.name,
            focus=data.get("focus") or PlanDefaults.focus,
            duration_minutes=_coerce_int(data.get("duration_minutes"), PlanDefaults.duration_minutes),
            sections=tuple(PracticeSection.from_dict(s) for s in data.get("sections") or ()),
            score_id=str(score_id) if score_id is not None else None,
            id=data.get("id"),
            created_at=data.get("created_at"),
        )


@dataclass(frozen=True)
class Highlight:
    """A marked region of a score, as reported by the highlight source."""

    id: str
    page: int = 1
    y_pct: float = 0.0
    confidence: str | None = None
    extra: Mapping[str, Any] = field(default_factory=dict, compare=False)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> Highlight:
        y_pct = data.get("y_pct", data.get("yPct"))
        known = {"id", "page", "y_pct", "yPct", "confidence"}
        return cls(
            id=str(data["id"]),
            page=_coerce_int(data.get("page"), 1),
            y_pct=_coerce_minutes(y_pct, 0.0),
            confidence=normalize_confidence(data.get("confidence")),
            extra={k: v for k, v in data.items() if k not in known},
        )


# -- coercion helpers --------------------------------------------------------


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _coerce_minutes(value: Any, default: float) -> float:
    """Return *value* as a finite number of minutes, or *default*."""
    if isinstance(value, bool) or _is_blank(value):
        return default
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    if not math.isfinite(number):
        return default
    return int(number) if number.is_integer() else number


def _coerce_int(value: Any, default: int) -> int:
    if isinstance(value, bool) or _is_blank(value):
        return default
    try:
        return int(float(value))
    except (TypeError, ValueError, OverflowError):
        return default


def _text(value: Any, default: str) -> str:
    return default if _is_blank(value) else str(value).strip()


# -- builder -----------------------------------------------------------------


def build_from_sections(
    entries: Iterable[Mapping[str, Any]],
    header: Mapping[str, Any] | None = None,
    defaults: PlanDefaults = PlanDefaults(),
) -> PracticePlan:
    """Build a :class:`PracticePlan` from raw section rows and header fields.

    Every entry becomes a section.  A repeated ``highlight_id`` replaces the
    earlier row's content but keeps its position.
    """
    header = header or {}
    by_highlight: dict[str, PracticeSection] = {}
    for entry in entries:
        section = PracticeSection(
            highlight_id=str(entry.get("highlight_id", "")),
            practice_method=_text(entry.get("practice_method"), defaults.practice_method),
            target_time_minutes=_coerce_minutes(
                entry.get("target_time_minutes"), defaults.target_time_minutes
            ),
            notes="" if entry.get("notes") is None else str(entry.get("notes")),
        )
        by_highlight[section.highlight_id] = section

    return PracticePlan(
        name=_text(header.get("name"), defaults.name),
        focus=_text(header.get("focus"), defaults.focus),
        duration_minutes=_coerce_int(header.get("duration_minutes"), defaults.duration_minutes),
        sections=tuple(by_highlight.values()),
    )


def to_persistable_plan(
    plan: PracticePlan, score_id: str | None, existing_id: int | None = None
) -> PracticePlan:
    """Attach the owning score and, for updates, the stored plan's id."""
    if _is_blank(score_id):
        raise MissingScoreError("Score ID is required for practice plan")
    return dataclasses.replace(plan, score_id=str(score_id), id=existing_id)


def sort_highlights(highlights: Iterable[Highlight]) -> list[Highlight]:
    """Order highlights top to bottom, page by page."""
    return sorted(highlights, key=lambda h: (h.page or 1, h.y_pct or 0.0))


def entries_from_highlights(
    highlights: Iterable[Highlight], defaults: PlanDefaults = PlanDefaults()
) -> list[dict[str, Any]]:
    """Default section rows for a fresh plan, one per highlight."""
    return [
        {
            "highlight_id": highlight.id,
            "practice_method": defaults.practice_method,
            "target_time_minutes": defaults.target_time_minutes,
            "notes": "",
        }
        for highlight in sort_highlights(highlights)
    ]


def entries_from_plan(plan: PracticePlan) -> list[dict[str, Any]]:
    """Editable section rows for an existing plan."""
    return [section.to_dict() for section in plan.sections]


def normalize_confidence(value: Any) -> str | None:
    """Return ``red``, ``amber`` or ``green`` for *value*, or ``None``.

    Accepts the colour names (any case, or their first letter) and the
    numeric levels 0 to 2.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return CONFIDENCE_LEVELS[value] if 0 <= value < len(CONFIDENCE_LEVELS) else None
    if not isinstance(value, str) or not value.strip():
        return None
    text = value.strip().lower()
    if text.isdigit():
        return normalize_confidence(int(text))
    for level in CONFIDENCE_LEVELS:
        if text in (level, level[0]):
            return level
    return None
