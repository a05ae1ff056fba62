"""Tests for the plan value objects and the pure plan builder."""

import pytest

from playtime.core.plan import (
    Highlight,
    PlanDefaults,
    PracticePlan,
    PracticeSection,
    build_from_sections,
    entries_from_highlights,
    entries_from_plan,
    normalize_confidence,
    sort_highlights,
    to_persistable_plan,
)
from playtime.errors import MissingScoreError

# ---------------------------------------------------------------------------
# Aggregates
# ---------------------------------------------------------------------------


class TestPlanAggregates:
    """total_sections and estimated_time_minutes are derived from sections."""

    def test_two_sections(self) -> None:
        plan = build_from_sections(
            [
                {"highlight_id": "a", "target_time_minutes": 5},
                {"highlight_id": "b", "target_time_minutes": 3},
            ]
        )
        assert plan.total_sections == 2
        assert plan.estimated_time_minutes == 8

    def test_empty_plan(self) -> None:
        plan = build_from_sections([])
        assert plan.total_sections == 0
        assert plan.estimated_time_minutes == 0

    def test_fractional_minutes_sum(self) -> None:
        plan = build_from_sections(
            [
                {"highlight_id": "a", "target_time_minutes": 2.5},
                {"highlight_id": "b", "target_time_minutes": "1.5"},
            ]
        )
        assert plan.estimated_time_minutes == pytest.approx(4.0)

    def test_budget_delta(self) -> None:
        plan = build_from_sections(
            [{"highlight_id": "a", "target_time_minutes": 40}], {"duration_minutes": 30}
        )
        assert plan.budget_delta_minutes == -10


# ---------------------------------------------------------------------------
# Section defaults
# ---------------------------------------------------------------------------


class TestSectionDefaults:
    """Missing or malformed section fields fall back to defaults."""

    @pytest.mark.parametrize("value", [None, "", "  ", "abc", float("nan"), True])
    def test_bad_target_time_defaults_to_five(self, value) -> None:
        plan = build_from_sections([{"highlight_id": "a", "target_time_minutes": value}])
        assert plan.sections[0].target_time_minutes == 5

    def test_missing_target_time_defaults_to_five(self) -> None:
        plan = build_from_sections([{"highlight_id": "a"}])
        assert plan.sections[0].target_time_minutes == 5

    def test_zero_and_negative_targets_are_kept(self) -> None:
        plan = build_from_sections(
            [
                {"highlight_id": "a", "target_time_minutes": 0},
                {"highlight_id": "b", "target_time_minutes": -2},
            ]
        )
        assert [s.target_time_minutes for s in plan.sections] == [0, -2]

    def test_sections_without_notes_are_kept(self) -> None:
        plan = build_from_sections([{"highlight_id": "a"}, {"highlight_id": "b", "notes": None}])
        assert plan.total_sections == 2
        assert all(section.notes == "" for section in plan.sections)

    def test_blank_method_defaults_to_slow_practice(self) -> None:
        plan = build_from_sections([{"highlight_id": "a", "practice_method": ""}])
        assert plan.sections[0].practice_method == "slow-practice"

    def test_unknown_method_is_accepted(self) -> None:
        plan = build_from_sections([{"highlight_id": "a", "practice_method": "air-piano"}])
        assert plan.sections[0].practice_method == "air-piano"

    def test_order_is_preserved(self) -> None:
        plan = build_from_sections([{"highlight_id": h} for h in ("c", "a", "b")])
        assert [s.highlight_id for s in plan.sections] == ["c", "a", "b"]

    def test_duplicate_highlight_last_write_wins(self) -> None:
        plan = build_from_sections(
            [
                {"highlight_id": "a", "target_time_minutes": 1},
                {"highlight_id": "b", "target_time_minutes": 2},
                {"highlight_id": "a", "target_time_minutes": 9},
            ]
        )
        assert [(s.highlight_id, s.target_time_minutes) for s in plan.sections] == [("a", 9), ("b", 2)]

    def test_custom_defaults(self) -> None:
        defaults = PlanDefaults(target_time_minutes=2, practice_method="metronome")
        plan = build_from_sections([{"highlight_id": "a"}], defaults=defaults)
        assert plan.sections[0] == PracticeSection("a", "metronome", 2, "")


# ---------------------------------------------------------------------------
# Header defaults
# ---------------------------------------------------------------------------


class TestHeaderDefaults:
    """Blank header fields fall back to the session defaults."""

    def test_empty_name_becomes_untitled(self) -> None:
        plan = build_from_sections([{"highlight_id": "a"}], {"name": ""})
        assert plan.name == "Untitled Session"

    def test_no_header(self) -> None:
        plan = build_from_sections([{"highlight_id": "a"}])
        assert (plan.name, plan.focus, plan.duration_minutes) == ("Untitled Session", "accuracy", 30)

    @pytest.mark.parametrize("value", ["", "soon", None, False])
    def test_invalid_duration_becomes_thirty(self, value) -> None:
        plan = build_from_sections([], {"duration_minutes": value})
        assert plan.duration_minutes == 30

    def test_numeric_strings_are_parsed(self) -> None:
        plan = build_from_sections([], {"duration_minutes": "45", "name": " Scales ", "focus": "tempo"})
        assert (plan.name, plan.focus, plan.duration_minutes) == ("Scales", "tempo", 45)


# ---------------------------------------------------------------------------
# Persistable plans
# ---------------------------------------------------------------------------


class TestToPersistablePlan:
    """to_persistable_plan() attaches the score and, for updates, the id."""

    def test_insert_has_no_id(self) -> None:
        plan = to_persistable_plan(build_from_sections([{"highlight_id": "a"}]), "12")
        assert plan.score_id == "12"
        assert plan.id is None

    def test_update_keeps_identity(self) -> None:
        plan = to_persistable_plan(build_from_sections([{"highlight_id": "a"}]), 12, existing_id=4)
        assert (plan.score_id, plan.id) == ("12", 4)

    def test_original_plan_is_not_mutated(self) -> None:
        built = build_from_sections([{"highlight_id": "a"}])
        to_persistable_plan(built, "12", 4)
        assert built.score_id is None
        assert built.id is None

    @pytest.mark.parametrize("score_id", [None, "", "   "])
    def test_missing_score_raises(self, score_id) -> None:
        with pytest.raises(MissingScoreError):
            to_persistable_plan(build_from_sections([]), score_id)


# ---------------------------------------------------------------------------
# Serialisation
# ---------------------------------------------------------------------------


class TestPlanDict:
    """Plans survive a trip through their stored dict form."""

    def test_round_trip(self) -> None:
        plan = PracticePlan(
            name="Bach",
            focus="tempo",
            duration_minutes=20,
            sections=(PracticeSection("a", "metronome", 2.5, "left hand"),),
            score_id="3",
            id=9,
            created_at="2026-01-01T00:00:00+00:00",
        )
        data = plan.to_dict()
        assert data["total_sections"] == 1
        assert data["estimated_time_minutes"] == 2.5
        assert PracticePlan.from_dict(data) == plan

    def test_stored_aggregates_are_ignored(self) -> None:
        data = {
            "name": "x",
            "focus": "accuracy",
            "duration_minutes": 30,
            "total_sections": 99,
            "estimated_time_minutes": 99,
            "sections": [{"highlight_id": "a", "target_time_minutes": 4}],
        }
        plan = PracticePlan.from_dict(data)
        assert (plan.total_sections, plan.estimated_time_minutes) == (1, 4)


# ---------------------------------------------------------------------------
# Highlights
# ---------------------------------------------------------------------------


class TestHighlights:
    """Fresh plans are seeded from highlights in reading order."""

    def test_sorted_by_page_then_position(self) -> None:
        highlights = [
            Highlight("c", page=2, y_pct=0.1),
            Highlight("b", page=1, y_pct=0.8),
            Highlight("a", page=1, y_pct=0.2),
        ]
        assert [h.id for h in sort_highlights(highlights)] == ["a", "b", "c"]

    def test_from_mapping_accepts_camel_case(self) -> None:
        highlight = Highlight.from_mapping({"id": 5, "page": "2", "yPct": 0.4, "color": "red"})
        assert (highlight.id, highlight.page, highlight.y_pct) == ("5", 2, 0.4)
        assert highlight.extra == {"color": "red"}

    def test_entries_from_highlights(self) -> None:
        entries = entries_from_highlights([Highlight("b", page=2), Highlight("a", page=1)])
        assert entries == [
            {"highlight_id": "a", "practice_method": "slow-practice", "target_time_minutes": 5, "notes": ""},
            {"highlight_id": "b", "practice_method": "slow-practice", "target_time_minutes": 5, "notes": ""},
        ]

    def test_entries_from_plan_rebuild_same_plan(self) -> None:
        plan = build_from_sections(
            [{"highlight_id": "a", "target_time_minutes": 3, "notes": "n"}], {"name": "Etude"}
        )
        assert build_from_sections(entries_from_plan(plan), {"name": "Etude"}) == plan


# ---------------------------------------------------------------------------
# Confidence levels
# ---------------------------------------------------------------------------


class TestNormalizeConfidence:
    """Confidence is one of red, amber or green."""

    @pytest.mark.parametrize(
        ("value", "level"),
        [("red", "red"), (" Amber ", "amber"), ("g", "green"), (0, "red"), (2, "green"), ("1", "amber")],
    )
    def test_known_levels(self, value, level) -> None:
        assert normalize_confidence(value) == level

    @pytest.mark.parametrize("value", [None, "", "purple", 3, -1, True, 1.5])
    def test_unknown_levels(self, value) -> None:
        assert normalize_confidence(value) is None
