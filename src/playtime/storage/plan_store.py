"""JSON file stores for practice plans and score highlights.

Plans live in ``<data_dir>/plans.json``; writes take an exclusive
``fcntl`` lock for the whole read-modify-write so concurrent CLI
invocations cannot lose each other's changes.
"""

from __future__ import annotations

import dataclasses
import fcntl
import json
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterator

from playtime.core.plan import Highlight, PracticePlan
from playtime.errors import PersistenceError, PlanNotFoundError
from playtime.logging import get_logger

logger = get_logger(__name__)

_PLANS_FILE = "plans.json"
_HIGHLIGHTS_FILE = "highlights.json"


def _empty_document() -> dict[str, Any]:
    return {"next_id": 1, "plans": {}}


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class JsonPlanStore:
    """Stores practice plans as records keyed by an integer id."""

    def __init__(self, data_dir: Path) -> None:
        self._data_dir = Path(data_dir)
        self._path = self._data_dir / _PLANS_FILE

    # -- public API ----------------------------------------------------------

    def save(self, plan: PracticePlan) -> int:
        """Insert *plan* as a new record and return its id."""
        if not plan.score_id:
            raise PersistenceError("Score ID is required for practice plan", plan_name=plan.name)
        with self._transaction() as document:
            plan_id = int(document["next_id"])
            document["next_id"] = plan_id + 1
            stored = dataclasses.replace(plan, id=plan_id, created_at=_now())
            document["plans"][str(plan_id)] = stored.to_dict()
        logger.info("Practice plan stored", plan_id=plan_id, score_id=plan.score_id)
        return plan_id

    def update(self, plan_id: int, plan: PracticePlan) -> int:
        """Replace the content of record *plan_id* with *plan*."""
        with self._transaction() as document:
            key = str(plan_id)
            if key not in document["plans"]:
                raise PlanNotFoundError(plan_id)
            created_at = document["plans"][key].get("created_at")
            stored = dataclasses.replace(plan, id=int(plan_id), created_at=created_at)
            record = stored.to_dict()
            record["updated_at"] = _now()
            document["plans"][key] = record
        logger.info("Practice plan updated", plan_id=plan_id, score_id=plan.score_id)
        return int(plan_id)

    def load(self, plan_id: int) -> PracticePlan | None:
        record = self._read()["plans"].get(str(plan_id))
        return PracticePlan.from_dict(record) if record is not None else None

    def load_plans_for_score(self, score_id: str) -> list[PracticePlan]:
        return [
            PracticePlan.from_dict(record)
            for record in self._read()["plans"].values()
            if str(record.get("score_id")) == str(score_id)
        ]

    def delete(self, plan_id: int) -> None:
        with self._transaction() as document:
            if document["plans"].pop(str(plan_id), None) is None:
                raise PlanNotFoundError(plan_id)

    # -- file access ---------------------------------------------------------

    def _read(self) -> dict[str, Any]:
        if not self._path.exists():
            return _empty_document()
        with open(self._path) as f:
            fcntl.flock(f, fcntl.LOCK_SH)
            return self._parse(f.read())

    @contextmanager
    def _transaction(self) -> Iterator[dict[str, Any]]:
        """Yield the stored document under an exclusive lock, then write it back."""
        self._data_dir.mkdir(parents=True, exist_ok=True)
        with open(self._path, "a+") as f:
            fcntl.flock(f, fcntl.LOCK_EX)
            f.seek(0)
            document = self._parse(f.read())
            yield document
            f.seek(0)
            f.truncate()
            json.dump(document, f, indent=2)

    def _parse(self, text: str) -> dict[str, Any]:
        if not text.strip():
            return _empty_document()
        try:
            document = json.loads(text)
        except json.JSONDecodeError as exc:
            raise PersistenceError(f"Plan store {self._path} is corrupt: {exc}") from exc
        if not isinstance(document, dict) or not isinstance(document.get("plans"), dict):
            raise PersistenceError(f"Plan store {self._path} has an unexpected layout")
        document.setdefault("next_id", len(document["plans"]) + 1)
        return document


class JsonHighlightSource:
    """Reads highlights from ``<data_dir>/highlights.json`` and stores their confidence.

    The file maps score ids to lists of highlight records, each with at
    least an ``id`` and optionally ``page``, ``y_pct`` and ``confidence``.
    """

    def __init__(self, data_dir: Path) -> None:
        self._path = Path(data_dir) / _HIGHLIGHTS_FILE

    def load_highlights(self, score_id: str) -> list[Highlight]:
        if not self._path.exists():
            return []
        with open(self._path) as f:
            fcntl.flock(f, fcntl.LOCK_SH)
            data = self._parse(f.read())
        return [Highlight.from_mapping(record) for record in data.get(str(score_id), [])]

    def update_confidence(self, highlight_id: str, level: str) -> None:
        """Set the confidence of every record whose id is *highlight_id*."""
        if not self._path.exists():
            raise PersistenceError(f"Highlight {highlight_id} not found, {self._path} does not exist")
        with open(self._path, "r+") as f:
            fcntl.flock(f, fcntl.LOCK_EX)
            data = self._parse(f.read())
            matched = [
                record
                for records in data.values()
                if isinstance(records, list)
                for record in records
                if isinstance(record, dict) and str(record.get("id")) == str(highlight_id)
            ]
            if not matched:
                raise PersistenceError(f"Highlight {highlight_id} not found")
            for record in matched:
                record["confidence"] = level
            f.seek(0)
            f.truncate()
            json.dump(data, f, indent=2)
        logger.info("Highlight confidence stored", highlight_id=highlight_id, confidence=level)

    def _parse(self, text: str) -> dict[str, Any]:
        try:
            data = json.loads(text)
        except json.JSONDecodeError as exc:
            raise PersistenceError(f"Highlight file {self._path} is corrupt: {exc}") from exc
        if not isinstance(data, dict):
            raise PersistenceError(f"Highlight file {self._path} has an unexpected layout")
        return data
