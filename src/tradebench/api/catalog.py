"""Bundled question and study-guide catalog for offline mode.

The JSON fixtures ship inside the package (tradebench/data/). They use the
same row shape as the remote tables, so rows go through the same
``from_row`` conversions.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import structlog

from tradebench.errors import BackendError
from tradebench.models import Question, StudyGuide, decode_rows

logger = structlog.get_logger(__name__)

DATA_DIR = Path(__file__).resolve().parent.parent / "data"
QUESTIONS_FILE = DATA_DIR / "questions.json"
STUDY_GUIDES_FILE = DATA_DIR / "study_guides.json"


def _load_rows(path: Path, key: str) -> list[dict[str, Any]]:
    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise BackendError(f"Cannot read catalog {path.name}: {e}") from e

    rows = data.get(key, []) if isinstance(data, dict) else data
    logger.debug("catalog.loaded", file=path.name, rows=len(rows))
    return rows


class Catalog:
    """Read-only question and study-guide rows, loaded on first use."""

    def __init__(
        self,
        questions_path: Path | None = None,
        study_guides_path: Path | None = None,
    ):
        self.questions_path = questions_path or QUESTIONS_FILE
        self.study_guides_path = study_guides_path or STUDY_GUIDES_FILE
        self._questions: list[Question] | None = None
        self._study_guides: list[StudyGuide] | None = None

    @property
    def questions(self) -> list[Question]:
        if self._questions is None:
            rows = _load_rows(self.questions_path, "questions")
            self._questions = decode_rows(Question.from_row, rows)
        return self._questions

    @property
    def study_guides(self) -> list[StudyGuide]:
        if self._study_guides is None:
            rows = _load_rows(self.study_guides_path, "study_guides")
            self._study_guides = decode_rows(StudyGuide.from_row, rows)
        return self._study_guides

    def question(self, question_id: str) -> Question | None:
        for q in self.questions:
            if q.id == question_id:
                return q
        return None


def matches(row: Any, **filters: Any) -> bool:
    """True if row equals every non-None filter value."""
    return all(
        getattr(row, name) == value for name, value in filters.items() if value is not None
    )
