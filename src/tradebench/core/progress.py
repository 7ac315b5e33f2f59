"""Progress aggregation.

Responsibilities:
- Turn a completed quiz into the next full progress document
- Recompute statistics, weak areas, streaks and exam readiness
- Write the document through the client's user_progress.update

The data layer stores documents verbatim; all computation happens here.
``update`` overwrites every field, so the document built here is always
complete.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Any

import structlog

from tradebench.api.base import ApiClient
from tradebench.errors import ValidationError
from tradebench.models import UserProgress, utc_now

logger = structlog.get_logger(__name__)

# =============================================================================
# CONSTANTS
# =============================================================================

# Sections answered below this accuracy (percent) are weak areas
WEAK_AREA_THRESHOLD = 70.0

# Answers needed for full readiness coverage
READINESS_TARGET = 100

UNSECTIONED = "General"


# =============================================================================
# DATA CLASSES
# =============================================================================


@dataclass
class AnswerRecord:
    """One answered question within a quiz."""

    question_id: str
    selected_answer: str
    correct_answer: str
    section: str | None = None
    difficulty: str | None = None

    @property
    def is_correct(self) -> bool:
        return self.selected_answer.strip().casefold() == self.correct_answer.strip().casefold()


@dataclass
class QuizCompletion:
    """A finished quiz, as reported by the presentation layer."""

    user_id: str
    year: int
    answers: list[AnswerRecord]
    time_taken: int = 0
    session_id: str | None = None
    completed_at: str = field(default_factory=utc_now)

    @property
    def score(self) -> int:
        return sum(1 for a in self.answers if a.is_correct)

    def answers_map(self) -> dict[str, str]:
        """Answers keyed by question id, as stored on the quiz session."""
        return {a.question_id: a.selected_answer for a in self.answers}


# =============================================================================
# SCORING
# =============================================================================


def get_readiness_label(score: float) -> str:
    if score >= 80:
        return "READY"
    elif score >= 65:
        return "LIKELY"
    elif score >= 50:
        return "NEEDS WORK"
    return "NOT READY"


def _accuracy(correct: int, answered: int) -> float:
    if answered == 0:
        return 0.0
    return round(correct / answered * 100, 1)


def _tally(bucket: dict[str, Any], key: str, correct: bool) -> None:
    entry = bucket.setdefault(key, {"answered": 0, "correct": 0})
    entry["answered"] += 1
    if correct:
        entry["correct"] += 1


def _parse_date(value: str | None) -> date | None:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value).date()
    except ValueError:
        return None


def compute_weak_areas(by_section: dict[str, dict[str, int]]) -> list[dict[str, Any]]:
    """Sections with incorrect answers and accuracy below the threshold, weakest first."""
    weak = []
    for section, tally in by_section.items():
        answered = tally.get("answered", 0)
        incorrect = answered - tally.get("correct", 0)
        accuracy = _accuracy(tally.get("correct", 0), answered)
        if incorrect > 0 and accuracy < WEAK_AREA_THRESHOLD:
            weak.append(
                {
                    "section": section,
                    "answered": answered,
                    "incorrect": incorrect,
                    "accuracy": accuracy,
                }
            )
    weak.sort(key=lambda w: (w["accuracy"], -w["incorrect"], w["section"]))
    return weak


def compute_streaks(
    previous: dict[str, Any],
    answers: list[AnswerRecord],
    study_date: date | None,
) -> dict[str, Any]:
    """Advance answer streaks and the consecutive-study-day streak."""
    current_correct = previous.get("current_correct", 0)
    current_incorrect = previous.get("current_incorrect", 0)
    best_correct = previous.get("best_correct", 0)

    for answer in answers:
        if answer.is_correct:
            current_correct += 1
            current_incorrect = 0
            best_correct = max(best_correct, current_correct)
        else:
            current_incorrect += 1
            current_correct = 0

    study_days = previous.get("study_days", 0)
    last_date = _parse_date(previous.get("last_study_date"))
    if study_date is not None:
        if last_date == study_date:
            study_days = max(study_days, 1)
        elif last_date is not None and study_date - last_date == timedelta(days=1):
            study_days += 1
        else:
            study_days = 1
        last_date = study_date

    return {
        "current_correct": current_correct,
        "best_correct": best_correct,
        "current_incorrect": current_incorrect,
        "study_days": study_days,
        "last_study_date": last_date.isoformat() if last_date else None,
    }


def compute_exam_readiness(statistics: dict[str, Any], updated_at: str) -> dict[str, Any]:
    """Readiness = accuracy scaled by how much of the target has been answered."""
    answered = statistics.get("total_answered", 0)
    accuracy = statistics.get("accuracy", 0.0)
    coverage = min(1.0, answered / READINESS_TARGET) if READINESS_TARGET else 1.0
    score = round(accuracy * coverage, 1)
    return {
        "score": score,
        "label": get_readiness_label(score),
        "coverage": round(coverage, 3),
        "accuracy": accuracy,
        "updated_at": updated_at,
    }


# =============================================================================
# MAIN FUNCTIONS
# =============================================================================


def build_progress_document(
    current: UserProgress,
    completion: QuizCompletion,
) -> dict[str, Any]:
    """Build the complete next progress document.

    Pure: ``current`` is not modified.

    Raises:
        ValidationError: Completion is for a different (user, year).
    """
    if (current.user_id, current.year) != (completion.user_id, completion.year):
        raise ValidationError("Quiz completion does not match the progress document")

    progress_data = copy.deepcopy(current.progress_data)
    statistics = copy.deepcopy(current.statistics)
    by_section = statistics.setdefault("by_section", {})
    by_difficulty = statistics.setdefault("by_difficulty", {})

    total_answered = statistics.get("total_answered", 0)
    total_correct = statistics.get("total_correct", 0)

    for answer in completion.answers:
        correct = answer.is_correct
        previous = progress_data.get(answer.question_id)
        attempts = previous.get("attempts", 0) if isinstance(previous, dict) else 0
        progress_data[answer.question_id] = {
            "answer": answer.selected_answer,
            "correct": correct,
            "section": answer.section,
            "difficulty": answer.difficulty,
            "attempts": attempts + 1,
            "answered_at": completion.completed_at,
        }

        total_answered += 1
        total_correct += 1 if correct else 0
        _tally(by_section, answer.section or UNSECTIONED, correct)
        if answer.difficulty:
            _tally(by_difficulty, answer.difficulty, correct)

    statistics.update(
        total_answered=total_answered,
        total_correct=total_correct,
        accuracy=_accuracy(total_correct, total_answered),
        quizzes_completed=statistics.get("quizzes_completed", 0) + 1,
        total_time=statistics.get("total_time", 0) + completion.time_taken,
        last_quiz_at=completion.completed_at,
    )

    return {
        "progress_data": progress_data,
        "statistics": statistics,
        "weak_areas": compute_weak_areas(by_section),
        "streak_data": compute_streaks(
            current.streak_data, completion.answers, _parse_date(completion.completed_at)
        ),
        "exam_readiness": compute_exam_readiness(statistics, completion.completed_at),
        "bookmarks": copy.deepcopy(current.bookmarks),
    }


async def record_quiz_completion(
    client: ApiClient,
    completion: QuizCompletion,
) -> UserProgress:
    """Complete the quiz session (if any) and write the new progress document.

    Args:
        client: Remote or offline ApiClient
        completion: The finished quiz

    Returns:
        The stored UserProgress

    Raises:
        NotFoundError: session_id given but unknown
        TradeBenchError: Any write failure, propagated
    """
    if completion.session_id:
        await client.quiz_sessions.update(
            completion.session_id,
            completion.answers_map(),
            completion.score,
            completion.time_taken,
        )

    current = await client.user_progress.get(completion.user_id, completion.year)
    document = build_progress_document(current, completion)
    stored = await client.user_progress.update(completion.user_id, completion.year, document)

    logger.info(
        "progress.quiz_recorded",
        user_id=completion.user_id,
        year=completion.year,
        score=completion.score,
        total=len(completion.answers),
        readiness=document["exam_readiness"]["score"],
    )
    return stored
