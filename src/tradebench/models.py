"""Record types shared by the remote and offline clients.

Rows arrive as plain dicts (JSON from the REST service or from local
storage) and are converted with ``from_row``; ``to_dict`` gives back the
JSON-ready shape.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Iterable, Literal, TypeVar

from tradebench.errors import BackendError

Difficulty = Literal["easy", "medium", "hard"]

# Progress JSON fields and the empty container each one defaults to
PROGRESS_FIELDS: dict[str, type] = {
    "progress_data": dict,
    "exam_readiness": dict,
    "statistics": dict,
    "bookmarks": list,
    "weak_areas": list,
    "streak_data": dict,
}

# Keys a caller may leave in a progress document; they are never written
PROGRESS_IGNORED_KEYS = frozenset({"id", "user_id", "year", "created_at", "updated_at"})

PROFILE_EDITABLE_FIELDS = frozenset(
    {
        "full_name",
        "first_name",
        "last_name",
        "selected_year",
        "security_question",
        "security_answer",
    }
)


def utc_now() -> str:
    """Current UTC time as ISO-8601 string."""
    return datetime.now(timezone.utc).isoformat()


R = TypeVar("R")


def decode_rows(factory: Callable[[dict[str, Any]], R], rows: Iterable[Any]) -> list[R]:
    """Convert raw rows with factory; a malformed row raises BackendError."""
    try:
        return [factory(row) for row in rows]
    except (AttributeError, KeyError, TypeError, ValueError) as e:
        raise BackendError(f"Malformed row for {factory.__qualname__}: {e!r}") from e


# =============================================================================
# IDENTITY
# =============================================================================


@dataclass
class AuthUser:
    """Identity as reported by the auth service."""

    id: str
    email: str
    user_metadata: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> AuthUser:
        return cls(
            id=str(row["id"]),
            email=row.get("email") or "",
            user_metadata=dict(row.get("user_metadata") or {}),
        )

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "email": self.email, "user_metadata": dict(self.user_metadata)}


@dataclass
class AuthSession:
    """Credentials for the signed-in user."""

    access_token: str
    refresh_token: str
    user: AuthUser
    expires_at: int | None = None

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> AuthSession:
        return cls(
            access_token=row["access_token"],
            refresh_token=row.get("refresh_token") or "",
            user=AuthUser.from_row(row["user"]),
            expires_at=row.get("expires_at"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "access_token": self.access_token,
            "refresh_token": self.refresh_token,
            "expires_at": self.expires_at,
            "user": self.user.to_dict(),
        }


@dataclass
class SignUpResult:
    """Outcome of a sign-up call."""

    user: AuthUser
    session: AuthSession | None
    needs_verification: bool = False


@dataclass
class Profile:
    """Per-user profile row, 1:1 with the auth identity."""

    id: str
    email: str = ""
    full_name: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    selected_year: int = 1
    security_question: str | None = None
    security_answer: str | None = None
    created_at: str | None = None
    updated_at: str | None = None

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> Profile:
        return cls(
            id=str(row["id"]),
            email=row.get("email") or "",
            full_name=row.get("full_name"),
            first_name=row.get("first_name"),
            last_name=row.get("last_name"),
            selected_year=row.get("selected_year") or 1,
            security_question=row.get("security_question"),
            security_answer=row.get("security_answer"),
            created_at=row.get("created_at"),
            updated_at=row.get("updated_at"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "email": self.email,
            "full_name": self.full_name,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "selected_year": self.selected_year,
            "security_question": self.security_question,
            "security_answer": self.security_answer,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }


# =============================================================================
# REFERENCE DATA
# =============================================================================


@dataclass
class Question:
    """A practice question. Immutable reference data."""

    id: str
    year: int
    text: str
    options: list[str]
    correct_answer: str
    section: str | None = None
    difficulty: Difficulty | None = None
    explanation: str | None = None

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> Question:
        return cls(
            id=str(row["id"]),
            year=int(row["year"]),
            # Stored as question_text; accept the short name as well
            text=row.get("question_text", row.get("text", "")),
            options=list(row.get("options") or []),
            correct_answer=row["correct_answer"],
            section=row.get("section"),
            difficulty=row.get("difficulty"),
            explanation=row.get("explanation"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "year": self.year,
            "section": self.section,
            "difficulty": self.difficulty,
            "question_text": self.text,
            "options": list(self.options),
            "correct_answer": self.correct_answer,
            "explanation": self.explanation,
        }

    def display_fields(self) -> dict[str, Any]:
        """Fields joined into bookmark listings."""
        return {
            "id": self.id,
            "year": self.year,
            "section": self.section,
            "question_text": self.text,
            "options": list(self.options),
            "correct_answer": self.correct_answer,
            "difficulty": self.difficulty,
        }


@dataclass
class StudyGuide:
    """A study guide chapter. Immutable reference data."""

    id: str
    year: int
    title: str
    content: str
    section: str | None = None

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> StudyGuide:
        return cls(
            id=str(row["id"]),
            year=int(row["year"]),
            title=row["title"],
            content=row.get("content", ""),
            section=row.get("section"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "year": self.year,
            "section": self.section,
            "title": self.title,
            "content": self.content,
        }


# =============================================================================
# PER-USER DATA
# =============================================================================


@dataclass
class UserProgress:
    """Progress document for one (user, year)."""

    user_id: str
    year: int
    progress_data: dict[str, Any] = field(default_factory=dict)
    exam_readiness: dict[str, Any] = field(default_factory=dict)
    statistics: dict[str, Any] = field(default_factory=dict)
    bookmarks: list[Any] = field(default_factory=list)
    weak_areas: list[Any] = field(default_factory=list)
    streak_data: dict[str, Any] = field(default_factory=dict)
    id: str | None = None
    created_at: str | None = None
    updated_at: str | None = None

    @classmethod
    def default(cls, user_id: str, year: int) -> UserProgress:
        """Zero-valued document returned when no row exists."""
        return cls(user_id=user_id, year=year)

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> UserProgress:
        fields = {
            name: copy.deepcopy(row.get(name)) if row.get(name) is not None else kind()
            for name, kind in PROGRESS_FIELDS.items()
        }
        return cls(
            user_id=str(row["user_id"]),
            year=int(row["year"]),
            id=str(row["id"]) if row.get("id") is not None else None,
            created_at=row.get("created_at"),
            updated_at=row.get("updated_at"),
            **fields,
        )

    def document(self) -> dict[str, Any]:
        """The JSON sub-fields only."""
        return {name: copy.deepcopy(getattr(self, name)) for name in PROGRESS_FIELDS}

    def to_document(self) -> dict[str, Any]:
        """Key plus JSON sub-fields, without row metadata."""
        return {"user_id": self.user_id, "year": self.year, **self.document()}

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            **self.to_document(),
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }


@dataclass
class Bookmark:
    """A bookmarked question, with the question's display fields joined in."""

    id: str
    user_id: str
    question_id: str
    year: int
    created_at: str | None = None
    question: dict[str, Any] | None = None

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> Bookmark:
        # The REST embed names the joined resource after its table
        question = row.get("questions", row.get("question"))
        return cls(
            id=str(row["id"]),
            user_id=str(row["user_id"]),
            question_id=str(row["question_id"]),
            year=int(row["year"]),
            created_at=row.get("created_at"),
            question=question,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "question_id": self.question_id,
            "year": self.year,
            "created_at": self.created_at,
            "question": self.question,
        }


@dataclass
class QuizSession:
    """One quiz attempt. Append-only."""

    id: str
    user_id: str
    year: int
    quiz_mode: str
    questions: list[Any]
    answers: dict[str, Any] = field(default_factory=dict)
    score: int = 0
    total_questions: int = 0
    time_taken: int = 0
    completed_at: str | None = None
    created_at: str | None = None

    @property
    def is_completed(self) -> bool:
        return self.completed_at is not None

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> QuizSession:
        return cls(
            id=str(row["id"]),
            user_id=str(row["user_id"]),
            year=int(row["year"]),
            quiz_mode=row["quiz_mode"],
            questions=list(row.get("questions") or []),
            answers=dict(row.get("answers") or {}),
            score=row.get("score") or 0,
            total_questions=row.get("total_questions") or 0,
            time_taken=row.get("time_taken") or 0,
            completed_at=row.get("completed_at"),
            created_at=row.get("created_at"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "year": self.year,
            "quiz_mode": self.quiz_mode,
            "questions": list(self.questions),
            "answers": dict(self.answers),
            "score": self.score,
            "total_questions": self.total_questions,
            "time_taken": self.time_taken,
            "completed_at": self.completed_at,
            "created_at": self.created_at,
        }
