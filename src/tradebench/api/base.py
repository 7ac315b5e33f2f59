"""Client interface shared by the remote and offline backends.

An ApiClient bundles six resources: questions, study_guides,
user_progress, bookmarks, quiz_sessions and auth. Each backend implements
the abstract classes below; the factory picks one backend at startup.

Reference-read policy:
    Reads of reference data (questions, study guides) never raise. Any
    TradeBenchError is logged and the read returns its declared default
    ([] for listings, None for get_by_id). The default is declared with
    @reference_read and exposed as ``__reference_default__`` on the method.
"""

from __future__ import annotations

import functools
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Mapping, TypeVar

import structlog

from tradebench.api.auth_events import AuthListener, Subscription
from tradebench.errors import TradeBenchError, ValidationError
from tradebench.models import (
    PROFILE_EDITABLE_FIELDS,
    PROGRESS_FIELDS,
    PROGRESS_IGNORED_KEYS,
    AuthSession,
    AuthUser,
    Bookmark,
    Profile,
    Question,
    QuizSession,
    SignUpResult,
    StudyGuide,
    UserProgress,
)

logger = structlog.get_logger(__name__)

T = TypeVar("T")


def reference_read(default: Callable[[], Any]) -> Callable:
    """Declare the value a reference read returns when the backend fails.

    Args:
        default: Zero-argument factory for the fallback (e.g. ``list``).
    """

    def decorator(fn: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        @functools.wraps(fn)
        async def wrapper(*args, **kwargs):
            try:
                return await fn(*args, **kwargs)
            except TradeBenchError as e:
                logger.warning(
                    "reference_read.failed",
                    operation=fn.__qualname__,
                    error=e.message,
                    error_type=type(e).__name__,
                )
                return default()

        wrapper.__reference_default__ = default
        return wrapper

    return decorator


# =============================================================================
# VALIDATION HELPERS
# =============================================================================


def require_credentials(email: str | None, password: str | None) -> None:
    if not email or not email.strip():
        raise ValidationError("Email is required")
    if not password:
        raise ValidationError("Password is required")


def normalize_progress_document(document: Mapping[str, Any] | None) -> dict[str, Any]:
    """Build the full set of progress fields to write.

    Supplied fields are taken verbatim, omitted ones become empty
    containers. Row keys (id, user_id, year, timestamps) are ignored.

    Raises:
        ValidationError: Unknown field or wrong container type.
    """
    document = document or {}
    if not isinstance(document, Mapping):
        raise ValidationError("Progress document must be a mapping")

    unknown = set(document) - set(PROGRESS_FIELDS) - PROGRESS_IGNORED_KEYS
    if unknown:
        raise ValidationError(f"Unknown progress fields: {', '.join(sorted(unknown))}")

    result: dict[str, Any] = {}
    for name, kind in PROGRESS_FIELDS.items():
        value = document.get(name)
        if value is None:
            result[name] = kind()
        elif not isinstance(value, kind):
            raise ValidationError(f"Progress field '{name}' must be a {kind.__name__}")
        else:
            result[name] = value
    return result


def validate_profile_fields(fields: Mapping[str, Any]) -> dict[str, Any]:
    """Reject anything that is not an editable profile field."""
    unknown = set(fields) - PROFILE_EDITABLE_FIELDS
    if unknown:
        raise ValidationError(f"Fields not editable: {', '.join(sorted(unknown))}")
    if "selected_year" in fields and not isinstance(fields["selected_year"], int):
        raise ValidationError("selected_year must be an integer")
    return dict(fields)


def sort_reference_rows(rows: list[T]) -> list[T]:
    """Order by year, then section (missing sections first)."""
    return sorted(rows, key=lambda r: (r.year, r.section or ""))


# =============================================================================
# RESOURCE INTERFACES
# =============================================================================


class QuestionsResource(ABC):
    """Practice questions (public, read-only)."""

    @abstractmethod
    async def get_all(
        self,
        year: int | None = None,
        section: str | None = None,
        difficulty: str | None = None,
    ) -> list[Question]:
        """Questions matching every given filter, ordered by year then section."""

    async def get_by_year(self, year: int) -> list[Question]:
        return await self.get_all(year=year)

    async def get_by_section(self, year: int, section: str) -> list[Question]:
        return await self.get_all(year=year, section=section)

    @abstractmethod
    async def get_by_id(self, question_id: str) -> Question | None:
        """The question, or None when absent."""


class StudyGuidesResource(ABC):
    """Study guides (public, read-only)."""

    @abstractmethod
    async def get_all(
        self,
        year: int | None = None,
        section: str | None = None,
    ) -> list[StudyGuide]:
        """Guides matching every given filter, ordered by year then section."""

    async def get_by_year(self, year: int) -> list[StudyGuide]:
        return await self.get_all(year=year)

    async def get_by_section(self, year: int, section: str) -> list[StudyGuide]:
        return await self.get_all(year=year, section=section)

    @abstractmethod
    async def get_by_id(self, guide_id: str) -> StudyGuide | None:
        """The guide, or None when absent."""


class UserProgressResource(ABC):
    """One progress document per (user, year)."""

    @abstractmethod
    async def get(self, user_id: str, year: int) -> UserProgress:
        """Stored document, or the all-empty default if none exists."""

    @abstractmethod
    async def update(
        self, user_id: str, year: int, document: Mapping[str, Any]
    ) -> UserProgress:
        """Upsert: overwrite every field, omitted ones as empty containers."""

    @abstractmethod
    async def reset(self, user_id: str, year: int) -> UserProgress:
        """Clear every field of the existing row."""


class BookmarksResource(ABC):
    """Bookmarked questions, unique per (user, question)."""

    @abstractmethod
    async def add(self, user_id: str, question_id: str, year: int) -> Bookmark:
        """Raises ConflictError if the pair exists."""

    @abstractmethod
    async def remove(self, user_id: str, question_id: str) -> bool:
        """Idempotent delete."""

    @abstractmethod
    async def get_all(self, user_id: str, year: int) -> list[Bookmark]:
        """Bookmarks with question display fields; [] on failure."""


class QuizSessionsResource(ABC):
    """Append-only quiz attempt log."""

    @abstractmethod
    async def create(
        self, user_id: str, year: int, quiz_mode: str, questions: list[Any]
    ) -> QuizSession:
        """Insert an in-progress session."""

    @abstractmethod
    async def update(
        self,
        session_id: str,
        answers: Mapping[str, Any],
        score: int,
        time_taken: int,
    ) -> QuizSession:
        """Complete a session. Raises NotFoundError for an unknown id."""

    @abstractmethod
    async def get_history(self, user_id: str, year: int, limit: int = 10) -> list[QuizSession]:
        """Completed sessions, newest first; [] on failure."""


class AuthProvider(ABC):
    """Identity provider adapter."""

    @abstractmethod
    async def sign_up(
        self,
        email: str,
        password: str,
        profile_fields: Mapping[str, Any] | None = None,
    ) -> SignUpResult: ...

    @abstractmethod
    async def sign_in(self, email: str, password: str) -> AuthSession: ...

    @abstractmethod
    async def sign_out(self) -> None: ...

    @abstractmethod
    async def get_current_user(self) -> AuthUser | None: ...

    @abstractmethod
    async def get_profile(self, user_id: str) -> Profile | None: ...

    @abstractmethod
    async def ensure_profile(self, user: AuthUser) -> Profile:
        """Return the user's profile, creating it from identity metadata if absent."""

    @abstractmethod
    async def update_profile(self, fields: Mapping[str, Any]) -> Profile: ...

    @abstractmethod
    async def reset_password(self, email: str, answer: str, new_password: str) -> None: ...

    @abstractmethod
    async def refresh_session(self) -> AuthSession: ...

    @abstractmethod
    async def delete_account(self) -> None: ...

    @abstractmethod
    def on_auth_state_change(self, callback: AuthListener) -> Subscription: ...


# =============================================================================
# CLIENT BUNDLE
# =============================================================================


@dataclass
class ApiClient:
    """The capability set presentation code talks to."""

    mode: str
    auth: AuthProvider
    questions: QuestionsResource
    study_guides: StudyGuidesResource
    user_progress: UserProgressResource
    bookmarks: BookmarksResource
    quiz_sessions: QuizSessionsResource
    _closer: Callable[[], Awaitable[None]] | None = None

    async def aclose(self) -> None:
        if self._closer is not None:
            await self._closer()

    async def __aenter__(self) -> ApiClient:
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()
