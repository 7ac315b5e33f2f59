"""Pydantic schemas for the Web API.

Serialization models for reference data, progress, bookmarks, quiz
sessions and auth.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field


# =============================================================================
# REFERENCE SCHEMAS
# =============================================================================


class YearResponse(BaseModel):
    """A training year (apprenticeship period)."""

    number: int
    title: str
    description: str
    icon: str = ""


class YearListResponse(BaseModel):
    years: list[YearResponse]
    count: int


class QuestionResponse(BaseModel):
    """A practice question."""

    id: str
    year: int
    section: str | None = None
    difficulty: str | None = None
    question_text: str
    options: list[str]
    correct_answer: str
    explanation: str | None = None


class QuestionListResponse(BaseModel):
    questions: list[QuestionResponse]
    count: int


class StudyGuideResponse(BaseModel):
    """A study guide chapter."""

    id: str
    year: int
    section: str | None = None
    title: str
    content: str


class StudyGuideListResponse(BaseModel):
    study_guides: list[StudyGuideResponse]
    count: int


# =============================================================================
# PROGRESS SCHEMAS
# =============================================================================


class ProgressDocument(BaseModel):
    """Request body for a full progress overwrite. Omitted fields are emptied."""

    model_config = {"extra": "forbid"}

    progress_data: dict[str, Any] | None = None
    exam_readiness: dict[str, Any] | None = None
    statistics: dict[str, Any] | None = None
    bookmarks: list[Any] | None = None
    weak_areas: list[Any] | None = None
    streak_data: dict[str, Any] | None = None


class ProgressResponse(BaseModel):
    """Progress document for one (user, year)."""

    id: str | None = None
    user_id: str
    year: int
    progress_data: dict[str, Any]
    exam_readiness: dict[str, Any]
    statistics: dict[str, Any]
    bookmarks: list[Any]
    weak_areas: list[Any]
    streak_data: dict[str, Any]
    created_at: str | None = None
    updated_at: str | None = None


class AnswerSubmission(BaseModel):
    """One answered question in a quiz completion."""

    question_id: str
    selected_answer: str
    correct_answer: str
    section: str | None = None
    difficulty: str | None = None


class QuizCompletionRequest(BaseModel):
    """Request body for recording a finished quiz."""

    answers: list[AnswerSubmission] = Field(..., min_length=1)
    time_taken: int = Field(default=0, ge=0)
    session_id: str | None = None


# =============================================================================
# BOOKMARK SCHEMAS
# =============================================================================


class BookmarkCreate(BaseModel):
    user_id: str
    question_id: str
    year: int = Field(..., ge=1)


class BookmarkResponse(BaseModel):
    id: str
    user_id: str
    question_id: str
    year: int
    created_at: str | None = None
    question: dict[str, Any] | None = None


class BookmarkListResponse(BaseModel):
    bookmarks: list[BookmarkResponse]
    count: int


# =============================================================================
# QUIZ SESSION SCHEMAS
# =============================================================================


class QuizSessionCreate(BaseModel):
    user_id: str
    year: int = Field(..., ge=1)
    quiz_mode: str = Field(default="practice", min_length=1)
    questions: list[Any] = Field(default_factory=list)


class QuizSessionComplete(BaseModel):
    answers: dict[str, Any] = Field(default_factory=dict)
    score: int = Field(..., ge=0)
    time_taken: int = Field(default=0, ge=0)


class QuizSessionResponse(BaseModel):
    id: str
    user_id: str
    year: int
    quiz_mode: str
    questions: list[Any]
    answers: dict[str, Any]
    score: int
    total_questions: int
    time_taken: int
    completed_at: str | None = None
    created_at: str | None = None


class QuizHistoryResponse(BaseModel):
    sessions: list[QuizSessionResponse]
    count: int


# =============================================================================
# AUTH SCHEMAS
# =============================================================================


class SignUpRequest(BaseModel):
    email: str = Field(..., max_length=200)
    password: str
    full_name: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    selected_year: int | None = Field(default=None, ge=1)
    security_question: str | None = None
    security_answer: str | None = None

    def profile_fields(self) -> dict[str, Any]:
        return self.model_dump(exclude={"email", "password"}, exclude_none=True)


class SignInRequest(BaseModel):
    email: str
    password: str


class ResetPasswordRequest(BaseModel):
    email: str
    security_answer: str
    new_password: str


class ProfileUpdateRequest(BaseModel):
    full_name: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    selected_year: int | None = Field(default=None, ge=1)
    security_question: str | None = None
    security_answer: str | None = None


class CurrentUserResponse(BaseModel):
    id: str
    email: str
    full_name: str
    first_name: str | None = None
    last_name: str | None = None
    selected_year: int = 1
    security_question: str | None = None
    role: str = "user"


class AuthResultResponse(BaseModel):
    """Outcome of an auth operation."""

    success: bool
    user: CurrentUserResponse | None = None
    error: str | None = None
    needs_verification: bool = False
    message: str | None = None


class AuthStateResponse(BaseModel):
    status: Literal["uninitialized", "loading", "authenticated", "anonymous"]
    user: CurrentUserResponse | None = None


# =============================================================================
# HEALTH SCHEMAS
# =============================================================================


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = "ok"
    version: str = "0.1.0"
    mode: str
    timestamp: str
