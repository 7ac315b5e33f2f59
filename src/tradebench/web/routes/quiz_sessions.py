"""Quiz session endpoints."""

from fastapi import APIRouter, Depends, Query, status

from tradebench.api.base import ApiClient
from tradebench.web.deps import get_client
from tradebench.web.schemas import (
    QuizHistoryResponse,
    QuizSessionComplete,
    QuizSessionCreate,
    QuizSessionResponse,
)

router = APIRouter(prefix="/api/quiz-sessions", tags=["quiz-sessions"])


@router.post("", response_model=QuizSessionResponse, status_code=status.HTTP_201_CREATED)
async def create_quiz_session(
    body: QuizSessionCreate,
    client: ApiClient = Depends(get_client),
) -> QuizSessionResponse:
    session = await client.quiz_sessions.create(
        body.user_id, body.year, body.quiz_mode, body.questions
    )
    return QuizSessionResponse.model_validate(session.to_dict())


@router.patch("/{session_id}", response_model=QuizSessionResponse)
async def complete_quiz_session(
    session_id: str,
    body: QuizSessionComplete,
    client: ApiClient = Depends(get_client),
) -> QuizSessionResponse:
    """Mark a session completed. 404 for an unknown id."""
    session = await client.quiz_sessions.update(
        session_id, body.answers, body.score, body.time_taken
    )
    return QuizSessionResponse.model_validate(session.to_dict())


@router.get("", response_model=QuizHistoryResponse)
async def quiz_history(
    user_id: str,
    year: int = Query(..., ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    client: ApiClient = Depends(get_client),
) -> QuizHistoryResponse:
    """Completed sessions, newest first."""
    sessions = await client.quiz_sessions.get_history(user_id, year, limit=limit)
    items = [QuizSessionResponse.model_validate(s.to_dict()) for s in sessions]
    return QuizHistoryResponse(sessions=items, count=len(items))
