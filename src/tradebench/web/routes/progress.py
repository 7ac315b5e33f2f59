"""Progress endpoints.

PUT overwrites the whole document; DELETE resets it. Quiz completions are
posted to /quiz and aggregated server-side.
"""

from fastapi import APIRouter, Depends, Path

from tradebench.api.base import ApiClient
from tradebench.core.progress import AnswerRecord, QuizCompletion, record_quiz_completion
from tradebench.web.deps import get_client
from tradebench.web.schemas import (
    ProgressDocument,
    ProgressResponse,
    QuizCompletionRequest,
)

router = APIRouter(prefix="/api/progress", tags=["progress"])


@router.get("/{user_id}/{year}", response_model=ProgressResponse)
async def get_progress(
    user_id: str,
    year: int = Path(..., ge=1),
    client: ApiClient = Depends(get_client),
) -> ProgressResponse:
    """Stored progress, or the empty default."""
    progress = await client.user_progress.get(user_id, year)
    return ProgressResponse.model_validate(progress.to_dict())


@router.put("/{user_id}/{year}", response_model=ProgressResponse)
async def put_progress(
    body: ProgressDocument,
    user_id: str,
    year: int = Path(..., ge=1),
    client: ApiClient = Depends(get_client),
) -> ProgressResponse:
    progress = await client.user_progress.update(
        user_id, year, body.model_dump(exclude_none=True)
    )
    return ProgressResponse.model_validate(progress.to_dict())


@router.delete("/{user_id}/{year}", response_model=ProgressResponse)
async def reset_progress(
    user_id: str,
    year: int = Path(..., ge=1),
    client: ApiClient = Depends(get_client),
) -> ProgressResponse:
    progress = await client.user_progress.reset(user_id, year)
    return ProgressResponse.model_validate(progress.to_dict())


@router.post("/{user_id}/{year}/quiz", response_model=ProgressResponse)
async def record_quiz(
    body: QuizCompletionRequest,
    user_id: str,
    year: int = Path(..., ge=1),
    client: ApiClient = Depends(get_client),
) -> ProgressResponse:
    """Record a finished quiz and return the recomputed progress."""
    completion = QuizCompletion(
        user_id=user_id,
        year=year,
        answers=[AnswerRecord(**a.model_dump()) for a in body.answers],
        time_taken=body.time_taken,
        session_id=body.session_id,
    )
    progress = await record_quiz_completion(client, completion)
    return ProgressResponse.model_validate(progress.to_dict())
