"""Practice question endpoints."""

from fastapi import APIRouter, Depends, HTTPException, Query, status

from tradebench.api.base import ApiClient
from tradebench.web.deps import get_client
from tradebench.web.schemas import QuestionListResponse, QuestionResponse

router = APIRouter(prefix="/api/questions", tags=["questions"])


@router.get("", response_model=QuestionListResponse)
async def list_questions(
    year: int | None = Query(default=None, ge=1),
    section: str | None = None,
    difficulty: str | None = None,
    client: ApiClient = Depends(get_client),
) -> QuestionListResponse:
    """List questions matching every given filter."""
    questions = await client.questions.get_all(year=year, section=section, difficulty=difficulty)
    items = [QuestionResponse.model_validate(q.to_dict()) for q in questions]
    return QuestionListResponse(questions=items, count=len(items))


@router.get("/{question_id}", response_model=QuestionResponse)
async def get_question(
    question_id: str,
    client: ApiClient = Depends(get_client),
) -> QuestionResponse:
    question = await client.questions.get_by_id(question_id)
    if question is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Question '{question_id}' not found",
        )
    return QuestionResponse.model_validate(question.to_dict())
