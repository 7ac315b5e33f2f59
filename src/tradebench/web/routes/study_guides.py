"""Study guide endpoints."""

from fastapi import APIRouter, Depends, HTTPException, Query, status

from tradebench.api.base import ApiClient
from tradebench.web.deps import get_client
from tradebench.web.schemas import StudyGuideListResponse, StudyGuideResponse

router = APIRouter(prefix="/api/study-guides", tags=["study-guides"])


@router.get("", response_model=StudyGuideListResponse)
async def list_study_guides(
    year: int | None = Query(default=None, ge=1),
    section: str | None = None,
    client: ApiClient = Depends(get_client),
) -> StudyGuideListResponse:
    guides = await client.study_guides.get_all(year=year, section=section)
    items = [StudyGuideResponse.model_validate(g.to_dict()) for g in guides]
    return StudyGuideListResponse(study_guides=items, count=len(items))


@router.get("/{guide_id}", response_model=StudyGuideResponse)
async def get_study_guide(
    guide_id: str,
    client: ApiClient = Depends(get_client),
) -> StudyGuideResponse:
    guide = await client.study_guides.get_by_id(guide_id)
    if guide is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Study guide '{guide_id}' not found",
        )
    return StudyGuideResponse.model_validate(guide.to_dict())
