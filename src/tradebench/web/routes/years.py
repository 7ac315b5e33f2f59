"""Training year endpoints."""

from fastapi import APIRouter, HTTPException, status

from tradebench.config.years import get_year, list_years
from tradebench.web.schemas import YearListResponse, YearResponse

router = APIRouter(prefix="/api/years", tags=["years"])


def _to_response(year) -> YearResponse:
    return YearResponse(
        number=year.number,
        title=year.title,
        description=year.description,
        icon=year.icon,
    )


@router.get("", response_model=YearListResponse)
async def list_training_years() -> YearListResponse:
    """List all training years."""
    years = [_to_response(y) for y in list_years()]
    return YearListResponse(years=years, count=len(years))


@router.get("/{number}", response_model=YearResponse)
async def get_training_year(number: int) -> YearResponse:
    year = get_year(number)
    if year is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Year '{number}' not found",
        )
    return _to_response(year)
