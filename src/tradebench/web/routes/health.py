"""Health check endpoint."""

from datetime import datetime, timezone

from fastapi import APIRouter, Depends

from tradebench import __version__
from tradebench.api.base import ApiClient
from tradebench.web.deps import get_client
from tradebench.web.schemas import HealthResponse

router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthResponse)
async def health_check(client: ApiClient = Depends(get_client)) -> HealthResponse:
    """Check API health status."""
    return HealthResponse(
        status="ok",
        version=__version__,
        mode=client.mode,
        timestamp=datetime.now(timezone.utc).isoformat(),
    )
