"""Bookmark endpoints."""

from fastapi import APIRouter, Depends, Query, status

from tradebench.api.base import ApiClient
from tradebench.web.deps import get_client
from tradebench.web.schemas import BookmarkCreate, BookmarkListResponse, BookmarkResponse

router = APIRouter(prefix="/api/bookmarks", tags=["bookmarks"])


@router.get("", response_model=BookmarkListResponse)
async def list_bookmarks(
    user_id: str,
    year: int = Query(..., ge=1),
    client: ApiClient = Depends(get_client),
) -> BookmarkListResponse:
    bookmarks = await client.bookmarks.get_all(user_id, year)
    items = [BookmarkResponse.model_validate(b.to_dict()) for b in bookmarks]
    return BookmarkListResponse(bookmarks=items, count=len(items))


@router.post("", response_model=BookmarkResponse, status_code=status.HTTP_201_CREATED)
async def add_bookmark(
    body: BookmarkCreate,
    client: ApiClient = Depends(get_client),
) -> BookmarkResponse:
    """Bookmark a question. 409 if already bookmarked."""
    bookmark = await client.bookmarks.add(body.user_id, body.question_id, body.year)
    return BookmarkResponse.model_validate(bookmark.to_dict())


@router.delete("/{user_id}/{question_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_bookmark(
    user_id: str,
    question_id: str,
    client: ApiClient = Depends(get_client),
) -> None:
    await client.bookmarks.remove(user_id, question_id)
