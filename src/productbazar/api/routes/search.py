"""Global search endpoints."""

from fastapi import APIRouter, Query

from productbazar.api.deps import CurrentUser, DbSession, OptionalUser
from productbazar.models.search import SearchType
from productbazar.schemas.common import ApiResponse
from productbazar.schemas.search import SearchHistoryResponse, SearchSuggestion
from productbazar.services.search_service import SearchService

router = APIRouter()


@router.get("", response_model=ApiResponse[dict])
async def search(
    db: DbSession,
    current_user: OptionalUser,
    q: str = "",
    search_type: SearchType = Query(SearchType.ALL, alias="type"),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=50),
):
    """Search products, jobs and users."""
    results = await SearchService(db).search(q, search_type, page, limit, current_user)
    if current_user is not None:
        await db.commit()
    return ApiResponse(data=results)


@router.get("/suggestions", response_model=ApiResponse[list[SearchSuggestion]])
async def suggestions(
    db: DbSession,
    current_user: OptionalUser,
    q: str = "",
    search_type: SearchType = Query(SearchType.ALL, alias="type"),
):
    """Prefix suggestions plus the user's matching past queries."""
    items = await SearchService(db).suggestions(q, search_type, current_user)
    return ApiResponse(data=[SearchSuggestion(**item) for item in items])


@router.get("/history", response_model=ApiResponse[list[SearchHistoryResponse]])
async def search_history(current_user: CurrentUser, db: DbSession):
    entries = await SearchService(db).get_history(current_user.id)
    return ApiResponse(data=[SearchHistoryResponse.model_validate(e) for e in entries])


@router.delete("/history", response_model=ApiResponse[dict])
async def clear_search_history(current_user: CurrentUser, db: DbSession):
    deleted = await SearchService(db).clear_history(current_user.id)
    await db.commit()
    return ApiResponse(message="Search history cleared", data={"deleted": deleted})
