"""Product view tracking and analytics endpoints."""

from datetime import date

import structlog
from fastapi import APIRouter, Query, Request, Response, status
from sqlalchemy.exc import SQLAlchemyError

from productbazar.api.deps import AdminUser, ClientIP, CurrentUser, DbSession, OptionalUser
from productbazar.exceptions import AppError, ForbiddenError, ValidationError
from productbazar.schemas.common import ApiResponse, paginate
from productbazar.schemas.view import (
    ProductViewCounts,
    RecordedViewResponse,
    ViewCreate,
    ViewDurationUpdate,
    payload_dict,
)
from productbazar.services.view_service import POPULAR_PERIODS, ViewService

logger = structlog.get_logger()
router = APIRouter()


@router.post(
    "/product/{product_id}",
    response_model=ApiResponse[RecordedViewResponse],
    status_code=status.HTTP_201_CREATED,
)
async def record_view(
    product_id: int,
    request: Request,
    response: Response,
    db: DbSession,
    current_user: OptionalUser,
    ip: ClientIP,
    data: ViewCreate | None = None,
):
    """Record a product page view."""
    recorded = await ViewService(db).record_view(
        product_id,
        current_user,
        payload_dict(data) if data else {},
        request.headers,
        ip,
    )
    counts = ProductViewCounts(count=recorded.count, unique=recorded.unique)

    if recorded.bot:
        response.status_code = status.HTTP_200_OK
        return ApiResponse(
            message="Bot view ignored.", data=RecordedViewResponse(product_views=counts)
        )
    if recorded.duplicate:
        response.status_code = status.HTTP_200_OK
        return ApiResponse(
            message="View already recorded recently.",
            data=RecordedViewResponse(product_views=counts, is_duplicate=True),
        )

    await db.commit()
    return ApiResponse(
        message="View recorded.",
        data=RecordedViewResponse(product_views=counts, is_unique=recorded.is_unique),
    )


@router.post("/product/{product_id}/duration", response_model=ApiResponse[dict])
async def update_view_duration(
    product_id: int,
    data: ViewDurationUpdate,
    request: Request,
    response: Response,
    db: DbSession,
    current_user: OptionalUser,
    ip: ClientIP,
):
    """Page-unload beacon with the time spent on a product page."""
    if data.view_duration is None or data.view_duration < 1:
        return ApiResponse(status="skipped", message="No meaningful duration to record.")

    try:
        created = await ViewService(db).update_view_duration(
            product_id, current_user, payload_dict(data), request.headers, ip
        )
        await db.commit()
    except (AppError, SQLAlchemyError) as e:
        # The unload beacon must never surface an error to the browser
        await db.rollback()
        logger.error("view_duration_failed", product_id=product_id, error=str(e))
        return ApiResponse(status="error", message="Could not record view duration.")

    if created:
        response.status_code = status.HTTP_201_CREATED
    return ApiResponse(
        message="View duration recorded.",
        data={"view_duration": int(data.view_duration), "created": created},
    )


@router.get("/popular", response_model=ApiResponse[list[dict]])
async def popular_products(
    db: DbSession,
    limit: int = Query(default=10, ge=1),
    period: str = Query(default="week"),
):
    """Most viewed published products in a period."""
    if period not in POPULAR_PERIODS:
        period = "week"
    return ApiResponse(data=await ViewService(db).get_popular(min(limit, 30), period))


@router.get("/related/{product_id}", response_model=ApiResponse[dict])
async def related_products(product_id: int, db: DbSession, limit: int = Query(default=5, ge=1)):
    """Products co-viewed by this product's viewers."""
    return ApiResponse(data=await ViewService(db).get_related(product_id, min(limit, 15)))


@router.get("/product/{product_id}/stats", response_model=ApiResponse[dict])
async def product_stats(
    product_id: int,
    db: DbSession,
    current_user: OptionalUser,
    days: int = Query(default=7, ge=1, le=365),
):
    """Stats, engagement metrics and insights for a product."""
    return ApiResponse(data=await ViewService(db).get_stats_payload(product_id, days, current_user))


@router.get("/product/{product_id}/devices", response_model=ApiResponse[dict])
async def product_devices(
    product_id: int, db: DbSession, days: int = Query(default=30, ge=1, le=365)
):
    return ApiResponse(data=await ViewService(db).get_device_breakdown(product_id, days))


@router.get("/history", response_model=ApiResponse[dict])
async def view_history(
    current_user: CurrentUser,
    db: DbSession,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1),
):
    """The current user's view history."""
    limit = min(limit, 50)
    history, total = await ViewService(db).get_user_history(current_user.id, page, limit)
    return ApiResponse(
        data={"history": history, "pagination": paginate(page, limit, total).model_dump()}
    )


@router.delete("/history", response_model=ApiResponse[dict])
async def clear_view_history(current_user: CurrentUser, db: DbSession):
    deleted = await ViewService(db).clear_user_history(current_user.id)
    await db.commit()
    return ApiResponse(message="View history cleared.", data={"deleted": deleted})


@router.get("/engagement", response_model=ApiResponse[dict])
async def my_engagement(
    current_user: CurrentUser, db: DbSession, days: int = Query(default=30, ge=1, le=365)
):
    return ApiResponse(data=await ViewService(db).get_user_engagement(current_user.id, days))


@router.get("/user/{user_id}/engagement", response_model=ApiResponse[dict])
async def user_engagement(
    user_id: int,
    current_user: CurrentUser,
    db: DbSession,
    days: int = Query(default=30, ge=1, le=365),
):
    """Engagement summary for a user; self or admin only."""
    if current_user.id != user_id and not current_user.is_admin:
        raise ForbiddenError("You can only view your own engagement.")
    return ApiResponse(data=await ViewService(db).get_user_engagement(user_id, days))


def _parse_date(value: str | None, name: str) -> date:
    if not value:
        raise ValidationError(f"{name} is required (YYYY-MM-DD).")
    try:
        return date.fromisoformat(value)
    except ValueError as e:
        raise ValidationError(f"{name} must be a valid date (YYYY-MM-DD).") from e


@router.get("/analytics/daily", response_model=ApiResponse[list[dict]])
async def daily_analytics(
    admin: AdminUser,
    db: DbSession,
    start_date: str | None = None,
    end_date: str | None = None,
):
    """Platform-wide daily view analytics."""
    start = _parse_date(start_date, "start_date")
    end = _parse_date(end_date, "end_date")
    if start > end:
        raise ValidationError("start_date must not be after end_date.")
    return ApiResponse(data=await ViewService(db).get_daily_analytics(start, end))
