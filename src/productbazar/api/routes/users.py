"""Role details and secondary role endpoints."""

from fastapi import APIRouter, status

from productbazar.api.deps import CurrentUser, DbSession
from productbazar.schemas.common import ApiResponse
from productbazar.schemas.user import (
    RoleDetailsResponse,
    RoleDetailsUpdate,
    SecondaryRoleCreate,
    UserResponse,
)
from productbazar.services.user_service import UserService

router = APIRouter()


@router.get("/{user_id}/role-details", response_model=ApiResponse[list[RoleDetailsResponse]])
async def get_role_details(user_id: int, db: DbSession):
    """Get the role detail documents for a user."""
    details = await UserService(db).get_role_details(user_id)
    return ApiResponse(data=[RoleDetailsResponse.model_validate(d) for d in details])


@router.put("/me/role-details", response_model=ApiResponse[RoleDetailsResponse])
async def update_role_details(data: RoleDetailsUpdate, current_user: CurrentUser, db: DbSession):
    """Create or merge the current user's details for one of their roles."""
    record = await UserService(db).upsert_role_details(current_user, data.details, data.role)
    await db.commit()
    await db.refresh(record)
    return ApiResponse(
        message="Role details updated", data=RoleDetailsResponse.model_validate(record)
    )


@router.post(
    "/me/roles",
    response_model=ApiResponse[UserResponse],
    status_code=status.HTTP_201_CREATED,
)
async def add_role(data: SecondaryRoleCreate, current_user: CurrentUser, db: DbSession):
    """Add a secondary role and recompute capabilities."""
    user = await UserService(db).add_secondary_role(current_user, data.role)
    await db.commit()
    await db.refresh(user)
    return ApiResponse(message="Role added", data=UserResponse.model_validate(user))
