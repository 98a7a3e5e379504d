"""Pydantic schemas for API validation."""

from productbazar.schemas.common import ApiResponse, AuthResponse, Pagination, paginate
from productbazar.schemas.user import (
    ProfileUpdate,
    RoleDetailsResponse,
    RoleDetailsUpdate,
    SecondaryRoleCreate,
    UserResponse,
)
from productbazar.schemas.product import ProductCreate, ProductResponse, ProductStatusUpdate
from productbazar.schemas.view import ViewCreate, ViewDurationUpdate
from productbazar.schemas.job import (
    JobCreate,
    JobListResponse,
    JobResponse,
    JobSearchParams,
    JobUpdate,
)
from productbazar.schemas.application import (
    ApplicationCreate,
    ApplicationResponse,
    ApplicationReview,
)
from productbazar.schemas.search import SearchHistoryResponse, SearchSuggestion

__all__ = [
    "ApiResponse",
    "AuthResponse",
    "Pagination",
    "paginate",
    "ProfileUpdate",
    "RoleDetailsResponse",
    "RoleDetailsUpdate",
    "SecondaryRoleCreate",
    "UserResponse",
    "ProductCreate",
    "ProductResponse",
    "ProductStatusUpdate",
    "ViewCreate",
    "ViewDurationUpdate",
    "JobCreate",
    "JobListResponse",
    "JobResponse",
    "JobSearchParams",
    "JobUpdate",
    "ApplicationCreate",
    "ApplicationResponse",
    "ApplicationReview",
    "SearchHistoryResponse",
    "SearchSuggestion",
]
