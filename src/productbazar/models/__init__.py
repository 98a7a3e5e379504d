"""Database models."""

from productbazar.models.base import Base
from productbazar.models.user import RoleDetails, User, UserRole
from productbazar.models.token import RefreshToken
from productbazar.models.product import Product, ProductStatus
from productbazar.models.view import DeviceType, View, ViewSource
from productbazar.models.job import Job, JobStatus
from productbazar.models.application import ApplicationStatus, JobApplication
from productbazar.models.search import SearchHistory, SearchType

__all__ = [
    "Base",
    "User",
    "UserRole",
    "RoleDetails",
    "RefreshToken",
    "Product",
    "ProductStatus",
    "View",
    "ViewSource",
    "DeviceType",
    "Job",
    "JobStatus",
    "JobApplication",
    "ApplicationStatus",
    "SearchHistory",
    "SearchType",
]
