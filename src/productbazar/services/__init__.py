"""Business logic services."""

from productbazar.services.user_service import UserService
from productbazar.services.auth_service import AuthService
from productbazar.services.product_service import ProductService
from productbazar.services.view_service import ViewService
from productbazar.services.job_service import JobService
from productbazar.services.application_service import ApplicationService
from productbazar.services.search_service import SearchService

__all__ = [
    "UserService",
    "AuthService",
    "ProductService",
    "ViewService",
    "JobService",
    "ApplicationService",
    "SearchService",
]
