"""Response envelope shared by every endpoint."""

from typing import Any, Generic, Literal, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


class ApiResponse(BaseModel, Generic[T]):
    """``{status, message, data}`` envelope."""

    status: Literal["success", "error", "skipped"] = "success"
    message: str | None = None
    data: T | None = None


class AuthResponse(ApiResponse[T], Generic[T]):
    """Auth responses also point the client at the next onboarding step."""

    next_step: dict[str, Any] | None = None


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    pages: int


def paginate(page: int, limit: int, total: int) -> Pagination:
    return Pagination(page=page, limit=limit, total=total, pages=-(-total // limit) if limit else 0)
