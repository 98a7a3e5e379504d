"""View tracking request schemas."""

from typing import Any

from pydantic import BaseModel, Field


class ViewCreate(BaseModel):
    """Body of a product page view beacon. Everything is optional."""

    client_id: str | None = Field(None, max_length=100)
    session_id: str | None = Field(None, max_length=100)
    source: str | None = Field(None, max_length=50)
    referrer: str | None = Field(None, max_length=1000)
    view_duration: float | None = None
    scroll_depth: float | None = None


class ViewDurationUpdate(BaseModel):
    """Sent on page unload with the time spent on the product page."""

    session_id: str | None = Field(None, max_length=100)
    view_duration: float | None = None
    scroll_depth: float | None = None
    exit_page: str | None = Field(None, max_length=1000)


class ProductViewCounts(BaseModel):
    count: int
    unique: int


class RecordedViewResponse(BaseModel):
    product_views: ProductViewCounts
    is_duplicate: bool = False
    is_unique: bool = False


def payload_dict(model: BaseModel) -> dict[str, Any]:
    """Drop unset fields so services can tell 'missing' from 'null'."""
    return model.model_dump(exclude_unset=True)
