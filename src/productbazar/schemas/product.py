"""Product schemas."""

from datetime import datetime

from pydantic import BaseModel, Field

from productbazar.models.product import ProductStatus


class ProductCreate(BaseModel):
    """Schema for listing a new product."""

    name: str = Field(..., min_length=1, max_length=100)
    tagline: str | None = Field(None, max_length=255)
    description: str | None = None
    category: str | None = Field(None, max_length=100)


class ProductStatusUpdate(BaseModel):
    status: ProductStatus


class ProductResponse(BaseModel):
    id: int
    name: str
    slug: str
    tagline: str | None
    description: str | None
    category: str | None
    maker_id: int
    status: ProductStatus
    featured: bool
    view_count: int
    unique_view_count: int
    view_history: list[dict] = []
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}
