"""Product endpoints."""

from fastapi import APIRouter, Query, status

from productbazar.api.deps import CurrentUser, DbSession, OptionalUser
from productbazar.schemas.common import ApiResponse, paginate
from productbazar.schemas.product import ProductCreate, ProductResponse, ProductStatusUpdate
from productbazar.services.product_service import ProductService

router = APIRouter()


@router.post("", response_model=ApiResponse[ProductResponse], status_code=status.HTTP_201_CREATED)
async def create_product(data: ProductCreate, current_user: CurrentUser, db: DbSession):
    """List a new product as a draft."""
    product = await ProductService(db).create(current_user, data.model_dump())
    await db.commit()
    await db.refresh(product)
    return ApiResponse(message="Product created", data=ProductResponse.model_validate(product))


@router.get("", response_model=ApiResponse[dict])
async def list_products(
    db: DbSession,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
):
    """Published products, featured first."""
    products, total = await ProductService(db).list_published(page, limit)
    return ApiResponse(
        data={
            "products": [
                ProductResponse.model_validate(p).model_dump(mode="json") for p in products
            ],
            "pagination": paginate(page, limit, total).model_dump(),
        }
    )


@router.get("/{id_or_slug}", response_model=ApiResponse[ProductResponse])
async def get_product(id_or_slug: str, db: DbSession, current_user: OptionalUser):
    product = await ProductService(db).get_visible(id_or_slug, current_user)
    return ApiResponse(data=ProductResponse.model_validate(product))


@router.patch("/{product_id}/status", response_model=ApiResponse[ProductResponse])
async def update_product_status(
    product_id: int, data: ProductStatusUpdate, current_user: CurrentUser, db: DbSession
):
    """Publish, archive or unpublish a product."""
    product = await ProductService(db).set_status(product_id, data.status, current_user)
    await db.commit()
    await db.refresh(product)
    return ApiResponse(
        message="Product status updated", data=ProductResponse.model_validate(product)
    )
