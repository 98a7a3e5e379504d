"""Product listing service."""

import structlog
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from productbazar.exceptions import ForbiddenError, NotFoundError
from productbazar.models.product import Product, ProductStatus
from productbazar.models.user import User
from productbazar.utils.text import slugify

logger = structlog.get_logger()


def can_manage(product: Product, user: User | None) -> bool:
    return user is not None and (user.is_admin or product.maker_id == user.id)


class ProductService:
    """Service for product operations."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_by_id(self, product_id: int) -> Product | None:
        result = await self.db.execute(select(Product).where(Product.id == product_id))
        return result.scalar_one_or_none()

    async def get_or_404(self, product_id: int) -> Product:
        product = await self.get_by_id(product_id)
        if product is None:
            raise NotFoundError("Product not found")
        return product

    async def get_by_id_or_slug(self, key: str) -> Product | None:
        # Numeric names slugify to digits, so an id miss falls through to the slug
        if key.isdigit():
            product = await self.get_by_id(int(key))
            if product is not None:
                return product
        result = await self.db.execute(select(Product).where(Product.slug == key.lower()))
        return result.scalar_one_or_none()

    async def get_visible(self, key: str, user: User | None) -> Product:
        """Fetch a product; drafts are only visible to their maker or an admin."""
        product = await self.get_by_id_or_slug(key)
        if product is None:
            raise NotFoundError("Product not found")
        if product.status == ProductStatus.DRAFT and not can_manage(product, user):
            raise NotFoundError("Product not found")
        return product

    async def _unique_slug(self, name: str) -> str:
        base = slugify(name)
        candidate, suffix = base, 1
        while (
            await self.db.execute(select(Product.id).where(Product.slug == candidate))
        ).first() is not None:
            candidate = f"{base}-{suffix}"
            suffix += 1
        return candidate

    async def create(self, maker: User, data: dict) -> Product:
        if not maker.can_upload_products:
            raise ForbiddenError("Your role cannot upload products.", code="CAPABILITY_REQUIRED")
        product = Product(
            name=data["name"].strip(),
            slug=await self._unique_slug(data["name"]),
            tagline=data.get("tagline"),
            description=data.get("description"),
            category=data.get("category"),
            maker_id=maker.id,
            status=ProductStatus.DRAFT,
            view_history=[],
        )
        self.db.add(product)
        await self.db.flush()
        logger.info("product_created", product_id=product.id, maker_id=maker.id)
        return product

    async def list_published(self, page: int = 1, limit: int = 20) -> tuple[list[Product], int]:
        base = select(Product).where(Product.status == ProductStatus.PUBLISHED)
        total = (
            await self.db.execute(select(func.count()).select_from(base.subquery()))
        ).scalar_one()
        result = await self.db.execute(
            base.order_by(Product.featured.desc(), Product.created_at.desc(), Product.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        return list(result.scalars().all()), total

    async def set_status(self, product_id: int, status: ProductStatus, user: User) -> Product:
        product = await self.get_or_404(product_id)
        if not can_manage(product, user):
            raise ForbiddenError("Only the maker or an admin can change this product.")
        product.status = status
        await self.db.flush()
        logger.info("product_status_changed", product_id=product.id, status=status.value)
        return product
