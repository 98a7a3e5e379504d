"""Product database model."""

from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING

from sqlalchemy import JSON, Boolean, DateTime, Enum as SQLEnum, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from productbazar.models.base import Base

if TYPE_CHECKING:
    from productbazar.models.user import User

VIEW_HISTORY_LIMIT = 90


class ProductStatus(str, Enum):
    """Product publication status."""

    DRAFT = "Draft"
    PUBLISHED = "Published"
    ARCHIVED = "Archived"


class Product(Base):
    """Product listed by a maker."""

    __tablename__ = "products"
    __table_args__ = (
        Index("ix_products_status_featured", "status", "featured"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(100), index=True)
    slug: Mapped[str] = mapped_column(String(150), unique=True, index=True)
    tagline: Mapped[str | None] = mapped_column(String(255))
    description: Mapped[str | None] = mapped_column(Text)
    category: Mapped[str | None] = mapped_column(String(100), index=True)
    maker_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), index=True
    )

    status: Mapped[ProductStatus] = mapped_column(
        SQLEnum(ProductStatus, values_callable=lambda obj: [e.value for e in obj]),
        default=ProductStatus.DRAFT,
    )
    featured: Mapped[bool] = mapped_column(Boolean, default=False)

    # View counters
    view_count: Mapped[int] = mapped_column(default=0)
    unique_view_count: Mapped[int] = mapped_column(default=0)
    view_history: Mapped[list[dict]] = mapped_column(JSON, default=list)  # [{date, count}]
    views_synced_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    maker: Mapped["User"] = relationship(lazy="noload")

    def bump_history(self, day: str, by: int = 1) -> None:
        """Add to today's history bucket, newest first, capped."""
        history = [dict(entry) for entry in (self.view_history or [])]
        for entry in history:
            if entry.get("date") == day:
                entry["count"] = int(entry.get("count", 0)) + by
                break
        else:
            history.append({"date": day, "count": by})
        history.sort(key=lambda entry: entry["date"], reverse=True)
        self.view_history = history[:VIEW_HISTORY_LIMIT]

    def set_history(self, day: str, count: int) -> None:
        """Overwrite the history bucket for a day."""
        history = [dict(entry) for entry in (self.view_history or []) if entry.get("date") != day]
        history.append({"date": day, "count": count})
        history.sort(key=lambda entry: entry["date"], reverse=True)
        self.view_history = history[:VIEW_HISTORY_LIMIT]
