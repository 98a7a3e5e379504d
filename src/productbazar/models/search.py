"""Search history model."""

from datetime import datetime
from enum import Enum

from sqlalchemy import DateTime, Enum as SQLEnum, ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from productbazar.models.base import Base, utcnow


class SearchType(str, Enum):
    """Searchable entity groups."""

    ALL = "all"
    PRODUCTS = "products"
    JOBS = "jobs"
    USERS = "users"


class SearchHistory(Base):
    """A user's past query, one row per (query, type)."""

    __tablename__ = "search_history"
    __table_args__ = (
        UniqueConstraint("user_id", "query", "type", name="uq_search_history_user_query_type"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), index=True
    )
    query: Mapped[str] = mapped_column(String(255))
    type: Mapped[SearchType] = mapped_column(
        SQLEnum(SearchType, values_callable=lambda obj: [e.value for e in obj]),
        default=SearchType.ALL,
    )
    count: Mapped[int] = mapped_column(default=1)
    last_searched_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, index=True
    )
