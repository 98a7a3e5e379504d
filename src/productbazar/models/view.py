"""Product view tracking model."""

from enum import Enum

from sqlalchemy import Boolean, Enum as SQLEnum, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from productbazar.models.base import Base

VIEW_RETENTION_DAYS = 60


class ViewSource(str, Enum):
    """Where the viewer came from."""

    DIRECT = "direct"
    SEARCH = "search"
    SOCIAL = "social"
    EMAIL = "email"
    REFERRAL = "referral"
    ADVERTISEMENT = "advertisement"
    RECOMMENDATION_FEED = "recommendation_feed"
    RECOMMENDATION_SIMILAR = "recommendation_similar"
    RECOMMENDATION_TRENDING = "recommendation_trending"
    INTERNAL_NAVIGATION = "internal_navigation"
    UNKNOWN = "unknown"


class DeviceType(str, Enum):
    """Viewer device class."""

    DESKTOP = "desktop"
    MOBILE = "mobile"
    TABLET = "tablet"
    OTHER = "other"


class View(Base):
    """A single product page view."""

    __tablename__ = "views"
    __table_args__ = (
        Index("ix_views_product_created", "product_id", "created_at"),
        Index("ix_views_user_created", "user_id", "created_at"),
        Index("ix_views_product_user", "product_id", "user_id"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    product_id: Mapped[int] = mapped_column(ForeignKey("products.id", ondelete="CASCADE"))
    user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"))
    client_id: Mapped[str | None] = mapped_column(String(100), index=True)
    session_id: Mapped[str | None] = mapped_column(String(100))

    # Source
    source: Mapped[ViewSource] = mapped_column(
        SQLEnum(ViewSource, values_callable=lambda obj: [e.value for e in obj]),
        default=ViewSource.DIRECT,
    )
    referrer: Mapped[str | None] = mapped_column(String(1000))
    user_agent: Mapped[str | None] = mapped_column(String(1000))
    ip: Mapped[str | None] = mapped_column(String(64))
    is_bot: Mapped[bool] = mapped_column(Boolean, default=False, index=True)

    # Geo
    country: Mapped[str | None] = mapped_column(String(64))
    region: Mapped[str | None] = mapped_column(String(100))
    city: Mapped[str | None] = mapped_column(String(100))

    # Client
    device: Mapped[DeviceType | None] = mapped_column(
        SQLEnum(DeviceType, values_callable=lambda obj: [e.value for e in obj])
    )
    os: Mapped[str | None] = mapped_column(String(64))
    browser: Mapped[str | None] = mapped_column(String(64))

    # Engagement
    view_duration: Mapped[int | None] = mapped_column()  # seconds
    scroll_depth: Mapped[int | None] = mapped_column()  # percent
    time_to_first_interaction: Mapped[int | None] = mapped_column()  # milliseconds
    exit_page: Mapped[str | None] = mapped_column(String(1000))
