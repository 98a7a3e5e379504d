"""Refresh token persistence."""

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from productbazar.models.base import Base, as_utc, utcnow

if TYPE_CHECKING:
    from productbazar.models.user import User


class RefreshToken(Base):
    """Issued refresh token, one row per session."""

    __tablename__ = "refresh_tokens"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), index=True
    )
    token: Mapped[str] = mapped_column(String(1000), unique=True, index=True)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    created_by_ip: Mapped[str | None] = mapped_column(String(64))
    revoked_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    revoked_by_ip: Mapped[str | None] = mapped_column(String(64))
    replaced_by_token: Mapped[str | None] = mapped_column(String(1000))

    user: Mapped["User"] = relationship(back_populates="refresh_tokens")

    @property
    def is_expired(self) -> bool:
        return as_utc(self.expires_at) <= utcnow()

    @property
    def is_active(self) -> bool:
        return self.revoked_at is None and not self.is_expired

    def revoke(self, ip: str | None = None, replaced_by: str | None = None) -> None:
        self.revoked_at = utcnow()
        self.revoked_by_ip = ip
        if replaced_by:
            self.replaced_by_token = replaced_by
