"""User-related database models."""

from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    Enum as SQLEnum,
    ForeignKey,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from productbazar.models.base import Base, as_utc, utcnow

if TYPE_CHECKING:
    from productbazar.models.token import RefreshToken


class UserRole(str, Enum):
    """Platform role."""

    USER = "user"
    STARTUP_OWNER = "startup_owner"
    INVESTOR = "investor"
    AGENCY = "agency"
    FREELANCER = "freelancer"
    JOBSEEKER = "jobseeker"
    MAKER = "maker"
    ADMIN = "admin"


# Roles a user may pick at registration
REGISTRABLE_ROLES = {
    UserRole.USER,
    UserRole.STARTUP_OWNER,
    UserRole.INVESTOR,
    UserRole.AGENCY,
    UserRole.FREELANCER,
    UserRole.JOBSEEKER,
}

# Roles that carry a role details document
DETAIL_ROLES = {
    UserRole.STARTUP_OWNER,
    UserRole.INVESTOR,
    UserRole.AGENCY,
    UserRole.FREELANCER,
    UserRole.JOBSEEKER,
}

CAPABILITIES = (
    "can_upload_products",
    "can_invest",
    "can_offer_services",
    "can_apply_to_jobs",
    "can_post_jobs",
    "can_showcase_projects",
)

ROLE_CAPABILITIES: dict[UserRole, set[str]] = {
    UserRole.STARTUP_OWNER: {"can_upload_products", "can_post_jobs", "can_showcase_projects"},
    UserRole.MAKER: {"can_upload_products", "can_post_jobs", "can_showcase_projects"},
    UserRole.INVESTOR: {"can_invest"},
    UserRole.AGENCY: {"can_offer_services", "can_post_jobs", "can_showcase_projects"},
    UserRole.FREELANCER: {"can_offer_services", "can_showcase_projects"},
    UserRole.JOBSEEKER: {"can_apply_to_jobs", "can_showcase_projects"},
    UserRole.ADMIN: set(CAPABILITIES),
    UserRole.USER: set(),
}


class User(Base):
    """Platform account."""

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)

    # Identity
    email: Mapped[str | None] = mapped_column(String(255), unique=True, index=True)
    phone: Mapped[str | None] = mapped_column(String(20), unique=True, index=True)
    username: Mapped[str] = mapped_column(String(30), unique=True, index=True)
    password_hash: Mapped[str | None] = mapped_column(String(255))

    # Profile info
    first_name: Mapped[str | None] = mapped_column(String(100))
    last_name: Mapped[str | None] = mapped_column(String(100))
    about: Mapped[str | None] = mapped_column(Text)
    bio: Mapped[str | None] = mapped_column(String(500))
    headline: Mapped[str | None] = mapped_column(String(255))
    country: Mapped[str | None] = mapped_column(String(100))
    city: Mapped[str | None] = mapped_column(String(100))
    profile_picture_url: Mapped[str | None] = mapped_column(String(1000))

    # Roles
    role: Mapped[UserRole] = mapped_column(
        SQLEnum(UserRole, values_callable=lambda obj: [e.value for e in obj]),
        default=UserRole.USER,
    )
    secondary_roles: Mapped[list[str]] = mapped_column(JSON, default=list)

    # Capabilities derived from roles
    can_upload_products: Mapped[bool] = mapped_column(Boolean, default=False)
    can_invest: Mapped[bool] = mapped_column(Boolean, default=False)
    can_offer_services: Mapped[bool] = mapped_column(Boolean, default=False)
    can_apply_to_jobs: Mapped[bool] = mapped_column(Boolean, default=False)
    can_post_jobs: Mapped[bool] = mapped_column(Boolean, default=False)
    can_showcase_projects: Mapped[bool] = mapped_column(Boolean, default=False)

    # Verification
    is_email_verified: Mapped[bool] = mapped_column(Boolean, default=False)
    is_phone_verified: Mapped[bool] = mapped_column(Boolean, default=False)
    is_profile_completed: Mapped[bool] = mapped_column(Boolean, default=False)
    last_email_verification_request: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True)
    )

    # Security
    login_attempts: Mapped[int] = mapped_column(default=0)
    lock_until: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    password_reset_token: Mapped[str | None] = mapped_column(String(1000))
    password_reset_expires: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    last_password_reset_request: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True)
    )
    password_changed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    last_otp_request: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    otp_failed_attempts: Mapped[int] = mapped_column(default=0)
    last_login: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    # Relationships
    role_details: Mapped[list["RoleDetails"]] = relationship(
        back_populates="user", cascade="all, delete-orphan", lazy="selectin"
    )
    refresh_tokens: Mapped[list["RefreshToken"]] = relationship(
        back_populates="user", cascade="all, delete-orphan", lazy="noload"
    )

    @property
    def full_name(self) -> str:
        """Get user's full name."""
        parts = [self.first_name, self.last_name]
        return " ".join(p for p in parts if p) or self.username

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    @property
    def is_locked(self) -> bool:
        lock_until = as_utc(self.lock_until)
        return lock_until is not None and lock_until > utcnow()

    @property
    def all_roles(self) -> list[UserRole]:
        roles = [self.role]
        for value in self.secondary_roles or []:
            role = UserRole(value)
            if role not in roles:
                roles.append(role)
        return roles

    @property
    def capabilities(self) -> dict[str, bool]:
        return {name: bool(getattr(self, name)) for name in CAPABILITIES}

    def update_role_capabilities(self) -> None:
        """Recompute capability flags from primary and secondary roles."""
        granted: set[str] = set()
        for role in self.all_roles:
            granted |= ROLE_CAPABILITIES.get(role, set())
        for name in CAPABILITIES:
            setattr(self, name, name in granted)


class RoleDetails(Base):
    """Per-role profile document (startup, investor, agency, ...)."""

    __tablename__ = "role_details"
    __table_args__ = (
        UniqueConstraint("user_id", "role", name="uq_role_details_user_role"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"))
    role: Mapped[UserRole] = mapped_column(
        SQLEnum(UserRole, values_callable=lambda obj: [e.value for e in obj])
    )
    details: Mapped[dict] = mapped_column(JSON, default=dict)

    user: Mapped["User"] = relationship(back_populates="role_details")
