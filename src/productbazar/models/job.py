"""Job-related database models."""

from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    Enum as SQLEnum,
    ForeignKey,
    Index,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from productbazar.models.base import Base, as_utc, utcnow

if TYPE_CHECKING:
    from productbazar.models.application import JobApplication
    from productbazar.models.user import User

JOB_LIFETIME_DAYS = 30


class JobStatus(str, Enum):
    """Job posting status."""

    DRAFT = "Draft"
    PUBLISHED = "Published"
    CLOSED = "Closed"
    FILLED = "Filled"


class JobType(str, Enum):
    """Employment type."""

    FULL_TIME = "Full-time"
    PART_TIME = "Part-time"
    CONTRACT = "Contract"
    FREELANCE = "Freelance"
    INTERNSHIP = "Internship"


class LocationType(str, Enum):
    """Where the work happens."""

    REMOTE = "Remote"
    ON_SITE = "On-site"
    HYBRID = "Hybrid"
    FLEXIBLE = "Flexible"


class ExperienceLevel(str, Enum):
    """Required experience level."""

    ENTRY = "Entry Level"
    JUNIOR = "Junior"
    MID = "Mid-Level"
    SENIOR = "Senior"
    EXECUTIVE = "Executive"


class Job(Base):
    """Job posting model."""

    __tablename__ = "jobs"
    __table_args__ = (
        Index("ix_jobs_status_expires", "status", "expires_at"),
        Index("ix_jobs_search", "title", "location"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(100), index=True)
    slug: Mapped[str] = mapped_column(String(150), unique=True, index=True)

    # Company: {name, logo, website, size, industry}
    company: Mapped[dict] = mapped_column(JSON, default=dict)

    # Location
    location: Mapped[str | None] = mapped_column(String(255), index=True)
    location_type: Mapped[LocationType] = mapped_column(
        SQLEnum(LocationType, values_callable=lambda obj: [e.value for e in obj]),
        default=LocationType.ON_SITE,
    )

    # Job details
    description: Mapped[str] = mapped_column(Text)
    requirements: Mapped[list[str]] = mapped_column(JSON, default=list)
    responsibilities: Mapped[list[str]] = mapped_column(JSON, default=list)
    benefits: Mapped[list[str]] = mapped_column(JSON, default=list)
    skills: Mapped[list[str]] = mapped_column(JSON, default=list)

    # Classification
    job_type: Mapped[JobType] = mapped_column(
        SQLEnum(JobType, values_callable=lambda obj: [e.value for e in obj]),
        default=JobType.FULL_TIME,
    )
    experience_level: Mapped[ExperienceLevel] = mapped_column(
        SQLEnum(ExperienceLevel, values_callable=lambda obj: [e.value for e in obj]),
        default=ExperienceLevel.MID,
    )

    # Salary
    salary_min: Mapped[int | None] = mapped_column()
    salary_max: Mapped[int | None] = mapped_column()
    salary_currency: Mapped[str] = mapped_column(String(3), default="USD")
    salary_period: Mapped[str] = mapped_column(String(20), default="yearly")
    salary_visible: Mapped[bool] = mapped_column(Boolean, default=True)

    # How to apply
    application_url: Mapped[str | None] = mapped_column(String(1000))
    application_email: Mapped[str | None] = mapped_column(String(255))

    # Status
    status: Mapped[JobStatus] = mapped_column(
        SQLEnum(JobStatus, values_callable=lambda obj: [e.value for e in obj]),
        default=JobStatus.PUBLISHED,
        index=True,
    )
    featured: Mapped[bool] = mapped_column(Boolean, default=False)
    views: Mapped[int] = mapped_column(default=0)
    applications_count: Mapped[int] = mapped_column(default=0)

    # Ownership and dates
    poster_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), index=True
    )
    deadline: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    # Relationships
    poster: Mapped["User"] = relationship(lazy="noload")
    applications: Mapped[list["JobApplication"]] = relationship(
        back_populates="job", cascade="all, delete-orphan", passive_deletes=True, lazy="noload"
    )

    @property
    def company_name(self) -> str | None:
        return (self.company or {}).get("name")

    @property
    def is_expired(self) -> bool:
        expires_at = as_utc(self.expires_at)
        return expires_at is not None and expires_at <= utcnow()

    @property
    def is_open(self) -> bool:
        return self.status == JobStatus.PUBLISHED and not self.is_expired

    @property
    def salary_range(self) -> str | None:
        """Get formatted salary range."""
        if not self.salary_visible or (not self.salary_min and not self.salary_max):
            return None

        currency = self.salary_currency or "USD"
        if self.salary_min and self.salary_max:
            return f"{currency} {self.salary_min:,} - {self.salary_max:,}"
        elif self.salary_min:
            return f"{currency} {self.salary_min:,}+"
        return f"Up to {currency} {self.salary_max:,}"
