"""Job application model."""

from enum import Enum
from typing import TYPE_CHECKING

from sqlalchemy import JSON, Enum as SQLEnum, ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from productbazar.models.base import Base

if TYPE_CHECKING:
    from productbazar.models.job import Job
    from productbazar.models.user import User


class ApplicationStatus(str, Enum):
    """Application status."""

    PENDING = "Pending"
    REVIEWED = "Reviewed"
    SHORTLISTED = "Shortlisted"
    REJECTED = "Rejected"
    HIRED = "Hired"
    WITHDRAWN = "Withdrawn"


WITHDRAWABLE_STATUSES = {ApplicationStatus.PENDING, ApplicationStatus.REVIEWED}


class JobApplication(Base):
    """Application submitted by a jobseeker."""

    __tablename__ = "job_applications"
    __table_args__ = (
        UniqueConstraint("job_id", "applicant_id", name="uq_application_job_applicant"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    job_id: Mapped[int] = mapped_column(
        ForeignKey("jobs.id", ondelete="CASCADE"), index=True
    )
    applicant_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), index=True
    )

    # Application content
    resume_url: Mapped[str | None] = mapped_column(String(1000))
    cover_letter: Mapped[str | None] = mapped_column(Text)
    answers: Mapped[list[dict]] = mapped_column(JSON, default=list)  # [{question, answer}]

    # Review
    status: Mapped[ApplicationStatus] = mapped_column(
        SQLEnum(ApplicationStatus, values_callable=lambda obj: [e.value for e in obj]),
        default=ApplicationStatus.PENDING,
    )
    notes: Mapped[str | None] = mapped_column(Text)
    rating: Mapped[int | None] = mapped_column()  # 0-5

    # Relationships
    job: Mapped["Job"] = relationship(back_populates="applications")
    applicant: Mapped["User"] = relationship()
