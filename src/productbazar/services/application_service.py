"""Job application service."""

from typing import Any

import structlog
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from productbazar.config import get_settings
from productbazar.exceptions import ForbiddenError, NotFoundError, ValidationError
from productbazar.models.application import (
    WITHDRAWABLE_STATUSES,
    ApplicationStatus,
    JobApplication,
)
from productbazar.models.job import Job
from productbazar.models.user import User
from productbazar.services.email_service import queue_email
from productbazar.services.job_service import JobService, can_manage

logger = structlog.get_logger()


def job_url(job: Job) -> str:
    return f"{get_settings().client_url}/jobs/{job.slug}"


class ApplicationService:
    """Service for job application operations."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.jobs = JobService(db)

    def _with_relations(self):
        return (
            select(JobApplication)
            .options(selectinload(JobApplication.job), selectinload(JobApplication.applicant))
            .execution_options(populate_existing=True)
        )

    async def get_application_by_id(self, application_id: int) -> JobApplication | None:
        result = await self.db.execute(
            self._with_relations().where(JobApplication.id == application_id)
        )
        return result.scalar_one_or_none()

    async def apply(self, job_id: int, applicant: User, data: dict[str, Any]) -> JobApplication:
        if not applicant.can_apply_to_jobs:
            raise ForbiddenError("Your role cannot apply to jobs.", code="CAPABILITY_REQUIRED")
        job = await self.jobs.get_or_404(job_id)
        if not job.is_open:
            raise ValidationError("This job is no longer accepting applications.", code="JOB_CLOSED")

        existing = await self.db.execute(
            select(JobApplication.id).where(
                JobApplication.job_id == job.id, JobApplication.applicant_id == applicant.id
            )
        )
        if existing.first() is not None:
            raise ValidationError("You have already applied to this job.", code="ALREADY_APPLIED")

        application = JobApplication(
            job_id=job.id,
            applicant_id=applicant.id,
            resume_url=data.get("resume_url"),
            cover_letter=data.get("cover_letter"),
            answers=data.get("answers") or [],
            status=ApplicationStatus.PENDING,
        )
        self.db.add(application)
        job.applications_count = (job.applications_count or 0) + 1
        await self.db.flush()

        poster = await self.db.get(User, job.poster_id)
        if poster is not None:
            queue_email(
                "application_received",
                poster.email,
                poster_name=poster.full_name,
                job_title=job.title,
                applicant_name=applicant.full_name,
                job_url=job_url(job),
            )
        logger.info("application_submitted", application_id=application.id, job_id=job.id)
        return await self.get_application_by_id(application.id)

    async def list_for_job(self, job_id: int, user: User) -> list[JobApplication]:
        job = await self.jobs.get_or_404(job_id)
        if not can_manage(job, user):
            raise ForbiddenError("Only the poster or an admin can view applications.")
        result = await self.db.execute(
            self._with_relations()
            .where(JobApplication.job_id == job.id)
            .order_by(JobApplication.created_at.desc(), JobApplication.id.desc())
        )
        return list(result.scalars().all())

    async def review(
        self, job_id: int, application_id: int, user: User, data: dict[str, Any]
    ) -> JobApplication:
        """Poster-side status, notes and rating update."""
        application = await self.get_application_by_id(application_id)
        if application is None or application.job_id != job_id:
            raise NotFoundError("Application not found")
        if not can_manage(application.job, user):
            raise ForbiddenError("Only the poster or an admin can update applications.")

        old_status = application.status
        if data.get("status") is not None:
            application.status = ApplicationStatus(data["status"])
        if "notes" in data:
            application.notes = data["notes"]
        if "rating" in data:
            application.rating = data["rating"]
        await self.db.flush()

        if application.status != old_status:
            queue_email(
                "application_status",
                application.applicant.email,
                applicant_name=application.applicant.full_name,
                job_title=application.job.title,
                status=application.status.value,
                job_url=job_url(application.job),
            )
            logger.info(
                "application_status_changed",
                application_id=application.id,
                old_status=old_status.value,
                new_status=application.status.value,
            )
        return application

    async def get_for_user(self, application_id: int, user: User) -> JobApplication:
        application = await self.get_application_by_id(application_id)
        if application is None:
            raise NotFoundError("Application not found")
        if application.applicant_id != user.id and not can_manage(application.job, user):
            raise ForbiddenError("You do not have access to this application.")
        return application

    async def withdraw(self, application_id: int, user: User) -> JobApplication:
        application = await self.get_application_by_id(application_id)
        if application is None:
            raise NotFoundError("Application not found")
        if application.applicant_id != user.id:
            raise ForbiddenError("Only the applicant can withdraw an application.")
        if application.status not in WITHDRAWABLE_STATUSES:
            raise ValidationError(
                f"Cannot withdraw an application that is {application.status.value}.",
                code="NOT_WITHDRAWABLE",
            )
        application.status = ApplicationStatus.WITHDRAWN
        await self.db.flush()
        logger.info("application_withdrawn", application_id=application.id)
        return application

    async def get_user_applications(
        self,
        user: User,
        status: ApplicationStatus | None = None,
        page: int = 1,
        limit: int = 10,
    ) -> tuple[list[JobApplication], int, dict[str, int]]:
        """A user's applications plus per-status counts."""
        conditions = [JobApplication.applicant_id == user.id]
        if status:
            conditions.append(JobApplication.status == status)

        total = (
            await self.db.execute(select(func.count(JobApplication.id)).where(*conditions))
        ).scalar() or 0
        result = await self.db.execute(
            self._with_relations()
            .where(*conditions)
            .order_by(JobApplication.created_at.desc(), JobApplication.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )

        counts = dict(
            (
                await self.db.execute(
                    select(JobApplication.status, func.count(JobApplication.id))
                    .where(JobApplication.applicant_id == user.id)
                    .group_by(JobApplication.status)
                )
            ).all()
        )
        status_counts = {s.value: counts.get(s, 0) for s in ApplicationStatus}
        status_counts["All"] = sum(status_counts.values())
        return list(result.scalars().all()), total, status_counts
