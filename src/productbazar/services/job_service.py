"""Job board service."""

from datetime import timedelta
from typing import Any

import structlog
from sqlalchemy import String, cast, delete, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from productbazar.exceptions import ForbiddenError, NotFoundError, ValidationError
from productbazar.models.application import JobApplication
from productbazar.models.base import utcnow
from productbazar.models.job import JOB_LIFETIME_DAYS, Job, JobStatus
from productbazar.models.user import User
from productbazar.schemas.job import JobSearchParams
from productbazar.utils.text import unique_slug

logger = structlog.get_logger()

DATE_POSTED_DAYS = {"today": 1, "week": 7, "month": 30}

SORT_ORDERS = {
    "newest": (Job.created_at.desc(),),
    "oldest": (Job.created_at.asc(),),
    "salary_high": (Job.salary_max.desc().nulls_last(),),
    "salary_low": (Job.salary_min.asc().nulls_last(),),
    "views": (Job.views.desc(),),
}


def can_manage(job: Job, user: User | None) -> bool:
    return user is not None and (user.is_admin or job.poster_id == user.id)


class JobService:
    """Service for job-related operations."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def search_jobs(self, params: JobSearchParams) -> tuple[list[Job], int]:
        """Search open jobs with filters. Returns (jobs, total_count)."""
        now = utcnow()
        query = select(Job).where(
            Job.status == JobStatus.PUBLISHED,
            or_(Job.expires_at.is_(None), Job.expires_at > now),
        )

        # Text search
        if params.search:
            term = f"%{params.search.strip()}%"
            query = query.where(
                or_(
                    Job.title.ilike(term),
                    Job.description.ilike(term),
                    Job.company["name"].as_string().ilike(term),
                    Job.location.ilike(term),
                )
            )

        if params.location_type:
            query = query.where(Job.location_type == params.location_type)
        if params.job_type:
            query = query.where(Job.job_type == params.job_type)
        if params.experience_level:
            query = query.where(Job.experience_level == params.experience_level)
        if params.location:
            query = query.where(Job.location.ilike(f"%{params.location}%"))
        if params.company:
            query = query.where(Job.company["name"].as_string().ilike(f"%{params.company}%"))
        if params.featured is not None:
            query = query.where(Job.featured.is_(params.featured))

        # Skills are stored as a JSON list; match any requested skill
        if params.skills:
            skills_text = func.lower(cast(Job.skills, String))
            query = query.where(
                or_(*(skills_text.contains(f'"{skill.strip().lower()}"') for skill in params.skills))
            )

        # Salary filter
        if params.salary_min is not None:
            query = query.where(or_(Job.salary_max >= params.salary_min, Job.salary_max.is_(None)))
        if params.salary_max is not None:
            query = query.where(or_(Job.salary_min <= params.salary_max, Job.salary_min.is_(None)))

        # Posted date filter
        if params.date_posted in DATE_POSTED_DAYS:
            query = query.where(
                Job.created_at >= now - timedelta(days=DATE_POSTED_DAYS[params.date_posted])
            )

        total = (
            await self.db.execute(select(func.count()).select_from(query.subquery()))
        ).scalar() or 0

        order = SORT_ORDERS.get(params.sort, SORT_ORDERS["newest"])
        result = await self.db.execute(
            query.order_by(*order, Job.id.desc())
            .offset((params.page - 1) * params.limit)
            .limit(params.limit)
        )
        return list(result.scalars().all()), total

    async def get_job_by_id(self, job_id: int) -> Job | None:
        result = await self.db.execute(select(Job).where(Job.id == job_id))
        return result.scalar_one_or_none()

    async def get_or_404(self, job_id: int) -> Job:
        job = await self.get_job_by_id(job_id)
        if job is None:
            raise NotFoundError("Job not found")
        return job

    async def get_visible(self, key: str, user: User | None) -> Job:
        """Fetch a job by id or slug and count the view. Drafts stay private."""
        query = select(Job)
        query = query.where(Job.id == int(key)) if key.isdigit() else query.where(Job.slug == key)
        job = (await self.db.execute(query)).scalar_one_or_none()
        if job is None or (job.status == JobStatus.DRAFT and not can_manage(job, user)):
            raise NotFoundError("Job not found")

        job.views = (job.views or 0) + 1
        await self.db.flush()
        return job

    async def create_job(self, poster: User, data: dict[str, Any]) -> Job:
        if not poster.can_post_jobs:
            raise ForbiddenError("Your role cannot post jobs.", code="CAPABILITY_REQUIRED")
        self._check_salary(data.get("salary_min"), data.get("salary_max"))

        job = Job(**data, poster_id=poster.id, slug=unique_slug(data["title"]))
        if job.status == JobStatus.PUBLISHED and job.expires_at is None:
            job.expires_at = utcnow() + timedelta(days=JOB_LIFETIME_DAYS)
        self.db.add(job)
        await self.db.flush()
        logger.info("job_created", job_id=job.id, poster_id=poster.id, status=job.status.value)
        return job

    async def update_job(self, job_id: int, user: User, data: dict[str, Any]) -> Job:
        job = await self.get_or_404(job_id)
        if not can_manage(job, user):
            raise ForbiddenError("Only the poster or an admin can edit this job.")

        for field in ("title", "description"):
            if field in data and not (data[field] or "").strip():
                raise ValidationError(f"Job {field} cannot be empty.")
        self._check_salary(
            data.get("salary_min", job.salary_min), data.get("salary_max", job.salary_max)
        )

        for field, value in data.items():
            setattr(job, field, value)
        if job.status == JobStatus.PUBLISHED and job.expires_at is None:
            job.expires_at = utcnow() + timedelta(days=JOB_LIFETIME_DAYS)
        await self.db.flush()
        logger.info("job_updated", job_id=job.id, fields=sorted(data))
        return job

    @staticmethod
    def _check_salary(salary_min: int | None, salary_max: int | None) -> None:
        if salary_min is not None and salary_max is not None and salary_min > salary_max:
            raise ValidationError("Minimum salary cannot be greater than maximum salary.")

    async def delete_job(self, job_id: int, user: User) -> None:
        job = await self.get_or_404(job_id)
        if not can_manage(job, user):
            raise ForbiddenError("Only the poster or an admin can delete this job.")
        await self.db.execute(delete(JobApplication).where(JobApplication.job_id == job.id))
        await self.db.delete(job)
        await self.db.flush()
        logger.info("job_deleted", job_id=job_id, user_id=user.id)

    async def get_posted_jobs(self, user: User) -> list[Job]:
        result = await self.db.execute(
            select(Job).where(Job.poster_id == user.id).order_by(Job.created_at.desc(), Job.id.desc())
        )
        return list(result.scalars().all())

    async def close_expired_jobs(self) -> int:
        """Close published jobs whose expiry has passed."""
        result = await self.db.execute(
            update(Job)
            .where(
                Job.status == JobStatus.PUBLISHED,
                Job.expires_at.is_not(None),
                Job.expires_at <= utcnow(),
            )
            .values(status=JobStatus.CLOSED)
            .execution_options(synchronize_session=False)
        )
        await self.db.flush()
        logger.info("expired_jobs_closed", count=result.rowcount)
        return result.rowcount or 0
