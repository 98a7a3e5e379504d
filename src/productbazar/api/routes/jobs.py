"""Job board and job application endpoints."""

from typing import Literal

from fastapi import APIRouter, Query, Response, status

from productbazar.api.deps import CurrentUser, DbSession, OptionalUser
from productbazar.models.application import ApplicationStatus
from productbazar.models.job import ExperienceLevel, JobType, LocationType
from productbazar.schemas.application import (
    ApplicationCreate,
    ApplicationResponse,
    ApplicationReview,
)
from productbazar.schemas.common import ApiResponse, paginate
from productbazar.schemas.job import (
    JobCreate,
    JobListResponse,
    JobResponse,
    JobSearchParams,
    JobUpdate,
)
from productbazar.services.application_service import ApplicationService
from productbazar.services.job_service import JobService

router = APIRouter()


@router.get("", response_model=ApiResponse[JobListResponse])
async def list_jobs(
    db: DbSession,
    search: str | None = None,
    location_type: LocationType | None = None,
    job_type: JobType | None = None,
    experience_level: ExperienceLevel | None = None,
    location: str | None = None,
    company: str | None = None,
    skills: str | None = Query(None, description="Comma-separated skill names"),
    salary_min: int | None = Query(None, ge=0),
    salary_max: int | None = Query(None, ge=0),
    featured: bool | None = None,
    date_posted: Literal["today", "week", "month"] | None = None,
    sort: Literal["newest", "oldest", "salary_high", "salary_low", "views"] = "newest",
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
):
    """Search open jobs with filters."""
    params = JobSearchParams(
        search=search,
        location_type=location_type,
        job_type=job_type,
        experience_level=experience_level,
        location=location,
        company=company,
        skills=[s for s in (skills or "").split(",") if s.strip()] or None,
        salary_min=salary_min,
        salary_max=salary_max,
        featured=featured,
        date_posted=date_posted,
        sort=sort,
        page=page,
        limit=limit,
    )
    jobs, total = await JobService(db).search_jobs(params)
    return ApiResponse(
        data=JobListResponse(
            results=[JobResponse.model_validate(job) for job in jobs],
            total=total,
            total_pages=paginate(page, limit, total).pages,
            current_page=page,
        )
    )


@router.post("", response_model=ApiResponse[JobResponse], status_code=status.HTTP_201_CREATED)
async def create_job(data: JobCreate, current_user: CurrentUser, db: DbSession):
    """Post a job."""
    job = await JobService(db).create_job(current_user, data.model_dump())
    await db.commit()
    await db.refresh(job)
    return ApiResponse(message="Job created successfully", data=JobResponse.model_validate(job))


@router.get("/user/posted", response_model=ApiResponse[list[JobResponse]])
async def get_posted_jobs(current_user: CurrentUser, db: DbSession):
    """Jobs posted by the current user, with application counts."""
    jobs = await JobService(db).get_posted_jobs(current_user)
    return ApiResponse(data=[JobResponse.model_validate(job) for job in jobs])


@router.get("/user/applications", response_model=ApiResponse[dict])
async def get_my_applications(
    current_user: CurrentUser,
    db: DbSession,
    status_filter: ApplicationStatus | None = Query(None, alias="status"),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=50),
):
    """The current user's applications with per-status counts."""
    applications, total, status_counts = await ApplicationService(db).get_user_applications(
        current_user, status_filter, page, limit
    )
    return ApiResponse(
        data={
            "applications": [
                ApplicationResponse.model_validate(a).model_dump(mode="json") for a in applications
            ],
            "pagination": paginate(page, limit, total).model_dump(),
            "status_counts": status_counts,
        }
    )


@router.get("/applications/{application_id}", response_model=ApiResponse[ApplicationResponse])
async def get_application(application_id: int, current_user: CurrentUser, db: DbSession):
    """An application, for its applicant, the job poster or an admin."""
    application = await ApplicationService(db).get_for_user(application_id, current_user)
    return ApiResponse(data=ApplicationResponse.model_validate(application))


@router.patch(
    "/applications/{application_id}/withdraw",
    response_model=ApiResponse[ApplicationResponse],
)
async def withdraw_application(application_id: int, current_user: CurrentUser, db: DbSession):
    """Withdraw a pending or reviewed application."""
    application = await ApplicationService(db).withdraw(application_id, current_user)
    await db.commit()
    return ApiResponse(
        message="Application withdrawn", data=ApplicationResponse.model_validate(application)
    )


@router.get("/{id_or_slug}", response_model=ApiResponse[JobResponse])
async def get_job(id_or_slug: str, db: DbSession, current_user: OptionalUser):
    """Get a job by id or slug and count the view."""
    job = await JobService(db).get_visible(id_or_slug, current_user)
    await db.commit()
    return ApiResponse(data=JobResponse.model_validate(job))


@router.patch("/{job_id}", response_model=ApiResponse[JobResponse])
async def update_job(job_id: int, data: JobUpdate, current_user: CurrentUser, db: DbSession):
    job = await JobService(db).update_job(job_id, current_user, data.model_dump(exclude_unset=True))
    await db.commit()
    await db.refresh(job)
    return ApiResponse(message="Job updated successfully", data=JobResponse.model_validate(job))


@router.delete("/{job_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_job(job_id: int, current_user: CurrentUser, db: DbSession):
    """Delete a job and its applications."""
    await JobService(db).delete_job(job_id, current_user)
    await db.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post(
    "/{job_id}/apply",
    response_model=ApiResponse[ApplicationResponse],
    status_code=status.HTTP_201_CREATED,
)
async def apply_to_job(
    job_id: int, data: ApplicationCreate, current_user: CurrentUser, db: DbSession
):
    """Apply to an open job."""
    application = await ApplicationService(db).apply(job_id, current_user, data.model_dump())
    await db.commit()
    return ApiResponse(
        message="Application submitted successfully",
        data=ApplicationResponse.model_validate(application),
    )


@router.get("/{job_id}/applications", response_model=ApiResponse[list[ApplicationResponse]])
async def list_job_applications(job_id: int, current_user: CurrentUser, db: DbSession):
    """Applications to a job, for its poster or an admin."""
    applications = await ApplicationService(db).list_for_job(job_id, current_user)
    return ApiResponse(data=[ApplicationResponse.model_validate(a) for a in applications])


@router.patch(
    "/{job_id}/applications/{application_id}",
    response_model=ApiResponse[ApplicationResponse],
)
async def review_application(
    job_id: int,
    application_id: int,
    data: ApplicationReview,
    current_user: CurrentUser,
    db: DbSession,
):
    """Set an application's status, notes and rating."""
    application = await ApplicationService(db).review(
        job_id, application_id, current_user, data.model_dump(exclude_unset=True)
    )
    await db.commit()
    return ApiResponse(
        message="Application updated", data=ApplicationResponse.model_validate(application)
    )
