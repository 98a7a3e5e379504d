"""Job application schemas."""

from datetime import datetime

from pydantic import BaseModel, Field

from productbazar.models.application import ApplicationStatus
from productbazar.models.job import JobStatus


class ApplicationAnswer(BaseModel):
    question: str
    answer: str


class ApplicationCreate(BaseModel):
    """Schema for applying to a job."""

    resume_url: str | None = Field(None, max_length=1000)
    cover_letter: str | None = Field(None, max_length=5000)
    answers: list[ApplicationAnswer] = []


class ApplicationReview(BaseModel):
    """Schema for the poster's review of an application."""

    status: ApplicationStatus | None = None
    notes: str | None = None
    rating: int | None = Field(None, ge=0, le=5)


class ApplicantSummary(BaseModel):
    id: int
    username: str
    full_name: str
    headline: str | None
    profile_picture_url: str | None

    model_config = {"from_attributes": True}


class JobSummary(BaseModel):
    id: int
    title: str
    slug: str
    company: dict
    location: str | None
    status: JobStatus
    poster_id: int

    model_config = {"from_attributes": True}


class ApplicationResponse(BaseModel):
    """Schema for application response."""

    id: int
    job_id: int
    applicant_id: int
    resume_url: str | None
    cover_letter: str | None
    answers: list[dict]
    status: ApplicationStatus
    notes: str | None
    rating: int | None
    created_at: datetime
    updated_at: datetime
    job: JobSummary | None = None
    applicant: ApplicantSummary | None = None

    model_config = {"from_attributes": True}

