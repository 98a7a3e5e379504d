"""Job-related Pydantic schemas."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field, model_validator

from productbazar.models.job import ExperienceLevel, JobStatus, JobType, LocationType


class CompanyInfo(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    logo: str | None = None
    website: str | None = None
    size: str | None = None
    industry: str | None = None


class JobCreate(BaseModel):
    """Schema for posting a job."""

    title: str = Field(..., min_length=1, max_length=100)
    company: CompanyInfo
    location: str | None = Field(None, max_length=255)
    location_type: LocationType = LocationType.ON_SITE
    job_type: JobType = JobType.FULL_TIME
    experience_level: ExperienceLevel = ExperienceLevel.MID
    description: str = Field(..., min_length=1)
    requirements: list[str] = []
    responsibilities: list[str] = []
    benefits: list[str] = []
    skills: list[str] = []
    salary_min: int | None = Field(None, ge=0)
    salary_max: int | None = Field(None, ge=0)
    salary_currency: str = Field(default="USD", max_length=3)
    salary_period: str = Field(default="yearly", max_length=20)
    salary_visible: bool = True
    application_url: str | None = Field(None, max_length=1000)
    application_email: str | None = Field(None, max_length=255)
    status: JobStatus = JobStatus.PUBLISHED
    featured: bool = False
    deadline: datetime | None = None
    expires_at: datetime | None = None

    @model_validator(mode="after")
    def salary_range_is_ordered(self):
        if (
            self.salary_min is not None
            and self.salary_max is not None
            and self.salary_min > self.salary_max
        ):
            raise ValueError("salary_min cannot be greater than salary_max")
        return self


class JobUpdate(BaseModel):
    """Schema for editing a job; only provided fields change."""

    title: str | None = Field(None, max_length=100)
    company: CompanyInfo | None = None
    location: str | None = Field(None, max_length=255)
    location_type: LocationType | None = None
    job_type: JobType | None = None
    experience_level: ExperienceLevel | None = None
    description: str | None = None
    requirements: list[str] | None = None
    responsibilities: list[str] | None = None
    benefits: list[str] | None = None
    skills: list[str] | None = None
    salary_min: int | None = Field(None, ge=0)
    salary_max: int | None = Field(None, ge=0)
    salary_currency: str | None = Field(None, max_length=3)
    salary_period: str | None = Field(None, max_length=20)
    salary_visible: bool | None = None
    application_url: str | None = Field(None, max_length=1000)
    application_email: str | None = Field(None, max_length=255)
    status: JobStatus | None = None
    featured: bool | None = None
    deadline: datetime | None = None
    expires_at: datetime | None = None


class JobResponse(BaseModel):
    """Schema for job response."""

    id: int
    title: str
    slug: str
    company: dict
    location: str | None
    location_type: LocationType
    job_type: JobType
    experience_level: ExperienceLevel
    description: str
    requirements: list[str]
    responsibilities: list[str]
    benefits: list[str]
    skills: list[str]
    salary_min: int | None
    salary_max: int | None
    salary_currency: str
    salary_period: str
    salary_visible: bool
    salary_range: str | None
    application_url: str | None
    application_email: str | None
    status: JobStatus
    featured: bool
    views: int
    applications_count: int
    poster_id: int
    deadline: datetime | None
    expires_at: datetime | None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class JobSearchParams(BaseModel):
    """Schema for job search parameters."""

    search: str | None = None
    location_type: LocationType | None = None
    job_type: JobType | None = None
    experience_level: ExperienceLevel | None = None
    location: str | None = None
    company: str | None = None
    skills: list[str] | None = None
    salary_min: int | None = Field(None, ge=0)
    salary_max: int | None = Field(None, ge=0)
    featured: bool | None = None
    date_posted: Literal["today", "week", "month"] | None = None
    sort: Literal["newest", "oldest", "salary_high", "salary_low", "views"] = "newest"
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=10, ge=1, le=100)


class JobListResponse(BaseModel):
    results: list[JobResponse]
    total: int
    total_pages: int
    current_page: int
