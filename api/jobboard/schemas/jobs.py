from datetime import datetime, time
from decimal import Decimal
from typing import Annotated, Any, Literal

from pydantic import BaseModel, Field, model_validator

from jobboard.services.aggregate import MAX_COUNTER, MAX_RECORD_ID, MAX_SALARY

JobStatus = Literal["inactive", "active", "expired"]
JobVerificationStatus = Literal["pending", "approved", "rejected"]
JobSortField = Literal["id", "created_at", "updated_at", "salary_min", "salary_max"]
SortDirection = Literal["asc", "desc"]

RecordId = Annotated[int, Field(gt=0, le=MAX_RECORD_ID)]
Salary = Annotated[Decimal, Field(ge=0, le=MAX_SALARY)]


class JobWriteRequest(BaseModel):
    job_profile_id: RecordId | None = None
    is_household: bool = False
    description_english: str | None = None
    description_hindi: str | None = None
    no_vacancy: int = Field(default=1, ge=1, le=MAX_COUNTER)
    interviewer_contact: str | None = None
    interviewer_contact_otp: str | None = None
    job_address_english: str | None = None
    job_address_hindi: str | None = None
    job_state_id: RecordId | None = None
    job_city_id: RecordId | None = None
    other_benefit_english: str | None = None
    other_benefit_hindi: str | None = None
    salary_min: Salary | None = None
    salary_max: Salary | None = None
    work_start_time: time | None = None
    work_end_time: time | None = None

    skills: list[RecordId] = Field(default_factory=list)
    qualifications: list[RecordId] = Field(default_factory=list)
    shifts: list[RecordId] = Field(default_factory=list)
    genders: list[str] = Field(default_factory=list)
    job_benefits: list[RecordId] = Field(default_factory=list)
    experiences: list[RecordId] = Field(default_factory=list)
    # Days arrive as 1..7, weekday names or {"day": ...} objects.
    job_days: list[Any] = Field(default_factory=list)

    @model_validator(mode="after")
    def check_salary_range(self) -> "JobWriteRequest":
        if self.salary_min is not None and self.salary_max is not None and self.salary_min > self.salary_max:
            raise ValueError("salary_min must not exceed salary_max")
        return self


class JobCreateRequest(JobWriteRequest):
    employer_id: RecordId


class JobUpdateRequest(JobWriteRequest):
    pass


class JobStatusPatchRequest(BaseModel):
    status: JobStatus


class JobVerificationPatchRequest(BaseModel):
    verification_status: JobVerificationStatus


class JobOut(BaseModel):
    id: int
    employer_id: int
    employer_name: str | None = None
    organization_name: str | None = None
    job_profile_id: int | None = None
    job_profile: str | None = None
    is_household: bool
    description_english: str | None = None
    description_hindi: str | None = None
    no_vacancy: int
    hired_total: int
    vacancy_left: int
    interviewer_contact: str | None = None
    interviewer_contact_otp: str | None = None
    job_address_english: str | None = None
    job_address_hindi: str | None = None
    job_state_id: int | None = None
    job_state: str | None = None
    job_city_id: int | None = None
    job_city: str | None = None
    other_benefit_english: str | None = None
    other_benefit_hindi: str | None = None
    salary_min: Decimal | None = None
    salary_max: Decimal | None = None
    work_start_time: time | None = None
    work_end_time: time | None = None
    status: JobStatus
    verification_status: JobVerificationStatus
    expired_at: datetime | None = None
    is_expired: bool
    skills: list[int] = Field(default_factory=list)
    qualifications: list[int] = Field(default_factory=list)
    shifts: list[int] = Field(default_factory=list)
    genders: list[str] = Field(default_factory=list)
    job_benefits: list[int] = Field(default_factory=list)
    experiences: list[int] = Field(default_factory=list)
    job_days: list[str] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime


class JobListItemOut(BaseModel):
    id: int
    employer_id: int
    employer_name: str | None = None
    organization_name: str | None = None
    job_profile_id: int | None = None
    job_profile: str | None = None
    is_household: bool
    no_vacancy: int
    hired_total: int
    vacancy_left: int
    job_state: str | None = None
    job_city: str | None = None
    salary_min: Decimal | None = None
    salary_max: Decimal | None = None
    status: JobStatus
    verification_status: JobVerificationStatus
    expired_at: datetime | None = None
    is_expired: bool
    genders: list[str] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime


class JobPageOut(BaseModel):
    items: list[JobListItemOut] = Field(default_factory=list)
    total: int
    limit: int
    offset: int


class JobDeleteOut(BaseModel):
    success: bool = True
    id: int
    deleted_at: datetime


class RecommendedJobOut(BaseModel):
    job_id: int
    employer_id: int
    employer_name: str | None = None
    organization_name: str | None = None
    job_profile_id: int | None = None
    job_profile: str | None = None
    is_household: bool
    interviewer_contact: str | None = None
    work_start_time: time | None = None
    work_end_time: time | None = None
    salary_min: Decimal | None = None
    salary_max: Decimal | None = None
    no_vacancy: int
    hired_total: int
    vacancy_left: int
    status: JobStatus
    verification_status: JobVerificationStatus
    expired_at: datetime | None = None
    is_expired: bool
    job_status: Literal["active", "expired"]
    job_state: str | None = None
    job_city: str | None = None
    genders: list[str] = Field(default_factory=list)
    created_at: datetime
