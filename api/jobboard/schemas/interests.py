from datetime import datetime
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, Field

InterestStatus = Literal["pending", "shortlisted", "hired", "rejected"]
SenderType = Literal["employee", "employer"]


class InterestEmployeeOut(BaseModel):
    id: int
    name: str | None = None
    gender: str | None = None
    mobile: str | None = None
    verification_status: str | None = None
    kyc_status: str | None = None
    expected_salary: Decimal | None = None
    preferred_state: str | None = None
    preferred_city: str | None = None
    is_active: bool | None = None
    job_profiles: list[str] = Field(default_factory=list)


class ApplicantOut(BaseModel):
    id: int
    job_id: int
    sender_type: SenderType
    sender_id: int
    receiver_id: int
    employee_id: int
    employer_id: int
    status: InterestStatus
    otp: str | None = None
    name: str | None = None
    employee: InterestEmployeeOut | None = None
    applied_at: datetime
    updated_at: datetime


class EmployerApplicantOut(ApplicantOut):
    job_status: str | None = None
    job_profile: str = "-"


class EmployeeInterestJobOut(BaseModel):
    id: int
    job_id: int
    job_profile: str = ""
    employer_id: int
    employer_name: str | None = None
    organization_name: str | None = None
    employer_phone: str | None = None
    job_state: str = ""
    job_city: str = ""
    salary_min: Decimal | None = None
    salary_max: Decimal | None = None
    total_vacancy: int | None = None
    hired_total: int | None = None
    vacancy_left: int
    job_status: str | None = None
    is_expired: bool


class EmployeeApplicationOut(EmployeeInterestJobOut):
    employee_kyc_status: str | None = None
    # pending interests are shown as "Active".
    status: str
    applied_at: datetime
    received_at: datetime


class EmployeeApplicationsOut(BaseModel):
    sent: list[EmployeeApplicationOut] = Field(default_factory=list)
    received: list[EmployeeApplicationOut] = Field(default_factory=list)


class HiredJobOut(EmployeeInterestJobOut):
    employer_kyc_status: str | None = None
    status: InterestStatus
    hired_at: datetime
    otp: str | None = None


class HiredPartyOut(BaseModel):
    id: int | None = None
    name: str = "-"
    mobile: str | None = None


class HiredJobSummaryOut(BaseModel):
    id: int | None = None
    profile_id: int | None = None
    profile_name: str = "-"
    interviewer_mobile: str | None = None


class HiredEmployeeOut(BaseModel):
    id: int
    status: InterestStatus
    hired_at: datetime
    otp: str | None = None
    employee: HiredPartyOut
    employer: HiredPartyOut
    job: HiredJobSummaryOut


class HiredEmployeePageOut(BaseModel):
    items: list[HiredEmployeeOut] = Field(default_factory=list)
    total: int
    limit: int
    offset: int
