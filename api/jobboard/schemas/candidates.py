from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field


class RecommendedCandidateOut(BaseModel):
    id: int
    name: str | None = None
    gender: str | None = None
    mobile: str | None = None
    qualification_id: int | None = None
    qualification: str | None = None
    expected_salary: Decimal | None = None
    expected_salary_frequency: str | None = None
    preferred_state_id: int | None = None
    preferred_state: str | None = None
    preferred_city_id: int | None = None
    preferred_city: str | None = None
    verification_status: str | None = None
    kyc_status: str | None = None
    job_profiles: list[str] = Field(default_factory=list)
    created_at: datetime
