from datetime import datetime

from pydantic import BaseModel, Field

from jobboard.services.aggregate import MAX_COUNTER


class EmployerCreditsOut(BaseModel):
    employer_id: int
    ad_credit: int
    total_ad_credit: int
    credit_expiry_at: datetime | None = None
    is_expired: bool


class EmployerCreditsAddRequest(BaseModel):
    ad_credits: int = Field(gt=0, le=MAX_COUNTER)
    credit_expiry_at: datetime | None = None
