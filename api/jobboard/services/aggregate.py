from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any, Iterable

JOB_STATUSES = ("inactive", "active", "expired")
JOB_VERIFICATION_STATUSES = ("pending", "approved", "rejected")
INITIAL_JOB_STATUS = "inactive"
INITIAL_VERIFICATION_STATUS = "pending"

# Scalar columns a caller may write on create and replace on update. status,
# verification_status, expired_at, hired_total and employer_id are owned elsewhere.
JOB_SCALAR_FIELDS = (
    "job_profile_id",
    "is_household",
    "description_english",
    "description_hindi",
    "no_vacancy",
    "interviewer_contact",
    "interviewer_contact_otp",
    "job_address_english",
    "job_address_hindi",
    "job_state_id",
    "job_city_id",
    "other_benefit_english",
    "other_benefit_hindi",
    "salary_min",
    "salary_max",
    "work_start_time",
    "work_end_time",
)

# Column ranges in db/schema.sql; values outside them are refused before reaching asyncpg.
MAX_RECORD_ID = 2**63 - 1
MAX_COUNTER = 2**31 - 1
MAX_SALARY = Decimal("9999999999.99")

WEEKDAY_NUMBERS = {
    "monday": "1",
    "tuesday": "2",
    "wednesday": "3",
    "thursday": "4",
    "friday": "5",
    "saturday": "6",
    "sunday": "7",
}


@dataclass(frozen=True, slots=True)
class ChildCollection:
    attribute: str
    table: str
    column: str
    sql_type: str


CHILD_COLLECTIONS: tuple[ChildCollection, ...] = (
    ChildCollection("skills", "job_skills", "skill_id", "bigint"),
    ChildCollection("qualifications", "job_qualifications", "qualification_id", "bigint"),
    ChildCollection("shifts", "job_shifts", "shift_id", "bigint"),
    ChildCollection("genders", "job_genders", "gender", "text"),
    ChildCollection("job_benefits", "selected_job_benefits", "benefit_id", "bigint"),
    ChildCollection("experiences", "job_experiences", "experience_id", "bigint"),
    ChildCollection("job_days", "job_days", "day", "text"),
)


@dataclass(slots=True)
class JobChildren:
    """The seven reference sets owned by a job. Each list is de-duplicated in input order."""

    skills: list[int] = field(default_factory=list)
    qualifications: list[int] = field(default_factory=list)
    shifts: list[int] = field(default_factory=list)
    genders: list[str] = field(default_factory=list)
    job_benefits: list[int] = field(default_factory=list)
    experiences: list[int] = field(default_factory=list)
    job_days: list[str] = field(default_factory=list)

    @classmethod
    def build(
        cls,
        *,
        skills: Iterable[int] = (),
        qualifications: Iterable[int] = (),
        shifts: Iterable[int] = (),
        genders: Iterable[Any] = (),
        job_benefits: Iterable[int] = (),
        experiences: Iterable[int] = (),
        job_days: Iterable[Any] = (),
    ) -> JobChildren:
        return cls(
            skills=_unique(int(item) for item in skills),
            qualifications=_unique(int(item) for item in qualifications),
            shifts=_unique(int(item) for item in shifts),
            genders=_unique(gender for gender in (normalize_gender(item) for item in genders) if gender),
            job_benefits=_unique(int(item) for item in job_benefits),
            experiences=_unique(int(item) for item in experiences),
            job_days=_unique(day for day in (normalize_job_day(item) for item in job_days) if day),
        )

    def values_for(self, collection: ChildCollection) -> list[Any]:
        return list(getattr(self, collection.attribute))


def normalize_gender(value: Any) -> str | None:
    if value is None:
        return None
    normalized = str(value).strip().lower()
    return normalized or None


def normalize_job_day(value: Any) -> str | None:
    """Map 1..7, weekday names or {"day"|"value": ...} objects to the stored '1'..'7' form."""
    if value is None:
        return None
    if isinstance(value, dict):
        if "day" in value:
            value = value["day"]
        elif "value" in value:
            value = value["value"]
        else:
            return None
        if value is None:
            return None
    if isinstance(value, bool):
        return None

    text = str(value).strip().lower()
    if not text:
        return None
    if text in WEEKDAY_NUMBERS:
        return WEEKDAY_NUMBERS[text]
    try:
        number = int(text)
    except ValueError:
        return None
    if 1 <= number <= 7:
        return str(number)
    return None


def parse_record_id(value: str | None) -> int | None:
    """Parse an ASCII decimal id within the bigint key range; anything else is None."""
    if value is None:
        return None
    text = value.strip()
    if not (text.isascii() and text.isdigit()):
        return None
    record_id = int(text)
    if record_id < 1 or record_id > MAX_RECORD_ID:
        return None
    return record_id


def is_credit_expired(credit_expiry_at: datetime | None, now: datetime) -> bool:
    return credit_expiry_at is not None and credit_expiry_at <= now


def credit_refusal_reason(*, ad_credit: int, credit_expiry_at: datetime | None, now: datetime) -> str | None:
    if is_credit_expired(credit_expiry_at, now):
        return "ad credits expired"
    if ad_credit < 1:
        return "no ad credits left"
    return None


def vacancy_left(no_vacancy: Any, hired_total: Any) -> int:
    return int(no_vacancy or 0) - int(hired_total or 0)


def is_job_expired(status: str | None, expired_at: datetime | None) -> bool:
    # Either signal counts; historical rows may carry only one of them.
    return status == "expired" or expired_at is not None


def _unique(values: Iterable[Any]) -> list[Any]:
    seen: set[Any] = set()
    ordered: list[Any] = []
    for value in values:
        if value in seen:
            continue
        seen.add(value)
        ordered.append(value)
    return ordered
