from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

ANY_GENDER = "any"


class QueryParams:
    """Collects positional asyncpg parameters while SQL fragments are assembled."""

    def __init__(self) -> None:
        self.values: list[Any] = []

    def bind(self, value: Any) -> str:
        self.values.append(value)
        return f"${len(self.values)}"


@dataclass(slots=True)
class CandidateCriteria:
    job_profile_id: int | None = None
    state_id: int | None = None
    city_id: int | None = None
    qualification_ids: list[int] = field(default_factory=list)
    genders: list[str] = field(default_factory=list)
    salary_min: Decimal | None = None
    salary_max: Decimal | None = None


@dataclass(slots=True)
class JobSearchCriteria:
    job_profile_ids: list[int] = field(default_factory=list)
    preferred_state_id: int | None = None
    preferred_city_id: int | None = None
    gender: str | None = None
    expected_salary: Decimal | None = None


def gender_filter(genders: list[str]) -> list[str] | None:
    """Genders an employee must match, or None when the job accepts everyone."""
    normalized = sorted({gender.strip().lower() for gender in genders if gender and gender.strip()})
    if not normalized or ANY_GENDER in normalized:
        return None
    return normalized


def build_candidate_filter(criteria: CandidateCriteria, params: QueryParams) -> list[str]:
    """Where-clause fragments over `employees e` joined to `users u` for a job's candidates."""
    conditions = [
        "e.deleted_at is null",
        "coalesce(u.is_active, false) = true",
    ]

    if criteria.state_id is not None:
        conditions.append(f"e.preferred_state_id = {params.bind(criteria.state_id)}")
    if criteria.city_id is not None:
        conditions.append(f"e.preferred_city_id = {params.bind(criteria.city_id)}")

    if criteria.qualification_ids:
        conditions.append(f"e.qualification_id = any({params.bind(list(criteria.qualification_ids))}::bigint[])")

    genders = gender_filter(criteria.genders)
    if genders is not None:
        conditions.append(f"lower(coalesce(e.gender, '')) = any({params.bind(genders)}::text[])")

    # A candidate with no stated salary is compatible with any range.
    if criteria.salary_min is not None and criteria.salary_max is not None:
        low = params.bind(criteria.salary_min)
        high = params.bind(criteria.salary_max)
        conditions.append(f"(e.expected_salary is null or e.expected_salary between {low} and {high})")
    elif criteria.salary_min is not None:
        conditions.append(f"(e.expected_salary is null or e.expected_salary >= {params.bind(criteria.salary_min)})")
    elif criteria.salary_max is not None:
        conditions.append(f"(e.expected_salary is null or e.expected_salary <= {params.bind(criteria.salary_max)})")

    if criteria.job_profile_id is not None:
        conditions.append(
            "exists ("
            "select 1 from employee_job_profiles ejp "
            "where ejp.employee_id = e.id "
            f"and ejp.job_profile_id = {params.bind(criteria.job_profile_id)} "
            "and ejp.deleted_at is null)"
        )

    return conditions


def build_job_filter(criteria: JobSearchCriteria, params: QueryParams) -> list[str]:
    """Where-clause fragments over `jobs j` for the jobs an employee should be shown."""
    conditions = [
        "j.deleted_at is null",
        f"j.job_profile_id = any({params.bind(list(criteria.job_profile_ids))}::bigint[])",
        # Live jobs plus expired ones; inactive drafts stay hidden.
        "((j.status = 'active' and j.expired_at is null) or j.status = 'expired' or j.expired_at is not null)",
    ]

    if criteria.preferred_state_id is not None:
        conditions.append(f"j.job_state_id = {params.bind(criteria.preferred_state_id)}")
    if criteria.preferred_city_id is not None:
        conditions.append(f"j.job_city_id = {params.bind(criteria.preferred_city_id)}")

    if criteria.expected_salary is not None:
        salary = params.bind(criteria.expected_salary)
        conditions.append(f"(j.salary_min is null or j.salary_min <= {salary})")
        conditions.append(f"(j.salary_max is null or j.salary_max >= {salary})")

    gender = (criteria.gender or "").strip().lower()
    if gender:
        token = params.bind(gender)
        conditions.append(
            "("
            "not exists (select 1 from job_genders jg where jg.job_id = j.id) "
            f"or exists (select 1 from job_genders jg where jg.job_id = j.id and lower(jg.gender) in ('{ANY_GENDER}', {token}))"
            ")"
        )

    return conditions
