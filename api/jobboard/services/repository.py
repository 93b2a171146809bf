from __future__ import annotations

from datetime import datetime
from functools import lru_cache
import logging
from typing import Any

import asyncpg  # type: ignore[import-untyped]
from asyncpg import exceptions as pg_exc
from opentelemetry import trace

from jobboard.core.config import get_settings
from jobboard.services.aggregate import (
    CHILD_COLLECTIONS,
    INITIAL_JOB_STATUS,
    INITIAL_VERIFICATION_STATUS,
    JOB_SCALAR_FIELDS,
    JOB_STATUSES,
    JOB_VERIFICATION_STATUSES,
    JobChildren,
    credit_refusal_reason,
    is_credit_expired,
    is_job_expired,
    parse_record_id,
    vacancy_left,
)
from jobboard.services.interests import (
    INTEREST_STATUSES,
    build_employee_application_views,
    build_employer_applicant_rows,
    build_hired_job_rows,
    build_job_applicant_rows,
    resolve_interest_rows,
)
from jobboard.services.matching import (
    CandidateCriteria,
    JobSearchCriteria,
    QueryParams,
    build_candidate_filter,
    build_job_filter,
)

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


class RepositoryError(Exception):
    """Base repository error."""


class RepositoryUnavailableError(RepositoryError):
    """Raised when the database is unavailable or not configured."""


class RepositoryNotFoundError(RepositoryError):
    """Raised when the requested entity does not exist."""


class RepositoryValidationError(RepositoryError):
    """Raised when payload validation fails before persistence."""


class RepositoryForbiddenError(RepositoryError):
    """Raised when a job's status changes before its verification is approved."""


class RepositoryTransactionError(RepositoryError):
    """Raised when a multi-statement write fails; the transaction has been rolled back."""


class RepositoryCreditExhaustedError(RepositoryError):
    """Raised when an employer cannot spend an ad credit on a new job."""

    def __init__(self, message: str, *, ad_credit: int, credit_expiry_at: datetime | None) -> None:
        super().__init__(message)
        self.ad_credit = ad_credit
        self.credit_expiry_at = credit_expiry_at


JOB_SORT_FIELDS = {
    "id": "j.id",
    "created_at": "j.created_at",
    "updated_at": "j.updated_at",
    "salary_min": "j.salary_min",
    "salary_max": "j.salary_max",
}
CHILD_COLLECTIONS_BY_ATTRIBUTE = {collection.attribute: collection for collection in CHILD_COLLECTIONS}
INTEREST_COLUMNS = """
  ji.id,
  ji.job_id,
  ji.sender_type,
  ji.sender_id,
  ji.receiver_id,
  ji.status,
  ji.otp,
  ji.created_at,
  ji.updated_at
"""
JOB_CHILD_ARRAYS_SQL = ",\n".join(
    f"array(select c.{c.column} from {c.table} c where c.job_id = j.id order by c.{c.column}) as {c.attribute}"
    for c in CHILD_COLLECTIONS
)
JOB_DETAIL_SQL = f"""
select
  j.id,
  j.employer_id,
  er.name as employer_name,
  er.organization_name,
  j.job_profile_id,
  jp.profile_english as job_profile,
  j.is_household,
  j.description_english,
  j.description_hindi,
  j.no_vacancy,
  j.hired_total,
  j.interviewer_contact,
  j.interviewer_contact_otp,
  j.job_address_english,
  j.job_address_hindi,
  j.job_state_id,
  st.state_english as job_state,
  j.job_city_id,
  ci.city_english as job_city,
  j.other_benefit_english,
  j.other_benefit_hindi,
  j.salary_min,
  j.salary_max,
  j.work_start_time,
  j.work_end_time,
  j.status,
  j.verification_status,
  j.expired_at,
  j.created_at,
  j.updated_at,
  {JOB_CHILD_ARRAYS_SQL}
from jobs j
left join employers er on er.id = j.employer_id
left join job_profiles jp on jp.id = j.job_profile_id
left join states st on st.id = j.job_state_id
left join cities ci on ci.id = j.job_city_id
where j.id = $1
  and j.deleted_at is null
"""


class PostgresRepository:
    def __init__(
        self,
        database_url: str | None,
        min_pool_size: int,
        max_pool_size: int,
        command_timeout_seconds: float = 15.0,
        candidate_recommendation_limit: int = 200,
        job_recommendation_limit: int = 200,
        job_recency_window_hours: int = 48,
    ) -> None:
        self.database_url = database_url
        self.min_pool_size = min_pool_size
        self.max_pool_size = max_pool_size
        self.command_timeout_seconds = command_timeout_seconds
        self.candidate_recommendation_limit = max(1, candidate_recommendation_limit)
        self.job_recommendation_limit = max(1, job_recommendation_limit)
        self.job_recency_window_hours = max(1, job_recency_window_hours)
        self._pool: asyncpg.Pool | None = None

    async def close(self) -> None:
        if self._pool is not None:
            await self._pool.close()
            self._pool = None

    # ------------------------------------------------------------------
    # Job aggregate: writes
    # ------------------------------------------------------------------

    async def create_job(
        self,
        *,
        employer_id: int,
        fields: dict[str, Any],
        children: JobChildren,
        actor_id: int | None = None,
    ) -> dict[str, Any]:
        """Spend one ad credit and insert the job with its child sets in a single transaction.

        New jobs always start inactive and pending verification, whatever the caller sent.
        """
        values = self._job_scalar_values(fields)
        pool = await self._get_pool()

        with tracer.start_as_current_span("jobs.create") as span:
            span.set_attribute("employer.id", employer_id)
            try:
                async with pool.acquire() as conn:
                    async with conn.transaction():
                        remaining = await self._reserve_ad_credit(conn=conn, employer_id=employer_id)

                        columns = ", ".join(JOB_SCALAR_FIELDS)
                        placeholders = ", ".join(f"${index}" for index in range(2, len(JOB_SCALAR_FIELDS) + 2))
                        status_token = f"${len(JOB_SCALAR_FIELDS) + 2}"
                        verification_token = f"${len(JOB_SCALAR_FIELDS) + 3}"
                        row = await conn.fetchrow(
                            f"""
                            insert into jobs (employer_id, {columns}, status, verification_status)
                            values ($1, {placeholders}, {status_token}, {verification_token})
                            returning id
                            """,
                            employer_id,
                            *values,
                            INITIAL_JOB_STATUS,
                            INITIAL_VERIFICATION_STATUS,
                        )
                        job_id = int(row["id"])
                        await self._write_job_children(conn=conn, job_id=job_id, children=children, replace=False)
                        detail_row = await conn.fetchrow(JOB_DETAIL_SQL, job_id)
            except (pg_exc.ForeignKeyViolationError, pg_exc.CheckViolationError) as exc:
                raise RepositoryValidationError(f"invalid job payload: {exc.constraint_name}") from exc
            except (asyncpg.PostgresError, asyncpg.InterfaceError) as exc:
                raise RepositoryTransactionError("failed to create job") from exc
            span.set_attribute("job.id", job_id)

        logger.info("job created job_id=%s employer_id=%s ad_credit_left=%s", job_id, employer_id, remaining)
        await self._safe_log(
            actor_id=actor_id,
            category="jobs",
            log_type="add",
            redirect_to=f"/jobs/{job_id}",
            log_text=f"Job created: #{job_id} employer=#{employer_id}",
        )
        return self._job_detail_row_to_dict(detail_row)

    async def update_job(
        self,
        *,
        job_id: int,
        fields: dict[str, Any],
        children: JobChildren,
        actor_id: int | None = None,
    ) -> dict[str, Any]:
        values = self._job_scalar_values(fields)
        pool = await self._get_pool()

        try:
            async with pool.acquire() as conn:
                async with conn.transaction():
                    locked = await conn.fetchrow(
                        """
                        select id
                        from jobs
                        where id = $1 and deleted_at is null
                        for update
                        """,
                        job_id,
                    )
                    if not locked:
                        raise RepositoryNotFoundError("job not found")

                    assignments = ", ".join(
                        f"{name} = ${index}" for index, name in enumerate(JOB_SCALAR_FIELDS, start=2)
                    )
                    await conn.execute(
                        f"""
                        update jobs
                        set {assignments}, updated_at = now()
                        where id = $1
                        """,
                        job_id,
                        *values,
                    )
                    await self._write_job_children(conn=conn, job_id=job_id, children=children, replace=True)
                    detail_row = await conn.fetchrow(JOB_DETAIL_SQL, job_id)
        except (pg_exc.ForeignKeyViolationError, pg_exc.CheckViolationError) as exc:
            raise RepositoryValidationError(f"invalid job payload: {exc.constraint_name}") from exc
        except (asyncpg.PostgresError, asyncpg.InterfaceError) as exc:
            raise RepositoryTransactionError("failed to update job") from exc

        await self._safe_log(
            actor_id=actor_id,
            category="jobs",
            log_type="update",
            redirect_to=f"/jobs/{job_id}",
            log_text=f"Job updated: #{job_id}",
        )
        return self._job_detail_row_to_dict(detail_row)

    async def delete_job(self, *, job_id: int, actor_id: int | None = None) -> dict[str, Any]:
        """Remove every child set, then tombstone the header. Deleting twice is a not-found."""
        pool = await self._get_pool()

        try:
            async with pool.acquire() as conn:
                async with conn.transaction():
                    locked = await conn.fetchrow(
                        """
                        select id, employer_id
                        from jobs
                        where id = $1 and deleted_at is null
                        for update
                        """,
                        job_id,
                    )
                    if not locked:
                        raise RepositoryNotFoundError("job not found")

                    for collection in CHILD_COLLECTIONS:
                        await conn.execute(f"delete from {collection.table} where job_id = $1", job_id)

                    row = await conn.fetchrow(
                        """
                        update jobs
                        set deleted_at = now(), updated_at = now()
                        where id = $1
                        returning id, deleted_at
                        """,
                        job_id,
                    )
        except (asyncpg.PostgresError, asyncpg.InterfaceError) as exc:
            raise RepositoryTransactionError("failed to delete job") from exc

        await self._safe_log(
            actor_id=actor_id,
            category="jobs",
            log_type="delete",
            redirect_to="/jobs",
            log_text=f"Job deleted: #{job_id} employer=#{locked['employer_id']}",
        )
        return {"id": int(row["id"]), "deleted_at": row["deleted_at"]}

    # ------------------------------------------------------------------
    # Job lifecycle
    # ------------------------------------------------------------------

    async def set_job_status(self, *, job_id: int, status: str, actor_id: int | None = None) -> dict[str, Any]:
        if status not in JOB_STATUSES:
            raise RepositoryValidationError(f"status must be one of: {', '.join(JOB_STATUSES)}")

        pool = await self._get_pool()
        try:
            async with pool.acquire() as conn:
                async with conn.transaction():
                    row = await conn.fetchrow(
                        """
                        select id, status, verification_status
                        from jobs
                        where id = $1 and deleted_at is null
                        for update
                        """,
                        job_id,
                    )
                    if not row:
                        raise RepositoryNotFoundError("job not found")
                    if row["verification_status"] != "approved":
                        raise RepositoryForbiddenError("job status can change only after verification is approved")

                    from_status = row["status"]
                    await conn.execute(
                        """
                        update jobs
                        set
                          status = $2::text,
                          expired_at = case when $2::text = 'expired' then now() else null end,
                          updated_at = now()
                        where id = $1
                        """,
                        job_id,
                        status,
                    )
                    detail_row = await conn.fetchrow(JOB_DETAIL_SQL, job_id)
        except (asyncpg.PostgresError, asyncpg.InterfaceError) as exc:
            raise RepositoryTransactionError("failed to change job status") from exc

        await self._safe_log(
            actor_id=actor_id,
            category="jobs",
            log_type="update",
            redirect_to=f"/jobs/{job_id}",
            log_text=f"Job status changed: #{job_id} {from_status} -> {status}",
        )
        return self._job_detail_row_to_dict(detail_row)

    async def set_verification_status(
        self,
        *,
        job_id: int,
        verification_status: str,
        actor_id: int | None = None,
    ) -> dict[str, Any]:
        if verification_status not in JOB_VERIFICATION_STATUSES:
            raise RepositoryValidationError(
                f"verification_status must be one of: {', '.join(JOB_VERIFICATION_STATUSES)}"
            )

        pool = await self._get_pool()
        try:
            async with pool.acquire() as conn:
                row = await conn.fetchrow(
                    """
                    update jobs
                    set verification_status = $2, updated_at = now()
                    where id = $1 and deleted_at is null
                    returning id
                    """,
                    job_id,
                    verification_status,
                )
                if not row:
                    raise RepositoryNotFoundError("job not found")
                detail_row = await conn.fetchrow(JOB_DETAIL_SQL, job_id)
        except (asyncpg.PostgresError, asyncpg.InterfaceError) as exc:
            raise RepositoryTransactionError("failed to change job verification") from exc

        await self._safe_log(
            actor_id=actor_id,
            category="jobs",
            log_type="update",
            redirect_to=f"/jobs/{job_id}",
            log_text=f"Job verification changed: #{job_id} -> {verification_status}",
        )
        return self._job_detail_row_to_dict(detail_row)

    # ------------------------------------------------------------------
    # Job aggregate: reads
    # ------------------------------------------------------------------

    async def get_job(self, *, job_id: int) -> dict[str, Any]:
        pool = await self._get_pool()
        row = await pool.fetchrow(JOB_DETAIL_SQL, job_id)
        if not row:
            raise RepositoryNotFoundError("job not found")
        return self._job_detail_row_to_dict(row)

    async def list_jobs(
        self,
        *,
        limit: int,
        offset: int,
        employer_id: int | None = None,
        job_profile_ids: list[int] | None = None,
        statuses: list[str] | None = None,
        verification_status: str | None = None,
        expired: bool | None = None,
        recent: bool = False,
        child_filters: dict[str, list[Any]] | None = None,
        q: str | None = None,
        sort_by: str = "id",
        sort_dir: str = "desc",
    ) -> dict[str, Any]:
        pool = await self._get_pool()
        params = QueryParams()
        conditions = ["j.deleted_at is null"]

        if employer_id is not None:
            conditions.append(f"j.employer_id = {params.bind(employer_id)}")
        if job_profile_ids:
            conditions.append(f"j.job_profile_id = any({params.bind(list(job_profile_ids))}::bigint[])")
        if statuses:
            conditions.append(f"j.status = any({params.bind(list(statuses))}::text[])")
        if verification_status:
            conditions.append(f"j.verification_status = {params.bind(verification_status)}")
        if expired is True:
            conditions.append("(j.status = 'expired' or j.expired_at is not null)")
        elif expired is False:
            conditions.append("(j.status <> 'expired' and j.expired_at is null)")
        if recent:
            conditions.append(
                f"j.created_at >= now() - make_interval(hours => {params.bind(self.job_recency_window_hours)})"
            )

        for attribute, values in (child_filters or {}).items():
            if not values:
                continue
            collection = CHILD_COLLECTIONS_BY_ATTRIBUTE.get(attribute)
            if collection is None:
                raise RepositoryValidationError(f"unsupported job filter: {attribute}")
            token = params.bind(list(values))
            conditions.append(
                f"exists (select 1 from {collection.table} c where c.job_id = j.id "
                f"and c.{collection.column} = any({token}::{collection.sql_type}[]))"
            )

        normalized_q = self._coerce_text(q)
        if normalized_q:
            token = params.bind(f"%{normalized_q}%")
            search_clauses = [
                f"coalesce(j.description_english, '') ilike {token}",
                f"coalesce(j.description_hindi, '') ilike {token}",
                f"coalesce(j.job_address_english, '') ilike {token}",
                f"coalesce(j.job_address_hindi, '') ilike {token}",
                f"coalesce(er.name, '') ilike {token}",
                f"coalesce(er.organization_name, '') ilike {token}",
                f"coalesce(jp.profile_english, '') ilike {token}",
                f"coalesce(jp.profile_hindi, '') ilike {token}",
            ]
            search_id = parse_record_id(normalized_q)
            if search_id is not None:
                search_clauses.append(f"j.id = {params.bind(search_id)}")
            conditions.append("(" + " or ".join(search_clauses) + ")")

        sort_expr = JOB_SORT_FIELDS.get(sort_by, "j.id")
        direction = "asc" if sort_dir == "asc" else "desc"
        limit_token = params.bind(limit)
        offset_token = params.bind(offset)

        rows = await pool.fetch(
            f"""
            select
              j.id,
              j.employer_id,
              er.name as employer_name,
              er.organization_name,
              j.job_profile_id,
              jp.profile_english as job_profile,
              j.is_household,
              j.no_vacancy,
              j.hired_total,
              st.state_english as job_state,
              ci.city_english as job_city,
              j.salary_min,
              j.salary_max,
              j.status,
              j.verification_status,
              j.expired_at,
              array(select jg.gender from job_genders jg where jg.job_id = j.id order by jg.gender) as genders,
              j.created_at,
              j.updated_at,
              count(*) over () as total_count
            from jobs j
            left join employers er on er.id = j.employer_id
            left join job_profiles jp on jp.id = j.job_profile_id
            left join states st on st.id = j.job_state_id
            left join cities ci on ci.id = j.job_city_id
            where {" and ".join(conditions)}
            order by {sort_expr} {direction} nulls last, j.id desc
            limit {limit_token}
            offset {offset_token}
            """,
            *params.values,
        )
        total = int(rows[0]["total_count"]) if rows else 0
        return {
            "items": [self._job_list_row_to_dict(row) for row in rows],
            "total": total,
            "limit": limit,
            "offset": offset,
        }

    # ------------------------------------------------------------------
    # Matching
    # ------------------------------------------------------------------

    async def recommend_candidates(self, *, job_id: int) -> list[dict[str, Any]]:
        """Employees eligible for a job, newest first, capped at the configured limit."""
        pool = await self._get_pool()

        with tracer.start_as_current_span("jobs.recommend_candidates") as span:
            span.set_attribute("job.id", job_id)
            job = await pool.fetchrow(
                """
                select id, job_profile_id, job_state_id, job_city_id, salary_min, salary_max
                from jobs
                where id = $1 and deleted_at is null
                """,
                job_id,
            )
            if not job:
                raise RepositoryNotFoundError("job not found")

            qualification_rows = await pool.fetch(
                "select qualification_id from job_qualifications where job_id = $1",
                job_id,
            )
            gender_rows = await pool.fetch("select gender from job_genders where job_id = $1", job_id)

            criteria = CandidateCriteria(
                job_profile_id=job["job_profile_id"],
                state_id=job["job_state_id"],
                city_id=job["job_city_id"],
                qualification_ids=[int(row["qualification_id"]) for row in qualification_rows],
                genders=[row["gender"] for row in gender_rows],
                salary_min=job["salary_min"],
                salary_max=job["salary_max"],
            )
            params = QueryParams()
            conditions = build_candidate_filter(criteria, params)
            limit_token = params.bind(self.candidate_recommendation_limit)

            rows = await pool.fetch(
                f"""
                select
                  e.id,
                  e.name,
                  e.gender,
                  e.qualification_id,
                  q.qualification_english as qualification,
                  e.expected_salary,
                  e.expected_salary_frequency,
                  e.preferred_state_id,
                  ps.state_english as preferred_state,
                  e.preferred_city_id,
                  pc.city_english as preferred_city,
                  e.verification_status,
                  e.kyc_status,
                  u.mobile,
                  array(
                    select jp.profile_english
                    from employee_job_profiles ejp
                    join job_profiles jp on jp.id = ejp.job_profile_id
                    where ejp.employee_id = e.id and ejp.deleted_at is null
                    order by jp.id
                  ) as job_profiles,
                  e.created_at
                from employees e
                join users u on u.id = e.user_id
                left join qualifications q on q.id = e.qualification_id
                left join states ps on ps.id = e.preferred_state_id
                left join cities pc on pc.id = e.preferred_city_id
                where {" and ".join(conditions)}
                order by e.created_at desc, e.id desc
                limit {limit_token}
                """,
                *params.values,
            )
            span.set_attribute("candidates.count", len(rows))

        return [self._candidate_row_to_dict(row) for row in rows]

    async def recommend_jobs(self, *, employee_id: int) -> list[dict[str, Any]]:
        pool = await self._get_pool()
        employee = await pool.fetchrow(
            """
            select id, gender, expected_salary, preferred_state_id, preferred_city_id
            from employees
            where id = $1 and deleted_at is null
            """,
            employee_id,
        )
        if not employee:
            raise RepositoryNotFoundError("employee not found")

        profile_rows = await pool.fetch(
            """
            select job_profile_id
            from employee_job_profiles
            where employee_id = $1 and deleted_at is null and job_profile_id is not null
            """,
            employee_id,
        )
        job_profile_ids = [int(row["job_profile_id"]) for row in profile_rows]
        if not job_profile_ids:
            return []

        criteria = JobSearchCriteria(
            job_profile_ids=job_profile_ids,
            preferred_state_id=employee["preferred_state_id"],
            preferred_city_id=employee["preferred_city_id"],
            gender=employee["gender"],
            expected_salary=employee["expected_salary"],
        )
        params = QueryParams()
        conditions = build_job_filter(criteria, params)
        limit_token = params.bind(self.job_recommendation_limit)

        rows = await pool.fetch(
            f"""
            select
              j.id as job_id,
              j.employer_id,
              er.name as employer_name,
              er.organization_name,
              j.job_profile_id,
              jp.profile_english as job_profile,
              j.is_household,
              j.interviewer_contact,
              j.work_start_time,
              j.work_end_time,
              j.salary_min,
              j.salary_max,
              j.no_vacancy,
              j.hired_total,
              j.status,
              j.verification_status,
              j.expired_at,
              st.state_english as job_state,
              ci.city_english as job_city,
              array(select jg.gender from job_genders jg where jg.job_id = j.id order by jg.gender) as genders,
              j.created_at
            from jobs j
            left join employers er on er.id = j.employer_id
            left join job_profiles jp on jp.id = j.job_profile_id
            left join states st on st.id = j.job_state_id
            left join cities ci on ci.id = j.job_city_id
            where {" and ".join(conditions)}
            order by j.created_at desc, j.id desc
            limit {limit_token}
            """,
            *params.values,
        )
        return [self._recommended_job_row_to_dict(row) for row in rows]

    # ------------------------------------------------------------------
    # Interest views
    # ------------------------------------------------------------------

    async def list_job_applicants(self, *, job_id: int) -> list[dict[str, Any]]:
        pool = await self._get_pool()
        async with pool.acquire() as conn:
            job = await conn.fetchrow("select id from jobs where id = $1 and deleted_at is null", job_id)
            if not job:
                raise RepositoryNotFoundError("job not found")

            interest_rows = await conn.fetch(
                f"""
                select {INTEREST_COLUMNS}
                from job_interests ji
                where ji.job_id = $1 and ji.deleted_at is null
                order by ji.created_at desc, ji.id desc
                """,
                job_id,
            )
            resolved = resolve_interest_rows([dict(row) for row in interest_rows])
            employees = await self._fetch_employee_summaries(
                conn=conn,
                employee_ids={parties.employee_id for _, parties in resolved},
            )

        return build_job_applicant_rows(resolved, employees)

    async def list_employer_applicants(self, *, employer_id: int) -> list[dict[str, Any]]:
        pool = await self._get_pool()
        async with pool.acquire() as conn:
            employer = await conn.fetchrow("select id from employers where id = $1", employer_id)
            if not employer:
                raise RepositoryNotFoundError("employer not found")

            job_rows = await conn.fetch(
                """
                select j.id, j.status, j.expired_at, jp.profile_english as job_profile
                from jobs j
                left join job_profiles jp on jp.id = j.job_profile_id
                where j.employer_id = $1
                """,
                employer_id,
            )
            jobs_by_id = {int(row["id"]): dict(row) for row in job_rows}
            if not jobs_by_id:
                return []

            interest_rows = await conn.fetch(
                f"""
                select {INTEREST_COLUMNS}
                from job_interests ji
                where ji.job_id = any($1::bigint[]) and ji.deleted_at is null
                order by ji.created_at desc, ji.id desc
                """,
                list(jobs_by_id),
            )
            resolved = resolve_interest_rows([dict(row) for row in interest_rows])
            employees = await self._fetch_employee_summaries(
                conn=conn,
                employee_ids={parties.employee_id for _, parties in resolved},
            )

        return build_employer_applicant_rows(resolved, employees, jobs_by_id)

    async def list_employee_applications(self, *, employee_id: int) -> dict[str, list[dict[str, Any]]]:
        pool = await self._get_pool()
        async with pool.acquire() as conn:
            employee = await conn.fetchrow("select id, kyc_status from employees where id = $1", employee_id)
            if not employee:
                raise RepositoryNotFoundError("employee not found")

            interest_rows = await conn.fetch(
                f"""
                select {INTEREST_COLUMNS}
                from job_interests ji
                where ji.deleted_at is null
                  and (
                    (ji.sender_type = 'employee' and ji.sender_id = $1)
                    or (ji.sender_type = 'employer' and ji.receiver_id = $1)
                  )
                order by ji.created_at desc, ji.id desc
                """,
                employee_id,
            )
            resolved = resolve_interest_rows([dict(row) for row in interest_rows])
            jobs_by_id = await self._fetch_job_summaries(
                conn=conn,
                job_ids={int(interest["job_id"]) for interest, _ in resolved},
            )
            employers_by_id = await self._fetch_employer_summaries(
                conn=conn,
                employer_ids={parties.employer_id for _, parties in resolved},
            )

        return build_employee_application_views(
            resolved,
            jobs_by_id,
            employers_by_id,
            employee_kyc_status=employee["kyc_status"],
        )

    async def list_employee_hired_jobs(self, *, employee_id: int) -> list[dict[str, Any]]:
        pool = await self._get_pool()
        async with pool.acquire() as conn:
            employee = await conn.fetchrow("select id from employees where id = $1", employee_id)
            if not employee:
                raise RepositoryNotFoundError("employee not found")

            interest_rows = await conn.fetch(
                f"""
                select {INTEREST_COLUMNS}
                from job_interests ji
                where ji.deleted_at is null
                  and ji.status = 'hired'
                  and (
                    (ji.sender_type = 'employee' and ji.sender_id = $1)
                    or (ji.sender_type = 'employer' and ji.receiver_id = $1)
                  )
                order by ji.updated_at desc, ji.id desc
                """,
                employee_id,
            )
            resolved = resolve_interest_rows([dict(row) for row in interest_rows])
            jobs_by_id = await self._fetch_job_summaries(
                conn=conn,
                job_ids={int(interest["job_id"]) for interest, _ in resolved},
            )
            employers_by_id = await self._fetch_employer_summaries(
                conn=conn,
                employer_ids={parties.employer_id for _, parties in resolved},
            )

        return build_hired_job_rows(resolved, jobs_by_id, employers_by_id)

    async def list_hired_employees(
        self,
        *,
        limit: int,
        offset: int,
        status: str | None = None,
        job_profile_id: int | None = None,
        q: str | None = None,
    ) -> dict[str, Any]:
        if status is not None and status not in INTEREST_STATUSES:
            raise RepositoryValidationError(f"status must be one of: {', '.join(INTEREST_STATUSES)}")

        pool = await self._get_pool()
        params = QueryParams()
        conditions: list[str] = []

        if status:
            conditions.append(f"ji.status = {params.bind(status)}")
        if job_profile_id is not None:
            conditions.append(f"j.job_profile_id = {params.bind(job_profile_id)}")

        normalized_q = self._coerce_text(q)
        if normalized_q:
            token = params.bind(f"%{normalized_q.lower()}%")
            search_clauses = [
                f"lower(coalesce(e.name, '')) like {token}",
                f"lower(coalesce(eu.mobile, '')) like {token}",
                f"lower(coalesce(er.name, '')) like {token}",
                f"lower(coalesce(uer.mobile, '')) like {token}",
                f"lower(coalesce(jp.profile_english, '')) like {token}",
                f"lower(coalesce(jp.profile_hindi, '')) like {token}",
            ]
            search_id = parse_record_id(normalized_q)
            if search_id is not None:
                number = params.bind(search_id)
                search_clauses.append(f"ji.id = {number} or e.id = {number} or er.id = {number} or j.id = {number}")
            conditions.append("(" + " or ".join(search_clauses) + ")")

        where_sql = " and ".join(conditions) if conditions else "true"
        limit_token = params.bind(limit)
        offset_token = params.bind(offset)

        rows = await pool.fetch(
            f"""
            select
              ji.id,
              ji.status,
              coalesce(ji.updated_at, ji.created_at) as hired_at,
              ji.otp,
              ji.employee_id,
              ji.employer_id,
              ji.job_id,
              e.name as employee_name,
              eu.mobile as employee_mobile,
              er.name as employer_name,
              uer.mobile as employer_mobile,
              j.job_profile_id,
              jp.profile_english as job_profile,
              j.interviewer_contact,
              count(*) over () as total_count
            from (
              select
                job_interests.*,
                case when sender_type = 'employee' then sender_id else receiver_id end as employee_id,
                case when sender_type = 'employee' then receiver_id else sender_id end as employer_id
              from job_interests
              where deleted_at is null
            ) ji
            left join employees e on e.id = ji.employee_id
            left join users eu on eu.id = e.user_id
            left join employers er on er.id = ji.employer_id
            left join users uer on uer.id = er.user_id
            left join jobs j on j.id = ji.job_id
            left join job_profiles jp on jp.id = j.job_profile_id
            where {where_sql}
            order by coalesce(ji.updated_at, ji.created_at) desc, ji.id desc
            limit {limit_token}
            offset {offset_token}
            """,
            *params.values,
        )
        total = int(rows[0]["total_count"]) if rows else 0
        return {
            "items": [self._hired_employee_row_to_dict(row) for row in rows],
            "total": total,
            "limit": limit,
            "offset": offset,
        }

    # ------------------------------------------------------------------
    # Credit ledger
    # ------------------------------------------------------------------

    async def get_employer_credits(self, *, employer_id: int) -> dict[str, Any]:
        pool = await self._get_pool()
        row = await pool.fetchrow(
            """
            select id, ad_credit, total_ad_credit, credit_expiry_at, now() as checked_at
            from employers
            where id = $1 and deleted_at is null
            """,
            employer_id,
        )
        if not row:
            raise RepositoryNotFoundError("employer not found")
        return self._credit_row_to_dict(row)

    async def add_employer_credits(
        self,
        *,
        employer_id: int,
        ad_credits: int,
        credit_expiry_at: datetime | None = None,
        actor_id: int | None = None,
    ) -> dict[str, Any]:
        if ad_credits < 1:
            raise RepositoryValidationError("ad_credits must be a positive integer")

        pool = await self._get_pool()
        try:
            async with pool.acquire() as conn:
                async with conn.transaction():
                    locked = await conn.fetchrow(
                        """
                        select id
                        from employers
                        where id = $1 and deleted_at is null
                        for update
                        """,
                        employer_id,
                    )
                    if not locked:
                        raise RepositoryNotFoundError("employer not found")

                    row = await conn.fetchrow(
                        """
                        update employers
                        set
                          ad_credit = ad_credit + $2,
                          total_ad_credit = total_ad_credit + $2,
                          credit_expiry_at = coalesce($3, credit_expiry_at),
                          updated_at = now()
                        where id = $1
                        returning id, ad_credit, total_ad_credit, credit_expiry_at, now() as checked_at
                        """,
                        employer_id,
                        ad_credits,
                        credit_expiry_at,
                    )
        except pg_exc.NumericValueOutOfRangeError as exc:
            raise RepositoryValidationError("ad credit balance would exceed its limit") from exc
        except (asyncpg.PostgresError, asyncpg.InterfaceError) as exc:
            raise RepositoryTransactionError("failed to add employer credits") from exc

        await self._safe_log(
            actor_id=actor_id,
            category="employer subscription",
            log_type="update",
            redirect_to=f"/employers/{employer_id}",
            log_text=f"Employer credits added: #{employer_id} ad={ad_credits}",
        )
        return self._credit_row_to_dict(row)

    async def _reserve_ad_credit(self, *, conn: asyncpg.Connection, employer_id: int) -> int:
        # The row lock serialises concurrent postings by the same employer until commit.
        row = await conn.fetchrow(
            """
            select id, ad_credit, credit_expiry_at, now() as checked_at
            from employers
            where id = $1 and deleted_at is null
            for update
            """,
            employer_id,
        )
        if not row:
            raise RepositoryNotFoundError("employer not found")

        ad_credit = int(row["ad_credit"] or 0)
        refusal = credit_refusal_reason(
            ad_credit=ad_credit,
            credit_expiry_at=row["credit_expiry_at"],
            now=row["checked_at"],
        )
        if refusal:
            logger.info(
                "ad credit refused employer_id=%s ad_credit=%s credit_expiry_at=%s reason=%s",
                employer_id,
                ad_credit,
                row["credit_expiry_at"],
                refusal,
            )
            raise RepositoryCreditExhaustedError(
                refusal,
                ad_credit=ad_credit,
                credit_expiry_at=row["credit_expiry_at"],
            )

        updated = await conn.fetchrow(
            """
            update employers
            set ad_credit = ad_credit - 1, updated_at = now()
            where id = $1 and ad_credit >= 1
            returning ad_credit
            """,
            employer_id,
        )
        if not updated:
            raise RepositoryCreditExhaustedError(
                "no ad credits left",
                ad_credit=0,
                credit_expiry_at=row["credit_expiry_at"],
            )
        return int(updated["ad_credit"])

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _write_job_children(
        self,
        *,
        conn: asyncpg.Connection,
        job_id: int,
        children: JobChildren,
        replace: bool,
    ) -> None:
        for collection in CHILD_COLLECTIONS:
            if replace:
                await conn.execute(f"delete from {collection.table} where job_id = $1", job_id)
            values = children.values_for(collection)
            if not values:
                continue
            await conn.execute(
                f"""
                insert into {collection.table} (job_id, {collection.column})
                select $1, unnest($2::{collection.sql_type}[])
                """,
                job_id,
                values,
            )

    async def _fetch_employee_summaries(
        self,
        *,
        conn: asyncpg.Connection,
        employee_ids: set[int],
    ) -> dict[int, dict[str, Any]]:
        if not employee_ids:
            return {}
        rows = await conn.fetch(
            """
            select
              e.id,
              e.name,
              e.gender,
              e.verification_status,
              e.kyc_status,
              e.expected_salary,
              ps.state_english as preferred_state,
              pc.city_english as preferred_city,
              u.mobile,
              u.is_active,
              array(
                select jp.profile_english
                from employee_job_profiles ejp
                join job_profiles jp on jp.id = ejp.job_profile_id
                where ejp.employee_id = e.id and ejp.deleted_at is null
                order by jp.id
              ) as job_profiles
            from employees e
            left join users u on u.id = e.user_id
            left join states ps on ps.id = e.preferred_state_id
            left join cities pc on pc.id = e.preferred_city_id
            where e.id = any($1::bigint[])
            """,
            sorted(employee_ids),
        )
        return {
            int(row["id"]): {
                "id": int(row["id"]),
                "name": row["name"],
                "gender": row["gender"],
                "verification_status": row["verification_status"],
                "kyc_status": row["kyc_status"],
                "expected_salary": row["expected_salary"],
                "preferred_state": row["preferred_state"],
                "preferred_city": row["preferred_city"],
                "mobile": row["mobile"],
                "is_active": row["is_active"],
                "job_profiles": [profile for profile in (row["job_profiles"] or []) if profile],
            }
            for row in rows
        }

    async def _fetch_job_summaries(self, *, conn: asyncpg.Connection, job_ids: set[int]) -> dict[int, dict[str, Any]]:
        if not job_ids:
            return {}
        # Tombstoned jobs stay visible here so historical interests keep their context.
        rows = await conn.fetch(
            """
            select
              j.id,
              j.employer_id,
              j.status,
              j.expired_at,
              j.job_profile_id,
              jp.profile_english as job_profile,
              st.state_english as job_state,
              ci.city_english as job_city,
              j.salary_min,
              j.salary_max,
              j.no_vacancy,
              j.hired_total
            from jobs j
            left join job_profiles jp on jp.id = j.job_profile_id
            left join states st on st.id = j.job_state_id
            left join cities ci on ci.id = j.job_city_id
            where j.id = any($1::bigint[])
            """,
            sorted(job_ids),
        )
        return {int(row["id"]): dict(row) for row in rows}

    async def _fetch_employer_summaries(
        self,
        *,
        conn: asyncpg.Connection,
        employer_ids: set[int],
    ) -> dict[int, dict[str, Any]]:
        if not employer_ids:
            return {}
        rows = await conn.fetch(
            """
            select er.id, er.name, er.organization_name, er.kyc_status, u.mobile
            from employers er
            left join users u on u.id = er.user_id
            where er.id = any($1::bigint[])
            """,
            sorted(employer_ids),
        )
        return {int(row["id"]): dict(row) for row in rows}

    async def _safe_log(
        self,
        *,
        actor_id: int | None,
        category: str,
        log_type: str,
        redirect_to: str | None,
        log_text: str,
    ) -> None:
        if actor_id is None:
            return
        try:
            pool = await self._get_pool()
            await pool.execute(
                """
                insert into logs (category, type, redirect_to, log_text, rj_employee_id)
                values ($1, $2, $3, $4, $5)
                """,
                category,
                log_type,
                redirect_to,
                log_text,
                actor_id,
            )
        except Exception as exc:  # audit writes must never undo a committed operation
            logger.warning("audit log write failed category=%s type=%s: %s", category, log_type, exc)

    async def _get_pool(self) -> asyncpg.Pool:
        if not self.database_url:
            raise RepositoryUnavailableError("JB_DATABASE_URL is required")

        if self._pool is not None:
            return self._pool

        try:
            self._pool = await asyncpg.create_pool(
                dsn=self.database_url,
                min_size=self.min_pool_size,
                max_size=self.max_pool_size,
                command_timeout=self.command_timeout_seconds,
            )
            return self._pool
        except Exception as exc:  # pragma: no cover - depends on environment
            raise RepositoryUnavailableError("database unavailable") from exc

    @staticmethod
    def _job_scalar_values(fields: dict[str, Any]) -> list[Any]:
        values: list[Any] = []
        for name in JOB_SCALAR_FIELDS:
            value = fields.get(name)
            if name == "is_household":
                value = bool(value)
            elif name == "no_vacancy":
                value = int(value) if value is not None else 1
            values.append(value)
        return values

    @staticmethod
    def _job_detail_row_to_dict(row: asyncpg.Record) -> dict[str, Any]:
        job = dict(row)
        for collection in CHILD_COLLECTIONS:
            job[collection.attribute] = list(row[collection.attribute] or [])
        job["vacancy_left"] = vacancy_left(row["no_vacancy"], row["hired_total"])
        job["is_expired"] = is_job_expired(row["status"], row["expired_at"])
        return job

    @staticmethod
    def _job_list_row_to_dict(row: asyncpg.Record) -> dict[str, Any]:
        job = dict(row)
        job.pop("total_count", None)
        job["genders"] = list(row["genders"] or [])
        job["vacancy_left"] = vacancy_left(row["no_vacancy"], row["hired_total"])
        job["is_expired"] = is_job_expired(row["status"], row["expired_at"])
        return job

    @staticmethod
    def _candidate_row_to_dict(row: asyncpg.Record) -> dict[str, Any]:
        candidate = dict(row)
        candidate["job_profiles"] = [profile for profile in (row["job_profiles"] or []) if profile]
        return candidate

    @staticmethod
    def _recommended_job_row_to_dict(row: asyncpg.Record) -> dict[str, Any]:
        job = dict(row)
        expired = is_job_expired(row["status"], row["expired_at"])
        job["genders"] = list(row["genders"] or [])
        job["is_expired"] = expired
        job["job_status"] = "expired" if expired else "active"
        job["vacancy_left"] = vacancy_left(row["no_vacancy"], row["hired_total"])
        return job

    @staticmethod
    def _hired_employee_row_to_dict(row: asyncpg.Record) -> dict[str, Any]:
        return {
            "id": row["id"],
            "status": row["status"],
            "hired_at": row["hired_at"],
            "otp": row["otp"],
            "employee": {
                "id": row["employee_id"],
                "name": row["employee_name"] or "-",
                "mobile": row["employee_mobile"],
            },
            "employer": {
                "id": row["employer_id"],
                "name": row["employer_name"] or "-",
                "mobile": row["employer_mobile"],
            },
            "job": {
                "id": row["job_id"],
                "profile_id": row["job_profile_id"],
                "profile_name": row["job_profile"] or "-",
                "interviewer_mobile": row["interviewer_contact"],
            },
        }

    @staticmethod
    def _credit_row_to_dict(row: asyncpg.Record) -> dict[str, Any]:
        return {
            "employer_id": int(row["id"]),
            "ad_credit": int(row["ad_credit"] or 0),
            "total_ad_credit": int(row["total_ad_credit"] or 0),
            "credit_expiry_at": row["credit_expiry_at"],
            "is_expired": is_credit_expired(row["credit_expiry_at"], row["checked_at"]),
        }

    @staticmethod
    def _coerce_text(value: Any) -> str | None:
        if value is None:
            return None
        if isinstance(value, str):
            stripped = value.strip()
            return stripped or None
        return str(value)


@lru_cache
def get_repository() -> PostgresRepository:
    settings = get_settings()
    return PostgresRepository(
        database_url=settings.database_url,
        min_pool_size=settings.database_pool_min_size,
        max_pool_size=settings.database_pool_max_size,
        command_timeout_seconds=settings.database_command_timeout_seconds,
        candidate_recommendation_limit=settings.candidate_recommendation_limit,
        job_recommendation_limit=settings.job_recommendation_limit,
        job_recency_window_hours=settings.job_recency_window_hours,
    )
