from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Any, Union

from jobboard.services.aggregate import is_job_expired, vacancy_left

logger = logging.getLogger(__name__)

SENDER_EMPLOYEE = "employee"
SENDER_EMPLOYER = "employer"
INTEREST_STATUSES = ("pending", "shortlisted", "hired", "rejected")


@dataclass(frozen=True, slots=True)
class EmployeeParty:
    id: int


@dataclass(frozen=True, slots=True)
class EmployerParty:
    id: int


Party = Union[EmployeeParty, EmployerParty]


@dataclass(frozen=True, slots=True)
class InterestParties:
    sender: Party
    receiver: Party

    @property
    def employee_id(self) -> int:
        return self.sender.id if isinstance(self.sender, EmployeeParty) else self.receiver.id

    @property
    def employer_id(self) -> int:
        return self.sender.id if isinstance(self.sender, EmployerParty) else self.receiver.id

    @property
    def sent_by_employee(self) -> bool:
        return isinstance(self.sender, EmployeeParty)


def resolve_parties(sender_type: Any, sender_id: Any, receiver_id: Any) -> InterestParties | None:
    """Turn the stored (sender_type, sender_id, receiver_id) triple into typed parties.

    The receiver is always the opposite role of the sender. Rows with an unknown
    sender_type or missing ids resolve to None and are left out of every view.
    """
    if sender_id is None or receiver_id is None:
        return None
    if sender_type == SENDER_EMPLOYEE:
        return InterestParties(sender=EmployeeParty(int(sender_id)), receiver=EmployerParty(int(receiver_id)))
    if sender_type == SENDER_EMPLOYER:
        return InterestParties(sender=EmployerParty(int(sender_id)), receiver=EmployeeParty(int(receiver_id)))
    return None


def resolve_interest_rows(interests: list[dict[str, Any]]) -> list[tuple[dict[str, Any], InterestParties]]:
    resolved: list[tuple[dict[str, Any], InterestParties]] = []
    for interest in interests:
        parties = resolve_parties(interest.get("sender_type"), interest.get("sender_id"), interest.get("receiver_id"))
        if parties is None:
            logger.warning(
                "skipping interest with unresolvable parties id=%s sender_type=%s",
                interest.get("id"),
                interest.get("sender_type"),
            )
            continue
        resolved.append((interest, parties))
    return resolved


def display_interest_status(status: str | None) -> str | None:
    return "Active" if status == "pending" else status


def build_job_applicant_rows(
    resolved: list[tuple[dict[str, Any], InterestParties]],
    employees_by_id: dict[int, dict[str, Any]],
) -> list[dict[str, Any]]:
    rows: list[dict[str, Any]] = []
    for interest, parties in resolved:
        employee = employees_by_id.get(parties.employee_id)
        rows.append(
            {
                **_interest_base(interest),
                "employee_id": parties.employee_id,
                "employer_id": parties.employer_id,
                "name": employee["name"] if employee else None,
                "employee": employee,
            }
        )
    return rows


def build_employer_applicant_rows(
    resolved: list[tuple[dict[str, Any], InterestParties]],
    employees_by_id: dict[int, dict[str, Any]],
    jobs_by_id: dict[int, dict[str, Any]],
) -> list[dict[str, Any]]:
    rows: list[dict[str, Any]] = []
    for interest, parties in resolved:
        employee = employees_by_id.get(parties.employee_id)
        job = jobs_by_id.get(interest["job_id"])
        job_profile = (job or {}).get("job_profile") or "-"
        rows.append(
            {
                **_interest_base(interest),
                "employee_id": parties.employee_id,
                "employer_id": parties.employer_id,
                "name": employee["name"] if employee else None,
                "employee": employee,
                "job_status": job["status"] if job else None,
                "job_profile": job_profile,
            }
        )
    return rows


def build_employee_application_views(
    resolved: list[tuple[dict[str, Any], InterestParties]],
    jobs_by_id: dict[int, dict[str, Any]],
    employers_by_id: dict[int, dict[str, Any]],
    *,
    employee_kyc_status: str | None,
) -> dict[str, list[dict[str, Any]]]:
    """Split an employee's interests into the ones they sent and the ones employers sent them."""
    sent: list[dict[str, Any]] = []
    received: list[dict[str, Any]] = []
    for interest, parties in resolved:
        job = jobs_by_id.get(interest["job_id"])
        employer = employers_by_id.get(parties.employer_id)
        if job is None or employer is None:
            continue

        row = {
            **_job_employer_fields(interest, job, employer),
            "employee_kyc_status": employee_kyc_status,
            "status": display_interest_status(interest["status"]),
            "applied_at": interest["created_at"],
            "received_at": interest["created_at"],
        }
        if parties.sent_by_employee:
            sent.append(row)
        else:
            received.append(row)
    return {"sent": sent, "received": received}


def build_hired_job_rows(
    resolved: list[tuple[dict[str, Any], InterestParties]],
    jobs_by_id: dict[int, dict[str, Any]],
    employers_by_id: dict[int, dict[str, Any]],
) -> list[dict[str, Any]]:
    rows: list[dict[str, Any]] = []
    for interest, parties in resolved:
        if interest["status"] != "hired":
            continue
        job = jobs_by_id.get(interest["job_id"])
        employer = employers_by_id.get(parties.employer_id)
        if job is None or employer is None:
            continue
        rows.append(
            {
                **_job_employer_fields(interest, job, employer),
                "employer_kyc_status": employer.get("kyc_status"),
                "status": interest["status"],
                "hired_at": interest["updated_at"],
                "otp": interest.get("otp"),
            }
        )
    return rows


def _interest_base(interest: dict[str, Any]) -> dict[str, Any]:
    return {
        "id": interest["id"],
        "job_id": interest["job_id"],
        "sender_type": interest["sender_type"],
        "sender_id": interest["sender_id"],
        "receiver_id": interest["receiver_id"],
        "status": interest["status"],
        "otp": interest.get("otp"),
        "applied_at": interest["created_at"],
        "updated_at": interest["updated_at"],
    }


def _job_employer_fields(interest: dict[str, Any], job: dict[str, Any], employer: dict[str, Any]) -> dict[str, Any]:
    return {
        "id": interest["id"],
        "job_id": job["id"],
        "job_profile": job.get("job_profile") or "",
        "employer_id": employer["id"],
        "employer_name": employer.get("name"),
        "organization_name": employer.get("organization_name"),
        "employer_phone": employer.get("mobile"),
        "job_state": job.get("job_state") or "",
        "job_city": job.get("job_city") or "",
        "salary_min": job.get("salary_min"),
        "salary_max": job.get("salary_max"),
        "total_vacancy": job.get("no_vacancy"),
        "hired_total": job.get("hired_total"),
        "vacancy_left": vacancy_left(job.get("no_vacancy"), job.get("hired_total")),
        "job_status": job.get("status"),
        "is_expired": is_job_expired(job.get("status"), job.get("expired_at")),
    }
