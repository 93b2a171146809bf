from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any

import pytest
from fastapi.testclient import TestClient

from jobboard.main import app
from jobboard.services.aggregate import CHILD_COLLECTIONS, JobChildren
from jobboard.services.repository import (
    RepositoryCreditExhaustedError,
    RepositoryForbiddenError,
    RepositoryNotFoundError,
    RepositoryTransactionError,
    RepositoryUnavailableError,
    get_repository,
)

EXPIRY = datetime(2024, 1, 1, tzinfo=timezone.utc)


class FakeJobRepository:
    def __init__(self) -> None:
        self.employers: dict[int, dict[str, Any]] = {
            1: {"ad_credit": 2, "credit_expiry_at": None},
            2: {"ad_credit": 0, "credit_expiry_at": None},
            3: {"ad_credit": 5, "credit_expiry_at": EXPIRY},
        }
        self.jobs: dict[int, dict[str, Any]] = {}
        self.calls: list[tuple[str, dict[str, Any]]] = []

    async def create_job(
        self,
        *,
        employer_id: int,
        fields: dict[str, Any],
        children: JobChildren,
        actor_id: int | None = None,
    ) -> dict[str, Any]:
        self.calls.append(("create_job", {"employer_id": employer_id, "actor_id": actor_id, "children": children}))
        employer = self.employers.get(employer_id)
        if employer is None:
            raise RepositoryNotFoundError("employer not found")
        if employer["credit_expiry_at"] is not None:
            raise RepositoryCreditExhaustedError(
                "ad credits expired",
                ad_credit=employer["ad_credit"],
                credit_expiry_at=employer["credit_expiry_at"],
            )
        if employer["ad_credit"] < 1:
            raise RepositoryCreditExhaustedError("no ad credits left", ad_credit=0, credit_expiry_at=None)
        employer["ad_credit"] -= 1

        job_id = len(self.jobs) + 1
        self.jobs[job_id] = _job_row(job_id, employer_id, fields, children)
        return self.jobs[job_id]

    async def update_job(
        self,
        *,
        job_id: int,
        fields: dict[str, Any],
        children: JobChildren,
        actor_id: int | None = None,
    ) -> dict[str, Any]:
        current = self._live_job(job_id)
        updated = _job_row(job_id, current["employer_id"], fields, children)
        updated["status"] = current["status"]
        updated["verification_status"] = current["verification_status"]
        self.jobs[job_id] = updated
        return updated

    async def delete_job(self, *, job_id: int, actor_id: int | None = None) -> dict[str, Any]:
        job = self._live_job(job_id)
        job["deleted_at"] = datetime.now(timezone.utc)
        return {"id": job_id, "deleted_at": job["deleted_at"]}

    async def get_job(self, *, job_id: int) -> dict[str, Any]:
        return self._live_job(job_id)

    async def set_job_status(self, *, job_id: int, status: str, actor_id: int | None = None) -> dict[str, Any]:
        job = self._live_job(job_id)
        if job["verification_status"] != "approved":
            raise RepositoryForbiddenError("job status can change only after verification is approved")
        job["status"] = status
        job["expired_at"] = datetime.now(timezone.utc) if status == "expired" else None
        job["is_expired"] = status == "expired"
        return job

    async def set_verification_status(
        self,
        *,
        job_id: int,
        verification_status: str,
        actor_id: int | None = None,
    ) -> dict[str, Any]:
        job = self._live_job(job_id)
        job["verification_status"] = verification_status
        return job

    async def list_jobs(self, *, limit: int, offset: int, **filters: Any) -> dict[str, Any]:
        self.calls.append(("list_jobs", filters))
        rows = [job for job in self.jobs.values() if job.get("deleted_at") is None]
        return {"items": rows[offset : offset + limit], "total": len(rows), "limit": limit, "offset": offset}

    async def recommend_candidates(self, *, job_id: int) -> list[dict[str, Any]]:
        self._live_job(job_id)
        return [
            {
                "id": 11,
                "name": "Asha",
                "gender": "female",
                "mobile": "9000000000",
                "expected_salary": None,
                "job_profiles": ["Cook"],
                "created_at": datetime.now(timezone.utc),
            }
        ]

    async def list_job_applicants(self, *, job_id: int) -> list[dict[str, Any]]:
        self._live_job(job_id)
        return []

    def _live_job(self, job_id: int) -> dict[str, Any]:
        job = self.jobs.get(job_id)
        if job is None or job.get("deleted_at") is not None:
            raise RepositoryNotFoundError("job not found")
        return job


class UnavailableRepository:
    async def get_job(self, *, job_id: int) -> dict[str, Any]:
        raise RepositoryUnavailableError("JB_DATABASE_URL is required")


class BrokenTransitionRepository:
    async def set_job_status(self, *, job_id: int, status: str, actor_id: int | None = None) -> dict[str, Any]:
        raise RepositoryTransactionError("failed to change job status")

    async def set_verification_status(
        self,
        *,
        job_id: int,
        verification_status: str,
        actor_id: int | None = None,
    ) -> dict[str, Any]:
        raise RepositoryTransactionError("failed to change job verification")


@pytest.fixture
def fake_repo() -> FakeJobRepository:
    return FakeJobRepository()


@pytest.fixture
def client(fake_repo: FakeJobRepository) -> TestClient:
    app.dependency_overrides[get_repository] = lambda: fake_repo

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


def test_create_job_forces_initial_status_and_consumes_credit(client: TestClient, fake_repo: FakeJobRepository) -> None:
    response = client.post(
        "/jobs",
        json={
            "employer_id": 1,
            "status": "active",
            "verification_status": "approved",
            "no_vacancy": 3,
            "skills": [5, 5, 6],
            "genders": ["Female"],
            "job_days": ["monday", 2],
        },
        headers={"X-Admin-Id": "9"},
    )

    assert response.status_code == 201
    body = response.json()
    assert body["status"] == "inactive"
    assert body["verification_status"] == "pending"
    assert body["skills"] == [5, 6]
    assert body["genders"] == ["female"]
    assert body["job_days"] == ["1", "2"]
    assert body["vacancy_left"] == 3
    assert fake_repo.employers[1]["ad_credit"] == 1
    assert fake_repo.calls[0][1]["actor_id"] == 9


def test_create_job_without_employer_is_validation_error(client: TestClient) -> None:
    response = client.post("/jobs", json={"no_vacancy": 1})

    assert response.status_code == 400
    body = response.json()
    assert body["success"] is False
    assert body["code"] == "VALIDATION_ERROR"


def test_create_job_rejects_inverted_salary_range(client: TestClient) -> None:
    response = client.post("/jobs", json={"employer_id": 1, "salary_min": 500, "salary_max": 100})

    assert response.status_code == 400
    assert response.json()["code"] == "VALIDATION_ERROR"


def test_create_job_without_credit_returns_payment_required(client: TestClient) -> None:
    response = client.post("/jobs", json={"employer_id": 2})

    assert response.status_code == 402
    body = response.json()
    assert body["success"] is False
    assert body["code"] == "NO_AD_CREDIT"
    assert body["ad_credit"] == 0
    assert body["credit_expiry_at"] is None


def test_create_job_with_expired_credit_reports_expiry(client: TestClient) -> None:
    response = client.post("/jobs", json={"employer_id": 3})

    assert response.status_code == 402
    body = response.json()
    assert body["ad_credit"] == 5
    assert body["credit_expiry_at"].startswith("2024-01-01")


def test_create_job_for_unknown_employer_is_not_found(client: TestClient) -> None:
    response = client.post("/jobs", json={"employer_id": 404})

    assert response.status_code == 404
    assert response.json() == {"success": False, "message": "employer not found"}


def test_update_job_replaces_children(client: TestClient) -> None:
    created = client.post("/jobs", json={"employer_id": 1, "skills": [1, 2], "shifts": [3]}).json()

    response = client.put(f"/jobs/{created['id']}", json={"skills": [2, 4], "no_vacancy": 2})

    assert response.status_code == 200
    body = response.json()
    assert body["skills"] == [2, 4]
    assert body["shifts"] == []
    assert body["no_vacancy"] == 2


def test_update_missing_job_is_not_found(client: TestClient) -> None:
    response = client.put("/jobs/999", json={})

    assert response.status_code == 404


def test_status_change_requires_approved_verification(client: TestClient) -> None:
    created = client.post("/jobs", json={"employer_id": 1}).json()

    denied = client.patch(f"/jobs/{created['id']}/status", json={"status": "active"})
    assert denied.status_code == 403
    assert denied.json()["success"] is False

    approved = client.patch(f"/jobs/{created['id']}/verification-status", json={"verification_status": "approved"})
    assert approved.status_code == 200
    assert approved.json()["status"] == "inactive"

    expired = client.patch(f"/jobs/{created['id']}/status", json={"status": "expired"})
    assert expired.status_code == 200
    assert expired.json()["expired_at"] is not None
    assert expired.json()["is_expired"] is True

    reactivated = client.patch(f"/jobs/{created['id']}/status", json={"status": "active"})
    assert reactivated.json()["expired_at"] is None


def test_status_change_rejects_unknown_value(client: TestClient) -> None:
    response = client.patch("/jobs/1/status", json={"status": "archived"})

    assert response.status_code == 400
    assert response.json()["code"] == "VALIDATION_ERROR"


def test_delete_job_twice_is_not_found(client: TestClient) -> None:
    created = client.post("/jobs", json={"employer_id": 1}).json()

    first = client.delete(f"/jobs/{created['id']}")
    assert first.status_code == 200
    assert first.json()["success"] is True
    assert first.json()["id"] == created["id"]

    second = client.delete(f"/jobs/{created['id']}")
    assert second.status_code == 404


def test_list_jobs_passes_filters(client: TestClient, fake_repo: FakeJobRepository) -> None:
    client.post("/jobs", json={"employer_id": 1})

    response = client.get(
        "/jobs",
        params=[("status", "active"), ("status", "expired"), ("skill_id", "4"), ("gender", " Male "), ("recent", "true")],
    )

    assert response.status_code == 200
    assert response.json()["total"] == 1
    filters = fake_repo.calls[-1][1]
    assert filters["statuses"] == ["active", "expired"]
    assert filters["recent"] is True
    assert filters["child_filters"]["skills"] == [4]
    assert filters["child_filters"]["genders"] == ["male"]


def test_list_jobs_rejects_unknown_sort(client: TestClient) -> None:
    response = client.get("/jobs", params={"sort_by": "title"})

    assert response.status_code == 400


def test_recommended_candidates_and_applicants(client: TestClient) -> None:
    created = client.post("/jobs", json={"employer_id": 1}).json()

    candidates = client.get(f"/jobs/{created['id']}/recommended-candidates")
    assert candidates.status_code == 200
    assert candidates.json()[0]["name"] == "Asha"

    applicants = client.get(f"/jobs/{created['id']}/applicants")
    assert applicants.status_code == 200
    assert applicants.json() == []

    assert client.get("/jobs/999/recommended-candidates").status_code == 404


def test_unavailable_database_maps_to_service_unavailable() -> None:
    app.dependency_overrides[get_repository] = lambda: UnavailableRepository()
    try:
        with TestClient(app) as client:
            response = client.get("/jobs/1")
    finally:
        app.dependency_overrides.clear()

    assert response.status_code == 503
    assert response.json()["success"] is False


def test_transition_database_failure_maps_to_server_error() -> None:
    app.dependency_overrides[get_repository] = lambda: BrokenTransitionRepository()
    try:
        with TestClient(app) as client:
            status_response = client.patch("/jobs/1/status", json={"status": "active"})
            verification_response = client.patch(
                "/jobs/1/verification-status",
                json={"verification_status": "approved"},
            )
    finally:
        app.dependency_overrides.clear()

    assert status_response.status_code == 500
    assert status_response.json() == {"success": False, "message": "failed to change job status"}
    assert verification_response.status_code == 500
    assert verification_response.json()["success"] is False


def test_non_ascii_admin_header_is_ignored(client: TestClient, fake_repo: FakeJobRepository) -> None:
    response = client.post("/jobs", json={"employer_id": 1}, headers={"X-Admin-Id": "\u00b2".encode("latin-1")})

    assert response.status_code == 201
    assert fake_repo.calls[0][1]["actor_id"] is None


def test_ids_beyond_bigint_range_are_validation_errors(client: TestClient) -> None:
    too_large = 2**63

    for response in (
        client.get("/jobs/99999999999999999999"),
        client.put(f"/jobs/{too_large}", json={}),
        client.patch(f"/jobs/{too_large}/status", json={"status": "active"}),
        client.get(f"/jobs/{too_large}/applicants"),
        client.post("/jobs", json={"employer_id": too_large}),
        client.post("/jobs", json={"employer_id": 1, "skills": [2, too_large]}),
        client.post("/jobs", json={"employer_id": 1, "no_vacancy": 2**31}),
        client.post("/jobs", json={"employer_id": 1, "salary_max": "1e12"}),
        client.get("/jobs", params={"skill_id": str(too_large)}),
        client.get("/jobs", params={"offset": str(too_large)}),
    ):
        assert response.status_code == 400
        assert response.json()["code"] == "VALIDATION_ERROR"

    assert client.get(f"/jobs/{too_large - 1}").status_code == 404


def _job_row(job_id: int, employer_id: int, fields: dict[str, Any], children: JobChildren) -> dict[str, Any]:
    now = datetime.now(timezone.utc) - timedelta(seconds=1)
    row: dict[str, Any] = {
        "id": job_id,
        "employer_id": employer_id,
        **fields,
        "hired_total": 0,
        "vacancy_left": fields["no_vacancy"],
        "status": "inactive",
        "verification_status": "pending",
        "expired_at": None,
        "is_expired": False,
        "created_at": now,
        "updated_at": now,
        "deleted_at": None,
    }
    for collection in CHILD_COLLECTIONS:
        row[collection.attribute] = children.values_for(collection)
    return row
