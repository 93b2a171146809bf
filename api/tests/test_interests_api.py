from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

import pytest
from fastapi.testclient import TestClient

from jobboard.main import app
from jobboard.services.interests import (
    build_employee_application_views,
    build_hired_job_rows,
    resolve_interest_rows,
)
from jobboard.services.repository import RepositoryNotFoundError, RepositoryValidationError, get_repository

NOW = datetime(2024, 5, 1, tzinfo=timezone.utc)


class FakeInterestRepository:
    def __init__(self) -> None:
        self.credits: dict[int, dict[str, Any]] = {
            3: {"employer_id": 3, "ad_credit": 1, "total_ad_credit": 4, "credit_expiry_at": None, "is_expired": False}
        }
        self.interests = [
            _interest(1, "employee", 7, 3, status="pending"),
            _interest(2, "employer", 3, 7, status="hired"),
        ]
        self.jobs = {
            100: {
                "id": 100,
                "employer_id": 3,
                "status": "active",
                "expired_at": None,
                "job_profile": "Cook",
                "job_state": "Delhi",
                "job_city": "New Delhi",
                "salary_min": None,
                "salary_max": None,
                "no_vacancy": 4,
                "hired_total": 1,
            }
        }
        self.employers = {3: {"id": 3, "name": "Acme", "organization_name": "Acme Pvt", "mobile": "900", "kyc_status": "verified"}}

    async def list_employer_applicants(self, *, employer_id: int) -> list[dict[str, Any]]:
        if employer_id != 3:
            raise RepositoryNotFoundError("employer not found")
        return [
            {
                **self.interests[0],
                "applied_at": NOW,
                "employee_id": 7,
                "employer_id": 3,
                "name": "Asha",
                "employee": {"id": 7, "name": "Asha", "job_profiles": ["Cook"]},
                "job_status": "active",
                "job_profile": "Cook",
            }
        ]

    async def get_employer_credits(self, *, employer_id: int) -> dict[str, Any]:
        if employer_id not in self.credits:
            raise RepositoryNotFoundError("employer not found")
        return self.credits[employer_id]

    async def add_employer_credits(
        self,
        *,
        employer_id: int,
        ad_credits: int,
        credit_expiry_at: datetime | None = None,
        actor_id: int | None = None,
    ) -> dict[str, Any]:
        if employer_id not in self.credits:
            raise RepositoryNotFoundError("employer not found")
        if ad_credits < 1:
            raise RepositoryValidationError("ad_credits must be a positive integer")
        snapshot = self.credits[employer_id]
        snapshot["ad_credit"] += ad_credits
        snapshot["total_ad_credit"] += ad_credits
        if credit_expiry_at is not None:
            snapshot["credit_expiry_at"] = credit_expiry_at
        return snapshot

    async def list_employee_applications(self, *, employee_id: int) -> dict[str, list[dict[str, Any]]]:
        if employee_id != 7:
            raise RepositoryNotFoundError("employee not found")
        return build_employee_application_views(
            resolve_interest_rows(self.interests),
            self.jobs,
            self.employers,
            employee_kyc_status="verified",
        )

    async def list_employee_hired_jobs(self, *, employee_id: int) -> list[dict[str, Any]]:
        if employee_id != 7:
            raise RepositoryNotFoundError("employee not found")
        return build_hired_job_rows(resolve_interest_rows(self.interests), self.jobs, self.employers)

    async def recommend_jobs(self, *, employee_id: int) -> list[dict[str, Any]]:
        if employee_id != 7:
            raise RepositoryNotFoundError("employee not found")
        return [
            {
                "job_id": 100,
                "employer_id": 3,
                "employer_name": "Acme",
                "is_household": False,
                "no_vacancy": 4,
                "hired_total": 1,
                "vacancy_left": 3,
                "status": "expired",
                "verification_status": "approved",
                "expired_at": NOW,
                "is_expired": True,
                "job_status": "expired",
                "genders": [],
                "created_at": NOW,
            }
        ]

    async def list_hired_employees(self, *, limit: int, offset: int, **filters: Any) -> dict[str, Any]:
        items = [
            {
                "id": 2,
                "status": "hired",
                "hired_at": NOW,
                "otp": "1234",
                "employee": {"id": 7, "name": "Asha", "mobile": "800"},
                "employer": {"id": 3, "name": "Acme", "mobile": "900"},
                "job": {"id": 100, "profile_id": 1, "profile_name": "Cook", "interviewer_mobile": None},
            }
        ]
        if filters.get("status") not in (None, "hired"):
            items = []
        return {"items": items, "total": len(items), "limit": limit, "offset": offset}


@pytest.fixture
def client() -> TestClient:
    fake_repo = FakeInterestRepository()
    app.dependency_overrides[get_repository] = lambda: fake_repo

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


def test_employer_applicants(client: TestClient) -> None:
    response = client.get("/employers/3/applicants")

    assert response.status_code == 200
    body = response.json()
    assert body[0]["employee_id"] == 7
    assert body[0]["job_profile"] == "Cook"


def test_employer_applicants_rejects_bad_id(client: TestClient) -> None:
    assert client.get("/employers/0/applicants").status_code == 400
    assert client.get("/employers/abc/applicants").status_code == 400
    assert client.get("/employers/55/applicants").status_code == 404


def test_employer_credit_top_up(client: TestClient) -> None:
    response = client.post(
        "/employers/3/add-credits",
        json={"ad_credits": 5, "credit_expiry_at": "2030-01-01T00:00:00Z"},
        headers={"X-Admin-Id": "1"},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["ad_credit"] == 6
    assert body["total_ad_credit"] == 9
    assert body["credit_expiry_at"].startswith("2030-01-01")

    snapshot = client.get("/employers/3/credits")
    assert snapshot.json()["ad_credit"] == 6


def test_employer_credit_top_up_requires_positive_delta(client: TestClient) -> None:
    response = client.post("/employers/3/add-credits", json={"ad_credits": 0})

    assert response.status_code == 400
    assert response.json()["code"] == "VALIDATION_ERROR"


def test_employer_and_employee_ids_beyond_bigint_range_are_rejected(client: TestClient) -> None:
    too_large = 2**63

    for response in (
        client.get(f"/employers/{too_large}/credits"),
        client.post(f"/employers/{too_large}/add-credits", json={"ad_credits": 1}),
        client.post("/employers/3/add-credits", json={"ad_credits": 2**31}),
        client.get(f"/employees/{too_large}/applications"),
        client.get(f"/employees/{too_large}/recommended-jobs"),
        client.get("/hired-employees", params={"job_profile_id": str(too_large)}),
    ):
        assert response.status_code == 400
        assert response.json()["code"] == "VALIDATION_ERROR"


def test_employee_applications_split_sent_and_received(client: TestClient) -> None:
    response = client.get("/employees/7/applications")

    assert response.status_code == 200
    body = response.json()
    assert [row["id"] for row in body["sent"]] == [1]
    assert body["sent"][0]["status"] == "Active"
    assert [row["id"] for row in body["received"]] == [2]
    assert body["received"][0]["vacancy_left"] == 3


def test_employee_hired_jobs(client: TestClient) -> None:
    response = client.get("/employees/7/hired-jobs")

    assert response.status_code == 200
    body = response.json()
    assert [row["id"] for row in body] == [2]
    assert body[0]["employer_name"] == "Acme"


def test_employee_views_missing_employee(client: TestClient) -> None:
    assert client.get("/employees/8/applications").status_code == 404
    assert client.get("/employees/8/hired-jobs").status_code == 404
    assert client.get("/employees/8/recommended-jobs").status_code == 404


def test_employee_recommended_jobs(client: TestClient) -> None:
    response = client.get("/employees/7/recommended-jobs")

    assert response.status_code == 200
    body = response.json()
    assert body[0]["job_status"] == "expired"
    assert body[0]["is_expired"] is True


def test_hired_employees_page(client: TestClient) -> None:
    response = client.get("/hired-employees", params={"status": "hired"})

    assert response.status_code == 200
    body = response.json()
    assert body["total"] == 1
    assert body["items"][0]["employee"]["name"] == "Asha"

    assert client.get("/hired-employees", params={"status": "shortlisted"}).json()["total"] == 0
    assert client.get("/hired-employees", params={"status": "unknown"}).status_code == 400


def _interest(interest_id: int, sender_type: str, sender_id: int, receiver_id: int, *, status: str) -> dict[str, Any]:
    return {
        "id": interest_id,
        "job_id": 100,
        "sender_type": sender_type,
        "sender_id": sender_id,
        "receiver_id": receiver_id,
        "status": status,
        "otp": None,
        "created_at": NOW,
        "updated_at": NOW,
    }
