"""
Integration tests for the API endpoints.
"""

import json
from uuid import uuid4

import pytest
import pytest_asyncio
from fastapi import FastAPI
from httpx import AsyncClient

from queuewizard.api.auth import create_access_token
from queuewizard.api.routes.queue import get_scheduler
from queuewizard.config import get_settings
from queuewizard.constants import JobStatus
from queuewizard.types.job import SchedulerStatus


class StubScheduler:
    """Scheduler stand-in reporting fixed utilization."""

    is_running = True

    def status(self) -> SchedulerStatus:
        return SchedulerStatus(running=True, in_flight=2, max_concurrent=7)


class TestJobAPI:
    """Integration tests for job API endpoints."""

    @pytest_asyncio.fixture
    async def created_job(
        self,
        client: AsyncClient,
        auth_headers: dict[str, str],
    ) -> dict:
        """Create a job for testing."""
        response = await client.post(
            "/v1/jobs",
            json={
                "method": "POST",
                "url": "https://example.com/hook",
                "body": {"message": "hello"},
            },
            headers=auth_headers,
        )
        assert response.status_code == 201
        return response.json()

    async def test_create_job_success(
        self,
        client: AsyncClient,
        auth_headers: dict[str, str],
        test_owner_id: str,
    ):
        """Test successful job creation."""
        response = await client.post(
            "/v1/jobs",
            json={
                "method": "PUT",
                "url": "https://example.com/items/1",
                "priority": 3,
                "headers": {"X-Api-Key": "abc"},
                "body": {"name": "item", "tags": ["a", "b"]},
            },
            headers=auth_headers,
        )

        assert response.status_code == 201
        data = response.json()
        assert data["owner_id"] == test_owner_id
        assert data["method"] == "PUT"
        assert data["url"] == "https://example.com/items/1"
        assert data["priority"] == 3
        assert data["status"] == JobStatus.PENDING.value
        assert data["attempts"] == 0
        assert json.loads(data["headers"]) == {"X-Api-Key": "abc"}
        assert json.loads(data["body"]) == {"name": "item", "tags": ["a", "b"]}
        assert data["result"] is None
        assert data["error_message"] is None
        assert data["completed_at"] is None

    async def test_create_job_defaults(
        self,
        client: AsyncClient,
        auth_headers: dict[str, str],
    ):
        """Test that priority, headers and body have defaults."""
        response = await client.post(
            "/v1/jobs",
            json={"method": "GET", "url": "https://example.com/status"},
            headers=auth_headers,
        )

        assert response.status_code == 201
        data = response.json()
        assert data["priority"] == 0
        assert data["headers"] == "{}"
        assert data["body"] is None

    @pytest.mark.parametrize(
        "payload",
        [
            {"method": "TRACE", "url": "https://example.com/hook"},
            {"method": "POST", "url": "not a url"},
            {"url": "https://example.com/hook"},
            {"method": "POST", "url": "https://example.com/hook", "headers": {"X-Count": 1}},
        ],
    )
    async def test_create_job_validation(
        self,
        client: AsyncClient,
        auth_headers: dict[str, str],
        payload: dict,
    ):
        """Test that malformed submissions are rejected."""
        response = await client.post("/v1/jobs", json=payload, headers=auth_headers)

        assert response.status_code == 422

    async def test_create_job_unauthorized(self, client: AsyncClient):
        """Test job creation without authentication."""
        response = await client.post(
            "/v1/jobs",
            json={"method": "GET", "url": "https://example.com/status"},
        )

        assert response.status_code in (401, 403)

    async def test_create_job_invalid_token(self, client: AsyncClient):
        """Test job creation with a token that does not decode."""
        response = await client.post(
            "/v1/jobs",
            json={"method": "GET", "url": "https://example.com/status"},
            headers={"Authorization": "Bearer not-a-token"},
        )

        assert response.status_code == 401

    async def test_get_job_success(
        self,
        client: AsyncClient,
        auth_headers: dict[str, str],
        created_job: dict,
    ):
        """Test getting a job by ID."""
        response = await client.get(
            f"/v1/jobs/{created_job['id']}",
            headers=auth_headers,
        )

        assert response.status_code == 200
        data = response.json()
        assert data["id"] == created_job["id"]
        assert json.loads(data["body"]) == {"message": "hello"}

    async def test_get_job_not_found(
        self,
        client: AsyncClient,
        auth_headers: dict[str, str],
    ):
        """Test getting a non-existent job."""
        response = await client.get(
            f"/v1/jobs/{uuid4()}",
            headers=auth_headers,
        )

        assert response.status_code == 404

    async def test_get_job_of_other_owner(
        self,
        client: AsyncClient,
        created_job: dict,
    ):
        """Test that another owner's job is reported as missing."""
        token = create_access_token(owner_id="someone-else")

        response = await client.get(
            f"/v1/jobs/{created_job['id']}",
            headers={"Authorization": f"Bearer {token}"},
        )

        assert response.status_code == 404

    async def test_list_jobs(
        self,
        client: AsyncClient,
        auth_headers: dict[str, str],
    ):
        """Test listing jobs, lowest priority value first."""
        for priority in (5, 1, 3):
            await client.post(
                "/v1/jobs",
                json={
                    "method": "GET",
                    "url": "https://example.com/status",
                    "priority": priority,
                },
                headers=auth_headers,
            )

        response = await client.get("/v1/jobs", headers=auth_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 3
        assert data["has_next"] is False
        assert [job["priority"] for job in data["jobs"]] == [1, 3, 5]

    async def test_list_jobs_pagination(
        self,
        client: AsyncClient,
        auth_headers: dict[str, str],
    ):
        """Test paginated listing."""
        for _ in range(3):
            await client.post(
                "/v1/jobs",
                json={"method": "GET", "url": "https://example.com/status"},
                headers=auth_headers,
            )

        response = await client.get(
            "/v1/jobs",
            params={"page": 1, "page_size": 2},
            headers=auth_headers,
        )

        data = response.json()
        assert len(data["jobs"]) == 2
        assert data["total"] == 3
        assert data["has_next"] is True

    async def test_list_jobs_with_status_filter(
        self,
        client: AsyncClient,
        auth_headers: dict[str, str],
        created_job: dict,
    ):
        """Test listing jobs with status filter."""
        response = await client.get(
            "/v1/jobs",
            params={"status": "pending"},
            headers=auth_headers,
        )
        assert response.status_code == 200
        assert response.json()["total"] == 1

        response = await client.get(
            "/v1/jobs",
            params={"status": "failed"},
            headers=auth_headers,
        )
        assert response.status_code == 200
        assert response.json()["total"] == 0

    async def test_list_jobs_only_own(
        self,
        client: AsyncClient,
        created_job: dict,
    ):
        """Test that listing never shows another owner's jobs."""
        token = create_access_token(owner_id="someone-else")

        response = await client.get(
            "/v1/jobs",
            headers={"Authorization": f"Bearer {token}"},
        )

        assert response.json()["total"] == 0


class TestQueueStatus:
    """Integration tests for the queue status endpoint."""

    async def test_queue_status_without_scheduler(
        self,
        client: AsyncClient,
        auth_headers: dict[str, str],
    ):
        """Test counts when no scheduler runs in the API process."""
        for _ in range(2):
            await client.post(
                "/v1/jobs",
                json={"method": "GET", "url": "https://example.com/status"},
                headers=auth_headers,
            )

        response = await client.get("/v1/queue/status", headers=auth_headers)

        assert response.status_code == 200
        assert response.json() == {
            "pending_count": 2,
            "processing_count": 0,
            "completed_today": 0,
            "failed_count": 0,
            "in_flight": 0,
            "max_concurrent": get_settings().worker_max_concurrent,
        }

    async def test_queue_status_with_scheduler(
        self,
        app: FastAPI,
        client: AsyncClient,
        auth_headers: dict[str, str],
    ):
        """Test that utilization comes from the embedded scheduler."""
        app.dependency_overrides[get_scheduler] = lambda: StubScheduler()

        response = await client.get("/v1/queue/status", headers=auth_headers)

        data = response.json()
        assert data["in_flight"] == 2
        assert data["max_concurrent"] == 7

    async def test_queue_status_unauthorized(self, client: AsyncClient):
        """Test that queue status requires authentication."""
        response = await client.get("/v1/queue/status")

        assert response.status_code in (401, 403)


class TestHealthEndpoints:
    """Integration tests for health endpoints."""

    async def test_health_check(self, client: AsyncClient):
        """Test health check endpoint."""
        response = await client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["database"] == "healthy"

    async def test_liveness(self, client: AsyncClient):
        """Test liveness probe."""
        response = await client.get("/live")

        assert response.status_code == 200
        data = response.json()
        assert data["alive"] is True
        assert data["scheduler_running"] is False

    async def test_readiness(self, client: AsyncClient):
        """Test readiness probe."""
        response = await client.get("/ready")

        assert response.status_code == 200
        assert response.json() == {"ready": True}

    async def test_metrics(self, client: AsyncClient):
        """Test metrics endpoint."""
        response = await client.get("/metrics")

        assert response.status_code == 200
        assert "text/plain" in response.headers.get("content-type", "")
        assert "jobs_in_flight" in response.text


class TestAuthEndpoints:
    """Integration tests for auth endpoints."""

    async def signup(self, client: AsyncClient, **overrides) -> dict:
        payload = {
            "name": "Ada",
            "email": f"ada-{uuid4().hex[:8]}@example.com",
            "password": "correct horse",
        }
        payload.update(overrides)
        response = await client.post("/auth/signup", json=payload)
        assert response.status_code == 201
        return {**payload, **response.json()}

    async def test_signup(self, client: AsyncClient):
        """Test creating an account returns it without the password."""
        response = await client.post(
            "/auth/signup",
            json={"name": "Ada", "email": "Ada@Example.com", "password": "correct horse"},
        )

        assert response.status_code == 201
        data = response.json()
        assert data["name"] == "Ada"
        assert data["email"] == "ada@example.com"
        assert "id" in data
        assert "password" not in data
        assert "password_hash" not in data

    async def test_signup_duplicate_email(self, client: AsyncClient):
        """Test that an email can only be registered once, ignoring case."""
        user = await self.signup(client)

        response = await client.post(
            "/auth/signup",
            json={"name": "Other", "email": user["email"].upper(), "password": "another1"},
        )

        assert response.status_code == 409

    @pytest.mark.parametrize(
        "payload",
        [
            {"name": "", "email": "a@example.com", "password": "secret1"},
            {"name": "Ada", "email": "not-an-email", "password": "secret1"},
            {"name": "Ada", "email": "a@example.com", "password": "short"},
            {"name": "Ada", "email": "a@example.com", "password": "x" * 73},
        ],
    )
    async def test_signup_validation(self, client: AsyncClient, payload: dict):
        """Test signup request validation."""
        response = await client.post("/auth/signup", json=payload)

        assert response.status_code == 422

    async def test_signin(self, client: AsyncClient):
        """Test that signing in issues a bearer token for the account."""
        user = await self.signup(client)

        response = await client.post(
            "/auth/signin",
            json={"email": user["email"], "password": user["password"]},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["token_type"] == "bearer"
        assert data["expires_in"] == get_settings().api_access_token_expire_minutes * 60
        assert data["user"]["id"] == user["id"]

    async def test_signin_token_works_for_jobs(self, client: AsyncClient):
        """Test that jobs submitted with a sign-in token are owned by the account."""
        user = await self.signup(client)
        response = await client.post(
            "/auth/signin",
            json={"email": user["email"], "password": user["password"]},
        )
        token = response.json()["access_token"]

        response = await client.post(
            "/v1/jobs",
            json={"method": "GET", "url": "https://example.com/status"},
            headers={"Authorization": f"Bearer {token}"},
        )

        assert response.status_code == 201
        assert response.json()["owner_id"] == user["id"]

    async def test_signin_wrong_password(self, client: AsyncClient):
        """Test that a wrong password is rejected."""
        user = await self.signup(client)

        response = await client.post(
            "/auth/signin",
            json={"email": user["email"], "password": "wrong password"},
        )

        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid email or password"

    async def test_signin_unknown_email(self, client: AsyncClient):
        """Test that an unknown email gets the same answer as a wrong password."""
        response = await client.post(
            "/auth/signin",
            json={"email": "nobody@example.com", "password": "whatever"},
        )

        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid email or password"
