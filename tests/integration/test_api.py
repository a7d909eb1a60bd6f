"""
Integration tests for the API endpoints.
"""

from typing import Any

import pytest
import pytest_asyncio
from httpx import AsyncClient

from jobqueue.config import get_settings
from jobqueue.constants import JobStatus
from jobqueue.db import get_session_context
from jobqueue.db.repository import JobRepository


async def run_to_failure(job_id: str) -> None:
    """Claim and fail a single-attempt job outside the API."""
    async with get_session_context() as session:
        repo = JobRepository(session)
        claimed = await repo.claim("test-worker")
        assert claimed.job.id == job_id
        await repo.fail(job_id, "boom", worker_id="test-worker")


class TestJobAPI:
    """Integration tests for job API endpoints."""

    @pytest_asyncio.fixture
    async def created_job(
        self,
        client: AsyncClient,
        echo_payload: dict[str, Any],
    ) -> dict:
        """Create a job for testing."""
        response = await client.post("/api/jobs", json={"payload": echo_payload})
        return response.json()

    @pytest.mark.asyncio
    async def test_create_job_success(
        self,
        client: AsyncClient,
        echo_payload: dict[str, Any],
    ):
        response = await client.post(
            "/api/jobs",
            json={
                "payload": echo_payload,
                "priority": 5,
                "maxAttempts": 4,
                "idempotencyKey": "greeting",
            },
        )

        assert response.status_code == 201
        data = response.json()
        assert data["type"] == "echo"
        assert data["status"] == JobStatus.PENDING
        assert data["priority"] == 5
        assert data["max_attempts"] == 4
        assert data["attempts"] == 0
        assert data["idempotency_key"] == "greeting"
        assert data["payload"] == echo_payload

    @pytest.mark.asyncio
    async def test_create_job_uses_configured_defaults(
        self,
        client: AsyncClient,
        echo_payload: dict[str, Any],
        monkeypatch,
    ):
        monkeypatch.setenv("DEFAULT_PRIORITY", "6")
        monkeypatch.setenv("DEFAULT_MAX_ATTEMPTS", "5")
        get_settings.cache_clear()

        response = await client.post("/api/jobs", json={"payload": echo_payload})

        assert response.status_code == 201
        data = response.json()
        assert data["priority"] == 6
        assert data["max_attempts"] == 5

    @pytest.mark.asyncio
    async def test_create_job_idempotency(
        self,
        client: AsyncClient,
        echo_payload: dict[str, Any],
    ):
        body = {"payload": echo_payload, "idempotencyKey": "once"}

        first = await client.post("/api/jobs", json=body)
        second = await client.post("/api/jobs", json=body)

        assert first.status_code == 201
        assert second.status_code == 200
        assert second.json()["id"] == first.json()["id"]

    @pytest.mark.asyncio
    async def test_create_job_invalid_payload(self, client: AsyncClient):
        response = await client.post(
            "/api/jobs",
            json={"payload": {"type": "create_file", "path": "a.txt"}},
        )
        assert response.status_code == 422

        response = await client.post(
            "/api/jobs",
            json={"payload": {"type": "not_a_job"}},
        )
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_create_job_invalid_max_attempts(
        self,
        client: AsyncClient,
        echo_payload: dict[str, Any],
    ):
        response = await client.post(
            "/api/jobs",
            json={"payload": echo_payload, "maxAttempts": 0},
        )

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_get_job_success(self, client: AsyncClient, created_job: dict):
        response = await client.get(f"/api/jobs/{created_job['id']}")

        assert response.status_code == 200
        assert response.json()["id"] == created_job["id"]

    @pytest.mark.asyncio
    async def test_get_job_not_found(self, client: AsyncClient):
        response = await client.get("/api/jobs/does-not-exist")

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_list_jobs(self, client: AsyncClient):
        for priority in (1, 3, 2):
            await client.post(
                "/api/jobs",
                json={
                    "payload": {"type": "echo", "message": str(priority)},
                    "priority": priority,
                },
            )

        response = await client.get("/api/jobs", params={"limit": 2})

        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 3
        assert data["limit"] == 2
        assert data["offset"] == 0
        assert [job["priority"] for job in data["jobs"]] == [3, 2]

    @pytest.mark.asyncio
    async def test_list_jobs_with_filters(
        self,
        client: AsyncClient,
        created_job: dict,
    ):
        await client.post(
            "/api/jobs",
            json={"payload": {"type": "delete_file", "path": "tmp/x"}},
        )

        by_type = await client.get("/api/jobs", params={"type": "delete_file"})
        assert by_type.json()["total"] == 1

        by_status = await client.get("/api/jobs", params={"status": "completed"})
        assert by_status.json()["total"] == 0

        bad_status = await client.get("/api/jobs", params={"status": "bogus"})
        assert bad_status.status_code == 422

    @pytest.mark.asyncio
    async def test_get_job_stats(self, client: AsyncClient, created_job: dict):
        response = await client.get("/api/jobs/stats")

        assert response.status_code == 200
        assert response.json() == {
            "pending": 1,
            "claimed": 0,
            "completed": 0,
            "failed": 0,
            "total": 1,
        }

    @pytest.mark.asyncio
    async def test_delete_job(self, client: AsyncClient, created_job: dict):
        response = await client.delete(f"/api/jobs/{created_job['id']}")
        assert response.status_code == 204

        response = await client.delete(f"/api/jobs/{created_job['id']}")
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_retry_failed_job(self, client: AsyncClient):
        created = await client.post(
            "/api/jobs",
            json={"payload": {"type": "echo", "message": "x"}, "maxAttempts": 1},
        )
        job_id = created.json()["id"]
        await run_to_failure(job_id)

        response = await client.post(f"/api/jobs/{job_id}/retry")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == JobStatus.PENDING
        assert data["attempts"] == 0
        assert data["last_error"] is None

    @pytest.mark.asyncio
    async def test_retry_not_found(self, client: AsyncClient):
        response = await client.post("/api/jobs/does-not-exist/retry")

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_retry_idempotency_conflict(self, client: AsyncClient):
        body = {
            "payload": {"type": "echo", "message": "x"},
            "maxAttempts": 1,
            "idempotencyKey": "nightly",
        }
        old = await client.post("/api/jobs", json=body)
        await run_to_failure(old.json()["id"])
        replacement = await client.post("/api/jobs", json=body)
        assert replacement.status_code == 201

        response = await client.post(f"/api/jobs/{old.json()['id']}/retry")

        assert response.status_code == 409

    @pytest.mark.asyncio
    async def test_purge_completed(self, client: AsyncClient, created_job: dict):
        async with get_session_context() as session:
            repo = JobRepository(session)
            await repo.claim("test-worker")
            await repo.complete(created_job["id"], worker_id="test-worker")

        response = await client.post("/api/jobs/purge")

        assert response.status_code == 200
        assert response.json() == {"purged": 1}
        assert (await client.get(f"/api/jobs/{created_job['id']}")).status_code == 404


class TestHealthAPI:
    """Tests for health and metrics endpoints."""

    @pytest.mark.asyncio
    async def test_health_check(self, client: AsyncClient):
        response = await client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["database"] == "healthy"

    @pytest.mark.asyncio
    async def test_metrics(self, client: AsyncClient):
        await client.get("/api/jobs/stats")

        response = await client.get("/metrics")

        assert response.status_code == 200
        assert "api_requests_total" in response.text
        assert "job_queue_depth" in response.text
