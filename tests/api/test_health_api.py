"""
Tests for health endpoints and the shared error format.
"""
from unittest.mock import AsyncMock, patch

import pytest

from backend.api import health
from backend.api.deps import create_access_token
from tests.fixtures.factories import UserFactory

pytestmark = pytest.mark.asyncio


class TestHealth:
    async def test_liveness(self, client):
        response = await client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "ok"}

    async def test_ready_when_everything_up(self, client):
        with patch.object(health, "check_db_connection", new=AsyncMock(return_value={"status": "healthy"})), patch.object(
            health,
            "check_redis",
            new=AsyncMock(return_value=health.ComponentHealth(status=health.HealthStatus.HEALTHY)),
        ):
            response = await client.get("/health/ready")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    async def test_redis_down_degrades(self, client):
        with patch.object(health, "check_db_connection", new=AsyncMock(return_value={"status": "healthy"})), patch.object(
            health,
            "check_redis",
            new=AsyncMock(return_value=health.ComponentHealth(status=health.HealthStatus.DEGRADED, message="refused")),
        ):
            response = await client.get("/health/ready")

        assert response.status_code == 200
        assert response.json()["status"] == "degraded"

    async def test_database_down_is_unavailable(self, client):
        with patch.object(
            health, "check_db_connection", new=AsyncMock(return_value={"status": "unhealthy", "error": "timeout"})
        ), patch.object(
            health,
            "check_redis",
            new=AsyncMock(return_value=health.ComponentHealth(status=health.HealthStatus.HEALTHY)),
        ):
            response = await client.get("/health/ready")

        assert response.status_code == 503
        assert response.json()["components"]["database"]["message"] == "timeout"


class TestErrorFormat:
    async def test_missing_token(self, client):
        response = await client.get("/api/proposals/mine")

        assert response.status_code == 401
        assert response.json() == {
            "error": True,
            "message": "No token provided.",
            "status_code": 401,
            "code": "AUTHENTICATION_REQUIRED",
        }

    async def test_token_for_deleted_user(self, client):
        ghost = UserFactory.create()

        response = await client.get(
            "/api/proposals/mine", headers={"Authorization": f"Bearer {create_access_token(ghost)}"}
        )

        assert response.status_code == 401
        assert response.json()["code"] == "INVALID_TOKEN"

    async def test_role_denied(self, client, researcher_headers):
        response = await client.get("/api/reports/analytics", headers=researcher_headers)

        assert response.status_code == 403
        body = response.json()
        assert body["code"] == "INSUFFICIENT_PRIVILEGES"
        assert "researcher" in body["message"]

    async def test_validation_errors_listed(self, client):
        response = await client.post("/api/auth/login", json={"email": "nope"})

        assert response.status_code == 400
        body = response.json()
        assert body["message"].startswith("Validation failed")
        assert {e["field"] for e in body["errors"]} == {"email", "password"}

    async def test_not_found(self, client):
        response = await client.get("/api/grants/00000000-0000-0000-0000-000000000000")

        assert response.json()["message"] == "Grant not found: 00000000-0000-0000-0000-000000000000"
        assert "code" not in response.json()

    async def test_root(self, client):
        response = await client.get("/")

        assert response.json()["health_url"] == "/health"
