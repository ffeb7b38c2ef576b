"""Integration tests for observability features."""

import re
import uuid

import pytest
from httpx import ASGITransport, AsyncClient

from safezone.main import create_app
from safezone.services.logging_service import redact_sensitive


@pytest.fixture
async def http(services):
    """Async client over the app wired to the in-memory stores."""
    transport = ASGITransport(app=create_app(services))
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


async def test_correlation_id_in_response_header(http):
    """Test X-Correlation-Id header is present and is a UUID."""
    response = await http.get("/health")

    assert "x-correlation-id" in response.headers
    try:
        uuid.UUID(response.headers["x-correlation-id"])
    except ValueError:
        pytest.fail(f"Correlation ID is not a valid UUID: {response.headers['x-correlation-id']}")


async def test_correlation_id_passes_through_from_request(http):
    """Test client-provided X-Correlation-Id is used."""
    client_correlation_id = "client-provided-12345678"

    response = await http.post(
        "/api/auth/login",
        json={"identifier": "nobody", "password": "whatever"},
        headers={"X-Correlation-Id": client_correlation_id},
    )

    assert response.status_code == 401
    assert response.headers["x-correlation-id"] == client_correlation_id
    assert response.json()["correlation_id"] == client_correlation_id


async def test_error_response_has_correlation_id(http):
    """Test validation errors carry the correlation ID in header and body."""
    response = await http.post("/api/auth/register", json={"username": "a"})

    assert response.status_code == 400
    data = response.json()
    assert data["error"] == "validation_error"
    assert data["correlation_id"] == response.headers["x-correlation-id"]


async def test_unknown_route_uses_error_envelope(http):
    response = await http.get("/api/nothing-here")

    assert response.status_code == 404
    assert response.json()["error"] == "http_error"


async def test_health_without_database(http):
    """Test health reports the database as unavailable when no pool is attached."""
    response = await http.get("/health")

    data = response.json()
    assert data["status"] == "healthy"
    assert data["database"] == "unavailable"
    assert re.match(r"\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}", data["timestamp"])


class TestNoSecretsInLogs:
    """Tests to verify no secrets reach the log output."""

    async def test_failed_login_does_not_log_password(self, http, capsys):
        await http.post(
            "/api/auth/login", json={"identifier": "nobody", "password": "Hunter2!secret"}
        )

        output = capsys.readouterr()
        assert "Hunter2!secret" not in output.out + output.err

    def test_settings_secret_redacted(self, settings):
        event_dict = {"event": "config_loaded", "jwt_secret": settings.jwt_secret}

        result = redact_sensitive(None, None, event_dict)

        assert result["jwt_secret"] == "REDACTED"
