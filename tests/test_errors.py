"""
Tests for the JSON error envelope and health endpoints.
"""
from toeic_api.core.errors import format_validation_errors


def test_format_validation_errors():
    details = format_validation_errors([
        {"loc": ("body", "count"), "msg": "Input should be greater than or equal to 1"},
        {"loc": (), "msg": "Field required"},
    ])

    assert details == ["body.count: Input should be greater than or equal to 1", "request: Field required"]


def test_validation_error_envelope(client):
    response = client.post("/api/auth/login", json={"email": "not-an-email"})

    assert response.status_code == 400
    data = response.json()
    assert data["success"] is False
    assert data["error"] == "Validation failed"
    assert any(d.startswith("body.email") for d in data["details"])
    assert any(d.startswith("body.password") for d in data["details"])


def test_not_found_envelope(client):
    response = client.get("/api/does-not-exist")

    assert response.status_code == 404
    assert response.json() == {"success": False, "error": "Not Found"}


def test_health(client):
    response = client.get("/api/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
    assert response.json()["database"] == "connected"


def test_readiness(client):
    assert client.get("/api/health/ready").json() == {"status": "ready", "database": "connected"}


def test_request_id_header(client):
    response = client.get("/api/health/live", headers={"X-Request-ID": "abc-123"})

    assert response.headers["X-Request-ID"] == "abc-123"
