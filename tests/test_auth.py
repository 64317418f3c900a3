"""
Smoke tests for registration, login and the profile endpoints.
"""
from conftest import auth_headers, make_user
from toeic_api.db.models.user import User


def test_register_success(client, db):
    """Registering returns the public user and a token."""
    response = client.post(
        "/api/auth/register",
        json={"email": "New.Learner@Example.com", "password": "testpass123", "name": "New Learner"}
    )

    assert response.status_code == 201
    data = response.json()
    assert data["success"] is True
    assert data["data"]["user"]["email"] == "new.learner@example.com"
    assert data["data"]["user"]["role"] == "user"
    assert data["data"]["token"]
    assert "password_hash" not in data["data"]["user"]


def test_register_duplicate_email(client, test_user):
    response = client.post(
        "/api/auth/register",
        json={"email": "LEARNER@example.com", "password": "testpass123", "name": "Copy"}
    )

    assert response.status_code == 400
    assert response.json() == {"success": False, "error": "Email already registered"}


def test_register_password_too_long(client):
    """Passwords over the bcrypt 72-byte limit are rejected, not truncated."""
    response = client.post(
        "/api/auth/register",
        json={"email": "long@example.com", "password": "あ" * 25, "name": "Long"}
    )

    assert response.status_code == 400
    data = response.json()
    assert data["error"] == "Validation failed"
    assert any(detail.startswith("body.password") for detail in data["details"])


def test_login_success(client, db, test_user):
    response = client.post("/api/auth/login", json={"email": "learner@example.com", "password": "testpass123"})

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["user"]["id"] == test_user.id
    assert data["token"]

    db.expire_all()
    assert db.query(User).filter(User.id == test_user.id).first().last_login_at is not None


def test_login_wrong_password(client, test_user):
    response = client.post("/api/auth/login", json={"email": "learner@example.com", "password": "wrongpass"})

    assert response.status_code == 401
    assert response.json()["error"] == "Invalid email or password"


def test_login_nonexistent_user(client):
    response = client.post("/api/auth/login", json={"email": "nobody@example.com", "password": "testpass123"})

    assert response.status_code == 401


def test_login_disabled_account(client, db):
    make_user(db, email="disabled@example.com", is_active=False)

    response = client.post("/api/auth/login", json={"email": "disabled@example.com", "password": "testpass123"})

    assert response.status_code == 403


def test_me_requires_token(client):
    response = client.get("/api/auth/me")

    assert response.status_code == 401
    assert response.json()["success"] is False


def test_me_rejects_garbage_token(client):
    response = client.get("/api/auth/me", headers={"Authorization": "Bearer not-a-jwt"})

    assert response.status_code == 401


def test_update_profile(client, test_user):
    response = client.put("/api/auth/me", json={"name": "Renamed"}, headers=auth_headers(test_user))

    assert response.status_code == 200
    assert response.json()["data"]["name"] == "Renamed"


def test_google_login_unconfigured(client):
    response = client.get("/api/auth/google")

    assert response.status_code == 503
