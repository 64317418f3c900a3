"""
Tests for email verification codes and password reset links.
"""
import re
from datetime import datetime, timedelta

import pytest

from conftest import auth_headers, make_user
from toeic_api.core.errors import AccountTokenError
from toeic_api.db.models.user import User
from toeic_api.services import account_email_service, email_service


@pytest.fixture
def outbox(monkeypatch):
    """Captures account emails instead of sending them."""
    sent = []

    def fake_send(to_address, subject, html, text=None):
        sent.append({"to": to_address, "subject": subject, "html": html, "text": text})
        return email_service.EmailResult(success=True, message_id=f"test-{len(sent)}")

    monkeypatch.setattr(email_service, "send_email", fake_send)
    return sent


def _code(message: dict) -> str:
    return re.search(r"code is (\d{6})", message["text"]).group(1)


def _reset_token(message: dict) -> str:
    return re.search(r"token=([0-9a-f]{64})", message["text"]).group(1)


def _register(client, email="real@example.com"):
    response = client.post(
        "/api/auth/register",
        json={"email": email, "password": "testpass123", "name": "Real Learner"},
    )
    assert response.status_code == 201
    return response.json()["data"]


# ============================================
# Email verification
# ============================================

def test_verified_user_is_reachable_by_notifications(client, db, admin_user, outbox):
    """A registered user who confirms the mailed code receives userIds sends."""
    data = _register(client)
    assert data["needsVerification"] is True
    assert data["user"]["emailVerified"] is False
    assert outbox[0]["to"] == "real@example.com"

    response = client.post("/api/auth/verify-email", json={"email": "real@example.com", "code": _code(outbox[0])})

    assert response.status_code == 200
    assert response.json()["data"]["user"]["emailVerified"] is True
    assert response.json()["data"]["token"]
    assert outbox[-1]["subject"] == "Welcome to ChatTOEIC"

    response = client.post(
        "/api/notifications/maintenance",
        json={"userIds": [data["user"]["id"]], "maintenanceType": "scheduled", "startTime": "2024-06-01 02:00 UTC"},
        headers=auth_headers(admin_user),
    )

    assert response.status_code == 200
    assert [r["email"] for r in response.json()["data"]["results"]] == ["real@example.com"]


def test_wrong_codes_burn_the_code(client, db, outbox):
    _register(client)
    code = _code(outbox[0])

    response = client.post("/api/auth/verify-email", json={"email": "real@example.com", "code": "000000"})
    assert response.status_code == 400
    assert response.json()["errorCode"] == "INVALID_CODE"
    assert response.json()["remainingAttempts"] == 4

    for _ in range(4):
        client.post("/api/auth/verify-email", json={"email": "real@example.com", "code": "000000"})

    response = client.post("/api/auth/verify-email", json={"email": "real@example.com", "code": code})
    assert response.status_code == 400
    assert response.json()["errorCode"] == "TOO_MANY_ATTEMPTS"

    response = client.post("/api/auth/verify-email", json={"email": "real@example.com", "code": code})
    assert response.json()["errorCode"] == "CODE_NOT_FOUND"
    assert db.query(User).filter(User.email == "real@example.com").one().email_verified is False


def test_expired_code_is_rejected(db, outbox):
    user = make_user(db, email="late@example.com")
    issued = datetime.utcnow()
    account_email_service.send_verification_code(db, user, now=issued)

    with pytest.raises(AccountTokenError) as exc_info:
        account_email_service.verify_email(db, "late@example.com", _code(outbox[0]), now=issued + timedelta(minutes=11))

    assert exc_info.value.error_code == "CODE_NOT_FOUND"


def test_resend_waits_for_cooldown(client, db, outbox):
    _register(client)

    response = client.post("/api/auth/resend-verification", json={"email": "real@example.com"})
    assert response.status_code == 400
    assert response.json()["errorCode"] == "CODE_STILL_VALID"

    user = db.query(User).filter(User.email == "real@example.com").one()
    later = datetime.utcnow() + timedelta(minutes=6)
    account_email_service.send_verification_code(db, user, now=later, enforce_cooldown=True)

    assert len(outbox) == 2
    with pytest.raises(AccountTokenError):
        account_email_service.verify_email(db, "real@example.com", _code(outbox[0]), now=later)
    assert account_email_service.verify_email(db, "real@example.com", _code(outbox[1]), now=later).email_verified


def test_resend_for_verified_or_unknown_user(client, db, outbox):
    make_user(db, email="done@example.com", email_verified=True)

    response = client.post("/api/auth/resend-verification", json={"email": "done@example.com"})
    assert response.status_code == 400
    assert response.json()["errorCode"] == "ALREADY_VERIFIED"

    response = client.post("/api/auth/resend-verification", json={"email": "nobody@example.com"})
    assert response.status_code == 404
    assert outbox == []


# ============================================
# Password reset
# ============================================

def test_password_reset_flow(client, db, outbox):
    make_user(db, email="forgetful@example.com", password="oldpass123", email_verified=True)

    response = client.post("/api/auth/request-password-reset", json={"email": "Forgetful@example.com"})
    assert response.status_code == 200
    token = _reset_token(outbox[0])

    response = client.post("/api/auth/verify-reset-token", json={"token": token})
    assert response.status_code == 200
    assert response.json()["data"]["email"] == "forgetful@example.com"

    response = client.post("/api/auth/reset-password", json={"token": token, "newPassword": "newpass456"})
    assert response.status_code == 200
    assert outbox[-1]["subject"].startswith("Your password was changed")

    login = client.post("/api/auth/login", json={"email": "forgetful@example.com", "password": "newpass456"})
    assert login.status_code == 200
    login = client.post("/api/auth/login", json={"email": "forgetful@example.com", "password": "oldpass123"})
    assert login.status_code == 401

    response = client.post("/api/auth/reset-password", json={"token": token, "newPassword": "another789"})
    assert response.status_code == 400
    assert response.json()["errorCode"] == "TOKEN_USED"


def test_reset_request_for_unknown_email_looks_the_same(client, outbox):
    response = client.post("/api/auth/request-password-reset", json={"email": "ghost@example.com"})

    assert response.status_code == 200
    assert response.json()["message"] == "If that email is registered, a reset link has been sent"
    assert outbox == []


def test_reset_requires_verified_email(client, db, outbox):
    make_user(db, email="unverified@example.com")

    response = client.post("/api/auth/request-password-reset", json={"email": "unverified@example.com"})

    assert response.status_code == 400
    assert response.json()["errorCode"] == "EMAIL_NOT_VERIFIED"


def test_reset_requests_are_capped(client, db, outbox):
    make_user(db, email="eager@example.com", email_verified=True)

    for _ in range(3):
        assert client.post("/api/auth/request-password-reset", json={"email": "eager@example.com"}).status_code == 200

    response = client.post("/api/auth/request-password-reset", json={"email": "eager@example.com"})

    assert response.status_code == 429
    assert response.json()["errorCode"] == "TOO_MANY_RESET_REQUESTS"


def test_expired_or_malformed_reset_token(db, outbox):
    make_user(db, email="slow@example.com", email_verified=True)
    issued = datetime.utcnow()
    account_email_service.request_password_reset(db, "slow@example.com", now=issued)
    token = _reset_token(outbox[0])

    with pytest.raises(AccountTokenError) as exc_info:
        account_email_service.check_reset_token(db, token, now=issued + timedelta(minutes=61))
    assert exc_info.value.error_code == "TOKEN_EXPIRED"

    with pytest.raises(AccountTokenError) as exc_info:
        account_email_service.check_reset_token(db, "abc")
    assert exc_info.value.error_code == "INVALID_TOKEN"


def test_reset_password_rejects_short_password(client):
    response = client.post("/api/auth/reset-password", json={"token": "a" * 64, "newPassword": "short"})

    assert response.status_code == 400
    assert response.json()["details"][0].startswith("body.newPassword")


def test_create_admin_marks_promoted_user_verified(db, monkeypatch):
    from conftest import TestSessionLocal
    from scripts import create_admin as script

    monkeypatch.setattr(script, "SessionLocal", TestSessionLocal)
    make_user(db, email="staff@example.com")

    assert script.create_admin("staff@example.com") is True

    db.expire_all()
    user = db.query(User).filter(User.email == "staff@example.com").one()
    assert (user.role, user.email_verified) == ("admin", True)
