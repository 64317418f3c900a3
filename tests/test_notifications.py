"""
Tests for admin notification sends, recipient resolution and email rendering.
"""
from conftest import auth_headers, make_user
from toeic_api.services import email_service
from toeic_api.services.email_templates import render_feature_announcement, render_security_alert
from toeic_api.services.notification_service import resolve_recipients


def test_resolve_recipients_filters_and_dedupes(db):
    verified = make_user(db, email="verified@example.com", name="Verified", email_verified=True)
    unverified = make_user(db, email="unverified@example.com", email_verified=False)
    inactive = make_user(db, email="inactive@example.com", email_verified=True, is_active=False)

    recipients = resolve_recipients(
        db,
        recipients=["VERIFIED@example.com", "outside@example.com"],
        user_ids=[verified.id, unverified.id, inactive.id],
    )

    assert recipients == [("verified@example.com", "Verified"), ("outside@example.com", None)]


def test_send_requires_admin(client, test_user):
    response = client.post(
        "/api/notifications/maintenance",
        json={"recipients": ["a@example.com"], "maintenanceType": "scheduled", "startTime": "2024-06-01 02:00 UTC"},
        headers=auth_headers(test_user),
    )

    assert response.status_code == 403


def test_send_maintenance_in_mock_mode(client, admin_user):
    response = client.post(
        "/api/notifications/maintenance",
        json={
            "recipients": ["a@example.com", "b@example.com"],
            "maintenanceType": "scheduled",
            "startTime": "2024-06-01 02:00 UTC",
            "endTime": "2024-06-01 04:00 UTC",
        },
        headers=auth_headers(admin_user),
    )

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["successCount"] == 2
    assert data["failureCount"] == 0
    assert all(r["messageId"].startswith("mock-") for r in data["results"])

    stats = client.get("/api/notifications/stats", headers=auth_headers(admin_user)).json()["data"]
    assert stats["byType"]["maintenance"] == {"sent": 2, "failed": 0}


def test_send_without_recipients_is_rejected(client, admin_user):
    response = client.post(
        "/api/notifications/security-alert",
        json={"alertType": "login"},
        headers=auth_headers(admin_user),
    )

    assert response.status_code == 400
    assert response.json()["error"] == "Validation failed"


def test_send_to_unverified_ids_only(client, db, admin_user):
    user = make_user(db, email="pending@example.com", email_verified=False)

    response = client.post(
        "/api/notifications/security-alert",
        json={"userIds": [user.id], "alertType": "login"},
        headers=auth_headers(admin_user),
    )

    assert response.status_code == 400
    assert response.json()["error"] == "No valid recipients found"


def test_broadcast_reaches_verified_users(client, db, admin_user):
    make_user(db, email="one@example.com", email_verified=True)
    make_user(db, email="two@example.com", email_verified=False)

    response = client.post(
        "/api/notifications/broadcast/feature-announcement",
        json={
            "announcementType": "new_feature",
            "title": "Vocabulary review",
            "features": [{"name": "Spaced review", "description": "Words come back when you are about to forget them"}],
        },
        headers=auth_headers(admin_user),
    )

    assert response.status_code == 200
    emails = sorted(r["email"] for r in response.json()["data"]["results"])
    assert emails == ["admin@example.com", "one@example.com"]


def test_broadcast_rejects_recipient_lists(client, db, admin_user):
    response = client.post(
        "/api/notifications/broadcast/maintenance",
        json={
            "maintenanceType": "scheduled",
            "startTime": "2024-06-01 02:00 UTC",
            "recipients": ["only-me@example.com"],
        },
        headers=auth_headers(admin_user),
    )

    assert response.status_code == 400
    assert response.json()["success"] is False
    assert any(d.startswith("body.recipients") for d in response.json()["details"])


def test_security_alert_escapes_details():
    subject, html, text = render_security_alert("Aiko", "login", {"location": "<script>x</script>"})

    assert subject == "New sign-in to your account - ChatTOEIC"
    assert "&lt;script&gt;" in html
    assert "<script>x" not in html
    assert "Location: <script>x</script>" in text


def test_feature_announcement_subject():
    subject, html, _ = render_feature_announcement(None, "beta_release", "Listening drills", [])

    assert subject == "Beta release: Listening drills - ChatTOEIC"
    assert "Hello" in html


def test_email_message_has_html_alternative():
    message = email_service.build_message("a@example.com", "Hi", "<p>Hi</p>", "Hi")

    assert message["To"] == "a@example.com"
    assert message.get_body(preferencelist=("html",)).get_content().strip() == "<p>Hi</p>"
    assert message.get_body(preferencelist=("plain",)).get_content().strip() == "Hi"
