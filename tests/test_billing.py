"""
Tests for plans, trials, usage checks and the Stripe webhook.
"""
import hashlib
import hmac
import json
import time
from datetime import datetime

from conftest import auth_headers, make_user
from toeic_api.db.models.subscription import PaymentTransaction, ProcessedWebhookEvent, UserSubscription
from toeic_api.services.subscription_service import ensure_plan_row, get_user_permissions, seed_plans

WEBHOOK_SECRET = "whsec_test"


def _signed(payload: dict, secret: str = WEBHOOK_SECRET):
    body = json.dumps(payload)
    timestamp = int(time.time())
    signature = hmac.new(secret.encode(), f"{timestamp}.{body}".encode(), hashlib.sha256).hexdigest()
    return body, {"Stripe-Signature": f"t={timestamp},v1={signature}", "Content-Type": "application/json"}


def _checkout_event(user_id: int, event_id: str = "evt_checkout_1") -> dict:
    return {
        "id": event_id,
        "type": "checkout.session.completed",
        "data": {
            "object": {
                "id": "cs_test_1",
                "customer": "cus_test_1",
                "subscription": "sub_test_1",
                "amount_total": 300000,
                "currency": "jpy",
                "metadata": {"user_id": str(user_id), "plan_id": "premium_monthly"},
            }
        },
    }


# ============================================
# Plans
# ============================================

def test_plans_fall_back_to_builtin(client):
    response = client.get("/api/billing/plans")

    assert response.status_code == 200
    data = response.json()
    assert [p["id"] for p in data["data"]["plans"]] == ["free", "trial", "premium_monthly", "premium_yearly"]
    assert data["cached"] is False


def test_plans_are_cached(client, db):
    seed_plans(db)

    first = client.get("/api/billing/plans").json()
    second = client.get("/api/billing/plans").json()

    assert first["cached"] is False
    assert second["cached"] is True
    assert second["data"] == first["data"]


def test_clear_cache_requires_admin(client, test_user, admin_user):
    client.get("/api/billing/plans")

    assert client.post("/api/billing/clear-cache", headers=auth_headers(test_user)).status_code == 403
    response = client.post("/api/billing/clear-cache", headers=auth_headers(admin_user))
    assert response.status_code == 200
    assert response.json()["data"]["cleared"] == 1
    assert client.get("/api/billing/plans").json()["cached"] is False


def test_seed_plans_is_idempotent(db):
    assert seed_plans(db) == {"created": 4, "updated": 0}
    assert seed_plans(db) == {"created": 0, "updated": 4}


# ============================================
# Trial
# ============================================

def test_start_trial_once(client, test_user):
    headers = auth_headers(test_user)

    first = client.post("/api/billing/start-trial", headers=headers)
    assert first.status_code == 200
    assert first.json()["data"]["isActive"] is True
    assert first.json()["data"]["daysRemaining"] == 3

    second = client.post("/api/billing/start-trial", headers=headers)
    assert second.status_code == 400
    assert second.json()["errorCode"] == "TRIAL_ALREADY_USED"


def test_trial_limited_per_ip(client, db):
    users = [make_user(db, email=f"ip{i}@example.com") for i in range(4)]
    headers = {"X-Forwarded-For": "203.0.113.7"}

    for user in users[:3]:
        response = client.post("/api/billing/start-trial", headers={**headers, **auth_headers(user)})
        assert response.status_code == 200

    response = client.post("/api/billing/start-trial", headers={**headers, **auth_headers(users[3])})
    assert response.status_code == 400
    assert response.json()["errorCode"] == "IP_TRIAL_LIMIT"


def test_trial_grants_ai_features(db, trial_user, test_user):
    assert get_user_permissions(db, trial_user)["aiPractice"] is True
    assert get_user_permissions(db, trial_user)["dailyAiChatLimit"] == 20
    assert get_user_permissions(db, test_user)["aiChat"] is False


def test_free_plan_row_overrides_builtin_permissions(db, test_user):
    plan = ensure_plan_row(db, "free")
    plan.features = {**plan.features, "aiChat": True}
    plan.daily_ai_chat_limit = 5
    db.commit()

    permissions = get_user_permissions(db, test_user)

    assert permissions["aiChat"] is True
    assert permissions["dailyAiChatLimit"] == 5


# ============================================
# Usage and subscription state
# ============================================

def test_usage_check(client, trial_user):
    response = client.get("/api/billing/usage/check/daily_ai_chat", headers=auth_headers(trial_user))

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["canUse"] is True
    assert (data["used"], data["limit"], data["remaining"]) == (0, 20, 20)
    assert "allowed" not in data


def test_usage_check_unknown_resource(client, test_user):
    response = client.get("/api/billing/usage/check/exports", headers=auth_headers(test_user))

    assert response.status_code == 400


def test_subscription_info_for_free_user(client, test_user):
    response = client.get("/api/billing/user/subscription", headers=auth_headers(test_user))

    data = response.json()["data"]
    assert data["subscription"] is None
    assert data["permissions"]["vocabulary"] is True
    assert set(data["usage"]) == {"daily_practice", "daily_ai_chat", "vocabulary_words"}


def test_cancel_without_subscription(client, test_user):
    response = client.post("/api/billing/cancel", headers=auth_headers(test_user))

    assert response.status_code == 400
    assert response.json()["error"] == "No active subscription"


# ============================================
# Webhook
# ============================================

def test_webhook_rejects_bad_signature(client, db, test_user):
    body, headers = _signed(_checkout_event(test_user.id), secret="whsec_wrong")

    response = client.post("/api/billing/webhooks", content=body, headers=headers)

    assert response.status_code == 400
    assert db.query(ProcessedWebhookEvent).count() == 0


def test_webhook_rejects_missing_signature(client, test_user):
    response = client.post("/api/billing/webhooks", content=json.dumps(_checkout_event(test_user.id)))

    assert response.status_code == 400


def test_webhook_checkout_activates_subscription(client, db, test_user):
    body, headers = _signed(_checkout_event(test_user.id))

    response = client.post("/api/billing/webhooks", content=body, headers=headers)

    assert response.status_code == 200
    assert response.json() == {"received": True, "duplicate": False, "handled": True}

    subscription = db.query(UserSubscription).filter(UserSubscription.user_id == test_user.id).first()
    assert subscription.status == "active"
    assert subscription.plan_id == "premium_monthly"
    assert db.query(PaymentTransaction).filter(PaymentTransaction.user_id == test_user.id).count() == 1
    assert get_user_permissions(db, test_user)["aiChat"] is True


def test_webhook_duplicate_is_applied_once(client, db, test_user):
    body, headers = _signed(_checkout_event(test_user.id))

    client.post("/api/billing/webhooks", content=body, headers=headers)
    response = client.post("/api/billing/webhooks", content=body, headers=headers)

    assert response.status_code == 200
    assert response.json()["duplicate"] is True
    assert db.query(PaymentTransaction).count() == 1


def test_webhook_unknown_user_is_acknowledged(client, db):
    body, headers = _signed(_checkout_event(9999, event_id="evt_orphan"))

    response = client.post("/api/billing/webhooks", content=body, headers=headers)

    assert response.status_code == 200
    assert response.json()["handled"] is False
    assert db.query(ProcessedWebhookEvent).filter(ProcessedWebhookEvent.event_id == "evt_orphan").count() == 1


def _post_event(client, event_id: str, event_type: str, obj: dict):
    body, headers = _signed({"id": event_id, "type": event_type, "data": {"object": obj}})
    response = client.post("/api/billing/webhooks", content=body, headers=headers)
    assert response.status_code == 200
    return response.json()


def _subscribed(client, db, user) -> UserSubscription:
    body, headers = _signed(_checkout_event(user.id))
    client.post("/api/billing/webhooks", content=body, headers=headers)
    return db.query(UserSubscription).filter(UserSubscription.user_id == user.id).first()


def test_webhook_invoice_failed_marks_past_due(client, db, test_user):
    _subscribed(client, db, test_user)

    result = _post_event(client, "evt_invoice_failed", "invoice.payment_failed", {
        "id": "in_failed_1",
        "subscription": "sub_test_1",
        "amount_due": 300000,
        "currency": "jpy",
    })

    assert result["handled"] is True
    db.expire_all()
    subscription = db.query(UserSubscription).filter(UserSubscription.user_id == test_user.id).first()
    assert subscription.status == "past_due"
    failed = db.query(PaymentTransaction).filter(PaymentTransaction.stripe_invoice_id == "in_failed_1").one()
    assert (failed.status, failed.amount_cents) == ("failed", 300000)
    assert get_user_permissions(db, test_user)["aiChat"] is False


def test_webhook_invoice_succeeded_extends_period(client, db, test_user):
    _subscribed(client, db, test_user)
    period_end = int(time.time()) + 40 * 24 * 3600

    _post_event(client, "evt_invoice_paid", "invoice.payment_succeeded", {
        "id": "in_paid_1",
        "subscription": "sub_test_1",
        "amount_paid": 300000,
        "currency": "jpy",
        "lines": {"data": [{"period": {"end": period_end}}]},
    })

    db.expire_all()
    subscription = db.query(UserSubscription).filter(UserSubscription.user_id == test_user.id).first()
    assert subscription.status == "active"
    assert subscription.current_period_end == datetime.utcfromtimestamp(period_end)
    paid = db.query(PaymentTransaction).filter(PaymentTransaction.stripe_invoice_id == "in_paid_1").one()
    assert paid.status == "succeeded"


def test_webhook_subscription_updated_copies_period_and_cancel_flag(client, db, test_user):
    _subscribed(client, db, test_user)
    start = int(time.time())
    end = start + 30 * 24 * 3600

    _post_event(client, "evt_sub_updated", "customer.subscription.updated", {
        "id": "sub_test_1",
        "status": "active",
        "current_period_start": start,
        "current_period_end": end,
        "cancel_at_period_end": True,
    })

    db.expire_all()
    subscription = db.query(UserSubscription).filter(UserSubscription.user_id == test_user.id).first()
    assert subscription.status == "active"
    assert subscription.current_period_start == datetime.utcfromtimestamp(start)
    assert subscription.current_period_end == datetime.utcfromtimestamp(end)
    assert subscription.cancel_at_period_end is True


def test_webhook_subscription_deleted_keeps_row(client, db, test_user):
    _subscribed(client, db, test_user)

    _post_event(client, "evt_sub_deleted", "customer.subscription.deleted", {
        "id": "sub_test_1",
        "status": "canceled",
        "canceled_at": int(time.time()),
    })

    db.expire_all()
    subscription = db.query(UserSubscription).filter(UserSubscription.user_id == test_user.id).one()
    assert subscription.status == "canceled"
    assert subscription.canceled_at is not None
    assert subscription.plan_id == "premium_monthly"
    assert get_user_permissions(db, test_user)["aiChat"] is False
