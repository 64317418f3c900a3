"""
Subscription and billing endpoints, including the Stripe webhook.
"""
import logging
import stripe
from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.orm import Session

from toeic_api.core.auth_dependency import get_current_user, require_admin
from toeic_api.core.errors import TrialError
from toeic_api.core.plan_limits import SUPPORTED_RESOURCES
from toeic_api.core.rate_limit import get_client_ip
from toeic_api.db.session import get_db
from toeic_api.db.models.user import User
from toeic_api.schemas.billing import CreateCheckoutSessionRequest, CreatePortalSessionRequest
from toeic_api.services import billing_service, trial_service
from toeic_api.services.quota_service import check_usage_quota
from toeic_api.services.stripe_service import StripeNotConfigured, WebhookVerificationError, verify_webhook
from toeic_api.services.subscription_service import get_subscription_info, serialize_subscription

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/billing", tags=["Billing"])


def _plans_cache_key(request: Request) -> str:
    return f"billing:{request.url.path}?{request.url.query}"


def _stripe_call(action: str, fn, *args, **kwargs):
    """Run a billing action, mapping failures onto HTTP errors."""
    try:
        return fn(*args, **kwargs)
    except StripeNotConfigured as e:
        logger.error(f"{action} failed: {e}")
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Payment service is not configured")
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except stripe.StripeError as e:
        logger.error(f"{action} failed: Stripe error: {e}")
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail="Payment provider error")


# ============================================
# Plans and subscription state
# ============================================

@router.get("/plans")
def get_plans(request: Request, db: Session = Depends(get_db)):
    data, cached = billing_service.list_plans(db, _plans_cache_key(request))
    return {"success": True, "data": data, "cached": cached}


@router.get("/user/subscription")
def get_user_subscription(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return {"success": True, "data": get_subscription_info(db, current_user)}


@router.get("/trial-status")
def trial_status(
    request: Request,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    eligibility = trial_service.check_trial_eligibility(db, current_user, get_client_ip(request))
    return {
        "success": True,
        "data": {**trial_service.get_trial_status(db, current_user), "eligibility": eligibility},
    }


@router.post("/start-trial")
def start_trial(
    request: Request,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    try:
        trial = trial_service.start_trial(db, current_user, get_client_ip(request))
    except TrialError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"error": str(e), "errorCode": e.error_code},
        )
    return {"success": True, "data": trial, "message": "Trial started"}


# ============================================
# Checkout, portal and cancellation
# ============================================

@router.post("/create-checkout-session")
def create_checkout_session(
    body: CreateCheckoutSessionRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    result = _stripe_call(
        "Checkout session",
        billing_service.start_checkout,
        db, current_user, body.plan_id, body.success_url, body.cancel_url,
    )
    logger.info(f"Checkout session created: user_id={current_user.id}, plan={body.plan_id}")
    return {"success": True, "data": result}


@router.post("/create-portal-session")
def create_portal_session(
    body: CreatePortalSessionRequest = None,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return_url = body.return_url if body else None
    result = _stripe_call("Portal session", billing_service.start_portal_session, db, current_user, return_url)
    return {"success": True, "data": result}


@router.post("/cancel")
def cancel_subscription(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    subscription = _stripe_call("Cancel", billing_service.set_cancel_at_period_end, db, current_user, True)
    return {
        "success": True,
        "data": serialize_subscription(subscription),
        "message": "Subscription will be canceled at the end of the current period",
    }


@router.post("/reactivate")
def reactivate_subscription(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    subscription = _stripe_call("Reactivate", billing_service.set_cancel_at_period_end, db, current_user, False)
    return {"success": True, "data": serialize_subscription(subscription), "message": "Subscription reactivated"}


# ============================================
# History, usage and cache
# ============================================

@router.get("/billing-history")
def billing_history(
    page: int = Query(1, ge=1, description="Page number"),
    limit: int = Query(20, ge=1, le=100, description="Items per page"),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return {"success": True, "data": billing_service.get_billing_history(db, current_user.id, page, limit)}


@router.get("/usage/check/{resource_type}")
def check_usage(
    resource_type: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    if resource_type not in SUPPORTED_RESOURCES:
        raise HTTPException(status_code=400, detail=f"Unsupported resource type: {resource_type}")
    quota = check_usage_quota(db, current_user, resource_type)
    quota.pop("allowed", None)
    return {"success": True, "data": quota}


@router.post("/clear-cache")
def clear_cache(admin: User = Depends(require_admin)):
    cleared = billing_service.clear_billing_cache()
    logger.info(f"Billing cache cleared by admin: user_id={admin.id}, entries={cleared}")
    return {"success": True, "data": {"cleared": cleared}, "message": "Billing cache cleared"}


# ============================================
# ✅ STRIPE WEBHOOK
# ============================================

@router.post("/webhooks")
async def stripe_webhook(request: Request, db: Session = Depends(get_db)):
    """
    Stripe webhook receiver.

    The raw body is verified against STRIPE_WEBHOOK_SECRET before anything is
    applied; each event id is applied at most once.
    """
    payload = await request.body()
    sig_header = request.headers.get("stripe-signature")

    try:
        event = verify_webhook(payload, sig_header)
    except StripeNotConfigured:
        logger.error("Stripe webhook received but STRIPE_WEBHOOK_SECRET is not set")
        raise HTTPException(status_code=500, detail="Webhook secret not configured")
    except WebhookVerificationError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return billing_service.process_webhook_event(event, db)
