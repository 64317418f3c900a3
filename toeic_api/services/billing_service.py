"""
Billing service for Stripe integration.

Handles plan listing, checkout/portal sessions, cancellation, payment
history, and webhook event processing. Webhook handlers only stage changes
on the session; process_webhook_event commits them together with the
event-id ledger row so a redelivered event is never applied twice.
"""
import logging
import math
from datetime import datetime, timedelta
from typing import Callable, Dict, Optional, Tuple
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from toeic_api.core import config
from toeic_api.core.cache import billing_cache
from toeic_api.core.plan_limits import DEFAULT_PLANS, plan_limits
from toeic_api.db.models.user import User
from toeic_api.db.models.subscription import (
    PaymentTransaction,
    ProcessedWebhookEvent,
    SubscriptionPlan,
    UserSubscription,
)
from toeic_api.services import stripe_service
from toeic_api.services.billing_invoice_handlers import (
    handle_invoice_payment_failed,
    handle_invoice_payment_succeeded,
)
from toeic_api.services.subscription_service import (
    ensure_plan_row,
    get_plan,
    get_subscription,
    plan_row_to_dict,
)

logger = logging.getLogger(__name__)

PLANS_CACHE_KEY = "subscription_plans_active"

# Stripe subscription status -> local status
STATUS_MAP = {
    "active": "active",
    "trialing": "trialing",
    "past_due": "past_due",
    "unpaid": "past_due",
    "canceled": "canceled",
    "incomplete": "pending",
    "incomplete_expired": "canceled",
    "paused": "past_due",
}


def _price_id_for(plan: Dict) -> Optional[str]:
    if plan.get("stripe_price_id"):
        return plan["stripe_price_id"]
    return {
        "premium_monthly": config.STRIPE_PRICE_ID_PREMIUM_MONTHLY,
        "premium_yearly": config.STRIPE_PRICE_ID_PREMIUM_YEARLY,
    }.get(plan["id"])


def _from_timestamp(value) -> Optional[datetime]:
    if not value:
        return None
    return datetime.utcfromtimestamp(int(value))


def format_plan(plan: Dict) -> Dict:
    limits = plan_limits(plan)
    return {
        "id": plan["id"],
        "name": plan["name"],
        "nameJp": plan.get("name_jp"),
        "priceCents": plan["price_cents"],
        "currency": plan["currency"],
        "interval": plan.get("interval"),
        "features": plan.get("features", {}),
        "limits": {
            "dailyPractice": limits["daily_practice"],
            "dailyAiChat": limits["daily_ai_chat"],
            "vocabularyWords": limits["vocabulary_words"],
        },
        "isPopular": bool(plan.get("is_popular")),
    }


def list_plans(db: Session, cache_key: str = PLANS_CACHE_KEY) -> Tuple[Dict, bool]:
    """
    Active plans, served from the billing cache when possible.

    Returns:
        Tuple of (data, cached)
    """
    cached = billing_cache.get(cache_key)
    if cached is not None:
        logger.debug(f"Plans served from cache: key={cache_key}")
        return cached, True

    try:
        rows = db.query(SubscriptionPlan).filter(
            SubscriptionPlan.is_active.is_(True)
        ).order_by(SubscriptionPlan.sort_order).all()
        plans = [plan_row_to_dict(row) for row in rows]
    except SQLAlchemyError as e:
        logger.error(f"Plan query failed, serving built-in plans: {e}")
        return {"plans": [format_plan(plan) for plan in DEFAULT_PLANS]}, False

    if not plans:
        logger.warning("No active plans in database, serving built-in plans")
        plans = DEFAULT_PLANS

    data = {"plans": [format_plan(plan) for plan in plans]}
    billing_cache.set(cache_key, data, ttl=config.BILLING_CACHE_TTL_SECONDS)
    return data, False


def clear_billing_cache() -> int:
    return billing_cache.clear()


def start_checkout(
    db: Session,
    user: User,
    plan_id: str,
    success_url: Optional[str] = None,
    cancel_url: Optional[str] = None
) -> Dict[str, str]:
    """
    Create a Checkout session for a paid plan and mark the subscription pending.

    Raises:
        ValueError: already subscribed, unknown plan, or plan without a price
    """
    subscription = get_subscription(db, user.id)
    if subscription and subscription.status == "active":
        raise ValueError("You already have an active subscription")

    plan = get_plan(db, plan_id)
    if plan["id"] != plan_id or not plan.get("price_cents"):
        raise ValueError(f"Invalid plan: {plan_id}")
    price_id = _price_id_for(plan)
    if not price_id:
        raise ValueError(f"Plan {plan_id} is not available for purchase")

    if subscription and subscription.stripe_customer_id:
        customer_id = subscription.stripe_customer_id
    else:
        customer_id = stripe_service.create_customer(user.email, user.name, user.id)

    result = stripe_service.create_checkout_session(
        customer_id=customer_id,
        price_id=price_id,
        user_id=user.id,
        plan_id=plan_id,
        success_url=success_url,
        cancel_url=cancel_url,
    )

    ensure_plan_row(db, plan_id)
    if subscription is None:
        subscription = UserSubscription(user_id=user.id)
        db.add(subscription)
    subscription.plan_id = plan_id
    subscription.status = "pending"
    subscription.stripe_customer_id = customer_id
    subscription.stripe_session_id = result["sessionId"]
    db.commit()

    return result


def start_portal_session(db: Session, user: User, return_url: Optional[str] = None) -> Dict[str, str]:
    subscription = get_subscription(db, user.id)
    if not subscription or not subscription.stripe_customer_id:
        raise ValueError("No billing account found")
    return stripe_service.create_billing_portal_session(subscription.stripe_customer_id, return_url)


def set_cancel_at_period_end(db: Session, user: User, cancel: bool) -> UserSubscription:
    """Cancel at period end (cancel=True) or undo a pending cancellation."""
    subscription = get_subscription(db, user.id)
    if not subscription or not subscription.stripe_subscription_id or subscription.status not in ("active", "past_due", "trialing"):
        raise ValueError("No active subscription")
    if not cancel and not subscription.cancel_at_period_end:
        raise ValueError("Subscription is not scheduled for cancellation")

    stripe_service.set_cancel_at_period_end(subscription.stripe_subscription_id, cancel)
    subscription.cancel_at_period_end = cancel
    db.commit()
    db.refresh(subscription)

    logger.info(f"Subscription cancel_at_period_end={cancel}: user_id={user.id}")
    return subscription


def get_billing_history(db: Session, user_id: int, page: int = 1, limit: int = 20) -> Dict:
    query = db.query(PaymentTransaction).filter(PaymentTransaction.user_id == user_id)
    total = query.count()
    rows = query.order_by(
        PaymentTransaction.created_at.desc(), PaymentTransaction.id.desc()
    ).offset((page - 1) * limit).limit(limit).all()
    return {
        "transactions": [row.to_dict() for row in rows],
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "totalPages": math.ceil(total / limit) if total else 0,
        },
    }


# ----------------------------------------------------------------------------
# Webhook handlers
# ----------------------------------------------------------------------------

def _find_user_for_session(session_data: Dict, db: Session) -> User:
    metadata = session_data.get("metadata") or {}
    user_id_str = metadata.get("user_id")
    email = session_data.get("customer_email") or (session_data.get("customer_details") or {}).get("email")

    user = None
    if user_id_str:
        user = db.query(User).filter(User.id == int(user_id_str)).first()
    elif email:
        user = db.query(User).filter(User.email == email).first()
    else:
        raise ValueError("Cannot identify user from checkout session")

    if not user:
        raise ValueError("User not found for checkout session")
    return user


def _default_period_end(plan: Dict, start: datetime) -> datetime:
    if plan.get("interval") == "year":
        return start + timedelta(days=365)
    return start + timedelta(days=30)


def handle_checkout_session_completed(event_data: Dict, db: Session) -> UserSubscription:
    """
    Handle checkout.session.completed webhook event.

    Activates the subscription and records the payment.
    """
    session_data = event_data.get("object", {})
    user = _find_user_for_session(session_data, db)
    metadata = session_data.get("metadata") or {}
    plan_id = metadata.get("plan_id") or metadata.get("planId") or "premium_monthly"
    plan = get_plan(db, plan_id)
    ensure_plan_row(db, plan["id"])

    subscription = get_subscription(db, user.id)
    if subscription is None:
        subscription = UserSubscription(user_id=user.id)
        db.add(subscription)

    now = datetime.utcnow()
    subscription.plan_id = plan["id"]
    subscription.status = "active"
    subscription.stripe_customer_id = session_data.get("customer") or subscription.stripe_customer_id
    subscription.stripe_subscription_id = session_data.get("subscription")
    subscription.stripe_session_id = session_data.get("id")
    subscription.current_period_start = now
    subscription.current_period_end = _default_period_end(plan, now)
    subscription.cancel_at_period_end = False
    subscription.canceled_at = None
    subscription.last_payment_at = now
    db.flush()

    db.add(PaymentTransaction(
        user_id=user.id,
        subscription_id=subscription.id,
        stripe_session_id=session_data.get("id"),
        stripe_payment_intent_id=session_data.get("payment_intent"),
        stripe_invoice_id=session_data.get("invoice"),
        amount_cents=session_data.get("amount_total") or plan["price_cents"],
        currency=(session_data.get("currency") or plan["currency"]).lower(),
        status="succeeded",
        description=f"Subscription checkout: {plan['id']}",
    ))

    logger.info(f"Checkout completed: user_id={user.id}, plan={plan['id']}, subscription_id={subscription.stripe_subscription_id}")
    return subscription


def _period_bounds(subscription_data: Dict) -> Tuple[Optional[datetime], Optional[datetime]]:
    start = subscription_data.get("current_period_start")
    end = subscription_data.get("current_period_end")
    if not (start and end):
        # Newer API versions carry the period on the subscription items
        items = (subscription_data.get("items") or {}).get("data") or [{}]
        start = start or items[0].get("current_period_start")
        end = end or items[0].get("current_period_end")
    return _from_timestamp(start), _from_timestamp(end)


def _find_subscription(subscription_data: Dict, db: Session) -> Optional[UserSubscription]:
    subscription_id = subscription_data.get("id")
    subscription = db.query(UserSubscription).filter(
        UserSubscription.stripe_subscription_id == subscription_id
    ).first()
    if subscription is None:
        user_id_str = (subscription_data.get("metadata") or {}).get("user_id")
        if user_id_str:
            subscription = get_subscription(db, int(user_id_str))
    return subscription


def handle_subscription_updated(event_data: Dict, db: Session) -> Optional[UserSubscription]:
    """Copy status, period and cancellation flag from Stripe."""
    subscription_data = event_data.get("object", {})
    subscription = _find_subscription(subscription_data, db)
    if subscription is None:
        logger.warning(f"customer.subscription.updated: subscription not found, id={subscription_data.get('id')}")
        return None

    stripe_status = subscription_data.get("status")
    subscription.status = STATUS_MAP.get(stripe_status, subscription.status)
    subscription.stripe_subscription_id = subscription_data.get("id")
    period_start, period_end = _period_bounds(subscription_data)
    if period_start:
        subscription.current_period_start = period_start
    if period_end:
        subscription.current_period_end = period_end
    subscription.cancel_at_period_end = bool(subscription_data.get("cancel_at_period_end"))

    plan_id = (subscription_data.get("metadata") or {}).get("plan_id")
    if plan_id:
        ensure_plan_row(db, plan_id)
        subscription.plan_id = plan_id

    logger.info(
        f"Subscription updated: user_id={subscription.user_id}, status={subscription.status}, "
        f"stripe_status={stripe_status}, cancel_at_period_end={subscription.cancel_at_period_end}"
    )
    return subscription


def handle_subscription_deleted(event_data: Dict, db: Session) -> Optional[UserSubscription]:
    """Mark the subscription canceled; the row is kept."""
    subscription_data = event_data.get("object", {})
    subscription = _find_subscription(subscription_data, db)
    if subscription is None:
        logger.warning(f"customer.subscription.deleted: subscription not found, id={subscription_data.get('id')}")
        return None

    subscription.status = "canceled"
    subscription.canceled_at = _from_timestamp(subscription_data.get("canceled_at")) or datetime.utcnow()
    subscription.cancel_at_period_end = False

    logger.info(f"Subscription deleted: user_id={subscription.user_id}, subscription_id={subscription_data.get('id')}")
    return subscription


EVENT_HANDLERS: Dict[str, Callable[[Dict, Session], object]] = {
    "checkout.session.completed": handle_checkout_session_completed,
    "invoice.payment_succeeded": handle_invoice_payment_succeeded,
    "invoice.payment_failed": handle_invoice_payment_failed,
    "customer.subscription.updated": handle_subscription_updated,
    "customer.subscription.deleted": handle_subscription_deleted,
}


def process_webhook_event(event: Dict, db: Session) -> Dict:
    """
    Apply a verified Stripe event at most once.

    Returns:
        {"received": True, "duplicate": bool, "handled": bool}
    """
    event_id = event["id"]
    event_type = event["type"]

    if db.query(ProcessedWebhookEvent).filter(ProcessedWebhookEvent.event_id == event_id).first():
        logger.info(f"Duplicate webhook event ignored: id={event_id}, type={event_type}")
        return {"received": True, "duplicate": True, "handled": False}

    handler = EVENT_HANDLERS.get(event_type)
    handled = False
    try:
        if handler is None:
            logger.info(f"Unhandled webhook event type: {event_type}, id={event_id}")
        else:
            try:
                handler(event.get("data", {}), db)
                handled = True
            except ValueError as e:
                # Nothing Stripe can fix by retrying; acknowledge and record
                db.rollback()
                logger.warning(f"Webhook event ignored: id={event_id}, type={event_type}, reason={e}")

        db.add(ProcessedWebhookEvent(event_id=event_id, event_type=event_type))
        db.commit()
    except IntegrityError:
        # A concurrent delivery recorded the same event id first
        db.rollback()
        logger.info(f"Webhook event recorded concurrently, treating as duplicate: id={event_id}")
        return {"received": True, "duplicate": True, "handled": False}
    except Exception:
        db.rollback()
        logger.exception(f"Webhook processing failed: id={event_id}, type={event_type}")
        raise

    return {"received": True, "duplicate": False, "handled": handled}
