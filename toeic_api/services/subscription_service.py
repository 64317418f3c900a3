"""
Subscription lookup and permission resolution.

A user's permissions come from, in order: an active trial, an active or
trialing subscription's plan, otherwise the free plan.
"""
import logging
from datetime import datetime
from typing import Dict, Optional
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from toeic_api.db.models.user import User
from toeic_api.db.models.subscription import SubscriptionPlan, UserSubscription
from toeic_api.core import config
from toeic_api.core.plan_limits import (
    DEFAULT_PLANS,
    RESOURCE_LIMIT_FIELDS,
    build_permissions,
    get_default_plan,
    plan_limits,
)

logger = logging.getLogger(__name__)

ENTITLED_STATUSES = ("active", "trialing")


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def plan_row_to_dict(plan: SubscriptionPlan) -> Dict:
    data = {
        "id": plan.id,
        "name": plan.name,
        "name_jp": plan.name_jp,
        "price_cents": plan.price_cents,
        "currency": plan.currency,
        "interval": plan.interval,
        "trial_days": plan.trial_days,
        "stripe_price_id": plan.stripe_price_id,
        "features": dict(plan.features or {}),
        "is_popular": plan.is_popular,
        "sort_order": plan.sort_order,
    }
    for field in RESOURCE_LIMIT_FIELDS.values():
        data[field] = getattr(plan, field)
    return data


def get_plan(db: Session, plan_id: Optional[str]) -> Dict:
    """Plan definition from the database, or the built-in one when missing."""
    if plan_id:
        try:
            plan = db.query(SubscriptionPlan).filter(SubscriptionPlan.id == plan_id).first()
            if plan:
                return plan_row_to_dict(plan)
        except SQLAlchemyError as e:
            logger.warning(f"Plan lookup failed, using built-in plan: plan_id={plan_id}, error={e}")
    return get_default_plan(plan_id)


def ensure_plan_row(db: Session, plan_id: str) -> SubscriptionPlan:
    """Make sure a referenced plan exists so the foreign key holds."""
    plan = db.query(SubscriptionPlan).filter(SubscriptionPlan.id == plan_id).first()
    if plan is None:
        defaults = get_default_plan(plan_id)
        if defaults["id"] != plan_id:
            raise ValueError(f"Unknown plan: {plan_id}")
        plan = SubscriptionPlan(**defaults)
        db.add(plan)
        db.flush()
        logger.info(f"Seeded missing plan row: plan_id={plan_id}")
    return plan


def seed_plans(db: Session) -> Dict[str, int]:
    """
    Upsert the built-in plans. Stripe price ids come from the environment and
    are only filled in, never cleared.
    """
    price_ids = {
        "premium_monthly": config.STRIPE_PRICE_ID_PREMIUM_MONTHLY,
        "premium_yearly": config.STRIPE_PRICE_ID_PREMIUM_YEARLY,
    }
    created = updated = 0
    for defaults in [get_default_plan(p["id"]) for p in DEFAULT_PLANS]:
        plan = db.query(SubscriptionPlan).filter(SubscriptionPlan.id == defaults["id"]).first()
        if plan is None:
            plan = SubscriptionPlan(id=defaults["id"])
            db.add(plan)
            created += 1
        else:
            updated += 1
        for key, value in defaults.items():
            setattr(plan, key, value)
        plan.is_active = True
        if price_ids.get(plan.id):
            plan.stripe_price_id = price_ids[plan.id]
    db.commit()
    logger.info(f"Subscription plans seeded: created={created}, updated={updated}")
    return {"created": created, "updated": updated}


def get_plan_permissions(db: Session, plan_id: str) -> Dict:
    """Permissions granted by a plan row, or by the built-in plan when no row exists."""
    plan = get_plan(db, plan_id)
    return build_permissions(plan["features"], plan_limits(plan))


def get_subscription(db: Session, user_id: int) -> Optional[UserSubscription]:
    return db.query(UserSubscription).filter(UserSubscription.user_id == user_id).first()


def is_trial_active(user: User, now: datetime = None) -> bool:
    now = now or datetime.utcnow()
    return bool(user.trial_expires_at and user.trial_expires_at > now)


def get_user_permissions(db: Session, user: User, now: datetime = None) -> Dict:
    """Resolve the feature flags and limits that apply to a user right now."""
    if is_trial_active(user, now):
        return get_plan_permissions(db, "trial")

    subscription = get_subscription(db, user.id)
    if subscription and subscription.status in ENTITLED_STATUSES and subscription.plan_id:
        if subscription.status == "trialing" and subscription.trial_end and subscription.trial_end <= (now or datetime.utcnow()):
            return get_plan_permissions(db, "free")
        return get_plan_permissions(db, subscription.plan_id)

    return get_plan_permissions(db, "free")


def serialize_subscription(subscription: Optional[UserSubscription], plan: Optional[Dict] = None) -> Optional[Dict]:
    if subscription is None:
        return None
    return {
        "id": subscription.id,
        "planId": subscription.plan_id,
        "planName": plan["name"] if plan else None,
        "status": subscription.status,
        "currentPeriodStart": _iso(subscription.current_period_start),
        "currentPeriodEnd": _iso(subscription.current_period_end),
        "trialStart": _iso(subscription.trial_start),
        "trialEnd": _iso(subscription.trial_end),
        "cancelAtPeriodEnd": subscription.cancel_at_period_end,
        "canceledAt": _iso(subscription.canceled_at),
        "hasStripeCustomer": bool(subscription.stripe_customer_id),
    }


def get_subscription_info(db: Session, user: User) -> Dict:
    """Everything the account page needs: subscription, usage, permissions and trial."""
    from toeic_api.services.quota_service import get_usage_summary
    from toeic_api.services.trial_service import get_trial_status

    subscription = get_subscription(db, user.id)
    plan = get_plan(db, subscription.plan_id) if subscription and subscription.plan_id else None
    permissions = get_user_permissions(db, user)

    return {
        "subscription": serialize_subscription(subscription, plan),
        "usage": get_usage_summary(db, user, permissions),
        "permissions": permissions,
        "trial": get_trial_status(db, user),
    }
