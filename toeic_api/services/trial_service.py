"""
Free trial management.

A trial runs TRIAL_DAYS (3) days and may be taken once per account, once
per email address, and at most TRIAL_MAX_PER_IP times per IP address within
TRIAL_IP_WINDOW_DAYS.
"""
import logging
from datetime import datetime, timedelta
from typing import Dict, Optional
from sqlalchemy import func
from sqlalchemy.orm import Session

from toeic_api.core import config
from toeic_api.core.errors import TrialError
from toeic_api.db.models.user import User
from toeic_api.db.models.subscription import UserSubscription
from toeic_api.services.subscription_service import (
    ensure_plan_row,
    get_plan_permissions,
    get_subscription,
    is_trial_active,
)
from toeic_api.services.quota_service import initialize_trial_quotas

logger = logging.getLogger(__name__)


def check_trial_eligibility(db: Session, user: User, ip_address: Optional[str]) -> Dict:
    """Return {"eligible": bool, "reason": str | None, "errorCode": str | None}."""
    if user.has_used_trial or user.trial_started_at:
        return {"eligible": False, "reason": "Trial already used", "errorCode": "TRIAL_ALREADY_USED"}

    email = user.email.lower()
    email_used = db.query(User).filter(
        User.id != user.id,
        func.lower(User.trial_email) == email,
    ).first()
    if email_used:
        return {"eligible": False, "reason": "A trial was already used with this email", "errorCode": "EMAIL_TRIAL_USED"}

    if ip_address:
        since = datetime.utcnow() - timedelta(days=config.TRIAL_IP_WINDOW_DAYS)
        ip_trials = db.query(User).filter(
            User.trial_ip_address == ip_address,
            User.trial_started_at >= since,
        ).count()
        if ip_trials >= config.TRIAL_MAX_PER_IP:
            return {
                "eligible": False,
                "reason": "Too many trials started from this network",
                "errorCode": "IP_TRIAL_LIMIT",
            }

    subscription = get_subscription(db, user.id)
    if subscription and subscription.status == "active":
        return {"eligible": False, "reason": "Already subscribed", "errorCode": "ALREADY_SUBSCRIBED"}

    return {"eligible": True, "reason": None, "errorCode": None}


def start_trial(db: Session, user: User, ip_address: Optional[str]) -> Dict:
    """
    Start the trial for a user.

    Raises:
        TrialError: when the user is not eligible
    """
    eligibility = check_trial_eligibility(db, user, ip_address)
    if not eligibility["eligible"]:
        logger.info(f"Trial refused: user_id={user.id}, code={eligibility['errorCode']}, ip={ip_address}")
        raise TrialError(eligibility["reason"], eligibility["errorCode"])

    now = datetime.utcnow()
    expires = now + timedelta(days=config.TRIAL_DAYS)

    user.trial_started_at = now
    user.trial_expires_at = expires
    user.has_used_trial = True
    user.trial_email = user.email.lower()
    user.trial_ip_address = ip_address

    ensure_plan_row(db, "trial")
    subscription = get_subscription(db, user.id)
    if subscription is None:
        subscription = UserSubscription(user_id=user.id)
        db.add(subscription)
    subscription.plan_id = "trial"
    subscription.status = "trialing"
    subscription.trial_start = now
    subscription.trial_end = expires
    db.commit()

    initialize_trial_quotas(db, user.id, get_plan_permissions(db, "trial"), now)

    logger.info(f"Trial started: user_id={user.id}, expires_at={expires.isoformat()}, ip={ip_address}")
    return get_trial_status(db, user)


def get_trial_status(db: Session, user: User) -> Dict:
    now = datetime.utcnow()
    active = is_trial_active(user, now)
    remaining_seconds = (user.trial_expires_at - now).total_seconds() if active else 0
    return {
        "isActive": active,
        "hasUsedTrial": bool(user.has_used_trial),
        "canStartTrial": not user.has_used_trial and not user.trial_started_at,
        "startedAt": user.trial_started_at.isoformat() if user.trial_started_at else None,
        "expiresAt": user.trial_expires_at.isoformat() if user.trial_expires_at else None,
        "daysRemaining": int(remaining_seconds // 86400) + (1 if remaining_seconds % 86400 else 0),
        "hoursRemaining": int(remaining_seconds // 3600),
    }
