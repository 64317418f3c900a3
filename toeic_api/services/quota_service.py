"""
Quota service for usage limits and tracking.

Daily resources keep one UsageQuota row per user per UTC day, created on
first use with the limit that applies at that moment. Vocabulary size is
counted from the saved words themselves.
"""
import logging
from datetime import datetime
from typing import Dict, Optional
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from toeic_api.db.models.user import User
from toeic_api.db.models.usage import UsageQuota
from toeic_api.db.models.vocabulary import VocabularyItem
from toeic_api.core.plan_limits import (
    SUPPORTED_RESOURCES,
    RESOURCE_VOCABULARY_WORDS,
    resource_allowed,
    resource_limit,
)
from toeic_api.services.subscription_service import get_user_permissions

logger = logging.getLogger(__name__)


def _is_daily(resource_type: str) -> bool:
    return resource_type.startswith("daily_")


def get_or_create_daily_quota(
    db: Session,
    user_id: int,
    resource_type: str,
    limit: Optional[int],
    now: datetime = None
) -> UsageQuota:
    """
    Fetch today's quota row, creating it when missing.

    limit_count is informational; checks always use current permissions.
    """
    period_start, period_end = UsageQuota.get_daily_period(now)

    def _query():
        return db.query(UsageQuota).filter(
            UsageQuota.user_id == user_id,
            UsageQuota.resource_type == resource_type,
            UsageQuota.period_start == period_start,
        ).first()

    quota = _query()
    if quota is None:
        quota = UsageQuota(
            user_id=user_id,
            resource_type=resource_type,
            used_count=0,
            limit_count=limit,
            period_start=period_start,
            period_end=period_end,
        )
        db.add(quota)
        try:
            db.commit()
        except IntegrityError:
            # Another request created today's row first
            db.rollback()
            quota = _query()
        else:
            db.refresh(quota)
            logger.debug(f"Quota row created: user_id={user_id}, resource={resource_type}, limit={limit}")

    if limit is not None and quota.limit_count != limit:
        quota.limit_count = limit
        db.commit()
        db.refresh(quota)

    return quota


def check_usage_quota(db: Session, user: User, resource_type: str, permissions: Dict = None) -> Dict:
    """
    Report whether the user may consume one more unit of a resource.

    Returns:
        {"canUse", "used", "limit", "remaining", "resetAt", "allowed"} where
        limit/remaining are None for unlimited and "allowed" is False when the
        plan does not include the feature at all.
    """
    if resource_type not in SUPPORTED_RESOURCES:
        raise ValueError(f"Unsupported resource type: {resource_type}")

    permissions = permissions or get_user_permissions(db, user)
    allowed = resource_allowed(permissions, resource_type)
    limit = resource_limit(permissions, resource_type)

    if resource_type == RESOURCE_VOCABULARY_WORDS:
        used = db.query(VocabularyItem).filter(VocabularyItem.user_id == user.id).count()
        reset_at = None
    else:
        # Read-only: today's row is created on first increment
        period_start, period_end = UsageQuota.get_daily_period()
        quota = db.query(UsageQuota).filter(
            UsageQuota.user_id == user.id,
            UsageQuota.resource_type == resource_type,
            UsageQuota.period_start == period_start,
        ).first()
        used = quota.used_count if quota else 0
        reset_at = period_end.isoformat()

    if limit is None:
        remaining = None
        can_use = allowed
    else:
        remaining = max(0, limit - used)
        can_use = allowed and used < limit

    return {
        "canUse": can_use,
        "allowed": allowed,
        "used": used,
        "limit": limit,
        "remaining": remaining,
        "resetAt": reset_at,
    }


def increment_usage(db: Session, user_id: int, resource_type: str, amount: int = 1, now: datetime = None) -> None:
    """
    Add to today's counter with a single UPDATE ... SET used_count = used_count + n,
    so concurrent requests never lose an increment.
    """
    if not _is_daily(resource_type):
        return

    period_start, _ = UsageQuota.get_daily_period(now)
    updated = db.query(UsageQuota).filter(
        UsageQuota.user_id == user_id,
        UsageQuota.resource_type == resource_type,
        UsageQuota.period_start == period_start,
    ).update(
        {UsageQuota.used_count: UsageQuota.used_count + amount},
        synchronize_session=False,
    )
    if not updated:
        # First use today; limits are enforced from permissions, not the stored value
        get_or_create_daily_quota(db, user_id, resource_type, None, now)
        db.query(UsageQuota).filter(
            UsageQuota.user_id == user_id,
            UsageQuota.resource_type == resource_type,
            UsageQuota.period_start == period_start,
        ).update(
            {UsageQuota.used_count: UsageQuota.used_count + amount},
            synchronize_session=False,
        )
    db.commit()

    logger.info(f"Usage incremented: user_id={user_id}, resource={resource_type}, amount={amount}")


def initialize_trial_quotas(db: Session, user_id: int, permissions: Dict, now: datetime = None) -> None:
    """Create today's rows with trial limits so usage starts counting immediately."""
    for resource_type in SUPPORTED_RESOURCES:
        if _is_daily(resource_type):
            get_or_create_daily_quota(db, user_id, resource_type, resource_limit(permissions, resource_type), now)


def get_usage_summary(db: Session, user: User, permissions: Dict = None) -> Dict[str, Dict]:
    """Usage for every resource, keyed by resource type."""
    permissions = permissions or get_user_permissions(db, user)
    return {
        resource_type: check_usage_quota(db, user, resource_type, permissions)
        for resource_type in SUPPORTED_RESOURCES
    }
