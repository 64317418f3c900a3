"""
Feature and quota enforcement dependencies.

require_feature_quota() builds a dependency that:
1. Authenticates the user
2. Checks that the user's permissions include the feature
3. Checks today's usage against the limit
4. Raises HTTPException 403 with an errorCode otherwise

Usage is recorded by the route after the work succeeds, via increment_usage.
"""
import logging
from fastapi import Depends, HTTPException, status
from sqlalchemy.orm import Session

from toeic_api.db.session import get_db
from toeic_api.db.models.user import User
from toeic_api.core.auth_dependency import get_current_user
from toeic_api.core.plan_limits import (
    RESOURCE_DAILY_AI_CHAT,
    RESOURCE_DAILY_PRACTICE,
    RESOURCE_VOCABULARY_WORDS,
)
from toeic_api.services.quota_service import check_usage_quota

logger = logging.getLogger(__name__)

SUBSCRIPTION_REQUIRED = "SUBSCRIPTION_REQUIRED"
USAGE_LIMIT_EXCEEDED = "USAGE_LIMIT_EXCEEDED"


def require_feature_quota(resource_type: str, feature_label: str):
    """
    Dependency factory for a quota-limited feature.

    Raises:
        HTTPException 403: feature not in plan (SUBSCRIPTION_REQUIRED) or
            limit reached (USAGE_LIMIT_EXCEEDED)
        HTTPException 401: Unauthorized
    """
    def quota_checker(
        user: User = Depends(get_current_user),
        db: Session = Depends(get_db)
    ) -> User:
        quota = check_usage_quota(db, user, resource_type)

        if not quota["allowed"]:
            logger.info(f"Feature not in plan: user_id={user.id}, resource={resource_type}")
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail={
                    "error": f"{feature_label} requires a subscription or an active trial",
                    "errorCode": SUBSCRIPTION_REQUIRED,
                }
            )

        if not quota["canUse"]:
            logger.warning(
                f"Quota exceeded: user_id={user.id}, resource={resource_type}, "
                f"limit={quota['limit']}, used={quota['used']}"
            )
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail={
                    "error": f"{feature_label} limit reached",
                    "errorCode": USAGE_LIMIT_EXCEEDED,
                    "usage": {
                        "used": quota["used"],
                        "limit": quota["limit"],
                        "resetAt": quota["resetAt"],
                    },
                }
            )

        logger.debug(
            f"Quota check passed: user_id={user.id}, resource={resource_type}, "
            f"remaining={quota['remaining'] if quota['limit'] is not None else 'unlimited'}"
        )
        return user

    return quota_checker


require_practice_access = require_feature_quota(RESOURCE_DAILY_PRACTICE, "AI practice")
require_ai_chat_access = require_feature_quota(RESOURCE_DAILY_AI_CHAT, "AI chat")
require_vocabulary_capacity = require_feature_quota(RESOURCE_VOCABULARY_WORDS, "Vocabulary")
