"""
Database models module.

This module imports all database models to ensure they are registered with SQLAlchemy's Base.metadata
before table creation.

All models must be imported here to be included in database migrations and table creation.
"""
from toeic_api.db.models.user import User
from toeic_api.db.models.subscription import (
    SubscriptionPlan,
    UserSubscription,
    PaymentTransaction,
    ProcessedWebhookEvent,
)
from toeic_api.db.models.usage import UsageQuota
from toeic_api.db.models.vocabulary import VocabularyItem
from toeic_api.db.models.practice import PracticeRecord
from toeic_api.db.models.chat import ChatSession, ChatMessage
from toeic_api.db.models.schema_patch import SchemaPatchRecord
from toeic_api.db.models.email_token import EmailToken

# Explicitly export all models for clarity
__all__ = [
    "User",
    "SubscriptionPlan",
    "UserSubscription",
    "PaymentTransaction",
    "ProcessedWebhookEvent",
    "UsageQuota",
    "VocabularyItem",
    "PracticeRecord",
    "ChatSession",
    "ChatMessage",
    "SchemaPatchRecord",
    "EmailToken",
]
