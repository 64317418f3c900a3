from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, Boolean, ForeignKey, JSON, Text
from toeic_api.db.base import Base


class SubscriptionPlan(Base):
    __tablename__ = "subscription_plans"

    id = Column(String, primary_key=True)  # free | trial | premium_monthly | premium_yearly
    name = Column(String, nullable=False)
    name_jp = Column(String, nullable=True)
    description = Column(Text, nullable=True)
    price_cents = Column(Integer, default=0, nullable=False)
    currency = Column(String(3), default="jpy", nullable=False)
    interval = Column(String, nullable=True)  # month | year | None for free/trial
    interval_count = Column(Integer, default=1, nullable=False)
    stripe_price_id = Column(String, nullable=True)
    stripe_product_id = Column(String, nullable=True)
    trial_days = Column(Integer, nullable=True)

    features = Column(JSON, default=dict, nullable=False)
    daily_practice_limit = Column(Integer, nullable=True)  # None = unlimited
    daily_ai_chat_limit = Column(Integer, nullable=True)
    max_vocabulary_words = Column(Integer, nullable=True)

    is_active = Column(Boolean, default=True, nullable=False)
    is_popular = Column(Boolean, default=False, nullable=False)
    sort_order = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)


class UserSubscription(Base):
    __tablename__ = "user_subscriptions"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False)
    plan_id = Column(String, ForeignKey("subscription_plans.id"), nullable=True)

    stripe_customer_id = Column(String, nullable=True, index=True)
    stripe_subscription_id = Column(String, nullable=True, index=True)
    stripe_session_id = Column(String, nullable=True)

    status = Column(String, default="pending", nullable=False)  # trialing | pending | active | past_due | canceled
    current_period_start = Column(DateTime, nullable=True)
    current_period_end = Column(DateTime, nullable=True)
    trial_start = Column(DateTime, nullable=True)
    trial_end = Column(DateTime, nullable=True)
    cancel_at_period_end = Column(Boolean, default=False, nullable=False)
    canceled_at = Column(DateTime, nullable=True)
    last_payment_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)


class PaymentTransaction(Base):
    __tablename__ = "payment_transactions"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    subscription_id = Column(Integer, ForeignKey("user_subscriptions.id"), nullable=True)
    stripe_payment_intent_id = Column(String, nullable=True)
    stripe_invoice_id = Column(String, nullable=True)
    stripe_session_id = Column(String, nullable=True)
    amount_cents = Column(Integer, default=0, nullable=False)
    currency = Column(String(3), default="jpy", nullable=False)
    status = Column(String, nullable=False)  # succeeded | failed
    description = Column(String, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "amountCents": self.amount_cents,
            "currency": self.currency,
            "status": self.status,
            "description": self.description,
            "stripeInvoiceId": self.stripe_invoice_id,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }


class ProcessedWebhookEvent(Base):
    """Ledger of Stripe event ids already applied."""
    __tablename__ = "processed_webhook_events"

    id = Column(Integer, primary_key=True, index=True)
    event_id = Column(String, unique=True, nullable=False, index=True)
    event_type = Column(String, nullable=False)
    processed_at = Column(DateTime, default=datetime.utcnow, nullable=False)
