"""
Invoice event handlers for Stripe webhooks.

Handles invoice.payment_succeeded and invoice.payment_failed events. Changes
are staged on the session; the caller commits them with the event ledger.
"""
import logging
from datetime import datetime
from typing import Dict, Optional
from sqlalchemy.orm import Session
from toeic_api.db.models.subscription import PaymentTransaction, UserSubscription

logger = logging.getLogger(__name__)


def _invoice_subscription_id(invoice_data: Dict) -> Optional[str]:
    subscription_id = invoice_data.get("subscription")
    if not subscription_id:
        # Newer API versions moved it under parent.subscription_details
        parent = invoice_data.get("parent") or {}
        subscription_id = (parent.get("subscription_details") or {}).get("subscription")
    return subscription_id


def _invoice_period_end(invoice_data: Dict) -> Optional[datetime]:
    lines = (invoice_data.get("lines") or {}).get("data") or []
    if lines and (lines[0].get("period") or {}).get("end"):
        return datetime.utcfromtimestamp(int(lines[0]["period"]["end"]))
    if invoice_data.get("period_end"):
        return datetime.utcfromtimestamp(int(invoice_data["period_end"]))
    return None


def _find_subscription(invoice_data: Dict, db: Session, event_type: str) -> Optional[UserSubscription]:
    subscription_id = _invoice_subscription_id(invoice_data)
    if not subscription_id:
        logger.warning(f"{event_type}: No subscription ID in invoice {invoice_data.get('id')}")
        return None

    subscription = db.query(UserSubscription).filter(
        UserSubscription.stripe_subscription_id == subscription_id
    ).first()
    if not subscription:
        logger.warning(f"{event_type}: Subscription not found for subscription_id={subscription_id}")
    return subscription


def handle_invoice_payment_succeeded(event_data: Dict, db: Session) -> None:
    """Keep the subscription active, extend its period and record the payment."""
    invoice_data = event_data.get("object", {})
    subscription = _find_subscription(invoice_data, db, "invoice.payment_succeeded")
    if subscription is None:
        return

    subscription.status = "active"
    subscription.last_payment_at = datetime.utcnow()
    period_end = _invoice_period_end(invoice_data)
    if period_end:
        subscription.current_period_end = period_end

    db.add(PaymentTransaction(
        user_id=subscription.user_id,
        subscription_id=subscription.id,
        stripe_invoice_id=invoice_data.get("id"),
        stripe_payment_intent_id=invoice_data.get("payment_intent"),
        amount_cents=invoice_data.get("amount_paid") or 0,
        currency=(invoice_data.get("currency") or "jpy").lower(),
        status="succeeded",
        description="Subscription renewal",
    ))

    logger.info(f"Invoice payment succeeded: user_id={subscription.user_id}, invoice_id={invoice_data.get('id')}")


def handle_invoice_payment_failed(event_data: Dict, db: Session) -> None:
    """Mark the subscription past_due and record the failed attempt."""
    invoice_data = event_data.get("object", {})
    subscription = _find_subscription(invoice_data, db, "invoice.payment_failed")
    if subscription is None:
        return

    subscription.status = "past_due"

    db.add(PaymentTransaction(
        user_id=subscription.user_id,
        subscription_id=subscription.id,
        stripe_invoice_id=invoice_data.get("id"),
        stripe_payment_intent_id=invoice_data.get("payment_intent"),
        amount_cents=invoice_data.get("amount_due") or 0,
        currency=(invoice_data.get("currency") or "jpy").lower(),
        status="failed",
        description="Subscription payment failed",
    ))

    logger.warning(f"Invoice payment failed: user_id={subscription.user_id}, invoice_id={invoice_data.get('id')}")
