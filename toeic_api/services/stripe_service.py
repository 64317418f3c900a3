"""
Stripe service for checkout, billing portal, subscription changes and
webhook verification.
"""
import json
import logging
from typing import Dict, Optional
import stripe

from toeic_api.core import config

logger = logging.getLogger(__name__)


class StripeNotConfigured(ValueError):
    """STRIPE_SECRET_KEY or STRIPE_WEBHOOK_SECRET is missing."""


class WebhookVerificationError(ValueError):
    """Payload or signature did not verify."""


def _require_api_key() -> None:
    if not config.STRIPE_SECRET_KEY:
        raise StripeNotConfigured("Stripe not configured - STRIPE_SECRET_KEY required")
    stripe.api_key = config.STRIPE_SECRET_KEY


def is_configured() -> bool:
    return bool(config.STRIPE_SECRET_KEY)


def create_customer(email: str, name: Optional[str], user_id: int) -> str:
    """Create a Stripe customer and return its id."""
    _require_api_key()
    customer = stripe.Customer.create(
        email=email,
        name=name or email,
        metadata={"user_id": str(user_id)},
    )
    logger.info(f"Created Stripe customer: customer_id={customer.id}, user_id={user_id}")
    return customer.id


def create_checkout_session(
    customer_id: str,
    price_id: str,
    user_id: int,
    plan_id: str,
    success_url: Optional[str] = None,
    cancel_url: Optional[str] = None
) -> Dict[str, str]:
    """
    Create a subscription Checkout session.

    Returns:
        {"sessionId": ..., "url": ...}
    """
    _require_api_key()
    success_url = success_url or f"{config.FRONTEND_URL}/account/subscription?success=true&session_id={{CHECKOUT_SESSION_ID}}"
    cancel_url = cancel_url or f"{config.FRONTEND_URL}/pricing?canceled=true"

    session = stripe.checkout.Session.create(
        customer=customer_id,
        payment_method_types=["card"],
        mode="subscription",
        line_items=[{"price": price_id, "quantity": 1}],
        success_url=success_url,
        cancel_url=cancel_url,
        metadata={"user_id": str(user_id), "plan_id": plan_id},
        subscription_data={"metadata": {"user_id": str(user_id), "plan_id": plan_id}},
        allow_promotion_codes=True,
    )
    logger.info(f"Created checkout session: session_id={session.id}, user_id={user_id}, plan_id={plan_id}")
    return {"sessionId": session.id, "url": session.url}


def create_billing_portal_session(customer_id: str, return_url: Optional[str] = None) -> Dict[str, str]:
    _require_api_key()
    session = stripe.billing_portal.Session.create(
        customer=customer_id,
        return_url=return_url or f"{config.FRONTEND_URL}/account/subscription",
    )
    logger.info(f"Created billing portal session: customer_id={customer_id}")
    return {"url": session.url}


def set_cancel_at_period_end(subscription_id: str, cancel: bool) -> None:
    _require_api_key()
    stripe.Subscription.modify(subscription_id, cancel_at_period_end=cancel)
    logger.info(f"Stripe subscription updated: subscription_id={subscription_id}, cancel_at_period_end={cancel}")


def verify_webhook(request_body: bytes, signature: Optional[str]) -> Dict:
    """
    Verify the Stripe-Signature header and parse the event payload.

    Returns:
        The event as a plain dict

    Raises:
        StripeNotConfigured: STRIPE_WEBHOOK_SECRET is not set
        WebhookVerificationError: missing/invalid signature or payload
    """
    if not config.STRIPE_WEBHOOK_SECRET:
        raise StripeNotConfigured("STRIPE_WEBHOOK_SECRET not configured")
    if not signature:
        raise WebhookVerificationError("Missing Stripe-Signature header")

    try:
        payload = request_body.decode("utf-8")
        stripe.WebhookSignature.verify_header(
            payload,
            signature,
            config.STRIPE_WEBHOOK_SECRET,
            config.STRIPE_WEBHOOK_TOLERANCE_SECONDS,
        )
        event = json.loads(payload)
    except stripe.SignatureVerificationError as e:
        logger.warning(f"Webhook signature verification failed: {e}")
        raise WebhookVerificationError(f"Invalid signature: {e}")
    except (UnicodeDecodeError, ValueError) as e:
        logger.warning(f"Invalid webhook payload: {e}")
        raise WebhookVerificationError(f"Invalid webhook payload: {e}")

    if not isinstance(event, dict) or not event.get("id") or not event.get("type"):
        raise WebhookVerificationError("Invalid webhook payload: missing event id or type")

    logger.info(f"Verified webhook event: type={event['type']}, id={event['id']}")
    return event
