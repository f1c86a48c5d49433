"""
Stripe billing: one-off checkout for a pack of try-ons and the webhook that
credits the pack to the buyer's profile.
"""

import json
from typing import Any, Dict, Optional

import stripe

from makeup_atelier.config import (
    PUBLIC_URL,
    STRIPE_SECRET_KEY,
    STRIPE_WEBHOOK_SECRET,
    logger,
)
from makeup_atelier.core import quota

TRYON_PACK_SIZE = 20
TRYON_PACK_PRICE_CENTS = 499
TRYON_PACK_NAME = "Makeup Atelier - 20 Try-Ons"
TRYON_PACK_DESCRIPTION = "20 AI-powered virtual lipstick try-ons"


class BillingConfigError(Exception):
    pass


class WebhookVerificationError(Exception):
    pass


def create_checkout_session(user_id: str, email: Optional[str] = None) -> str:
    """
    Create a Stripe Checkout session for one try-on pack.

    Args:
        user_id: Verified Supabase user id, recorded in the session metadata
        email: Optional email to prefill on the checkout page

    Returns:
        The hosted checkout URL

    Raises:
        BillingConfigError: If STRIPE_SECRET_KEY is not configured
        stripe.error.StripeError: If Stripe rejects the request
    """
    if not STRIPE_SECRET_KEY:
        raise BillingConfigError("STRIPE_SECRET_KEY is not configured")

    params: Dict[str, Any] = {
        "payment_method_types": ["card"],
        "line_items": [
            {
                "price_data": {
                    "currency": "usd",
                    "product_data": {
                        "name": TRYON_PACK_NAME,
                        "description": TRYON_PACK_DESCRIPTION,
                    },
                    "unit_amount": TRYON_PACK_PRICE_CENTS,
                },
                "quantity": 1,
            }
        ],
        "mode": "payment",
        "success_url": f"{PUBLIC_URL}?success=true",
        "cancel_url": f"{PUBLIC_URL}?canceled=true",
        "client_reference_id": user_id,
        "metadata": {"user_id": user_id, "tries": str(TRYON_PACK_SIZE)},
    }
    if email:
        params["customer_email"] = email

    session = stripe.checkout.Session.create(api_key=STRIPE_SECRET_KEY, **params)
    logger.info(f"Checkout session {session.id} created for user {user_id}")
    return session.url


def verify_webhook(payload: bytes, signature: Optional[str]) -> Dict[str, Any]:
    """
    Check the Stripe-Signature header against the raw body and decode the event.

    Raises:
        BillingConfigError: If STRIPE_WEBHOOK_SECRET is not configured
        WebhookVerificationError: If the signature or payload is invalid
    """
    if not STRIPE_WEBHOOK_SECRET:
        raise BillingConfigError("STRIPE_WEBHOOK_SECRET is not configured")
    if not signature:
        raise WebhookVerificationError("Missing Stripe-Signature header")

    try:
        text = payload.decode("utf-8")
    except UnicodeDecodeError as e:
        raise WebhookVerificationError("Webhook payload is not valid UTF-8") from e

    try:
        stripe.WebhookSignature.verify_header(text, signature, STRIPE_WEBHOOK_SECRET)
    except stripe.error.SignatureVerificationError as e:
        raise WebhookVerificationError(str(e)) from e

    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        raise WebhookVerificationError(f"Invalid webhook payload: {e}") from e


async def handle_webhook_event(event: Dict[str, Any]) -> Optional[int]:
    """
    Apply a verified Stripe event.

    Only ``checkout.session.completed`` carrying a user id changes state; the
    pack size comes from the session metadata.

    Returns:
        The user's new paid balance, or None if the event was ignored
    """
    event_type = event.get("type")
    if event_type != "checkout.session.completed":
        logger.debug(f"Ignoring Stripe event: {event_type}")
        return None

    session = (event.get("data") or {}).get("object") or {}
    metadata = session.get("metadata") or {}
    user_id = metadata.get("user_id") or session.get("client_reference_id")
    if not user_id:
        logger.warning(
            f"Checkout session {session.get('id')} completed without a user id"
        )
        return None

    try:
        tries = int(metadata.get("tries") or TRYON_PACK_SIZE)
    except ValueError:
        tries = TRYON_PACK_SIZE

    return await quota.add_paid_tryons(user_id, tries)
