"""FastAPI router for Stripe checkout and webhooks."""

from typing import Optional

import stripe
from fastapi import APIRouter, Depends, Header, HTTPException, Request

from makeup_atelier.config import logger
from makeup_atelier.core import billing
from makeup_atelier.core.errors import QuotaBackendError
from makeup_atelier.routers.auth.dependencies import get_current_user

from .models import CheckoutResponse, WebhookAck

router = APIRouter(prefix="/api/v1/billing", tags=["Billing"])


@router.post("/checkout", response_model=CheckoutResponse)
async def create_checkout(user: dict = Depends(get_current_user)) -> CheckoutResponse:
    """Start a Stripe Checkout for a try-on pack for the signed-in user."""
    try:
        url = billing.create_checkout_session(user["id"], user.get("email") or None)
    except billing.BillingConfigError as exc:
        logger.error(f"Billing is not configured: {exc}")
        raise HTTPException(status_code=500, detail=str(exc))
    except stripe.error.StripeError as exc:
        logger.error(f"Stripe checkout error for user {user['id']}: {exc}")
        raise HTTPException(status_code=502, detail=f"Stripe checkout error: {exc}")

    return CheckoutResponse(url=url)


@router.post("/webhook", response_model=WebhookAck)
async def stripe_webhook(
    request: Request,
    stripe_signature: Optional[str] = Header(default=None, alias="Stripe-Signature"),
) -> WebhookAck:
    """Receive Stripe events; completed checkouts credit paid try-ons."""
    payload = await request.body()

    try:
        event = billing.verify_webhook(payload, stripe_signature)
    except billing.BillingConfigError as exc:
        logger.error(f"Webhook secret missing: {exc}")
        raise HTTPException(status_code=500, detail=str(exc))
    except billing.WebhookVerificationError as exc:
        logger.warning(f"Webhook signature verification failed: {exc}")
        raise HTTPException(status_code=400, detail=f"Webhook Error: {exc}")

    try:
        await billing.handle_webhook_event(event)
    except QuotaBackendError as exc:
        # 500 makes Stripe retry the delivery
        logger.error(
            f"Failed to credit paid try-ons for event {event.get('id')}: {exc}"
        )
        raise HTTPException(status_code=500, detail="Failed to credit try-ons")

    return WebhookAck(received=True)
