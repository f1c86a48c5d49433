"""Pydantic models for billing endpoints."""

from pydantic import BaseModel


class CheckoutResponse(BaseModel):
    url: str


class WebhookAck(BaseModel):
    received: bool
