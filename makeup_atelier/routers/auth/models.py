"""Pydantic models for authentication endpoints."""

from typing import Optional

from pydantic import BaseModel

from makeup_atelier.core.quota import QuotaStatus


class Profile(BaseModel):
    id: str
    email: str
    free_tries_used: Optional[int] = 0
    paid_tries_remaining: Optional[int] = 0
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class UserResponse(BaseModel):
    """Response payload for current user information."""

    success: bool
    user: dict
    profile: Profile
    usage: Optional[QuotaStatus] = None
