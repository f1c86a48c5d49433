"""Authentication-related FastAPI dependencies."""

from typing import Optional

from fastapi import Header, HTTPException

from makeup_atelier.core import auth


async def get_current_user(authorization: Optional[str] = Header(default=None)) -> dict:
    """Retrieve the authenticated user from a Supabase Auth Bearer token."""
    if not authorization:
        raise HTTPException(status_code=401, detail="Authorization header required")

    access_token = auth.parse_bearer_token(authorization)
    if not access_token:
        raise HTTPException(
            status_code=401, detail="Invalid authorization header format"
        )

    user = await auth.verify_access_token(access_token)
    if not user:
        raise HTTPException(status_code=401, detail="Invalid or expired token")

    return user
