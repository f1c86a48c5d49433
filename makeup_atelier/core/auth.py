"""
Authentication and profile module.
Access tokens are issued by Supabase Auth (Google OAuth on the client) and
verified here with the service-role client.
"""

from datetime import datetime, timezone
from typing import Optional, Dict, Any

from makeup_atelier import db
from makeup_atelier.config import logger


PROFILES_TABLE = "profiles"


def parse_bearer_token(authorization: Optional[str]) -> Optional[str]:
    """Return the token from an ``Authorization: Bearer <token>`` header."""
    if not authorization:
        return None

    parts = authorization.split()
    if len(parts) != 2 or parts[0].lower() != "bearer" or not parts[1]:
        return None

    return parts[1]


async def verify_access_token(access_token: str) -> Optional[Dict[str, Any]]:
    """
    Verify a Supabase Auth access token and return user data.

    Args:
        access_token: JWT access token from Supabase Auth

    Returns:
        User dict if token is valid, None otherwise
    """
    try:
        client = db.get_supabase_client()

        logger.debug("Verifying Supabase Auth access token")

        response = client.auth.get_user(access_token)

        if response and getattr(response, "user", None):
            user_email = response.user.email or ""
            user_data = {
                "id": response.user.id,
                "email": user_email,
                "created_at": str(response.user.created_at),
            }
            logger.debug(f"Token verified for user: {response.user.id}")
            return user_data
        else:
            logger.warning("Invalid or expired access token")
            return None

    except Exception as e:
        logger.error(f"Error verifying access token: {e}")
        return None


async def get_profile(user_id: str) -> Optional[Dict[str, Any]]:
    """
    Get user profile by ID from the profiles table.

    Raises:
        Exception: If the database query fails
    """
    client = db.get_supabase_client()
    response = client.table(PROFILES_TABLE).select("*").eq("id", user_id).execute()

    if response.data and len(response.data) > 0:
        return response.data[0]

    return None


def _default_profile(user_id: str, email: str) -> Dict[str, Any]:
    now = datetime.now(timezone.utc).isoformat()
    return {
        "id": user_id,
        "email": email,
        "free_tries_used": 0,
        "paid_tries_remaining": 0,
        "created_at": now,
        "updated_at": now,
    }


async def get_or_create_profile(user_id: str, email: str) -> Dict[str, Any]:
    """
    Fetch the user's profile, inserting a zeroed one on first sign-in.

    A database failure degrades to an unsaved default profile so that the
    caller can still render the account page.

    Args:
        user_id: Supabase auth user id
        email: User email, stored on first insert

    Returns:
        Profile dict
    """
    try:
        profile = await get_profile(user_id)
        if profile:
            return profile

        client = db.get_supabase_client()
        logger.info(f"Creating profile for user: {user_id}")
        response = (
            client.table(PROFILES_TABLE)
            .insert(
                {
                    "id": user_id,
                    "email": email,
                    "free_tries_used": 0,
                    "paid_tries_remaining": 0,
                }
            )
            .execute()
        )

        if response.data and len(response.data) > 0:
            return response.data[0]

        logger.error(f"Profile insert for {user_id} returned no data")
    except Exception as e:
        logger.error(f"Error fetching or creating profile for {user_id}: {e}")

    return _default_profile(user_id, email)
