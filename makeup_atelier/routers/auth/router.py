"""FastAPI router providing account endpoints."""

from fastapi import APIRouter, Depends

from makeup_atelier.config import USER_DAILY_TRYON_LIMIT, logger
from makeup_atelier.core import auth, quota
from makeup_atelier.core.errors import QuotaBackendError

from .dependencies import get_current_user
from .models import Profile, UserResponse

router = APIRouter(prefix="/api/v1/auth", tags=["Authentication"])


@router.get("/me", response_model=UserResponse)
async def get_current_user_info(user: dict = Depends(get_current_user)) -> UserResponse:
    """Return the signed-in user with their profile and today's usage."""
    profile = await auth.get_or_create_profile(user["id"], user.get("email") or "")

    usage = None
    try:
        usage = await quota.get_user_usage(user["id"], USER_DAILY_TRYON_LIMIT)
    except QuotaBackendError as exc:
        logger.warning(
            f"Usage unavailable for profile of user {user['id']}: {exc}"
        )

    return UserResponse(
        success=True,
        user=user,
        profile=Profile.model_validate(profile),
        usage=usage,
    )


@router.get("/health")
async def auth_health_check() -> dict:
    """Health check endpoint for the authentication service."""
    return {"status": "healthy", "service": "authentication"}
