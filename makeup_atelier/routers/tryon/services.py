"""Service helpers used by the try-on router."""

from typing import Optional

from fastapi import HTTPException, Request, Response

from makeup_atelier import db
from makeup_atelier.config import (
    ANON_DAILY_TRYON_LIMIT,
    USER_DAILY_TRYON_LIMIT,
    logger,
)
from makeup_atelier.core import anon_identity, auth, quota, rate_limit
from makeup_atelier.core.errors import GenerationError, QuotaBackendError
from makeup_atelier.core.generation import generate_tryon, split_image_input
from makeup_atelier.core.quota import QuotaStatus, Reservation

from .contexts import CallerContext
from .models import GenerateRequest
from .utils import error_detail, get_client_ip

# ~5MB of image data once base64-encoded
MAX_BASE64_SIZE = 7 * 1024 * 1024


def build_caller_context(
    request: Request, authorization: Optional[str]
) -> CallerContext:
    return CallerContext(
        client_ip=get_client_ip(request) or "unknown",
        user_agent=request.headers.get("User-Agent"),
        bearer_token=auth.parse_bearer_token(authorization),
    )


def enforce_ip_limit(caller: CallerContext, scope: str = "tryon") -> None:
    """Throttle raw request volume per IP; signed-in callers get a looser rule."""
    rule = rate_limit.rule_for(caller.has_token)
    key = rate_limit.build_ip_key(caller.client_ip, scope)

    allowed = rate_limit.ip_limiter.hit(key, rule)
    caller.ip_status = rate_limit.ip_limiter.info(key, rule)

    if not allowed:
        logger.warning(
            f"IP rate limit exceeded for {caller.client_ip} "
            f"(bearer token: {caller.has_token})"
        )
        message = (
            "Too many requests. Please wait before trying again."
            if caller.has_token
            else "Too many requests from this IP. Sign in for higher limits or try again later."
        )
        raise HTTPException(
            status_code=429,
            detail=error_detail("ip_rate_limited", message),
            headers={
                "Retry-After": str(int(caller.ip_status.reset_in_seconds) + 1),
                "X-RateLimit-Remaining": "0",
            },
        )


def validate_images(payload: GenerateRequest) -> None:
    if not payload.lipstick_image or not payload.selfie_image:
        raise HTTPException(
            status_code=400,
            detail=error_detail("missing_images", "Missing required images"),
        )

    if (
        len(payload.lipstick_image) > MAX_BASE64_SIZE
        or len(payload.selfie_image) > MAX_BASE64_SIZE
    ):
        raise HTTPException(
            status_code=400,
            detail=error_detail(
                "images_too_large",
                "Image files are too large. Please use images smaller than 5MB.",
            ),
        )

    for label, image in (
        ("lipstick", payload.lipstick_image),
        ("selfie", payload.selfie_image),
    ):
        try:
            split_image_input(image)
        except ValueError as exc:
            raise HTTPException(
                status_code=400,
                detail=error_detail("invalid_image", f"Invalid {label} image: {exc}"),
            )


def ensure_quota_backend() -> None:
    if not db.is_configured():
        raise HTTPException(
            status_code=500,
            detail=error_detail(
                "server_config", "Server configuration error: Supabase env not set"
            ),
        )


async def resolve_user(caller: CallerContext) -> None:
    """Attach the verified user to ``caller``; invalid tokens fall back to anonymous."""
    if caller.bearer_token and caller.user is None:
        caller.user = await auth.verify_access_token(caller.bearer_token)
        if caller.user is None:
            logger.info("Bearer token rejected; falling back to anonymous quota")


def _limit_reached(error: str, message: str, usage: QuotaStatus) -> HTTPException:
    return HTTPException(
        status_code=429,
        detail=error_detail(error, message, usage=usage),
        headers={"X-RateLimit-Remaining": "0"},
    )


async def _reserve_for_user(user_id: str) -> Reservation:
    status = await quota.reserve_user_tryon(user_id, USER_DAILY_TRYON_LIMIT)
    if status.allowed:
        return Reservation(kind="user", identity=user_id, status=status)

    paid_remaining = await quota.consume_paid_tryon(user_id)
    if paid_remaining is not None:
        logger.info(
            f"Daily quota exhausted for user {user_id}; spent a paid try-on, "
            f"{paid_remaining} left"
        )
        paid_status = status.model_copy(
            update={"allowed": True, "paid_remaining": paid_remaining}
        )
        return Reservation(kind="paid", identity=user_id, status=paid_status)

    raise _limit_reached(
        "user_limit_reached",
        f"Daily limit reached ({status.count}/{status.limit}). Resets tomorrow.",
        status,
    )


async def _reserve_for_anon(request: Request, response: Response) -> Reservation:
    anon_id = anon_identity.get_or_create_anon_id(request, response)
    status = await quota.reserve_anon_tryon(anon_id, ANON_DAILY_TRYON_LIMIT)
    if status.allowed:
        return Reservation(kind="anon", identity=anon_id, status=status)

    raise _limit_reached(
        "anon_limit_reached", "Anon limit reached. Sign in to continue.", status
    )


async def reserve_tryon(
    request: Request, response: Response, caller: CallerContext
) -> Reservation:
    """
    Charge one try-on to the caller before the provider is called.

    Signed-in users draw from their daily quota, then from purchased
    try-ons. Everyone else draws from the anonymous cookie quota.
    """
    await resolve_user(caller)

    try:
        if caller.user_id:
            return await _reserve_for_user(caller.user_id)
        return await _reserve_for_anon(request, response)
    except QuotaBackendError as exc:
        raise HTTPException(
            status_code=500,
            detail=error_detail(
                "quota_check_failed", "Quota check failed", details=exc.details
            ),
        )


async def run_generation(payload: GenerateRequest, reservation: Reservation) -> str:
    """Call the image provider, refunding the reservation if it fails."""
    try:
        return await generate_tryon(
            payload.lipstick_image,
            payload.selfie_image,
            shade_hex=payload.shade_hex,
            finish=payload.finish,
        )
    except GenerationError as exc:
        logger.error(f"Generation failed ({exc.error_code}): {exc}")
        await quota.refund_reservation(reservation)
        raise HTTPException(
            status_code=exc.status_code,
            detail=error_detail(exc.error_code, user_message_for(exc)),
        )


def user_message_for(exc: GenerationError) -> str:
    messages = {
        "safety_filter": "The image was blocked by the safety filter. Please try different images.",
        "timeout": "Request took too long. The model is processing - please try again in a moment.",
        "provider_auth": "Invalid API key configured on server",
        "provider_permission": "API key does not have permission",
        "provider_quota": "API quota exceeded. Please try again later.",
        "provider_config": "Server configuration error: API key not set",
    }
    return messages.get(exc.error_code, f"Generation failed: {exc}")


async def current_usage(
    request: Request, caller: CallerContext
) -> tuple[str, QuotaStatus]:
    """Read today's usage for the caller without charging anything."""
    await resolve_user(caller)

    if caller.user_id:
        return "user", await quota.get_user_usage(
            caller.user_id, USER_DAILY_TRYON_LIMIT
        )

    anon_id = anon_identity.read_anon_id(request)
    if not anon_id:
        return "anon", QuotaStatus.from_counts(0, ANON_DAILY_TRYON_LIMIT)
    return "anon", await quota.get_anon_usage(anon_id, ANON_DAILY_TRYON_LIMIT)
