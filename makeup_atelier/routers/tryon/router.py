"""FastAPI router for the lipstick try-on endpoints."""

from fastapi import APIRouter, Depends, HTTPException, Request, Response

from makeup_atelier.config import logger
from makeup_atelier.core import color_analysis, rate_limit
from makeup_atelier.core.color_analysis import (
    ColorAnalysisConfigError,
    ColorAnalysisError,
    LipColor,
)

from .contexts import CallerContext
from .dependencies import get_caller
from .models import (
    AnalyzeRequest,
    GenerateRequest,
    GenerateResponse,
    IpWindowStatus,
    UsageResponse,
)
from .services import (
    current_usage,
    enforce_ip_limit,
    ensure_quota_backend,
    reserve_tryon,
    run_generation,
    validate_images,
)
from .utils import carry_response_headers, error_detail

router = APIRouter(prefix="/api/v1", tags=["Virtual Try-On"])


@router.post("/generate", response_model=GenerateResponse)
async def generate(
    payload: GenerateRequest,
    request: Request,
    response: Response,
    caller: CallerContext = Depends(get_caller),
) -> GenerateResponse:
    """Apply the lipstick from the product image to the selfie."""

    try:
        logger.info(
            f"Try-on request received from {caller.client_ip} "
            f"(bearer token: {caller.has_token})"
        )

        enforce_ip_limit(caller)
        response.headers["X-RateLimit-Remaining"] = str(caller.ip_status.remaining)

        validate_images(payload)
        ensure_quota_backend()

        reservation = await reserve_tryon(request, response, caller)
        logger.info(
            f"Quota reserved ({reservation.kind}): "
            f"{reservation.status.count}/{reservation.status.limit} used today"
        )

        image = await run_generation(payload, reservation)

        return GenerateResponse(success=True, image=image, usage=reservation.status)

    except HTTPException as http_exc:
        raise carry_response_headers(http_exc, response)

    except Exception as exc:
        logger.error("Unexpected error in try-on request", exc_info=True)
        raise carry_response_headers(
            HTTPException(
                status_code=500,
                detail=error_detail("internal_error", f"Generation failed: {exc}"),
            ),
            response,
        )


@router.get("/usage", response_model=UsageResponse)
async def get_usage(
    request: Request,
    caller: CallerContext = Depends(get_caller),
) -> UsageResponse:
    """Report today's try-on usage for the caller without consuming any."""

    ensure_quota_backend()

    try:
        identity, usage = await current_usage(request, caller)
    except Exception as exc:
        logger.error(f"Error reading usage: {exc}")
        raise HTTPException(
            status_code=500,
            detail=error_detail("quota_check_failed", f"Failed to read usage: {exc}"),
        )

    rule = rate_limit.rule_for(caller.has_token)
    ip_info = rate_limit.ip_limiter.info(
        rate_limit.build_ip_key(caller.client_ip), rule
    )

    return UsageResponse(
        identity=identity,
        usage=usage,
        ip=IpWindowStatus(
            remaining=ip_info.remaining,
            reset_in_seconds=ip_info.reset_in_seconds,
        ),
    )


@router.post("/analyze", response_model=LipColor)
async def analyze(
    payload: AnalyzeRequest,
    caller: CallerContext = Depends(get_caller),
) -> LipColor:
    """Extract the lipstick shade and finish from a product photo."""

    enforce_ip_limit(caller, scope="analyze")

    if not payload.product_base64:
        raise HTTPException(
            status_code=400,
            detail=error_detail("missing_image", "Missing productBase64"),
        )

    try:
        return await color_analysis.analyze_lip_color(payload.product_base64)
    except ValueError as exc:
        raise HTTPException(
            status_code=400,
            detail=error_detail("invalid_image", f"Invalid product image: {exc}"),
        )
    except ColorAnalysisConfigError as exc:
        logger.error(f"Color analysis is not configured: {exc}")
        raise HTTPException(
            status_code=500, detail=error_detail("server_config", str(exc))
        )
    except ColorAnalysisError as exc:
        logger.error(f"Color analysis failed: {exc}")
        raise HTTPException(
            status_code=502,
            detail=error_detail("analysis_failed", "OpenAI request failed", details=str(exc)),
        )


@router.get("/health")
async def health_check() -> dict:
    """Simple health check endpoint."""

    return {
        "status": "healthy",
        "service": "makeup-atelier-api",
        "version": "1.0.0",
    }
