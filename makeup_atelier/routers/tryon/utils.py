"""Utility helpers for the try-on router."""

from typing import Any, Dict, Optional

from fastapi import HTTPException, Request, Response

from makeup_atelier.core.quota import QuotaStatus


def get_client_ip(request: Request) -> Optional[str]:
    """Extract the requester IP from common proxy headers."""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first

    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip.strip()

    if request.client:
        return request.client.host

    return None


def error_detail(
    error: str,
    message: str,
    usage: Optional[QuotaStatus] = None,
    details: Optional[str] = None,
) -> Dict[str, Any]:
    detail: Dict[str, Any] = {"error": error, "message": message}
    if usage is not None:
        detail["usage"] = usage.model_dump()
    if details:
        detail["details"] = details
    return detail


def carry_response_headers(exc: HTTPException, response: Response) -> HTTPException:
    """
    Copy headers already set on ``response`` onto an HTTPException.

    FastAPI discards the injected response when an exception is raised, which
    would drop a freshly issued anonymous cookie and the rate limit header.
    """
    headers = dict(exc.headers or {})
    present = {name.lower() for name in headers}
    for name in ("set-cookie", "x-ratelimit-remaining"):
        value = response.headers.get(name)
        if value is not None and name not in present:
            headers[name] = value
    exc.headers = headers or None
    return exc
