"""FastAPI dependencies shared across try-on endpoints."""

from typing import Optional

from fastapi import Header, Request

from .contexts import CallerContext
from .services import build_caller_context


async def get_caller(
    request: Request,
    authorization: Optional[str] = Header(default=None),
) -> CallerContext:
    """
    Collect the requester's IP, user agent and bearer token.

    The token is only parsed here; verification is deferred until after the
    IP throttle so that floods never reach Supabase Auth.
    """
    return build_caller_context(request, authorization)
