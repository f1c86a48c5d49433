"""Opaque cookie identity for visitors who are not signed in."""

import secrets

from fastapi import Request, Response

from makeup_atelier.config import COOKIE_SECURE, logger

ANON_COOKIE = "__Host-tryon_anon"
ANON_COOKIE_MAX_AGE = 60 * 60 * 24 * 365
MIN_ANON_ID_LENGTH = 16


def new_anon_id() -> str:
    return secrets.token_hex(16)


def read_anon_id(request: Request) -> str | None:
    """Return the visitor's anonymous id if the cookie holds a usable value."""
    existing = request.cookies.get(ANON_COOKIE)
    if existing and len(existing) >= MIN_ANON_ID_LENGTH:
        return existing
    return None


def set_anon_cookie(response: Response, anon_id: str) -> None:
    response.set_cookie(
        key=ANON_COOKIE,
        value=anon_id,
        max_age=ANON_COOKIE_MAX_AGE,
        path="/",
        httponly=True,
        samesite="lax",
        secure=COOKIE_SECURE,
    )


def get_or_create_anon_id(request: Request, response: Response) -> str:
    """
    Reuse the visitor's anonymous id or mint a new one.

    A freshly minted id is written to ``response`` as a long-lived HttpOnly
    cookie so the next request is counted against the same quota row.
    """
    existing = read_anon_id(request)
    if existing:
        return existing

    anon_id = new_anon_id()
    set_anon_cookie(response, anon_id)
    logger.debug("Issued new anonymous identity cookie")
    return anon_id
