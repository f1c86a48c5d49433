"""
Daily try-on quota operations backed by Supabase RPCs.

Each identity (signed-in user or anonymous cookie) owns one counter row per
UTC day. The increment RPCs only bump the counter while it is below the
limit, so concurrent requests cannot push a row past its cap. When a costly
downstream call fails after a reservation, the matching decrement RPC
refunds it (floored at zero in SQL).
"""

from dataclasses import dataclass
from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, Field

from makeup_atelier import db
from makeup_atelier.config import logger
from makeup_atelier.core.errors import QuotaBackendError


class QuotaStatus(BaseModel):
    """Usage snapshot returned by the quota RPCs."""

    allowed: bool
    count: int = Field(..., ge=0)
    limit: int = Field(..., ge=0)
    remaining: int = Field(..., ge=0)
    paid_remaining: Optional[int] = None

    @classmethod
    def from_counts(
        cls, count: int, limit: int, allowed: Optional[bool] = None
    ) -> "QuotaStatus":
        return cls(
            allowed=count < limit if allowed is None else allowed,
            count=count,
            limit=limit,
            remaining=max(0, limit - count),
        )


ReservationKind = Literal["user", "paid", "anon"]


@dataclass
class Reservation:
    """A try-on that has been charged against some quota and may be refunded."""

    kind: ReservationKind
    identity: str
    status: QuotaStatus


def _call_rpc(function: str, params: Dict[str, Any]) -> Any:
    try:
        client = db.get_supabase_client()
        response = client.rpc(function, params).execute()
    except Exception as e:
        logger.error(f"Quota RPC {function} failed: {e}")
        raise QuotaBackendError(f"Quota check failed ({function})", str(e)) from e

    return response.data


def _first_row(data: Any) -> Dict[str, Any]:
    # json-returning functions come back as an object; set-returning ones as a list
    if isinstance(data, list):
        data = data[0] if data else None
    if not isinstance(data, dict):
        raise QuotaBackendError("Quota RPC returned an unexpected payload", repr(data))
    return data


def _parse_status(function: str, data: Any, daily_limit: int) -> QuotaStatus:
    row = _first_row(data)
    try:
        count = int(row["count"])
        limit = int(row.get("limit", daily_limit))
    except (KeyError, TypeError, ValueError) as e:
        raise QuotaBackendError(
            f"Quota RPC {function} returned a malformed payload", repr(row)
        ) from e

    allowed = row.get("allowed")
    return QuotaStatus.from_counts(
        count=count,
        limit=limit,
        allowed=bool(allowed) if allowed is not None else None,
    )


async def reserve_user_tryon(user_id: str, daily_limit: int) -> QuotaStatus:
    """
    Atomically reserve one try-on from a signed-in user's daily quota.

    Args:
        user_id: Supabase auth user id
        daily_limit: Maximum try-ons per UTC day

    Returns:
        QuotaStatus; ``allowed`` is False (and nothing was counted) when the
        user was already at the limit

    Raises:
        QuotaBackendError: If the RPC fails or returns an unusable payload
    """
    data = _call_rpc(
        "check_and_increment_tryons",
        {"p_user_id": user_id, "daily_limit": daily_limit},
    )
    status = _parse_status("check_and_increment_tryons", data, daily_limit)
    logger.info(
        f"User {user_id} quota reservation: allowed={status.allowed} "
        f"({status.count}/{status.limit})"
    )
    return status


async def reserve_anon_tryon(anon_id: str, daily_limit: int) -> QuotaStatus:
    """Atomically reserve one try-on from an anonymous visitor's daily quota."""
    data = _call_rpc(
        "check_and_increment_tryons_anon",
        {"p_anon_id": anon_id, "daily_limit": daily_limit},
    )
    status = _parse_status("check_and_increment_tryons_anon", data, daily_limit)
    logger.info(
        f"Anonymous quota reservation: allowed={status.allowed} "
        f"({status.count}/{status.limit})"
    )
    return status


async def consume_paid_tryon(user_id: str) -> Optional[int]:
    """
    Spend one purchased try-on.

    Returns:
        The balance left after spending, or None when the user had none
    """
    row = _first_row(_call_rpc("consume_paid_tryon", {"p_user_id": user_id}))
    if not row.get("allowed"):
        return None
    return int(row.get("paid_remaining") or 0)


async def add_paid_tryons(user_id: str, tries: int) -> int:
    """Credit purchased try-ons to a user's profile and return the new balance."""
    row = _first_row(
        _call_rpc("add_paid_tryons", {"p_user_id": user_id, "p_tries": tries})
    )
    balance = int(row.get("paid_remaining") or 0)
    logger.info(
        f"Added {tries} paid try-ons to user {user_id}. New total: {balance}"
    )
    return balance


async def get_user_usage(user_id: str, daily_limit: int) -> QuotaStatus:
    """Read today's usage for a user without incrementing it."""
    data = _call_rpc("get_tryon_usage", {"p_user_id": user_id})
    return _parse_status("get_tryon_usage", data, daily_limit)


async def get_anon_usage(anon_id: str, daily_limit: int) -> QuotaStatus:
    """Read today's usage for an anonymous visitor without incrementing it."""
    data = _call_rpc("get_tryon_usage_anon", {"p_anon_id": anon_id})
    return _parse_status("get_tryon_usage_anon", data, daily_limit)


async def refund_user_tryon(user_id: str) -> None:
    _call_rpc("decrement_tryons", {"p_user_id": user_id})


async def refund_anon_tryon(anon_id: str) -> None:
    _call_rpc("decrement_tryons_anon", {"p_anon_id": anon_id})


async def refund_paid_tryon(user_id: str) -> None:
    _call_rpc("refund_paid_tryon", {"p_user_id": user_id})


async def refund_reservation(reservation: Reservation) -> bool:
    """
    Give a reserved try-on back to whichever quota it was charged to.

    Refund failures are logged and swallowed; the caller is already handling
    the error that triggered the refund.

    Returns:
        True if the refund RPC succeeded
    """
    try:
        if reservation.kind == "anon":
            await refund_anon_tryon(reservation.identity)
        elif reservation.kind == "paid":
            await refund_paid_tryon(reservation.identity)
        else:
            await refund_user_tryon(reservation.identity)
    except QuotaBackendError as e:
        logger.error(
            f"Quota refund failed ({reservation.kind} {reservation.identity}): "
            f"{e} - {e.details}"
        )
        return False

    logger.info(f"Quota reservation refunded ({reservation.kind})")
    return True
