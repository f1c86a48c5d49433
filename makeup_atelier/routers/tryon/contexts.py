"""Lightweight dataclasses shared across try-on helpers."""

from dataclasses import dataclass
from typing import Any, Dict, Optional

from makeup_atelier.core.rate_limit import RateLimitInfo


@dataclass
class CallerContext:
    client_ip: str
    user_agent: Optional[str]
    bearer_token: Optional[str]
    ip_status: Optional[RateLimitInfo] = None
    user: Optional[Dict[str, Any]] = None

    @property
    def has_token(self) -> bool:
        return bool(self.bearer_token)

    @property
    def user_id(self) -> Optional[str]:
        return self.user.get("id") if self.user else None
