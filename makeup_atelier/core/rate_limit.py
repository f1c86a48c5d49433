"""
Rate limiting module for IP-based request throttling.

Keeps a sliding window of request timestamps per identifier in process
memory. The store is lost on restart and is not shared between workers, so
this only blunts scripted bursts; the durable per-identity daily quota lives
in the database (see quota.py).
"""

import threading
import time
from collections import deque
from dataclasses import dataclass
from typing import Callable, Deque, Dict

from makeup_atelier.config import (
    IP_RATE_LIMIT_ANON,
    IP_RATE_LIMIT_USER,
    IP_RATE_WINDOW_SECONDS,
    logger,
)


@dataclass(frozen=True)
class RateLimitRule:
    window_seconds: float
    max_requests: int


@dataclass(frozen=True)
class RateLimitInfo:
    remaining: int
    reset_in_seconds: float


USER_RULE = RateLimitRule(
    window_seconds=IP_RATE_WINDOW_SECONDS, max_requests=IP_RATE_LIMIT_USER
)
ANON_RULE = RateLimitRule(
    window_seconds=IP_RATE_WINDOW_SECONDS, max_requests=IP_RATE_LIMIT_ANON
)


class SlidingWindowRateLimiter:
    """Per-identifier sliding-window counter."""

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._hits: Dict[str, Deque[float]] = {}
        self._lock = threading.Lock()
        self._last_sweep = float("-inf")
        self._longest_window = 0.0

    def _prune(self, identifier: str, now: float, window: float) -> Deque[float]:
        hits = self._hits.get(identifier)
        if hits is None:
            return deque()
        cutoff = now - window
        while hits and hits[0] <= cutoff:
            hits.popleft()
        if not hits:
            del self._hits[identifier]
        return hits

    def hit(self, identifier: str, rule: RateLimitRule) -> bool:
        """
        Record a request for ``identifier`` and report whether it is allowed.

        Rejected requests are not recorded, so a client that keeps retrying
        while throttled is released as soon as its oldest request ages out.
        Identifiers whose window has drained are dropped from the store.
        """
        with self._lock:
            now = self._clock()
            self._longest_window = max(self._longest_window, rule.window_seconds)
            self._sweep(now)
            hits = self._prune(identifier, now, rule.window_seconds)

            if len(hits) >= rule.max_requests:
                logger.debug(
                    f"IP rate limit exceeded for {identifier} "
                    f"({rule.max_requests} per {rule.window_seconds:g}s)"
                )
                return False

            hits.append(now)
            self._hits[identifier] = hits
            return True

    def _sweep(self, now: float) -> None:
        # Hits older than the longest window seen are expired under every rule;
        # one full pass per such window keeps hit() cheap
        window = self._longest_window
        if now - self._last_sweep < window:
            return
        self._last_sweep = now
        for identifier in list(self._hits):
            self._prune(identifier, now, window)

    def info(self, identifier: str, rule: RateLimitRule) -> RateLimitInfo:
        """Return remaining requests and seconds until the oldest hit expires."""
        with self._lock:
            now = self._clock()
            hits = self._prune(identifier, now, rule.window_seconds)
            if not hits:
                return RateLimitInfo(
                    remaining=rule.max_requests, reset_in_seconds=0.0
                )

            return RateLimitInfo(
                remaining=max(0, rule.max_requests - len(hits)),
                reset_in_seconds=max(0.0, hits[0] + rule.window_seconds - now),
            )

    def reset(self) -> None:
        with self._lock:
            self._hits.clear()


def rule_for(authenticated: bool) -> RateLimitRule:
    return USER_RULE if authenticated else ANON_RULE


def build_ip_key(client_ip: str, scope: str = "tryon") -> str:
    return f"{scope}:{client_ip}"


# Shared limiter for the API process
ip_limiter = SlidingWindowRateLimiter()
