"""
Per-client fixed-window rate limiting.

Counters live in process memory (``limits`` MemoryStorage) and are keyed by
client address. A window resets when it expires; nothing survives a restart.
"""

from __future__ import annotations

import logging
import math
import time
from datetime import timedelta
from typing import Dict

from fastapi import Depends, Request, Response
from limits import RateLimitItemPerSecond
from limits.storage import MemoryStorage
from limits.strategies import FixedWindowRateLimiter

from app.errors import RateLimitError
from auth.gate import require_user
from auth.tokens import TokenClaims


logger = logging.getLogger("june.ratelimit")

GENERAL_LIMIT_MESSAGE = "Too many requests from this IP, please try again later."
AI_LIMIT_MESSAGE = "Too many AI requests, please slow down."


def client_address(request: Request, trust_proxy: bool = False) -> str:
    if trust_proxy:
        forwarded = request.headers.get("x-forwarded-for")
        if forwarded:
            # One trusted hop: the address our proxy saw is the last entry.
            hops = [hop.strip() for hop in forwarded.split(",") if hop.strip()]
            if hops:
                return hops[-1]
    if request.client and request.client.host:
        return request.client.host
    return "unknown"


class FixedWindowLimiter:
    def __init__(self, name: str, limit: int, window: timedelta, message: str) -> None:
        self.name = name
        self.limit = limit
        self.window = window
        self.message = message
        self._item = RateLimitItemPerSecond(limit, int(window.total_seconds()), namespace=name)
        self._storage = MemoryStorage()
        self._strategy = FixedWindowRateLimiter(self._storage)

    def hit(self, key: str) -> Dict[str, str]:
        """Count one request for ``key``.

        Returns the rate-limit headers for the response, or raises
        ``RateLimitError`` once the window's quota is spent.
        """
        allowed = self._strategy.hit(self._item, key)
        stats = self._strategy.get_window_stats(self._item, key)
        reset_in = max(0, math.ceil(stats.reset_time - time.time()))
        headers = {
            "RateLimit-Limit": str(self.limit),
            "RateLimit-Remaining": str(max(0, stats.remaining)),
            "RateLimit-Reset": str(reset_in),
        }
        if not allowed:
            logger.warning("Rate limit '%s' exceeded for %s", self.name, key)
            headers["Retry-After"] = str(reset_in)
            raise RateLimitError(self.message, headers=headers)
        return headers

    def reset(self) -> None:
        self._storage.reset()


def general_limiter() -> FixedWindowLimiter:
    return FixedWindowLimiter("api", 100, timedelta(minutes=15), GENERAL_LIMIT_MESSAGE)


def ai_limiter() -> FixedWindowLimiter:
    return FixedWindowLimiter("ai", 20, timedelta(seconds=60), AI_LIMIT_MESSAGE)


def enforce_ai_limit(
    request: Request,
    response: Response,
    claims: TokenClaims = Depends(require_user),
) -> TokenClaims:
    """Runs after the auth gate so anonymous calls never spend AI quota."""
    limiter: FixedWindowLimiter = request.app.state.ai_limiter
    key = client_address(request, request.app.state.settings.trust_proxy)
    response.headers.update(limiter.hit(key))
    return claims
