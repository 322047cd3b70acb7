"""
In-memory fixed-window rate limiting keyed by client identifier.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from threading import Lock

from fastapi import Request

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class RateLimitRule:
    max_requests: int
    window_seconds: int

    @classmethod
    def parse(cls, value: str) -> "RateLimitRule":
        """Parse ``"<count>/<seconds>"`` as used in the settings."""
        count, _, window = value.partition("/")
        return cls(max_requests=int(count), window_seconds=int(window or 60))


@dataclass(slots=True)
class RateLimitResult:
    allowed: bool
    limit: int
    remaining: int
    reset_at: float

    @property
    def retry_after(self) -> int:
        return max(int(self.reset_at - time.time()) + 1, 1)


class RateLimiter:
    def __init__(self, clock=time.time) -> None:
        self._clock = clock
        self._entries: dict[str, tuple[int, float]] = {}
        self._lock = Lock()

    def check(self, key: str, rule: RateLimitRule) -> RateLimitResult:
        now = self._clock()
        with self._lock:
            self._cleanup(now)
            count, reset_at = self._entries.get(key, (0, 0.0))
            if now >= reset_at:
                count, reset_at = 0, now + rule.window_seconds
            if count >= rule.max_requests:
                logger.warning("Rate limit exceeded", extra={"rate_key": key})
                return RateLimitResult(False, rule.max_requests, 0, reset_at)
            count += 1
            self._entries[key] = (count, reset_at)
            return RateLimitResult(True, rule.max_requests, rule.max_requests - count, reset_at)

    def reset(self) -> None:
        with self._lock:
            self._entries.clear()

    def _cleanup(self, now: float) -> None:
        expired = [key for key, (_, reset_at) in self._entries.items() if now >= reset_at]
        for key in expired:
            del self._entries[key]


def get_client_identifier(request: Request) -> str:
    forwarded_for = request.headers.get("x-forwarded-for")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()
    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip
    if request.client and request.client.host:
        return request.client.host
    return "unknown"


limiter = RateLimiter()
