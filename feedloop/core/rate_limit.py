"""Rate limiting for the FeedLoop API.

Two layers:

- ``limiter`` (slowapi) applies coarse per-route limits keyed by client
  address, declared with ``@limiter.limit(...)`` on the route.
- ``FixedWindowRateLimiter`` is the explicitly constructed throttle for
  login and registration attempts. The application creates one instance
  at startup and handlers receive it through ``get_auth_rate_limiter``.
"""

import logging
import math
import os
import time
from dataclasses import dataclass

from fastapi import FastAPI, Request
from limits import RateLimitItemPerSecond
from limits.storage import MemoryStorage
from limits.strategies import FixedWindowRateLimiter as _FixedWindowStrategy
from slowapi import Limiter
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address

from feedloop.core.config import settings

logger = logging.getLogger(__name__)

IS_TESTING = os.getenv("TESTING", "").lower() in ("1", "true", "yes")
DEFAULT_LIMITS = (
    []
    if IS_TESTING or settings.RATE_LIMIT_API <= 0
    else [f"{settings.RATE_LIMIT_API}/minute"]
)

limiter = Limiter(
    key_func=get_remote_address,
    storage_uri=settings.RATE_LIMIT_STORAGE_URI,
    default_limits=DEFAULT_LIMITS,
)


def install_route_limits(app: FastAPI, route_limiter: Limiter = limiter) -> None:
    """Attach the slowapi limiter; the middleware applies its default limits to undecorated routes."""
    app.state.limiter = route_limiter
    app.add_middleware(SlowAPIMiddleware)


WIDGET_LIMIT = f"{settings.RATE_LIMIT_WIDGET}/minute"
EXPORT_LIMIT = f"{settings.RATE_LIMIT_EXPORT}/minute"


@dataclass(frozen=True)
class RateLimitDecision:
    """Outcome of one counted attempt."""
    allowed: bool
    limit: int
    remaining: int
    reset_time: float  # epoch seconds when the current window ends
    retry_after: int  # seconds; 0 when allowed

    def headers(self) -> dict[str, str]:
        return {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Reset": str(int(math.ceil(self.reset_time))),
        }


class FixedWindowRateLimiter:
    """
    Per-key fixed-window attempt counter.

    Every call to ``check`` counts, including rejected ones. State lives in
    process memory only: it is not shared between workers and is lost on
    restart. The underlying storage is lock-protected, so concurrent
    handlers in the threadpool see a consistent count.
    """

    def __init__(self, window_ms: int, max_requests: int) -> None:
        if window_ms <= 0 or max_requests <= 0:
            raise ValueError("window_ms and max_requests must be positive")
        self.window_ms = window_ms
        self.max_requests = max_requests
        self._item = RateLimitItemPerSecond(max_requests, max(1, math.ceil(window_ms / 1000)))
        self._storage = MemoryStorage()
        self._strategy = _FixedWindowStrategy(self._storage)

    @classmethod
    def create(cls, window_ms: int, max_requests: int) -> "FixedWindowRateLimiter":
        return cls(window_ms=window_ms, max_requests=max_requests)

    def check(self, key: str) -> RateLimitDecision:
        """Count one attempt for ``key`` and report whether it is allowed."""
        allowed = self._strategy.hit(self._item, key)
        stats = self._strategy.get_window_stats(self._item, key)
        retry_after = 0 if allowed else max(1, math.ceil(stats.reset_time - time.time()))
        if not allowed:
            logger.info("rate_limit_denied window_ms=%s limit=%s", self.window_ms, self.max_requests)
        return RateLimitDecision(
            allowed=allowed,
            limit=self.max_requests,
            remaining=max(0, stats.remaining),
            reset_time=stats.reset_time,
            retry_after=retry_after,
        )

    def reset(self, key: str) -> None:
        self._storage.clear(self._item.key_for(key))


def create_auth_rate_limiter() -> FixedWindowRateLimiter:
    return FixedWindowRateLimiter.create(
        settings.AUTH_RATE_LIMIT_WINDOW_MS, settings.AUTH_RATE_LIMIT_MAX_REQUESTS
    )


def get_auth_rate_limiter(request: Request) -> FixedWindowRateLimiter:
    """Dependency returning the application's login/registration throttle."""
    return request.app.state.auth_rate_limiter


def client_key(request: Request, scope: str) -> str:
    """Identify the caller for throttling (forwarded address when trusted)."""
    if settings.TRUST_PROXY_HEADERS:
        forwarded = request.headers.get("x-forwarded-for", "")
        if forwarded:
            return f"{scope}:{forwarded.split(',')[0].strip()}"
    return f"{scope}:{get_remote_address(request)}"
