"""
StudioGen Backend - Rate Limiting Middleware
==============================================

What:  Per-IP sliding window limits, one window per rule.
How:   Each rule keeps a deque of request timestamps per client IP. Before a
       request: drop timestamps older than the window, reject with 429 when
       the window is full. After: record the request (auth only records
       failures, so a user who logs in correctly is never locked out by it).

Rules (limits from settings):
    ┌────────────────┬──────────────────────────────────────┬──────────────┐
    │ general        │ /api/*                               │ 100 / 15 min │
    │ auth           │ /api/auth/signup|login|google (≥400) │  10 / 15 min │
    │ password_reset │ /api/auth/forgot-|reset-password     │   3 / 1 h    │
    │ generation     │ POST /api/generate/*                 │   5 / 1 min  │
    └────────────────┴──────────────────────────────────────┴──────────────┘

Every limited response carries X-RateLimit-Limit / -Remaining / -Reset for
the tightest matching rule (Reset in seconds).

Production Upgrade Path:
    State lives in process memory, so limits are per worker. Multi-worker
    deployments need a shared store (Redis INCR + EXPIRE or a sorted set).
"""

import logging
import math
import time
from collections import defaultdict, deque
from dataclasses import dataclass
from typing import Callable, Deque, Dict, FrozenSet, List, Optional, Sequence, Tuple

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from studiogen.config import settings
from studiogen.responses import error_response
from studiogen.utils import get_client_ip

logger = logging.getLogger(__name__)

EXCLUDED_PATHS = {"/docs", "/openapi.json", "/redoc"}
CLEANUP_EVERY = 1000


@dataclass(frozen=True)
class RateLimitRule:
    name: str
    max_requests: int
    window_seconds: int
    # "/api" covers "/api" and everything below it
    paths: Tuple[str, ...]
    methods: Optional[FrozenSet[str]] = None
    skip_successful: bool = False
    message: str = "Too many requests, please try again later."

    def matches(self, method: str, path: str) -> bool:
        if self.methods and method.upper() not in self.methods:
            return False
        for prefix in self.paths:
            base = prefix.rstrip("/")
            if path == base or path.startswith(base + "/"):
                return True
        return False


@dataclass(frozen=True)
class WindowStatus:
    limit: int
    remaining: int
    reset_after: int

    @property
    def exhausted(self) -> bool:
        return self.remaining <= 0


class SlidingWindowLimiter:
    """Timestamps per key for one rule. Not shared across processes."""

    def __init__(self, rule: RateLimitRule, clock: Callable[[], float] = time.monotonic):
        self.rule = rule
        self._clock = clock
        self._hits: Dict[str, Deque[float]] = defaultdict(deque)
        self._recorded = 0

    def _window(self, key: str, now: float) -> Deque[float]:
        hits = self._hits[key]
        cutoff = now - self.rule.window_seconds
        while hits and hits[0] <= cutoff:
            hits.popleft()
        return hits

    def status(self, key: str) -> WindowStatus:
        now = self._clock()
        hits = self._window(key, now)
        if hits:
            reset_after = max(1, math.ceil(hits[0] + self.rule.window_seconds - now))
        else:
            reset_after = self.rule.window_seconds
        return WindowStatus(
            limit=self.rule.max_requests,
            remaining=max(self.rule.max_requests - len(hits), 0),
            reset_after=reset_after,
        )

    def record(self, key: str) -> None:
        now = self._clock()
        self._window(key, now).append(now)
        self._recorded += 1
        if self._recorded % CLEANUP_EVERY == 0:
            self._cleanup(now)

    def _cleanup(self, now: float) -> None:
        cutoff = now - self.rule.window_seconds
        idle = [key for key, hits in self._hits.items() if not hits or hits[-1] <= cutoff]
        for key in idle:
            del self._hits[key]
        if idle:
            logger.debug("Rate limiter %s: dropped %d idle clients", self.rule.name, len(idle))


def default_rules() -> List[RateLimitRule]:
    return [
        RateLimitRule(
            name="general",
            max_requests=settings.rate_limit_requests,
            window_seconds=settings.rate_limit_window,
            paths=("/api",),
        ),
        RateLimitRule(
            name="auth",
            max_requests=settings.auth_rate_limit_requests,
            window_seconds=settings.auth_rate_limit_window,
            paths=("/api/auth/signup", "/api/auth/login", "/api/auth/google"),
            skip_successful=True,
            message="Too many authentication attempts, please try again in 15 minutes.",
        ),
        RateLimitRule(
            name="password_reset",
            max_requests=settings.password_reset_rate_limit_requests,
            window_seconds=settings.password_reset_rate_limit_window,
            paths=("/api/auth/forgot-password", "/api/auth/reset-password"),
            message="Too many password reset requests, please try again in an hour.",
        ),
        RateLimitRule(
            name="generation",
            max_requests=settings.generation_rate_limit_requests,
            window_seconds=settings.generation_rate_limit_window,
            paths=("/api/generate/",),
            methods=frozenset({"POST"}),
            message="Generation rate limit exceeded. Please wait a moment.",
        ),
    ]


def _apply_headers(response: Response, status: WindowStatus) -> None:
    response.headers["X-RateLimit-Limit"] = str(status.limit)
    response.headers["X-RateLimit-Remaining"] = str(status.remaining)
    response.headers["X-RateLimit-Reset"] = str(status.reset_after)


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    Applies every matching rule to a request.

    A request is rejected by the first full window it hits; windows of the
    other matching rules are left untouched in that case.

    Args:
        rules: Override the settings-derived rules (tests use small windows).
    """

    def __init__(self, app, rules: Optional[Sequence[RateLimitRule]] = None, **kwargs):
        super().__init__(app, **kwargs)
        self._limiters = [SlidingWindowLimiter(rule) for rule in (rules or default_rules())]

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        path = request.url.path
        if path in EXCLUDED_PATHS or path.startswith("/health"):
            return await call_next(request)

        method = request.method
        matching = [limiter for limiter in self._limiters if limiter.rule.matches(method, path)]
        if not matching:
            return await call_next(request)

        client_ip = get_client_ip(request)

        for limiter in matching:
            status = limiter.status(client_ip)
            if status.exhausted:
                return self._reject(limiter.rule, status, client_ip)

        for limiter in matching:
            if not limiter.rule.skip_successful:
                limiter.record(client_ip)

        response = await call_next(request)

        if response.status_code >= 400:
            for limiter in matching:
                if limiter.rule.skip_successful:
                    limiter.record(client_ip)

        tightest = min(
            (limiter.status(client_ip) for limiter in matching),
            key=lambda s: s.remaining,
        )
        _apply_headers(response, tightest)
        return response

    def _reject(self, rule: RateLimitRule, status: WindowStatus, client_ip: str) -> JSONResponse:
        logger.warning(
            "Rate limit '%s' exceeded for IP %s: %d requests in %ds window",
            rule.name,
            client_ip,
            rule.max_requests,
            rule.window_seconds,
        )
        response = error_response(
            429,
            "rate_limit_exceeded",
            rule.message,
            headers={"Retry-After": str(status.reset_after)},
            details={"retry_after": status.reset_after, "rule": rule.name},
        )
        _apply_headers(response, status)
        return response
