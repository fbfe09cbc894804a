"""
StudioGen Backend - Rate Limiting Tests
=========================================

What:  Rule matching, the sliding window and the middleware's 429 answers.
How:   The limiter gets a fake clock; the middleware is mounted on a tiny
       FastAPI app with small limits so the shared application is untouched.
"""

import pytest
from fastapi import FastAPI, HTTPException
from httpx import ASGITransport, AsyncClient

from studiogen.middleware.rate_limit import (
    RateLimitMiddleware,
    RateLimitRule,
    SlidingWindowLimiter,
)


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


class TestRuleMatching:
    def test_prefix_covers_subpaths_only(self):
        rule = RateLimitRule(name="general", max_requests=1, window_seconds=60, paths=("/api",))
        assert rule.matches("GET", "/api")
        assert rule.matches("GET", "/api/projects/1")
        assert not rule.matches("GET", "/apiary")
        assert not rule.matches("GET", "/health")

    def test_method_filter(self):
        rule = RateLimitRule(
            name="generation",
            max_requests=1,
            window_seconds=60,
            paths=("/api/generate/",),
            methods=frozenset({"POST"}),
        )
        assert rule.matches("post", "/api/generate/studio-image")
        assert not rule.matches("GET", "/api/generate/credits")


class TestSlidingWindow:
    def setup_method(self):
        self.clock = FakeClock()
        rule = RateLimitRule(name="test", max_requests=2, window_seconds=60, paths=("/",))
        self.limiter = SlidingWindowLimiter(rule, clock=self.clock)

    def test_counts_down_and_exhausts(self):
        assert self.limiter.status("1.2.3.4").remaining == 2
        self.limiter.record("1.2.3.4")
        self.limiter.record("1.2.3.4")

        status = self.limiter.status("1.2.3.4")
        assert status.exhausted
        assert status.reset_after == 60

    def test_keys_are_independent(self):
        self.limiter.record("1.2.3.4")
        self.limiter.record("1.2.3.4")
        assert not self.limiter.status("5.6.7.8").exhausted

    def test_old_hits_slide_out(self):
        self.limiter.record("1.2.3.4")
        self.clock.now += 30
        self.limiter.record("1.2.3.4")
        self.clock.now += 31

        status = self.limiter.status("1.2.3.4")
        assert status.remaining == 1
        assert status.reset_after == 29


def _limited_app(*rules: RateLimitRule) -> FastAPI:
    app = FastAPI()
    app.add_middleware(RateLimitMiddleware, rules=list(rules))

    @app.get("/api/ping")
    async def ping():
        return {"ok": True}

    @app.post("/api/auth/login")
    async def login(ok: bool = True):
        if not ok:
            raise HTTPException(status_code=401, detail="bad credentials")
        return {"ok": True}

    @app.get("/health")
    async def health():
        return {"status": "healthy"}

    return app


@pytest.mark.asyncio
async def test_general_limit_returns_429_with_headers():
    rule = RateLimitRule(name="general", max_requests=2, window_seconds=900, paths=("/api",))
    transport = ASGITransport(app=_limited_app(rule))
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        first = await client.get("/api/ping")
        assert first.headers["X-RateLimit-Limit"] == "2"
        assert first.headers["X-RateLimit-Remaining"] == "1"

        await client.get("/api/ping")
        blocked = await client.get("/api/ping")

    assert blocked.status_code == 429
    body = blocked.json()
    assert body["success"] is False
    assert body["error"] == "rate_limit_exceeded"
    assert body["message"] == "Too many requests, please try again later."
    assert body["details"]["rule"] == "general"
    assert int(blocked.headers["Retry-After"]) > 0
    assert blocked.headers["X-RateLimit-Remaining"] == "0"


@pytest.mark.asyncio
async def test_health_is_never_limited():
    rule = RateLimitRule(name="everything", max_requests=1, window_seconds=900, paths=("/",))
    transport = ASGITransport(app=_limited_app(rule))
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        for _ in range(3):
            response = await client.get("/health")
            assert response.status_code == 200


@pytest.mark.asyncio
async def test_auth_rule_only_counts_failures():
    rule = RateLimitRule(
        name="auth",
        max_requests=2,
        window_seconds=900,
        paths=("/api/auth/login",),
        skip_successful=True,
        message="Too many authentication attempts, please try again in 15 minutes.",
    )
    transport = ASGITransport(app=_limited_app(rule))
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        for _ in range(5):
            assert (await client.post("/api/auth/login")).status_code == 200

        assert (await client.post("/api/auth/login", params={"ok": False})).status_code == 401
        assert (await client.post("/api/auth/login", params={"ok": False})).status_code == 401

        blocked = await client.post("/api/auth/login")

    assert blocked.status_code == 429
    assert blocked.json()["message"].startswith("Too many authentication attempts")


@pytest.mark.asyncio
async def test_clients_are_limited_separately():
    rule = RateLimitRule(name="general", max_requests=1, window_seconds=900, paths=("/api",))
    transport = ASGITransport(app=_limited_app(rule))
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        await client.get("/api/ping", headers={"X-Forwarded-For": "10.0.0.1"})
        blocked = await client.get("/api/ping", headers={"X-Forwarded-For": "10.0.0.1"})
        other = await client.get("/api/ping", headers={"X-Forwarded-For": "10.0.0.2"})

    assert blocked.status_code == 429
    assert other.status_code == 200
