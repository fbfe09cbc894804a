"""
StudioGen Backend - Security Headers Middleware
=================================================

Adds the usual hardening headers to every response: CSP, HSTS, nosniff,
frame denial and a referrer policy.

The interactive docs (/docs, /redoc) load their UI from a CDN, so they get
every header except the CSP.
"""

from typing import Iterable

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

DOCS_PATHS = {"/docs", "/redoc", "/docs/oauth2-redirect"}

HSTS_VALUE = "max-age=31536000; includeSubDomains; preload"


def build_csp(connect_sources: Iterable[str] = ()) -> str:
    connect = " ".join(["'self'", *connect_sources])
    directives = [
        "default-src 'self'",
        "script-src 'self'",
        "style-src 'self' 'unsafe-inline'",
        "img-src 'self' data: https:",
        f"connect-src {connect}",
        "font-src 'self'",
        "object-src 'none'",
        "media-src 'self'",
        "frame-src 'none'",
        "frame-ancestors 'none'",
        "base-uri 'self'",
    ]
    return "; ".join(directives)


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, connect_sources: Iterable[str] = (), **kwargs):
        super().__init__(app, **kwargs)
        self._csp = build_csp(connect_sources)

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        response = await call_next(request)
        headers = response.headers
        if request.url.path not in DOCS_PATHS:
            headers.setdefault("Content-Security-Policy", self._csp)
        headers.setdefault("Strict-Transport-Security", HSTS_VALUE)
        headers.setdefault("X-Content-Type-Options", "nosniff")
        headers.setdefault("X-Frame-Options", "DENY")
        headers.setdefault("Referrer-Policy", "no-referrer")
        headers.setdefault("Cross-Origin-Opener-Policy", "same-origin")
        return response
