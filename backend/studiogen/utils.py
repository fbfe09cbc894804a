"""
StudioGen Backend - Small Shared Helpers
==========================================

Time handling and client identification used by services, dependencies
and middleware.

All timestamps are timezone-aware UTC. SQLite (used by the test suite) hands
back naive datetimes for TIMESTAMP WITH TIME ZONE columns, so anything read
from the database goes through `as_utc()` before being compared.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from starlette.requests import Request


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive datetimes; convert aware ones to UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def to_millis(value: datetime) -> int:
    """Epoch milliseconds, the timestamp format the project endpoints return."""
    return int(as_utc(value).timestamp() * 1000)


def get_client_ip(request: Request) -> str:
    """
    Best-effort client IP.

    Uses the first entry of X-Forwarded-For when the app runs behind a proxy,
    otherwise the socket peer address.
    """
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    if request.client and request.client.host:
        return request.client.host
    return "unknown"


@dataclass(frozen=True)
class ClientInfo:
    """Who is calling: recorded on refresh tokens and audit log entries."""

    ip_address: str
    user_agent: Optional[str] = None

    @classmethod
    def from_request(cls, request: Request) -> "ClientInfo":
        return cls(
            ip_address=get_client_ip(request),
            user_agent=request.headers.get("user-agent"),
        )
