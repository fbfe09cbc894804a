"""
StudioGen Backend - Audit Logging
===================================

Writes security events (logins, lockouts, password changes...) to audit_logs.

Each entry is written inside a SAVEPOINT: a failing insert is rolled back on
its own, logged, and never fails the request that triggered it.
"""

import logging
import uuid
from typing import Any, Dict, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from studiogen.models.user import AuditAction, AuditLog
from studiogen.utils import ClientInfo

logger = logging.getLogger(__name__)


async def log_event(
    db: AsyncSession,
    action: AuditAction,
    user_id: Optional[uuid.UUID] = None,
    client: Optional[ClientInfo] = None,
    details: Optional[Dict[str, Any]] = None,
) -> None:
    entry = AuditLog(
        user_id=user_id,
        action=action.value,
        details=details,
        ip_address=client.ip_address if client else None,
        user_agent=client.user_agent if client else None,
    )
    try:
        async with db.begin_nested():
            db.add(entry)
    except SQLAlchemyError as e:
        logger.warning("Failed to write audit event %s: %s", action.value, e)
        return

    logger.info(
        "Audit: %s user=%s ip=%s",
        action.value,
        user_id,
        client.ip_address if client else "-",
    )
