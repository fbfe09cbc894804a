"""
StudioGen Backend - Credit Accounting
=======================================

Credits are deducted before a generation call with a single guarded UPDATE
(credits >= cost), so concurrent requests can never drive a balance negative.
The deduction is part of the request transaction: if the model call fails the
request rolls back and the credits are returned.
"""

import logging
import uuid

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from studiogen.config import settings
from studiogen.exceptions import InsufficientCreditsError
from studiogen.models.user import User
from studiogen.schemas.generate import Quality

logger = logging.getLogger(__name__)

PREMIUM_QUALITY_ID = "premium"


def studio_image_cost(quality: Quality) -> int:
    if quality.id == PREMIUM_QUALITY_ID:
        return settings.credit_cost_studio_premium
    return settings.credit_cost_studio_standard


async def deduct_credits(db: AsyncSession, user_id: uuid.UUID, amount: int) -> None:
    """
    Atomically take `amount` credits from the user.

    Raises:
        InsufficientCreditsError: balance is lower than `amount`
    """
    if amount <= 0:
        return

    result = await db.execute(
        update(User)
        .where(User.id == user_id, User.credits >= amount)
        .values(credits=User.credits - amount)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        logger.info("Insufficient credits: user=%s required=%d", user_id, amount)
        raise InsufficientCreditsError(required=amount)

    logger.debug("Deducted %d credits from user=%s", amount, user_id)


async def get_balance(db: AsyncSession, user_id: uuid.UUID) -> int:
    result = await db.execute(select(User.credits).where(User.id == user_id))
    credits = result.scalar_one_or_none()
    return credits or 0
