"""Challenge expiry sweep.

Unfinished challenges past their ``expires_at`` are deleted. Completed
challenges are history and are never removed, whatever their expiry.
"""

from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from poiking.batch import BatchResult
from poiking.calendar_utils import utcnow
from poiking.db.models import Challenge

logger = logging.getLogger(__name__)


async def expire_challenges(
    db: AsyncSession,
    now: datetime | None = None,
    batch_size: int = 1000,
) -> BatchResult:
    if now is None:
        now = utcnow()

    result = BatchResult()
    expired = (
        await db.execute(
            select(Challenge)
            .where(Challenge.expires_at < now, Challenge.completed_at.is_(None))
            .order_by(Challenge.expires_at, Challenge.id)
            .limit(batch_size)
        )
    ).scalars().all()

    for challenge in expired:
        challenge_id = challenge.id
        result.processed += 1
        try:
            async with db.begin_nested():
                await db.delete(challenge)
        except Exception:
            logger.exception("Error deleting expired challenge %s", challenge_id)
            result.errors += 1
            continue
        await db.commit()
        result.affected += 1
        result.removed += 1

    logger.info("Expired %d challenges (%d errors)", result.removed, result.errors)
    return result
