"""Scheduled active-reward sweeps.

Two independent sweeps prune ``active_rewards``:

* time/use: inactive rows, lapsed duration rows and rows with no uses left;
* season: ``bonus_crowns`` rows stamped with the previous calendar month.

Both run per user inside a savepoint, commit each user as it finishes, and
are naturally idempotent: a second run finds nothing left to remove.
"""

from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy import and_, delete, distinct, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from poiking.batch import BatchResult
from poiking.calendar_utils import get_previous_season, utcnow
from poiking.db.models import ActiveReward

logger = logging.getLogger(__name__)


def stale_filter(now: datetime):  # noqa: ANN201
    """Rows the time/use sweep removes."""
    return or_(
        ActiveReward.is_active.is_(False),
        and_(ActiveReward.duration.is_not(None), ActiveReward.expires_at <= now),
        and_(ActiveReward.uses_remaining.is_not(None), ActiveReward.uses_remaining <= 0),
    )


def season_filter(season: str):  # noqa: ANN201
    return and_(ActiveReward.season == season, ActiveReward.reward_type == "bonus_crowns")


async def _sweep(db: AsyncSession, condition, batch_size: int, label: str) -> BatchResult:  # noqa: ANN001
    result = BatchResult()
    user_ids = (
        await db.execute(
            select(distinct(ActiveReward.user_id))
            .where(condition)
            .order_by(ActiveReward.user_id)
            .limit(batch_size)
        )
    ).scalars().all()

    for user_id in user_ids:
        result.processed += 1
        try:
            async with db.begin_nested():
                deleted = await db.execute(
                    delete(ActiveReward)
                    .where(ActiveReward.user_id == user_id, condition)
                    .execution_options(synchronize_session=False)
                )
        except Exception:
            logger.exception("Error sweeping %s rewards for user %s", label, user_id)
            result.errors += 1
            continue
        await db.commit()
        if deleted.rowcount:
            result.affected += 1
            result.removed += deleted.rowcount

    logger.info(
        "%s reward sweep: %d users checked, %d updated, %d entries removed, %d errors",
        label, result.processed, result.affected, result.removed, result.errors,
    )
    return result


async def sweep_expired_rewards(
    db: AsyncSession,
    now: datetime | None = None,
    batch_size: int = 1000,
) -> BatchResult:
    """Remove inactive, lapsed and used-up activations."""
    if now is None:
        now = utcnow()
    return await _sweep(db, stale_filter(now), batch_size, "Expired")


async def sweep_season_rewards(
    db: AsyncSession,
    now: datetime | None = None,
    batch_size: int = 1000,
) -> BatchResult:
    """Remove last month's ``bonus_crowns`` activations."""
    season = get_previous_season(now)
    logger.info("Expiring season rewards for %s", season)
    return await _sweep(db, season_filter(season), batch_size, "Season")
