"""Daily decay of accumulated capture seconds."""

from __future__ import annotations

import logging
import math
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from poiking.batch import BatchResult
from poiking.calendar_utils import utcnow
from poiking.db.models import User
from poiking.game_config import GameConfig, load_game_config
from poiking.rewards.service import get_active_decay_reduction

logger = logging.getLogger(__name__)


def effective_decay_percentage(config: GameConfig, reduction: float) -> float:
    """Decay rate after reward reductions, never below the configured floor."""
    return max(config.min_decay_percentage, config.default_decay_percentage - reduction)


def apply_decay(total_seconds: int, percentage: float) -> int:
    """New total after one decay step. Never drops below 1."""
    return max(1, math.floor(total_seconds * (100 - percentage) / 100))


async def run_daily_decay(
    db: AsyncSession,
    now: datetime | None = None,
    batch_size: int = 10_000,
    config: GameConfig | None = None,
) -> BatchResult:
    """Decay every user with seconds on record.

    Not safe to run twice for the same day: each run decays again. Users are
    committed one at a time, so a failed run keeps the users already decayed.

    Raises:
        ConfigurationMissingError: game-config is missing.
    """
    if now is None:
        now = utcnow()
    if config is None:
        config = await load_game_config(db)

    result = BatchResult()
    users = (
        await db.execute(
            select(User).where(User.total_seconds > 0).order_by(User.id).limit(batch_size)
        )
    ).scalars().all()

    for user in users:
        user_id = user.id
        result.processed += 1
        try:
            async with db.begin_nested():
                reduction = await get_active_decay_reduction(db, user_id, now)
                percentage = effective_decay_percentage(config, reduction)
                new_total = apply_decay(user.total_seconds, percentage)
                if new_total != user.total_seconds:
                    user.total_seconds = new_total
                    await db.flush()
                    result.affected += 1
        except Exception:
            logger.exception("Error applying decay to user %s", user_id)
            result.errors += 1
            continue
        await db.commit()

    logger.info(
        "Daily decay: %d users processed, %d updated, %d errors (default %.1f%%)",
        result.processed, result.affected, result.errors, config.default_decay_percentage,
    )
    return result
