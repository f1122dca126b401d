"""Reward lifecycle: activation, use, and per-user queries.

Each activation is its own ``active_rewards`` row, so concurrent activations
for one user append independent rows instead of rewriting a shared list.
"""

from __future__ import annotations

import logging
import random
from datetime import datetime, timedelta

from sqlalchemy import and_, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from poiking.calendar_utils import get_season, utcnow
from poiking.db.models import ActiveReward, Reward, User
from poiking.errors import RewardExpiredError, RewardNotFoundError, UserNotFoundError

logger = logging.getLogger(__name__)

REWARD_TYPES: tuple[str, ...] = (
    "entry_time_reduction",
    "bonus_seconds",
    "larger_radius",
    "extended_capture",
    "bonus_crowns",
    "decay_reduction",
    "coins",
)

SEASON_REWARD_TYPES: frozenset[str] = frozenset({"bonus_crowns"})


def expiry_policy(entry: ActiveReward) -> str:
    """Which retirement rule governs an activation: season, duration, uses or permanent."""
    if entry.season is not None:
        return "season"
    if entry.duration is not None:
        return "duration"
    if entry.uses_remaining is not None:
        return "uses"
    return "permanent"


def is_expired(entry: ActiveReward, now: datetime) -> bool:
    """True when the duration window has closed."""
    return entry.expires_at is not None and entry.expires_at <= now


def usable_filter(now: datetime):  # noqa: ANN201
    """SQL predicate for activations that still apply."""
    return and_(
        ActiveReward.is_active.is_(True),
        or_(ActiveReward.expires_at.is_(None), ActiveReward.expires_at > now),
        or_(ActiveReward.uses_remaining.is_(None), ActiveReward.uses_remaining > 0),
    )


async def _retire_expired_for_user(db: AsyncSession, user_id: int, now: datetime) -> int:
    """Deactivate the user's lapsed duration rewards; drop the ones with no uses left.

    Returns the number of rows touched.
    """
    result = await db.execute(
        select(ActiveReward).where(
            ActiveReward.user_id == user_id,
            ActiveReward.is_active.is_(True),
            ActiveReward.duration.is_not(None),
            ActiveReward.expires_at <= now,
        )
    )
    touched = 0
    for entry in result.scalars().all():
        if entry.uses_remaining is None or entry.uses_remaining > 0:
            entry.is_active = False
        else:
            await db.delete(entry)
        touched += 1
    return touched


async def activate_reward(
    db: AsyncSession,
    user_id: int,
    reward: Reward,
    challenge_id: int | None = None,
    now: datetime | None = None,
) -> ActiveReward | None:
    """Activate a catalog reward for a user.

    ``coins`` rewards are credited to the balance and leave no activation row;
    every other type returns the new ``ActiveReward``. Type and value are
    copied from the catalog so later catalog edits do not change it.
    """
    if now is None:
        now = utcnow()

    if reward.reward_type == "coins":
        user = await db.get(User, user_id)
        if user is None:
            raise UserNotFoundError(f"User {user_id} not found")
        user.coins += int(reward.reward_value)
        await db.flush()
        logger.info("Credited %d coins to user %s (reward %s)", int(reward.reward_value), user_id, reward.id)
        return None

    retired = await _retire_expired_for_user(db, user_id, now)
    if retired:
        logger.debug("Retired %d lapsed rewards for user %s", retired, user_id)

    duration = reward.reward_duration or None
    uses = reward.reward_uses or None
    season = None
    if reward.reward_type in SEASON_REWARD_TYPES:
        duration = None
        uses = None
        season = get_season(now)

    entry = ActiveReward(
        user_id=user_id,
        reward_id=reward.id,
        challenge_id=challenge_id,
        reward_type=reward.reward_type,
        reward_value=reward.reward_value,
        activated_at=now,
        duration=duration,
        uses_remaining=uses,
        season=season,
        expires_at=now + timedelta(hours=duration) if duration else None,
        is_active=True,
    )
    db.add(entry)
    await db.flush()
    return entry


async def use_reward(
    db: AsyncSession,
    user_id: int,
    activation_id: int,
    now: datetime | None = None,
) -> ActiveReward | None:
    """Consume one use of an activation.

    Returns the updated row, or None when the last use was spent and the row
    was deleted. Rewards without a use count are returned unchanged.
    """
    if now is None:
        now = utcnow()

    entry = await db.get(ActiveReward, activation_id)
    if entry is None or entry.user_id != user_id:
        raise RewardNotFoundError(f"Active reward {activation_id} not found")
    if not entry.is_active or is_expired(entry, now):
        raise RewardExpiredError(f"Active reward {activation_id} has expired")

    if entry.uses_remaining is None:
        return entry

    entry.uses_remaining -= 1
    if entry.uses_remaining <= 0:
        await db.delete(entry)
        await db.flush()
        return None

    await db.flush()
    return entry


async def list_active_rewards(
    db: AsyncSession,
    user_id: int,
    now: datetime | None = None,
) -> list[ActiveReward]:
    """Activations that currently apply for a user, oldest first."""
    if now is None:
        now = utcnow()
    result = await db.execute(
        select(ActiveReward)
        .where(ActiveReward.user_id == user_id, usable_filter(now))
        .order_by(ActiveReward.activated_at.asc(), ActiveReward.id.asc())
    )
    return list(result.scalars().all())


async def get_active_decay_reduction(
    db: AsyncSession,
    user_id: int,
    now: datetime | None = None,
) -> float:
    """Sum of the user's usable decay_reduction reward values."""
    if now is None:
        now = utcnow()
    result = await db.execute(
        select(func.coalesce(func.sum(ActiveReward.reward_value), 0.0)).where(
            ActiveReward.user_id == user_id,
            ActiveReward.reward_type == "decay_reduction",
            usable_filter(now),
        )
    )
    return float(result.scalar_one())


async def pick_reward_for_difficulty(
    db: AsyncSession,
    difficulty: int,
    rng: random.Random,
) -> Reward | None:
    """Uniformly pick an active catalog reward of exactly this difficulty."""
    result = await db.execute(
        select(Reward)
        .where(Reward.difficulty == difficulty, Reward.is_active.is_(True))
        .order_by(Reward.id)
        .limit(100)
    )
    rewards = list(result.scalars().all())
    if not rewards:
        return None
    return rng.choice(rewards)


async def get_or_create_coin_reward(db: AsyncSession, difficulty: int) -> Reward:
    """Coin reward worth ``difficulty`` coins, created on first use."""
    result = await db.execute(
        select(Reward)
        .where(Reward.difficulty == difficulty, Reward.reward_type == "coins")
        .order_by(Reward.id)
        .limit(1)
    )
    reward = result.scalar_one_or_none()
    if reward is not None:
        return reward

    reward = Reward(
        reward_type="coins",
        reward_value=float(difficulty),
        difficulty=difficulty,
        description=f"{difficulty} coin reward",
        is_active=True,
    )
    db.add(reward)
    await db.flush()
    logger.info("Created coin reward for difficulty %d", difficulty)
    return reward
