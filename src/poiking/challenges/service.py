"""User-facing challenge flows: listing, buyout and claiming."""

from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from poiking.calendar_utils import utcnow
from poiking.db.models import ActiveReward, Challenge, Reward, User
from poiking.errors import (
    ChallengeNotFoundError,
    ChallengeOwnershipError,
    ChallengeStateError,
    InsufficientCoinsError,
    UserNotFoundError,
)
from poiking.events import CHALLENGE_COMPLETED_CHANNEL
from poiking.redis_client import publish_event
from poiking.rewards.service import activate_reward

logger = logging.getLogger(__name__)


async def list_user_challenges(
    db: AsyncSession,
    user_id: int,
    period: str | None = None,
    include_expired: bool = False,
    now: datetime | None = None,
) -> list[Challenge]:
    """A user's challenges, newest first. Expired ones are hidden unless completed."""
    if now is None:
        now = utcnow()
    stmt = select(Challenge).where(Challenge.user_id == user_id)
    if period is not None:
        stmt = stmt.where(Challenge.period == period)
    if not include_expired:
        stmt = stmt.where((Challenge.expires_at > now) | Challenge.completed_at.is_not(None))
    result = await db.execute(stmt.order_by(Challenge.created_at.desc(), Challenge.id.desc()))
    return list(result.scalars().all())


async def _owned_challenge(db: AsyncSession, user_id: int, challenge_id: int) -> Challenge:
    challenge = await db.get(Challenge, challenge_id)
    if challenge is None:
        raise ChallengeNotFoundError(f"Challenge {challenge_id} not found")
    if challenge.user_id != user_id:
        raise ChallengeOwnershipError("Challenge does not belong to this user")
    return challenge


async def _grant_reward(
    db: AsyncSession,
    challenge: Challenge,
    now: datetime,
) -> ActiveReward | None:
    if challenge.reward_id is None:
        return None
    reward = await db.get(Reward, challenge.reward_id)
    if reward is None:
        logger.warning("Reward %s missing for challenge %s", challenge.reward_id, challenge.id)
        return None
    return await activate_reward(db, challenge.user_id, reward, challenge.id, now)


async def buyout_challenge(
    db: AsyncSession,
    user_id: int,
    challenge_id: int,
    redis: object = None,
    now: datetime | None = None,
) -> tuple[Challenge, ActiveReward | None]:
    """Spend coins to complete a challenge regardless of progress.

    Raises:
        ChallengeNotFoundError, ChallengeOwnershipError: bad id or owner.
        ChallengeStateError: free challenge or already completed.
        InsufficientCoinsError: balance below cost.
    """
    if now is None:
        now = utcnow()

    challenge = await _owned_challenge(db, user_id, challenge_id)
    if challenge.cost <= 0:
        raise ChallengeStateError("This challenge cannot be bought out")
    if challenge.completed_at is not None:
        raise ChallengeStateError("Challenge is already completed")

    user = await db.get(User, user_id)
    if user is None:
        raise UserNotFoundError(f"User {user_id} not found")
    if user.coins < challenge.cost:
        raise InsufficientCoinsError(challenge.cost, user.coins)

    user.coins -= challenge.cost
    challenge.completed_at = now
    challenge.claimed_at = now
    await db.flush()

    activation = await _grant_reward(db, challenge, now)
    logger.info("User %s bought out challenge %s for %d coins", user_id, challenge_id, challenge.cost)
    await publish_event(
        redis,
        CHALLENGE_COMPLETED_CHANNEL,
        {"user_id": user_id, "challenge_id": challenge_id, "buyout": True},
    )
    return challenge, activation


async def claim_challenge(
    db: AsyncSession,
    user_id: int,
    challenge_id: int,
    redis: object = None,
    now: datetime | None = None,
) -> tuple[Challenge, ActiveReward | None]:
    """Complete a challenge whose progress already meets its target.

    Raises:
        ChallengeNotFoundError, ChallengeOwnershipError: bad id or owner.
        ChallengeStateError: completed, expired or target not reached.
    """
    if now is None:
        now = utcnow()

    challenge = await _owned_challenge(db, user_id, challenge_id)
    if challenge.completed_at is not None:
        raise ChallengeStateError("Challenge is already completed")
    if challenge.expires_at <= now:
        raise ChallengeStateError("Challenge has expired")
    if challenge.progress < challenge.target_value:
        raise ChallengeStateError(
            f"Challenge progress {challenge.progress}/{challenge.target_value} has not reached the target"
        )

    challenge.completed_at = now
    challenge.claimed_at = now
    await db.flush()

    activation = await _grant_reward(db, challenge, now)
    await publish_event(
        redis,
        CHALLENGE_COMPLETED_CHANNEL,
        {"user_id": user_id, "challenge_id": challenge_id},
    )
    return challenge, activation
