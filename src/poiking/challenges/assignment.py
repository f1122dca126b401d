"""Periodic challenge assignment.

Daily challenges are generated per user. Weekly and monthly challenges are
generated once per run and the same batch is copied to every eligible user.
A user is eligible only when they hold no unexpired challenge of the period;
that guard is what makes re-running an assignment job safe. Each user's batch
is committed before the next user is processed.
"""

from __future__ import annotations

import logging
import random
from dataclasses import asdict, dataclass
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from poiking.calendar_utils import utcnow
from poiking.challenges.generator import CandidateChallenge, ChallengeGenerator
from poiking.challenges.rules import PERIODS, ChallengeRules, load_challenge_rules
from poiking.config import Settings, get_settings
from poiking.db.models import Challenge, Reward, User
from poiking.rewards.service import get_or_create_coin_reward, pick_reward_for_difficulty

logger = logging.getLogger(__name__)


@dataclass
class AssignmentResult:
    period: str
    users_processed: int = 0
    assigned: int = 0
    skipped_users: int = 0
    dropped: int = 0
    errors: int = 0

    def as_dict(self) -> dict:
        return asdict(self)


async def has_active_challenge(db: AsyncSession, user_id: int, period: str, now: datetime) -> bool:
    """True when the user holds a challenge of this period that has not expired."""
    result = await db.execute(
        select(Challenge.id)
        .where(
            Challenge.user_id == user_id,
            Challenge.period == period,
            Challenge.expires_at > now,
        )
        .limit(1)
    )
    return result.first() is not None


async def choose_reward(
    db: AsyncSession,
    candidate: CandidateChallenge,
    rng: random.Random,
    coin_rewards: bool = False,
) -> Reward | None:
    """Reward for a candidate, or None when the catalog has nothing at its difficulty."""
    if coin_rewards:
        return await get_or_create_coin_reward(db, candidate.reward_difficulty)
    return await pick_reward_for_difficulty(db, candidate.reward_difficulty, rng)


def _to_challenge(user_id: int, candidate: CandidateChallenge, reward: Reward | None) -> Challenge:
    return Challenge(
        user_id=user_id,
        period=candidate.period,
        challenge_type=candidate.challenge_type,
        title=candidate.title,
        description=candidate.description,
        target_value=candidate.target_value,
        target_category=candidate.target_category,
        reward_difficulty=candidate.reward_difficulty,
        cost=candidate.cost,
        reward_id=reward.id if reward is not None else None,
        progress=0,
        is_personal=candidate.is_personal,
        expires_at=candidate.expires_at,
    )


async def assign_challenges(
    db: AsyncSession,
    period: str,
    *,
    rules: ChallengeRules | None = None,
    rng: random.Random | None = None,
    now: datetime | None = None,
    settings: Settings | None = None,
) -> AssignmentResult:
    """Assign challenges of ``period`` to every user without an active one."""
    if period not in PERIODS:
        msg = f"Unknown challenge period: {period}"
        raise ValueError(msg)
    if settings is None:
        settings = get_settings()
    if now is None:
        now = utcnow()
    if rng is None:
        rng = random.Random()
    if rules is None:
        rules = await load_challenge_rules(db)

    generator = ChallengeGenerator(rules, rng=rng, tz_name=settings.game_timezone)
    coin_rewards = period in settings.coin_reward_periods
    shared = generator.generate_shared(period, now) if period != "daily" else None

    result = AssignmentResult(period=period)
    user_ids = (
        await db.execute(select(User.id).order_by(User.id).limit(settings.user_batch_size))
    ).scalars().all()

    for user_id in user_ids:
        result.users_processed += 1
        try:
            if await has_active_challenge(db, user_id, period, now):
                result.skipped_users += 1
                continue
            candidates = shared if shared is not None else generator.generate_for_user(period, now)
        except Exception:
            logger.exception("Error preparing %s challenges for user %s", period, user_id)
            result.errors += 1
            continue

        for candidate in candidates:
            try:
                async with db.begin_nested():
                    reward = await choose_reward(db, candidate, rng, coin_rewards)
                    if reward is None and candidate.cost > 0:
                        logger.warning(
                            "No active rewards for difficulty %d, dropping %s challenge",
                            candidate.reward_difficulty, candidate.challenge_type,
                        )
                        result.dropped += 1
                        continue
                    db.add(_to_challenge(user_id, candidate, reward))
                    await db.flush()
                result.assigned += 1
            except Exception:
                logger.exception("Error creating %s challenge for user %s", period, user_id)
                result.errors += 1
        await db.commit()

    logger.info(
        "%s assignment: %d assigned, %d users skipped, %d dropped, %d errors",
        period.capitalize(), result.assigned, result.skipped_users, result.dropped, result.errors,
    )
    return result
