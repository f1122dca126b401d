"""Challenge candidate generation.

Two sampling modes share one code path:

* personal (``generate_for_user``): challenge types are drawn without
  replacement, so one batch never repeats a type;
* shared (``generate_shared``): types are drawn with replacement per slot.

Generation is not idempotent on its own. Callers must check that the subject
has no unexpired challenge of the period before calling.
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from datetime import datetime

from poiking.calendar_utils import challenge_expiry, utcnow
from poiking.challenges.difficulty import get_reward_difficulty
from poiking.challenges.rules import (
    CATEGORY_CHALLENGE_TYPES,
    CHALLENGE_TYPES,
    MAX_SESSION_TARGET_SECONDS,
    TIERS,
    ChallengeRules,
)
from poiking.challenges.templates import render_description, render_title

logger = logging.getLogger(__name__)


@dataclass
class CandidateChallenge:
    """A generated challenge before a reward is attached and it is persisted."""

    period: str
    challenge_type: str
    tier: str
    target_value: int
    reward_difficulty: int
    cost: int
    title: str
    description: str
    expires_at: datetime
    is_personal: bool
    target_category: str | None = None


def apply_target_caps(challenge_type: str, period: str, target_value: int) -> int:
    """Clamp targets a single day cannot reasonably reach."""
    if challenge_type == "longest_session":
        return min(target_value, MAX_SESSION_TARGET_SECONDS)
    if challenge_type == "session_duration" and period == "daily":
        return min(target_value, MAX_SESSION_TARGET_SECONDS)
    return target_value


class ChallengeGenerator:
    """Builds candidate challenge batches from resolved rules."""

    def __init__(
        self,
        rules: ChallengeRules,
        rng: random.Random | None = None,
        tz_name: str = "UTC",
    ) -> None:
        self.rules = rules
        self.rng = rng or random.Random()
        self.tz_name = tz_name

    def generate_for_user(self, period: str, now: datetime | None = None) -> list[CandidateChallenge]:
        """Personal batch: no duplicate challenge types."""
        return self.generate(period, sample_with_replacement=False, is_personal=True, now=now)

    def generate_shared(self, period: str, now: datetime | None = None) -> list[CandidateChallenge]:
        """Shared batch for all users: types sampled with replacement."""
        return self.generate(period, sample_with_replacement=True, is_personal=False, now=now)

    def select_tiers(self, count: int) -> list[str]:
        """One of each tier (shuffled) when count >= 3, else uniform with replacement."""
        if count >= 3:
            tiers = list(TIERS)
            self.rng.shuffle(tiers)
            return tiers[:count]
        return [self.rng.choice(TIERS) for _ in range(count)]

    def generate(
        self,
        period: str,
        *,
        sample_with_replacement: bool = False,
        is_personal: bool = True,
        now: datetime | None = None,
    ) -> list[CandidateChallenge]:
        if now is None:
            now = utcnow()

        count = self.rules.generation_count(period)
        tiers = self.select_tiers(count)
        expires_at = challenge_expiry(period, now, self.tz_name)

        type_pool = list(CHALLENGE_TYPES)
        self.rng.shuffle(type_pool)

        candidates: list[CandidateChallenge] = []
        for tier in tiers:
            if sample_with_replacement:
                challenge_type = self.rng.choice(CHALLENGE_TYPES)
            elif type_pool:
                challenge_type = type_pool.pop()
            else:
                break

            candidate = self._build(period, tier, challenge_type, expires_at, is_personal)
            if candidate is not None:
                candidates.append(candidate)

        return candidates

    def _build(
        self,
        period: str,
        tier: str,
        challenge_type: str,
        expires_at: datetime,
        is_personal: bool,
    ) -> CandidateChallenge | None:
        target_value = self.rules.target_value(challenge_type, period, tier)
        if not target_value:
            logger.warning("No preset found for %s %s %s, skipping", challenge_type, period, tier)
            return None
        target_value = apply_target_caps(challenge_type, period, target_value)

        category: str | None = None
        adjustment = 0
        if challenge_type in CATEGORY_CHALLENGE_TYPES and self.rules.categories:
            option = self.rng.choice(self.rules.categories)
            category = option.category
            adjustment = option.difficulty_adjustment
        elif challenge_type == "category_similarity":
            logger.warning("No categories configured for category_similarity, skipping")
            return None

        return CandidateChallenge(
            period=period,
            challenge_type=challenge_type,
            tier=tier,
            target_value=target_value,
            target_category=category,
            reward_difficulty=get_reward_difficulty(period, adjustment, self.rng),
            cost=self.rules.cost(tier),
            title=render_title(challenge_type, target_value, period, category),
            description=render_description(challenge_type, target_value, period, category),
            expires_at=expires_at,
            is_personal=is_personal,
        )
