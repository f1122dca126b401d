"""Reward difficulty computation (1..9)."""

from __future__ import annotations

import random

MIN_DIFFICULTY = 1
MAX_DIFFICULTY = 9

PERIOD_DIFFICULTY_RANGES: dict[str, tuple[int, int]] = {
    "daily": (1, 4),
    "weekly": (2, 8),
    "monthly": (6, 9),
}


def get_reward_difficulty_range(period: str) -> tuple[int, int]:
    """Inclusive (min, max) bracket for a challenge period."""
    try:
        return PERIOD_DIFFICULTY_RANGES[period]
    except KeyError:
        msg = f"Unknown challenge period: {period}"
        raise ValueError(msg) from None


def get_reward_difficulty(
    period: str,
    category_adjustment: int = 0,
    rng: random.Random | None = None,
) -> int:
    """Sample a reward difficulty from the period bracket, shifted by the category adjustment.

    The result is always clamped into [1, 9].
    """
    rng = rng or random
    low, high = get_reward_difficulty_range(period)
    difficulty = rng.randint(low, high) + category_adjustment
    return max(MIN_DIFFICULTY, min(MAX_DIFFICULTY, difficulty))
