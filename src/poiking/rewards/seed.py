"""Seed data: reward catalog plus the default challenge-config and game-config documents.

Catalog sizing rule: ``value x uses`` tracks the difficulty. Difficulties 1-6
grant ``24 x difficulty`` hour windows with 1-3 uses; 7-9 are permanent
(use-limited only) and add bonus crowns.
"""

from __future__ import annotations

import logging

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from poiking.challenges.rules import default_challenge_config
from poiking.db.models import Reward
from poiking.game_config import DEFAULT_GAME_CONFIG
from poiking.globals_store import CHALLENGE_CONFIG_SLUG, GAME_CONFIG_SLUG, find_global, save_global

logger = logging.getLogger(__name__)


def _pct(value: float) -> str:
    return f"{value:g}%"


def build_reward_catalog() -> list[dict]:
    """Seed rows for the reward catalog."""
    rows: list[dict] = []
    for difficulty in range(1, 10):
        permanent = difficulty >= 7
        duration = None if permanent else 24 * difficulty
        use_counts = (1, 2) if permanent else (1, 2, 3)

        for uses in use_counts:
            fraction = round(difficulty / 100 / uses, 4)
            rows.append({
                "reward_type": "entry_time_reduction",
                "reward_value": fraction,
                "reward_duration": duration,
                "reward_uses": uses,
                "difficulty": difficulty,
                "description": f"{_pct(round(fraction * 100, 2))} entry time reduction",
            })
        for uses in use_counts:
            points = round(difficulty / uses, 2)
            rows.append({
                "reward_type": "decay_reduction",
                "reward_value": points,
                "reward_duration": duration,
                "reward_uses": uses,
                "difficulty": difficulty,
                "description": f"{_pct(points)} decay reduction",
            })
        if 3 <= difficulty <= 6:
            for uses in use_counts:
                fraction = round(difficulty / 100 / uses, 4)
                rows.append({
                    "reward_type": "larger_radius",
                    "reward_value": fraction,
                    "reward_duration": duration,
                    "reward_uses": uses,
                    "difficulty": difficulty,
                    "description": f"{_pct(round(fraction * 100, 2))} larger radius",
                })
        if permanent:
            crowns = difficulty - 6
            rows.append({
                "reward_type": "bonus_crowns",
                "reward_value": float(crowns),
                "reward_duration": None,
                "reward_uses": 1,
                "difficulty": difficulty,
                "description": f"{crowns} bonus crown{'s' if crowns > 1 else ''}",
            })
    return rows


async def seed_rewards(db: AsyncSession) -> int:
    """Insert the catalog when the rewards table is empty. Returns rows created."""
    existing = (await db.execute(select(func.count(Reward.id)))).scalar_one()
    if existing:
        logger.info("Reward catalog already has %d rows, skipping", existing)
        return 0

    catalog = build_reward_catalog()
    for row in catalog:
        db.add(Reward(is_active=True, **row))
    await db.flush()
    logger.info("Seeded %d rewards", len(catalog))
    return len(catalog)


async def seed_game_data(db: AsyncSession) -> dict[str, int]:
    """Install the reward catalog and both config documents if missing."""
    created_configs = 0
    if await find_global(db, CHALLENGE_CONFIG_SLUG) is None:
        await save_global(db, CHALLENGE_CONFIG_SLUG, default_challenge_config())
        created_configs += 1
    if await find_global(db, GAME_CONFIG_SLUG) is None:
        await save_global(db, GAME_CONFIG_SLUG, dict(DEFAULT_GAME_CONFIG))
        created_configs += 1

    rewards = await seed_rewards(db)
    await db.commit()
    return {"rewards": rewards, "configs": created_configs}
