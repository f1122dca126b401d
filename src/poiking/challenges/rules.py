"""Challenge rule vocabulary and the config resolver.

The challenge-config document is parsed once per run into a ``ChallengeRules``
object keyed by ``(period, challenge_type)``, so a missing bracket is an
explicit ``None`` rather than a silently misspelled lookup.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from poiking.globals_store import CHALLENGE_CONFIG_SLUG, find_global

logger = logging.getLogger(__name__)

PERIODS: tuple[str, ...] = ("daily", "weekly", "monthly")
TIERS: tuple[str, ...] = ("easy", "medium", "hard")

CHALLENGE_TYPES: tuple[str, ...] = (
    "entry_count",
    "crown_claim",
    "session_duration",
    "longest_session",
    "unique_pois",
    "category_variety",
    "category_similarity",
    "new_location",
)

# Types that target one sampled POI category
CATEGORY_CHALLENGE_TYPES: frozenset[str] = frozenset({"category_similarity", "entry_count"})

# Types whose target is measured in seconds
TIME_CHALLENGE_TYPES: frozenset[str] = frozenset({"session_duration", "longest_session"})

MAX_SESSION_TARGET_SECONDS = 3600

DEFAULT_GENERATION_COUNT = 3
DEFAULT_COSTS: dict[str, int] = {"easy": 10, "medium": 50, "hard": 100}

DEFAULT_PRESETS: dict[str, dict[str, dict[str, int]]] = {
    "daily": {
        "entry_count": {"easy": 1, "medium": 3, "hard": 5},
        "crown_claim": {"easy": 1, "medium": 2, "hard": 3},
        "session_duration": {"easy": 600, "medium": 1200, "hard": 1800},
        "longest_session": {"easy": 300, "medium": 600, "hard": 900},
        "unique_pois": {"easy": 2, "medium": 3, "hard": 5},
        "category_variety": {"easy": 2, "medium": 3, "hard": 4},
        "category_similarity": {"easy": 1, "medium": 2, "hard": 3},
        "new_location": {"easy": 1, "medium": 2, "hard": 3},
    },
    "weekly": {
        "entry_count": {"easy": 10, "medium": 25, "hard": 50},
        "crown_claim": {"easy": 3, "medium": 5, "hard": 10},
        "session_duration": {"easy": 3600, "medium": 7200, "hard": 10800},
        "longest_session": {"easy": 900, "medium": 1800, "hard": 3600},
        "unique_pois": {"easy": 5, "medium": 10, "hard": 20},
        "category_variety": {"easy": 3, "medium": 5, "hard": 7},
        "category_similarity": {"easy": 3, "medium": 5, "hard": 10},
        "new_location": {"easy": 3, "medium": 5, "hard": 10},
    },
    "monthly": {
        "entry_count": {"easy": 50, "medium": 100, "hard": 150},
        "crown_claim": {"easy": 10, "medium": 20, "hard": 30},
        "session_duration": {"easy": 14400, "medium": 28800, "hard": 43200},
        "longest_session": {"easy": 1800, "medium": 2700, "hard": 3600},
        "unique_pois": {"easy": 15, "medium": 30, "hard": 50},
        "category_variety": {"easy": 5, "medium": 8, "hard": 10},
        "category_similarity": {"easy": 10, "medium": 20, "hard": 30},
        "new_location": {"easy": 10, "medium": 20, "hard": 30},
    },
}

DEFAULT_CATEGORIES: list[dict] = [
    {"category": c, "difficultyAdjustment": 0}
    for c in (
        "park", "historic", "church", "monument", "museum",
        "memorial", "castle", "ruins", "artwork", "viewpoint",
    )
]


class PresetGroup(BaseModel):
    easy: int | None = None
    medium: int | None = None
    hard: int | None = None

    def for_tier(self, tier: str) -> int | None:
        return getattr(self, tier, None)


class CategoryOption(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    category: str
    difficulty_adjustment: int = Field(0, alias="difficultyAdjustment")


class ChallengeConfigDoc(BaseModel):
    """Shape of the challenge-config document. Every field is optional."""

    model_config = ConfigDict(populate_by_name=True)

    daily_challenges_count: int | None = Field(None, alias="dailyChallengesCount")
    weekly_challenges_count: int | None = Field(None, alias="weeklyChallengesCount")
    monthly_challenges_count: int | None = Field(None, alias="monthlyChallengesCount")
    presets: dict[str, dict[str, PresetGroup]] = Field(default_factory=dict)
    cost_multipliers: PresetGroup | None = Field(None, alias="costMultipliers")
    available_categories: list[CategoryOption] = Field(default_factory=list, alias="availableCategories")


def default_challenge_config() -> dict:
    """Document installed by the seed step."""
    return {
        "dailyChallengesCount": DEFAULT_GENERATION_COUNT,
        "weeklyChallengesCount": DEFAULT_GENERATION_COUNT,
        "monthlyChallengesCount": DEFAULT_GENERATION_COUNT,
        "presets": DEFAULT_PRESETS,
        "costMultipliers": dict(DEFAULT_COSTS),
        "availableCategories": DEFAULT_CATEGORIES,
    }


@dataclass
class ChallengeRules:
    """Resolved challenge tunables for one generation run."""

    counts: dict[str, int] = field(default_factory=dict)
    presets: dict[tuple[str, str], PresetGroup] = field(default_factory=dict)
    costs: dict[str, int] = field(default_factory=lambda: dict(DEFAULT_COSTS))
    categories: list[CategoryOption] = field(default_factory=list)

    def generation_count(self, period: str) -> int:
        return self.counts.get(period, DEFAULT_GENERATION_COUNT)

    def target_value(self, challenge_type: str, period: str, tier: str) -> int | None:
        """Configured target, or None when the bracket is not configured."""
        group = self.presets.get((period, challenge_type))
        if group is None:
            return None
        return group.for_tier(tier)

    def cost(self, tier: str) -> int:
        return self.costs.get(tier, DEFAULT_COSTS[tier])

    @classmethod
    def from_document(cls, doc: ChallengeConfigDoc) -> ChallengeRules:
        counts = {}
        for period in PERIODS:
            value = getattr(doc, f"{period}_challenges_count")
            if value is not None:
                counts[period] = value

        presets = {
            (period, challenge_type): group
            for period, by_type in doc.presets.items()
            for challenge_type, group in by_type.items()
        }

        costs = dict(DEFAULT_COSTS)
        if doc.cost_multipliers is not None:
            for tier in TIERS:
                value = doc.cost_multipliers.for_tier(tier)
                if value is not None:
                    costs[tier] = value

        return cls(
            counts=counts,
            presets=presets,
            costs=costs,
            categories=list(doc.available_categories),
        )


async def load_challenge_rules(db: AsyncSession) -> ChallengeRules:
    """Resolve challenge-config into ``ChallengeRules``.

    A missing or malformed document degrades to defaults (count 3, default
    costs, no presets, no categories); with no presets every slot is skipped.
    """
    raw = await find_global(db, CHALLENGE_CONFIG_SLUG)
    if raw is None:
        logger.warning("Challenge config not found, using defaults without presets")
        return ChallengeRules()
    try:
        doc = ChallengeConfigDoc.model_validate(raw)
    except ValidationError:
        logger.exception("Invalid challenge config, using defaults without presets")
        return ChallengeRules()
    return ChallengeRules.from_document(doc)
