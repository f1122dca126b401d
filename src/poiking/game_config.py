"""Game-wide tunables (session cap, decay) loaded from the game-config document."""

from __future__ import annotations

import logging

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from poiking.errors import ConfigurationMissingError
from poiking.globals_store import GAME_CONFIG_SLUG, find_global

logger = logging.getLogger(__name__)

DEFAULT_GAME_CONFIG: dict = {
    "dailySecondsLimit": 60,
    "defaultDecayPercentage": 5.0,
    "maxDecayReduction": 3.0,
}


class GameConfig(BaseModel):
    """Validated game-config document. ``dailySecondsLimit`` has no default."""

    model_config = ConfigDict(populate_by_name=True)

    daily_seconds_limit: int = Field(alias="dailySecondsLimit", gt=0, le=3600)
    default_decay_percentage: float = Field(5.0, alias="defaultDecayPercentage", ge=0, le=20)
    max_decay_reduction: float = Field(3.0, alias="maxDecayReduction", ge=0)

    @property
    def min_decay_percentage(self) -> float:
        """Floor for the effective decay rate after reductions."""
        return max(0.0, self.default_decay_percentage - self.max_decay_reduction)


async def load_game_config(db: AsyncSession) -> GameConfig:
    """Load and validate game-config.

    Raises:
        ConfigurationMissingError: document absent or a required field missing/invalid.
    """
    doc = await find_global(db, GAME_CONFIG_SLUG)
    if doc is None:
        raise ConfigurationMissingError(GAME_CONFIG_SLUG)
    try:
        return GameConfig.model_validate(doc)
    except ValidationError as exc:
        field = ".".join(str(p) for p in exc.errors()[0]["loc"]) if exc.errors() else None
        logger.error("Invalid %s document: %s", GAME_CONFIG_SLUG, exc)
        raise ConfigurationMissingError(GAME_CONFIG_SLUG, field) from exc
