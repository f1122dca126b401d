"""Global config documents (challenge-config, game-config) stored by slug."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from poiking.db.models import GlobalConfig

CHALLENGE_CONFIG_SLUG = "challenge-config"
GAME_CONFIG_SLUG = "game-config"


async def find_global(db: AsyncSession, slug: str) -> dict[str, Any] | None:
    """Return the config document for ``slug`` or None when it was never saved."""
    row = await db.get(GlobalConfig, slug)
    if row is None:
        return None
    return dict(row.data or {})


async def save_global(db: AsyncSession, slug: str, data: dict[str, Any]) -> None:
    """Create or replace a config document."""
    row = await db.get(GlobalConfig, slug)
    now = datetime.now(timezone.utc)
    if row is None:
        db.add(GlobalConfig(slug=slug, data=data, updated_at=now))
    else:
        row.data = data
        row.updated_at = now
    await db.flush()
