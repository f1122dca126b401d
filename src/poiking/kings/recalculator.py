"""King-of-the-hill recomputation.

Every run rebuilds ownership from the full session history: per POI, the user
with the most summed ``seconds_earned`` is king, ties going to the lowest user
id. Users' ``current_king_of`` counters are then reconciled against the POI
table. Only changed rows are written, so a run over unchanged data persists
nothing. Each POI change is committed on its own; a run that fails later
keeps the POIs it already updated.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from poiking.db.models import POI, CaptureSession, User
from poiking.events import KING_CHANGED_CHANNEL
from poiking.redis_client import publish_event

logger = logging.getLogger(__name__)


@dataclass
class KingRecalcResult:
    pois_processed: int = 0
    kings_changed: int = 0
    kings_cleared: int = 0
    users_updated: int = 0
    errors: int = 0
    changes: list[dict] = field(default_factory=list)

    def as_dict(self) -> dict:
        data = asdict(self)
        data.pop("changes")
        return data


async def compute_kings(db: AsyncSession) -> dict[int, int]:
    """Map poi_id -> winning user_id over all sessions.

    Rows are ordered by total descending then user id ascending, so the first
    row seen for each POI is its king.
    """
    total = func.sum(CaptureSession.seconds_earned).label("total")
    rows = await db.execute(
        select(CaptureSession.poi_id, CaptureSession.user_id, total)
        .group_by(CaptureSession.poi_id, CaptureSession.user_id)
        .order_by(CaptureSession.poi_id, total.desc(), CaptureSession.user_id.asc())
    )
    kings: dict[int, int] = {}
    for poi_id, user_id, _total in rows:
        kings.setdefault(poi_id, user_id)
    return kings


async def reconcile_king_counts(db: AsyncSession) -> int:
    """Set every user's ``current_king_of`` to the POIs they hold. Returns rows changed."""
    counts = dict(
        (
            await db.execute(
                select(POI.current_king_id, func.count(POI.id))
                .where(POI.current_king_id.is_not(None))
                .group_by(POI.current_king_id)
            )
        ).all()
    )

    stale = await db.execute(
        select(User).where((User.current_king_of != 0) | User.id.in_(list(counts)))
    )
    updated = 0
    for user in stale.scalars().all():
        expected = counts.get(user.id, 0)
        if user.current_king_of != expected:
            user.current_king_of = expected
            updated += 1
    await db.flush()
    return updated


async def recalculate_kings(
    db: AsyncSession,
    redis: object = None,
    batch_size: int = 10_000,
) -> KingRecalcResult:
    result = KingRecalcResult()
    kings = await compute_kings(db)

    pois = (
        await db.execute(select(POI).order_by(POI.id).limit(batch_size))
    ).scalars().all()

    for poi in pois:
        poi_id = poi.id
        result.pois_processed += 1
        new_king = kings.get(poi_id)
        old_king = poi.current_king_id
        if new_king == old_king:
            continue
        try:
            async with db.begin_nested():
                poi.current_king_id = new_king
                await db.flush()
        except Exception:
            logger.exception("Error updating king for POI %s", poi_id)
            result.errors += 1
            continue
        await db.commit()

        if new_king is None:
            result.kings_cleared += 1
        else:
            result.kings_changed += 1
        change = {"poi_id": poi_id, "previous_king_id": old_king, "king_id": new_king}
        result.changes.append(change)
        await publish_event(redis, KING_CHANGED_CHANNEL, change)

    result.users_updated = await reconcile_king_counts(db)
    await db.commit()

    logger.info(
        "King recalculation: %d POIs, %d kings changed, %d cleared, %d users updated, %d errors",
        result.pois_processed, result.kings_changed, result.kings_cleared,
        result.users_updated, result.errors,
    )
    return result


async def get_crown_leaderboard(db: AsyncSession, limit: int = 50) -> list[User]:
    """Users holding at least one crown, most crowns first."""
    result = await db.execute(
        select(User)
        .where(User.current_king_of > 0)
        .order_by(User.current_king_of.desc(), User.total_seconds.desc(), User.id.asc())
        .limit(limit)
    )
    return list(result.scalars().all())
