"""Challenge progress tracking driven by SessionCreated events."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from datetime import datetime

from sqlalchemy import distinct, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from poiking.calendar_utils import utcnow
from poiking.db.models import POI, CaptureSession, Challenge, Reward, User
from poiking.events import CHALLENGE_COMPLETED_CHANNEL, SessionCreated
from poiking.redis_client import publish_event
from poiking.rewards.service import activate_reward

logger = logging.getLogger(__name__)

ProgressFormula = Callable[["ProgressTracker", Challenge, SessionCreated, POI | None], Awaitable[int]]


class ProgressTracker:
    """Applies one session to the user's stats and open challenges."""

    def __init__(self, db: AsyncSession, redis: object = None) -> None:
        self.db = db
        self.redis = redis

    async def on_session_created(self, event: SessionCreated, now: datetime | None = None) -> list[int]:
        """Hook entry point. Never raises; returns ids of challenges completed."""
        try:
            return await self.handle(event, now)
        except Exception:
            logger.exception("Progress tracking failed for session %s", event.session_id)
            return []

    async def handle(self, event: SessionCreated, now: datetime | None = None) -> list[int]:
        """Process one session.

        Only the user-stats step may raise (it is rolled back, so a retry is
        safe); challenge errors are logged per challenge and skipped.
        """
        if now is None:
            now = utcnow()

        session = await self.db.get(CaptureSession, event.session_id)
        if session is None:
            logger.warning("Session %s not found, nothing to track", event.session_id)
            return []

        async with self.db.begin_nested():
            await self._update_user_stats(session, now)

        try:
            poi = await self.db.get(POI, session.poi_id)
            challenges = await self._open_challenges(session.user_id)
        except Exception:
            logger.exception("Failed to load challenges for user %s", session.user_id)
            return []

        completed: list[int] = []
        for challenge in challenges:
            challenge_id, challenge_type = challenge.id, challenge.challenge_type
            try:
                async with self.db.begin_nested():
                    if await self._apply(challenge, event, poi, now):
                        completed.append(challenge_id)
            except Exception:
                logger.exception(
                    "Failed to update challenge %s (%s) for user %s",
                    challenge_id, challenge_type, event.user_id,
                )

        for challenge_id in completed:
            await publish_event(
                self.redis,
                CHALLENGE_COMPLETED_CHANNEL,
                {"user_id": event.user_id, "challenge_id": challenge_id},
            )
        return completed

    async def _update_user_stats(self, session: CaptureSession, now: datetime) -> None:
        user = await self.db.get(User, session.user_id)
        if user is None:
            logger.warning("User %s not found for session %s", session.user_id, session.id)
            return
        user.total_seconds += session.seconds_earned
        user.total_pois_claimed = await self._distinct_poi_count(session.user_id)
        user.last_active = now
        await self.db.flush()

    async def _open_challenges(self, user_id: int) -> list[Challenge]:
        # Expired but incomplete challenges still count until the sweep removes them
        result = await self.db.execute(
            select(Challenge)
            .where(Challenge.user_id == user_id, Challenge.completed_at.is_(None))
            .order_by(Challenge.id)
        )
        return list(result.scalars().all())

    async def _apply(
        self,
        challenge: Challenge,
        event: SessionCreated,
        poi: POI | None,
        now: datetime,
    ) -> bool:
        """Update progress; complete and reward when the target is reached."""
        formula = PROGRESS_FORMULAS.get(challenge.challenge_type)
        if formula is None:
            logger.warning("Unknown challenge type %s on challenge %s", challenge.challenge_type, challenge.id)
            return False

        challenge.progress = await formula(self, challenge, event, poi)

        finished = False
        if challenge.progress >= challenge.target_value and challenge.completed_at is None:
            challenge.completed_at = now
            finished = True
            if challenge.reward_id is not None:
                reward = await self.db.get(Reward, challenge.reward_id)
                if reward is not None:
                    await activate_reward(self.db, challenge.user_id, reward, challenge.id, now)
                else:
                    logger.warning("Reward %s missing for challenge %s", challenge.reward_id, challenge.id)
            logger.info(
                "Challenge %s (%s) completed by user %s",
                challenge.id, challenge.challenge_type, challenge.user_id,
            )

        await self.db.flush()
        return finished

    # --- Counting queries ---

    async def _distinct_poi_count(self, user_id: int) -> int:
        result = await self.db.execute(
            select(func.count(distinct(CaptureSession.poi_id))).where(CaptureSession.user_id == user_id)
        )
        return int(result.scalar_one())

    async def _distinct_category_count(self, user_id: int) -> int:
        result = await self.db.execute(
            select(func.count(distinct(POI.category)))
            .select_from(CaptureSession)
            .join(POI, POI.id == CaptureSession.poi_id)
            .where(CaptureSession.user_id == user_id, POI.category.is_not(None))
        )
        return int(result.scalar_one())

    async def _sessions_at_poi(self, user_id: int, poi_id: int, exclude_id: int | None = None) -> int:
        stmt = select(func.count(CaptureSession.id)).where(
            CaptureSession.user_id == user_id,
            CaptureSession.poi_id == poi_id,
        )
        if exclude_id is not None:
            stmt = stmt.where(CaptureSession.id != exclude_id)
        result = await self.db.execute(stmt)
        return int(result.scalar_one())


# --- Progress formulas, one per challenge type ---


async def _longest_session(tracker: ProgressTracker, c: Challenge, s: SessionCreated, poi: POI | None) -> int:
    return max(c.progress, s.seconds_earned)


async def _session_duration(tracker: ProgressTracker, c: Challenge, s: SessionCreated, poi: POI | None) -> int:
    return c.progress + s.seconds_earned


async def _entry_count(tracker: ProgressTracker, c: Challenge, s: SessionCreated, poi: POI | None) -> int:
    return c.progress + 1


async def _unique_pois(tracker: ProgressTracker, c: Challenge, s: SessionCreated, poi: POI | None) -> int:
    return await tracker._distinct_poi_count(s.user_id)


async def _crown_claim(tracker: ProgressTracker, c: Challenge, s: SessionCreated, poi: POI | None) -> int:
    if poi is not None and poi.current_king_id == s.user_id:
        return c.progress + 1
    return c.progress


async def _category_variety(tracker: ProgressTracker, c: Challenge, s: SessionCreated, poi: POI | None) -> int:
    return await tracker._distinct_category_count(s.user_id)


async def _category_similarity(tracker: ProgressTracker, c: Challenge, s: SessionCreated, poi: POI | None) -> int:
    if poi is None or c.target_category is None or c.target_category != poi.category:
        return c.progress
    return await tracker._sessions_at_poi(s.user_id, s.poi_id)


async def _new_location(tracker: ProgressTracker, c: Challenge, s: SessionCreated, poi: POI | None) -> int:
    if await tracker._sessions_at_poi(s.user_id, s.poi_id, exclude_id=s.session_id) == 0:
        return c.progress + 1
    return c.progress


PROGRESS_FORMULAS: dict[str, ProgressFormula] = {
    "longest_session": _longest_session,
    "session_duration": _session_duration,
    "entry_count": _entry_count,
    "unique_pois": _unique_pois,
    "crown_claim": _crown_claim,
    "category_variety": _category_variety,
    "category_similarity": _category_similarity,
    "new_location": _new_location,
}
