"""Capture session recording.

A session is persisted first and then announced as ``SessionCreated``; the
progress tracker hangs off that event, so bookkeeping failures never undo the
session itself.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from poiking.calendar_utils import get_season, utc_day_bounds
from poiking.config import get_settings
from poiking.db.models import POI, CaptureSession, User
from poiking.errors import InvalidSessionError, SessionLimitExceededError, UserNotFoundError
from poiking.events import EventDispatcher, SessionCreated
from poiking.game_config import load_game_config
from poiking.progress.tracker import ProgressTracker

logger = logging.getLogger(__name__)


def build_dispatcher(db: AsyncSession, redis: object = None, max_attempts: int | None = None) -> EventDispatcher:
    """Dispatcher wired with the progress tracker for this DB session."""
    if max_attempts is None:
        max_attempts = get_settings().event_max_attempts
    dispatcher = EventDispatcher(max_attempts=max_attempts)
    dispatcher.register(SessionCreated, ProgressTracker(db, redis).handle)
    return dispatcher


async def seconds_earned_on_day(db: AsyncSession, user_id: int, poi_id: int, day: datetime) -> int:
    """Seconds already earned by the user at the POI on the UTC day containing ``day``."""
    start, end = utc_day_bounds(day)
    result = await db.execute(
        select(func.coalesce(func.sum(CaptureSession.seconds_earned), 0)).where(
            CaptureSession.user_id == user_id,
            CaptureSession.poi_id == poi_id,
            CaptureSession.start_time >= start,
            CaptureSession.start_time < end,
        )
    )
    return int(result.scalar_one())


async def record_session(
    db: AsyncSession,
    user_id: int,
    poi_id: int,
    seconds_earned: int,
    start_time: datetime,
    end_time: datetime | None = None,
    *,
    redis: object = None,
    dispatcher: EventDispatcher | None = None,
) -> CaptureSession:
    """Validate, persist and announce a capture session.

    Raises:
        InvalidSessionError: non-positive seconds, bad time range or unknown POI.
        UserNotFoundError: the user does not exist.
        ConfigurationMissingError: game-config is absent or has no daily limit.
        SessionLimitExceededError: the daily per-POI cap would be exceeded.
    """
    if seconds_earned <= 0:
        raise InvalidSessionError("secondsEarned must be positive")
    if start_time.tzinfo is None:
        start_time = start_time.replace(tzinfo=timezone.utc)
    if end_time is not None:
        if end_time.tzinfo is None:
            end_time = end_time.replace(tzinfo=timezone.utc)
        if end_time < start_time:
            raise InvalidSessionError("endTime must not be before startTime")

    if await db.get(User, user_id) is None:
        raise UserNotFoundError(f"User {user_id} not found")
    if await db.get(POI, poi_id) is None:
        raise InvalidSessionError(f"POI {poi_id} not found")

    game_config = await load_game_config(db)
    limit = game_config.daily_seconds_limit
    already = await seconds_earned_on_day(db, user_id, poi_id, start_time)
    if already + seconds_earned > limit:
        raise SessionLimitExceededError(limit, already, seconds_earned)

    session = CaptureSession(
        user_id=user_id,
        poi_id=poi_id,
        start_time=start_time,
        end_time=end_time,
        seconds_earned=seconds_earned,
        month=get_season(start_time),
    )
    db.add(session)
    await db.flush()
    logger.info("Recorded session %s: user=%s poi=%s seconds=%d", session.id, user_id, poi_id, seconds_earned)

    if dispatcher is None:
        dispatcher = build_dispatcher(db, redis)
    await dispatcher.dispatch(
        SessionCreated(
            session_id=session.id,
            user_id=user_id,
            poi_id=poi_id,
            seconds_earned=seconds_earned,
        )
    )
    return session
