"""record_session: validation, daily cap, event dispatch."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from poiking.db.models import Challenge, User
from poiking.errors import (
    ConfigurationMissingError,
    InvalidSessionError,
    SessionLimitExceededError,
    UserNotFoundError,
)
from poiking.events import EventDispatcher, SessionCreated
from poiking.sessions.service import record_session, seconds_earned_on_day

START = datetime(2026, 10, 14, 9, 30, tzinfo=timezone.utc)


class TestValidation:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("seconds", [0, -10])
    async def test_non_positive_seconds(self, db_session, factory, seconds):
        user = await factory.user()
        poi = await factory.poi()
        await factory.game_config()
        with pytest.raises(InvalidSessionError):
            await record_session(db_session, user.id, poi.id, seconds, START)

    @pytest.mark.asyncio
    async def test_end_before_start(self, db_session, factory):
        user = await factory.user()
        poi = await factory.poi()
        await factory.game_config()
        with pytest.raises(InvalidSessionError, match="endTime"):
            await record_session(db_session, user.id, poi.id, 10, START, START - timedelta(seconds=1))

    @pytest.mark.asyncio
    async def test_unknown_user(self, db_session, factory):
        poi = await factory.poi()
        await factory.game_config()
        with pytest.raises(UserNotFoundError):
            await record_session(db_session, 404, poi.id, 10, START)

    @pytest.mark.asyncio
    async def test_unknown_poi(self, db_session, factory):
        user = await factory.user()
        await factory.game_config()
        with pytest.raises(InvalidSessionError, match="POI"):
            await record_session(db_session, user.id, 404, 10, START)

    @pytest.mark.asyncio
    async def test_missing_game_config(self, db_session, factory):
        user = await factory.user()
        poi = await factory.poi()
        with pytest.raises(ConfigurationMissingError):
            await record_session(db_session, user.id, poi.id, 10, START)


class TestDailyCap:
    @pytest.mark.asyncio
    async def test_cap_enforced_per_poi_and_day(self, db_session, factory):
        user = await factory.user()
        poi = await factory.poi()
        other = await factory.poi()
        await factory.game_config(dailySecondsLimit=60)

        await record_session(db_session, user.id, poi.id, 40, START, dispatcher=EventDispatcher())
        await record_session(db_session, user.id, poi.id, 20, START + timedelta(minutes=5), dispatcher=EventDispatcher())

        with pytest.raises(SessionLimitExceededError) as exc_info:
            await record_session(db_session, user.id, poi.id, 1, START + timedelta(minutes=10))
        assert exc_info.value.already_earned == 60
        assert exc_info.value.limit == 60

        # another POI and the next UTC day have their own budget
        await record_session(db_session, user.id, other.id, 60, START, dispatcher=EventDispatcher())
        await record_session(db_session, user.id, poi.id, 60, START + timedelta(days=1), dispatcher=EventDispatcher())

        assert await seconds_earned_on_day(db_session, user.id, poi.id, START) == 60

    @pytest.mark.asyncio
    async def test_naive_start_treated_as_utc(self, db_session, factory):
        user = await factory.user()
        poi = await factory.poi()
        await factory.game_config()
        session = await record_session(
            db_session, user.id, poi.id, 10, START.replace(tzinfo=None), dispatcher=EventDispatcher()
        )
        assert session.start_time.tzinfo is not None
        assert session.month == "2026-10"


class TestDispatch:
    @pytest.mark.asyncio
    async def test_event_emitted_after_persist(self, db_session, factory):
        user = await factory.user()
        poi = await factory.poi()
        await factory.game_config()
        seen: list[SessionCreated] = []

        async def recorder(event):
            seen.append(event)

        dispatcher = EventDispatcher()
        dispatcher.register(SessionCreated, recorder)
        session = await record_session(db_session, user.id, poi.id, 25, START, dispatcher=dispatcher)

        assert seen == [SessionCreated(session_id=session.id, user_id=user.id, poi_id=poi.id, seconds_earned=25)]

    @pytest.mark.asyncio
    async def test_default_dispatcher_runs_tracker(self, db_session, factory):
        user = await factory.user()
        poi = await factory.poi()
        await factory.game_config()
        challenge = await factory.challenge(user, "entry_count", 2)

        await record_session(db_session, user.id, poi.id, 30, START)

        refreshed = await db_session.get(User, user.id)
        assert refreshed.total_seconds == 30
        assert (await db_session.get(Challenge, challenge.id)).progress == 1

    @pytest.mark.asyncio
    async def test_failing_handler_keeps_session(self, db_session, factory):
        user = await factory.user()
        poi = await factory.poi()
        await factory.game_config()

        async def broken(event):
            raise RuntimeError("tracker down")

        dispatcher = EventDispatcher(max_attempts=2)
        dispatcher.register(SessionCreated, broken)
        session = await record_session(db_session, user.id, poi.id, 10, START, dispatcher=dispatcher)
        assert session.id is not None
