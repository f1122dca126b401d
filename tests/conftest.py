"""Shared test fixtures: in-memory SQLite engine, sessions, factories, HTTP client."""

from __future__ import annotations

from collections.abc import AsyncGenerator
from datetime import datetime, timedelta, timezone
from itertools import count

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from poiking.config import Settings, get_settings
from poiking.database import enable_sqlite_savepoints, get_session
from poiking.db import models  # noqa: F401 - register tables for create_all
from poiking.db.base import Base
from poiking.db.models import POI, CaptureSession, Challenge, Reward, User
from poiking.game_config import DEFAULT_GAME_CONFIG
from poiking.globals_store import GAME_CONFIG_SLUG, save_global

TEST_DATABASE_URL = "sqlite+aiosqlite://"


@pytest_asyncio.fixture
async def engine() -> AsyncGenerator[AsyncEngine, None]:
    """Fresh in-memory database per test."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    enable_sqlite_savepoints(engine)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory: async_sessionmaker[AsyncSession]) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        database_url=TEST_DATABASE_URL,
        redis_url="redis://localhost:6379/15",
        log_format="console",
        user_batch_size=100,
        poi_batch_size=100,
        sweep_batch_size=100,
        cron_secret="",
    )


class GameFactory:
    """Creates rows with sensible defaults; every method flushes."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db
        self._seq = count(1)

    async def user(self, **overrides) -> User:
        n = next(self._seq)
        data = {"username": f"player{n}", "email": f"player{n}@example.com"}
        data.update(overrides)
        user = User(**data)
        self.db.add(user)
        await self.db.flush()
        return user

    async def poi(self, category: str | None = "park", **overrides) -> POI:
        n = next(self._seq)
        data = {
            "name": f"POI {n}",
            "latitude": 52.37 + n / 1000,
            "longitude": 4.89 + n / 1000,
            "poi_type": "tourism",
            "category": category,
        }
        data.update(overrides)
        poi = POI(**data)
        self.db.add(poi)
        await self.db.flush()
        return poi

    async def reward(
        self,
        reward_type: str = "decay_reduction",
        reward_value: float = 1.0,
        difficulty: int = 1,
        reward_duration: int | None = None,
        reward_uses: int | None = None,
        is_active: bool = True,
    ) -> Reward:
        reward = Reward(
            reward_type=reward_type,
            reward_value=reward_value,
            reward_duration=reward_duration,
            reward_uses=reward_uses,
            difficulty=difficulty,
            description=f"{reward_value} {reward_type}",
            is_active=is_active,
        )
        self.db.add(reward)
        await self.db.flush()
        return reward

    async def challenge(
        self,
        user: User,
        challenge_type: str = "session_duration",
        target_value: int = 900,
        period: str = "daily",
        reward: Reward | None = None,
        expires_at: datetime | None = None,
        **overrides,
    ) -> Challenge:
        data = {
            "user_id": user.id,
            "period": period,
            "challenge_type": challenge_type,
            "title": f"{challenge_type} challenge",
            "description": f"Reach {target_value}",
            "target_value": target_value,
            "reward_difficulty": reward.difficulty if reward else 1,
            "cost": 10,
            "reward_id": reward.id if reward else None,
            "progress": 0,
            "expires_at": expires_at or datetime.now(timezone.utc) + timedelta(days=1),
        }
        data.update(overrides)
        challenge = Challenge(**data)
        self.db.add(challenge)
        await self.db.flush()
        return challenge

    async def session(
        self,
        user: User,
        poi: POI,
        seconds_earned: int = 60,
        start_time: datetime | None = None,
    ) -> CaptureSession:
        start_time = start_time or datetime.now(timezone.utc)
        session = CaptureSession(
            user_id=user.id,
            poi_id=poi.id,
            start_time=start_time,
            end_time=start_time + timedelta(seconds=seconds_earned),
            seconds_earned=seconds_earned,
            month=start_time.strftime("%Y-%m"),
        )
        self.db.add(session)
        await self.db.flush()
        return session

    async def game_config(self, **overrides) -> dict:
        doc = dict(DEFAULT_GAME_CONFIG)
        doc.update(overrides)
        await save_global(self.db, GAME_CONFIG_SLUG, doc)
        return doc


@pytest.fixture
def factory(db_session: AsyncSession) -> GameFactory:
    return GameFactory(db_session)


@pytest_asyncio.fixture
async def client(session_factory: async_sessionmaker[AsyncSession]) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client bound to the in-memory database; lifespan is not run."""
    from poiking.main import create_app

    get_settings.cache_clear()
    app = create_app()

    async def _override_session() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_session] = _override_session
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
    get_settings.cache_clear()


@pytest.fixture
def seed(session_factory: async_sessionmaker[AsyncSession]):
    """Run ``build(db, factory)`` in its own committed session; for API tests."""

    async def _seed(build):
        async with session_factory() as db:
            result = await build(db, GameFactory(db))
            await db.commit()
            return result

    return _seed
