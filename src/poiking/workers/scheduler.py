"""arq worker running the progression jobs on a cron schedule.

Import path for arq CLI: arq poiking.workers.scheduler.WorkerSettings

Schedule (local time in ``game_timezone``, the zone challenge expiry uses):
- Daily challenges: 00:05
- Weekly challenges: Tuesday 00:10, after the previous batch lapses at
  Monday 23:59:59.999
- Monthly challenges: 1st of month 00:15
- Season reward sweep: 1st of month 00:01
- Challenge expiry and reward sweep: hourly
- Decay: 03:00
- King recalculation: every 15 minutes
"""

from __future__ import annotations

import logging
from typing import Any
from zoneinfo import ZoneInfo

import redis.asyncio as aioredis
from arq.connections import RedisSettings
from arq.cron import cron

from poiking.config import get_settings
from poiking.database import close_db, get_session_factory, init_db
from poiking.jobs.registry import run_job
from poiking.middleware.logging import setup_logging

logger = logging.getLogger(__name__)


async def startup(ctx: dict) -> None:  # type: ignore[type-arg]
    """Initialize DB and pub/sub Redis connections on worker startup."""
    settings = get_settings()
    setup_logging(settings)
    await init_db(settings.database_url)
    ctx["pubsub"] = aioredis.from_url(
        settings.redis_url,
        encoding="utf-8",
        decode_responses=True,
        max_connections=10,
    )
    logger.info("Scheduler worker started")


async def shutdown(ctx: dict) -> None:  # type: ignore[type-arg]
    """Clean up on worker shutdown."""
    pubsub: aioredis.Redis | None = ctx.get("pubsub")
    if pubsub:
        await pubsub.aclose()
    await close_db()
    logger.info("Scheduler worker shut down")


async def _run(ctx: dict, slug: str) -> dict[str, Any]:  # type: ignore[type-arg]
    async with get_session_factory()() as db:
        result = await run_job(db, slug, redis=ctx.get("pubsub"))
    if result.get("state") == "failed":
        logger.error("Job %s failed: %s", slug, result.get("errorMessage"))
    return result


async def assign_daily_challenges(ctx: dict) -> dict[str, Any]:  # type: ignore[type-arg]
    return await _run(ctx, "assign-daily-challenges")


async def assign_weekly_challenges(ctx: dict) -> dict[str, Any]:  # type: ignore[type-arg]
    return await _run(ctx, "assign-weekly-challenges")


async def assign_monthly_challenges(ctx: dict) -> dict[str, Any]:  # type: ignore[type-arg]
    return await _run(ctx, "assign-monthly-challenges")


async def expire_challenges(ctx: dict) -> dict[str, Any]:  # type: ignore[type-arg]
    return await _run(ctx, "expire-challenges")


async def daily_decay(ctx: dict) -> dict[str, Any]:  # type: ignore[type-arg]
    return await _run(ctx, "daily-decay")


async def calculate_king_status(ctx: dict) -> dict[str, Any]:  # type: ignore[type-arg]
    return await _run(ctx, "calculate-king-status")


async def expire_old_rewards(ctx: dict) -> dict[str, Any]:  # type: ignore[type-arg]
    return await _run(ctx, "expire-old-rewards")


async def expire_season_rewards(ctx: dict) -> dict[str, Any]:  # type: ignore[type-arg]
    return await _run(ctx, "expire-season-rewards")


class WorkerSettings:
    """arq worker settings for the progression scheduler."""

    functions = [
        assign_daily_challenges,
        assign_weekly_challenges,
        assign_monthly_challenges,
        expire_challenges,
        daily_decay,
        calculate_king_status,
        expire_old_rewards,
        expire_season_rewards,
    ]
    cron_jobs = [
        cron(assign_daily_challenges, hour=0, minute=5, unique=True),
        cron(assign_weekly_challenges, weekday="tues", hour=0, minute=10, unique=True),
        cron(assign_monthly_challenges, day=1, hour=0, minute=15, unique=True),
        cron(expire_season_rewards, day=1, hour=0, minute=1, unique=True),
        cron(expire_challenges, minute=0, unique=True),
        cron(expire_old_rewards, minute=30, unique=True),
        cron(daily_decay, hour=3, minute=0, unique=True),
        cron(calculate_king_status, minute={0, 15, 30, 45}, unique=True),
    ]
    redis_settings = RedisSettings.from_dsn(get_settings().redis_url)
    on_startup = startup
    on_shutdown = shutdown
    max_jobs = 1
    job_timeout = get_settings().job_timeout_seconds
    timezone = ZoneInfo(get_settings().game_timezone)
