"""Scheduled job registry and runner.

Every job is looked up by slug and executed through ``run_job``, which writes a
``JobLog`` row and converts any exception into the
``{"state": "failed", "errorMessage": ...}`` result shape. Callers (the arq
worker, the HTTP trigger) never see an exception from a job.

Handlers commit item by item, so a run that fails part way keeps the work it
had finished. ``run_job`` only rolls back whatever was still pending.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

import structlog
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from poiking.calendar_utils import utcnow
from poiking.challenges.assignment import assign_challenges
from poiking.challenges.expiry import expire_challenges
from poiking.config import Settings, get_settings
from poiking.db.models import JobLog
from poiking.decay.engine import run_daily_decay
from poiking.jobs.schemas import JobInput
from poiking.kings.recalculator import recalculate_kings
from poiking.rewards.expiry import sweep_expired_rewards, sweep_season_rewards

logger = structlog.get_logger()


@dataclass
class JobContext:
    settings: Settings
    now: datetime
    redis: object = None
    input: JobInput = field(default_factory=JobInput)

    def batch_size(self, default: int) -> int:
        return self.input.batch_size or default


JobHandler = Callable[[AsyncSession, JobContext], Awaitable[dict[str, Any]]]


@dataclass(frozen=True)
class JobDefinition:
    slug: str
    handler: JobHandler
    description: str


# --- Handlers ---


def _assign(period: str) -> JobHandler:
    async def handler(db: AsyncSession, ctx: JobContext) -> dict[str, Any]:
        settings = ctx.settings.model_copy(
            update={"user_batch_size": ctx.batch_size(ctx.settings.user_batch_size)}
        )
        result = await assign_challenges(db, period, now=ctx.now, settings=settings)
        return {"success": True, **result.as_dict()}

    handler.__name__ = f"assign_{period}_challenges"
    return handler


async def _expire_challenges(db: AsyncSession, ctx: JobContext) -> dict[str, Any]:
    result = await expire_challenges(db, ctx.now, ctx.batch_size(ctx.settings.sweep_batch_size))
    return {"success": True, **result.as_dict()}


async def _daily_decay(db: AsyncSession, ctx: JobContext) -> dict[str, Any]:
    result = await run_daily_decay(db, ctx.now, ctx.batch_size(ctx.settings.user_batch_size))
    return {"success": True, **result.as_dict()}


async def _calculate_kings(db: AsyncSession, ctx: JobContext) -> dict[str, Any]:
    result = await recalculate_kings(db, ctx.redis, ctx.batch_size(ctx.settings.poi_batch_size))
    return {"success": True, **result.as_dict()}


async def _expire_old_rewards(db: AsyncSession, ctx: JobContext) -> dict[str, Any]:
    result = await sweep_expired_rewards(db, ctx.now, ctx.batch_size(ctx.settings.sweep_batch_size))
    return {"success": True, **result.as_dict()}


async def _expire_season_rewards(db: AsyncSession, ctx: JobContext) -> dict[str, Any]:
    result = await sweep_season_rewards(db, ctx.now, ctx.batch_size(ctx.settings.sweep_batch_size))
    return {"success": True, **result.as_dict()}


JOBS: dict[str, JobDefinition] = {
    job.slug: job
    for job in (
        JobDefinition("assign-daily-challenges", _assign("daily"), "Assign personal daily challenges"),
        JobDefinition("assign-weekly-challenges", _assign("weekly"), "Assign the shared weekly challenges"),
        JobDefinition("assign-monthly-challenges", _assign("monthly"), "Assign the shared monthly challenges"),
        JobDefinition("expire-challenges", _expire_challenges, "Delete unfinished expired challenges"),
        JobDefinition("daily-decay", _daily_decay, "Decay accumulated seconds"),
        JobDefinition("calculate-king-status", _calculate_kings, "Recompute POI kings and crown counts"),
        JobDefinition("expire-old-rewards", _expire_old_rewards, "Remove lapsed and used-up rewards"),
        JobDefinition("expire-season-rewards", _expire_season_rewards, "Remove last season's bonus crowns"),
    )
}


async def write_job_log(
    db: AsyncSession,
    job: str,
    level: str,
    message: str,
    data: dict[str, Any] | None = None,
    error: str | None = None,
) -> None:
    """Append a JobLog row. Failures are logged and swallowed."""
    try:
        db.add(JobLog(job=job, level=level, message=message, data=data, error=error, timestamp=utcnow()))
        await db.commit()
    except Exception:
        await db.rollback()
        logger.warning("job_log_write_failed", job=job, exc_info=True)


async def run_job(
    db: AsyncSession,
    slug: str,
    *,
    redis: object = None,
    settings: Settings | None = None,
    input: JobInput | dict[str, Any] | None = None,  # noqa: A002
    now: datetime | None = None,
) -> dict[str, Any]:
    """Run a registered job.

    Returns ``{"output": {...}}`` on success or
    ``{"state": "failed", "errorMessage": str}`` on any error. A cancelled run
    (arq ``job_timeout``) is logged as failed and the cancellation re-raised.
    """
    definition = JOBS.get(slug)
    if definition is None:
        return {"state": "failed", "errorMessage": f"Unknown job: {slug}"}

    try:
        job_input = input if isinstance(input, JobInput) else JobInput.model_validate(input or {})
    except ValidationError as exc:
        return {"state": "failed", "errorMessage": f"Invalid job input: {exc}"}

    ctx = JobContext(
        settings=settings or get_settings(),
        now=now or job_input.now or utcnow(),
        redis=redis,
        input=job_input,
    )
    log = logger.bind(job=slug)
    log.info("job_started")

    try:
        output = await definition.handler(db, ctx)
        await db.commit()
    except asyncio.CancelledError:
        await db.rollback()
        log.error("job_cancelled")
        await write_job_log(db, slug, "error", f"{definition.description} cancelled", error="cancelled")
        raise
    except Exception as exc:
        await db.rollback()
        log.error("job_failed", error=str(exc), exc_info=exc)
        await write_job_log(db, slug, "error", f"{definition.description} failed", error=str(exc))
        return {"state": "failed", "errorMessage": str(exc)}

    log.info("job_completed", **{k: v for k, v in output.items() if k != "success"})
    await write_job_log(db, slug, "success", f"{definition.description} completed", data=output)
    return {"output": output}
