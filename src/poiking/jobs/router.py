"""HTTP trigger for scheduled jobs (external cron)."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Depends, Header, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from poiking.config import get_settings
from poiking.database import get_session
from poiking.jobs.registry import JOBS, run_job
from poiking.jobs.schemas import JobInput
from poiking.redis_client import get_redis_optional

router = APIRouter(prefix="/api/v1/jobs", tags=["Jobs"])


def verify_cron_secret(authorization: str | None = Header(None)) -> None:
    """Require ``Bearer <cron_secret>`` when a secret is configured."""
    secret = get_settings().cron_secret
    if not secret:
        return
    if authorization != f"Bearer {secret}":
        raise HTTPException(status_code=401, detail="Unauthorized")


@router.get("", dependencies=[Depends(verify_cron_secret)])
async def list_jobs() -> dict[str, list[dict[str, str]]]:
    """Registered job slugs."""
    return {"jobs": [{"slug": j.slug, "description": j.description} for j in JOBS.values()]}


@router.post("/{slug}/run", dependencies=[Depends(verify_cron_secret)])
async def trigger_job(
    slug: str,
    payload: JobInput | None = Body(None),
    db: AsyncSession = Depends(get_session),
) -> dict[str, Any]:
    """Run a job now and return its result. The body may override ``now`` and ``batchSize``."""
    if slug not in JOBS:
        raise HTTPException(status_code=404, detail=f"Unknown job: {slug}")
    return await run_job(db, slug, redis=get_redis_optional(), input=payload)
