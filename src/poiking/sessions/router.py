"""Session recording endpoint."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from poiking.database import get_session
from poiking.redis_client import get_redis_optional
from poiking.sessions.schemas import SessionCreateRequest, SessionResponse
from poiking.sessions.service import record_session

router = APIRouter(prefix="/api/v1", tags=["Sessions"])


@router.post("/sessions", response_model=SessionResponse, status_code=201)
async def create_session(
    body: SessionCreateRequest,
    db: AsyncSession = Depends(get_session),
):
    """Record a capture session and apply challenge progress."""
    session = await record_session(
        db,
        body.user_id,
        body.poi_id,
        body.seconds_earned,
        body.start_time,
        body.end_time,
        redis=get_redis_optional(),
    )
    await db.commit()

    return SessionResponse(
        id=session.id,
        user_id=session.user_id,
        poi_id=session.poi_id,
        seconds_earned=session.seconds_earned,
        start_time=session.start_time,
        end_time=session.end_time,
        month=session.month,
    )
