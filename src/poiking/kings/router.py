"""Crown leaderboard endpoint."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from poiking.database import get_session
from poiking.kings.recalculator import get_crown_leaderboard
from poiking.kings.schemas import CrownLeaderboardEntry, CrownLeaderboardResponse

router = APIRouter(prefix="/api/v1", tags=["Crowns"])


@router.get("/crowns/leaderboard", response_model=CrownLeaderboardResponse)
async def crown_leaderboard(
    limit: int = Query(50, ge=1, le=500),
    db: AsyncSession = Depends(get_session),
):
    """Users ranked by the number of POIs they currently hold."""
    users = await get_crown_leaderboard(db, limit)
    entries = [
        CrownLeaderboardEntry(
            rank=i,
            user_id=u.id,
            username=u.username,
            crowns=u.current_king_of,
        )
        for i, u in enumerate(users, start=1)
    ]
    return CrownLeaderboardResponse(entries=entries, total=len(entries))
