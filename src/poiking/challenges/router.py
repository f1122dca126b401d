"""Challenge endpoints: list, buyout, complete."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from poiking.challenges.schemas import (
    ChallengeActionRequest,
    ChallengeActionResponse,
    ChallengeListResponse,
    ChallengeResponse,
)
from poiking.challenges.service import buyout_challenge, claim_challenge, list_user_challenges
from poiking.database import get_session
from poiking.db.models import User
from poiking.redis_client import get_redis_optional

router = APIRouter(prefix="/api/v1", tags=["Challenges"])


@router.get("/users/{user_id}/challenges", response_model=ChallengeListResponse)
async def get_user_challenges(
    user_id: int,
    period: str | None = Query(None, pattern="^(daily|weekly|monthly)$"),
    include_expired: bool = False,
    db: AsyncSession = Depends(get_session),
):
    """List a user's current challenges."""
    challenges = await list_user_challenges(db, user_id, period, include_expired)
    return ChallengeListResponse(
        challenges=[ChallengeResponse.model_validate(c) for c in challenges],
        total=len(challenges),
    )


@router.post("/challenges/{challenge_id}/buyout", response_model=ChallengeActionResponse)
async def buyout(
    challenge_id: int,
    body: ChallengeActionRequest,
    db: AsyncSession = Depends(get_session),
):
    """Complete a challenge by paying its coin cost."""
    challenge, activation = await buyout_challenge(
        db, body.user_id, challenge_id, redis=get_redis_optional()
    )
    user = await db.get(User, body.user_id)
    await db.commit()

    return ChallengeActionResponse(
        challenge=ChallengeResponse.model_validate(challenge),
        active_reward_id=activation.id if activation else None,
        coins=user.coins if user else None,
    )


@router.post("/challenges/{challenge_id}/complete", response_model=ChallengeActionResponse)
async def complete(
    challenge_id: int,
    body: ChallengeActionRequest,
    db: AsyncSession = Depends(get_session),
):
    """Claim a challenge whose progress has reached its target."""
    challenge, activation = await claim_challenge(
        db, body.user_id, challenge_id, redis=get_redis_optional()
    )
    await db.commit()

    return ChallengeActionResponse(
        challenge=ChallengeResponse.model_validate(challenge),
        active_reward_id=activation.id if activation else None,
    )
