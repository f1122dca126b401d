"""Active reward endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from poiking.database import get_session
from poiking.rewards.schemas import (
    ActiveRewardListResponse,
    ActiveRewardResponse,
    UseRewardRequest,
    UseRewardResponse,
)
from poiking.rewards.service import get_active_decay_reduction, list_active_rewards, use_reward

router = APIRouter(prefix="/api/v1", tags=["Rewards"])


@router.get("/users/{user_id}/rewards", response_model=ActiveRewardListResponse)
async def get_user_rewards(user_id: int, db: AsyncSession = Depends(get_session)):
    """Rewards currently applying to a user."""
    rewards = await list_active_rewards(db, user_id)
    reduction = await get_active_decay_reduction(db, user_id)
    return ActiveRewardListResponse(
        rewards=[ActiveRewardResponse.model_validate(r) for r in rewards],
        decay_reduction=reduction,
    )


@router.post("/rewards/{activation_id}/use", response_model=UseRewardResponse)
async def use_active_reward(
    activation_id: int,
    body: UseRewardRequest,
    db: AsyncSession = Depends(get_session),
):
    """Consume one use of an active reward."""
    entry = await use_reward(db, body.user_id, activation_id)
    response = UseRewardResponse(
        reward=ActiveRewardResponse.model_validate(entry) if entry else None,
        exhausted=entry is None,
    )
    await db.commit()
    return response
