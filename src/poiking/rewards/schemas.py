"""Pydantic schemas for reward endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict


class ActiveRewardResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    reward_id: int | None
    challenge_id: int | None
    reward_type: str
    reward_value: float
    activated_at: datetime
    duration: int | None
    uses_remaining: int | None
    season: str | None
    expires_at: datetime | None
    is_active: bool


class ActiveRewardListResponse(BaseModel):
    rewards: list[ActiveRewardResponse]
    decay_reduction: float


class UseRewardRequest(BaseModel):
    user_id: int


class UseRewardResponse(BaseModel):
    reward: ActiveRewardResponse | None
    exhausted: bool
