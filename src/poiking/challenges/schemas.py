"""Pydantic schemas for challenge endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict


class ChallengeResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    period: str
    challenge_type: str
    title: str
    description: str
    target_value: int
    target_category: str | None
    reward_difficulty: int
    cost: int
    reward_id: int | None
    progress: int
    is_personal: bool
    completed_at: datetime | None
    claimed_at: datetime | None
    expires_at: datetime


class ChallengeListResponse(BaseModel):
    challenges: list[ChallengeResponse]
    total: int


class ChallengeActionRequest(BaseModel):
    user_id: int


class ChallengeActionResponse(BaseModel):
    challenge: ChallengeResponse
    active_reward_id: int | None = None
    coins: int | None = None
