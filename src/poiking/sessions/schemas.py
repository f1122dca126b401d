"""Pydantic schemas for session recording."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class SessionCreateRequest(BaseModel):
    user_id: int
    poi_id: int
    seconds_earned: int = Field(gt=0)
    start_time: datetime
    end_time: datetime | None = None


class SessionResponse(BaseModel):
    id: int
    user_id: int
    poi_id: int
    seconds_earned: int
    start_time: datetime
    end_time: datetime | None
    month: str
