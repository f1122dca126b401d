"""Pydantic schemas for the crown leaderboard."""

from __future__ import annotations

from pydantic import BaseModel


class CrownLeaderboardEntry(BaseModel):
    rank: int
    user_id: int
    username: str
    crowns: int


class CrownLeaderboardResponse(BaseModel):
    entries: list[CrownLeaderboardEntry]
    total: int
