"""ORM models for the capture game.

Tables are created by the Alembic revisions in alembic/versions; the models
mirror that schema and are also used with ``create_all`` in tests.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column

from poiking.db.base import Base, BigIntPK, UTCDateTime


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


class User(Base):
    """Player account with denormalized progression stats."""

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    username: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    email: Mapped[str | None] = mapped_column(String(320), nullable=True, unique=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=_utcnow)
    last_active: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)

    # --- Progression stats ---
    total_seconds: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0, server_default="0")
    total_pois_claimed: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    current_king_of: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    coins: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")


# ---------------------------------------------------------------------------
# Points of interest
# ---------------------------------------------------------------------------


class POI(Base):
    """A capturable location. ``current_king_id`` is owned by the king recalculator."""

    __tablename__ = "pois"
    __table_args__ = (Index("idx_pois_current_king", "current_king_id"),)

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    external_id: Mapped[str | None] = mapped_column(String(64), unique=True, nullable=True)
    name: Mapped[str] = mapped_column(String(256), nullable=False)
    latitude: Mapped[float] = mapped_column(Float, nullable=False)
    longitude: Mapped[float] = mapped_column(Float, nullable=False)
    poi_type: Mapped[str] = mapped_column("type", String(64), nullable=False)
    category: Mapped[str | None] = mapped_column(String(64), nullable=True)
    current_king_id: Mapped[int | None] = mapped_column(
        BigInteger, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=_utcnow)


# ---------------------------------------------------------------------------
# Sessions (gameplay events)
# ---------------------------------------------------------------------------


class CaptureSession(Base):
    """An append-only capture session at a POI."""

    __tablename__ = "sessions"
    __table_args__ = (
        Index("idx_sessions_user", "user_id"),
        Index("idx_sessions_poi", "poi_id"),
        Index("idx_sessions_month", "month"),
        Index("idx_sessions_user_poi_month", "user_id", "poi_id", "month"),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    poi_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("pois.id", ondelete="CASCADE"), nullable=False)
    start_time: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    end_time: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    seconds_earned: Mapped[int] = mapped_column(Integer, nullable=False)
    month: Mapped[str] = mapped_column(String(7), nullable=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=_utcnow)


# ---------------------------------------------------------------------------
# Reward catalog
# ---------------------------------------------------------------------------


class Reward(Base):
    """Seeded, read-only reward catalog entry."""

    __tablename__ = "rewards"
    __table_args__ = (
        Index("idx_rewards_difficulty_active", "difficulty", "is_active"),
        Index("idx_rewards_type", "reward_type"),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    reward_type: Mapped[str] = mapped_column(String(32), nullable=False)
    reward_value: Mapped[float] = mapped_column(Float, nullable=False)
    reward_duration: Mapped[int | None] = mapped_column(Integer, nullable=True)  # hours
    reward_uses: Mapped[int | None] = mapped_column(Integer, nullable=True)
    difficulty: Mapped[int] = mapped_column(Integer, nullable=False)
    description: Mapped[str] = mapped_column(String(256), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default="true")
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=_utcnow)


# ---------------------------------------------------------------------------
# Challenges
# ---------------------------------------------------------------------------


class Challenge(Base):
    """A periodic challenge assigned to one user."""

    __tablename__ = "challenges"
    __table_args__ = (
        Index("idx_challenges_user_type_expires", "user_id", "type", "expires_at"),
        Index("idx_challenges_open", "user_id", "completed_at"),
        Index("idx_challenges_expires", "expires_at"),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    period: Mapped[str] = mapped_column("type", String(16), nullable=False)
    challenge_type: Mapped[str] = mapped_column(String(32), nullable=False)
    title: Mapped[str] = mapped_column(String(256), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    target_value: Mapped[int] = mapped_column(Integer, nullable=False)
    target_category: Mapped[str | None] = mapped_column(String(64), nullable=True)
    reward_difficulty: Mapped[int] = mapped_column(Integer, nullable=False)
    cost: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    reward_id: Mapped[int | None] = mapped_column(
        BigInteger, ForeignKey("rewards.id", ondelete="SET NULL"), nullable=True
    )
    progress: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    is_personal: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default="true")
    completed_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    claimed_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    expires_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=_utcnow)


# ---------------------------------------------------------------------------
# Active rewards (one row per activation)
# ---------------------------------------------------------------------------


class ActiveReward(Base):
    """A reward activation owned by a user.

    Exactly one expiry policy applies, fixed at creation: ``duration`` (hours,
    mirrored into ``expires_at``), ``uses_remaining``, ``season`` (YYYY-MM),
    or none of them (permanent).
    """

    __tablename__ = "active_rewards"
    __table_args__ = (
        Index("idx_active_rewards_user", "user_id"),
        Index("idx_active_rewards_expires", "expires_at"),
        Index("idx_active_rewards_season_type", "season", "reward_type"),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    reward_id: Mapped[int | None] = mapped_column(
        BigInteger, ForeignKey("rewards.id", ondelete="SET NULL"), nullable=True
    )
    challenge_id: Mapped[int | None] = mapped_column(
        BigInteger, ForeignKey("challenges.id", ondelete="SET NULL"), nullable=True
    )
    reward_type: Mapped[str] = mapped_column(String(32), nullable=False)
    reward_value: Mapped[float] = mapped_column(Float, nullable=False)
    activated_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    duration: Mapped[int | None] = mapped_column(Integer, nullable=True)  # hours
    uses_remaining: Mapped[int | None] = mapped_column(Integer, nullable=True)
    season: Mapped[str | None] = mapped_column(String(7), nullable=True)
    expires_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default="true")


# ---------------------------------------------------------------------------
# Global configuration documents
# ---------------------------------------------------------------------------


class GlobalConfig(Base):
    """Singleton config document keyed by slug (challenge-config, game-config)."""

    __tablename__ = "global_configs"

    slug: Mapped[str] = mapped_column(String(64), primary_key=True)
    data: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=_utcnow)


# ---------------------------------------------------------------------------
# Job run log
# ---------------------------------------------------------------------------


class JobLog(Base):
    """Audit row written for each scheduled job run."""

    __tablename__ = "job_logs"
    __table_args__ = (Index("idx_job_logs_job_time", "job", "timestamp"),)

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    timestamp: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=_utcnow)
    level: Mapped[str] = mapped_column(String(16), nullable=False, default="info")
    job: Mapped[str] = mapped_column(String(64), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    data: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    error: Mapped[str | None] = mapped_column(Text, nullable=True)
