"""Baseline schema for the capture game.

Creates users, pois, sessions, rewards, challenges, active_rewards,
global_configs and job_logs.

Revision ID: 001_baseline
Revises:
Create Date: 2026-10-18
"""

from collections.abc import Sequence

from alembic import op

revision: str = "001_baseline"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    # --- Users ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS users (
            id BIGSERIAL PRIMARY KEY,
            username VARCHAR(64) UNIQUE NOT NULL,
            email VARCHAR(320) UNIQUE,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            last_active TIMESTAMPTZ,
            total_seconds BIGINT NOT NULL DEFAULT 0,
            total_pois_claimed INTEGER NOT NULL DEFAULT 0,
            current_king_of INTEGER NOT NULL DEFAULT 0,
            coins INTEGER NOT NULL DEFAULT 0
        )
    """)

    # --- POIs ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS pois (
            id BIGSERIAL PRIMARY KEY,
            external_id VARCHAR(64) UNIQUE,
            name VARCHAR(256) NOT NULL,
            latitude DOUBLE PRECISION NOT NULL,
            longitude DOUBLE PRECISION NOT NULL,
            type VARCHAR(64) NOT NULL,
            category VARCHAR(64),
            current_king_id BIGINT REFERENCES users(id) ON DELETE SET NULL,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS idx_pois_current_king ON pois(current_king_id)")

    # --- Sessions ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS sessions (
            id BIGSERIAL PRIMARY KEY,
            user_id BIGINT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            poi_id BIGINT NOT NULL REFERENCES pois(id) ON DELETE CASCADE,
            start_time TIMESTAMPTZ NOT NULL,
            end_time TIMESTAMPTZ,
            seconds_earned INTEGER NOT NULL CHECK (seconds_earned > 0),
            month VARCHAR(7) NOT NULL,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS idx_sessions_user ON sessions(user_id)")
    op.execute("CREATE INDEX IF NOT EXISTS idx_sessions_poi ON sessions(poi_id)")
    op.execute("CREATE INDEX IF NOT EXISTS idx_sessions_month ON sessions(month)")
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_sessions_user_poi_month
        ON sessions(user_id, poi_id, month)
    """)

    # --- Reward catalog ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS rewards (
            id BIGSERIAL PRIMARY KEY,
            reward_type VARCHAR(32) NOT NULL,
            reward_value DOUBLE PRECISION NOT NULL,
            reward_duration INTEGER,
            reward_uses INTEGER,
            difficulty INTEGER NOT NULL CHECK (difficulty BETWEEN 1 AND 9),
            description VARCHAR(256) NOT NULL,
            is_active BOOLEAN NOT NULL DEFAULT true,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_rewards_difficulty_active
        ON rewards(difficulty, is_active)
    """)
    op.execute("CREATE INDEX IF NOT EXISTS idx_rewards_type ON rewards(reward_type)")

    # --- Challenges ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS challenges (
            id BIGSERIAL PRIMARY KEY,
            user_id BIGINT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            type VARCHAR(16) NOT NULL,
            challenge_type VARCHAR(32) NOT NULL,
            title VARCHAR(256) NOT NULL,
            description TEXT NOT NULL,
            target_value INTEGER NOT NULL,
            target_category VARCHAR(64),
            reward_difficulty INTEGER NOT NULL CHECK (reward_difficulty BETWEEN 1 AND 9),
            cost INTEGER NOT NULL DEFAULT 0 CHECK (cost >= 0),
            reward_id BIGINT REFERENCES rewards(id) ON DELETE SET NULL,
            progress INTEGER NOT NULL DEFAULT 0 CHECK (progress >= 0),
            is_personal BOOLEAN NOT NULL DEFAULT true,
            completed_at TIMESTAMPTZ,
            claimed_at TIMESTAMPTZ,
            expires_at TIMESTAMPTZ NOT NULL,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_challenges_user_type_expires
        ON challenges(user_id, type, expires_at)
    """)
    op.execute("CREATE INDEX IF NOT EXISTS idx_challenges_open ON challenges(user_id, completed_at)")
    op.execute("CREATE INDEX IF NOT EXISTS idx_challenges_expires ON challenges(expires_at)")

    # --- Active rewards ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS active_rewards (
            id BIGSERIAL PRIMARY KEY,
            user_id BIGINT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            reward_id BIGINT REFERENCES rewards(id) ON DELETE SET NULL,
            challenge_id BIGINT REFERENCES challenges(id) ON DELETE SET NULL,
            reward_type VARCHAR(32) NOT NULL,
            reward_value DOUBLE PRECISION NOT NULL,
            activated_at TIMESTAMPTZ NOT NULL,
            duration INTEGER,
            uses_remaining INTEGER,
            season VARCHAR(7),
            expires_at TIMESTAMPTZ,
            is_active BOOLEAN NOT NULL DEFAULT true
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS idx_active_rewards_user ON active_rewards(user_id)")
    op.execute("CREATE INDEX IF NOT EXISTS idx_active_rewards_expires ON active_rewards(expires_at)")
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_active_rewards_season_type
        ON active_rewards(season, reward_type)
    """)

    # --- Global config documents ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS global_configs (
            slug VARCHAR(64) PRIMARY KEY,
            data JSONB NOT NULL DEFAULT '{}',
            updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)

    # --- Job logs ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS job_logs (
            id BIGSERIAL PRIMARY KEY,
            timestamp TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            level VARCHAR(16) NOT NULL DEFAULT 'info',
            job VARCHAR(64) NOT NULL,
            message TEXT NOT NULL,
            data JSONB,
            error TEXT
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS idx_job_logs_job_time ON job_logs(job, timestamp)")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS job_logs CASCADE")
    op.execute("DROP TABLE IF EXISTS global_configs CASCADE")
    op.execute("DROP TABLE IF EXISTS active_rewards CASCADE")
    op.execute("DROP TABLE IF EXISTS challenges CASCADE")
    op.execute("DROP TABLE IF EXISTS rewards CASCADE")
    op.execute("DROP TABLE IF EXISTS sessions CASCADE")
    op.execute("DROP TABLE IF EXISTS pois CASCADE")
    op.execute("DROP TABLE IF EXISTS users CASCADE")
