"""Reward activation, use, listing and the decay reduction aggregate."""

from __future__ import annotations

import random
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import select

from poiking.db.models import ActiveReward, User
from poiking.errors import RewardExpiredError, RewardNotFoundError, UserNotFoundError
from poiking.rewards.service import (
    activate_reward,
    get_active_decay_reduction,
    get_or_create_coin_reward,
    list_active_rewards,
    pick_reward_for_difficulty,
    use_reward,
)

NOW = datetime(2026, 10, 14, 12, 0, tzinfo=timezone.utc)


class TestActivation:
    @pytest.mark.asyncio
    async def test_duration_reward(self, db_session, factory):
        user = await factory.user()
        reward = await factory.reward("larger_radius", 0.03, difficulty=3, reward_duration=72, reward_uses=2)

        entry = await activate_reward(db_session, user.id, reward, now=NOW)

        assert entry.reward_type == "larger_radius"
        assert entry.reward_value == 0.03
        assert entry.duration == 72
        assert entry.uses_remaining == 2
        assert entry.expires_at == NOW + timedelta(hours=72)
        assert entry.season is None

    @pytest.mark.asyncio
    async def test_uses_only_reward(self, db_session, factory):
        user = await factory.user()
        reward = await factory.reward("entry_time_reduction", 0.07, difficulty=7, reward_uses=1)

        entry = await activate_reward(db_session, user.id, reward, now=NOW)
        assert entry.expires_at is None
        assert entry.uses_remaining == 1

    @pytest.mark.asyncio
    async def test_bonus_crowns_are_seasonal(self, db_session, factory):
        user = await factory.user()
        reward = await factory.reward("bonus_crowns", 2.0, difficulty=8, reward_uses=1)

        entry = await activate_reward(db_session, user.id, reward, now=NOW)
        assert entry.season == "2026-10"
        assert entry.uses_remaining is None
        assert entry.duration is None

    @pytest.mark.asyncio
    async def test_coins_credit_balance(self, db_session, factory):
        user = await factory.user(coins=5)
        reward = await get_or_create_coin_reward(db_session, 4)

        assert await activate_reward(db_session, user.id, reward, now=NOW) is None
        assert (await db_session.get(User, user.id)).coins == 9

    @pytest.mark.asyncio
    async def test_coins_unknown_user(self, db_session):
        reward = await get_or_create_coin_reward(db_session, 1)
        with pytest.raises(UserNotFoundError):
            await activate_reward(db_session, 999, reward, now=NOW)

    @pytest.mark.asyncio
    async def test_catalog_edit_does_not_change_activation(self, db_session, factory):
        user = await factory.user()
        reward = await factory.reward("decay_reduction", 1.0, reward_duration=24)
        entry = await activate_reward(db_session, user.id, reward, now=NOW)

        reward.reward_value = 9.0
        await db_session.flush()
        assert entry.reward_value == 1.0

    @pytest.mark.asyncio
    async def test_activation_retires_lapsed_rewards(self, db_session, factory):
        user = await factory.user()
        short = await factory.reward("decay_reduction", 1.0, reward_duration=1, reward_uses=3)
        lapsed = await activate_reward(db_session, user.id, short, now=NOW - timedelta(hours=5))

        fresh = await factory.reward("larger_radius", 0.05, reward_duration=24)
        await activate_reward(db_session, user.id, fresh, now=NOW)

        assert lapsed.is_active is False


class TestUse:
    @pytest.mark.asyncio
    async def test_use_decrements_then_deletes(self, db_session, factory):
        user = await factory.user()
        reward = await factory.reward("entry_time_reduction", 0.02, reward_uses=2)
        entry = await activate_reward(db_session, user.id, reward, now=NOW)
        entry_id = entry.id

        remaining = await use_reward(db_session, user.id, entry_id, now=NOW)
        assert remaining.uses_remaining == 1

        assert await use_reward(db_session, user.id, entry_id, now=NOW) is None
        assert (await db_session.execute(select(ActiveReward).where(ActiveReward.id == entry_id))).first() is None

    @pytest.mark.asyncio
    async def test_permanent_reward_unchanged(self, db_session, factory):
        user = await factory.user()
        reward = await factory.reward("extended_capture", 1.0)
        entry = await activate_reward(db_session, user.id, reward, now=NOW)

        assert (await use_reward(db_session, user.id, entry.id, now=NOW)) is entry
        assert entry.uses_remaining is None

    @pytest.mark.asyncio
    async def test_expired_reward_cannot_be_used(self, db_session, factory):
        user = await factory.user()
        reward = await factory.reward("larger_radius", 0.01, reward_duration=1, reward_uses=2)
        entry = await activate_reward(db_session, user.id, reward, now=NOW)

        with pytest.raises(RewardExpiredError):
            await use_reward(db_session, user.id, entry.id, now=NOW + timedelta(hours=2))

    @pytest.mark.asyncio
    async def test_other_users_reward(self, db_session, factory):
        owner, other = await factory.user(), await factory.user()
        reward = await factory.reward(reward_uses=1)
        entry = await activate_reward(db_session, owner.id, reward, now=NOW)

        with pytest.raises(RewardNotFoundError):
            await use_reward(db_session, other.id, entry.id, now=NOW)


class TestQueries:
    @pytest.mark.asyncio
    async def test_list_and_decay_reduction(self, db_session, factory):
        user = await factory.user()
        a = await factory.reward("decay_reduction", 1.5, reward_duration=24)
        b = await factory.reward("decay_reduction", 0.5, reward_uses=2)
        c = await factory.reward("decay_reduction", 4.0, reward_duration=1)
        other = await factory.reward("larger_radius", 0.05, reward_duration=24)

        await activate_reward(db_session, user.id, c, now=NOW - timedelta(hours=3))
        await activate_reward(db_session, user.id, a, now=NOW)
        await activate_reward(db_session, user.id, b, now=NOW)
        await activate_reward(db_session, user.id, other, now=NOW)

        usable = await list_active_rewards(db_session, user.id, now=NOW)
        assert [e.reward_value for e in usable] == [1.5, 0.5, 0.05]
        assert await get_active_decay_reduction(db_session, user.id, now=NOW) == 2.0

    @pytest.mark.asyncio
    async def test_no_rewards_means_zero_reduction(self, db_session, factory):
        user = await factory.user()
        assert await get_active_decay_reduction(db_session, user.id, now=NOW) == 0.0


class TestCatalogPicks:
    @pytest.mark.asyncio
    async def test_pick_matches_difficulty_and_skips_inactive(self, db_session, factory):
        wanted = await factory.reward(difficulty=5)
        await factory.reward(difficulty=5, is_active=False)
        await factory.reward(difficulty=4)

        for seed in range(10):
            picked = await pick_reward_for_difficulty(db_session, 5, random.Random(seed))
            assert picked.id == wanted.id

    @pytest.mark.asyncio
    async def test_pick_none_when_empty(self, db_session):
        assert await pick_reward_for_difficulty(db_session, 9, random.Random(0)) is None

    @pytest.mark.asyncio
    async def test_coin_reward_reused(self, db_session):
        first = await get_or_create_coin_reward(db_session, 6)
        second = await get_or_create_coin_reward(db_session, 6)
        assert first.id == second.id
        assert first.reward_value == 6.0
