"""seed_game_data installs defaults exactly once."""

from __future__ import annotations

import pytest
from sqlalchemy import func, select

from poiking.challenges.rules import load_challenge_rules
from poiking.db.models import Reward
from poiking.game_config import load_game_config
from poiking.globals_store import CHALLENGE_CONFIG_SLUG, GAME_CONFIG_SLUG, save_global
from poiking.rewards.seed import build_reward_catalog, seed_game_data


class TestSeedGameData:
    @pytest.mark.asyncio
    async def test_first_run_installs_everything(self, db_session):
        result = await seed_game_data(db_session)

        assert result == {"rewards": len(build_reward_catalog()), "configs": 2}
        config = await load_game_config(db_session)
        assert config.daily_seconds_limit == 60
        rules = await load_challenge_rules(db_session)
        assert rules.target_value("entry_count", "weekly", "hard") == 50

    @pytest.mark.asyncio
    async def test_second_run_is_noop(self, db_session):
        await seed_game_data(db_session)
        again = await seed_game_data(db_session)

        assert again == {"rewards": 0, "configs": 0}
        count = (await db_session.execute(select(func.count(Reward.id)))).scalar_one()
        assert count == len(build_reward_catalog())

    @pytest.mark.asyncio
    async def test_existing_config_preserved(self, db_session):
        await save_global(db_session, GAME_CONFIG_SLUG, {"dailySecondsLimit": 300})

        result = await seed_game_data(db_session)

        assert result["configs"] == 1
        assert (await load_game_config(db_session)).daily_seconds_limit == 300

    @pytest.mark.asyncio
    async def test_invalid_challenge_config_degrades_to_defaults(self, db_session):
        await save_global(db_session, CHALLENGE_CONFIG_SLUG, {"dailyChallengesCount": "many"})
        rules = await load_challenge_rules(db_session)
        assert rules.presets == {}
