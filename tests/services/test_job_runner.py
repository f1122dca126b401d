"""run_job: result shapes, partial progress, input overrides and the job log."""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import select

from poiking.db.models import POI, Challenge, JobLog, User
from poiking.jobs import registry
from poiking.jobs.registry import JOBS, run_job
from poiking.kings import recalculator

NOW = datetime(2026, 10, 14, 12, 0, tzinfo=timezone.utc)


class TestRegistry:
    def test_all_jobs_registered(self):
        assert set(JOBS) == {
            "assign-daily-challenges",
            "assign-weekly-challenges",
            "assign-monthly-challenges",
            "expire-challenges",
            "daily-decay",
            "calculate-king-status",
            "expire-old-rewards",
            "expire-season-rewards",
        }


class TestRunJob:
    @pytest.mark.asyncio
    async def test_unknown_slug(self, db_session, test_settings):
        result = await run_job(db_session, "make-coffee", settings=test_settings)
        assert result == {"state": "failed", "errorMessage": "Unknown job: make-coffee"}

    @pytest.mark.asyncio
    async def test_success_commits_and_logs(self, db_session, session_factory, factory, test_settings):
        user = await factory.user()
        await factory.challenge(user, expires_at=NOW - timedelta(hours=1))
        await db_session.commit()

        result = await run_job(db_session, "expire-challenges", settings=test_settings, now=NOW)

        assert result["output"]["success"] is True
        assert result["output"]["removed"] == 1
        async with session_factory() as check:
            assert (await check.execute(select(Challenge))).first() is None
            log = (await check.execute(select(JobLog))).scalar_one()
            assert log.job == "expire-challenges"
            assert log.level == "success"
            assert log.data["removed"] == 1

    @pytest.mark.asyncio
    async def test_missing_config_fails_before_any_work(self, db_session, session_factory, factory, test_settings):
        await factory.user(total_seconds=100)
        await db_session.commit()

        # no game-config document: decay must fail
        result = await run_job(db_session, "daily-decay", settings=test_settings, now=NOW)

        assert result["state"] == "failed"
        assert "game-config" in result["errorMessage"]
        async with session_factory() as check:
            assert (await check.execute(select(User.total_seconds))).scalar_one() == 100
            log = (await check.execute(select(JobLog))).scalar_one()
            assert log.level == "error"
            assert "game-config" in log.error

    @pytest.mark.asyncio
    async def test_completed_items_survive_a_failed_run(
        self, db_session, session_factory, factory, test_settings, monkeypatch
    ):
        a, b = await factory.user(), await factory.user()
        poi = await factory.poi()
        await factory.session(a, poi, seconds_earned=300)
        await factory.session(b, poi, seconds_earned=500)
        await db_session.commit()
        poi_id, b_id = poi.id, b.id

        async def broken_reconcile(db):
            raise RuntimeError("counter table locked")

        monkeypatch.setattr(recalculator, "reconcile_king_counts", broken_reconcile)

        result = await run_job(db_session, "calculate-king-status", settings=test_settings)

        assert result == {"state": "failed", "errorMessage": "counter table locked"}
        async with session_factory() as check:
            assert (await check.get(POI, poi_id)).current_king_id == b_id
            log = (await check.execute(select(JobLog))).scalar_one()
            assert log.level == "error"

    @pytest.mark.asyncio
    async def test_cancelled_run_is_logged_and_reraised(self, db_session, session_factory, test_settings, monkeypatch):
        async def cancelled(db, ctx):
            raise asyncio.CancelledError

        monkeypatch.setitem(JOBS, "daily-decay", registry.JobDefinition("daily-decay", cancelled, "Decay"))

        with pytest.raises(asyncio.CancelledError):
            await run_job(db_session, "daily-decay", settings=test_settings)

        async with session_factory() as check:
            log = (await check.execute(select(JobLog))).scalar_one()
            assert log.level == "error"
            assert log.error == "cancelled"

    @pytest.mark.asyncio
    async def test_input_overrides_reach_the_handler(self, db_session, test_settings, monkeypatch):
        seen = {}

        async def handler(db, ctx):
            seen["now"] = ctx.now
            seen["batch"] = ctx.batch_size(ctx.settings.sweep_batch_size)
            return {"success": True}

        monkeypatch.setitem(JOBS, "expire-challenges", registry.JobDefinition("expire-challenges", handler, "test"))

        await run_job(
            db_session, "expire-challenges", settings=test_settings,
            input={"now": "2026-09-30T22:00:00+00:00", "batchSize": 7},
        )

        assert seen == {"now": datetime(2026, 9, 30, 22, 0, tzinfo=timezone.utc), "batch": 7}

    @pytest.mark.asyncio
    async def test_invalid_input_fails(self, db_session, test_settings):
        result = await run_job(db_session, "expire-challenges", settings=test_settings, input={"batchSize": -1})
        assert result["state"] == "failed"
        assert result["errorMessage"].startswith("Invalid job input")

    @pytest.mark.asyncio
    async def test_handler_exception_is_contained(self, db_session, test_settings, monkeypatch):
        async def boom(db, ctx):
            raise RuntimeError("kaboom")

        definition = JOBS["calculate-king-status"]
        monkeypatch.setitem(
            JOBS, "calculate-king-status", registry.JobDefinition(definition.slug, boom, definition.description)
        )

        result = await run_job(db_session, "calculate-king-status", settings=test_settings)
        assert result == {"state": "failed", "errorMessage": "kaboom"}

    @pytest.mark.asyncio
    async def test_log_write_failure_does_not_fail_job(self, db_session, test_settings, monkeypatch):
        async def broken_commit():
            raise RuntimeError("log table gone")

        real_commit = db_session.commit

        async def first_commit_ok():
            monkeypatch.setattr(db_session, "commit", broken_commit)
            await real_commit()

        async def handler(db, ctx):
            monkeypatch.setattr(db, "commit", first_commit_ok)
            return {"success": True}

        monkeypatch.setitem(JOBS, "expire-challenges", registry.JobDefinition("expire-challenges", handler, "test"))

        result = await run_job(db_session, "expire-challenges", settings=test_settings, now=NOW)
        assert result == {"output": {"success": True}}

    @pytest.mark.asyncio
    async def test_assignment_job(self, db_session, session_factory, factory, test_settings):
        await factory.user()
        await db_session.commit()

        result = await run_job(db_session, "assign-daily-challenges", settings=test_settings, now=NOW)

        # no challenge-config: defaults without presets assign nothing
        assert result["output"]["period"] == "daily"
        assert result["output"]["assigned"] == 0
        assert result["output"]["users_processed"] == 1
