"""Tests for casaflow.scheduler"""

import pytest

from conftest import utc

from casaflow.scheduler import DEFAULT_SCHEDULES, OrchestratorScheduler, next_fire_time


class FakeService:

    def __init__(self, failing=()):
        self.failing = set(failing)
        self.modes = []

    async def run(self, mode):
        self.modes.append(mode)
        if mode in self.failing:
            raise RuntimeError(f"{mode} blew up")


class Clock:

    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now


class TestNextFireTime:

    def test_next_slot(self):
        assert next_fire_time("*/2 * * * *", utc(2026, 3, 1, 9, 0, 30)) == utc(2026, 3, 1, 9, 2)

    def test_strictly_after(self):
        assert next_fire_time("*/2 * * * *", utc(2026, 3, 1, 9, 2)) == utc(2026, 3, 1, 9, 4)

    def test_weekly_default(self):
        # 2026-03-01 is a Sunday
        assert next_fire_time(DEFAULT_SCHEDULES["weekly"], utc(2026, 3, 1, 9, 0)) == utc(2026, 3, 1, 21, 0)


class TestValidation:

    def test_unknown_mode(self):
        with pytest.raises(ValueError, match="Unknown orchestrator mode"):
            OrchestratorScheduler(FakeService(), {"hourly": "0 * * * *"})

    def test_bad_cron(self):
        with pytest.raises(ValueError, match="Invalid cron"):
            OrchestratorScheduler(FakeService(), {"daily": "every evening"})

    def test_defaults_cover_every_mode(self):
        assert set(DEFAULT_SCHEDULES) == {"instant", "daily", "weekly", "monthly"}


class TestTick:

    @pytest.mark.asyncio
    async def test_runs_due_modes(self):
        clock = Clock(utc(2026, 3, 1, 9, 0, 30))
        service = FakeService()
        scheduler = OrchestratorScheduler(
            service, {"instant": "*/2 * * * *", "daily": "0 20 * * *"}, clock=clock,
        )
        await scheduler.start()
        try:
            assert scheduler.running
            assert scheduler.next_runs == {"instant": utc(2026, 3, 1, 9, 2), "daily": utc(2026, 3, 1, 20, 0)}
            assert await scheduler.tick() == 0

            clock.now = utc(2026, 3, 1, 9, 2)
            assert await scheduler.tick() == 1
            assert service.modes == ["instant"]
            assert scheduler.next_runs["instant"] == utc(2026, 3, 1, 9, 4)

            clock.now = utc(2026, 3, 1, 20, 0)
            assert await scheduler.tick() == 2
            assert service.modes == ["instant", "instant", "daily"]
            assert scheduler.next_runs["daily"] == utc(2026, 3, 2, 20, 0)
        finally:
            await scheduler.stop()
        assert not scheduler.running

    @pytest.mark.asyncio
    async def test_failure_does_not_stop_schedule(self):
        clock = Clock(utc(2026, 3, 1, 9, 0, 30))
        service = FakeService(failing={"instant"})
        scheduler = OrchestratorScheduler(service, {"instant": "*/2 * * * *"}, clock=clock)
        await scheduler.start()
        try:
            clock.now = utc(2026, 3, 1, 9, 2)
            assert await scheduler.tick() == 1
            clock.now = utc(2026, 3, 1, 9, 4)
            assert await scheduler.tick() == 1
        finally:
            await scheduler.stop()
        assert service.modes == ["instant", "instant"]

    @pytest.mark.asyncio
    async def test_start_twice_is_harmless(self):
        scheduler = OrchestratorScheduler(FakeService(), {}, clock=Clock(utc(2026, 3, 1)))
        await scheduler.start()
        await scheduler.start()
        await scheduler.stop()
        assert scheduler.next_runs == {}
