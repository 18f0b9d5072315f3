import asyncio
from datetime import date, datetime, timedelta

import httpx
import pytest

from callsync.clients.pipeline_api import PipelineApiError
from callsync.scheduler import HealthStatus, LiveSyncSupervisor, compute_health

NOW = datetime(2025, 1, 2, 10, 0, 0)


class FakeClock:
    def __init__(self, now: datetime = NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


class FakeSync:
    def __init__(self, outcomes=None):
        self.calls = []
        self.outcomes = list(outcomes or [])

    async def __call__(self, start: date, end: date):
        self.calls.append((start, end))
        outcome = self.outcomes.pop(0) if self.outcomes else {"inserted": 0}
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


class TestComputeHealth:
    def test_recent_sync_is_healthy(self):
        last = NOW - timedelta(seconds=90)
        assert compute_health(True, last, HealthStatus.HEALTHY, NOW) == HealthStatus.HEALTHY

    def test_old_sync_is_stale(self):
        last = NOW - timedelta(seconds=181)
        assert compute_health(True, last, HealthStatus.HEALTHY, NOW) == HealthStatus.STALE

    def test_not_live_is_idle(self):
        assert compute_health(False, NOW, HealthStatus.HEALTHY, NOW) == HealthStatus.IDLE

    def test_error_is_kept(self):
        assert compute_health(True, NOW, HealthStatus.ERROR, NOW) == HealthStatus.ERROR

    def test_never_synced(self):
        assert compute_health(True, None, HealthStatus.IDLE, NOW) == HealthStatus.IDLE
        assert compute_health(True, None, HealthStatus.STALE, NOW) == HealthStatus.STALE


class TestSyncOnce:
    @pytest.mark.asyncio
    async def test_window_covers_yesterday_and_today(self):
        sync = FakeSync([{"inserted": 3}])
        synced = []
        supervisor = LiveSyncSupervisor(sync, clock=FakeClock(), on_synced=synced.append)

        result = await supervisor.sync_once()

        assert sync.calls == [(date(2025, 1, 1), date(2025, 1, 2))]
        assert result == {"inserted": 3}
        assert synced == [{"inserted": 3}]
        assert supervisor.status == HealthStatus.HEALTHY
        assert supervisor.state.last_sync_at == NOW

    @pytest.mark.asyncio
    async def test_client_timeout_counts_as_healthy(self):
        sync = FakeSync([httpx.ReadTimeout("timed out")])
        supervisor = LiveSyncSupervisor(sync, clock=FakeClock())

        await supervisor.sync_once()

        assert supervisor.status == HealthStatus.HEALTHY
        assert supervisor.state.last_error is None
        assert supervisor.state.last_sync_at == NOW

    @pytest.mark.asyncio
    async def test_missing_integration_is_stale(self):
        sync = FakeSync([PipelineApiError("No VICIdial integration configured", code=400)])
        supervisor = LiveSyncSupervisor(sync, clock=FakeClock())

        await supervisor.sync_once()

        assert supervisor.status == HealthStatus.STALE
        assert supervisor.state.last_error == "No integration configured"

    @pytest.mark.asyncio
    async def test_error_sticks_until_next_success(self):
        clock = FakeClock()
        sync = FakeSync([PipelineApiError("HTTP 500", code=500), {"inserted": 0}])
        supervisor = LiveSyncSupervisor(sync, clock=clock)

        await supervisor.sync_once()
        assert supervisor.status == HealthStatus.ERROR
        assert supervisor.state.last_error == "HTTP 500"

        supervisor.state.is_live = True
        clock.advance(30)
        assert supervisor.check_health() == HealthStatus.ERROR

        await supervisor.sync_once()
        assert supervisor.status == HealthStatus.HEALTHY
        assert supervisor.state.last_error is None

    @pytest.mark.asyncio
    async def test_health_check_marks_stale(self):
        clock = FakeClock()
        supervisor = LiveSyncSupervisor(FakeSync(), clock=clock)
        supervisor.state.is_live = True
        await supervisor.sync_once()

        clock.advance(90)
        assert supervisor.check_health() == HealthStatus.HEALTHY
        clock.advance(91)
        assert supervisor.check_health() == HealthStatus.STALE

    @pytest.mark.asyncio
    async def test_overlapping_sync_is_skipped(self):
        release = asyncio.Event()
        calls = []

        async def slow_sync(start, end):
            calls.append((start, end))
            await release.wait()
            return {"inserted": 0}

        supervisor = LiveSyncSupervisor(slow_sync, clock=FakeClock())
        first = asyncio.create_task(supervisor.sync_once())
        await asyncio.sleep(0)

        assert await supervisor.sync_once() is None
        release.set()
        await first
        assert len(calls) == 1


class TestStartStop:
    @pytest.mark.asyncio
    async def test_start_syncs_immediately_and_stop_goes_idle(self):
        sync = FakeSync()
        supervisor = LiveSyncSupervisor(sync, sync_interval=3600, health_interval=3600)

        await supervisor.start()
        try:
            assert supervisor.running
            for _ in range(100):
                if sync.calls:
                    break
                await asyncio.sleep(0.02)
            assert len(sync.calls) == 1
            assert supervisor.status == HealthStatus.HEALTHY
        finally:
            await supervisor.stop()

        assert not supervisor.running
        assert supervisor.status == HealthStatus.IDLE
        assert supervisor.state.is_live is False
