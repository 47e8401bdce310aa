"""
Unit tests for the refresh scheduler.

The orchestrator and fetcher are mocked; time is injected.

Run: python3 -m pytest workers/__tests__/test_scheduler.py -v
"""

import asyncio
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from workers.errors import AdmissionError, TransientFetchError
from workers.scheduler import RefreshScheduler

# 2026-10-18 is a Sunday
SUNDAY_0300 = datetime(2026, 10, 18, 3, 0, tzinfo=timezone.utc)


class Clock:
    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now


def make_scheduler(now=SUNDAY_0300, start_job=None, fetch=None, **kwargs):
    orchestrator = MagicMock()
    orchestrator.start_job = start_job or AsyncMock(return_value="bulk-1")
    fetcher = MagicMock()
    fetcher.fetch_country_data = fetch or AsyncMock(return_value=None)
    clock = Clock(now)
    scheduler = RefreshScheduler(orchestrator, fetcher, weekday=6, hour=2, _now=clock, **kwargs)
    return scheduler, orchestrator, fetcher, clock


class TestSchedule:

    def test_describe_schedule(self):
        scheduler, *_ = make_scheduler()
        assert scheduler.describe_schedule() == "Sundays at 02:00 UTC"

    def test_is_due(self):
        scheduler, *_ = make_scheduler()
        assert scheduler.is_due(SUNDAY_0300) is True
        assert scheduler.is_due(SUNDAY_0300.replace(hour=1)) is False
        assert scheduler.is_due(SUNDAY_0300 + timedelta(days=1)) is False

    def test_rejects_invalid_weekday(self):
        with pytest.raises(ValueError):
            RefreshScheduler(MagicMock(), MagicMock(), weekday=7)


class TestTick:
    """Tests for the weekly trigger and its per-date guard."""

    def test_triggers_once_per_date(self):
        """Should start one job per due date no matter how often it polls."""
        scheduler, orchestrator, _, clock = make_scheduler()

        assert asyncio.run(scheduler.tick()) == "bulk-1"
        clock.now = SUNDAY_0300 + timedelta(hours=5)
        assert asyncio.run(scheduler.tick()) is None

        orchestrator.start_job.assert_awaited_once()

    def test_not_due_does_nothing(self):
        scheduler, orchestrator, _, _ = make_scheduler(now=SUNDAY_0300 - timedelta(days=1))

        assert asyncio.run(scheduler.tick()) is None
        orchestrator.start_job.assert_not_called()

    def test_next_week_triggers_again(self):
        scheduler, orchestrator, _, clock = make_scheduler()
        asyncio.run(scheduler.tick())

        clock.now = SUNDAY_0300 + timedelta(days=7)
        asyncio.run(scheduler.tick())

        assert orchestrator.start_job.await_count == 2

    def test_admission_error_retried_next_poll(self):
        """A manual job holding the slot must not cost this week's refresh."""
        start_job = AsyncMock(side_effect=[AdmissionError("already running"), "bulk-1"])
        scheduler, orchestrator, _, clock = make_scheduler(start_job=start_job)

        assert asyncio.run(scheduler.tick()) is None
        clock.now = SUNDAY_0300 + timedelta(minutes=5)
        assert asyncio.run(scheduler.tick()) == "bulk-1"

        assert orchestrator.start_job.await_count == 2

    def test_success_after_retry_consumes_slot(self):
        start_job = AsyncMock(side_effect=[AdmissionError("already running"), "bulk-1"])
        scheduler, orchestrator, _, clock = make_scheduler(start_job=start_job)

        asyncio.run(scheduler.tick())
        asyncio.run(scheduler.tick())
        clock.now = SUNDAY_0300 + timedelta(hours=1)
        assert asyncio.run(scheduler.tick()) is None

        assert orchestrator.start_job.await_count == 2

    def test_other_error_resets_slot(self):
        """An unexpected failure lets the next poll try again."""
        start_job = AsyncMock(side_effect=[RuntimeError("database unavailable"), "bulk-2"])
        scheduler, orchestrator, _, _ = make_scheduler(start_job=start_job)

        assert asyncio.run(scheduler.tick()) is None
        assert asyncio.run(scheduler.tick()) == "bulk-2"

        assert orchestrator.start_job.await_count == 2


class TestTrackedRefresh:
    """Tests for the periodic refresh of looked-up countries."""

    def test_track_country_normalizes(self):
        scheduler, *_ = make_scheduler()
        scheduler.track_country(" France ")
        scheduler.track_country("france")
        scheduler.track_country("Chad")
        assert scheduler.tracked_countries == ["chad", "france"]

    def test_refresh_due_after_interval(self):
        scheduler, _, fetcher, clock = make_scheduler(alert_refresh_interval_hours=6)
        scheduler.track_country("france")

        # First call only starts the interval
        assert asyncio.run(scheduler.refresh_tracked_if_due()) is False
        clock.now = SUNDAY_0300 + timedelta(hours=5)
        assert asyncio.run(scheduler.refresh_tracked_if_due()) is False
        clock.now = SUNDAY_0300 + timedelta(hours=6)
        assert asyncio.run(scheduler.refresh_tracked_if_due()) is True

        fetcher.fetch_country_data.assert_awaited_once_with("france")

    def test_refresh_continues_past_failures(self):
        fetch = AsyncMock(side_effect=[TransientFetchError("chad", "boom"), None])
        scheduler, _, fetcher, _ = make_scheduler(fetch=fetch)
        scheduler.track_country("chad")
        scheduler.track_country("peru")

        failed = asyncio.run(scheduler.refresh_tracked_countries())

        assert failed == ["chad"]
        assert fetcher.fetch_country_data.await_count == 2

    def test_force_refresh_tracks_and_fetches(self):
        scheduler, _, fetcher, _ = make_scheduler()

        asyncio.run(scheduler.force_refresh("Peru"))

        assert scheduler.tracked_countries == ["peru"]
        fetcher.fetch_country_data.assert_awaited_once_with("peru")

    def test_force_refresh_propagates_fetch_errors(self):
        fetch = AsyncMock(side_effect=TransientFetchError("peru", "boom"))
        scheduler, *_ = make_scheduler(fetch=fetch)

        with pytest.raises(TransientFetchError):
            asyncio.run(scheduler.force_refresh("peru"))


class TestPoll:

    def test_poll_runs_all_duties(self):
        scheduler, orchestrator, _, _ = make_scheduler()

        asyncio.run(scheduler.poll())

        orchestrator.start_job.assert_awaited_once()
        orchestrator.cleanup_old_jobs.assert_called_once()

    def test_start_and_stop(self):
        sleeps = []

        async def fake_sleep(seconds):
            sleeps.append(seconds)
            await asyncio.sleep(0)

        scheduler, orchestrator, _, _ = make_scheduler(
            poll_interval_seconds=300, _sleep=fake_sleep
        )

        async def scenario():
            await scheduler.start()
            assert scheduler.is_running
            for _ in range(3):
                await asyncio.sleep(0)
            await scheduler.stop()

        asyncio.run(scenario())

        assert not scheduler.is_running
        assert sleeps and all(s == 300 for s in sleeps)
        orchestrator.start_job.assert_awaited_once()
