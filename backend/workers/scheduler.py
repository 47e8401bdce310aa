"""
Refresh Scheduler

Two periodic duties, driven by one polling loop:

1. Weekly bulk refresh: when the wall clock (UTC) is on SCHEDULE_WEEKDAY at
   or after SCHEDULE_HOUR, start one orchestrator job. A guard keyed by the
   ISO date ensures at most one started job per calendar date.
   - Start failed (AdmissionError or any other error): logged, guard reset
     so the next poll retries. Admission rejects the retries while a job
     runs and, after a completed run, for the rest of that UTC day.
2. Tracked-country refresh: every ALERT_REFRESH_INTERVAL_HOURS, re-fetch each
   country looked up through the query API.

The loop never dies on an exception; it logs and polls again.

Log Format:
Weekly trigger logs use prefix [Scheduler:slot=YYYY-MM-DD].
"""

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Awaitable, Callable, Optional

from fetchers.advisory_fetcher import AdvisoryFetcher
from utils.timestamps import utc_now
from utils.worker_logging import SchedulerLogContext
from workers.errors import AdmissionError
from workers.orchestrator import BulkIngestionOrchestrator

logger = logging.getLogger(__name__)

WEEKDAY_NAMES = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"]


class RefreshScheduler:
    """
    Wall-clock scheduler for bulk and tracked-country refreshes.

    Example:
        scheduler = RefreshScheduler(orchestrator, fetcher, weekday=6, hour=2)
        await scheduler.start()
        ...
        await scheduler.stop()
    """

    def __init__(
        self,
        orchestrator: BulkIngestionOrchestrator,
        fetcher: AdvisoryFetcher,
        weekday: int = 6,
        hour: int = 2,
        poll_interval_seconds: float = 300.0,
        alert_refresh_interval_hours: float = 6.0,
        _sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        _now: Callable[[], datetime] = utc_now,
    ):
        if not 0 <= weekday <= 6:
            raise ValueError("weekday must be 0 (Monday) through 6 (Sunday)")
        if not 0 <= hour <= 23:
            raise ValueError("hour must be 0 through 23")

        self._orchestrator = orchestrator
        self._fetcher = fetcher
        self.weekday = weekday
        self.hour = hour
        self.poll_interval_seconds = poll_interval_seconds
        self.alert_refresh_interval = timedelta(hours=alert_refresh_interval_hours)
        self._sleep = _sleep
        self._now = _now

        self._last_triggered_slot: Optional[str] = None
        self._last_alert_refresh: Optional[datetime] = None
        self._tracked: set[str] = set()
        self._task: Optional[asyncio.Task] = None

    @classmethod
    def from_settings(cls, settings, orchestrator, fetcher) -> "RefreshScheduler":
        return cls(
            orchestrator,
            fetcher,
            weekday=settings.SCHEDULE_WEEKDAY,
            hour=settings.SCHEDULE_HOUR,
            poll_interval_seconds=settings.SCHEDULER_POLL_INTERVAL_SECONDS,
            alert_refresh_interval_hours=settings.ALERT_REFRESH_INTERVAL_HOURS,
        )

    def describe_schedule(self) -> str:
        """Human-readable bulk schedule, e.g. 'Sundays at 02:00 UTC'."""
        return f"{WEEKDAY_NAMES[self.weekday]}s at {self.hour:02d}:00 UTC"

    # =========================================================================
    # Lifecycle
    # =========================================================================

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        if self.is_running:
            return
        self._last_alert_refresh = self._now()
        self._task = asyncio.create_task(self._run_loop(), name="refresh-scheduler")
        logger.info(
            f"Scheduler started - bulk: {self.describe_schedule()}, "
            f"tracked countries: every {self.alert_refresh_interval}"
        )

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        await asyncio.gather(self._task, return_exceptions=True)
        self._task = None
        logger.info("Scheduler stopped")

    async def _run_loop(self) -> None:
        while True:
            try:
                await self.poll()
            except Exception:
                logger.exception("Scheduler poll failed")
            await self._sleep(self.poll_interval_seconds)

    async def poll(self) -> None:
        """One scheduler pass: weekly trigger check, tracked refresh if due, cache cleanup."""
        await self.tick()
        await self.refresh_tracked_if_due()
        self._orchestrator.cleanup_old_jobs()

    # =========================================================================
    # Weekly bulk refresh
    # =========================================================================

    def is_due(self, now: datetime) -> bool:
        return now.weekday() == self.weekday and now.hour >= self.hour

    async def tick(self) -> Optional[str]:
        """
        Start the weekly bulk job if this date's slot is due and unused.

        Returns:
            The started job id, or None if nothing was started
        """
        now = self._now()
        slot = now.date().isoformat()
        if not self.is_due(now) or self._last_triggered_slot == slot:
            return None

        self._last_triggered_slot = slot
        log = SchedulerLogContext(slot)
        log.log_info("Triggering weekly bulk refresh")

        try:
            job_id = await self._orchestrator.start_job()
        except AdmissionError as e:
            log.log_info(f"Bulk refresh not admitted, will retry next poll: {e}")
            self._last_triggered_slot = None
            return None
        except Exception as e:
            log.log_exception(f"Bulk refresh trigger failed, will retry next poll: {e}")
            self._last_triggered_slot = None
            return None

        log.log_info(f"Started job {job_id}")
        return job_id

    # =========================================================================
    # Tracked-country refresh
    # =========================================================================

    def track_country(self, country_name: str) -> None:
        self._tracked.add(country_name.strip().lower())

    @property
    def tracked_countries(self) -> list[str]:
        return sorted(self._tracked)

    async def refresh_tracked_if_due(self) -> bool:
        """Refresh tracked countries if the alert refresh interval has elapsed."""
        now = self._now()
        if self._last_alert_refresh is None:
            self._last_alert_refresh = now
            return False
        if now - self._last_alert_refresh < self.alert_refresh_interval:
            return False

        self._last_alert_refresh = now
        await self.refresh_tracked_countries()
        return True

    async def refresh_tracked_countries(self) -> list[str]:
        """
        Re-fetch every tracked country one at a time.

        Returns:
            Countries that failed to refresh (each failure is logged)
        """
        countries = self.tracked_countries
        logger.info(f"Refreshing alert data for {len(countries)} tracked countries")

        failed = []
        for country in countries:
            try:
                await self._fetcher.fetch_country_data(country)
            except Exception as e:
                logger.warning(f"Failed to refresh alerts for {country}: {e}")
                failed.append(country)
        return failed

    async def force_refresh(self, country_name: str) -> None:
        """
        Track a country and refresh it immediately.

        Raises:
            Whatever the fetcher raises (e.g. TransientFetchError)
        """
        logger.info(f"Force refreshing data for {country_name}")
        self.track_country(country_name)
        await self._fetcher.fetch_country_data(country_name.strip().lower())
