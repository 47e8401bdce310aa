"""
Bulk Ingestion Orchestrator

Refreshes advisory data for every country in the catalog as one durable job.

Workflow (per job):
1. Admission control: at most one running job, at most one job per UTC day
2. Create the job row and return its id immediately (fire-and-forget)
3. Detached task walks the country list in batches of REFRESH_BATCH_SIZE:
   - Check for cancellation before each batch
   - Fetch every country in the batch concurrently, each with retry/backoff
   - Record each country's terminal outcome atomically in the JobStore
   - Sleep REFRESH_BATCH_DELAY between batches (not after the last one)
4. Finalize: completed (natural end), cancelled (already persisted by
   cancel()), or failed (unexpected error, logged as {country: "system"})

Restart behavior:
- start() resumes every job still marked running in the store, processing
  only the countries without a terminal progress row
- stop() cancels detached tasks without touching job status, so the next
  start() picks them up again

Log Format:
All logs use prefix [RefreshWorker:job_id=X] or
[RefreshWorker:job_id=X:country=Y] for filtering.
"""

import asyncio
import logging
import secrets
from datetime import datetime, timedelta
from typing import Awaitable, Callable, Optional

from catalog.catalog import CountryCatalog
from db.job_store import JobStore, RunningJobExistsError
from fetchers.advisory_fetcher import AdvisoryFetcher
from models.country_progress import CountryProgressStatus
from models.refresh_job import RefreshJobStatus
from utils.timestamps import as_utc, utc_now
from utils.worker_logging import CountryLogContext, JobLogContext
from workers.errors import AdmissionError
from workers.retry import retry_with_backoff
from workers.types import ErrorEntry, JobProgress, RefreshConfig, SYSTEM_ERROR_COUNTRY

logger = logging.getLogger(__name__)

ALREADY_RUNNING_MESSAGE = "A bulk download job is already running. Please wait for it to complete."
ALREADY_RAN_TODAY_MESSAGE = "A bulk download has already been initiated today. Please try again tomorrow."

# In-memory entries for finished jobs are evicted after this long
CACHE_MAX_AGE_HOURS = 24


def new_job_id(now: datetime) -> str:
    """Opaque job token: bulk-<epoch ms>-<random hex>."""
    return f"bulk-{int(now.timestamp() * 1000)}-{secrets.token_hex(4)}"


def make_batches(countries: list[str], batch_size: int) -> list[list[str]]:
    """Split the work list into consecutive batches of at most batch_size."""
    return [countries[i:i + batch_size] for i in range(0, len(countries), batch_size)]


class BulkIngestionOrchestrator:
    """
    Runs and tracks bulk refresh jobs.

    The JobStore is authoritative; the in-memory JobProgress entries are a
    read-through cache updated only after the store accepts each write.
    All store calls happen on the event loop thread.

    Example:
        orchestrator = BulkIngestionOrchestrator(store, fetcher, catalog, config)
        await orchestrator.start()
        job_id = await orchestrator.start_job()
        orchestrator.get_job_view(job_id).processed_countries
    """

    def __init__(
        self,
        store: JobStore,
        fetcher: AdvisoryFetcher,
        catalog: CountryCatalog,
        config: Optional[RefreshConfig] = None,
        _sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        _now: Callable[[], datetime] = utc_now,
    ):
        self._store = store
        self._fetcher = fetcher
        self._catalog = catalog
        self._config = config or RefreshConfig()
        self._sleep = _sleep
        self._now = _now

        self._jobs: dict[str, JobProgress] = {}
        self._tasks: dict[str, asyncio.Task] = {}
        self._admission_lock = asyncio.Lock()
        self._started = False

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def start(self) -> list[str]:
        """
        Start the orchestrator and resume orphaned jobs.

        Returns:
            Ids of jobs resumed by this call
        """
        if self._started:
            return []
        self._started = True
        logger.info("Bulk ingestion orchestrator starting")
        return self.recover_orphaned_jobs()

    async def stop(self) -> None:
        """Cancel detached job tasks; job rows stay 'running' for the next start()."""
        self._started = False
        tasks = list(self._tasks.values())
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()
        logger.info(f"Bulk ingestion orchestrator stopped ({len(tasks)} tasks cancelled)")

    def has_running_job(self) -> bool:
        return any(progress.is_running for progress in self._jobs.values())

    # =========================================================================
    # Job control
    # =========================================================================

    async def start_job(self) -> str:
        """
        Admit and start a new bulk refresh job.

        Returns:
            The new job id (processing continues in the background)

        Raises:
            AdmissionError: If a job is running or one already ran today
        """
        async with self._admission_lock:
            self._check_admission()

            countries = self._catalog.all_valid_countries()
            job_id = new_job_id(self._now())
            try:
                job = self._store.create_job(job_id, len(countries), started_at=self._now())
            except RunningJobExistsError:
                # Another process won the race for the single running slot
                raise AdmissionError(ALREADY_RUNNING_MESSAGE)
            self._jobs[job_id] = JobProgress.from_job(job)
            self._spawn(job_id, countries)

        JobLogContext(job_id).log_info(f"Started bulk refresh of {len(countries)} countries")
        return job_id

    def _check_admission(self) -> None:
        if self.has_running_job() or self._store.list_jobs_by_status(RefreshJobStatus.RUNNING):
            raise AdmissionError(ALREADY_RUNNING_MESSAGE)

        last_run_date = self._store.get_last_run_date()
        if last_run_date is not None and last_run_date.date() == self._now().date():
            raise AdmissionError(ALREADY_RAN_TODAY_MESSAGE)

    def cancel(self, job_id: str) -> bool:
        """
        Request cooperative cancellation of a running job.

        The cancellation is persisted first; the in-memory state flips only
        after the store accepts it. In-flight countries finish, but their
        outcomes are no longer recorded and no new batch starts.

        Returns:
            False if the job is not running in memory (or already terminal in the store)
        """
        progress = self._jobs.get(job_id)
        if progress is None or not progress.is_running:
            return False

        log = JobLogContext(job_id)
        if not self._store.finalize_job(job_id, RefreshJobStatus.CANCELLED):
            log.log_warning("Cancel ignored: job already terminal in store")
            self._reload_from_store(job_id)
            return False

        progress.status = RefreshJobStatus.CANCELLED
        progress.completed_at = self._now()
        progress.current_country = None
        log.log_info("Cancellation requested")
        return True

    def recover_orphaned_jobs(self) -> list[str]:
        """
        Resume every job the store still marks running.

        For each job, the remaining work is the catalog minus the countries
        with a terminal progress row. Jobs with no remaining work are
        finalized as completed. A job that cannot be resumed is marked failed.

        Returns:
            Ids of jobs whose processing was resumed
        """
        resumed = []
        for job in self._store.list_jobs_by_status(RefreshJobStatus.RUNNING):
            if job.id in self._tasks:
                continue

            log = JobLogContext(job.id)
            try:
                finished = self._store.finished_country_names(job.id)
                remaining = [
                    country for country in self._catalog.all_valid_countries()
                    if country not in finished
                ]

                if not remaining:
                    self._store.finalize_job(
                        job.id, RefreshJobStatus.COMPLETED, last_run_date=self._now()
                    )
                    self._reload_from_store(job.id)
                    log.log_info("Recovered job had no remaining countries; marked completed")
                    continue

                self._jobs[job.id] = JobProgress.from_job(job)
                self._spawn(job.id, remaining)
                resumed.append(job.id)
                log.log_info(
                    f"Resuming job: {len(finished)} countries done, {len(remaining)} remaining"
                )
            except Exception as e:
                log.log_exception(f"Failed to resume job: {e}")
                self._fail_job(job.id, e)

        return resumed

    async def wait_for_job(self, job_id: str) -> Optional[JobProgress]:
        """Wait for a job's detached task to finish, then return its view."""
        task = self._tasks.get(job_id)
        if task is not None:
            await asyncio.gather(task, return_exceptions=True)
        return self.get_job_view(job_id)

    # =========================================================================
    # Read side
    # =========================================================================

    def get_job_view(self, job_id: str) -> Optional[JobProgress]:
        """Live progress from memory, falling back to the store."""
        progress = self._jobs.get(job_id)
        if progress is not None:
            return progress

        job = self._store.get_job(job_id)
        if job is None:
            return None
        return JobProgress.from_job(job)

    def list_history(self, limit: int = 10) -> list[JobProgress]:
        """Most recent jobs, newest first."""
        return [
            self._jobs.get(job.id) or JobProgress.from_job(job)
            for job in self._store.list_jobs(limit=limit)
        ]

    def get_last_run_date(self) -> Optional[datetime]:
        """When the last naturally completed job finished."""
        return self._store.get_last_run_date()

    # =========================================================================
    # Housekeeping
    # =========================================================================

    def cleanup_old_jobs(self, max_age_hours: float = CACHE_MAX_AGE_HOURS) -> int:
        """
        Evict finished jobs from the in-memory cache (store rows are kept).

        Returns:
            Number of cache entries evicted
        """
        cutoff = self._now() - timedelta(hours=max_age_hours)
        stale = [
            job_id for job_id, progress in self._jobs.items()
            if progress.is_terminal
            and (as_utc(progress.completed_at) or as_utc(progress.started_at) or cutoff) < cutoff
        ]
        for job_id in stale:
            del self._jobs[job_id]
        return len(stale)

    def purge_expired_jobs(self) -> int:
        """
        Delete finished jobs older than the retention window from the store.

        Returns:
            Number of jobs deleted
        """
        cutoff = self._now() - timedelta(days=self._config.retention_days)
        deleted = self._store.delete_jobs_older_than(cutoff)
        for job_id, progress in list(self._jobs.items()):
            if progress.is_terminal and as_utc(progress.started_at) < cutoff:
                del self._jobs[job_id]
        return deleted

    # =========================================================================
    # Processing
    # =========================================================================

    def _spawn(self, job_id: str, countries: list[str]) -> None:
        task = asyncio.create_task(self._run_job(job_id, countries), name=f"refresh-{job_id}")
        self._tasks[job_id] = task
        task.add_done_callback(lambda _: self._tasks.pop(job_id, None))

    async def _run_job(self, job_id: str, countries: list[str]) -> None:
        """Detached task body; every failure path ends in finalization or logging."""
        log = JobLogContext(job_id)
        try:
            completed = await self._process_countries(job_id, countries)

            progress = self._jobs.get(job_id)
            if progress is not None:
                progress.current_country = None

            if not completed:
                log.log_info("Stopped after cancellation")
                return

            self._complete_job(job_id)
        except asyncio.CancelledError:
            log.log_info("Task cancelled; job stays running for resume")
            raise
        except Exception as e:
            log.log_exception(f"Job failed: {e}")
            self._fail_job(job_id, e)

    def _complete_job(self, job_id: str) -> None:
        log = JobLogContext(job_id)
        if self._store.finalize_job(job_id, RefreshJobStatus.COMPLETED, last_run_date=self._now()):
            self._reload_from_store(job_id)
            view = self._jobs.get(job_id)
            log.log_info(
                f"Completed: {view.processed_countries} processed, "
                f"{view.failed_countries} failed"
            )
        else:
            log.log_warning("Job was already terminal at completion")
            self._reload_from_store(job_id)

    async def _process_countries(self, job_id: str, countries: list[str]) -> bool:
        """
        Process countries batch by batch.

        Returns:
            True if every batch ran, False if cancellation stopped the job

        Raises:
            The first non-fetch error of a batch, after the whole batch settles
        """
        log = JobLogContext(job_id)
        batches = make_batches(countries, self._config.batch_size)

        for index, batch in enumerate(batches, start=1):
            if self._is_cancelled(job_id):
                log.log_info(f"Cancelled before batch {index}/{len(batches)}")
                return False

            log.log_info(f"Starting batch {index}/{len(batches)}: {', '.join(batch)}")
            results = await asyncio.gather(
                *(self._process_country(job_id, country) for country in batch),
                return_exceptions=True,
            )
            for result in results:
                if isinstance(result, BaseException):
                    raise result

            if index < len(batches):
                await self._sleep(self._config.batch_delay)

        return not self._is_cancelled(job_id)

    async def _process_country(self, job_id: str, country: str) -> None:
        """
        Fetch one country with retry and record its terminal outcome.

        Fetch failures become a 'failed' country; store errors propagate.
        """
        log = CountryLogContext(job_id, country)
        progress = self._jobs.get(job_id)
        if progress is not None:
            progress.current_country = country

        self._store.mark_country_processing(job_id, country)

        attempts = 0
        max_attempts = self._config.max_retries

        async def fetch_once() -> None:
            nonlocal attempts
            attempts += 1
            await self._fetcher.fetch_country_data(country)

        def on_retry(error: Exception, attempt: int) -> None:
            log.log_warning(f"Attempt {attempt}/{max_attempts} failed: {error}")

        try:
            await retry_with_backoff(
                fetch_once,
                max_attempts=max_attempts,
                initial_delay=self._config.retry_base_delay,
                max_delay=self._config.retry_max_delay,
                backoff_multiplier=2,
                on_retry=on_retry,
                _sleep=self._sleep,
            )
        except Exception as e:
            message = str(e) or type(e).__name__
            log.log_error(f"Failed after {attempts} attempts: {message}")
            self._record_outcome(job_id, country, CountryProgressStatus.FAILED, message, attempts - 1)
            return

        self._record_outcome(job_id, country, CountryProgressStatus.COMPLETED, None, attempts - 1)

    def _record_outcome(
        self,
        job_id: str,
        country: str,
        status: str,
        error: Optional[str],
        retry_count: int,
    ) -> None:
        """Persist a country outcome, then mirror it in memory if the store accepted it."""
        applied = self._store.update_country_progress_transactional(
            job_id, country, status, error=error, retry_count=retry_count
        )
        if not applied:
            CountryLogContext(job_id, country).log_info(
                f"Outcome '{status}' not recorded (job no longer running or already counted)"
            )
            return

        progress = self._jobs.get(job_id)
        if progress is None:
            return
        if status == CountryProgressStatus.FAILED:
            progress.failed_countries += 1
            progress.errors.append(ErrorEntry(country=country, error=error or "Unknown error"))
        else:
            progress.processed_countries += 1

    def _is_cancelled(self, job_id: str) -> bool:
        progress = self._jobs.get(job_id)
        return progress is not None and progress.status == RefreshJobStatus.CANCELLED

    def _fail_job(self, job_id: str, error: BaseException) -> None:
        """Mark a job failed with a system error entry (no-op if already terminal)."""
        entry = ErrorEntry(country=SYSTEM_ERROR_COUNTRY, error=str(error) or type(error).__name__)
        try:
            self._store.finalize_job(job_id, RefreshJobStatus.FAILED, error=entry.to_dict())
            self._reload_from_store(job_id)
        except Exception:
            # Row stays running; recover_orphaned_jobs picks it up on restart
            JobLogContext(job_id).log_exception("Could not persist job failure")

    def _reload_from_store(self, job_id: str) -> None:
        job = self._store.get_job(job_id)
        if job is not None:
            self._jobs[job_id] = JobProgress.from_job(job)
