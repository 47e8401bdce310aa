"""
Durable store for refresh jobs and per-country progress.

Every method opens a short transaction of its own. All writes are issued from
the event loop thread, so completions within a batch are applied one at a
time; counter increments are also expressed in SQL (col = col + 1) so they
never depend on a stale in-memory value.

Reference: run_service.finalize_run (idempotent status guard)
"""

import logging
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from models.country_progress import CountryProgress, CountryProgressStatus
from models.refresh_job import RefreshJob, RefreshJobStatus
from utils.timestamps import as_utc, utc_now

logger = logging.getLogger(__name__)

# Columns update_job is allowed to touch
UPDATABLE_JOB_FIELDS = {
    "status",
    "processed_countries",
    "failed_countries",
    "completed_at",
    "error_log",
    "last_run_date",
}


class RunningJobExistsError(Exception):
    """Raised by create_job when the database already holds a running job."""


class JobStore:
    """
    Persistence for RefreshJob and CountryProgress rows.

    Returned ORM objects are detached; the session factory must be built
    with expire_on_commit=False (see db.session.make_session_factory).
    """

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    def _session(self) -> Session:
        return self._session_factory()

    # =========================================================================
    # Jobs
    # =========================================================================

    def create_job(
        self,
        job_id: str,
        total_countries: int,
        started_at: Optional[datetime] = None,
    ) -> RefreshJob:
        """
        Insert a new running job with zeroed counters.

        Args:
            job_id: Opaque job token
            total_countries: Size of the work list (fixed for the job's lifetime)
            started_at: Start time (defaults to now, UTC)

        Returns:
            The created RefreshJob

        Raises:
            RunningJobExistsError: If another job is already running
        """
        job = RefreshJob(
            id=job_id,
            status=RefreshJobStatus.RUNNING,
            total_countries=total_countries,
            processed_countries=0,
            failed_countries=0,
            started_at=started_at or utc_now(),
            error_log=[],
        )
        with self._session() as db:
            db.add(job)
            try:
                db.commit()
            except IntegrityError:
                db.rollback()
                if self.list_jobs_by_status(RefreshJobStatus.RUNNING):
                    raise RunningJobExistsError(job_id)
                raise
        logger.info(f"Created job {job_id} with {total_countries} countries")
        return job

    def get_job(self, job_id: str) -> Optional[RefreshJob]:
        with self._session() as db:
            return db.get(RefreshJob, job_id)

    def update_job(self, job_id: str, **fields: Any) -> Optional[RefreshJob]:
        """
        Partially update a running job.

        Terminal jobs are immutable, so this returns None for them as well
        as for unknown ids.

        Raises:
            ValueError: If a field is not an updatable job column
        """
        unknown = set(fields) - UPDATABLE_JOB_FIELDS
        if unknown:
            raise ValueError(f"Cannot update job fields: {sorted(unknown)}")

        with self._session() as db:
            job = db.get(RefreshJob, job_id)
            if job is None or job.status in RefreshJobStatus.TERMINAL:
                return None
            for name, value in fields.items():
                setattr(job, name, value)
            db.commit()
            return job

    def finalize_job(
        self,
        job_id: str,
        status: str,
        error: Optional[dict] = None,
        last_run_date: Optional[datetime] = None,
    ) -> bool:
        """
        Move a running job to a terminal status.

        Uses idempotent guard (status = 'running') so a job is finalized at
        most once, whoever gets there first.

        Args:
            job_id: Job to finalize
            status: One of RefreshJobStatus.TERMINAL
            error: Optional {country, error} entry appended to error_log
            last_run_date: Set on natural completion only

        Returns:
            True if the job was finalized, False if missing or already terminal
        """
        if status not in RefreshJobStatus.TERMINAL:
            raise ValueError(f"Not a terminal job status: {status}")

        with self._session() as db:
            job = db.get(RefreshJob, job_id)
            if job is None or job.status != RefreshJobStatus.RUNNING:
                return False

            values: dict[str, Any] = {"status": status, "completed_at": utc_now()}
            if error is not None:
                values["error_log"] = list(job.error_log or []) + [error]
            if last_run_date is not None:
                values["last_run_date"] = last_run_date

            result = db.execute(
                update(RefreshJob)
                .where(RefreshJob.id == job_id)
                .where(RefreshJob.status == RefreshJobStatus.RUNNING)
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            db.commit()

        finalized = result.rowcount > 0
        if finalized:
            logger.info(f"Finalized job {job_id} as {status}")
        return finalized

    def list_jobs(self, limit: Optional[int] = None) -> list[RefreshJob]:
        """Jobs ordered by started_at, newest first."""
        stmt = select(RefreshJob).order_by(RefreshJob.started_at.desc())
        if limit is not None:
            stmt = stmt.limit(limit)
        with self._session() as db:
            return list(db.scalars(stmt))

    def list_jobs_by_status(self, status: str) -> list[RefreshJob]:
        stmt = (
            select(RefreshJob)
            .where(RefreshJob.status == status)
            .order_by(RefreshJob.started_at.asc())
        )
        with self._session() as db:
            return list(db.scalars(stmt))

    def get_last_run_date(self) -> Optional[datetime]:
        """Most recent last_run_date across all jobs (UTC), or None."""
        with self._session() as db:
            value = db.scalar(select(func.max(RefreshJob.last_run_date)))
        return as_utc(value)

    def delete_jobs_older_than(self, cutoff: datetime) -> int:
        """
        Delete terminal jobs started before cutoff, with their progress rows.

        Progress rows are deleted explicitly; SQLite does not enforce the
        ON DELETE CASCADE unless foreign keys are switched on.

        Returns:
            Number of jobs deleted
        """
        with self._session() as db:
            job_ids = list(db.scalars(
                select(RefreshJob.id)
                .where(RefreshJob.status.in_(RefreshJobStatus.TERMINAL))
                .where(RefreshJob.started_at < cutoff)
            ))
            if not job_ids:
                return 0

            db.execute(delete(CountryProgress).where(CountryProgress.job_id.in_(job_ids)))
            db.execute(delete(RefreshJob).where(RefreshJob.id.in_(job_ids)))
            db.commit()

        logger.info(f"Deleted {len(job_ids)} jobs older than {cutoff.isoformat()}")
        return len(job_ids)

    # =========================================================================
    # Country progress
    # =========================================================================

    def _get_progress(self, db: Session, job_id: str, country_name: str) -> Optional[CountryProgress]:
        return db.scalar(
            select(CountryProgress)
            .where(CountryProgress.job_id == job_id)
            .where(CountryProgress.country_name == country_name)
        )

    def mark_country_processing(self, job_id: str, country_name: str) -> bool:
        """
        Upsert the progress row to 'processing'.

        Returns:
            False if the row is already terminal (left untouched)
        """
        with self._session() as db:
            row = self._get_progress(db, job_id, country_name)
            if row is None:
                row = CountryProgress(job_id=job_id, country_name=country_name, retry_count=0)
                db.add(row)
            elif row.status in CountryProgressStatus.TERMINAL:
                return False

            row.status = CountryProgressStatus.PROCESSING
            row.started_at = utc_now()
            db.commit()
        return True

    def update_country_progress_transactional(
        self,
        job_id: str,
        country_name: str,
        status: str,
        error: Optional[str] = None,
        retry_count: int = 0,
    ) -> bool:
        """
        Record a country's terminal outcome and bump the job counter atomically.

        In one transaction:
        1. Lock the job row
        2. Upsert the progress row to the terminal status
        3. Increment processed_countries or failed_countries
        4. For failures, append {country, error} to error_log

        Args:
            job_id: Owning job
            country_name: Country that finished
            status: 'completed' or 'failed'
            error: Failure message (failed only)
            retry_count: Retries used (attempts - 1)

        Returns:
            True if applied; False (nothing written) when the job is not
            running, the row is already terminal, or the counters already
            account for every country
        """
        if status not in CountryProgressStatus.TERMINAL:
            raise ValueError(f"Not a terminal country status: {status}")

        failed = status == CountryProgressStatus.FAILED

        with self._session() as db:
            job = db.scalar(
                select(RefreshJob).where(RefreshJob.id == job_id).with_for_update()
            )
            if job is None or job.status != RefreshJobStatus.RUNNING:
                return False
            if job.processed_countries + job.failed_countries >= job.total_countries:
                logger.warning(
                    f"Job {job_id} counters already at total; ignoring {country_name}"
                )
                return False

            row = self._get_progress(db, job_id, country_name)
            if row is None:
                row = CountryProgress(job_id=job_id, country_name=country_name)
                db.add(row)
            elif row.status in CountryProgressStatus.TERMINAL:
                return False

            now = utc_now()
            row.status = status
            row.started_at = row.started_at or now
            row.completed_at = now
            row.error = error if failed else None
            row.retry_count = retry_count

            counter = RefreshJob.failed_countries if failed else RefreshJob.processed_countries
            values: dict[str, Any] = {counter.key: counter + 1}
            if failed:
                values["error_log"] = list(job.error_log or []) + [
                    {"country": country_name, "error": error or "Unknown error"}
                ]

            db.execute(
                update(RefreshJob)
                .where(RefreshJob.id == job_id)
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            db.commit()
        return True

    def list_country_progress(self, job_id: str) -> list[CountryProgress]:
        stmt = (
            select(CountryProgress)
            .where(CountryProgress.job_id == job_id)
            .order_by(CountryProgress.id.asc())
        )
        with self._session() as db:
            return list(db.scalars(stmt))

    def finished_country_names(self, job_id: str) -> set[str]:
        """Countries of a job whose progress row is terminal (completed or failed)."""
        with self._session() as db:
            return set(db.scalars(
                select(CountryProgress.country_name)
                .where(CountryProgress.job_id == job_id)
                .where(CountryProgress.status.in_(CountryProgressStatus.TERMINAL))
            ))
