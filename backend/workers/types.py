"""
Typed structures shared by the orchestrator, scheduler and API.

JobProgress is the in-memory read-through cache of a RefreshJob row. The
store stays authoritative; a JobProgress is always rebuilt from the row on
restart (see JobProgress.from_job).
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from models.refresh_job import RefreshJob, RefreshJobStatus
from utils.timestamps import as_utc

# Sentinel country used in error_log for job-level (non-country) failures
SYSTEM_ERROR_COUNTRY = "system"


@dataclass
class ErrorEntry:
    """One entry of a job's append-only error log."""
    country: str
    error: str

    def to_dict(self) -> dict:
        return {"country": self.country, "error": self.error}

    @classmethod
    def from_dict(cls, data: dict) -> "ErrorEntry":
        return cls(country=data["country"], error=data["error"])


@dataclass
class JobProgress:
    """
    Live view of a refresh job.

    Counters only move after the store has accepted the matching write.
    current_country is memory-only (None when served from the store).
    """
    job_id: str
    status: str
    total_countries: int
    processed_countries: int = 0
    failed_countries: int = 0
    current_country: Optional[str] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    errors: list[ErrorEntry] = field(default_factory=list)

    @property
    def is_running(self) -> bool:
        return self.status == RefreshJobStatus.RUNNING

    @property
    def is_terminal(self) -> bool:
        return self.status in RefreshJobStatus.TERMINAL

    @classmethod
    def from_job(cls, job: RefreshJob) -> "JobProgress":
        """Rebuild the cache entry from the durable row."""
        return cls(
            job_id=job.id,
            status=job.status,
            total_countries=job.total_countries,
            processed_countries=job.processed_countries,
            failed_countries=job.failed_countries,
            current_country=None,
            started_at=as_utc(job.started_at),
            completed_at=as_utc(job.completed_at),
            errors=[ErrorEntry.from_dict(entry) for entry in (job.error_log or [])],
        )


@dataclass
class RefreshConfig:
    """
    Tunables that govern load against upstream services.

    Built from settings in production; tests pass zero delays.
    """
    batch_size: int = 5
    max_retries: int = 3  # total attempts per country
    retry_base_delay: float = 1.0
    retry_max_delay: float = 10.0
    batch_delay: float = 2.0
    retention_days: int = 30

    def __post_init__(self):
        if self.batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        if self.max_retries < 1:
            raise ValueError("max_retries must be at least 1")

    @classmethod
    def from_settings(cls, settings) -> "RefreshConfig":
        return cls(
            batch_size=settings.REFRESH_BATCH_SIZE,
            max_retries=settings.REFRESH_MAX_RETRIES,
            retry_base_delay=settings.REFRESH_RETRY_BASE_DELAY,
            retry_max_delay=settings.REFRESH_RETRY_MAX_DELAY,
            batch_delay=settings.REFRESH_BATCH_DELAY,
            retention_days=settings.JOB_RETENTION_DAYS,
        )
