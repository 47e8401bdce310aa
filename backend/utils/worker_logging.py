"""
Prefixed log contexts for the refresh workers.

Every orchestrator and scheduler log line carries a bracketed prefix naming
the worker and what it is working on, so one job or one country can be
followed with a plain text filter:

    [RefreshWorker:job_id=bulk-1760900000000-a1b2c3d4] Starting batch 3/39
    [RefreshWorker:job_id=bulk-1760900000000-a1b2c3d4:country=chad] Attempt 1/3 failed: ...
    [Scheduler:slot=2026-10-18] Triggering weekly bulk refresh

A context class sets worker_type and implements _log_context(); the mixin
supplies the log_* methods.

Usage:
    log = CountryLogContext("bulk-1760900000000-a1b2c3d4", "france")
    log.log_warning("Attempt 2/3 failed: Request timed out")
"""

import logging
from enum import Enum
from typing import Protocol

logger = logging.getLogger("advisories.workers")


class WorkerType(Enum):
    """Which worker a log line comes from."""
    REFRESH = "RefreshWorker"
    SCHEDULER = "Scheduler"


class WorkerLoggerProtocol(Protocol):
    """Shape a context class needs for WorkerLoggerMixin to work."""
    worker_type: WorkerType

    def _log_context(self) -> str:
        """Context part of the prefix, e.g. 'job_id=bulk-1:country=france'."""
        ...


class WorkerLoggerMixin:
    """
    log_info / log_warning / log_error / log_exception with a worker prefix.

    Prefix: [<worker_type>:<_log_context()>]
    """

    def _log_prefix(self: WorkerLoggerProtocol) -> str:
        return f"[{self.worker_type.value}:{self._log_context()}]"

    def log_info(self: WorkerLoggerProtocol, message: str) -> None:
        logger.info(f"{self._log_prefix()} {message}")

    def log_warning(self: WorkerLoggerProtocol, message: str) -> None:
        logger.warning(f"{self._log_prefix()} {message}")

    def log_error(self: WorkerLoggerProtocol, message: str) -> None:
        logger.error(f"{self._log_prefix()} {message}")

    def log_exception(self: WorkerLoggerProtocol, message: str) -> None:
        """Error level, with the active traceback attached."""
        logger.exception(f"{self._log_prefix()} {message}")


# =============================================================================
# Context classes
# =============================================================================

class JobLogContext(WorkerLoggerMixin):
    """[RefreshWorker:job_id=X] - job-level orchestrator events."""
    worker_type = WorkerType.REFRESH

    def __init__(self, job_id: str):
        self.job_id = job_id

    def _log_context(self) -> str:
        return f"job_id={self.job_id}"


class CountryLogContext(WorkerLoggerMixin):
    """[RefreshWorker:job_id=X:country=Y] - one country within a job."""
    worker_type = WorkerType.REFRESH

    def __init__(self, job_id: str, country: str):
        self.job_id = job_id
        self.country = country

    def _log_context(self) -> str:
        return f"job_id={self.job_id}:country={self.country}"


class SchedulerLogContext(WorkerLoggerMixin):
    """[Scheduler:slot=YYYY-MM-DD] - weekly trigger decisions."""
    worker_type = WorkerType.SCHEDULER

    def __init__(self, slot: str):
        self.slot = slot

    def _log_context(self) -> str:
        return f"slot={self.slot}"
