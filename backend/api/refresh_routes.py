"""
API routes for bulk advisory refresh jobs.

Endpoints:
- POST /api/refresh-advisories            Start a bulk refresh job (fire-and-forget)
- GET  /api/refresh-status/{job_id}       Live progress for one job
- POST /api/refresh-cancel/{job_id}       Request cooperative cancellation
- GET  /api/refresh-history?limit=10      Most recent jobs, newest first

Running locally:
    cd backend
    uvicorn main:app --reload
"""

import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from api.dependencies import get_orchestrator
from api.schemas import CamelModel
from workers.errors import AdmissionError
from workers.orchestrator import BulkIngestionOrchestrator
from workers.types import JobProgress

logger = logging.getLogger(__name__)

router = APIRouter()


# =============================================================================
# Pydantic Models
# =============================================================================

class StartJobResponse(CamelModel):
    """Response for a newly admitted job."""
    job_id: str
    message: str


class ErrorEntryResponse(CamelModel):
    """One entry of a job's error log."""
    country: str
    error: str


class JobProgressResponse(CamelModel):
    """Live progress of one job."""
    job_id: str
    status: str
    total_countries: int
    processed_countries: int
    failed_countries: int
    current_country: Optional[str] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    errors: list[ErrorEntryResponse] = []


class JobSummaryResponse(CamelModel):
    """One row of the job history."""
    job_id: str
    status: str
    total_countries: int
    processed_countries: int
    failed_countries: int
    error_count: int
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    @classmethod
    def from_progress(cls, progress: JobProgress) -> "JobSummaryResponse":
        return cls(
            job_id=progress.job_id,
            status=progress.status,
            total_countries=progress.total_countries,
            processed_countries=progress.processed_countries,
            failed_countries=progress.failed_countries,
            error_count=len(progress.errors),
            started_at=progress.started_at,
            completed_at=progress.completed_at,
        )


class CancelJobResponse(CamelModel):
    message: str
    job_id: str


# =============================================================================
# Endpoints
# =============================================================================

@router.post("/refresh-advisories", response_model=StartJobResponse)
async def start_bulk_refresh(
    orchestrator: BulkIngestionOrchestrator = Depends(get_orchestrator),
):
    """
    Start a bulk refresh of every country in the catalog.

    Returns immediately with the job id; poll /api/refresh-status/{job_id}
    for progress.

    Returns:
        {"jobId": "bulk-1760900000000-a1b2c3d4", "message": "..."}

    Raises:
        409: A job is already running, or one already ran today (message verbatim)
    """
    try:
        job_id = await orchestrator.start_job()
    except AdmissionError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))

    return StartJobResponse(job_id=job_id, message="Bulk refresh started")


@router.get("/refresh-status/{job_id}", response_model=JobProgressResponse)
async def get_refresh_status(
    job_id: str,
    orchestrator: BulkIngestionOrchestrator = Depends(get_orchestrator),
):
    """
    Get live progress for a job.

    Served from the in-memory view while the job is known to this process,
    otherwise from the store (currentCountry is null in that case).

    Example response:
        {
            "jobId": "bulk-1760900000000-a1b2c3d4",
            "status": "running",
            "totalCountries": 195,
            "processedCountries": 42,
            "failedCountries": 1,
            "currentCountry": "germany",
            "startedAt": "2026-10-18T02:00:03Z",
            "completedAt": null,
            "errors": [{"country": "chad", "error": "USGS: Request timed out - ..."}]
        }

    Raises:
        404: Unknown job id
    """
    progress = orchestrator.get_job_view(job_id)
    if progress is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Job not found")
    return JobProgressResponse.model_validate(progress)


@router.post("/refresh-cancel/{job_id}", response_model=CancelJobResponse)
async def cancel_refresh(
    job_id: str,
    orchestrator: BulkIngestionOrchestrator = Depends(get_orchestrator),
):
    """
    Request cancellation of a running job.

    Cooperative: countries already in flight finish, no new batch starts,
    and their outcomes are not counted.

    Raises:
        404: Job not found or not running
    """
    if not orchestrator.cancel(job_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Job not found or not running",
        )
    logger.info(f"Cancel requested for job {job_id}")
    return CancelJobResponse(message="Job cancellation requested", job_id=job_id)


@router.get("/refresh-history", response_model=list[JobSummaryResponse])
async def get_refresh_history(
    limit: int = Query(10, ge=1, le=100),
    orchestrator: BulkIngestionOrchestrator = Depends(get_orchestrator),
):
    """List the most recent jobs, newest first."""
    return [JobSummaryResponse.from_progress(p) for p in orchestrator.list_history(limit)]
