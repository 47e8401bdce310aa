from datetime import datetime, timezone
from typing import Any, Dict, List
from sqlalchemy import Integer, String, DateTime, Index, text
from sqlalchemy.orm import Mapped, mapped_column
from models import Base, JSONType


class RefreshJobStatus:
    """Bulk refresh job status constants."""
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    # Terminal states - job is immutable once it reaches one of these
    TERMINAL = [COMPLETED, FAILED, CANCELLED]


class RefreshJob(Base):
    """
    Model for one bulk advisory refresh across the full country list.

    Status flow: running → completed/failed/cancelled

    Invariant: processed_countries + failed_countries <= total_countries
    """
    __tablename__ = "jobs"
    __table_args__ = (
        Index("idx_jobs_status", "status"),
        # At most one running job across every process sharing the database
        Index(
            "uq_jobs_single_running",
            "status",
            unique=True,
            postgresql_where=text("status = 'running'"),
            sqlite_where=text("status = 'running'"),
        ),
        Index("idx_jobs_started_at", "started_at"),
    )

    # Opaque token, e.g. "bulk-1760900000000-a1b2c3"
    id: Mapped[str] = mapped_column(String(64), primary_key=True)

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=RefreshJobStatus.RUNNING
    )

    total_countries: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    processed_countries: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    failed_countries: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Timestamps
    started_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc)
    )

    completed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=True
    )

    # Append-only: [{"country": "france", "error": "Request timed out"}, ...]
    error_log: Mapped[List[Dict[str, Any]]] = mapped_column(JSONType, nullable=False, default=list)

    # Set only on natural completion; drives same-day dedup
    last_run_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=True
    )

    def __repr__(self) -> str:
        return (
            f"<RefreshJob(id='{self.id}', status='{self.status}', "
            f"processed={self.processed_countries}, failed={self.failed_countries}, "
            f"total={self.total_countries})>"
        )
