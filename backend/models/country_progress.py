from datetime import datetime
from sqlalchemy import Integer, String, Text, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column
from models import Base


class CountryProgressStatus:
    """Per-country progress status constants."""
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    # Terminal states - row is never rewritten after reaching one
    TERMINAL = [COMPLETED, FAILED]


class CountryProgress(Base):
    """
    Durable per-country checkpoint within a refresh job.

    Status flow: pending → processing → completed/failed (no regression)

    Unique constraint: (job_id, country_name)
    """
    __tablename__ = "job_country_progress"
    __table_args__ = (
        UniqueConstraint("job_id", "country_name", name="uq_job_country"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    job_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("jobs.id", ondelete="CASCADE"),
        nullable=False
    )

    country_name: Mapped[str] = mapped_column(String(100), nullable=False)

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=CountryProgressStatus.PENDING
    )

    started_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=True)
    error: Mapped[str] = mapped_column(Text, nullable=True)
    retry_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    def __repr__(self) -> str:
        return f"<CountryProgress(job_id='{self.job_id}', country='{self.country_name}', status='{self.status}')>"
