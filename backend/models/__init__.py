from sqlalchemy import JSON
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase

class Base(DeclarativeBase):
    """Base class for all database models"""
    pass

# JSONB on PostgreSQL, plain JSON elsewhere (SQLite for local runs and tests)
JSONType = JSON().with_variant(JSONB(), "postgresql")

# Import all models here for Alembic autogenerate
from models.refresh_job import RefreshJob, RefreshJobStatus
from models.country_progress import CountryProgress, CountryProgressStatus
from models.country import Country, Alert, AlertSeverity, BackgroundInfo

__all__ = [
    "Base",
    "JSONType",
    "RefreshJob",
    "RefreshJobStatus",
    "CountryProgress",
    "CountryProgressStatus",
    "Country",
    "Alert",
    "AlertSeverity",
    "BackgroundInfo",
]
