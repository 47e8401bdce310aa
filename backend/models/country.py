import uuid
from datetime import datetime, timezone
from typing import List
from sqlalchemy import Integer, String, Text, DateTime, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column
from models import Base, JSONType


class AlertSeverity:
    """Alert severity constants."""
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    INFO = "info"

    ALL = [HIGH, MEDIUM, LOW, INFO]


class Country(Base):
    """
    Model for a country with cached advisory data.

    id is a slug of the normalized name (e.g. "united-kingdom").
    """
    __tablename__ = "countries"

    id: Mapped[str] = mapped_column(String(100), primary_key=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    code: Mapped[str] = mapped_column(String(2), nullable=False)
    flag_url: Mapped[str] = mapped_column(Text, nullable=True)

    last_updated: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc)
    )

    def __repr__(self) -> str:
        return f"<Country(id='{self.id}', code='{self.code}')>"


class Alert(Base):
    """
    Model for a single advisory/notice from one upstream source.

    Alerts for a country are replaced wholesale on every refresh.
    """
    __tablename__ = "alerts"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    country_id: Mapped[str] = mapped_column(
        String(100),
        ForeignKey("countries.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    source: Mapped[str] = mapped_column(String(50), nullable=False)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    level: Mapped[str] = mapped_column(Text, nullable=True)
    severity: Mapped[str] = mapped_column(String(10), nullable=False)
    summary: Mapped[str] = mapped_column(Text, nullable=False)
    link: Mapped[str] = mapped_column(Text, nullable=False)
    date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    # AI enhancement fields (State Dept only)
    key_risks: Mapped[List[str]] = mapped_column(JSONType, nullable=True)
    safety_recommendations: Mapped[List[str]] = mapped_column(JSONType, nullable=True)
    specific_areas: Mapped[List[str]] = mapped_column(JSONType, nullable=True)
    ai_enhanced_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc)
    )

    def __repr__(self) -> str:
        return f"<Alert(country_id='{self.country_id}', source='{self.source}', severity='{self.severity}')>"


class BackgroundInfo(Base):
    """
    Model for background country facts.

    Unique constraint: country_id (one row per country, upserted)
    """
    __tablename__ = "background_info"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    country_id: Mapped[str] = mapped_column(
        String(100),
        ForeignKey("countries.id", ondelete="CASCADE"),
        nullable=False,
        unique=True
    )

    languages: Mapped[List[str]] = mapped_column(JSONType, nullable=True)
    religion: Mapped[str] = mapped_column(Text, nullable=True)
    gdp_per_capita: Mapped[int] = mapped_column(Integer, nullable=True)
    population: Mapped[str] = mapped_column(Text, nullable=True)
    capital: Mapped[str] = mapped_column(Text, nullable=True)
    currency: Mapped[str] = mapped_column(Text, nullable=True)
    wiki_link: Mapped[str] = mapped_column(Text, nullable=True)

    last_updated: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc)
    )

    def __repr__(self) -> str:
        return f"<BackgroundInfo(country_id='{self.country_id}')>"
