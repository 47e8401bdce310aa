"""
Database service functions for cached country data.

Write path (AdvisoryFetcher only): save_country_data() replaces a country's
alerts and upserts its background info in a single transaction.
Read path (query API): get_country_data(), search_countries(),
get_all_countries_with_data().
"""

import logging
from dataclasses import dataclass
from typing import List, Optional

from sqlalchemy import delete, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session

from fetchers.types import AlertData, BackgroundData
from models.country import Alert, BackgroundInfo, Country
from utils.timestamps import utc_now

logger = logging.getLogger(__name__)

FLAG_URL_TEMPLATE = "https://flagcdn.com/w40/{code}.png"


@dataclass
class CountryData:
    """A country with its current alerts and background info."""
    country: Country
    alerts: List[Alert]
    background: Optional[BackgroundInfo]


def country_slug(name: str) -> str:
    """Storage id for a normalized name, e.g. 'united kingdom' → 'united-kingdom'."""
    return "-".join(name.strip().lower().split())


def get_country_by_name(db: Session, name: str) -> Optional[Country]:
    """Fetch country by normalized name (case-insensitive)."""
    return db.scalar(select(Country).where(Country.name == name.strip().lower()))


def ensure_country(db: Session, name: str, code: str) -> Country:
    """
    Get or create the country row (flushes, does not commit).

    Existing rows get their last_updated bumped.
    """
    country = get_country_by_name(db, name)
    if country is None:
        country = Country(
            id=country_slug(name),
            name=name.strip().lower(),
            code=code,
            flag_url=FLAG_URL_TEMPLATE.format(code=code.lower()),
        )
        db.add(country)
    else:
        country.last_updated = utc_now()
    db.flush()
    return country


def replace_alerts(db: Session, country_id: str, alerts: List[AlertData]) -> int:
    """
    Delete all alerts for a country and insert the given ones (no commit).

    Returns:
        Number of alerts inserted
    """
    db.execute(delete(Alert).where(Alert.country_id == country_id))
    for alert in alerts:
        db.add(Alert(
            country_id=country_id,
            source=alert.source,
            title=alert.title,
            level=alert.level,
            severity=alert.severity,
            summary=alert.summary,
            link=alert.link,
            date=alert.date,
            key_risks=alert.key_risks,
            safety_recommendations=alert.safety_recommendations,
            specific_areas=alert.specific_areas,
            ai_enhanced_at=alert.ai_enhanced_at,
        ))
    db.flush()
    return len(alerts)


def _insert_for(db: Session):
    """Dialect-specific INSERT that supports ON CONFLICT DO UPDATE."""
    if db.get_bind().dialect.name == "postgresql":
        return postgresql.insert
    return sqlite.insert


def upsert_background(db: Session, country_id: str, background: BackgroundData) -> None:
    """
    UPSERT the single background_info row for a country (no commit).

    Uses INSERT ... ON CONFLICT (country_id) DO UPDATE.
    """
    values = {
        "country_id": country_id,
        "languages": background.languages,
        "religion": background.religion,
        "gdp_per_capita": background.gdp_per_capita,
        "population": background.population,
        "capital": background.capital,
        "currency": background.currency,
        "wiki_link": background.wiki_link,
        "last_updated": utc_now(),
    }
    insert = _insert_for(db)
    stmt = insert(BackgroundInfo).values(**values)
    stmt = stmt.on_conflict_do_update(
        index_elements=["country_id"],
        set_={key: value for key, value in values.items() if key != "country_id"},
    )
    db.execute(stmt)


def save_country_data(
    db: Session,
    name: str,
    code: str,
    alerts: List[AlertData],
    background: Optional[BackgroundData],
) -> Country:
    """
    Persist one fresh fetch for a country in a single transaction.

    Args:
        db: Database session
        name: Normalized country name
        code: ISO alpha-2 code (or XX)
        alerts: Complete new alert set (replaces the old one)
        background: Background info, or None to leave the existing row

    Returns:
        The country row
    """
    try:
        country = ensure_country(db, name, code)
        count = replace_alerts(db, country.id, alerts)
        if background is not None:
            upsert_background(db, country.id, background)
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info(f"Saved {count} alerts for {name} (background={'yes' if background else 'no'})")
    return country


def _load_country_data(db: Session, country: Country) -> CountryData:
    alerts = list(db.scalars(
        select(Alert).where(Alert.country_id == country.id).order_by(Alert.created_at.asc())
    ))
    # Upserts bypass the identity map, so refresh any already-loaded row
    background = db.scalar(
        select(BackgroundInfo)
        .where(BackgroundInfo.country_id == country.id)
        .execution_options(populate_existing=True)
    )
    return CountryData(country=country, alerts=alerts, background=background)


def get_country_data(db: Session, name: str) -> Optional[CountryData]:
    """Country + alerts + background, or None if the country was never fetched."""
    country = get_country_by_name(db, name)
    if country is None:
        return None
    return _load_country_data(db, country)


def search_countries(db: Session, names: List[str]) -> List[CountryData]:
    """get_country_data() for each name, skipping countries with no cached data."""
    results = []
    for name in names:
        data = get_country_data(db, name)
        if data is not None:
            results.append(data)
    return results


def get_all_countries_with_data(db: Session) -> List[CountryData]:
    """Every cached country that has at least one alert."""
    countries = db.scalars(
        select(Country)
        .where(Country.id.in_(select(Alert.country_id).distinct()))
        .order_by(Country.name.asc())
    )
    return [_load_country_data(db, country) for country in countries]
