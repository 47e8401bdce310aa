"""
API routes for country lookups and cached advisory data.

Endpoints:
- GET  /api/countries                     Master country list
- GET  /api/countries/validate?name=      Validate one free-text name
- GET  /api/countries/cached              Every country with cached alerts
- GET  /api/search?countries=a,b          Look up several countries (fetching missing data)
- GET  /api/country/{name}                Look up one country (fetching missing data)
- POST /api/refresh/{name}                Force-refresh one country
- GET  /api/status                        Service status and schedules

Looked-up countries are tracked by the scheduler and refreshed periodically.
"""

import asyncio
import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from api.dependencies import get_catalog, get_fetcher, get_orchestrator, get_scheduler
from api.schemas import CamelModel
from catalog.catalog import CountryCatalog
from db.country_data_service import (
    CountryData,
    get_all_countries_with_data,
    get_country_data,
)
from db.session import get_db
from fetchers.advisory_fetcher import AdvisoryFetcher
from utils.timestamps import utc_now
from workers.errors import TransientFetchError
from workers.orchestrator import BulkIngestionOrchestrator
from workers.scheduler import RefreshScheduler

logger = logging.getLogger(__name__)

router = APIRouter()


# =============================================================================
# Pydantic Models
# =============================================================================

class ValidationResponse(CamelModel):
    is_valid: bool
    normalized_name: Optional[str] = None
    suggestion: Optional[str] = None


class CountryResponse(CamelModel):
    id: str
    name: str
    code: str
    flag_url: Optional[str] = None
    last_updated: Optional[datetime] = None


class AlertResponse(CamelModel):
    id: str
    source: str
    title: str
    level: Optional[str] = None
    severity: str
    summary: str
    link: str
    date: datetime
    key_risks: Optional[list[str]] = None
    safety_recommendations: Optional[list[str]] = None
    specific_areas: Optional[list[str]] = None
    ai_enhanced_at: Optional[datetime] = None


class BackgroundResponse(CamelModel):
    languages: Optional[list[str]] = None
    religion: Optional[str] = None
    gdp_per_capita: Optional[int] = None
    population: Optional[str] = None
    capital: Optional[str] = None
    currency: Optional[str] = None
    wiki_link: Optional[str] = None
    last_updated: Optional[datetime] = None


class CountryDataResponse(CamelModel):
    """A country with its current alerts and background info."""
    country: CountryResponse
    alerts: list[AlertResponse]
    background: Optional[BackgroundResponse] = None


class SearchResponse(CamelModel):
    results: list[CountryDataResponse]
    total_found: int
    total_requested: int


class RefreshCountryResponse(CamelModel):
    message: str
    data: Optional[CountryDataResponse] = None


class StatusResponse(CamelModel):
    status: str
    last_updated: datetime
    alert_refresh_interval: str
    bulk_refresh_schedule: str
    last_bulk_run: Optional[datetime] = None


# =============================================================================
# Helpers
# =============================================================================

def _to_response(data: Optional[CountryData]) -> Optional[CountryDataResponse]:
    if data is None:
        return None
    return CountryDataResponse.model_validate(data)


def _store_unavailable() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail="Country data store unavailable, please try again later",
    )


async def _ensure_country_data(
    db: Session,
    fetcher: AdvisoryFetcher,
    country_name: str,
) -> Optional[CountryData]:
    """
    Return cached data, fetching it first if the country was never fetched.

    A failed fetch is logged and treated as "no data"; a failed save
    raises 503.
    """
    data = get_country_data(db, country_name)
    if data is not None:
        return data

    try:
        await fetcher.fetch_country_data(country_name)
    except TransientFetchError as e:
        logger.warning(f"Fetch for {country_name} failed: {e}")
        return None
    except SQLAlchemyError:
        logger.exception(f"Saving fetched data for {country_name} failed")
        raise _store_unavailable()
    return get_country_data(db, country_name)


def _split_names(countries: Optional[str]) -> list[str]:
    return [name.strip() for name in (countries or "").split(",") if name.strip()]


# =============================================================================
# Endpoints
# =============================================================================

@router.get("/countries", response_model=list[str])
async def list_countries(catalog: CountryCatalog = Depends(get_catalog)):
    """Master country list (normalized lowercase names, alphabetical)."""
    return catalog.all_valid_countries()


@router.get("/countries/validate", response_model=ValidationResponse)
async def validate_country(
    name: str = Query(...),
    catalog: CountryCatalog = Depends(get_catalog),
):
    """
    Validate and normalize a country name.

    Example:
        GET /api/countries/validate?name=Frnace

        Response:
        {"isValid": false, "normalizedName": null, "suggestion": "france"}
    """
    return ValidationResponse.model_validate(catalog.validate(name))


@router.get("/countries/cached", response_model=list[CountryDataResponse])
async def list_cached_countries(db: Session = Depends(get_db)):
    """Every country with at least one cached alert."""
    return [_to_response(data) for data in get_all_countries_with_data(db)]


@router.get("/search", response_model=SearchResponse)
async def search_countries(
    countries: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    catalog: CountryCatalog = Depends(get_catalog),
    fetcher: AdvisoryFetcher = Depends(get_fetcher),
    scheduler: RefreshScheduler = Depends(get_scheduler),
):
    """
    Look up several countries at once.

    Every name is validated first; if any is invalid nothing is fetched and
    the response is 400 with one message per invalid name.

    Example:
        GET /api/search?countries=France,Frnace

        Response (400):
        {
            "error": "Invalid country names found",
            "details": ["'Frnace' is not a recognized country name. Did you mean 'france'?"],
            "validCountries": ["france"]
        }
    """
    names = _split_names(countries)
    if not names:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="At least one country name is required",
        )

    validations = [(name, catalog.validate(name)) for name in names]
    invalid = [(name, result) for name, result in validations if not result.is_valid]
    if invalid:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={
                "error": "Invalid country names found",
                "details": [result.error_message(name) for name, result in invalid],
                "validCountries": [
                    result.normalized_name for _, result in validations if result.is_valid
                ],
            },
        )

    normalized = [result.normalized_name for _, result in validations]
    for name in normalized:
        scheduler.track_country(name)

    found = await asyncio.gather(*(_ensure_country_data(db, fetcher, name) for name in normalized))
    results = [_to_response(data) for data in found if data is not None]

    return SearchResponse(
        results=results,
        total_found=len(results),
        total_requested=len(names),
    )


@router.get("/country/{name}", response_model=CountryDataResponse)
async def get_country(
    name: str,
    db: Session = Depends(get_db),
    catalog: CountryCatalog = Depends(get_catalog),
    fetcher: AdvisoryFetcher = Depends(get_fetcher),
    scheduler: RefreshScheduler = Depends(get_scheduler),
):
    """
    Look up one country, fetching its data on first access.

    Raises:
        404: Invalid name (with suggestion), or no data could be fetched
        503: Fetched data could not be saved
    """
    validation = catalog.validate(name)
    if not validation.is_valid:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=validation.error_message(name))

    scheduler.track_country(validation.normalized_name)
    data = await _ensure_country_data(db, fetcher, validation.normalized_name)
    if data is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Country not found")
    return _to_response(data)


@router.post("/refresh/{name}", response_model=RefreshCountryResponse)
async def refresh_country(
    name: str,
    db: Session = Depends(get_db),
    catalog: CountryCatalog = Depends(get_catalog),
    scheduler: RefreshScheduler = Depends(get_scheduler),
):
    """
    Force-refresh one country now and start tracking it.

    Raises:
        404: Invalid name (with suggestion)
        502: Upstream fetch failed
        503: Refreshed data could not be saved
    """
    validation = catalog.validate(name)
    if not validation.is_valid:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=validation.error_message(name))

    try:
        await scheduler.force_refresh(validation.normalized_name)
    except TransientFetchError as e:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=f"Failed to refresh country data: {e}",
        )
    except SQLAlchemyError:
        logger.exception(f"Saving refreshed data for {validation.normalized_name} failed")
        raise _store_unavailable()

    return RefreshCountryResponse(
        message="Data refreshed successfully",
        data=_to_response(get_country_data(db, validation.normalized_name)),
    )


@router.get("/status", response_model=StatusResponse)
async def get_status(
    scheduler: RefreshScheduler = Depends(get_scheduler),
    orchestrator: BulkIngestionOrchestrator = Depends(get_orchestrator),
):
    """Service status, refresh schedules and the last completed bulk run."""
    hours = scheduler.alert_refresh_interval.total_seconds() / 3600
    return StatusResponse(
        status="online",
        last_updated=utc_now(),
        alert_refresh_interval=f"{hours:g} hours",
        bulk_refresh_schedule=scheduler.describe_schedule(),
        last_bulk_run=orchestrator.get_last_run_date(),
    )
