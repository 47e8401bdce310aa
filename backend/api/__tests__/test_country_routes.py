"""
Integration tests for country lookup endpoints.

Uses the real catalog and test database; the fetcher writes canned data
instead of calling upstream services, and the scheduler/orchestrator are
mocked.

Run: python3 -m pytest api/__tests__/test_country_routes.py -v
"""
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError

from api.dependencies import get_catalog, get_fetcher, get_orchestrator, get_scheduler
from catalog.catalog import CountryCatalog
from db.country_data_service import save_country_data
from db.session import get_db
from fetchers.types import AlertData, BackgroundData
from main import app
from workers.errors import TransientFetchError

CATALOG = CountryCatalog()


def make_alert(country_name):
    return AlertData(
        source="US State Dept",
        title=f"{country_name.title()} - Level 2: Exercise Increased Caution",
        level="Level 2",
        severity="medium",
        summary="Exercise increased caution",
        link="https://travel.state.gov",
        date=datetime(2026, 10, 1, tzinfo=timezone.utc),
    )


def save_canned(db, country_name):
    save_country_data(
        db,
        country_name,
        CATALOG.country_code(country_name),
        [make_alert(country_name)],
        BackgroundData(languages=["French"], capital="Paris", population="68,000,000"),
    )


class CannedFetcher:
    """Writes canned data for a country, or fails for configured names."""

    def __init__(self, session_factory, failing=(), unsaveable=()):
        self._session_factory = session_factory
        self.failing = set(failing)
        self.unsaveable = set(unsaveable)
        self.calls = []

    async def fetch_country_data(self, country_name):
        self.calls.append(country_name)
        if country_name in self.failing:
            raise TransientFetchError(country_name, "US State Dept: Request timed out")
        if country_name in self.unsaveable:
            raise OperationalError("INSERT INTO countries", {}, Exception("database is locked"))
        with self._session_factory() as db:
            save_canned(db, country_name)


@pytest.fixture
def fetcher(session_factory):
    return CannedFetcher(session_factory)


@pytest.fixture
def scheduler():
    scheduler = MagicMock()
    scheduler.alert_refresh_interval = timedelta(hours=6)
    scheduler.describe_schedule.return_value = "Sundays at 02:00 UTC"
    scheduler.force_refresh = AsyncMock(return_value=None)
    return scheduler


@pytest.fixture
def orchestrator():
    orchestrator = MagicMock()
    orchestrator.get_last_run_date.return_value = None
    return orchestrator


@pytest.fixture
def client(test_db, fetcher, scheduler, orchestrator):
    """Test client wired to the test database and fakes."""
    def override_get_db():
        yield test_db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_catalog] = lambda: CATALOG
    app.dependency_overrides[get_fetcher] = lambda: fetcher
    app.dependency_overrides[get_scheduler] = lambda: scheduler
    app.dependency_overrides[get_orchestrator] = lambda: orchestrator
    yield TestClient(app)
    app.dependency_overrides.clear()


class TestCountryList:

    def test_list_countries(self, client):
        response = client.get("/api/countries")

        assert response.status_code == 200
        countries = response.json()
        assert "france" in countries
        assert countries == sorted(countries)

    def test_validate_with_suggestion(self, client):
        response = client.get("/api/countries/validate", params={"name": "Frnace"})

        assert response.status_code == 200
        assert response.json() == {"isValid": False, "normalizedName": None, "suggestion": "france"}

    def test_validate_alias(self, client):
        response = client.get("/api/countries/validate", params={"name": "USA"})
        assert response.json()["normalizedName"] == "united states"

    def test_cached_countries(self, client, test_db):
        save_canned(test_db, "peru")

        response = client.get("/api/countries/cached")

        assert response.status_code == 200
        assert [d["country"]["name"] for d in response.json()] == ["peru"]


class TestGetCountry:
    """Tests for GET /api/country/{name}."""

    def test_fetches_on_first_access(self, client, fetcher, scheduler):
        response = client.get("/api/country/France")

        assert response.status_code == 200
        data = response.json()
        assert data["country"]["name"] == "france"
        assert data["country"]["code"] == "FR"
        assert data["country"]["flagUrl"] == "https://flagcdn.com/w40/fr.png"
        assert data["alerts"][0]["source"] == "US State Dept"
        assert data["alerts"][0]["keyRisks"] is None
        assert data["background"]["capital"] == "Paris"
        assert fetcher.calls == ["france"]
        scheduler.track_country.assert_called_once_with("france")

    def test_cached_data_not_refetched(self, client, fetcher, test_db):
        save_canned(test_db, "france")

        response = client.get("/api/country/france")

        assert response.status_code == 200
        assert fetcher.calls == []

    def test_invalid_name_is_404_with_suggestion(self, client, fetcher):
        response = client.get("/api/country/Frnace")

        assert response.status_code == 404
        assert response.json()["detail"] == (
            "'Frnace' is not a recognized country name. Did you mean 'france'?"
        )
        assert fetcher.calls == []

    def test_failed_fetch_is_404(self, client, fetcher):
        fetcher.failing.add("chad")

        response = client.get("/api/country/chad")

        assert response.status_code == 404
        assert response.json()["detail"] == "Country not found"

    def test_save_failure_is_503(self, client, fetcher):
        fetcher.unsaveable.add("chad")

        response = client.get("/api/country/chad")

        assert response.status_code == 503
        assert response.json()["detail"] == "Country data store unavailable, please try again later"


class TestSearch:
    """Tests for GET /api/search."""

    def test_requires_names(self, client):
        response = client.get("/api/search", params={"countries": " , "})

        assert response.status_code == 400
        assert response.json()["detail"] == "At least one country name is required"

    def test_invalid_names_fetch_nothing(self, client, fetcher):
        response = client.get("/api/search", params={"countries": "France,Frnace"})

        assert response.status_code == 400
        assert response.json() == {
            "error": "Invalid country names found",
            "details": ["'Frnace' is not a recognized country name. Did you mean 'france'?"],
            "validCountries": ["france"],
        }
        assert fetcher.calls == []

    def test_returns_found_countries(self, client, fetcher, scheduler):
        fetcher.failing.add("chad")

        response = client.get("/api/search", params={"countries": "France, chad"})

        assert response.status_code == 200
        data = response.json()
        assert data["totalRequested"] == 2
        assert data["totalFound"] == 1
        assert [r["country"]["name"] for r in data["results"]] == ["france"]
        assert scheduler.track_country.call_count == 2

    def test_save_failure_is_503(self, client, fetcher):
        fetcher.unsaveable.add("chad")

        response = client.get("/api/search", params={"countries": "France, chad"})

        assert response.status_code == 503


class TestRefreshCountry:
    """Tests for POST /api/refresh/{name}."""

    def test_force_refresh(self, client, scheduler, test_db):
        save_canned(test_db, "france")

        response = client.post("/api/refresh/France")

        assert response.status_code == 200
        data = response.json()
        assert data["message"] == "Data refreshed successfully"
        assert data["data"]["country"]["name"] == "france"
        scheduler.force_refresh.assert_awaited_once_with("france")

    def test_invalid_name_is_404(self, client, scheduler):
        response = client.post("/api/refresh/Atlantis")

        assert response.status_code == 404
        scheduler.force_refresh.assert_not_called()

    def test_upstream_failure_is_502(self, client, scheduler):
        scheduler.force_refresh = AsyncMock(
            side_effect=TransientFetchError("france", "UK FCDO: Rate limited - too many requests")
        )

        response = client.post("/api/refresh/france")

        assert response.status_code == 502
        assert response.json()["detail"] == (
            "Failed to refresh country data: UK FCDO: Rate limited - too many requests"
        )

    def test_save_failure_is_503(self, client, scheduler):
        scheduler.force_refresh = AsyncMock(
            side_effect=OperationalError("INSERT INTO alerts", {}, Exception("disk I/O error"))
        )

        response = client.post("/api/refresh/france")

        assert response.status_code == 503


class TestStatus:

    def test_status(self, client, orchestrator):
        orchestrator.get_last_run_date.return_value = datetime(2026, 10, 18, 2, 41, tzinfo=timezone.utc)

        response = client.get("/api/status")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "online"
        assert data["alertRefreshInterval"] == "6 hours"
        assert data["bulkRefreshSchedule"] == "Sundays at 02:00 UTC"
        assert data["lastBulkRun"].startswith("2026-10-18T02:41:00")

    def test_health(self, client):
        response = client.get("/health")
        assert response.json()["status"] == "healthy"
