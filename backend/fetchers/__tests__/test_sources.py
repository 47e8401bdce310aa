"""
Unit tests for the upstream advisory sources.

HTTP is mocked at make_request; these tests cover response parsing and
severity mapping only.

Run: python3 -m pytest fetchers/__tests__/test_sources.py -v
"""

import asyncio
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock, patch

import httpx

from fetchers.base_source import map_source_error, matches_country, parse_timestamp, place_in_country
from fetchers.cdc import CdcSource
from fetchers.fcdo import FcdoSource, map_alert_type
from fetchers.reliefweb import ReliefWebSource, truncate_summary
from fetchers.rest_countries import RestCountriesSource
from fetchers.state_dept import StateDeptSource, map_advisory_level
from fetchers.types import CountryRef
from fetchers.usgs import UsgsSource, classify_magnitude
from fetchers.world_bank import WorldBankSource

FRANCE = CountryRef(name="france", code="FR")
JAPAN = CountryRef(name="japan", code="JP")


def make_response(payload):
    response = MagicMock()
    response.json.return_value = payload
    return response


def run_fetch(source, country, payload):
    """Run source.fetch with make_request returning payload (None = tolerated 404)."""
    response = make_response(payload) if payload is not None else None
    mock_request = AsyncMock(return_value=response)
    with patch.object(type(source), "make_request", mock_request):
        result = asyncio.run(source.fetch(country))
    return result, mock_request


def make_status_error(status_code):
    request = httpx.Request("GET", "https://example.com")
    response = httpx.Response(status_code, request=request)
    return httpx.HTTPStatusError("error", request=request, response=response)


class TestSeverityMapping:

    def test_advisory_levels(self):
        assert map_advisory_level(4) == "high"
        assert map_advisory_level(3) == "medium"
        assert map_advisory_level(2) == "medium"
        assert map_advisory_level(1) == "low"
        assert map_advisory_level(None) == "low"

    def test_magnitudes(self):
        assert classify_magnitude(6.4) == ("Major", "high")
        assert classify_magnitude(4.0) == ("Moderate", "medium")
        assert classify_magnitude(3.9) == ("Minor", "low")

    def test_fcdo_alert_types(self):
        assert map_alert_type("avoid_all_but_essential_travel_to_parts") == "high"
        assert map_alert_type("We advise against all travel") == "high"
        assert map_alert_type("See our advice before travelling") == "medium"
        assert map_alert_type("something else") == "low"
        assert map_alert_type(None) == "info"

    def test_truncate_summary(self):
        body = "x" * 250
        assert truncate_summary(body) == "x" * 200 + "..."


class TestParseTimestamp:

    def test_epoch_millis(self):
        assert parse_timestamp(0) == datetime(1970, 1, 1, tzinfo=timezone.utc)

    def test_iso_with_z(self):
        assert parse_timestamp("2026-10-01T12:00:00Z") == datetime(2026, 10, 1, 12, tzinfo=timezone.utc)

    def test_naive_iso_assumed_utc(self):
        assert parse_timestamp("2026-10-01T12:00:00").tzinfo == timezone.utc

    def test_garbage_falls_back_to_now(self):
        assert parse_timestamp("not a date").year >= 2026


class TestMapSourceError:

    def test_timeout(self):
        assert map_source_error(httpx.ReadTimeout("slow")) == "Request timed out - upstream service may be slow"

    def test_status_codes(self):
        assert map_source_error(make_status_error(429)) == "Rate limited - too many requests"
        assert map_source_error(make_status_error(503)) == "Upstream server error - try again later"
        assert map_source_error(make_status_error(418)) == "HTTP error: 418"

    def test_parse_errors(self):
        assert map_source_error(KeyError("data")) == "Unexpected response format - API may have changed"

    def test_other(self):
        assert map_source_error(RuntimeError("x")) == "Fetch failed: RuntimeError"


class TestStateDeptSource:

    def test_filters_by_country_and_maps_level(self):
        payload = {"data": [
            {"country_name": "France", "advisory_level": "2", "advisory_text": "Exercise increased caution",
             "url": "https://travel.state.gov/france", "date_updated": "2026-09-01T00:00:00Z"},
            {"country_name": "Japan", "advisory_level": "1", "advisory_text": "Normal precautions"},
        ]}

        alerts, _ = run_fetch(StateDeptSource(), FRANCE, payload)

        assert len(alerts) == 1
        assert alerts[0].source == "US State Dept"
        assert alerts[0].level == "Level 2"
        assert alerts[0].severity == "medium"
        assert alerts[0].link == "https://travel.state.gov/france"

    def test_no_matches(self):
        alerts, _ = run_fetch(StateDeptSource(), FRANCE, {"data": []})
        assert alerts == []

    def test_similar_names_do_not_match(self):
        """Niger gets its own advisory, not Nigeria's."""
        payload = {"data": [
            {"country_name": "Nigeria", "advisory_level": "3", "advisory_text": "Reconsider travel"},
            {"country_name": "Niger", "advisory_level": "4", "advisory_text": "Do not travel"},
        ]}

        alerts, _ = run_fetch(StateDeptSource(), CountryRef("niger", "NE"), payload)

        assert [a.title for a in alerts] == ["Do not travel"]

    def test_alternate_name_in_feed(self):
        payload = {"data": [
            {"country_name": "Burma (Myanmar)", "advisory_level": "4", "advisory_text": "Do not travel"},
        ]}

        alerts, _ = run_fetch(StateDeptSource(), CountryRef("myanmar", "MM"), payload)

        assert len(alerts) == 1
        assert alerts[0].severity == "high"


class TestFcdoSource:

    def test_parses_advice(self):
        payload = {
            "updated_at": "2026-09-10T08:00:00Z",
            "details": {
                "country": {"name": "France"},
                "summary": "Terrorists are likely to try to carry out attacks",
                "alert_status": [],
            },
        }

        alerts, mock_request = run_fetch(FcdoSource(), FRANCE, payload)

        assert mock_request.call_args.args[0] == "https://www.gov.uk/api/foreign-travel-advice/france.json"
        assert alerts[0].title == "France"
        assert alerts[0].level == "Standard"
        assert alerts[0].severity == "info"
        assert alerts[0].link == "https://www.gov.uk/foreign-travel-advice/france"

    def test_not_found_is_no_data(self):
        alerts, _ = run_fetch(FcdoSource(), FRANCE, None)
        assert alerts == []


class TestCdcSource:

    def test_page_present_gives_one_notice(self):
        alerts, _ = run_fetch(CdcSource(), CountryRef("united kingdom", "GB"), {})
        assert len(alerts) == 1
        assert alerts[0].severity == "info"
        assert alerts[0].link.endswith("/united-kingdom")

    def test_not_found_is_no_data(self):
        alerts, _ = run_fetch(CdcSource(), FRANCE, None)
        assert alerts == []


class TestUsgsSource:

    def test_matches_place(self):
        payload = {"features": [
            {"properties": {"place": "45 km E of Tokyo, Japan", "mag": 6.1, "time": 0,
                            "url": "https://earthquake.usgs.gov/eq1"}},
            {"properties": {"place": "Offshore Chile", "mag": 7.0, "time": 0}},
        ]}

        alerts, _ = run_fetch(UsgsSource(), JAPAN, payload)

        assert len(alerts) == 1
        assert alerts[0].title == "6.1 Magnitude Earthquake"
        assert alerts[0].severity == "high"
        assert alerts[0].summary == "Earthquake occurred 45 km E of Tokyo, Japan"

    def test_similar_country_not_matched(self):
        payload = {"features": [
            {"properties": {"place": "12 km N of Bata, Equatorial Guinea", "mag": 5.0, "time": 0}},
            {"properties": {"place": "30 km SW of Kindia, Guinea", "mag": 4.5, "time": 0}},
        ]}

        alerts, _ = run_fetch(UsgsSource(), CountryRef("guinea", "GN"), payload)

        assert [a.summary for a in alerts] == ["Earthquake occurred 30 km SW of Kindia, Guinea"]


class TestReliefWebSource:

    def test_reports_become_crisis_updates(self):
        payload = {"data": [{"fields": {
            "title": "Flooding", "body": "b" * 300, "url": "https://reliefweb.int/r/1",
            "date": {"created": "2026-10-01T00:00:00+00:00"},
        }}]}

        alerts, mock_request = run_fetch(ReliefWebSource(), FRANCE, payload)

        assert mock_request.call_args.kwargs["params"]["query[value]"] == "france"
        assert mock_request.call_args.kwargs["params"]["limit"] == 5
        assert alerts[0].level == "Crisis Update"
        assert alerts[0].severity == "medium"
        assert alerts[0].summary == "b" * 200 + "..."


class TestBackgroundSources:

    def test_rest_countries(self):
        payload = [{
            "population": 68000000,
            "capital": ["Paris"],
            "currencies": {"EUR": {"name": "Euro"}},
            "languages": {"fra": "French"},
        }]

        background, _ = run_fetch(RestCountriesSource(), FRANCE, payload)

        assert background.languages == ["French"]
        assert background.population == "68,000,000"
        assert background.capital == "Paris"
        assert background.currency == "EUR"
        assert background.religion == "Various"
        assert background.wiki_link == "https://en.wikivoyage.org/wiki/France"

    def test_rest_countries_not_found(self):
        background, _ = run_fetch(RestCountriesSource(), FRANCE, None)
        assert background is None

    def test_world_bank_rounds_value(self):
        payload = [{"page": 1}, [{"value": 40886.25}]]
        gdp, mock_request = run_fetch(WorldBankSource(), FRANCE, payload)
        assert gdp == 40886
        assert "/FR/indicator/" in mock_request.call_args.args[0]

    def test_world_bank_skips_unknown_code(self):
        gdp, mock_request = run_fetch(WorldBankSource(), CountryRef("atlantis", "XX"), {})
        assert gdp is None
        mock_request.assert_not_called()


class TestCountryMatching:

    def test_exact_name(self):
        assert matches_country("France", "france")
        assert not matches_country("Nigeria", "niger")
        assert not matches_country("South Sudan", "sudan")
        assert not matches_country("Dominican Republic", "dominica")
        assert not matches_country(None, "france")

    def test_aliases_and_parentheticals(self):
        assert matches_country("The Bahamas", "bahamas")
        assert matches_country("Burma (Myanmar)", "myanmar")
        assert matches_country("  Cote  D'Ivoire ", "cote d'ivoire")

    def test_place_in_country(self):
        assert place_in_country("45 km E of Tokyo, Japan", "japan")
        assert not place_in_country("100 km S of Agadez, Niger", "nigeria")
        assert place_in_country("Fiji region", "fiji")
        assert not place_in_country("Nigeria region", "niger")
        assert not place_in_country(None, "japan")
