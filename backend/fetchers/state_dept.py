"""
US State Department Travel Advisories Source

Pattern: Single JSON feed covering every country
Data format: {"data": [{country_name, advisory_level, advisory_text, url, date_updated}, ...]}

Levels map to severity: 4 → high, 3/2 → medium, 1 → low.
"""

from typing import List, Optional

from models.country import AlertSeverity
from .base_source import BaseAdvisorySource, matches_country, parse_timestamp
from .enums import Source
from .types import AlertData, CountryRef


def map_advisory_level(level: Optional[int]) -> str:
    """Map a 1-4 advisory level to alert severity."""
    if level is None:
        return AlertSeverity.LOW
    if level >= 4:
        return AlertSeverity.HIGH
    if level >= 2:
        return AlertSeverity.MEDIUM
    return AlertSeverity.LOW


def _parse_level(value) -> Optional[int]:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


class StateDeptSource(BaseAdvisorySource[List[AlertData]]):
    """
    Extract advisories for a country from the State Dept feed

    Matches entries whose country_name is the country (aliases resolved).
    """
    SOURCE = Source.STATE_DEPT

    API_URL = "https://travel.state.gov/content/travel/en/traveladvisories/traveladvisories.json"
    DEFAULT_LINK = "https://travel.state.gov"

    async def fetch(self, country: CountryRef) -> List[AlertData]:
        response = await self.make_request(self.API_URL)
        data = response.json()

        alerts = []
        for advisory in data.get("data") or []:
            if not matches_country(advisory.get("country_name"), country.name):
                continue

            level = _parse_level(advisory.get("advisory_level"))
            alerts.append(AlertData(
                source=self.SOURCE.value,
                title=advisory.get("advisory_text") or "Travel Advisory",
                level=f"Level {level if level is not None else 'Unknown'}",
                severity=map_advisory_level(level),
                summary=advisory.get("advisory_text") or "Check current travel conditions",
                link=advisory.get("url") or self.DEFAULT_LINK,
                date=parse_timestamp(advisory.get("date_updated")),
            ))
        return alerts
