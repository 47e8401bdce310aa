"""
USGS Significant Earthquakes Source

Pattern: GeoJSON feed of the past week's significant earthquakes
Features are matched to a country by properties.place (see place_in_country).

Magnitude maps to severity: >= 6 high, >= 4 medium, else low.
"""

from typing import List

from models.country import AlertSeverity
from .base_source import BaseAdvisorySource, parse_timestamp, place_in_country
from .enums import Source
from .types import AlertData, CountryRef


def classify_magnitude(magnitude: float) -> tuple[str, str]:
    """Return (level, severity) for an earthquake magnitude."""
    if magnitude >= 6:
        return "Major", AlertSeverity.HIGH
    if magnitude >= 4:
        return "Moderate", AlertSeverity.MEDIUM
    return "Minor", AlertSeverity.LOW


class UsgsSource(BaseAdvisorySource[List[AlertData]]):
    """Recent significant earthquakes near a country"""
    SOURCE = Source.USGS

    API_URL = "https://earthquake.usgs.gov/earthquakes/feed/v1.0/summary/significant_week.geojson"
    DEFAULT_LINK = "https://earthquake.usgs.gov"

    async def fetch(self, country: CountryRef) -> List[AlertData]:
        response = await self.make_request(self.API_URL)
        data = response.json()

        alerts = []
        for feature in data.get("features") or []:
            properties = feature["properties"]
            place = properties.get("place")
            if not place_in_country(place, country.name):
                continue

            magnitude = float(properties.get("mag") or 0)
            level, severity = classify_magnitude(magnitude)
            alerts.append(AlertData(
                source=self.SOURCE.value,
                title=f"{magnitude} Magnitude Earthquake",
                level=level,
                severity=severity,
                summary=f"Earthquake occurred {place}",
                link=properties.get("url") or self.DEFAULT_LINK,
                date=parse_timestamp(properties.get("time")),
            ))
        return alerts
