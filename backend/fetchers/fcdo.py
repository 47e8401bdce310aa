"""
UK FCDO Foreign Travel Advice Source

Pattern: gov.uk content API, one document per country
URL: https://www.gov.uk/api/foreign-travel-advice/{slug}.json (404 = no advice published)
"""

from typing import List, Optional

from models.country import AlertSeverity
from .base_source import BaseAdvisorySource, parse_timestamp
from .enums import Source
from .types import AlertData, CountryRef


def map_alert_type(alert_type: Optional[str]) -> str:
    """Map an FCDO alert_status value to alert severity."""
    if not alert_type:
        return AlertSeverity.INFO
    lowered = alert_type.lower()
    if "advise against" in lowered or "essential" in lowered:
        return AlertSeverity.HIGH
    if "see our advice" in lowered:
        return AlertSeverity.MEDIUM
    return AlertSeverity.LOW


class FcdoSource(BaseAdvisorySource[List[AlertData]]):
    """Extract the current FCDO advice summary for a country"""
    SOURCE = Source.FCDO

    API_URL = "https://www.gov.uk/api/foreign-travel-advice"
    URL_PREFIX_PAGE = "https://www.gov.uk/foreign-travel-advice"

    async def fetch(self, country: CountryRef) -> List[AlertData]:
        response = await self.make_request(f"{self.API_URL}/{country.slug}.json", not_found_ok=True)
        if response is None:
            return []

        data = response.json()
        details = data.get("details")
        if not details:
            return []

        alert_type = self._first_alert_type(details.get("alert_status"))
        return [AlertData(
            source=self.SOURCE.value,
            title=(details.get("country") or {}).get("name") or "Travel Advice",
            level=alert_type or "Standard",
            severity=map_alert_type(alert_type),
            summary=details.get("summary") or "Check current travel advice",
            link=f"{self.URL_PREFIX_PAGE}/{country.slug}",
            date=parse_timestamp(data.get("updated_at")),
        )]

    @staticmethod
    def _first_alert_type(alert_status) -> Optional[str]:
        # gov.uk has served both ["avoid_all_travel_to_parts"] and [{"alert_type": ...}]
        if not alert_status:
            return None
        first = alert_status[0]
        if isinstance(first, dict):
            return first.get("alert_type")
        return str(first)
