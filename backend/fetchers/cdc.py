"""
CDC Travelers' Health Destination Source

Pattern: one destination page per country (404 = CDC has no page)
Produces a single informational health notice linking to the page.
"""

from typing import List

from models.country import AlertSeverity
from utils.timestamps import utc_now
from .base_source import BaseAdvisorySource
from .enums import Source
from .types import AlertData, CountryRef


class CdcSource(BaseAdvisorySource[List[AlertData]]):
    """Health notice pointing at the CDC destination page"""
    SOURCE = Source.CDC

    API_URL = "https://wwwnc.cdc.gov/travel/destinations/traveler/none"

    async def fetch(self, country: CountryRef) -> List[AlertData]:
        url = f"{self.API_URL}/{country.slug}"
        response = await self.make_request(url, not_found_ok=True)
        if response is None:
            return []

        return [AlertData(
            source=self.SOURCE.value,
            title="Health Notice Update",
            level="Standard",
            severity=AlertSeverity.INFO,
            summary="Check CDC travel health recommendations for vaccination and health guidance",
            link=url,
            date=utc_now(),
        )]
