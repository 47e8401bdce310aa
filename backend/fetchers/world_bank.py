"""
World Bank Indicators Source

Pattern: indicator API keyed by ISO code
Response: [metadata, [{"value": 12345.6, ...}]]; an error payload is [{"message": [...]}].
"""

from typing import Optional

from catalog.catalog import UNKNOWN_COUNTRY_CODE
from .base_source import BaseAdvisorySource
from .enums import Source
from .types import CountryRef

GDP_PER_CAPITA_INDICATOR = "NY.GDP.PCAP.CD"
INDICATOR_YEAR = "2022"


class WorldBankSource(BaseAdvisorySource[Optional[int]]):
    """GDP per capita (current US$), rounded"""
    SOURCE = Source.WORLD_BANK

    API_URL = "https://api.worldbank.org/v2/country"

    async def fetch(self, country: CountryRef) -> Optional[int]:
        if country.code == UNKNOWN_COUNTRY_CODE:
            return None

        url = f"{self.API_URL}/{country.code}/indicator/{GDP_PER_CAPITA_INDICATOR}"
        params = {"format": "json", "date": INDICATOR_YEAR, "per_page": 1}
        response = await self.make_request(url, params=params, not_found_ok=True)
        if response is None:
            return None

        data = response.json()
        if not isinstance(data, list) or len(data) < 2 or not data[1]:
            return None

        value = data[1][0].get("value")
        return round(value) if value is not None else None
