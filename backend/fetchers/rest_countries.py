"""
REST Countries Background Source

Pattern: name lookup returning a list of matching countries (404 = no match)
Provides languages, capital, currency and population.
"""

from typing import Optional

from .base_source import BaseAdvisorySource
from .enums import Source
from .types import BackgroundData, CountryRef

WIKI_PREFIX = "https://en.wikivoyage.org/wiki"


class RestCountriesSource(BaseAdvisorySource[Optional[BackgroundData]]):
    """Background facts for a country"""
    SOURCE = Source.REST_COUNTRIES

    API_URL = "https://restcountries.com/v3.1/name"

    async def fetch(self, country: CountryRef) -> Optional[BackgroundData]:
        response = await self.make_request(f"{self.API_URL}/{country.name}", not_found_ok=True)
        if response is None:
            return None

        data = response.json()
        if not isinstance(data, list) or not data:
            return None

        entry = data[0]
        population = entry.get("population")
        capital = entry.get("capital") or []
        currencies = entry.get("currencies") or {}

        return BackgroundData(
            languages=list((entry.get("languages") or {}).values()),
            religion="Various",
            population=f"{population:,}" if population is not None else "Unknown",
            capital=capital[0] if capital else "Unknown",
            currency=next(iter(currencies), "Unknown"),
            wiki_link=f"{WIKI_PREFIX}/{'_'.join(country.name.title().split())}",
        )
