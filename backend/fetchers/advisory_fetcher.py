"""
AdvisoryFetcher: refresh all cached data for one country.

Contract (what the orchestrator and query API depend on):
    await fetcher.fetch_country_data("france")

- Persists fresh alerts + background info for the country
- "No data" from a source is not an error
- Raises TransientFetchError on transport/parse failures; nothing is
  written in that case, so a retry starts clean
- Never retries internally; the caller owns retry policy
"""

import asyncio
import logging
from typing import List, Optional, Protocol

from sqlalchemy.orm import sessionmaker

from catalog.catalog import CountryCatalog
from db.country_data_service import save_country_data
from workers.errors import TransientFetchError
from .ai_enhancer import AIEnhancer
from .base_source import BaseAdvisorySource, DEFAULT_TIMEOUT, map_source_error
from .enums import Source
from .registry import ALERT_SOURCES, get_source
from .types import AlertData, BackgroundData, CountryRef

logger = logging.getLogger(__name__)


class AdvisoryFetcher(Protocol):
    """Anything that can refresh one country's data."""

    async def fetch_country_data(self, country_name: str) -> None:
        ...


class HttpAdvisoryFetcher:
    """
    Fetches every upstream source concurrently and writes the result.

    Args:
        session_factory: Builds sessions for the single write transaction
        catalog: Resolves ISO codes for World Bank / flag lookups
        timeout: Per-request HTTP timeout in seconds
        enhancer: Optional AIEnhancer applied to State Dept alerts
    """

    def __init__(
        self,
        session_factory: sessionmaker,
        catalog: CountryCatalog,
        timeout: float = DEFAULT_TIMEOUT,
        enhancer: Optional[AIEnhancer] = None,
    ):
        self._session_factory = session_factory
        self._catalog = catalog
        self._enhancer = enhancer
        self.alert_sources: List[BaseAdvisorySource] = [
            get_source(source, timeout=timeout) for source in ALERT_SOURCES
        ]
        self.background_source = get_source(Source.REST_COUNTRIES, timeout=timeout)
        self.gdp_source = get_source(Source.WORLD_BANK, timeout=timeout)

    async def fetch_country_data(self, country_name: str) -> None:
        """
        Refresh alerts and background info for one country.

        Args:
            country_name: Country name (normalized to lowercase)

        Raises:
            TransientFetchError: If any source failed (nothing written)
        """
        name = country_name.strip().lower()
        country = CountryRef(name=name, code=self._catalog.country_code(name))

        sources = self.alert_sources + [self.background_source, self.gdp_source]
        results = await asyncio.gather(
            *(source.fetch(country) for source in sources),
            return_exceptions=True,
        )

        failures = [
            f"{source.SOURCE.value}: {map_source_error(result)}"
            for source, result in zip(sources, results)
            if isinstance(result, BaseException)
        ]
        if failures:
            raise TransientFetchError(name, "; ".join(failures))

        alert_results = results[:len(self.alert_sources)]
        background: Optional[BackgroundData] = results[-2]
        gdp_per_capita: Optional[int] = results[-1]

        alerts: List[AlertData] = [alert for batch in alert_results for alert in batch]
        if self._enhancer is not None:
            alerts = await self._enhancer.enhance_alerts(name, alerts)

        if background is not None and gdp_per_capita:
            background.gdp_per_capita = gdp_per_capita

        with self._session_factory() as db:
            save_country_data(db, name, country.code, alerts, background)

        logger.info(f"Fetched {name}: {len(alerts)} alerts from {len(self.alert_sources)} sources")
