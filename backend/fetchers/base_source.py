"""
Base source class for the advisory fetch pipeline

This module provides the abstract base class that every upstream feed
implements. A source turns one CountryRef into typed data:

- Alert sources return List[AlertData] (empty list = no data)
- Background sources return their own partial result (None = no data)

Sources raise on transport/parse failures. They never retry and never
write to the database; AdvisoryFetcher owns both concerns.
"""

import re
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Dict, Generic, Optional, TypeVar, TYPE_CHECKING

import httpx

from catalog.countries import COUNTRY_ALIASES
from utils.timestamps import utc_now

if TYPE_CHECKING:
    from .enums import Source
    from .types import CountryRef

ResultType = TypeVar('ResultType')

DEFAULT_TIMEOUT = 15.0


class BaseAdvisorySource(ABC, Generic[ResultType]):
    """
    Abstract base class for upstream feeds

    Each source must define:
    1. SOURCE: Source enum value (e.g., Source.STATE_DEPT)
    2. API_URL: The endpoint or URL template for the feed
    3. fetch(): Method returning this source's typed result for a country

    Example:
        source = UsgsSource(timeout=10.0)
        alerts = await source.fetch(CountryRef(name="japan", code="JP"))
    """

    SOURCE: 'Source'
    API_URL: str

    def __init__(self, timeout: float = DEFAULT_TIMEOUT):
        required_vars = ['SOURCE', 'API_URL']
        for var in required_vars:
            if not hasattr(self.__class__, var):
                raise NotImplementedError(
                    f"{self.__class__.__name__} must define {var} class variable"
                )
        self.timeout = timeout

    @abstractmethod
    async def fetch(self, country: 'CountryRef') -> ResultType:
        """
        Fetch this source's data for one country.

        Returns:
            Source-specific result; empty/None means "no data", not an error

        Raises:
            httpx.HTTPError: On transport failures and non-404 error statuses
            KeyError/TypeError/ValueError: On unexpected response shapes
        """
        pass

    def get_headers(self) -> Dict[str, str]:
        """
        Get default HTTP headers for requests

        Override this method if a source needs specific headers.
        """
        return {
            'User-Agent': 'Mozilla/5.0 (compatible; GlobalAdvisor/1.0)',
            'Accept': 'application/json, text/html;q=0.9, */*;q=0.8',
            'Accept-Language': 'en-US,en;q=0.9',
        }

    async def make_request(
        self,
        url: str,
        method: str = 'GET',
        params: Optional[Dict] = None,
        headers: Optional[Dict] = None,
        not_found_ok: bool = False,
    ) -> Optional[httpx.Response]:
        """
        Helper method to make HTTP requests with consistent error handling

        Args:
            url: URL to request
            method: HTTP method
            params: Query parameters
            headers: Additional headers (merged with default headers)
            not_found_ok: Return None instead of raising on 404

        Returns:
            httpx.Response object, or None for a tolerated 404

        Raises:
            httpx.HTTPStatusError: On HTTP error responses
            httpx.TimeoutException: On request timeout
            httpx.ConnectError: On connection failure
        """
        request_headers = self.get_headers()
        if headers:
            request_headers.update(headers)

        async with httpx.AsyncClient(follow_redirects=True) as client:
            response = await client.request(
                method=method,
                url=url,
                params=params,
                headers=request_headers,
                timeout=self.timeout,
            )
            if not_found_ok and response.status_code == 404:
                return None
            response.raise_for_status()
            return response


def parse_timestamp(value: Any) -> datetime:
    """
    Parse an upstream date into an aware UTC datetime.

    Accepts epoch milliseconds (USGS) and ISO-8601 strings (State Dept,
    gov.uk, ReliefWeb). Missing or unparseable values fall back to now.
    """
    if value is None or value == '':
        return utc_now()
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
    try:
        parsed = datetime.fromisoformat(str(value).replace('Z', '+00:00'))
    except ValueError:
        return utc_now()
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def map_source_error(e: BaseException) -> str:
    """Map source exceptions to short user-facing error messages."""
    if isinstance(e, httpx.TimeoutException):
        return "Request timed out - upstream service may be slow"
    elif isinstance(e, httpx.ConnectError):
        return "Connection failed - upstream service unreachable"
    elif isinstance(e, httpx.HTTPStatusError):
        status_code = e.response.status_code
        if status_code == 403:
            return "Access denied - service may have rate limiting"
        elif status_code == 404:
            return "Resource not found - URL may have changed"
        elif status_code == 429:
            return "Rate limited - too many requests"
        elif status_code >= 500:
            return "Upstream server error - try again later"
        else:
            return f"HTTP error: {status_code}"
    elif isinstance(e, (KeyError, TypeError, ValueError)):
        return "Unexpected response format - API may have changed"
    else:
        return f"Fetch failed: {type(e).__name__}"


def _name_candidates(raw: str) -> set[str]:
    """'Burma (Myanmar)' -> {'burma (myanmar)', 'burma', 'myanmar'}, alias-resolved."""
    text = " ".join(raw.strip().lower().split())
    names = {text}
    match = re.fullmatch(r"(.+?)\s*\((.+)\)", text)
    if match:
        names.update(part.strip() for part in match.groups())
    return {COUNTRY_ALIASES.get(name, name) for name in names}


def matches_country(raw: Optional[str], country_name: str) -> bool:
    """
    Exact match of an upstream country label against a normalized name.

    'Niger' matches niger but not nigeria; 'Guinea' does not match
    equatorial guinea. Alternate spellings resolve through COUNTRY_ALIASES.
    """
    if not raw:
        return False
    return country_name in _name_candidates(raw)


def place_in_country(place: Optional[str], country_name: str) -> bool:
    """
    Whether a USGS place string lies in the given country.

    "45 km E of Tokyo, Japan" names the country after the last comma and is
    matched exactly. Places without one ("Fiji region", "offshore Chile")
    are matched on whole words, so "niger" never matches "Nigeria".
    """
    if not place:
        return False
    _, sep, region = place.rpartition(",")
    if sep:
        return matches_country(region, country_name)
    return re.search(rf"\b{re.escape(country_name)}\b", place.lower()) is not None
