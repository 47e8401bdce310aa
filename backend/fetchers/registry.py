"""
Source Registry

Maps Source enum values to their source classes, split by what they produce.

Usage:
    from fetchers.registry import ALERT_SOURCES, get_source
    from fetchers.enums import Source

    # Get source class
    SourceClass = SOURCE_REGISTRY[Source.USGS]

    # Or use helper
    source = get_source(Source.USGS, timeout=10.0)
"""

from typing import Dict, Type

from .base_source import BaseAdvisorySource, DEFAULT_TIMEOUT
from .enums import Source

from .state_dept import StateDeptSource
from .fcdo import FcdoSource
from .cdc import CdcSource
from .usgs import UsgsSource
from .reliefweb import ReliefWebSource
from .rest_countries import RestCountriesSource
from .world_bank import WorldBankSource


SOURCE_REGISTRY: Dict[Source, Type[BaseAdvisorySource]] = {
    Source.STATE_DEPT: StateDeptSource,
    Source.FCDO: FcdoSource,
    Source.CDC: CdcSource,
    Source.USGS: UsgsSource,
    Source.RELIEFWEB: ReliefWebSource,
    Source.REST_COUNTRIES: RestCountriesSource,
    Source.WORLD_BANK: WorldBankSource,
}

# Sources producing List[AlertData], in the order alerts are stored
ALERT_SOURCES = [
    Source.STATE_DEPT,
    Source.FCDO,
    Source.CDC,
    Source.USGS,
    Source.RELIEFWEB,
]


def get_source(source: Source | str, timeout: float = DEFAULT_TIMEOUT) -> BaseAdvisorySource:
    """
    Get an initialized source

    Args:
        source: Source enum or its string value (e.g., Source.USGS or 'USGS')
        timeout: Per-request timeout in seconds

    Returns:
        Initialized source instance

    Raises:
        ValueError: If source not found in registry
    """
    if isinstance(source, str) and not isinstance(source, Source):
        try:
            source = Source(source)
        except ValueError:
            available = ', '.join([s.value for s in Source])
            raise ValueError(
                f"Source '{source}' not found in registry. "
                f"Available: {available}"
            )

    return SOURCE_REGISTRY[source](timeout=timeout)
