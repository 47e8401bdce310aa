"""
Source Enum

Defines all upstream feeds the fetcher reads from.
This is in a separate file to avoid circular imports between registry and sources.
"""

from enum import Enum


class Source(str, Enum):
    """
    Upstream data sources

    Values are stored verbatim in alerts.source.
    """
    STATE_DEPT = "US State Dept"
    FCDO = "UK FCDO"
    CDC = "CDC"
    USGS = "USGS"
    RELIEFWEB = "ReliefWeb"
    REST_COUNTRIES = "REST Countries"
    WORLD_BANK = "World Bank"
