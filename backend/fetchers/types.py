"""
Plain data carriers passed from sources to storage.

Sources never touch the database; they return these and the fetcher
writes them in one transaction.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional


@dataclass(frozen=True)
class CountryRef:
    """A normalized country name plus its ISO alpha-2 code ("XX" if unknown)."""
    name: str
    code: str

    @property
    def slug(self) -> str:
        """URL slug used by gov.uk / CDC / storage ids, e.g. 'united-kingdom'."""
        return "-".join(self.name.split())


@dataclass
class AlertData:
    """One advisory/alert row to be written for a country."""
    source: str
    title: str
    severity: str
    summary: str
    link: str
    date: datetime
    level: Optional[str] = None
    key_risks: Optional[List[str]] = None
    safety_recommendations: Optional[List[str]] = None
    specific_areas: Optional[List[str]] = None
    ai_enhanced_at: Optional[datetime] = None


@dataclass
class BackgroundData:
    """Background facts for a country (one row per country)."""
    languages: List[str] = field(default_factory=list)
    religion: Optional[str] = None
    gdp_per_capita: Optional[int] = None
    population: Optional[str] = None
    capital: Optional[str] = None
    currency: Optional[str] = None
    wiki_link: Optional[str] = None
