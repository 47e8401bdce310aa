"""
ReliefWeb Reports Source

Pattern: search API, latest reports mentioning the country
Every report becomes a medium-severity "Crisis Update" alert.
"""

from typing import List

from models.country import AlertSeverity
from .base_source import BaseAdvisorySource, parse_timestamp
from .enums import Source
from .types import AlertData, CountryRef

REPORT_LIMIT = 5
SUMMARY_LENGTH = 200


def truncate_summary(body: str) -> str:
    """First 200 characters of a report body followed by an ellipsis."""
    return body[:SUMMARY_LENGTH] + "..."


class ReliefWebSource(BaseAdvisorySource[List[AlertData]]):
    """Latest humanitarian reports for a country"""
    SOURCE = Source.RELIEFWEB

    API_URL = "https://api.reliefweb.int/v1/reports"
    APP_NAME = "travel-dashboard"
    DEFAULT_LINK = "https://reliefweb.int"

    async def fetch(self, country: CountryRef) -> List[AlertData]:
        params = {
            "appname": self.APP_NAME,
            "query[value]": country.name,
            "limit": REPORT_LIMIT,
            "profile": "full",
        }
        response = await self.make_request(self.API_URL, params=params)
        data = response.json()

        alerts = []
        for report in data.get("data") or []:
            fields = report["fields"]
            body = fields.get("body")
            alerts.append(AlertData(
                source=self.SOURCE.value,
                title=fields.get("title") or "Crisis Update",
                level="Crisis Update",
                severity=AlertSeverity.MEDIUM,
                summary=truncate_summary(body) if body else "Crisis situation update",
                link=fields.get("url") or self.DEFAULT_LINK,
                date=parse_timestamp((fields.get("date") or {}).get("created")),
            ))
        return alerts
