"""
Optional AI enhancement of US State Dept advisories.

For each State Dept alert:
1. Download the advisory page and strip it down to plain text
2. Skip pages that are CAPTCHA-protected or too short to be useful
3. Ask the model for {summary, keyRisks, safetyRecommendations, specificAreas}
4. Merge the analysis into the alert and stamp ai_enhanced_at

The whole enhancement of one alert is raced against a hard timeout. Any
failure (timeout, HTTP, model, parse) leaves the alert as it was; enhancement
never fails a country refresh.
"""

import asyncio
import html
import json
import logging
import re
from dataclasses import replace
from typing import List, Optional

import anthropic
import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from utils.timestamps import utc_now
from .enums import Source
from .types import AlertData

logger = logging.getLogger(__name__)

MAX_CONTENT_LENGTH = 15000
MIN_CONTENT_LENGTH = 200
MAX_OUTPUT_TOKENS = 1500

CAPTCHA_PATTERN = re.compile(r"recaptcha|grecaptcha|START CAPTCHA|captcha", re.IGNORECASE)
NON_CONTENT_PATTERN = re.compile(
    r"<(script|style|nav|header|footer|noscript)\b.*?</\1\s*>",
    re.IGNORECASE | re.DOTALL,
)
TAG_PATTERN = re.compile(r"<[^>]+>")
WHITESPACE_PATTERN = re.compile(r"\s+")

SYSTEM_PROMPT = (
    "You are a travel safety expert who analyzes government travel advisories. "
    "You must respond with a single valid JSON object and nothing else."
)

USER_PROMPT_TEMPLATE = """Analyze this US State Department travel advisory for {country} and provide detailed, actionable information for travelers.

Original brief summary: "{summary}"

Full advisory content:
{content}

Respond with JSON in exactly this shape:
{{
  "summary": "A detailed 2-3 paragraph summary covering current conditions, regional variations and practical implications for travelers",
  "keyRisks": ["3-6 specific risks such as crime types, areas to avoid, health concerns or political situations"],
  "safetyRecommendations": ["3-6 specific precautions travelers should take"],
  "specificAreas": ["Cities, regions or areas mentioned with particular conditions or recommendations"]
}}"""


class EnhancementTimeoutError(TimeoutError):
    """Raised when one alert's enhancement exceeds the hard timeout."""
    pass


class AdvisoryAnalysis(BaseModel):
    """Validated model output."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    summary: str = Field(min_length=50)
    key_risks: List[str] = Field(min_length=1)
    safety_recommendations: List[str] = Field(min_length=1)
    specific_areas: List[str] = Field(min_length=1)


def html_to_text(raw_html: str) -> str:
    """Drop non-content elements and tags, unescape entities, collapse whitespace."""
    text = NON_CONTENT_PATTERN.sub(" ", raw_html)
    text = TAG_PATTERN.sub(" ", text)
    text = html.unescape(text)
    return WHITESPACE_PATTERN.sub(" ", text).strip()


def extract_json_object(text: str) -> dict:
    """
    Parse the first {...} object in a model response.

    Raises:
        ValueError: If no JSON object can be parsed
    """
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end <= start:
        raise ValueError("No JSON object in model response")
    return json.loads(text[start:end + 1])


class AIEnhancer:
    """
    Enhances State Dept alerts using Claude.

    Example:
        enhancer = AIEnhancer(api_key=settings.ANTHROPIC_API_KEY, model=settings.AI_MODEL)
        alerts = await enhancer.enhance_alerts("france", alerts)
    """

    def __init__(
        self,
        api_key: str,
        model: str,
        timeout: float = 30.0,
        http_timeout: float = 15.0,
        client: Optional[anthropic.AsyncAnthropic] = None,
    ):
        self.model = model
        self.timeout = timeout
        self.http_timeout = http_timeout
        self.client = client or anthropic.AsyncAnthropic(api_key=api_key)

    async def enhance_alerts(self, country_name: str, alerts: List[AlertData]) -> List[AlertData]:
        """Return alerts with State Dept entries enhanced where possible (never raises)."""
        enhanced = []
        for alert in alerts:
            if alert.source != Source.STATE_DEPT.value:
                enhanced.append(alert)
                continue
            enhanced.append(await self._enhance_or_keep(country_name, alert))
        return enhanced

    async def _enhance_or_keep(self, country_name: str, alert: AlertData) -> AlertData:
        try:
            return await self.enhance_alert(country_name, alert)
        except EnhancementTimeoutError as e:
            logger.warning(f"AI enhancement for {country_name}: {e}")
        except (httpx.HTTPError, anthropic.APIError, ValueError, ValidationError) as e:
            logger.warning(f"AI enhancement for {country_name} failed: {type(e).__name__}: {e}")
        return alert

    async def enhance_alert(self, country_name: str, alert: AlertData) -> AlertData:
        """
        Enhance one alert within the hard timeout.

        Returns:
            The enhanced alert, or the original when the page is unusable

        Raises:
            EnhancementTimeoutError: If the whole enhancement exceeds self.timeout
        """
        try:
            return await asyncio.wait_for(self._enhance(country_name, alert), timeout=self.timeout)
        except asyncio.TimeoutError:
            raise EnhancementTimeoutError(f"enhancement timed out after {self.timeout}s")

    async def _enhance(self, country_name: str, alert: AlertData) -> AlertData:
        content = await self.fetch_page_text(alert.link)
        if content is None:
            return alert

        analysis = await self.analyze(content, country_name, alert.summary)
        return replace(
            alert,
            summary=analysis.summary,
            key_risks=analysis.key_risks,
            safety_recommendations=analysis.safety_recommendations,
            specific_areas=analysis.specific_areas,
            ai_enhanced_at=utc_now(),
        )

    async def fetch_page_text(self, url: str) -> Optional[str]:
        """
        Download an advisory page as plain text.

        Returns:
            Page text, or None for error statuses, CAPTCHA pages and pages
            with too little text
        """
        async with httpx.AsyncClient(follow_redirects=True) as client:
            response = await client.get(
                url,
                headers={"User-Agent": "Mozilla/5.0 (compatible; GlobalAdvisor/1.0)"},
                timeout=self.http_timeout,
            )
        if response.status_code >= 400:
            logger.warning(f"Advisory page returned {response.status_code}: {url}")
            return None

        raw_html = response.text
        if CAPTCHA_PATTERN.search(raw_html):
            logger.warning(f"CAPTCHA detected, skipping: {url}")
            return None

        text = html_to_text(raw_html)
        if len(text) < MIN_CONTENT_LENGTH:
            return None
        return text

    async def analyze(self, content: str, country_name: str, original_summary: str) -> AdvisoryAnalysis:
        """
        Ask the model for a structured analysis of the advisory text.

        Raises:
            anthropic.APIError: On API failures
            ValueError / ValidationError: On unusable output
        """
        if len(content) > MAX_CONTENT_LENGTH:
            content = content[:MAX_CONTENT_LENGTH] + "..."

        prompt = USER_PROMPT_TEMPLATE.format(
            country=country_name.title(),
            summary=original_summary,
            content=content,
        )
        response = await self.client.messages.create(
            model=self.model,
            max_tokens=MAX_OUTPUT_TOKENS,
            system=SYSTEM_PROMPT,
            messages=[{"role": "user", "content": prompt}],
        )
        text = "".join(b.text for b in response.content if hasattr(b, "text"))
        return AdvisoryAnalysis.model_validate(extract_json_object(text))
