"""PageSpeed Insights API v5 client."""

import logging
from typing import Any, Dict, List, Optional, Sequence

import httpx
from pydantic import BaseModel

from release_qa.config import settings
from release_qa.exceptions import ConfigurationError, RemoteServiceError
from release_qa.services.http import RetryPolicy, call_with_retry, fetch_with_timeout, raise_for_remote_status
from release_qa.services.scoring import round_half_up

logger = logging.getLogger(__name__)

SEO_AUDIT_IDS = [
    "document-title",
    "meta-description",
    "http-status-code",
    "link-text",
    "crawlable-anchors",
    "is-crawlable",
    "robots-txt",
    "image-alt",
    "hreflang",
    "canonical",
    "font-size",
    "tap-targets",
    "structured-data",
]


class SeoAudit(BaseModel):
    id: str
    title: str
    description: str = ""
    score: Optional[float] = None  # 0-1, None when not applicable
    display_value: Optional[str] = None


class PageSpeedResult(BaseModel):
    """Scores are 0-100; LCP, FCP and TTI in seconds; TBT and INP in ms."""

    performance_score: Optional[int] = None
    accessibility_score: Optional[int] = None
    seo_score: Optional[int] = None

    lcp: Optional[float] = None
    cls: Optional[float] = None
    fcp: Optional[float] = None
    tbt: Optional[float] = None
    tti: Optional[float] = None

    has_field_data: bool = False
    field_lcp: Optional[float] = None
    field_cls: Optional[float] = None
    field_inp: Optional[float] = None

    seo_audits: List[SeoAudit] = []


def _category_score(categories: Dict[str, Any], name: str) -> Optional[int]:
    score = (categories.get(name) or {}).get("score")
    return round_half_up(score * 100) if score is not None else None


def _numeric(audits: Dict[str, Any], audit_id: str, divisor: float = 1.0) -> Optional[float]:
    value = (audits.get(audit_id) or {}).get("numericValue")
    if value is None:
        return None
    return value / divisor


def _percentile(metrics: Dict[str, Any], name: str, divisor: float = 1.0) -> Optional[float]:
    value = (metrics.get(name) or {}).get("percentile")
    if value is None:
        return None
    return value / divisor


def parse_pagespeed_response(data: Dict[str, Any]) -> PageSpeedResult:
    """Map a raw API response to PageSpeedResult.

    Raises:
        RemoteServiceError: If the response has no lighthouseResult
    """
    lighthouse = data.get("lighthouseResult")
    if not lighthouse:
        raise RemoteServiceError("Invalid PageSpeed response: missing lighthouseResult", retryable=False)

    categories = lighthouse.get("categories") or {}
    audits = lighthouse.get("audits") or {}
    field_metrics = (data.get("loadingExperience") or {}).get("metrics")

    seo_audits = []
    for audit_id in SEO_AUDIT_IDS:
        audit = audits.get(audit_id)
        if audit:
            seo_audits.append(
                SeoAudit(
                    id=audit_id,
                    title=audit.get("title") or audit_id,
                    description=audit.get("description") or "",
                    score=audit.get("score"),
                    display_value=audit.get("displayValue"),
                )
            )

    metrics = field_metrics or {}
    return PageSpeedResult(
        performance_score=_category_score(categories, "performance"),
        accessibility_score=_category_score(categories, "accessibility"),
        seo_score=_category_score(categories, "seo"),
        lcp=_numeric(audits, "largest-contentful-paint", 1000),
        cls=_numeric(audits, "cumulative-layout-shift"),
        fcp=_numeric(audits, "first-contentful-paint", 1000),
        tbt=_numeric(audits, "total-blocking-time"),
        tti=_numeric(audits, "interactive", 1000),
        has_field_data=bool(field_metrics),
        field_lcp=_percentile(metrics, "LARGEST_CONTENTFUL_PAINT_MS", 1000),
        field_cls=_percentile(metrics, "CUMULATIVE_LAYOUT_SHIFT"),
        field_inp=_percentile(metrics, "INTERACTION_TO_NEXT_PAINT"),
        seo_audits=seo_audits,
    )


class PageSpeedClient:
    """Client for the PageSpeed Insights runPagespeed endpoint."""

    def __init__(
        self,
        http: httpx.Client,
        api_key: Optional[str] = None,
        policy: Optional[RetryPolicy] = None,
        timeout: Optional[float] = None,
    ):
        self.http = http
        self.api_key = api_key or settings.PAGE_SPEED_API_KEY
        self.api_url = settings.PAGE_SPEED_API_URL
        self.referer = settings.PAGE_SPEED_REFERER
        self.policy = policy or RetryPolicy.from_settings(settings.PAGE_SPEED_MAX_RETRIES)
        # Lighthouse runs take a while; allow well past the page timeout
        self.timeout = timeout or settings.HTTP_TIMEOUT * 4
        if not self.api_key:
            raise ConfigurationError("PAGE_SPEED_API_KEY is not set")

    def run(self, url: str, strategy: str = "mobile", categories: Sequence[str] = ("performance", "accessibility", "seo")) -> PageSpeedResult:
        """Run Lighthouse for ``url`` with the given strategy and categories."""
        params = [("url", url), ("key", self.api_key), ("strategy", strategy)]
        params += [("category", c.upper()) for c in categories]
        headers = {"Referer": self.referer} if self.referer else {}

        def _request() -> Dict[str, Any]:
            response = fetch_with_timeout(self.http, self.api_url, timeout=self.timeout, params=params, headers=headers)
            raise_for_remote_status(response, "PageSpeed API")
            return response.json()

        logger.info(f"PageSpeed {strategy} run for {url}")
        data = call_with_retry(_request, self.policy)
        return parse_pagespeed_response(data)
