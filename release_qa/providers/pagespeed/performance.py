"""Performance provider: Lighthouse scores and Core Web Vitals per viewport."""

from concurrent.futures import ThreadPoolExecutor
from typing import Dict, List, Optional, Tuple

from release_qa.config import settings
from release_qa.exceptions import CheckError
from release_qa.models.enums import Provider, Severity, TestType
from release_qa.providers.base import BaseProvider, RunContext, UrlOutcome
from release_qa.providers.pagespeed.client import PageSpeedClient, PageSpeedResult
from release_qa.schemas.finding import Finding

VIEWPORTS = ("mobile", "desktop")

# (good, needs-improvement) upper bounds; LCP, FCP, TTI in seconds, TBT and INP in ms
WEB_VITALS_THRESHOLDS: Dict[str, Tuple[float, float]] = {
    "lcp": (2.5, 4.0),
    "fcp": (1.8, 3.0),
    "cls": (0.1, 0.25),
    "tbt": (200, 600),
    "tti": (3.8, 7.3),
    "inp": (200, 500),
}

METRIC_NAMES = {
    "lcp": "Largest Contentful Paint",
    "fcp": "First Contentful Paint",
    "cls": "Cumulative Layout Shift",
    "tbt": "Total Blocking Time",
    "tti": "Time to Interactive",
    "inp": "Interaction to Next Paint",
}


def grade_metric(metric: str, value: Optional[float]) -> Optional[str]:
    """'good', 'needs-improvement' or 'poor'; None when there is no value."""
    if value is None:
        return None
    good, needs_improvement = WEB_VITALS_THRESHOLDS[metric]
    if value <= good:
        return "good"
    if value <= needs_improvement:
        return "needs-improvement"
    return "poor"


class PerformanceProvider(BaseProvider):
    """Runs PageSpeed for mobile and desktop; each viewport gets its own UrlResult."""

    test_type = TestType.PERFORMANCE
    provider = Provider.LIGHTHOUSE
    concurrency = settings.PERFORMANCE_CONCURRENCY
    url_limit = settings.PERFORMANCE_URL_LIMIT
    scores_from_findings = False

    def __init__(self, ctx: RunContext, client: Optional[PageSpeedClient] = None):
        super().__init__(ctx)
        self.client = client or PageSpeedClient(
            ctx.client,
            policy=ctx.retry.with_retries(settings.PAGE_SPEED_MAX_RETRIES),
        )

    def _run_viewport(self, url: str, viewport: str) -> Optional[PageSpeedResult]:
        """One viewport's result, or None when it failed or came back unscored."""
        try:
            result = self.client.run(url, viewport, ["performance", "accessibility"])
        except Exception as e:
            self.log.error(f"{viewport.capitalize()} test failed for {url}: {e}")
            return None
        if result.performance_score is None:
            self.log.error(f"{viewport.capitalize()} test failed for {url}: no performance score returned")
            return None
        return result

    def check_url(self, url: str) -> List[UrlOutcome]:
        with ThreadPoolExecutor(max_workers=len(VIEWPORTS)) as pool:
            futures = {vp: pool.submit(self._run_viewport, url, vp) for vp in VIEWPORTS}
            results = {vp: f.result() for vp, f in futures.items()}

        if all(r is None for r in results.values()):
            raise CheckError("Both mobile and desktop tests failed")

        outcomes = []
        for viewport, result in results.items():
            if result is None:
                continue
            if result.performance_score < self.ctx.scoring.pass_threshold:
                self.log.warning(f"Low {viewport} score for {url}: {result.performance_score}")
            outcomes.append(
                UrlOutcome(
                    url=url,
                    viewport=viewport,
                    score=result.performance_score,
                    findings=self.vitals_findings(result, viewport),
                    metrics={
                        "performanceScore": result.performance_score,
                        "accessibilityScore": result.accessibility_score,
                        "lcp": result.lcp,
                        "cls": result.cls,
                        "inp": result.field_inp,
                        "fcp": result.fcp,
                        "tbt": result.tbt,
                        "tti": result.tti,
                        "hasFieldData": result.has_field_data,
                        "fieldLcp": result.field_lcp,
                        "fieldCls": result.field_cls,
                        "fieldInp": result.field_inp,
                    },
                )
            )
        return outcomes

    def vitals_findings(self, result: PageSpeedResult, viewport: str) -> List[Finding]:
        """One finding per measured vital; a single PASS summary when none were measured."""
        values = {
            "lcp": result.lcp,
            "fcp": result.fcp,
            "cls": result.cls,
            "tbt": result.tbt,
            "tti": result.tti,
            "inp": result.field_inp,
        }
        findings = []
        for metric, value in values.items():
            grade = grade_metric(metric, value)
            if grade is None:
                continue
            code = f"CWV_{metric.upper()}"
            meta = {"value": value, "rating": grade, "viewport": viewport, "thresholds": list(WEB_VITALS_THRESHOLDS[metric])}
            name = METRIC_NAMES[metric]
            if grade == "good":
                findings.append(self.make_pass(code, f"{name} is good", meta))
            else:
                severity = Severity.MEDIUM if grade == "needs-improvement" else Severity.HIGH
                findings.append(self.make_fail(code, f"{name} {grade.replace('-', ' ')}", severity, meta))

        if not findings:
            findings.append(
                self.make_pass(
                    "CWV_CHECK_PASSED",
                    "No Core Web Vitals issues found",
                    {"viewport": viewport, "performanceScore": result.performance_score},
                )
            )
        return findings
