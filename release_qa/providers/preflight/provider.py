"""Page preflight provider."""

from typing import List, Optional

import httpx

from release_qa.config import settings
from release_qa.models.enums import Provider, Severity, TestType
from release_qa.providers.base import BaseProvider, RunContext, UrlOutcome
from release_qa.providers.linkcheck import LinkChecker, LinkCheckSummary, is_internal_link, link_severity
from release_qa.providers.page import fetch_page
from release_qa.providers.pagespeed.client import PageSpeedClient, PageSpeedResult
from release_qa.providers.preflight.rules import FaviconProbe, run_custom_rules
from release_qa.schemas.finding import Finding

SEO_CRITICAL_AUDITS = {"is-crawlable", "http-status-code"}
SEO_HIGH_AUDITS = {"document-title", "meta-description", "canonical"}
SEO_MEDIUM_AUDITS = {"image-alt", "link-text", "robots-txt"}

PAGE_FETCH_RETRIES = 2


def seo_audit_severity(audit_id: str) -> Severity:
    """Default severity for a failed Lighthouse SEO audit."""
    if audit_id in SEO_CRITICAL_AUDITS:
        return Severity.CRITICAL
    if audit_id in SEO_HIGH_AUDITS:
        return Severity.HIGH
    if audit_id in SEO_MEDIUM_AUDITS:
        return Severity.MEDIUM
    return Severity.LOW


def seo_audit_code(audit_id: str) -> str:
    """Rule code for a Lighthouse audit id, e.g. ``is-crawlable`` -> ``SEO_IS_CRAWLABLE``."""
    return "SEO_" + audit_id.upper().replace("-", "_")


class PreflightProvider(BaseProvider):
    """Fetches each page once, then runs the rule engine, the link checker and,
    when an API key is configured, the Lighthouse SEO audits.
    """

    test_type = TestType.PAGE_PREFLIGHT
    concurrency = settings.PREFLIGHT_CONCURRENCY
    url_limit = settings.PREFLIGHT_URL_LIMIT

    def __init__(
        self,
        ctx: RunContext,
        pagespeed: Optional[PageSpeedClient] = None,
        link_checker: Optional[LinkChecker] = None,
    ):
        super().__init__(ctx)
        if pagespeed is None and settings.PAGE_SPEED_API_KEY:
            pagespeed = PageSpeedClient(ctx.client, policy=ctx.retry.with_retries(settings.PAGE_SPEED_MAX_RETRIES))
        self.pagespeed = pagespeed
        self.link_checker = link_checker or LinkChecker(
            ctx.client,
            ctx.retry.with_retries(PAGE_FETCH_RETRIES),
            ctx.http_timeout,
            whitelist=settings.CDN_WHITELIST,
        )

    def check_url(self, url: str) -> List[UrlOutcome]:
        """Fetch the page once and run every preflight check against it."""
        page = fetch_page(self.ctx.client, url, self.ctx.retry.with_retries(PAGE_FETCH_RETRIES), self.ctx.http_timeout)

        findings = run_custom_rules(page, self.ctx.catalog, self.probe_favicon, self.ctx.enabled_optional_rules)

        links = self.link_checker.check_page(page.final_url, page.parse())
        findings += self.link_findings(links)
        metrics = {
            "finalUrl": page.final_url,
            "linkCount": links.total_links,
            "brokenLinkCount": len(links.broken),
            "redirectCount": len(links.redirects),
            "skippedLinkCount": len(links.skipped),
        }

        if self.pagespeed is not None:
            seo = self.pagespeed.run(url, "mobile", ["seo"])
            findings += self.seo_findings(seo)
            metrics["seoScore"] = seo.seo_score
            metrics["seoAuditsChecked"] = len(seo.seo_audits)

        failed = sum(1 for f in findings if f.failed)
        self.log.info(f"{url}: {len(findings)} checks, {failed} failed")
        return [UrlOutcome(url=url, findings=findings, metrics=metrics)]

    def probe_favicon(self, url: str) -> FaviconProbe:
        """Fetch a favicon and report whether it has content.

        Content-Length decides when present; the body is only read without it.
        """
        try:
            with self.ctx.client.stream("GET", url, timeout=self.ctx.favicon_timeout) as response:
                status = response.status_code
                if not response.is_success:
                    return FaviconProbe(ok=False, status=status)

                header = response.headers.get("content-length")
                if header is not None:
                    try:
                        length = int(header)
                    except ValueError:
                        length = None
                    if length == 0:
                        return FaviconProbe(ok=False, status=status, content_length=0, error="Empty file (Content-Length: 0)")
                    return FaviconProbe(ok=True, status=status, content_length=length)

                body = response.read()
                if not body:
                    return FaviconProbe(ok=False, status=status, content_length=0, error="Empty file (0 bytes)")
                return FaviconProbe(ok=True, status=status, content_length=len(body))
        except httpx.HTTPError as e:
            return FaviconProbe(ok=False, error=str(e) or type(e).__name__)

    def link_findings(self, summary: LinkCheckSummary) -> List[Finding]:
        """Broken link and internal redirect findings, with a PASS summary when nothing is broken."""
        findings = []
        page_url = summary.scanned_url

        for link in summary.broken:
            internal = is_internal_link(page_url, link.url)
            kind = "internal" if internal else "external"
            findings.append(
                self.make_fail(
                    "BROKEN_INTERNAL_LINK" if internal else "BROKEN_EXTERNAL_LINK",
                    f"Broken {kind} link: {link.url} ({link.status})",
                    link_severity(link.status, internal),
                    {"brokenUrl": link.url, "status": link.status, "failureDetails": link.failure_details, "parent": link.parent},
                    provider=Provider.LINK_CHECKER,
                )
            )

        for link in summary.redirects:
            if is_internal_link(page_url, link.url):
                findings.append(
                    self.make_fail(
                        "REDIRECT_CHAIN",
                        f"Internal redirect: {link.url} ({link.status})",
                        Severity.LOW,
                        {"redirectUrl": link.url, "status": link.status},
                        provider=Provider.LINK_CHECKER,
                    )
                )

        if not summary.broken:
            findings.append(
                self.make_pass(
                    "LINK_CHECK_PASSED",
                    "All links are valid",
                    {"totalLinks": summary.total_links, "skipped": len(summary.skipped)},
                    provider=Provider.LINK_CHECKER,
                )
            )
        return findings

    def seo_findings(self, result: PageSpeedResult) -> List[Finding]:
        """One finding per scored SEO audit; a single PASS summary when none were scored."""
        findings = []
        for audit in result.seo_audits:
            if audit.score is None:
                continue
            code = seo_audit_code(audit.id)
            meta = {"description": audit.description, "displayValue": audit.display_value, "score": audit.score}
            if audit.score < 1:
                findings.append(self.make_fail(code, audit.title, seo_audit_severity(audit.id), meta, provider=Provider.LIGHTHOUSE))
            else:
                findings.append(self.make_pass(code, audit.title, meta, provider=Provider.LIGHTHOUSE))

        if not findings:
            findings.append(
                self.make_pass(
                    "SEO_AUDIT_PASSED",
                    "No Lighthouse SEO issues found",
                    {"seoScore": result.seo_score, "auditsReturned": len(result.seo_audits)},
                    provider=Provider.LIGHTHOUSE,
                )
            )
        return findings
