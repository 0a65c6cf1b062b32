"""Site audit provider: one SE Ranking crawl of the project's site."""

from typing import List, Optional

from release_qa.exceptions import CheckError, ConfigurationError
from release_qa.models.enums import Provider, Severity, TestType
from release_qa.models.test_run import TestRun
from release_qa.providers.base import BaseProvider, RunContext, UrlOutcome
from release_qa.providers.seranking.client import AuditIssue, AuditResult, SeRankingClient
from release_qa.schemas.finding import Finding

ISSUE_SEVERITY = {
    "critical": Severity.CRITICAL,
    "warning": Severity.HIGH,
    "notice": Severity.MEDIUM,
}
MAX_AFFECTED_URLS = 10


class SiteAuditProvider(BaseProvider):
    """Crawls the whole site once per run; the score comes from SE Ranking."""

    test_type = TestType.SITE_AUDIT
    provider = Provider.SE_RANKING
    concurrency = 1
    url_limit = 1
    scores_from_findings = False

    def __init__(self, ctx: RunContext, client: Optional[SeRankingClient] = None):
        super().__init__(ctx)
        self.client = client or SeRankingClient(ctx.client, policy=ctx.retry.with_retries(3))

    def resolve_urls(self, run: TestRun) -> List[str]:
        """The project's site URL; the crawl covers the whole site."""
        site_url = run.project.site_url if run.project else self.ctx.site_url
        if not site_url:
            raise ConfigurationError("Project has no site URL configured")
        return [site_url]

    def check_url(self, url: str) -> List[UrlOutcome]:
        """Run one full audit and map its issues to findings."""
        self.log.info(f"Running SE Ranking audit for {url}")
        result = self.client.run_full_audit(url)
        if result.status == "failed":
            raise CheckError("SE Ranking audit failed")

        self.log.info(
            f"Audit completed. Score: {result.score}, pages: {result.pages_scanned}, "
            f"{result.critical_count} critical, {result.warnings_count} warnings, {result.notices_count} notices"
        )
        findings = [self.issue_finding(issue) for issue in result.issues]
        if not findings:
            findings.append(
                self.make_pass(
                    "SITE_AUDIT_PASSED",
                    "No site audit issues found",
                    {"pagesScanned": result.pages_scanned, "passedChecks": result.passed_count},
                )
            )
        return [
            UrlOutcome(
                url=url,
                score=result.score if result.score is not None else 0,
                findings=findings,
                metrics=self.audit_metrics(result),
            )
        ]

    def issue_finding(self, issue: AuditIssue) -> Finding:
        """Finding for one audit issue, severity mapped from the service's level."""
        meta = {
            "category": issue.category,
            "affectedCount": issue.affected_count,
            "description": issue.description,
            "affectedUrls": issue.urls[:MAX_AFFECTED_URLS],
        }
        if issue.severity == "passed":
            return self.make_pass(issue.code, issue.name, meta)
        return self.make_fail(issue.code, issue.name, ISSUE_SEVERITY.get(issue.severity, Severity.MEDIUM), meta)

    @staticmethod
    def audit_metrics(result: AuditResult) -> dict:
        return {
            "pagesScanned": result.pages_scanned,
            "passedChecks": result.passed_count,
            "criticalCount": result.critical_count,
            "warningsCount": result.warnings_count,
            "noticesCount": result.notices_count,
            "seRankingProjectId": result.project_id,
            "seRankingAuditId": result.audit_id,
        }
