"""SE Ranking Website Audit API client."""

import logging
import re
import time
from typing import Any, Callable, Dict, List, Optional

import httpx
from pydantic import BaseModel

from release_qa.config import settings
from release_qa.exceptions import CheckError, ConfigurationError, RemoteServiceError
from release_qa.services.http import RetryPolicy, call_with_retry, fetch_with_timeout, raise_for_remote_status

logger = logging.getLogger(__name__)

AUDIT_STATUSES = {
    "completed": "completed",
    "done": "completed",
    "in_progress": "in_progress",
    "running": "in_progress",
    "failed": "failed",
    "error": "failed",
}
ISSUE_SEVERITIES = {
    "critical": "critical",
    "error": "critical",
    "warning": "warning",
    "notice": "notice",
    "info": "notice",
    "passed": "passed",
    "ok": "passed",
}


class AuditIssue(BaseModel):
    id: str
    name: str = ""
    category: str = ""
    severity: str = "notice"  # critical | warning | notice | passed
    affected_count: int = 0
    description: str = ""
    urls: List[str] = []

    @property
    def code(self) -> str:
        return "SE_" + re.sub(r"[^A-Z0-9]", "_", self.id.upper())


class AuditResult(BaseModel):
    project_id: str
    audit_id: str
    status: str  # pending | in_progress | completed | failed
    score: Optional[int] = None
    pages_scanned: int = 0
    critical_count: int = 0
    warnings_count: int = 0
    notices_count: int = 0
    passed_count: int = 0
    issues: List[AuditIssue] = []

    @property
    def finished(self) -> bool:
        return self.status in ("completed", "failed")


def map_audit_status(status: Optional[str]) -> str:
    return AUDIT_STATUSES.get((status or "").lower(), "pending")


def map_issue_severity(severity: Optional[str]) -> str:
    return ISSUE_SEVERITIES.get((severity or "").lower(), "notice")


def parse_audit_response(project_id: str, audit_id: str, data: Dict[str, Any]) -> AuditResult:
    return AuditResult(
        project_id=project_id,
        audit_id=audit_id,
        status=map_audit_status(data.get("status")),
        score=data.get("score"),
        pages_scanned=data.get("pages_scanned") or 0,
        critical_count=data.get("critical_count") or 0,
        warnings_count=data.get("warnings_count") or 0,
        notices_count=data.get("notices_count") or 0,
        passed_count=data.get("passed_count") or 0,
    )


def parse_issues_response(data: Dict[str, Any]) -> List[AuditIssue]:
    return [
        AuditIssue(
            id=str(issue.get("id")),
            name=issue.get("name") or "",
            category=issue.get("category") or "",
            severity=map_issue_severity(issue.get("severity")),
            affected_count=issue.get("affected_count") or 0,
            description=issue.get("description") or "",
            urls=issue.get("urls") or [],
        )
        for issue in data.get("issues") or []
    ]


class SeRankingClient:
    """Creates an audit project, starts a crawl and polls it to completion."""

    def __init__(
        self,
        http: httpx.Client,
        api_key: Optional[str] = None,
        policy: Optional[RetryPolicy] = None,
        timeout: Optional[float] = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.http = http
        self.api_key = api_key or settings.SE_RANKING_API_KEY
        if not self.api_key:
            raise ConfigurationError("SE_RANKING_API_KEY environment variable is not set")
        self.base_url = settings.SE_RANKING_API_URL.rstrip("/")
        self.policy = policy or RetryPolicy.from_settings(3)
        self.timeout = timeout or settings.HTTP_TIMEOUT
        self.sleep = sleep
        self.clock = clock

    def _request(self, method: str, path: str, **kwargs) -> Dict[str, Any]:
        headers = {"Authorization": f"Token {self.api_key}", "Accept": "application/json"}

        def _call() -> Dict[str, Any]:
            response = fetch_with_timeout(
                self.http, f"{self.base_url}{path}", timeout=self.timeout, method=method, headers=headers, **kwargs
            )
            raise_for_remote_status(response, "SE Ranking API")
            try:
                return response.json()
            except ValueError as e:
                raise RemoteServiceError(f"SE Ranking API returned invalid JSON: {e}", retryable=False) from e

        return call_with_retry(_call, self.policy)

    def create_project(self, site_url: str, max_pages: Optional[int] = None, include_subdomains: bool = False) -> str:
        data = self._request(
            "POST",
            "/audit/projects",
            json={
                "url": site_url,
                "max_pages": max_pages or settings.SE_RANKING_MAX_PAGES,
                "include_subdomains": include_subdomains,
            },
        )
        return str(data["id"])

    def start_audit(self, project_id: str) -> str:
        data = self._request("POST", f"/audit/projects/{project_id}/start")
        return str(data["audit_id"])

    def get_audit(self, project_id: str, audit_id: str) -> AuditResult:
        data = self._request("GET", f"/audit/projects/{project_id}/audits/{audit_id}")
        return parse_audit_response(project_id, audit_id, data)

    def get_issues(self, project_id: str, audit_id: str) -> List[AuditIssue]:
        data = self._request("GET", f"/audit/projects/{project_id}/audits/{audit_id}/issues")
        return parse_issues_response(data)

    def wait_for_completion(
        self,
        project_id: str,
        audit_id: str,
        poll_interval: Optional[float] = None,
        max_wait: Optional[float] = None,
    ) -> AuditResult:
        """Poll until the audit completes or fails.

        Raises:
            CheckError: If the audit is still running after ``max_wait`` seconds
        """
        poll_interval = settings.SE_RANKING_POLL_INTERVAL if poll_interval is None else poll_interval
        max_wait = settings.SE_RANKING_MAX_WAIT if max_wait is None else max_wait

        started = self.clock()
        while self.clock() - started < max_wait:
            result = self.get_audit(project_id, audit_id)
            if result.finished:
                return result
            logger.info(f"Audit {audit_id} status: {result.status}, pages scanned: {result.pages_scanned}")
            self.sleep(poll_interval)

        raise CheckError(f"Audit timed out after {max_wait:g} seconds")

    def run_full_audit(self, site_url: str, max_pages: Optional[int] = None) -> AuditResult:
        project_id = self.create_project(site_url, max_pages=max_pages)
        logger.info(f"Created SE Ranking project {project_id} for {site_url}")
        audit_id = self.start_audit(project_id)
        logger.info(f"Started SE Ranking audit {audit_id}")

        result = self.wait_for_completion(project_id, audit_id)
        if result.status == "completed":
            result.issues = self.get_issues(project_id, audit_id)
        return result
