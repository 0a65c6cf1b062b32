"""Provider base class and the per-run context shared by all checks."""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Set

import httpx

from release_qa.config import settings
from release_qa.models.enums import Provider, ResultStatus, Severity, TestType
from release_qa.models.test_run import TestRun
from release_qa.schemas.finding import Finding
from release_qa.services.http import RetryPolicy
from release_qa.services.rule_catalog import RuleCatalog
from release_qa.services.scoring import ScoringConfig
from release_qa.services.urls import cap_urls, resolve_urls

logger = logging.getLogger(__name__)


class RunLogger(logging.LoggerAdapter):
    """Prefixes messages with the run id and check type."""

    def process(self, msg, kwargs):
        return f"[{self.extra['test_type']}] run={self.extra['run_id']} {msg}", kwargs


@dataclass
class RunContext:
    """Everything a provider needs for one run, loaded once before checks start."""

    run_id: Any
    project_id: Any
    test_type: TestType
    client: httpx.Client
    catalog: RuleCatalog = field(default_factory=RuleCatalog)
    scoring: ScoringConfig = field(default_factory=ScoringConfig.from_settings)
    retry: RetryPolicy = field(default_factory=lambda: RetryPolicy.from_settings(2))
    ignored: Dict[str, Set[str]] = field(default_factory=dict)
    enabled_optional_rules: Set[str] = field(default_factory=set)
    dictionary: Set[str] = field(default_factory=set)
    site_url: Optional[str] = None
    http_timeout: float = settings.HTTP_TIMEOUT
    favicon_timeout: float = settings.FAVICON_TIMEOUT
    log: Optional[logging.LoggerAdapter] = None

    def __post_init__(self):
        if self.log is None:
            self.log = RunLogger(logger, {"run_id": self.run_id, "test_type": self.test_type.value})

    def ignored_codes(self, url: str) -> Set[str]:
        return self.ignored.get(url, set())


@dataclass
class UrlOutcome:
    """A successful check of one URL (one viewport for performance).

    ``score`` is left None when it should be computed from the findings.
    """

    url: str
    findings: List[Finding] = field(default_factory=list)
    score: Optional[int] = None
    viewport: Optional[str] = None
    metrics: Dict[str, Any] = field(default_factory=dict)


class BaseProvider:
    """Base class for one check type.

    Subclasses implement ``check_url``; it returns one or more UrlOutcome
    objects or raises CheckError when the URL could not be checked. It runs
    on worker threads and must not touch the database session.
    """

    test_type: TestType
    provider: Provider = Provider.RELEASE_QA
    concurrency: int = 1
    url_limit: int = 50
    # False when the URL score comes from the remote service, not findings
    scores_from_findings: bool = True

    def __init__(self, ctx: RunContext):
        self.ctx = ctx
        self.log = ctx.log

    def resolve_urls(self, run: TestRun) -> List[str]:
        return cap_urls(resolve_urls(run), self.url_limit, self.log)

    def check_url(self, url: str) -> List[UrlOutcome]:
        raise NotImplementedError

    def make_pass(self, code: str, name: str, meta: Optional[Dict[str, Any]] = None, provider: Optional[Provider] = None) -> Finding:
        return make_pass(code, name, meta, provider or self.provider)

    def make_fail(
        self,
        code: str,
        name: str,
        default_severity: Severity,
        meta: Optional[Dict[str, Any]] = None,
        provider: Optional[Provider] = None,
    ) -> Finding:
        return make_fail(code, name, default_severity, self.ctx.catalog, meta, provider or self.provider)


def make_pass(code: str, name: str, meta: Optional[Dict[str, Any]] = None, provider: Provider = Provider.RELEASE_QA) -> Finding:
    return Finding(provider=provider, code=code, name=name, status=ResultStatus.PASS, meta=meta or {})


def make_skip(code: str, name: str, meta: Optional[Dict[str, Any]] = None, provider: Provider = Provider.RELEASE_QA) -> Finding:
    return Finding(provider=provider, code=code, name=name, status=ResultStatus.SKIP, meta=meta or {})


def make_fail(
    code: str,
    name: str,
    default_severity: Severity,
    catalog: RuleCatalog,
    meta: Optional[Dict[str, Any]] = None,
    provider: Provider = Provider.RELEASE_QA,
) -> Finding:
    """FAIL finding with the catalog severity for ``code``, else ``default_severity``."""
    return Finding(
        provider=provider,
        code=code,
        name=name,
        status=ResultStatus.FAIL,
        severity=catalog.severity_for(code, default_severity),
        meta=meta or {},
    )
