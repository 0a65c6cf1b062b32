"""Test-run processor: dispatch, per-URL checks, persistence and completion."""

import logging
from typing import Callable, Dict, List, Optional, Set, Tuple, Type

import httpx
from sqlalchemy.orm import Session

from release_qa.database import SessionLocal
from release_qa.exceptions import ConfigurationError
from release_qa.jobs.claim import complete, fail
from release_qa.jobs.heartbeat import Heartbeat
from release_qa.models.enums import TestStatus, TestType
from release_qa.models.project import ReleaseRun
from release_qa.models.result import ResultItem, UrlResult
from release_qa.models.rule import DictionaryWord, IgnoredRule, ProjectOptionalRule
from release_qa.models.test_run import TestRun
from release_qa.providers.base import BaseProvider, RunContext, UrlOutcome
from release_qa.providers.pagespeed.performance import PerformanceProvider
from release_qa.providers.preflight.provider import PreflightProvider
from release_qa.providers.seranking.site_audit import SiteAuditProvider
from release_qa.providers.spelling.provider import SpellingProvider
from release_qa.services.concurrency import ConcurrencyLimiter
from release_qa.services.http import create_client
from release_qa.services.rule_catalog import RuleCatalog
from release_qa.services.scoring import ScoringConfig, aggregate_scores, calculate_score

logger = logging.getLogger(__name__)

# None marks a type this worker has no backend for
PROVIDERS: Dict[TestType, Optional[Type[BaseProvider]]] = {
    TestType.PAGE_PREFLIGHT: PreflightProvider,
    TestType.PERFORMANCE: PerformanceProvider,
    TestType.SCREENSHOTS: None,
    TestType.SPELLING: SpellingProvider,
    TestType.SITE_AUDIT: SiteAuditProvider,
}

_unregistered = set(TestType) - set(PROVIDERS)
if _unregistered:
    raise RuntimeError(f"No provider registered for: {sorted(t.value for t in _unregistered)}")


def provider_for(
    test_type: TestType,
    providers: Dict[TestType, Optional[Type[BaseProvider]]] = PROVIDERS,
) -> Type[BaseProvider]:
    """Provider class for a test type.

    Raises:
        ConfigurationError: If the type has no backend in this worker
    """
    provider_cls = providers.get(test_type)
    if provider_cls is None:
        raise ConfigurationError(f"{test_type.value} runs are not supported by this worker")
    return provider_cls


def load_ignored(db: Session, project_id) -> Dict[str, Set[str]]:
    """Ignored rule codes for a project, keyed by URL."""
    ignored: Dict[str, Set[str]] = {}
    for row in db.query(IgnoredRule).filter(IgnoredRule.project_id == project_id).all():
        ignored.setdefault(row.url, set()).add(row.code)
    return ignored


def load_optional_rules(db: Session, run: TestRun) -> Set[str]:
    """Enabled optional rule codes: the release run's list when it has one, else project toggles."""
    release_run: Optional[ReleaseRun] = run.release_run
    if release_run is not None and isinstance(release_run.enabled_optional_rules, list):
        return {code for code in release_run.enabled_optional_rules if isinstance(code, str)}

    rows = (
        db.query(ProjectOptionalRule.rule_code)
        .filter(ProjectOptionalRule.project_id == run.project_id, ProjectOptionalRule.enabled.is_(True))
        .all()
    )
    return {code for (code,) in rows}


def load_dictionary(db: Session) -> Set[str]:
    """Active custom dictionary words, lowercased."""
    rows = db.query(DictionaryWord.word).filter(DictionaryWord.is_active.is_(True)).all()
    return {word.lower() for (word,) in rows}


def build_context(db: Session, run: TestRun, client: httpx.Client) -> RunContext:
    """Load everything a run needs once, before any URL is checked."""
    return RunContext(
        run_id=run.id,
        project_id=run.project_id,
        test_type=run.type,
        client=client,
        catalog=RuleCatalog.load(db),
        scoring=ScoringConfig.from_settings(),
        ignored=load_ignored(db, run.project_id),
        enabled_optional_rules=load_optional_rules(db, run),
        dictionary=load_dictionary(db) if run.type == TestType.SPELLING else set(),
        site_url=run.project.site_url if run.project else None,
    )


def summarize_errors(errors: List[str], total: int) -> str:
    """The single error when every URL failed, else a count."""
    if len(errors) == total:
        return errors[0]
    return f"{len(errors)} of {total} URLs failed operationally"


class TestRunProcessor:
    """Processes one claimed run to a terminal state."""

    __test__ = False

    def __init__(
        self,
        session_factory: Callable[[], Session] = SessionLocal,
        client_factory: Callable[[], httpx.Client] = create_client,
        providers: Optional[Dict[TestType, Optional[Type[BaseProvider]]]] = None,
        heartbeat_interval: Optional[float] = None,
    ):
        self.session_factory = session_factory
        self.client_factory = client_factory
        self.providers = providers or PROVIDERS
        self.heartbeat_interval = heartbeat_interval

    def process(self, db: Session, run: TestRun) -> TestStatus:
        """Run all checks for ``run`` and record its terminal status.

        Any exception escaping the checks fails the run with the exception
        text; UrlResults already written are kept.
        """
        run_id = run.id
        logger.info(f"Processing test run {run_id} type={run.type.value}")

        try:
            with Heartbeat(run_id, interval=self.heartbeat_interval, session_factory=self.session_factory):
                status, score, error = self.execute(db, run)
        except Exception as e:
            logger.error(f"Test run {run_id} failed: {e}", exc_info=True)
            db.rollback()
            fail(db, run_id, str(e) or type(e).__name__)
            return TestStatus.FAILED

        if not complete(db, run_id, status, score=score, error=error):
            # Reaped or cancelled while checks were running
            return db.query(TestRun.status).filter(TestRun.id == run_id).scalar()

        if status == TestStatus.SUCCESS:
            logger.info(f"Test run {run_id} completed with score {score}")
        else:
            logger.warning(f"Test run {run_id} failed: {error}")
        return status

    def execute(self, db: Session, run: TestRun) -> Tuple[TestStatus, Optional[int], Optional[str]]:
        """Check every URL and return the run's status, score and error."""
        provider_cls = provider_for(run.type, self.providers)

        with self.client_factory() as client:
            ctx = build_context(db, run, client)
            provider = provider_cls(ctx)
            urls = provider.resolve_urls(run)
            ctx.log.info(f"Checking {len(urls)} URLs (concurrency {provider.concurrency})")

            scores: List[Optional[int]] = []
            errors: List[str] = []
            limiter = ConcurrencyLimiter(provider.concurrency)
            for url, future in limiter.map_unordered(provider.check_url, urls):
                try:
                    outcomes = future.result()
                except Exception as e:
                    message = str(e) or type(e).__name__
                    ctx.log.error(f"Error checking {url}: {message}")
                    self.save_error(db, run.id, url, message)
                    errors.append(message)
                    continue
                for outcome in outcomes:
                    scores.append(self.save_outcome(db, run.id, outcome, ctx, provider.scores_from_findings))

        if errors:
            return TestStatus.FAILED, None, summarize_errors(errors, len(urls))
        return TestStatus.SUCCESS, aggregate_scores(scores), None

    @staticmethod
    def save_error(db: Session, run_id, url: str, message: str):
        """Persist an operational error for one URL."""
        db.add(UrlResult(test_run_id=run_id, url=url, error=message, issue_count=0))
        db.commit()

    @staticmethod
    def save_outcome(db: Session, run_id, outcome: UrlOutcome, ctx: RunContext, scores_from_findings: bool) -> Optional[int]:
        """Persist one URL outcome with all of its findings; returns its score."""
        ignored_codes = ctx.ignored_codes(outcome.url)
        for finding in outcome.findings:
            if finding.code in ignored_codes:
                finding.ignored = True

        score = calculate_score(outcome.findings, ctx.scoring) if scores_from_findings else outcome.score
        url_result = UrlResult(
            test_run_id=run_id,
            url=outcome.url,
            viewport=outcome.viewport,
            score=score,
            issue_count=sum(1 for f in outcome.findings if f.failed),
            metrics=outcome.metrics,
        )
        url_result.items = [
            ResultItem(
                provider=f.provider,
                code=f.code,
                name=f.name,
                status=f.status,
                severity=f.severity,
                meta=f.meta,
                ignored=f.ignored,
            )
            for f in outcome.findings
        ]
        db.add(url_result)
        db.commit()
        return score
