"""Ignore toggling and re-scoring of persisted results."""

import logging
from typing import Optional

from sqlalchemy.orm import Session

from release_qa.models.enums import TestStatus, TestType
from release_qa.models.result import ResultItem, UrlResult
from release_qa.models.rule import IgnoredRule
from release_qa.models.test_run import TestRun
from release_qa.services.scoring import ScoringConfig, aggregate_scores, calculate_score

logger = logging.getLogger(__name__)

# Types whose URL score is the remote service's own score
REMOTE_SCORED_TYPES = (TestType.PERFORMANCE, TestType.SITE_AUDIT)


def rescore_url_result(db: Session, url_result: UrlResult, config: Optional[ScoringConfig] = None) -> Optional[int]:
    """Recompute a UrlResult score from its persisted items.

    Error rows and remotely scored rows keep their stored score.
    """
    if url_result.error is not None or url_result.test_run.type in REMOTE_SCORED_TYPES:
        return url_result.score
    url_result.score = calculate_score(url_result.items, config)
    return url_result.score


def rescore_test_run(db: Session, test_run: TestRun) -> Optional[int]:
    """Recompute the run aggregate; FAILED runs keep their null score."""
    if test_run.status != TestStatus.SUCCESS or any(r.error is not None for r in test_run.url_results):
        return test_run.score
    test_run.score = aggregate_scores(r.score for r in test_run.url_results)
    return test_run.score


def set_ignored(db: Session, item_id, ignored: bool, config: Optional[ScoringConfig] = None) -> Optional[ResultItem]:
    """Flip a finding's ignored flag and re-score its UrlResult and TestRun.

    The matching IgnoredRule row is created or removed so future runs of the
    same project URL inherit the decision.

    Returns:
        The updated item, or None if it does not exist
    """
    item = db.query(ResultItem).filter(ResultItem.id == item_id).first()
    if item is None:
        return None

    url_result = item.url_result
    test_run = url_result.test_run
    item.ignored = ignored

    existing = (
        db.query(IgnoredRule)
        .filter(
            IgnoredRule.project_id == test_run.project_id,
            IgnoredRule.url == url_result.url,
            IgnoredRule.code == item.code,
        )
        .first()
    )
    if ignored and existing is None:
        db.add(IgnoredRule(project_id=test_run.project_id, url=url_result.url, code=item.code))
    elif not ignored and existing is not None:
        db.delete(existing)

    db.flush()
    url_score = rescore_url_result(db, url_result, config)
    run_score = rescore_test_run(db, test_run)
    db.commit()
    db.refresh(item)

    logger.info(
        f"Result item {item_id} ignored={ignored}: url score {url_score}, run {test_run.id} score {run_score}"
    )
    return item
