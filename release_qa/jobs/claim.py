"""Atomic claim and terminal completion of test runs."""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session, joinedload

from release_qa.models.enums import TERMINAL_STATUSES, TestStatus
from release_qa.models.test_run import TestRun

logger = logging.getLogger(__name__)

# Candidates inspected per claim attempt when other workers win the race
CLAIM_CANDIDATES = 5


def try_claim(db: Session, run_id) -> bool:
    """Flip one run from QUEUED to RUNNING.

    The UPDATE is guarded by ``status = 'QUEUED'``, so when two workers race
    for the same row only one of them sees a row count of 1.
    """
    now = datetime.utcnow()
    updated = (
        db.query(TestRun)
        .filter(TestRun.id == run_id, TestRun.status == TestStatus.QUEUED)
        .update(
            {
                TestRun.status: TestStatus.RUNNING,
                TestRun.started_at: now,
                TestRun.last_heartbeat: now,
            },
            synchronize_session=False,
        )
    )
    db.commit()
    return updated == 1


def claim_next(db: Session) -> Optional[TestRun]:
    """Claim the oldest queued test run.

    Returns:
        The claimed run with project, config and release run loaded, or None
    """
    candidates = (
        db.query(TestRun.id)
        .filter(TestRun.status == TestStatus.QUEUED)
        .order_by(TestRun.created_at, TestRun.id)
        .with_for_update(skip_locked=True)
        .limit(CLAIM_CANDIDATES)
        .all()
    )
    # Release the row locks taken by the candidate scan
    db.rollback()

    for (run_id,) in candidates:
        if not try_claim(db, run_id):
            logger.info(f"Run {run_id} was claimed by another worker")
            continue

        run = (
            db.query(TestRun)
            .options(
                joinedload(TestRun.project),
                joinedload(TestRun.config),
                joinedload(TestRun.release_run),
            )
            .filter(TestRun.id == run_id)
            .one()
        )
        logger.info(f"Claimed test run {run.id} type={run.type.value}")
        return run

    return None


def complete(
    db: Session,
    run_id,
    status: TestStatus,
    score: Optional[int] = None,
    error: Optional[str] = None,
) -> bool:
    """Write the terminal status of a run.

    Only a RUNNING run is updated; a run the reaper already failed keeps its
    state and False is returned.
    """
    if status not in TERMINAL_STATUSES:
        raise ValueError(f"Not a terminal status: {status}")

    updated = (
        db.query(TestRun)
        .filter(TestRun.id == run_id, TestRun.status == TestStatus.RUNNING)
        .update(
            {
                TestRun.status: status,
                TestRun.finished_at: datetime.utcnow(),
                TestRun.score: score,
                TestRun.error: error,
            },
            synchronize_session=False,
        )
    )
    db.commit()

    if updated != 1:
        logger.warning(f"Test run {run_id} was no longer RUNNING, {status.value} not recorded")
        return False
    return True


def fail(db: Session, run_id, error: str) -> bool:
    return complete(db, run_id, TestStatus.FAILED, error=error)
