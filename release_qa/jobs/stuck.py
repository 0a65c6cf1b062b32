"""Stuck-run detection and queue introspection."""

import logging
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from release_qa.config import settings
from release_qa.models.enums import TestStatus
from release_qa.models.test_run import TestRun

logger = logging.getLogger(__name__)


def reap_stuck_runs(db: Session, timeout: Optional[float] = None, now: Optional[datetime] = None) -> int:
    """Fail RUNNING runs whose heartbeat is older than ``timeout`` seconds.

    Only RUNNING rows are touched, so running it again with nothing stale is
    a no-op.

    Returns:
        Number of runs transitioned to FAILED
    """
    if timeout is None:
        timeout = settings.STUCK_RUN_TIMEOUT
    now = now or datetime.utcnow()
    cutoff = now - timedelta(seconds=timeout)

    count = (
        db.query(TestRun)
        .filter(
            TestRun.status == TestStatus.RUNNING,
            func.coalesce(TestRun.last_heartbeat, TestRun.started_at) < cutoff,
        )
        .update(
            {
                TestRun.status: TestStatus.FAILED,
                TestRun.error: f"Worker timeout: No heartbeat for {timeout / 60:g} minutes",
                TestRun.finished_at: now,
            },
            synchronize_session=False,
        )
    )
    db.commit()

    if count > 0:
        logger.warning(f"Reset {count} stuck test run(s)")
    return count


def get_queued_count(db: Session) -> int:
    """Runs waiting to be claimed."""
    return db.query(TestRun).filter(TestRun.status == TestStatus.QUEUED).count()


def get_running_count(db: Session) -> int:
    """Runs currently claimed by a worker."""
    return db.query(TestRun).filter(TestRun.status == TestStatus.RUNNING).count()
