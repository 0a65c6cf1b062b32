"""Tests for claiming and completing test runs."""

import threading
from datetime import datetime, timedelta

import pytest

from release_qa.jobs.claim import claim_next, complete, fail, try_claim
from release_qa.models import TestRun
from release_qa.models.enums import TestStatus


def test_claim_next_returns_none_when_empty(test_db):
    """Nothing queued, nothing claimed."""
    assert claim_next(test_db) is None


def test_claim_next_takes_oldest(test_db, create_run):
    """The earliest created run is claimed first and moved to RUNNING."""
    now = datetime.utcnow()
    newer = create_run(test_db, created_at=now)
    older = create_run(test_db, created_at=now - timedelta(minutes=5))

    run = claim_next(test_db)

    assert run.id == older.id
    assert run.status == TestStatus.RUNNING
    assert run.started_at is not None
    assert run.last_heartbeat is not None
    assert run.project is not None

    test_db.expire_all()
    assert test_db.get(TestRun, newer.id).status == TestStatus.QUEUED


def test_claim_skips_non_queued(test_db, create_run):
    """RUNNING and terminal runs are never claimed."""
    create_run(test_db, status=TestStatus.RUNNING)
    create_run(test_db, status=TestStatus.SUCCESS)
    assert claim_next(test_db) is None


def test_try_claim_only_one_winner(session_factory, create_run):
    """Two sessions racing for one row: exactly one claim succeeds."""
    first, second = session_factory(), session_factory()
    run = create_run(first)

    assert try_claim(first, run.id) is True
    assert try_claim(second, run.id) is False

    first.close()
    second.close()


def test_concurrent_claims_are_exclusive(file_session_factory, create_run):
    """Eight workers, one queued run: exactly one gets it."""
    setup = file_session_factory()
    create_run(setup)
    setup.close()

    claimed = []
    lock = threading.Lock()
    barrier = threading.Barrier(8)

    def worker():
        db = file_session_factory()
        try:
            barrier.wait()
            run = claim_next(db)
            if run is not None:
                with lock:
                    claimed.append(run.id)
        finally:
            db.close()

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(claimed) == 1


def test_complete_writes_terminal_state(test_db, create_run):
    """Completion stamps status, score and finish time."""
    run = create_run(test_db, status=TestStatus.RUNNING)

    assert complete(test_db, run.id, TestStatus.SUCCESS, score=87) is True

    test_db.expire_all()
    stored = test_db.get(TestRun, run.id)
    assert stored.status == TestStatus.SUCCESS
    assert stored.score == 87
    assert stored.finished_at is not None


def test_complete_ignores_reaped_run(test_db, create_run):
    """A run already failed by the reaper keeps its state."""
    run = create_run(test_db, status=TestStatus.FAILED)

    assert complete(test_db, run.id, TestStatus.SUCCESS, score=100) is False

    test_db.expire_all()
    assert test_db.get(TestRun, run.id).status == TestStatus.FAILED


def test_complete_rejects_non_terminal_status(test_db, create_run):
    """QUEUED and RUNNING are not completion states."""
    run = create_run(test_db, status=TestStatus.RUNNING)
    with pytest.raises(ValueError):
        complete(test_db, run.id, TestStatus.QUEUED)


def test_fail_records_error(test_db, create_run):
    """fail() is a FAILED completion with an error and no score."""
    run = create_run(test_db, status=TestStatus.RUNNING)

    fail(test_db, run.id, "No URLs to test")

    test_db.expire_all()
    stored = test_db.get(TestRun, run.id)
    assert stored.status == TestStatus.FAILED
    assert stored.score is None
    assert stored.error == "No URLs to test"
