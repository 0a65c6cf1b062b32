"""Tests for heartbeat renewal and stuck-run reaping."""

import time
from datetime import datetime, timedelta

from release_qa.jobs.heartbeat import Heartbeat, renew_heartbeat
from release_qa.jobs.stuck import get_queued_count, get_running_count, reap_stuck_runs
from release_qa.models import TestRun
from release_qa.models.enums import TestStatus


def test_renew_heartbeat_updates_running_run(session_factory, create_run):
    """A RUNNING run gets a fresh heartbeat."""
    db = session_factory()
    run = create_run(db, status=TestStatus.RUNNING)
    stale = datetime.utcnow() - timedelta(minutes=30)
    run.last_heartbeat = stale
    db.commit()

    assert renew_heartbeat(run.id, session_factory) is True

    db.expire_all()
    assert db.get(TestRun, run.id).last_heartbeat > stale
    db.close()


def test_renew_heartbeat_swallows_errors():
    """A database failure is logged, never raised."""

    def broken_factory():
        raise RuntimeError("database unavailable")

    assert renew_heartbeat("run-1", broken_factory) is False


def test_heartbeat_thread_beats_until_stopped(file_session_factory, create_run):
    """The background timer renews repeatedly and stops on exit."""
    db = file_session_factory()
    run = create_run(db, status=TestStatus.RUNNING)

    with Heartbeat(run.id, interval=0.02, session_factory=file_session_factory) as heartbeat:
        deadline = time.monotonic() + 5
        while heartbeat.beats < 2 and time.monotonic() < deadline:
            time.sleep(0.01)
        assert heartbeat.running

    assert heartbeat.beats >= 2
    assert not heartbeat.running
    db.close()


def test_heartbeat_stops_on_error_path():
    """The timer is cancelled even when processing raises."""
    heartbeat = Heartbeat("run-1", interval=60, session_factory=lambda: None)
    try:
        with heartbeat:
            raise RuntimeError("provider crashed")
    except RuntimeError:
        pass
    assert not heartbeat.running


def test_reaper_fails_stale_runs_only(test_db, create_run):
    """61 minutes without a heartbeat is stuck; 10 minutes is not."""
    now = datetime.utcnow()
    stuck = create_run(test_db, status=TestStatus.RUNNING)
    stuck.last_heartbeat = now - timedelta(minutes=61)
    healthy = create_run(test_db, status=TestStatus.RUNNING)
    healthy.last_heartbeat = now - timedelta(minutes=10)
    test_db.commit()

    assert reap_stuck_runs(test_db, timeout=3600, now=now) == 1

    test_db.expire_all()
    reaped = test_db.get(TestRun, stuck.id)
    assert reaped.status == TestStatus.FAILED
    assert reaped.error == "Worker timeout: No heartbeat for 60 minutes"
    assert reaped.finished_at == now
    assert test_db.get(TestRun, healthy.id).status == TestStatus.RUNNING


def test_reaper_is_idempotent(test_db, create_run):
    """A second sweep with nothing stale does nothing."""
    now = datetime.utcnow()
    run = create_run(test_db, status=TestStatus.RUNNING)
    run.last_heartbeat = now - timedelta(hours=2)
    test_db.commit()

    assert reap_stuck_runs(test_db, timeout=3600, now=now) == 1
    assert reap_stuck_runs(test_db, timeout=3600, now=now) == 0


def test_reaper_never_touches_terminal_runs(test_db, create_run):
    """Only RUNNING rows are reaped."""
    now = datetime.utcnow()
    done = create_run(test_db, status=TestStatus.SUCCESS)
    done.last_heartbeat = now - timedelta(hours=5)
    test_db.commit()

    assert reap_stuck_runs(test_db, timeout=3600, now=now) == 0


def test_reaper_falls_back_to_started_at(test_db, create_run):
    """A run that never beat is judged by its start time."""
    now = datetime.utcnow()
    run = create_run(test_db, status=TestStatus.RUNNING)
    run.started_at = now - timedelta(minutes=90)
    run.last_heartbeat = None
    test_db.commit()

    assert reap_stuck_runs(test_db, timeout=3600, now=now) == 1


def test_queue_counts(test_db, create_run):
    """Queued and running runs are counted separately."""
    create_run(test_db)
    create_run(test_db)
    create_run(test_db, status=TestStatus.RUNNING)

    assert get_queued_count(test_db) == 2
    assert get_running_count(test_db) == 1
