"""Tests for the worker poll loop and the reaper loop."""

import threading
from datetime import datetime, timedelta

import pytest

from release_qa.config import settings
from release_qa.jobs.claim import complete
from release_qa.models import TestRun
from release_qa.models.enums import TestStatus
from release_qa.worker import Worker, reaper_loop


class StubProcessor:
    """Completes every run with a fixed score, optionally stopping the worker."""

    def __init__(self, stop_event=None, error=None):
        self.processed = []
        self.stop_event = stop_event
        self.error = error

    def process(self, db, run):
        self.processed.append(run.id)
        if self.stop_event is not None:
            self.stop_event.set()
        if self.error is not None:
            raise self.error
        complete(db, run.id, TestStatus.SUCCESS, score=100)
        return TestStatus.SUCCESS


def test_poll_interval_backs_off_and_resets(session_factory):
    worker = Worker(session_factory=session_factory, processor=StubProcessor())

    intervals = [worker.next_poll_interval(claimed=False) for _ in range(6)]
    assert intervals == [15.0, 22.5, 33.75, 50.625, 60.0, 60.0]
    assert worker.next_poll_interval(claimed=True) == settings.POLL_INTERVAL_MIN


def test_poll_once_processes_one_run(session_factory, create_run):
    setup = session_factory()
    run = create_run(setup)
    processor = StubProcessor()
    worker = Worker(session_factory=session_factory, processor=processor)

    assert worker.poll_once() is True
    assert worker.poll_once() is False

    assert processor.processed == [run.id]
    setup.expire_all()
    assert setup.get(TestRun, run.id).status == TestStatus.SUCCESS
    setup.close()


def test_run_stops_after_current_run(session_factory, create_run):
    """A stop request lets the in-flight run finish, then the loop exits."""
    setup = session_factory()
    first = create_run(setup, created_at=datetime.utcnow() - timedelta(minutes=1))
    second = create_run(setup)
    stop_event = threading.Event()
    processor = StubProcessor(stop_event=stop_event)

    Worker(session_factory=session_factory, processor=processor).run(stop_event)

    assert processor.processed == [first.id]
    setup.expire_all()
    assert setup.get(TestRun, second.id).status == TestStatus.QUEUED
    setup.close()


def test_run_survives_processing_errors(session_factory, create_run):
    setup = session_factory()
    create_run(setup)
    stop_event = threading.Event()
    worker = Worker(session_factory=session_factory, processor=StubProcessor(stop_event, RuntimeError("boom")))

    worker.run(stop_event)

    assert worker.poll_interval == settings.POLL_INTERVAL_MAX
    setup.close()


def test_stuck_check_is_throttled(session_factory, create_run):
    worker = Worker(session_factory=session_factory, processor=StubProcessor())
    assert worker.check_stuck_runs(force=True) == 0

    setup = session_factory()
    run = create_run(setup, status=TestStatus.RUNNING)
    run.last_heartbeat = datetime.utcnow() - timedelta(hours=2)
    setup.commit()

    assert worker.check_stuck_runs() == 0
    assert worker.check_stuck_runs(force=True) == 1
    setup.close()


def test_reaper_loop(session_factory, create_run):
    setup = session_factory()
    run = create_run(setup, status=TestStatus.RUNNING)
    run.last_heartbeat = datetime.utcnow() - timedelta(hours=2)
    setup.commit()

    stop_event = threading.Event()

    def factory():
        # One sweep, then stop
        stop_event.set()
        return session_factory()

    reaper_loop(stop_event, factory)

    setup.expire_all()
    assert setup.get(TestRun, run.id).status == TestStatus.FAILED
    setup.close()


@pytest.mark.parametrize("claimed", [True, False])
def test_poll_interval_never_exceeds_bounds(session_factory, claimed):
    worker = Worker(session_factory=session_factory, processor=StubProcessor())
    for _ in range(20):
        interval = worker.next_poll_interval(claimed)
        assert settings.POLL_INTERVAL_MIN <= interval <= settings.POLL_INTERVAL_MAX
