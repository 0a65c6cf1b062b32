"""Liveness heartbeat for RUNNING test runs."""

import logging
import threading
from datetime import datetime
from typing import Callable, Optional

from sqlalchemy.orm import Session

from release_qa.config import settings
from release_qa.database import SessionLocal
from release_qa.models.enums import TestStatus
from release_qa.models.test_run import TestRun

logger = logging.getLogger(__name__)


def renew_heartbeat(run_id, session_factory: Callable[[], Session] = SessionLocal) -> bool:
    """Stamp ``last_heartbeat`` on a RUNNING run.

    Errors are logged and swallowed; a missed heartbeat never aborts a run.
    """
    db = None
    try:
        db = session_factory()
        db.query(TestRun).filter(TestRun.id == run_id, TestRun.status == TestStatus.RUNNING).update(
            {TestRun.last_heartbeat: datetime.utcnow()},
            synchronize_session=False,
        )
        db.commit()
        return True
    except Exception as e:
        logger.warning(f"Failed to update heartbeat for test run {run_id}: {e}")
        return False
    finally:
        if db is not None:
            db.close()


class Heartbeat:
    """Renews a run's heartbeat on a background thread until stopped.

    Use as a context manager around run processing so the timer stops on
    every exit path.
    """

    def __init__(
        self,
        run_id,
        interval: Optional[float] = None,
        session_factory: Callable[[], Session] = SessionLocal,
    ):
        self.run_id = run_id
        self.interval = settings.HEARTBEAT_INTERVAL if interval is None else interval
        self.session_factory = session_factory
        self.beats = 0
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def start(self):
        self._thread = threading.Thread(
            target=self._loop,
            name=f"heartbeat-{self.run_id}",
            daemon=True,
        )
        self._thread.start()

    def _loop(self):
        while not self._stop_event.wait(self.interval):
            if renew_heartbeat(self.run_id, self.session_factory):
                self.beats += 1

    def stop(self):
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=5)
            self._thread = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.stop()
        return False
