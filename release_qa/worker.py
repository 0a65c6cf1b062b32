"""Background worker that claims and processes queued test runs."""

import logging
import signal
import threading
import time
from typing import Callable, Optional

from sqlalchemy.orm import Session

from release_qa.config import settings
from release_qa.database import SessionLocal
from release_qa.jobs.claim import claim_next
from release_qa.jobs.process import TestRunProcessor
from release_qa.jobs.stuck import get_queued_count, get_running_count, reap_stuck_runs

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

logger = logging.getLogger(__name__)


class Worker:
    """Poll loop: claim one run, process it to completion, repeat."""

    def __init__(
        self,
        session_factory: Callable[[], Session] = SessionLocal,
        processor: Optional[TestRunProcessor] = None,
    ):
        self.session_factory = session_factory
        self.processor = processor or TestRunProcessor(session_factory=session_factory)
        self.poll_interval = settings.POLL_INTERVAL_MIN
        self.last_stuck_check = 0.0

    def next_poll_interval(self, claimed: bool) -> float:
        """Reset after a claim, otherwise back off towards the maximum."""
        if claimed:
            self.poll_interval = settings.POLL_INTERVAL_MIN
        else:
            self.poll_interval = min(self.poll_interval * settings.POLL_BACKOFF_MULTIPLIER, settings.POLL_INTERVAL_MAX)
        return self.poll_interval

    def check_stuck_runs(self, force: bool = False) -> int:
        now = time.monotonic()
        if not force and now - self.last_stuck_check < settings.STUCK_CHECK_INTERVAL:
            return 0
        self.last_stuck_check = now

        db = self.session_factory()
        try:
            return reap_stuck_runs(db)
        except Exception as e:
            db.rollback()
            logger.error(f"Stuck run check failed: {e}")
            return 0
        finally:
            db.close()

    def log_queue_state(self):
        db = self.session_factory()
        try:
            logger.info(f"Queue: {get_queued_count(db)} queued, {get_running_count(db)} running")
        finally:
            db.close()

    def poll_once(self) -> bool:
        """Claim and process at most one run.

        Returns:
            True if a run was claimed
        """
        db = self.session_factory()
        try:
            run = claim_next(db)
            if run is None:
                return False
            self.processor.process(db, run)
            return True
        finally:
            db.close()

    def run(self, stop_event: Optional[threading.Event] = None):
        """Main worker loop.

        Args:
            stop_event: Optional threading.Event to signal worker to stop
        """
        stop_event = stop_event or threading.Event()
        logger.info("Worker started")

        self.check_stuck_runs(force=True)
        self.log_queue_state()

        while not stop_event.is_set():
            try:
                self.check_stuck_runs()
                claimed = self.poll_once()
                interval = self.next_poll_interval(claimed)
                if claimed:
                    # Look for more work right away
                    continue
                logger.debug(f"No queued runs, next poll in {interval:.0f}s")
            except Exception as e:
                logger.error(f"Worker error: {e}", exc_info=True)
                self.poll_interval = settings.POLL_INTERVAL_MAX
                interval = self.poll_interval

            stop_event.wait(interval)

        logger.info("Worker stopped")


def install_signal_handlers(stop_event: threading.Event):
    """Finish the current run, then exit on SIGINT/SIGTERM."""

    def _handle(signum, frame):
        logger.info(f"Received {signal.Signals(signum).name}, shutting down after the current run")
        stop_event.set()

    signal.signal(signal.SIGINT, _handle)
    signal.signal(signal.SIGTERM, _handle)


def worker_loop(stop_event=None):
    """Run worker loop (for use as background thread).

    Args:
        stop_event: Optional threading.Event to signal worker to stop
    """
    worker = Worker()
    worker.run(stop_event=stop_event)


def reaper_loop(stop_event: threading.Event, session_factory: Callable[[], Session] = SessionLocal):
    """Reap stuck runs every STUCK_CHECK_INTERVAL until stopped."""
    logger.info(f"Reaper started (timeout {settings.STUCK_RUN_TIMEOUT:g}s)")
    while not stop_event.is_set():
        db = session_factory()
        try:
            reap_stuck_runs(db)
        except Exception as e:
            db.rollback()
            logger.error(f"Reaper error: {e}", exc_info=True)
        finally:
            db.close()
        stop_event.wait(settings.STUCK_CHECK_INTERVAL)
    logger.info("Reaper stopped")


def main():
    """Entry point for standalone worker."""
    stop_event = threading.Event()
    install_signal_handlers(stop_event)
    Worker().run(stop_event)


def reaper_main():
    """Entry point for the standalone stuck-run reaper."""
    stop_event = threading.Event()
    install_signal_handlers(stop_event)
    reaper_loop(stop_event)


if __name__ == "__main__":
    main()
