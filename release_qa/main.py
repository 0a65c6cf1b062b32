"""FastAPI application entry point."""

import logging
import threading

from fastapi import FastAPI

from release_qa.config import settings
from release_qa.routes import result_items, test_runs

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

logger = logging.getLogger(__name__)

app = FastAPI(
    title="Release QA",
    description="Release QA worker: test run results and finding triage",
    version="0.1.0",
)

app.include_router(test_runs.router)
app.include_router(result_items.router)

# Worker thread management
worker_thread = None
worker_stop_event = threading.Event()


def run_worker_loop():
    """Run the worker loop in a background thread."""
    from release_qa.worker import worker_loop

    logger.info("Starting background worker thread")
    worker_loop(worker_stop_event)


@app.on_event("startup")
async def startup_event():
    """Start the embedded worker when enabled."""
    global worker_thread
    if not settings.EMBEDDED_WORKER:
        return

    worker_thread = threading.Thread(target=run_worker_loop, daemon=True)
    worker_thread.start()
    logger.info("Background worker thread started")


@app.on_event("shutdown")
async def shutdown_event():
    """Stop the embedded worker when the app shuts down."""
    global worker_thread
    worker_stop_event.set()

    if worker_thread and worker_thread.is_alive():
        worker_thread.join(timeout=10)
        logger.info("Background worker thread stopped")


@app.get("/health")
def health():
    """Health check endpoint."""
    return {"status": "healthy"}
