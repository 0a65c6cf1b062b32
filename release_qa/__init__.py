"""Release QA worker: claims queued test runs, runs checks and scores them."""

__version__ = "0.1.0"
