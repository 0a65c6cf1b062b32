"""URL resolution and capping for test runs."""

import logging
from typing import List

from release_qa.exceptions import ConfigurationError
from release_qa.models.test_run import TestRun

logger = logging.getLogger(__name__)


def _clean(urls) -> List[str]:
    """Non-blank URL strings from a stored JSON list."""
    if not isinstance(urls, list):
        return []
    return [u.strip() for u in urls if isinstance(u, str) and u.strip()]


def resolve_urls(run: TestRun) -> List[str]:
    """Run config URLs, else release run URLs, else the project's site URL.

    Raises:
        ConfigurationError: If no URL resolves
    """
    if run.config is not None:
        urls = _clean(run.config.urls)
        if urls:
            return urls

    if run.release_run is not None:
        urls = _clean(run.release_run.urls)
        if urls:
            return urls

    if run.project is not None and run.project.site_url:
        return [run.project.site_url]

    raise ConfigurationError("No URLs to test. Configure URLs in TestRunConfig or ReleaseRun.")


def cap_urls(urls: List[str], limit: int, log=logger) -> List[str]:
    """Truncate ``urls`` to ``limit``, logging when anything is dropped."""
    if len(urls) <= limit:
        return urls
    log.warning(f"Limited to {limit} URLs (was {len(urls)})")
    return urls[:limit]
