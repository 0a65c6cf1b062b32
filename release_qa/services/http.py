"""Timeout-bounded HTTP fetches and retry with exponential backoff."""

import logging
from dataclasses import dataclass
from typing import Callable, Optional, TypeVar

import httpx
from tenacity import (
    Retrying,
    before_sleep_log,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
    wait_random,
)

from release_qa.config import settings
from release_qa.exceptions import CheckError, FetchTimeoutError, RemoteServiceError

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_HEADERS = {
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
}


@dataclass(frozen=True)
class RetryPolicy:
    """Backoff parameters for one kind of remote call."""

    retries: int = 2
    initial_delay: float = 1.0
    max_delay: float = 30.0
    jitter: float = 0.5

    @classmethod
    def from_settings(cls, retries: int) -> "RetryPolicy":
        return cls(
            retries=retries,
            initial_delay=settings.RETRY_INITIAL_DELAY,
            max_delay=settings.RETRY_MAX_DELAY,
            jitter=settings.RETRY_JITTER,
        )

    def with_retries(self, retries: int) -> "RetryPolicy":
        return RetryPolicy(retries, self.initial_delay, self.max_delay, self.jitter)


def is_retryable(exc: BaseException) -> bool:
    """Transport failures and errors flagged retryable are retried; everything else is terminal."""
    if isinstance(exc, CheckError):
        return exc.retryable
    return isinstance(exc, httpx.TransportError)


def call_with_retry(fn: Callable[[], T], policy: RetryPolicy) -> T:
    """Call ``fn`` up to ``policy.retries + 1`` times.

    Waits grow exponentially from ``initial_delay`` and carry random jitter.
    The last error is re-raised unchanged once attempts are exhausted.
    """
    retrying = Retrying(
        stop=stop_after_attempt(policy.retries + 1),
        wait=wait_exponential(multiplier=policy.initial_delay, max=policy.max_delay) + wait_random(0, policy.jitter),
        retry=retry_if_exception(is_retryable),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )
    return retrying(fn)


def raise_for_remote_status(response: httpx.Response, service: str) -> None:
    """Raise RemoteServiceError for error responses.

    4xx other than 429 is a terminal error; 429 and 5xx are retryable.
    """
    status = response.status_code
    if status < 400:
        return
    retryable = not (400 <= status < 500 and status != 429)
    body = response.text[:200] if response.content else ""
    raise RemoteServiceError(
        f"{service} error: {status} {response.reason_phrase} {body}".strip(),
        status_code=status,
        retryable=retryable,
    )


def fetch_with_timeout(
    client: httpx.Client,
    url: str,
    timeout: Optional[float] = None,
    method: str = "GET",
    **kwargs,
) -> httpx.Response:
    """Send a request bounded by ``timeout`` seconds.

    Raises:
        FetchTimeoutError: If the request does not finish in time
    """
    if timeout is None:
        timeout = settings.HTTP_TIMEOUT
    try:
        return client.request(method, url, timeout=timeout, **kwargs)
    except httpx.TimeoutException as e:
        raise FetchTimeoutError(f"Request timed out after {int(timeout * 1000)}ms: {url}") from e


def create_client(user_agent: Optional[str] = None) -> httpx.Client:
    """Build the pooled client shared by all URL tasks of one run."""
    headers = dict(DEFAULT_HEADERS)
    headers["User-Agent"] = user_agent or settings.USER_AGENT
    return httpx.Client(headers=headers, follow_redirects=True, timeout=settings.HTTP_TIMEOUT)
