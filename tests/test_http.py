"""Tests for timeout-bounded fetches and retry."""

import httpx
import pytest

from release_qa.exceptions import FetchTimeoutError, RemoteServiceError
from release_qa.services.http import (
    RetryPolicy,
    call_with_retry,
    fetch_with_timeout,
    is_retryable,
    raise_for_remote_status,
)


def test_retries_until_success(fast_retry):
    """Retryable errors are retried up to the policy limit."""
    calls = []

    def flaky():
        calls.append(1)
        if len(calls) < 3:
            raise RemoteServiceError("503", status_code=503)
        return "ok"

    assert call_with_retry(flaky, fast_retry) == "ok"
    assert len(calls) == 3


def test_gives_up_after_retries(fast_retry):
    """The last error surfaces once attempts are exhausted."""
    calls = []

    def always_down():
        calls.append(1)
        raise RemoteServiceError("still down", status_code=502)

    with pytest.raises(RemoteServiceError, match="still down"):
        call_with_retry(always_down, fast_retry)
    assert len(calls) == 3


def test_client_errors_not_retried(fast_retry):
    """4xx other than 429 fails on the first attempt."""
    calls = []

    def not_found():
        calls.append(1)
        raise RemoteServiceError("404", status_code=404, retryable=False)

    with pytest.raises(RemoteServiceError):
        call_with_retry(not_found, fast_retry)
    assert len(calls) == 1


def test_raise_for_remote_status_classification():
    """429 and 5xx are retryable, other 4xx are not."""
    request = httpx.Request("GET", "https://api.test/")

    for status, retryable in [(400, False), (401, False), (404, False), (429, True), (500, True), (503, True)]:
        response = httpx.Response(status, request=request, text="nope")
        with pytest.raises(RemoteServiceError) as info:
            raise_for_remote_status(response, "Test API")
        assert info.value.retryable is retryable
        assert info.value.status_code == status

    raise_for_remote_status(httpx.Response(200, request=request), "Test API")


def test_transport_errors_are_retryable():
    """Connection failures are retried; arbitrary errors are not."""
    request = httpx.Request("GET", "https://api.test/")
    assert is_retryable(httpx.ConnectError("refused", request=request))
    assert not is_retryable(ValueError("bad"))


def test_fetch_timeout_raises_fetch_timeout_error(mock_client):
    """A timed-out request becomes FetchTimeoutError naming the URL."""

    def handler(request):
        raise httpx.ReadTimeout("timed out", request=request)

    client = mock_client(handler)
    with pytest.raises(FetchTimeoutError, match=r"Request timed out after 1500ms: https://slow.test/"):
        fetch_with_timeout(client, "https://slow.test/", timeout=1.5)


def test_with_retries_keeps_delays():
    """Changing the retry count keeps the backoff parameters."""
    policy = RetryPolicy(retries=2, initial_delay=0.5, max_delay=4, jitter=0.1).with_retries(5)
    assert policy == RetryPolicy(retries=5, initial_delay=0.5, max_delay=4, jitter=0.1)
