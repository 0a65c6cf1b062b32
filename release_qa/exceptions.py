"""Exception hierarchy for the QA worker.

Two families matter to the processor:

* ``ConfigurationError`` - the run cannot start (no URLs, missing credentials).
* ``CheckError`` - a URL could not be checked (network failure, remote error
  after retries, malformed response). Recorded on the UrlResult and forces the
  owning run to FAILED without a score.

A check that ran and found a problem is never an exception; it is a FAIL
finding.
"""

from typing import Optional


class ReleaseQAError(Exception):
    """Base class for worker errors."""


class ConfigurationError(ReleaseQAError):
    """The run is misconfigured and cannot be processed."""


class CheckError(ReleaseQAError):
    """A URL could not be checked."""

    retryable = False


class RemoteServiceError(CheckError):
    """A remote service answered with an error status or unusable payload."""

    def __init__(self, message: str, status_code: Optional[int] = None, retryable: bool = True):
        super().__init__(message)
        self.status_code = status_code
        self.retryable = retryable


class FetchTimeoutError(CheckError):
    """A request exceeded its timeout."""

    retryable = True
