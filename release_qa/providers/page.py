"""Page fetching and visible-text extraction shared by HTML-based checks."""

import logging
import re
from dataclasses import dataclass
from urllib.parse import urlsplit

import httpx
from bs4 import BeautifulSoup

from release_qa.exceptions import RemoteServiceError
from release_qa.services.http import RetryPolicy, call_with_retry, fetch_with_timeout

logger = logging.getLogger(__name__)

# Elements that never carry readable page copy
HIDDEN_SELECTORS = [
    "script",
    "style",
    "noscript",
    "iframe",
    "svg",
    "canvas",
    "nav",
    "header",
    "footer",
    "aside",
    '[role="navigation"]',
    '[role="banner"]',
    '[role="contentinfo"]',
    '[aria-hidden="true"]',
    ".cookie-notice",
    ".cookie-banner",
    "#cookie-consent",
    ".newsletter-signup",
    ".popup",
    ".modal",
]
MAIN_CONTENT_SELECTORS = ["main", "article", '[role="main"]', ".content", "#content"]


@dataclass
class FetchedPage:
    html: str
    headers: httpx.Headers
    final_url: str
    protocol: str  # 'http' | 'https'

    def parse(self) -> BeautifulSoup:
        return BeautifulSoup(self.html, "html.parser")


def fetch_page(client: httpx.Client, url: str, policy: RetryPolicy, timeout: float) -> FetchedPage:
    """Fetch a page, following redirects, with retry on transient failures.

    Raises:
        CheckError: If the page cannot be fetched
    """

    def _fetch() -> httpx.Response:
        response = fetch_with_timeout(client, url, timeout=timeout)
        if response.is_error:
            status = response.status_code
            raise RemoteServiceError(
                f"Failed to fetch {url}: {status} {response.reason_phrase}",
                status_code=status,
                retryable=not (400 <= status < 500 and status != 429),
            )
        return response

    logger.info(f"Fetching page: {url}")
    response = call_with_retry(_fetch, policy)
    final_url = str(response.url)
    return FetchedPage(
        html=response.text,
        headers=response.headers,
        final_url=final_url,
        protocol=urlsplit(final_url).scheme.lower(),
    )


def extract_visible_text(html: str) -> str:
    """Readable copy of a page, preferring its main content region."""
    soup = BeautifulSoup(html, "html.parser")
    for selector in HIDDEN_SELECTORS:
        for el in soup.select(selector):
            if not el.decomposed:
                el.decompose()

    root = None
    for selector in MAIN_CONTENT_SELECTORS:
        root = soup.select_one(selector)
        if root is not None:
            break
    if root is None:
        root = soup.body or soup

    text = root.get_text(" ")
    return re.sub(r"\s+", " ", text).strip()
