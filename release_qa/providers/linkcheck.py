"""Link and sub-resource checker for a single page."""

import logging
from dataclasses import dataclass, field
from typing import Iterable, List, Optional
from urllib.parse import urldefrag, urljoin, urlsplit

import httpx
from bs4 import BeautifulSoup

from release_qa.exceptions import CheckError
from release_qa.models.enums import Severity
from release_qa.services.concurrency import ConcurrencyLimiter
from release_qa.services.http import RetryPolicy, call_with_retry, fetch_with_timeout

logger = logging.getLogger(__name__)

# Methods some servers refuse for HEAD; retried with GET
HEAD_REFUSED = {403, 405, 501}
LINK_CONCURRENCY = 5


@dataclass
class LinkResult:
    url: str
    status: int  # 0 when no response was received
    state: str  # 'OK' | 'BROKEN' | 'SKIPPED'
    parent: Optional[str] = None
    redirected: bool = False
    failure_details: Optional[str] = None


@dataclass
class LinkCheckSummary:
    scanned_url: str
    total_links: int = 0
    broken: List[LinkResult] = field(default_factory=list)
    redirects: List[LinkResult] = field(default_factory=list)
    skipped: List[LinkResult] = field(default_factory=list)


def is_whitelisted(url: str, whitelist: Iterable[str]) -> bool:
    """True when the URL's host is a whitelisted CDN or one of its subdomains."""
    host = (urlsplit(url).hostname or "").lower()
    return any(host == cdn or host.endswith("." + cdn) for cdn in whitelist)


def is_internal_link(page_url: str, link_url: str) -> bool:
    try:
        page, link = urlsplit(page_url), urlsplit(link_url)
        return (page.scheme, page.hostname, page.port) == (link.scheme, link.hostname, link.port)
    except ValueError:
        return False


def extract_links(soup: BeautifulSoup, base_url: str) -> List[str]:
    """Absolute http(s) URLs of anchors, images, scripts, stylesheets and iframes, deduplicated."""
    candidates = []
    candidates += [a.get("href") for a in soup.find_all("a", href=True)]
    candidates += [el.get("src") for el in soup.find_all(["img", "script", "iframe", "source"], src=True)]
    candidates += [el.get("href") for el in soup.find_all("link", href=True) if "canonical" not in (el.get("rel") or [])]

    seen = set()
    links = []
    for href in candidates:
        href = (href or "").strip()
        if not href or href.startswith("#"):
            continue
        try:
            url, _ = urldefrag(urljoin(base_url, href))
        except ValueError:
            continue
        if urlsplit(url).scheme not in ("http", "https") or url in seen:
            continue
        seen.add(url)
        links.append(url)
    return links


def link_severity(status: int, internal: bool) -> Severity:
    if not internal:
        return Severity.MEDIUM
    if status == 404:
        return Severity.CRITICAL
    if status >= 500:
        return Severity.HIGH
    return Severity.MEDIUM


class LinkChecker:
    """Checks every link on a page; HEAD first, GET when HEAD is refused."""

    def __init__(
        self,
        client: httpx.Client,
        policy: RetryPolicy,
        timeout: float,
        whitelist: Iterable[str] = (),
        concurrency: int = LINK_CONCURRENCY,
    ):
        self.client = client
        self.policy = policy
        self.timeout = timeout
        self.whitelist = list(whitelist)
        self.limiter = ConcurrencyLimiter(concurrency)

    def _request(self, method: str, url: str, follow: bool) -> httpx.Response:
        return call_with_retry(
            lambda: fetch_with_timeout(self.client, url, timeout=self.timeout, method=method, follow_redirects=follow),
            self.policy,
        )

    def check_link(self, url: str, parent: Optional[str] = None) -> LinkResult:
        if is_whitelisted(url, self.whitelist):
            return LinkResult(url=url, status=0, state="SKIPPED", parent=parent)

        try:
            response = self._request("HEAD", url, follow=False)
            if response.status_code in HEAD_REFUSED:
                response = self._request("GET", url, follow=False)

            redirected = response.is_redirect
            if redirected:
                final = self._request("GET", url, follow=True)
                status = final.status_code
            else:
                status = response.status_code
        except (CheckError, httpx.HTTPError) as e:
            return LinkResult(url=url, status=0, state="BROKEN", parent=parent, failure_details=str(e) or type(e).__name__)

        if status >= 400:
            return LinkResult(url=url, status=status, state="BROKEN", parent=parent, redirected=redirected)
        return LinkResult(
            url=url,
            status=response.status_code if redirected else status,
            state="OK",
            parent=parent,
            redirected=redirected,
        )

    def check_page(self, page_url: str, soup: BeautifulSoup) -> LinkCheckSummary:
        links = extract_links(soup, page_url)
        summary = LinkCheckSummary(scanned_url=page_url, total_links=len(links))

        for _, future in self.limiter.map_unordered(lambda link: self.check_link(link, page_url), links):
            result = future.result()
            if result.state == "BROKEN":
                summary.broken.append(result)
            elif result.state == "SKIPPED":
                summary.skipped.append(result)
            elif result.redirected:
                summary.redirects.append(result)

        logger.info(f"Checked {summary.total_links} links on {page_url}: {len(summary.broken)} broken")
        return summary
