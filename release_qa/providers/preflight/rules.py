"""HTML rule engine for launch-critical page elements.

Every check takes the parsed document (and the fetched page where headers or
the final URL matter) and returns findings. A check that does not fire emits
an explicit PASS with the evidence it looked at, so the UI can show what
passed as well as what failed.

Severity of each FAIL comes from the rule catalog when it has the code, else
from the default passed at the call site.
"""

import re
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Optional, Set
from urllib.parse import parse_qsl, urlencode, urljoin, urlsplit, urlunsplit

from bs4 import BeautifulSoup, Tag

from release_qa.models.enums import Severity
from release_qa.providers.base import make_fail, make_pass
from release_qa.providers.page import FetchedPage
from release_qa.schemas.finding import Finding
from release_qa.services.rule_catalog import RuleCatalog

# Canonical URLs must not carry these
TRACKING_PARAMS = {
    "utm_source",
    "utm_medium",
    "utm_campaign",
    "utm_term",
    "utm_content",
    "gclid",
    "fbclid",
    "msclkid",
    "dclid",
    "sessionid",
    "session_id",
    "sid",
    "phpsessid",
    "jsessionid",
    "ref",
    "affiliate",
    "source",
    "mc_cid",
    "mc_eid",
}

MULTI_PART_TLDS = {
    "co.uk",
    "org.uk",
    "ac.uk",
    "gov.uk",
    "me.uk",
    "com.au",
    "net.au",
    "org.au",
    "co.nz",
    "org.nz",
    "co.jp",
    "co.kr",
    "co.in",
    "co.za",
    "com.br",
    "com.mx",
    "com.ar",
    "com.cn",
    "com.sg",
    "com.tr",
}

DEFAULT_PORTS = {"http": 80, "https": 443}

TITLE_MIN_LENGTH = 30
TITLE_MAX_LENGTH = 55
META_DESC_MIN_LENGTH = 70
META_DESC_MAX_LENGTH = 155

PLACEHOLDER_PATTERNS = [
    re.compile(r"\blorem ipsum\b", re.IGNORECASE),
    re.compile(r"\bTBD\b"),
    re.compile(r"\bTODO\b"),
    re.compile(r"\[\s*insert[^\]]*\]", re.IGNORECASE),
    re.compile(r"\bplaceholder text\b", re.IGNORECASE),
]
INLINE_STYLE_TAGS = ["p", "span", "div", "h1", "h2", "h3", "h4", "h5", "h6", "li", "a", "td", "strong", "em", "b", "i", "font"]

EXTERNAL_LINK_TARGET = "PREFLIGHT_EXTERNAL_LINK_TARGET"
INLINE_CSS = "PREFLIGHT_INLINE_CSS"
OPTIONAL_RULES = {EXTERNAL_LINK_TARGET, INLINE_CSS}


@dataclass
class FaviconProbe:
    """Outcome of fetching a favicon URL."""

    ok: bool
    status: Optional[int] = None
    content_length: Optional[int] = None
    error: Optional[str] = None


FaviconProber = Callable[[str], FaviconProbe]


def _attr(el: Tag, name: str) -> Optional[str]:
    """Attribute value as a string; bs4 returns lists for rel and class."""
    value = el.get(name)
    if isinstance(value, list):
        return " ".join(value)
    return value


def _text(el: Tag) -> str:
    """Stripped text content of an element."""
    return el.get_text().strip()


def parse_robots_directives(value: str) -> Set[str]:
    """Lowercase directive tokens from a robots header or meta value."""
    return {d.strip() for d in value.lower().split(",") if d.strip()}


def resolve_url(href: str, base: str) -> Optional[str]:
    """Absolute URL for ``href`` against ``base``; None when it has no scheme or host."""
    try:
        resolved = urljoin(base, href.strip())
        parts = urlsplit(resolved)
    except ValueError:
        return None
    if not parts.scheme or not parts.netloc:
        return None
    return resolved


def get_hostname(url: str) -> Optional[str]:
    """Lowercase hostname, or None for an unparsable URL."""
    try:
        host = urlsplit(url).hostname
    except ValueError:
        return None
    return host.lower() if host else None


def get_protocol(url: str) -> Optional[str]:
    """Lowercase scheme, or None."""
    try:
        scheme = urlsplit(url).scheme
    except ValueError:
        return None
    return scheme.lower() or None


def is_http_url(url: str) -> bool:
    """True for a plain ``http:`` URL."""
    try:
        return urlsplit(url.strip()).scheme.lower() == "http"
    except ValueError:
        return url.strip().lower().startswith("http:")


def normalize_url(url: str) -> str:
    """Comparison form: lowercase scheme and host, no default port, no trailing slash, sorted query."""
    try:
        parts = urlsplit(url)
        scheme = parts.scheme.lower()
        host = (parts.hostname or "").lower()
        port = parts.port
    except ValueError:
        return url.lower()

    netloc = host
    if port is not None and DEFAULT_PORTS.get(scheme) != port:
        netloc = f"{host}:{port}"

    path = parts.path or "/"
    if len(path) > 1 and path.endswith("/"):
        path = path[:-1]

    query = urlencode(sorted(parse_qsl(parts.query, keep_blank_values=True), key=lambda kv: kv[0]))
    return urlunsplit((scheme, netloc, path, query, parts.fragment))


def find_tracking_params(url: str) -> List[str]:
    """Query parameter names that are known tracking parameters."""
    try:
        params = parse_qsl(urlsplit(url).query, keep_blank_values=True)
    except ValueError:
        return []
    return [key for key, _ in params if key.lower() in TRACKING_PARAMS]


def get_root_domain(hostname: str) -> str:
    """Registrable domain, e.g. ``shop.example.co.uk`` -> ``example.co.uk``."""
    host = hostname.lower().rstrip(".")
    if host.replace(".", "").isdigit():
        return host
    parts = host.split(".")
    if len(parts) <= 2:
        return host
    if ".".join(parts[-2:]) in MULTI_PART_TLDS:
        return ".".join(parts[-3:])
    return ".".join(parts[-2:])


def _in_nav(el: Tag) -> bool:
    """True when the element sits inside a nav element or navigation role."""
    return el.find_parent(lambda tag: tag.name == "nav" or tag.get("role") == "navigation") is not None


def get_ancestor_path(el: Tag, max_depth: int = 5) -> str:
    """Tag path of up to ``max_depth`` ancestors, for locating an element in reports."""
    ancestors = []
    for parent in el.parents:
        if len(ancestors) >= max_depth:
            break
        if not parent.name or parent.name in ("html", "body", "[document]"):
            break
        ancestors.insert(0, parent.name)
    return " > ".join(ancestors) or "root"


def detect_nav_dropdown(el: Tag) -> Optional[str]:
    """Detection method when a ``href="#"`` anchor is a navigation dropdown trigger, else None."""
    if not _in_nav(el):
        return None

    if el.get("aria-haspopup") == "true" or el.has_attr("aria-expanded"):
        return "aria-attributes"

    parent = el.parent
    if parent is not None and parent.name == "li" and parent.find_all(["ul", "ol"], recursive=False):
        return "nested-list"

    siblings = el.find_previous_siblings() + el.find_next_siblings()
    if any(s.name == "ul" or s.get("role") == "menu" for s in siblings):
        return "sibling-menu"

    return None


# ---------------------------------------------------------------------------
# Headings and viewport
# ---------------------------------------------------------------------------


def check_h1(soup: BeautifulSoup, catalog: RuleCatalog) -> List[Finding]:
    """H1 presence, count and emptiness. A page with no H1 stops after H1_MISSING."""
    h1s = soup.find_all("h1")
    count = len(h1s)

    if count == 0:
        # Nothing left to judge for MULTIPLE or EMPTY
        return [make_fail("PREFLIGHT_H1_MISSING", "No H1 heading found on page", Severity.BLOCKER, catalog, {"h1Count": 0})]

    results = [make_pass("PREFLIGHT_H1_MISSING", "H1 heading present", {"h1Count": count})]

    if count > 1:
        results.append(
            make_fail(
                "PREFLIGHT_H1_MULTIPLE",
                f"Multiple H1 headings found ({count})",
                Severity.CRITICAL,
                catalog,
                {"h1Count": count, "h1Texts": [_text(h)[:50] for h in h1s]},
            )
        )
    else:
        results.append(make_pass("PREFLIGHT_H1_MULTIPLE", "Single H1 heading", {"h1Count": count}))

    empty = [i for i, h in enumerate(h1s) if not _text(h)]
    if empty:
        results.append(
            make_fail(
                "PREFLIGHT_H1_EMPTY",
                "H1 heading is empty or whitespace-only",
                Severity.BLOCKER,
                catalog,
                {"emptyH1Indices": empty},
            )
        )
    else:
        results.append(make_pass("PREFLIGHT_H1_EMPTY", "H1 heading has content", {"h1Text": _text(h1s[0])[:100]}))

    return results


def check_viewport(soup: BeautifulSoup, catalog: RuleCatalog) -> List[Finding]:
    """Viewport meta tag presence."""
    viewport = soup.find("meta", attrs={"name": "viewport"})
    if viewport is None:
        return [
            make_fail(
                "PREFLIGHT_VIEWPORT_MISSING",
                "Viewport meta tag missing",
                Severity.CRITICAL,
                catalog,
                {"reason": "Page not optimized for mobile devices"},
            )
        ]
    return [make_pass("PREFLIGHT_VIEWPORT_MISSING", "Viewport meta tag present", {"content": viewport.get("content", "")})]


# ---------------------------------------------------------------------------
# Indexing
# ---------------------------------------------------------------------------


def detect_indexing_conflict(header: Set[str], meta: Set[str]) -> bool:
    """True when one source allows what the other blocks. Needs directives in both."""
    if not header or not meta:
        return False
    if ("index" in header and "noindex" in meta) or ("noindex" in header and "index" in meta):
        return True
    if ("follow" in header and "nofollow" in meta) or ("nofollow" in header and "follow" in meta):
        return True
    return False


def check_indexing(soup: BeautifulSoup, page: FetchedPage, catalog: RuleCatalog) -> List[Finding]:
    """noindex, nofollow and header/meta conflicts from X-Robots-Tag and the robots meta tag."""
    x_robots = page.headers.get("x-robots-tag", "")
    header = parse_robots_directives(x_robots)
    robots_meta = soup.find("meta", attrs={"name": "robots"})
    meta_robots = robots_meta.get("content", "") if robots_meta else ""
    meta = parse_robots_directives(meta_robots)
    shown = {"xRobotsTag": x_robots or "(not set)", "metaRobots": meta_robots or "(not set)"}

    results = []

    # The header is authoritative for noindex
    if "noindex" in header:
        results.append(
            make_fail(
                "PREFLIGHT_INDEX_NOINDEX_HEADER",
                "Page blocked from indexing via X-Robots-Tag header",
                Severity.BLOCKER,
                catalog,
                {"xRobotsTag": x_robots, "directive": "noindex"},
            )
        )
    else:
        results.append(make_pass("PREFLIGHT_INDEX_NOINDEX_HEADER", "No noindex in HTTP headers", {"xRobotsTag": shown["xRobotsTag"]}))

    source = "header" if "nofollow" in header else "meta" if "nofollow" in meta else None
    if source:
        label = "X-Robots-Tag header" if source == "header" else "meta robots"
        results.append(
            make_fail(
                "PREFLIGHT_INDEX_NOFOLLOW",
                f"Page marked nofollow via {label}",
                Severity.CRITICAL,
                catalog,
                {"source": source, **shown},
            )
        )
    else:
        results.append(make_pass("PREFLIGHT_INDEX_NOFOLLOW", "Page allows link following", shown))

    if detect_indexing_conflict(header, meta):
        results.append(
            make_fail(
                "PREFLIGHT_INDEX_CONFLICT",
                "Conflicting indexing directives between meta and headers",
                Severity.BLOCKER,
                catalog,
                {**shown, "reason": "Meta and header directives contradict each other"},
            )
        )
    else:
        results.append(make_pass("PREFLIGHT_INDEX_CONFLICT", "No conflicting indexing directives", shown))

    return results


# ---------------------------------------------------------------------------
# Canonical
# ---------------------------------------------------------------------------


def check_canonical(soup: BeautifulSoup, page: FetchedPage, catalog: RuleCatalog) -> List[Finding]:
    """Canonical presence and count, then protocol, host, normalized URL and tracking parameters."""
    tags = soup.select('link[rel="canonical"]')
    count = len(tags)

    if count == 0:
        return [
            make_fail(
                "PREFLIGHT_CANONICAL_MISSING",
                "Canonical tag missing",
                Severity.BLOCKER,
                catalog,
                {"reason": "Page may be treated as duplicate or ignored by search engines"},
            )
        ]

    results = [make_pass("PREFLIGHT_CANONICAL_MISSING", "Canonical tag present", {"count": count})]

    if count > 1:
        results.append(
            make_fail(
                "PREFLIGHT_CANONICAL_MULTIPLE",
                f"Multiple canonical tags found ({count})",
                Severity.BLOCKER,
                catalog,
                {"count": count, "hrefs": [t.get("href", "") for t in tags]},
            )
        )
    else:
        results.append(make_pass("PREFLIGHT_CANONICAL_MULTIPLE", "Single canonical tag", {"count": 1}))

    href = (tags[0].get("href") or "").strip()
    if not href:
        results.append(
            make_fail(
                "PREFLIGHT_CANONICAL_MISMATCH",
                "Canonical tag has empty href",
                Severity.BLOCKER,
                catalog,
                {"canonical": "", "pageUrl": page.final_url},
            )
        )
        return results

    canonical = resolve_url(href, page.final_url)
    if canonical is None:
        results.append(
            make_fail(
                "PREFLIGHT_CANONICAL_MISMATCH",
                "Canonical tag has invalid URL",
                Severity.BLOCKER,
                catalog,
                {"canonical": href, "pageUrl": page.final_url},
            )
        )
        return results

    page_protocol = get_protocol(page.final_url)
    canonical_protocol = get_protocol(canonical)
    if page_protocol and canonical_protocol and page_protocol != canonical_protocol:
        results.append(
            make_fail(
                "PREFLIGHT_CANONICAL_PROTOCOL",
                f"Canonical uses {canonical_protocol} but page is {page_protocol}",
                Severity.BLOCKER,
                catalog,
                {"canonicalProtocol": canonical_protocol, "pageProtocol": page_protocol, "canonical": canonical},
            )
        )
    else:
        results.append(make_pass("PREFLIGHT_CANONICAL_PROTOCOL", "Canonical protocol matches page", {"protocol": canonical_protocol}))

    page_host = get_hostname(page.final_url)
    canonical_host = get_hostname(canonical)
    if page_host and canonical_host and page_host != canonical_host:
        results.append(
            make_fail(
                "PREFLIGHT_CANONICAL_HOSTNAME",
                f"Canonical points to different hostname: {canonical_host}",
                Severity.BLOCKER,
                catalog,
                {"canonicalHostname": canonical_host, "pageHostname": page_host, "canonical": canonical},
            )
        )
    else:
        results.append(make_pass("PREFLIGHT_CANONICAL_HOSTNAME", "Canonical hostname matches page", {"hostname": canonical_host}))

    normalized_page = normalize_url(page.final_url)
    normalized_canonical = normalize_url(canonical)
    if normalized_page != normalized_canonical:
        results.append(
            make_fail(
                "PREFLIGHT_CANONICAL_MISMATCH",
                "Canonical points to a different URL",
                Severity.BLOCKER,
                catalog,
                {
                    "canonical": canonical,
                    "pageUrl": page.final_url,
                    "normalizedCanonical": normalized_canonical,
                    "normalizedPage": normalized_page,
                },
            )
        )
    else:
        results.append(make_pass("PREFLIGHT_CANONICAL_MISMATCH", "Canonical matches current page", {"canonical": canonical}))

    tracking = find_tracking_params(canonical)
    if tracking:
        results.append(
            make_fail(
                "PREFLIGHT_CANONICAL_PARAMS",
                f"Canonical contains tracking parameters: {', '.join(tracking)}",
                Severity.CRITICAL,
                catalog,
                {"canonical": canonical, "trackingParams": tracking},
            )
        )
    else:
        results.append(make_pass("PREFLIGHT_CANONICAL_PARAMS", "Canonical has no tracking parameters", {"canonical": canonical}))

    return results


# ---------------------------------------------------------------------------
# Security
# ---------------------------------------------------------------------------


def _mixed_content(soup: BeautifulSoup) -> List[Dict[str, str]]:
    """HTTP sub-resources referenced from the page, excluding the canonical link."""
    found = []
    for el in soup.find_all("script", src=True):
        if is_http_url(el["src"]):
            found.append({"tag": "script", "attr": "src", "url": el["src"]})
    for el in soup.find_all("link", href=True):
        if is_http_url(el["href"]) and _attr(el, "rel") != "canonical":
            found.append({"tag": "link", "attr": "href", "url": el["href"]})
    for el in soup.find_all("img", src=True):
        if is_http_url(el["src"]):
            found.append({"tag": "img", "attr": "src", "url": el["src"]})
    for el in soup.find_all(["video", "audio", "source"], src=True):
        if is_http_url(el["src"]):
            found.append({"tag": el.name, "attr": "src", "url": el["src"]})
    for el in soup.select("object[data], embed[src]"):
        url = el.get("data") or el.get("src") or ""
        if url and is_http_url(url):
            found.append({"tag": el.name, "attr": "data/src", "url": url})
    return found


def check_security(soup: BeautifulSoup, page: FetchedPage, catalog: RuleCatalog) -> List[Finding]:
    """HTTP page, HTTP URLs in canonical and OG tags, mixed content and insecure iframes."""
    results = []
    page_is_http = page.protocol == "http"

    if page_is_http:
        results.append(
            make_fail(
                "PREFLIGHT_SECURITY_HTTP",
                "Page served over insecure HTTP",
                Severity.BLOCKER,
                catalog,
                {"url": page.final_url, "protocol": "http:"},
            )
        )
    else:
        results.append(make_pass("PREFLIGHT_SECURITY_HTTP", "Page served over HTTPS", {"protocol": f"{page.protocol}:"}))

    http_urls = []
    canonical_tag = soup.select_one('link[rel="canonical"]')
    if canonical_tag is not None and canonical_tag.get("href"):
        canonical = resolve_url(canonical_tag["href"], page.final_url)
        if canonical and is_http_url(canonical):
            http_urls.append({"type": "canonical", "url": canonical})
    for prop in ("og:url", "og:image"):
        tag = soup.find("meta", attrs={"property": prop})
        content = tag.get("content") if tag else None
        if content and is_http_url(content):
            http_urls.append({"type": prop, "url": content})

    if http_urls:
        results.append(
            make_fail(
                "PREFLIGHT_SECURITY_HTTP_URLS",
                f"Found {len(http_urls)} HTTP URL(s) in meta tags",
                Severity.BLOCKER,
                catalog,
                {"httpUrls": http_urls},
            )
        )
    else:
        results.append(make_pass("PREFLIGHT_SECURITY_HTTP_URLS", "All meta tag URLs use HTTPS"))

    # Mixed content only exists on HTTPS pages
    mixed = [] if page_is_http else _mixed_content(soup)
    if mixed:
        results.append(
            make_fail(
                "PREFLIGHT_SECURITY_MIXED_CONTENT",
                f"Found {len(mixed)} mixed content resource(s)",
                Severity.CRITICAL,
                catalog,
                {"count": len(mixed), "examples": mixed[:10]},
            )
        )
    else:
        results.append(make_pass("PREFLIGHT_SECURITY_MIXED_CONTENT", "No mixed content detected"))

    iframes = [el["src"] for el in soup.find_all("iframe", src=True) if is_http_url(el["src"])]
    if iframes:
        results.append(
            make_fail(
                "PREFLIGHT_SECURITY_IFRAME",
                f"Found {len(iframes)} insecure iframe(s)",
                Severity.CRITICAL,
                catalog,
                {"count": len(iframes), "iframes": iframes[:5]},
            )
        )
    else:
        results.append(make_pass("PREFLIGHT_SECURITY_IFRAME", "No insecure iframes detected"))

    return results


# ---------------------------------------------------------------------------
# Links and images
# ---------------------------------------------------------------------------


def check_empty_links(soup: BeautifulSoup, catalog: RuleCatalog) -> List[Finding]:
    """Placeholder ``href="#"`` links, minus navigation dropdown triggers."""
    empty_links = []
    excluded = []

    for el in soup.find_all("a", href="#"):
        text = _text(el)[:50] or "(no text)"
        method = detect_nav_dropdown(el)
        if method:
            excluded.append({"text": text, "detectionMethod": method})
        else:
            empty_links.append({"text": text, "ancestorPath": get_ancestor_path(el), "inNav": _in_nav(el)})

    if empty_links:
        return [
            make_fail(
                "PREFLIGHT_EMPTY_LINK",
                f'Found {len(empty_links)} placeholder link(s) with href="#"',
                Severity.BLOCKER,
                catalog,
                {"count": len(empty_links), "examples": empty_links[:10], "excludedNavDropdowns": len(excluded)},
            )
        ]
    return [make_pass("PREFLIGHT_EMPTY_LINK", "No placeholder links detected", {"excludedNavDropdowns": len(excluded)})]


def check_empty_alt(soup: BeautifulSoup, catalog: RuleCatalog) -> List[Finding]:
    """Images whose alt attribute exists but is blank. A missing alt is Lighthouse's concern."""
    images = [{"src": img.get("src") or "(no src)"} for img in soup.find_all("img") if img.has_attr("alt") and not img["alt"].strip()]
    if images:
        return [
            make_fail(
                "EMPTY_ALT_TAG",
                f"Found {len(images)} image(s) with empty alt attribute",
                Severity.HIGH,
                catalog,
                {"count": len(images), "images": images[:10]},
            )
        ]
    return [make_pass("EMPTY_ALT_TAG", "No images with empty alt attributes")]


def check_external_link_target(soup: BeautifulSoup, page: FetchedPage, catalog: RuleCatalog) -> List[Finding]:
    """External links must open in a new browsing context."""
    page_host = get_hostname(page.final_url)
    page_root = get_root_domain(page_host) if page_host else None

    external = 0
    offending = []
    for el in soup.find_all("a", href=True):
        href = el["href"].strip()
        if not href or href.startswith("#") or el.has_attr("download"):
            continue
        if href.lower().startswith(("javascript:", "mailto:", "tel:", "data:")):
            continue
        resolved = resolve_url(href, page.final_url)
        host = get_hostname(resolved) if resolved else None
        if not host or get_root_domain(host) == page_root:
            continue

        external += 1
        target = (el.get("target") or "").strip().lower()
        if not target or target in ("_self", "_parent", "_top"):
            offending.append({"href": resolved, "text": _text(el)[:50] or "(no text)", "target": target or None})

    if offending:
        return [
            make_fail(
                EXTERNAL_LINK_TARGET,
                f"Found {len(offending)} external link(s) that open in the same window",
                Severity.HIGH,
                catalog,
                {"count": len(offending), "externalLinkCount": external, "links": offending},
            )
        ]
    return [make_pass(EXTERNAL_LINK_TARGET, "External links open in a new window", {"externalLinkCount": external})]


# ---------------------------------------------------------------------------
# Title and meta description
# ---------------------------------------------------------------------------


def _check_length(
    value: str,
    minimum: int,
    maximum: int,
    short_code: str,
    long_code: str,
    label: str,
    severity: Severity,
    catalog: RuleCatalog,
) -> List[Finding]:
    """Too-short and too-long findings for a text field; nothing when the field is blank."""
    length = len(value)
    meta = {"length": length, "preview": value[:100], "min": minimum, "max": maximum}

    if length > maximum:
        long_result = make_fail(long_code, f"{label} too long ({length} characters)", severity, catalog, meta)
    else:
        long_result = make_pass(long_code, f"{label} length within limit", meta)

    if length < minimum:
        short_result = make_fail(short_code, f"{label} too short ({length} characters)", severity, catalog, meta)
    else:
        short_result = make_pass(short_code, f"{label} length above minimum", meta)

    return [long_result, short_result]


def check_title_length(soup: BeautifulSoup, catalog: RuleCatalog) -> List[Finding]:
    """Title length against its bounds."""
    tag = soup.find("title")
    title = " ".join(tag.get_text().split()) if tag else ""
    if not title:
        return []
    return _check_length(
        title,
        TITLE_MIN_LENGTH,
        TITLE_MAX_LENGTH,
        "PREFLIGHT_TITLE_TOO_SHORT",
        "PREFLIGHT_TITLE_TOO_LONG",
        "Title",
        Severity.HIGH,
        catalog,
    )


def check_meta_description_length(soup: BeautifulSoup, catalog: RuleCatalog) -> List[Finding]:
    """Meta description length against its bounds."""
    tag = soup.find("meta", attrs={"name": "description"})
    description = " ".join((tag.get("content") or "").split()) if tag else ""
    if not description:
        return []
    return _check_length(
        description,
        META_DESC_MIN_LENGTH,
        META_DESC_MAX_LENGTH,
        "PREFLIGHT_META_DESC_TOO_SHORT",
        "PREFLIGHT_META_DESC_TOO_LONG",
        "Meta description",
        Severity.MEDIUM,
        catalog,
    )


# ---------------------------------------------------------------------------
# Content hygiene
# ---------------------------------------------------------------------------


def check_placeholder_text(soup: BeautifulSoup, catalog: RuleCatalog) -> List[Finding]:
    """Lorem ipsum and other placeholder copy in the visible text."""
    body = soup.body or soup
    for el in body.find_all(["script", "style", "noscript", "template"]):
        el.extract()
    text = " ".join(body.get_text(" ").split())

    matches = []
    for pattern in PLACEHOLDER_PATTERNS:
        for m in pattern.finditer(text):
            start = max(0, m.start() - 30)
            matches.append({"match": m.group(0), "context": text[start : m.end() + 30]})

    if matches:
        return [
            make_fail(
                "PREFLIGHT_PLACEHOLDER_TEXT",
                f"Found {len(matches)} placeholder text occurrence(s)",
                Severity.BLOCKER,
                catalog,
                {"count": len(matches), "examples": matches[:10]},
            )
        ]
    return [make_pass("PREFLIGHT_PLACEHOLDER_TEXT", "No placeholder text detected")]


def check_inline_css(soup: BeautifulSoup, catalog: RuleCatalog) -> List[Finding]:
    """Inline style attributes on content elements."""
    body = soup.body or soup
    styled = [{"tag": el.name, "style": el["style"][:80]} for el in body.find_all(INLINE_STYLE_TAGS, style=True) if el["style"].strip()]
    if styled:
        return [
            make_fail(
                INLINE_CSS,
                f"Found {len(styled)} content element(s) with inline styles",
                Severity.HIGH,
                catalog,
                {"count": len(styled), "examples": styled[:10]},
            )
        ]
    return [make_pass(INLINE_CSS, "No inline styles on content elements")]


# ---------------------------------------------------------------------------
# Favicon
# ---------------------------------------------------------------------------


def check_favicon(soup: BeautifulSoup, page: FetchedPage, catalog: RuleCatalog, probe: FaviconProber) -> List[Finding]:
    """Favicon from a link tag, else ``/favicon.ico`` at the page origin.

    ``probe`` performs the fetch so the rule stays free of HTTP details.
    """
    code = "PREFLIGHT_FAVICON_MISSING"
    tag = soup.select_one('link[rel="icon"], link[rel="shortcut icon"]')

    if tag is not None:
        href = (tag.get("href") or "").strip()
        if not href:
            return [make_fail(code, "Favicon link tag has empty href", Severity.CRITICAL, catalog, {"reason": "tag_empty_href", "checkedUrls": []})]
        if href.startswith("data:"):
            return [make_pass(code, "Favicon found (data URI)", {"source": "data_uri"})]

        favicon_url = resolve_url(href, page.final_url)
        if favicon_url is None:
            return [make_fail(code, "Favicon link tag has invalid URL", Severity.CRITICAL, catalog, {"reason": "tag_invalid_url", "href": href})]

        result = probe(favicon_url)
        if result.ok:
            return [make_pass(code, "Favicon found", {"source": "link_tag", "url": favicon_url, "contentLength": result.content_length})]

        empty = result.content_length == 0
        return [
            make_fail(
                code,
                "Favicon file is empty" if empty else "Favicon URL returns error",
                Severity.CRITICAL,
                catalog,
                {
                    "reason": "tag_empty_file" if empty else "tag_broken",
                    "url": favicon_url,
                    "status": result.status,
                    "contentLength": result.content_length,
                    "error": result.error,
                },
            )
        ]

    parts = urlsplit(page.final_url)
    if not parts.scheme or not parts.netloc:
        return [make_fail(code, "No favicon found", Severity.CRITICAL, catalog, {"reason": "no_tag_invalid_origin"})]
    root_url = f"{parts.scheme}://{parts.netloc}/favicon.ico"

    result = probe(root_url)
    if result.ok:
        return [make_pass(code, "Favicon found at /favicon.ico", {"source": "root_fallback", "url": root_url, "contentLength": result.content_length})]

    empty = result.content_length == 0
    return [
        make_fail(
            code,
            "No favicon found (/favicon.ico is empty)" if empty else "No favicon found",
            Severity.CRITICAL,
            catalog,
            {
                "reason": "no_tag_fallback_empty" if empty else "no_tag_no_fallback",
                "checkedUrls": [root_url],
                "status": result.status,
                "contentLength": result.content_length,
                "error": result.error,
            },
        )
    ]


def run_custom_rules(
    page: FetchedPage,
    catalog: RuleCatalog,
    probe: FaviconProber,
    enabled_optional_rules: Iterable[str] = (),
) -> List[Finding]:
    """Evaluate every rule against one fetched page.

    Optional rules only run when their code is in ``enabled_optional_rules``.
    """
    enabled = set(enabled_optional_rules)
    soup = page.parse()

    results: List[Finding] = []
    results += check_h1(soup, catalog)
    results += check_viewport(soup, catalog)
    results += check_indexing(soup, page, catalog)
    results += check_canonical(soup, page, catalog)
    results += check_security(soup, page, catalog)
    results += check_empty_links(soup, catalog)
    results += check_empty_alt(soup, catalog)
    results += check_title_length(soup, catalog)
    results += check_meta_description_length(soup, catalog)
    if EXTERNAL_LINK_TARGET in enabled:
        results += check_external_link_target(soup, page, catalog)
    if INLINE_CSS in enabled:
        results += check_inline_css(soup, catalog)
    results += check_favicon(soup, page, catalog, probe)
    # Mutates its own copy of the tree, so it runs on a fresh parse
    results += check_placeholder_text(page.parse(), catalog)
    return results
