"""Seed the release rule catalog.

Upserts categories by name and rules by code, so it can be re-run after
editing the tables below.
"""

import logging
from typing import List, NamedTuple, Optional

from sqlalchemy.orm import Session

from release_qa.database import SessionLocal
from release_qa.models.enums import Provider, Severity
from release_qa.models.rule import ReleaseRule, ReleaseRuleCategory

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

logger = logging.getLogger(__name__)

LIGHTHOUSE_DOCS = "https://developer.chrome.com/docs/lighthouse/seo/"

CATEGORIES = [
    ("Heading Structure", 10),
    ("Indexing & Crawl Control", 30),
    ("Canonical", 40),
    ("Security & Protocol", 50),
    ("Links", 60),
    ("Site Resources", 65),
    ("SEO Essentials", 70),
    ("Crawlability", 80),
    ("Internationalization", 100),
    ("Mobile Usability", 110),
    ("Performance", 120),
    ("Site Audit", 130),
]


class RuleSeed(NamedTuple):
    code: str
    provider: Provider
    category: str
    name: str
    severity: Severity
    description: str
    fix: Optional[str] = None
    doc_url: Optional[str] = None
    is_optional: bool = False


def _seo(audit_id: str, category: str, name: str, severity: Severity, description: str, fix: str) -> RuleSeed:
    code = "SEO_" + audit_id.upper().replace("-", "_")
    return RuleSeed(code, Provider.LIGHTHOUSE, category, name, severity, description, fix, f"{LIGHTHOUSE_DOCS}{audit_id}/")


RQA = Provider.RELEASE_QA

RULES: List[RuleSeed] = [
    RuleSeed("PREFLIGHT_H1_MISSING", RQA, "Heading Structure", "Missing H1 Heading", Severity.BLOCKER,
             "No H1 heading element found on the page.",
             "Add a single descriptive H1 heading that summarizes the page."),
    RuleSeed("PREFLIGHT_H1_MULTIPLE", RQA, "Heading Structure", "Multiple H1 Headings", Severity.HIGH,
             "More than one H1 heading element found on the page.",
             "Keep one H1 per page and demote the others to H2 or lower."),
    RuleSeed("PREFLIGHT_H1_EMPTY", RQA, "Heading Structure", "Empty H1 Heading", Severity.BLOCKER,
             "An H1 element contains no text.",
             "Give the H1 meaningful text."),
    RuleSeed("PREFLIGHT_VIEWPORT_MISSING", RQA, "Mobile Usability", "Missing Viewport Meta Tag", Severity.CRITICAL,
             "No viewport meta tag found in the page head.",
             'Add <meta name="viewport" content="width=device-width, initial-scale=1">.'),
    RuleSeed("PREFLIGHT_INDEX_NOINDEX_HEADER", RQA, "Indexing & Crawl Control", "Noindex HTTP Header", Severity.BLOCKER,
             "The X-Robots-Tag response header marks the page noindex.",
             "Remove noindex from the X-Robots-Tag header if the page should be indexed."),
    RuleSeed("PREFLIGHT_INDEX_NOFOLLOW", RQA, "Indexing & Crawl Control", "Nofollow Directive", Severity.CRITICAL,
             "The meta robots tag or X-Robots-Tag header marks the page nofollow.",
             "Remove nofollow if links on the page should be followed."),
    RuleSeed("PREFLIGHT_INDEX_CONFLICT", RQA, "Indexing & Crawl Control", "Conflicting Index Directives", Severity.BLOCKER,
             "Meta robots and X-Robots-Tag disagree.",
             "Make the meta tag and the header specify the same directives."),
    RuleSeed("PREFLIGHT_CANONICAL_MISSING", RQA, "Canonical", "Missing Canonical Tag", Severity.CRITICAL,
             "No canonical link element found in the page head.",
             'Add <link rel="canonical" href="..."> pointing to the preferred URL.'),
    RuleSeed("PREFLIGHT_CANONICAL_MULTIPLE", RQA, "Canonical", "Multiple Canonical Tags", Severity.BLOCKER,
             "More than one canonical link element found.",
             "Keep exactly one canonical tag."),
    RuleSeed("PREFLIGHT_CANONICAL_MISMATCH", RQA, "Canonical", "Canonical URL Mismatch", Severity.CRITICAL,
             "The canonical tag points to a different URL than the page.",
             "Point the canonical at this page, or redirect to the canonical URL."),
    RuleSeed("PREFLIGHT_CANONICAL_PROTOCOL", RQA, "Canonical", "Canonical Protocol Mismatch", Severity.BLOCKER,
             "The canonical URL uses a different protocol than the page.",
             "Use the page's protocol in the canonical URL, preferably HTTPS."),
    RuleSeed("PREFLIGHT_CANONICAL_HOSTNAME", RQA, "Canonical", "Canonical Hostname Mismatch", Severity.CRITICAL,
             "The canonical tag points to a different hostname.",
             "Use this site's hostname in the canonical URL."),
    RuleSeed("PREFLIGHT_CANONICAL_PARAMS", RQA, "Canonical", "Canonical Has Tracking Parameters", Severity.CRITICAL,
             "The canonical URL contains tracking or session parameters.",
             "Remove utm_*, gclid, fbclid and session parameters from the canonical URL."),
    RuleSeed("PREFLIGHT_SECURITY_HTTP", RQA, "Security & Protocol", "Page Served Over HTTP", Severity.BLOCKER,
             "The page is served over HTTP instead of HTTPS.",
             "Serve the page over HTTPS and redirect HTTP to HTTPS."),
    RuleSeed("PREFLIGHT_SECURITY_HTTP_URLS", RQA, "Security & Protocol", "HTTP URLs in Meta Tags", Severity.BLOCKER,
             "Canonical or Open Graph URLs use HTTP.",
             "Switch canonical and og: URLs to HTTPS."),
    RuleSeed("PREFLIGHT_SECURITY_MIXED_CONTENT", RQA, "Security & Protocol", "Mixed Content Detected", Severity.CRITICAL,
             "An HTTPS page loads scripts, images or other resources over HTTP.",
             "Load every resource over HTTPS."),
    RuleSeed("PREFLIGHT_SECURITY_IFRAME", RQA, "Security & Protocol", "Insecure Iframe Embed", Severity.CRITICAL,
             "The page embeds iframes with HTTP sources.",
             "Use HTTPS iframe sources."),
    RuleSeed("PREFLIGHT_EMPTY_LINK", RQA, "Links", "Placeholder Link", Severity.BLOCKER,
             'A link has href="#", which usually means an unfinished link.',
             'Replace href="#" with a real URL or remove the link.'),
    RuleSeed("EMPTY_ALT_TAG", RQA, "SEO Essentials", "Empty Alt Attribute", Severity.HIGH,
             "An image has an alt attribute that is empty or whitespace.",
             "Write descriptive alt text, or move decorative images to CSS."),
    RuleSeed("PREFLIGHT_FAVICON_MISSING", RQA, "Site Resources", "Missing Favicon", Severity.CRITICAL,
             "No working favicon found in link tags or at /favicon.ico.",
             'Add <link rel="icon" href="/favicon.ico"> or serve /favicon.ico from the site root.'),
    RuleSeed("PREFLIGHT_TITLE_TOO_LONG", RQA, "Site Resources", "Title Too Long", Severity.HIGH,
             "The page title is longer than 55 characters.",
             "Shorten the title to 55 characters or less."),
    RuleSeed("PREFLIGHT_TITLE_TOO_SHORT", RQA, "Site Resources", "Title Too Short", Severity.HIGH,
             "The page title is shorter than 30 characters.",
             "Expand the title to at least 30 characters."),
    RuleSeed("PREFLIGHT_META_DESC_TOO_LONG", RQA, "Site Resources", "Meta Description Too Long", Severity.MEDIUM,
             "The meta description is longer than 155 characters.",
             "Shorten the meta description to 155 characters or less."),
    RuleSeed("PREFLIGHT_META_DESC_TOO_SHORT", RQA, "Site Resources", "Meta Description Too Short", Severity.MEDIUM,
             "The meta description is shorter than 70 characters.",
             "Expand the meta description to at least 70 characters."),
    RuleSeed("PREFLIGHT_EXTERNAL_LINK_TARGET", RQA, "Links", "External Links Open in New Window", Severity.HIGH,
             "External links should open in a new tab.",
             'Add target="_blank" and rel="noopener" to external links.', is_optional=True),
    RuleSeed("PREFLIGHT_INLINE_CSS", RQA, "Site Resources", "Inline Styles Detected", Severity.HIGH,
             "Content elements carry inline style attributes, usually pasted from a word processor.",
             "Remove inline styles and use CSS classes; paste copy as plain text.", is_optional=True),
    RuleSeed("PREFLIGHT_PLACEHOLDER_TEXT", RQA, "Site Resources", "Placeholder Text Detected", Severity.BLOCKER,
             "The page contains lorem ipsum, TBD, TODO or other placeholder text.",
             "Replace all placeholder text with real content before publishing."),
    # Link checker
    RuleSeed("LINK_CHECK_PASSED", Provider.LINK_CHECKER, "Links", "Links Valid", Severity.LOW,
             "All links on the page are reachable."),
    RuleSeed("BROKEN_INTERNAL_LINK", Provider.LINK_CHECKER, "Links", "Broken Internal Link", Severity.BLOCKER,
             "An internal link returns a 4xx or 5xx status.",
             "Fix or remove the link and check that the target page exists."),
    RuleSeed("BROKEN_EXTERNAL_LINK", Provider.LINK_CHECKER, "Links", "Broken External Link", Severity.MEDIUM,
             "An external link returns a 4xx or 5xx status.",
             "Update or remove the link."),
    RuleSeed("REDIRECT_CHAIN", Provider.LINK_CHECKER, "Links", "Redirect Chain", Severity.LOW,
             "An internal link redirects before reaching its destination.",
             "Link directly to the final URL."),
    # Lighthouse SEO audits
    _seo("document-title", "SEO Essentials", "Document Title", Severity.CRITICAL,
         "Document has a <title> element.", "Add a descriptive <title> to the page head."),
    _seo("meta-description", "SEO Essentials", "Meta Description", Severity.HIGH,
         "Document has a meta description.", 'Add <meta name="description" content="...">.'),
    _seo("http-status-code", "SEO Essentials", "HTTP Status Code", Severity.BLOCKER,
         "Page has a successful HTTP status code.", "Return a 2xx status for valid pages."),
    _seo("link-text", "SEO Essentials", "Descriptive Link Text", Severity.MEDIUM,
         "Links have descriptive text.", "Use anchor text that describes the destination."),
    _seo("crawlable-anchors", "Crawlability", "Crawlable Links", Severity.HIGH,
         "Links are crawlable.", 'Use standard <a href="..."> elements with valid URLs.'),
    _seo("is-crawlable", "Crawlability", "Page is Crawlable", Severity.BLOCKER,
         "Page is not blocked from indexing.", "Remove noindex directives if the page should be indexed."),
    _seo("robots-txt", "Crawlability", "Valid robots.txt", Severity.HIGH,
         "robots.txt is valid.", "Validate robots.txt and allow the paths you want crawled."),
    _seo("image-alt", "SEO Essentials", "Image Alt Text", Severity.HIGH,
         "Image elements have alt attributes.", "Add descriptive alt attributes to images."),
    _seo("hreflang", "Internationalization", "Valid hreflang", Severity.MEDIUM,
         "Document has a valid hreflang.", "Use valid language codes and correct URLs in hreflang tags."),
    _seo("canonical", "Canonical", "Valid Canonical", Severity.HIGH,
         "Document has a valid rel=canonical.", 'Add a valid <link rel="canonical" href="...">.'),
    _seo("font-size", "Mobile Usability", "Legible Font Sizes", Severity.HIGH,
         "Document uses legible font sizes.", "Use a base font size of at least 16px."),
    _seo("tap-targets", "Mobile Usability", "Tap Targets Sized", Severity.HIGH,
         "Tap targets are sized appropriately.", "Make buttons and links at least 48x48 pixels."),
    _seo("structured-data", "SEO Essentials", "Valid Structured Data", Severity.MEDIUM,
         "Structured data is valid.", "Validate JSON-LD or Schema.org markup."),
    RuleSeed("SEO_AUDIT_PASSED", Provider.LIGHTHOUSE, "SEO Essentials", "Lighthouse SEO Audits Passed", Severity.LOW,
             "Lighthouse reported no scored SEO audits needing attention."),
    # Performance and site audit summaries
    RuleSeed("CWV_CHECK_PASSED", Provider.LIGHTHOUSE, "Performance", "Core Web Vitals Passed", Severity.LOW,
             "No Core Web Vitals issues were reported for the viewport."),
    RuleSeed("SITE_AUDIT_PASSED", Provider.SE_RANKING, "Site Audit", "Site Audit Passed", Severity.LOW,
             "The site crawl reported no issues."),
]


def seed_categories(db: Session) -> dict:
    """Upsert categories; returns name -> id."""
    ids = {}
    for name, sort_order in CATEGORIES:
        category = db.query(ReleaseRuleCategory).filter(ReleaseRuleCategory.name == name).first()
        if category is None:
            category = ReleaseRuleCategory(name=name)
            db.add(category)
        category.sort_order = sort_order
        db.flush()
        ids[name] = category.id
    return ids


def seed_rules(db: Session) -> int:
    category_ids = seed_categories(db)

    for sort_order, seed in enumerate(RULES, start=1):
        rule = db.query(ReleaseRule).filter(ReleaseRule.code == seed.code).first()
        if rule is None:
            rule = ReleaseRule(code=seed.code)
            db.add(rule)
        rule.provider = seed.provider
        rule.category_id = category_ids[seed.category]
        rule.name = seed.name
        rule.description = seed.description
        rule.severity = seed.severity
        rule.fix = seed.fix
        rule.doc_url = seed.doc_url
        rule.is_optional = seed.is_optional
        rule.sort_order = sort_order

    db.commit()
    logger.info(f"Seeded {len(CATEGORIES)} categories and {len(RULES)} rules")
    return len(RULES)


def main():
    """Entry point for the catalog seed command."""
    db = SessionLocal()
    try:
        seed_rules(db)
    finally:
        db.close()


if __name__ == "__main__":
    main()
