"""Tests for the page preflight provider: favicon probing and Lighthouse SEO findings."""

import uuid

import httpx

from release_qa.models.enums import Provider, ResultStatus, Severity, TestType
from release_qa.providers.base import RunContext
from release_qa.providers.pagespeed.client import PageSpeedResult, SeoAudit
from release_qa.providers.preflight.provider import PreflightProvider, seo_audit_code

FAVICON_URL = "https://a.test/favicon.ico"


def make_provider(client):
    ctx = RunContext(run_id=uuid.uuid4(), project_id=uuid.uuid4(), test_type=TestType.PAGE_PREFLIGHT, client=client)
    return PreflightProvider(ctx)


def test_favicon_zero_content_length_fails(mock_client):
    provider = make_provider(mock_client(lambda request: httpx.Response(200, headers={"Content-Length": "0"})))

    probe = provider.probe_favicon(FAVICON_URL)

    assert not probe.ok
    assert probe.status == 200
    assert probe.content_length == 0
    assert probe.error == "Empty file (Content-Length: 0)"


def test_favicon_content_length_decides_without_reading_body(mock_client):
    """A non-zero Content-Length passes; the body is never consumed."""
    consumed = []

    def body():
        consumed.append(True)
        yield b"\x00\x00\x01\x00"

    def handler(request):
        return httpx.Response(200, headers={"Content-Length": "318"}, content=body())

    probe = make_provider(mock_client(handler)).probe_favicon(FAVICON_URL)

    assert probe.ok
    assert probe.content_length == 318
    assert consumed == []


def test_favicon_without_content_length_reads_body(mock_client):
    """Chunked responses are judged by their body."""

    def empty():
        yield from ()

    provider = make_provider(mock_client(lambda request: httpx.Response(200, content=empty())))
    probe = provider.probe_favicon(FAVICON_URL)

    assert not probe.ok
    assert probe.content_length == 0
    assert probe.error == "Empty file (0 bytes)"

    def icon():
        yield b"\x00\x00"
        yield b"\x01\x00"

    provider = make_provider(mock_client(lambda request: httpx.Response(200, content=icon())))
    probe = provider.probe_favicon(FAVICON_URL)

    assert probe.ok
    assert probe.content_length == 4


def test_favicon_not_found_fails(mock_client):
    provider = make_provider(mock_client(lambda request: httpx.Response(404)))

    probe = provider.probe_favicon(FAVICON_URL)

    assert not probe.ok
    assert probe.status == 404


def test_favicon_network_error_fails(mock_client):
    def handler(request):
        raise httpx.ConnectError("Connection refused", request=request)

    probe = make_provider(mock_client(handler)).probe_favicon(FAVICON_URL)

    assert not probe.ok
    assert probe.status is None
    assert probe.error == "Connection refused"


def test_seo_audit_code():
    assert seo_audit_code("is-crawlable") == "SEO_IS_CRAWLABLE"


def test_seo_findings_map_scored_audits(mock_client):
    provider = make_provider(mock_client(lambda request: httpx.Response(200)))
    result = PageSpeedResult(
        seo_score=82,
        seo_audits=[
            SeoAudit(id="document-title", title="Document has a <title> element", score=1),
            SeoAudit(id="is-crawlable", title="Page is blocked from indexing", score=0),
            SeoAudit(id="hreflang", title="Document has a valid hreflang", score=None),
        ],
    )

    findings = {f.code: f for f in provider.seo_findings(result)}

    assert set(findings) == {"SEO_DOCUMENT_TITLE", "SEO_IS_CRAWLABLE"}
    assert findings["SEO_DOCUMENT_TITLE"].status == ResultStatus.PASS
    assert findings["SEO_IS_CRAWLABLE"].severity == Severity.CRITICAL
    assert all(f.provider == Provider.LIGHTHOUSE for f in findings.values())


def test_seo_findings_without_scored_audits_emit_pass_summary(mock_client):
    provider = make_provider(mock_client(lambda request: httpx.Response(200)))
    result = PageSpeedResult(
        seo_score=100,
        seo_audits=[SeoAudit(id="hreflang", title="Document has a valid hreflang", score=None)],
    )

    [finding] = provider.seo_findings(result)

    assert finding.code == "SEO_AUDIT_PASSED"
    assert finding.status == ResultStatus.PASS
    assert finding.provider == Provider.LIGHTHOUSE
    assert finding.meta == {"seoScore": 100, "auditsReturned": 1}
