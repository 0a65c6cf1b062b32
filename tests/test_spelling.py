"""Tests for the LanguageTool client and the spelling provider."""

import uuid
from urllib.parse import parse_qs

import httpx
import pytest

from release_qa.config import settings
from release_qa.exceptions import ConfigurationError, RemoteServiceError
from release_qa.models.enums import Provider, ResultStatus, Severity, TestType
from release_qa.providers.base import RunContext
from release_qa.providers.spelling.languagetool import (
    LanguageToolClient,
    MatchContext,
    MatchRule,
    SpellingMatch,
    parse_languagetool_response,
    split_csv,
)
from release_qa.providers.spelling.provider import SpellingProvider, is_likely_proper_noun, match_severity

PAGE_TEXT = "Welcome to Acme. Our teem builds widgets with Zendesk, kubectl and the iPhone for every customer."
PAGE_HTML = f"<html><body><nav>Home About</nav><main><p>{PAGE_TEXT}</p></main></body></html>"


def lt_match(text, word, issue_type="misspelling", rule_id="MORFOLOGIK_RULE_EN_US"):
    offset = text.index(word)
    return {
        "message": "Possible spelling mistake found.",
        "shortMessage": "Spelling mistake",
        "offset": offset,
        "length": len(word),
        "replacements": [{"value": v} for v in ("team", "teen", "term", "tee", "teems", "tem")],
        "context": {"text": text, "offset": offset, "length": len(word)},
        "sentence": text,
        "rule": {
            "id": rule_id,
            "description": "Possible spelling mistake",
            "issueType": issue_type,
            "category": {"id": "TYPOS", "name": "Possible Typo"},
        },
    }


def make_match(context, word, issue_type="misspelling"):
    offset = context.index(word)
    return SpellingMatch(
        offset=offset,
        length=len(word),
        context=MatchContext(text=context, offset=offset, length=len(word)),
        rule=MatchRule(issue_type=issue_type),
    )


def test_proper_noun_detection():
    assert is_likely_proper_noun(make_match("Built by NASA engineers", "NASA"))
    assert is_likely_proper_noun(make_match("Our APIs are fast", "APIs"))
    assert is_likely_proper_noun(make_match("Buy the iPhone today", "iPhone"))
    assert is_likely_proper_noun(make_match("We use Zendesk for support", "Zendesk"))
    assert not is_likely_proper_noun(make_match("Our teem is great", "teem"))
    assert not is_likely_proper_noun(make_match("Since 2024 we grew", "2024"))


def test_capitalized_word_at_sentence_start():
    """Sentence-initial capitals only count as names with a brand suffix."""
    assert not is_likely_proper_noun(make_match("Zendesk is great.", "Zendesk"))
    assert not is_likely_proper_noun(make_match("It works. Teh rest is easy", "Teh"))
    assert is_likely_proper_noun(make_match("Spotify is great.", "Spotify"))
    assert is_likely_proper_noun(make_match("We shipped! Acmeio is live", "Acmeio"))


def test_grammar_matches_are_never_proper_nouns():
    assert not is_likely_proper_noun(make_match("We use Zendesk for support", "Zendesk", issue_type="grammar"))


def test_match_severity():
    assert match_severity("misspelling") == Severity.HIGH
    assert match_severity("grammar") == Severity.CRITICAL
    assert match_severity("typographical") == Severity.LOW
    assert match_severity("style") == Severity.MEDIUM


def test_parse_response_caps_replacements():
    result = parse_languagetool_response(
        {"matches": [lt_match(PAGE_TEXT, "teem")], "language": {"code": "en-US", "name": "English (US)"}}
    )

    [match] = result.matches
    assert match.word == "teem"
    assert match.replacements == ["team", "teen", "term", "tee", "teems"]
    assert match.rule.category_name == "Possible Typo"
    assert result.language_code == "en-US"


def test_split_csv():
    assert split_csv(" EN_COMPOUNDS, ,UPPERCASE_SENTENCE_START ") == ["EN_COMPOUNDS", "UPPERCASE_SENTENCE_START"]
    assert split_csv(None) == []


def test_client_form_fields(mock_client, no_retry):
    """Self-hosted requests carry no API key; noisy categories are always off."""
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json={"matches": []})

    client = LanguageToolClient(mock_client(handler), policy=no_retry)
    client.check("Some text", disabled_rules=["EN_QUOTES"])

    request = seen[0]
    assert request.method == "POST"
    assert str(request.url) == "http://languagetool.test/v2/check"
    form = parse_qs(request.content.decode())
    assert form["text"] == ["Some text"]
    assert form["language"] == ["auto"]
    assert form["level"] == ["default"]
    assert form["disabledRules"] == ["EN_QUOTES"]
    assert form["disabledCategories"] == ["TYPOGRAPHY,CASING"]
    assert "apiKey" not in form


def test_client_cloud_requires_api_key(mock_client, monkeypatch):
    monkeypatch.setattr(settings, "LANGUAGETOOL_URL", None)
    monkeypatch.setattr(settings, "LANGUAGETOOL_API_KEY", None)

    with pytest.raises(ConfigurationError):
        LanguageToolClient(mock_client(lambda request: httpx.Response(200)))


def test_client_cloud_sends_api_key(mock_client, monkeypatch, no_retry):
    monkeypatch.setattr(settings, "LANGUAGETOOL_URL", None)
    monkeypatch.setattr(settings, "LANGUAGETOOL_API_KEY", "lt-key")
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json={"matches": []})

    client = LanguageToolClient(mock_client(handler), policy=no_retry)
    client.check("Some text")

    assert str(seen[0].url) == "https://api.languagetool.org/v2/check"
    assert parse_qs(seen[0].content.decode())["apiKey"] == ["lt-key"]
    assert client.describe() == "Cloud API, level=default"


def test_client_invalid_json_is_not_retried(mock_client, fast_retry):
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(200, text="<html>proxy error</html>")

    client = LanguageToolClient(mock_client(handler), policy=fast_retry)
    with pytest.raises(RemoteServiceError, match="invalid JSON"):
        client.check("Some text")
    assert len(calls) == 1


def spelling_handler(html, matches):
    def handler(request):
        if request.url.host == "languagetool.test":
            return httpx.Response(200, json={"matches": matches, "language": {"code": "en-US", "name": "English (US)"}})
        return httpx.Response(200, html=html)

    return handler


def make_provider(client, dictionary=()):
    ctx = RunContext(
        run_id=uuid.uuid4(),
        project_id=uuid.uuid4(),
        test_type=TestType.SPELLING,
        client=client,
        dictionary=set(dictionary),
    )
    return SpellingProvider(ctx)


def test_provider_filters_dictionary_and_proper_nouns(mock_client):
    matches = [lt_match(PAGE_TEXT, w) for w in ("teem", "Zendesk", "kubectl", "iPhone")]
    provider = make_provider(mock_client(spelling_handler(PAGE_HTML, matches)), dictionary={"kubectl"})

    [outcome] = provider.check_url("https://a.test/")

    [finding] = outcome.findings
    assert finding.code == "SPELLING_MORFOLOGIK_RULE_EN_US"
    assert finding.provider == Provider.LANGUAGETOOL
    assert finding.status == ResultStatus.FAIL
    assert finding.severity == Severity.HIGH
    assert finding.name == "Spelling mistake"
    assert finding.meta["word"] == "teem"
    assert finding.meta["context"] == "Acme. Our teem builds wi"
    assert finding.meta["issueType"] == "misspelling"
    assert outcome.metrics == {"wordCount": 16, "language": "en-US"}


def test_provider_passes_when_nothing_left(mock_client):
    matches = [lt_match(PAGE_TEXT, "Zendesk")]
    provider = make_provider(mock_client(spelling_handler(PAGE_HTML, matches)))

    [outcome] = provider.check_url("https://a.test/")

    [finding] = outcome.findings
    assert finding.code == "SPELLING_CHECK_PASSED"
    assert finding.status == ResultStatus.PASS
    assert finding.name == "No spelling or grammar issues found (16 words)"


def test_provider_skips_short_pages(mock_client):
    """Fewer than ten words are not sent to LanguageTool."""

    def handler(request):
        if request.url.host == "languagetool.test":
            raise AssertionError("short pages must not be checked")
        return httpx.Response(200, html="<main><h1>Coming soon</h1></main>")

    provider = make_provider(mock_client(handler))
    [outcome] = provider.check_url("https://a.test/")

    [finding] = outcome.findings
    assert finding.code == "SPELLING_INSUFFICIENT_TEXT"
    assert finding.status == ResultStatus.SKIP
    assert finding.severity is None
    assert finding.meta["wordCount"] == 2
