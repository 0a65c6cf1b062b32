"""Spelling provider: LanguageTool over each page's visible copy."""

import re
from typing import List, Optional

from release_qa.config import settings
from release_qa.models.enums import Provider, Severity, TestType
from release_qa.providers.base import BaseProvider, RunContext, UrlOutcome, make_skip
from release_qa.providers.page import extract_visible_text, fetch_page
from release_qa.providers.spelling.languagetool import LanguageToolClient, SpellingMatch
from release_qa.schemas.finding import Finding

MIN_WORD_COUNT = 10
CONTEXT_CHARS = 10
PAGE_FETCH_RETRIES = 2

NAME_SUFFIXES = (
    "ify", "ly", "io", "ai", "hub", "lab", "labs", "soft", "tech", "ware",
    "sys", "net", "app", "box", "bit", "kit", "ex", "co",
)
SENTENCE_END = re.compile(r"[.!?]\s*$")
ACRONYM = re.compile(r"^[A-Z0-9]{2,}s?$")
CAPITALIZED = re.compile(r"^[A-Z][a-z]+$")


def match_severity(issue_type: str) -> Severity:
    kind = issue_type.lower()
    if kind == "misspelling":
        return Severity.HIGH
    if kind == "grammar":
        return Severity.CRITICAL
    if kind in ("typographical", "typography"):
        return Severity.LOW
    return Severity.MEDIUM


def is_likely_proper_noun(match: SpellingMatch) -> bool:
    """Guess whether a flagged word is a name, brand or acronym.

    Only looks at spelling mistakes; grammar and style matches are never
    filtered. A capitalized word counts as a name unless it opens a sentence,
    in which case it still counts when it ends in a common brand suffix.
    """
    if match.rule.issue_type.lower() != "misspelling":
        return False
    word = match.word.strip()
    if not word:
        return False
    if ACRONYM.match(word) and any(c.isalpha() for c in word):
        return True
    if word.isalpha() and any(c.isupper() for c in word[1:]) and any(c.islower() for c in word):
        return True
    if not CAPITALIZED.match(word):
        return False

    before = match.context.text[: match.context.offset]
    at_sentence_start = not before.strip() or bool(SENTENCE_END.search(before))
    if not at_sentence_start:
        return True
    return word.lower().endswith(NAME_SUFFIXES)


class SpellingProvider(BaseProvider):
    """Checks visible page text with LanguageTool, minus dictionary words and likely names."""

    test_type = TestType.SPELLING
    provider = Provider.LANGUAGETOOL
    concurrency = settings.SPELLING_CONCURRENCY
    url_limit = settings.SPELLING_URL_LIMIT

    def __init__(self, ctx: RunContext, client: Optional[LanguageToolClient] = None):
        super().__init__(ctx)
        self.client = client or LanguageToolClient(ctx.client, policy=ctx.retry.with_retries(3))
        self.log.info(f"LanguageTool: {self.client.describe()}")

    def check_url(self, url: str) -> List[UrlOutcome]:
        page = fetch_page(self.ctx.client, url, self.ctx.retry.with_retries(PAGE_FETCH_RETRIES), self.ctx.http_timeout)
        text = extract_visible_text(page.html)
        word_count = len(text.split())

        if word_count < MIN_WORD_COUNT:
            self.log.info(f"{url}: only {word_count} words, skipping")
            finding = make_skip(
                "SPELLING_INSUFFICIENT_TEXT",
                "Not enough text to check",
                {"wordCount": word_count, "reason": f"Page has fewer than {MIN_WORD_COUNT} words"},
                provider=self.provider,
            )
            return [UrlOutcome(url=url, findings=[finding], metrics={"wordCount": word_count})]

        result = self.client.check(text)
        matches = [m for m in result.matches if not self.is_filtered(m)]
        dropped = len(result.matches) - len(matches)
        if dropped:
            self.log.info(f"{url}: filtered {dropped} dictionary words and proper nouns")

        findings = [self.match_finding(m, text) for m in matches]
        if not findings:
            findings.append(
                self.make_pass(
                    "SPELLING_CHECK_PASSED",
                    f"No spelling or grammar issues found ({word_count} words)",
                    {"wordCount": word_count},
                )
            )
        return [
            UrlOutcome(
                url=url,
                findings=findings,
                metrics={"wordCount": word_count, "language": result.language_code},
            )
        ]

    def is_filtered(self, match: SpellingMatch) -> bool:
        word = match.word.strip()
        if word and word.lower() in self.ctx.dictionary:
            return True
        return is_likely_proper_noun(match)

    def match_finding(self, match: SpellingMatch, text: str) -> Finding:
        start = max(0, match.offset - CONTEXT_CHARS)
        end = match.offset + match.length + CONTEXT_CHARS
        return self.make_fail(
            f"SPELLING_{match.rule.id}",
            match.short_message or match.message,
            match_severity(match.rule.issue_type),
            {
                "word": match.word,
                "message": match.message,
                "replacements": match.replacements,
                "context": text[start:end],
                "offset": match.offset,
                "length": match.length,
                "ruleId": match.rule.id,
                "ruleDescription": match.rule.description,
                "category": match.rule.category_name,
                "issueType": match.rule.issue_type,
            },
        )
