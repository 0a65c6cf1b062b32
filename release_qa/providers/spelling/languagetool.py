"""LanguageTool API client (self-hosted or cloud)."""

import logging
from typing import Any, Dict, Iterable, List, Optional

import httpx
from pydantic import BaseModel

from release_qa.config import settings
from release_qa.exceptions import ConfigurationError, RemoteServiceError
from release_qa.services.http import RetryPolicy, call_with_retry, fetch_with_timeout, raise_for_remote_status

logger = logging.getLogger(__name__)

MAX_REPLACEMENTS = 5
# Noisy on web copy, always off
ALWAYS_DISABLED_CATEGORIES = ["TYPOGRAPHY", "CASING"]


class MatchContext(BaseModel):
    text: str = ""
    offset: int = 0
    length: int = 0


class MatchRule(BaseModel):
    id: str = "UNKNOWN"
    description: str = ""
    category_id: str = "UNKNOWN"
    category_name: str = "Unknown"
    issue_type: str = "misspelling"


class SpellingMatch(BaseModel):
    message: str = ""
    short_message: str = ""
    offset: int = 0
    length: int = 0
    replacements: List[str] = []
    context: MatchContext = MatchContext()
    sentence: str = ""
    rule: MatchRule = MatchRule()

    @property
    def word(self) -> str:
        """The flagged text as it appears in the context snippet."""
        return self.context.text[self.context.offset : self.context.offset + self.context.length]


class SpellingCheckResult(BaseModel):
    matches: List[SpellingMatch] = []
    language_code: str = "unknown"
    language_name: str = "Unknown"


def split_csv(value: Optional[str]) -> List[str]:
    return [s.strip() for s in (value or "").split(",") if s.strip()]


def _dedupe(values: Iterable[str]) -> List[str]:
    return list(dict.fromkeys(values))


def parse_languagetool_response(data: Dict[str, Any]) -> SpellingCheckResult:
    matches = []
    for m in data.get("matches") or []:
        rule = m.get("rule") or {}
        category = rule.get("category") or {}
        context = m.get("context") or {}
        matches.append(
            SpellingMatch(
                message=m.get("message") or "",
                short_message=m.get("shortMessage") or "",
                offset=m.get("offset") or 0,
                length=m.get("length") or 0,
                replacements=[r.get("value", "") if isinstance(r, dict) else str(r) for r in (m.get("replacements") or [])[:MAX_REPLACEMENTS]],
                context=MatchContext(
                    text=context.get("text") or "",
                    offset=context.get("offset") or 0,
                    length=context.get("length") or 0,
                ),
                sentence=m.get("sentence") or "",
                rule=MatchRule(
                    id=rule.get("id") or "UNKNOWN",
                    description=rule.get("description") or "",
                    category_id=category.get("id") or "UNKNOWN",
                    category_name=category.get("name") or "Unknown",
                    issue_type=rule.get("issueType") or "misspelling",
                ),
            )
        )
    language = data.get("language") or {}
    return SpellingCheckResult(
        matches=matches,
        language_code=language.get("code") or "unknown",
        language_name=language.get("name") or "Unknown",
    )


class LanguageToolClient:
    """Posts text to ``{base}/check``.

    A self-hosted ``LANGUAGETOOL_URL`` wins over the cloud API; the cloud API
    requires ``LANGUAGETOOL_API_KEY``.
    """

    def __init__(self, http: httpx.Client, policy: Optional[RetryPolicy] = None, timeout: Optional[float] = None):
        self.http = http
        self.self_hosted = bool(settings.LANGUAGETOOL_URL)
        self.base_url = (settings.LANGUAGETOOL_URL or settings.LANGUAGETOOL_CLOUD_URL).rstrip("/")
        self.api_key = settings.LANGUAGETOOL_API_KEY
        self.level = "picky" if settings.LANGUAGETOOL_LEVEL == "picky" else "default"
        self.disabled_rules = split_csv(settings.LANGUAGETOOL_DISABLED_RULES)
        self.disabled_categories = split_csv(settings.LANGUAGETOOL_DISABLED_CATEGORIES)
        self.policy = policy or RetryPolicy.from_settings(3)
        self.timeout = timeout or settings.HTTP_TIMEOUT

        if not self.self_hosted and not self.api_key:
            raise ConfigurationError(
                "LanguageTool not configured. Set LANGUAGETOOL_URL for self-hosted or LANGUAGETOOL_API_KEY for cloud API."
            )

    def describe(self) -> str:
        where = f"Self-hosted at {self.base_url}" if self.self_hosted else "Cloud API"
        return f"{where}, level={self.level}"

    def check(
        self,
        text: str,
        language: str = "auto",
        disabled_rules: Iterable[str] = (),
        disabled_categories: Iterable[str] = (),
    ) -> SpellingCheckResult:
        form = {"text": text, "language": language, "level": self.level}
        if self.api_key and not self.self_hosted:
            form["apiKey"] = self.api_key

        rules = _dedupe([*self.disabled_rules, *disabled_rules])
        if rules:
            form["disabledRules"] = ",".join(rules)
        categories = _dedupe([*self.disabled_categories, *ALWAYS_DISABLED_CATEGORIES, *disabled_categories])
        if categories:
            form["disabledCategories"] = ",".join(categories)

        def _request() -> Dict[str, Any]:
            response = fetch_with_timeout(
                self.http,
                f"{self.base_url}/check",
                timeout=self.timeout,
                method="POST",
                data=form,
                headers={"Accept": "application/json"},
            )
            raise_for_remote_status(response, "LanguageTool API")
            try:
                return response.json()
            except ValueError as e:
                raise RemoteServiceError(f"LanguageTool API returned invalid JSON: {e}", retryable=False) from e

        return parse_languagetool_response(call_with_retry(_request, self.policy))
