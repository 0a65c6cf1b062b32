"""Enumerations shared by models, providers and scoring."""

import enum


class TestType(str, enum.Enum):
    """Check type executed by a test run."""

    __test__ = False

    PAGE_PREFLIGHT = "PAGE_PREFLIGHT"
    PERFORMANCE = "PERFORMANCE"
    SCREENSHOTS = "SCREENSHOTS"
    SPELLING = "SPELLING"
    SITE_AUDIT = "SITE_AUDIT"


class TestStatus(str, enum.Enum):
    """Lifecycle: QUEUED -> RUNNING -> SUCCESS | FAILED | PARTIAL."""

    __test__ = False

    QUEUED = "QUEUED"
    RUNNING = "RUNNING"
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"
    PARTIAL = "PARTIAL"


TERMINAL_STATUSES = (TestStatus.SUCCESS, TestStatus.FAILED, TestStatus.PARTIAL)


class ResultStatus(str, enum.Enum):
    PASS = "PASS"
    FAIL = "FAIL"
    SKIP = "SKIP"


class Severity(str, enum.Enum):
    INFO = "INFO"
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"
    BLOCKER = "BLOCKER"


class Provider(str, enum.Enum):
    """Source of a finding."""

    RELEASE_QA = "RELEASE_QA"
    LIGHTHOUSE = "LIGHTHOUSE"
    LINK_CHECKER = "LINK_CHECKER"
    LANGUAGETOOL = "LANGUAGETOOL"
    SE_RANKING = "SE_RANKING"
    INTERNAL = "INTERNAL"


class TestScope(str, enum.Enum):
    __test__ = False

    SINGLE_URL = "SINGLE_URL"
    CUSTOM_URLS = "CUSTOM_URLS"
    SITEMAP = "SITEMAP"
