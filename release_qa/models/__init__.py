"""SQLAlchemy ORM models."""

from release_qa.models.enums import Provider, ResultStatus, Severity, TestScope, TestStatus, TestType
from release_qa.models.project import Project, ReleaseRun, TestRunConfig
from release_qa.models.result import ResultItem, UrlResult
from release_qa.models.rule import (
    DictionaryWord,
    IgnoredRule,
    ProjectOptionalRule,
    ReleaseRule,
    ReleaseRuleCategory,
)
from release_qa.models.test_run import TestRun

__all__ = [
    "Provider",
    "ResultStatus",
    "Severity",
    "TestScope",
    "TestStatus",
    "TestType",
    "Project",
    "ReleaseRun",
    "TestRunConfig",
    "TestRun",
    "UrlResult",
    "ResultItem",
    "ReleaseRuleCategory",
    "ReleaseRule",
    "IgnoredRule",
    "ProjectOptionalRule",
    "DictionaryWord",
]
