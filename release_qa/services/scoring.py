"""Severity-weighted scoring for findings, URLs, test runs and releases."""

import math
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence

from release_qa.config import settings
from release_qa.models.enums import ResultStatus, Severity, TestStatus, TestType

MAX_SCORE = 100

# Test types that contribute to the release score
SCORED_TEST_TYPES = (TestType.PAGE_PREFLIGHT, TestType.PERFORMANCE, TestType.SPELLING)


@dataclass(frozen=True)
class ScoringConfig:
    """Penalty table and pass threshold for one run."""

    penalties: Dict[str, int] = field(default_factory=lambda: dict(settings.SEVERITY_PENALTIES))
    pass_threshold: int = settings.PASS_THRESHOLD

    @classmethod
    def from_settings(cls) -> "ScoringConfig":
        return cls(penalties=dict(settings.SEVERITY_PENALTIES), pass_threshold=settings.PASS_THRESHOLD)

    def penalty_for(self, severity) -> int:
        key = severity.value if isinstance(severity, Severity) else str(severity)
        return self.penalties.get(key, 0)


@dataclass
class ReleaseScore:
    score: Optional[int]
    status: str  # 'Pass' | 'Fail' | 'Incomplete'


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def calculate_score(findings: Iterable, config: Optional[ScoringConfig] = None) -> int:
    """Score findings from 100 down by severity penalty.

    Only FAIL findings that are not ignored and carry a severity count.
    Works on Finding schemas and ResultItem rows alike.

    Returns:
        Integer score clamped to [0, 100]
    """
    config = config or ScoringConfig.from_settings()
    score = float(MAX_SCORE)
    for finding in findings:
        if finding.status != ResultStatus.FAIL or finding.ignored or finding.severity is None:
            continue
        score -= config.penalty_for(finding.severity)
    return round_half_up(max(0.0, min(float(MAX_SCORE), score)))


def is_passing(score: Optional[int], config: Optional[ScoringConfig] = None) -> bool:
    if score is None:
        return False
    config = config or ScoringConfig.from_settings()
    return score >= config.pass_threshold


def score_status(score: Optional[int], config: Optional[ScoringConfig] = None) -> ResultStatus:
    return ResultStatus.PASS if is_passing(score, config) else ResultStatus.FAIL


def aggregate_scores(scores: Iterable[Optional[int]]) -> int:
    """Mean of the non-null scores, rounded; 0 when there are none."""
    valid = [s for s in scores if s is not None]
    if not valid:
        return 0
    return round_half_up(sum(valid) / len(valid))


def severity_order(config: Optional[ScoringConfig] = None) -> List[Severity]:
    """Severities from most to least penalised."""
    config = config or ScoringConfig.from_settings()
    ranked = list(Severity)
    return sorted(ranked, key=lambda s: (-config.penalty_for(s), -ranked.index(s)))


def calculate_release_score(
    test_runs: Sequence,
    selected_tests: Optional[Sequence[str]] = None,
    config: Optional[ScoringConfig] = None,
) -> Optional[ReleaseScore]:
    """Combine the scored test runs of a release.

    Any FAILED scored run makes the release Incomplete with no score. Returns
    None when no scored run has completed yet.
    """
    config = config or ScoringConfig.from_settings()
    scored_types = set(SCORED_TEST_TYPES)
    if selected_tests is not None:
        scored_types &= {TestType(t) for t in selected_tests if t in TestType.__members__}

    runs = [r for r in test_runs if r.type in scored_types]
    if any(r.status == TestStatus.FAILED for r in runs):
        return ReleaseScore(score=None, status="Incomplete")

    completed = [r.score for r in runs if r.status == TestStatus.SUCCESS and r.score is not None]
    if not completed:
        return None

    score = round_half_up(sum(completed) / len(completed))
    return ReleaseScore(score=score, status="Pass" if is_passing(score, config) else "Fail")
