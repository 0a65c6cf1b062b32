"""In-memory snapshot of the release rule catalog."""

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, Optional, Set

from sqlalchemy.orm import Session

from release_qa.models.enums import Severity
from release_qa.models.rule import ReleaseRule

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RuleMeta:
    """Catalog metadata for one rule code."""

    code: str
    name: str
    severity: Severity
    description: str = ""
    impact: Optional[str] = None
    fix: Optional[str] = None
    doc_url: Optional[str] = None
    category: Optional[str] = None
    is_optional: bool = False


class RuleCatalog:
    """Rule metadata keyed by code, read-only for the lifetime of a run."""

    def __init__(self, rules: Optional[Iterable[RuleMeta]] = None):
        self._rules: Dict[str, RuleMeta] = {r.code: r for r in (rules or [])}

    @classmethod
    def load(cls, db: Session) -> "RuleCatalog":
        """Snapshot of every active rule."""
        rows = db.query(ReleaseRule).filter(ReleaseRule.is_active.is_(True)).all()
        catalog = cls(
            RuleMeta(
                code=row.code,
                name=row.name,
                severity=Severity(row.severity),
                description=row.description or "",
                impact=row.impact,
                fix=row.fix,
                doc_url=row.doc_url,
                category=row.category.name if row.category else None,
                is_optional=bool(row.is_optional),
            )
            for row in rows
        )
        logger.info(f"Loaded {len(catalog)} release rules")
        return catalog

    def __len__(self) -> int:
        return len(self._rules)

    def __contains__(self, code: str) -> bool:
        return code in self._rules

    def get(self, code: str) -> Optional[RuleMeta]:
        """Metadata for ``code``, or None when it is not in the catalog."""
        return self._rules.get(code)

    def severity_for(self, code: str, default: Severity) -> Severity:
        """Catalog severity for ``code``, else the rule's own default."""
        rule = self._rules.get(code)
        return rule.severity if rule else default

    def name_for(self, code: str, default: str) -> str:
        """Catalog name for ``code``, else ``default``."""
        rule = self._rules.get(code)
        return rule.name if rule else default

    def optional_codes(self) -> Set[str]:
        """Codes of the rules projects can switch on."""
        return {code for code, rule in self._rules.items() if rule.is_optional}
