"""Finding schema shared by the rule engine and provider adapters."""

from typing import Any, Dict, Optional

from pydantic import BaseModel, Field, model_validator

from release_qa.models.enums import Provider, ResultStatus, Severity


class Finding(BaseModel):
    """One PASS/FAIL/SKIP determination, before it is persisted as a ResultItem."""

    provider: Provider
    code: str
    name: str
    status: ResultStatus
    severity: Optional[Severity] = None
    meta: Dict[str, Any] = Field(default_factory=dict)
    ignored: bool = False

    @model_validator(mode="after")
    def _severity_only_on_fail(self):
        if self.status != ResultStatus.FAIL:
            self.severity = None
        return self

    @property
    def failed(self) -> bool:
        return self.status == ResultStatus.FAIL
