"""UrlResult and ResultItem models."""

import uuid
from datetime import datetime

from sqlalchemy import JSON, Boolean, Column, DateTime, Enum, ForeignKey, Index, Integer, Text, Uuid
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import relationship

from release_qa.database import Base
from release_qa.models.enums import Provider, ResultStatus, Severity

JSONType = JSON().with_variant(JSONB(), "postgresql")


class UrlResult(Base):
    """Outcome of one URL (and viewport) within a test run.

    Either ``error`` is set (no findings, no score) or ``score`` is derived
    from the findings.
    """

    __tablename__ = "url_results"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    test_run_id = Column(Uuid, ForeignKey("test_runs.id", ondelete="CASCADE"), nullable=False)
    url = Column(Text, nullable=False)
    viewport = Column(Text)  # 'mobile' | 'desktop', performance only
    score = Column(Integer)
    issue_count = Column(Integer, default=0)
    metrics = Column(JSONType)
    error = Column(Text)
    created_at = Column(DateTime, default=datetime.utcnow)

    test_run = relationship("TestRun", back_populates="url_results")
    items = relationship("ResultItem", back_populates="url_result", cascade="all, delete-orphan")

    __table_args__ = (
        Index("idx_url_results_test_run_id", "test_run_id"),
        Index("idx_url_results_url", "url"),
    )


class ResultItem(Base):
    """A single PASS/FAIL/SKIP finding."""

    __tablename__ = "result_items"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    url_result_id = Column(Uuid, ForeignKey("url_results.id", ondelete="CASCADE"), nullable=False)
    provider = Column(Enum(Provider, native_enum=False, length=32), nullable=False)
    code = Column(Text, nullable=False)
    name = Column(Text, nullable=False)
    status = Column(Enum(ResultStatus, native_enum=False, length=8), nullable=False)
    severity = Column(Enum(Severity, native_enum=False, length=16))  # FAIL only
    meta = Column(JSONType)
    ignored = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    url_result = relationship("UrlResult", back_populates="items")

    __table_args__ = (
        Index("idx_result_items_url_result_id", "url_result_id"),
        Index("idx_result_items_code", "code"),
    )
