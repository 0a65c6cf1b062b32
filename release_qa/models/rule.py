"""Rule catalog, ignore list, optional rules and spelling dictionary."""

import uuid
from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, Enum, ForeignKey, Index, Integer, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import relationship

from release_qa.database import Base
from release_qa.models.enums import Provider, Severity


class ReleaseRuleCategory(Base):
    """Display grouping for catalog rules."""

    __tablename__ = "release_rule_categories"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(Text, nullable=False, unique=True)
    description = Column(Text)
    sort_order = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)

    rules = relationship("ReleaseRule", back_populates="category")


class ReleaseRule(Base):
    """Externally managed metadata for a rule code."""

    __tablename__ = "release_rules"

    code = Column(Text, primary_key=True)
    provider = Column(Enum(Provider, native_enum=False, length=32), nullable=False)
    category_id = Column(Uuid, ForeignKey("release_rule_categories.id", ondelete="RESTRICT"))
    name = Column(Text, nullable=False)
    description = Column(Text, nullable=False, default="")
    severity = Column(Enum(Severity, native_enum=False, length=16), nullable=False)
    impact = Column(Text)
    fix = Column(Text)
    doc_url = Column(Text)
    is_active = Column(Boolean, nullable=False, default=True)
    is_optional = Column(Boolean, nullable=False, default=False)
    sort_order = Column(Integer, nullable=False, default=0)

    category = relationship("ReleaseRuleCategory", back_populates="rules")


class IgnoredRule(Base):
    """Suppresses a rule's score contribution for one project URL."""

    __tablename__ = "ignored_rules"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    project_id = Column(Uuid, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False)
    url = Column(Text, nullable=False)
    code = Column(Text, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint("project_id", "url", "code", name="uq_ignored_rules_project_url_code"),
        Index("idx_ignored_rules_project_url", "project_id", "url"),
    )


class ProjectOptionalRule(Base):
    """Per-project toggle for rules flagged optional in the catalog."""

    __tablename__ = "project_optional_rules"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    project_id = Column(Uuid, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False)
    rule_code = Column(Text, nullable=False)
    enabled = Column(Boolean, nullable=False, default=True)

    project = relationship("Project", back_populates="optional_rules")

    __table_args__ = (UniqueConstraint("project_id", "rule_code", name="uq_project_optional_rules"),)


class DictionaryWord(Base):
    """Custom dictionary entry accepted by the spelling check."""

    __tablename__ = "dictionary_words"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    word = Column(Text, nullable=False, unique=True)  # lowercase
    display_word = Column(Text, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)
