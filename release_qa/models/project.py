"""Project, release run and per-run configuration models."""

import uuid
from datetime import datetime

from sqlalchemy import JSON, Column, DateTime, Enum, ForeignKey, Text, Uuid
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import relationship

from release_qa.database import Base
from release_qa.models.enums import TestScope

JSONType = JSON().with_variant(JSONB(), "postgresql")


class Project(Base):
    """A site under release QA."""

    __tablename__ = "projects"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(Text, nullable=False)
    site_url = Column(Text, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    optional_rules = relationship("ProjectOptionalRule", back_populates="project", cascade="all, delete-orphan")


class ReleaseRun(Base):
    """A release grouping several test runs over one URL list."""

    __tablename__ = "release_runs"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    project_id = Column(Uuid, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False)
    name = Column(Text)
    urls = Column(JSONType, nullable=False, default=list)
    selected_tests = Column(JSONType, nullable=False, default=list)
    enabled_optional_rules = Column(JSONType)  # None = fall back to project settings
    created_at = Column(DateTime, default=datetime.utcnow)

    project = relationship("Project")
    test_runs = relationship("TestRun", back_populates="release_run")


class TestRunConfig(Base):
    """Run-scoped URL list."""

    __tablename__ = "test_run_configs"
    __test__ = False

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    test_run_id = Column(Uuid, ForeignKey("test_runs.id", ondelete="CASCADE"), nullable=False, unique=True)
    scope = Column(Enum(TestScope, native_enum=False, length=16), nullable=False, default=TestScope.CUSTOM_URLS)
    urls = Column(JSONType, nullable=False, default=list)

    test_run = relationship("TestRun", back_populates="config")
