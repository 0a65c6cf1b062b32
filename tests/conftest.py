"""Pytest configuration and fixtures."""

import os

# Settings are read at import time
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["RETRY_INITIAL_DELAY"] = "0"
os.environ["RETRY_JITTER"] = "0"
os.environ["PAGE_SPEED_API_KEY"] = ""
os.environ["LANGUAGETOOL_URL"] = "http://languagetool.test/v2"
os.environ["EMBEDDED_WORKER"] = "false"

import uuid  # noqa: E402
from datetime import datetime  # noqa: E402

import httpx  # noqa: E402
import pytest  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from release_qa import models  # noqa: E402,F401
from release_qa.database import Base  # noqa: E402
from release_qa.models import Project, ReleaseRun, TestRun, TestRunConfig  # noqa: E402
from release_qa.models.enums import TestStatus, TestType  # noqa: E402
from release_qa.services.http import RetryPolicy  # noqa: E402


@pytest.fixture(scope="function")
def session_factory():
    """Session factory over a fresh in-memory database shared across threads."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)

    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)

    engine.dispose()


@pytest.fixture(scope="function")
def file_session_factory(tmp_path):
    """Session factory over a file database, for tests that use real concurrent connections."""
    engine = create_engine(
        f"sqlite:///{tmp_path / 'release_qa.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    Base.metadata.create_all(engine)

    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)

    engine.dispose()


@pytest.fixture(scope="function")
def test_db(session_factory):
    """Create a test database session for each test."""
    db = session_factory()

    yield db

    db.close()


@pytest.fixture
def no_retry():
    return RetryPolicy(retries=0, initial_delay=0, max_delay=0, jitter=0)


@pytest.fixture
def fast_retry():
    return RetryPolicy(retries=2, initial_delay=0, max_delay=0, jitter=0)


@pytest.fixture
def mock_client():
    """Build an httpx client whose requests are answered by ``handler``."""
    clients = []

    def _make(handler):
        client = httpx.Client(transport=httpx.MockTransport(handler), follow_redirects=True)
        clients.append(client)
        return client

    yield _make

    for client in clients:
        client.close()


@pytest.fixture
def create_run():
    """Insert a project and a queued test run."""

    def _create(
        db,
        test_type=TestType.PAGE_PREFLIGHT,
        urls=None,
        site_url="https://a.test/",
        status=TestStatus.QUEUED,
        release_urls=None,
        enabled_optional_rules=None,
        created_at=None,
    ):
        project = Project(id=uuid.uuid4(), name="Acme", site_url=site_url)
        db.add(project)

        release_run = None
        if release_urls is not None or enabled_optional_rules is not None:
            release_run = ReleaseRun(
                project_id=project.id,
                name="v1.0",
                urls=release_urls or [],
                selected_tests=[test_type.value],
                enabled_optional_rules=enabled_optional_rules,
            )
            db.add(release_run)
            db.flush()

        run = TestRun(
            id=uuid.uuid4(),
            project_id=project.id,
            release_run_id=release_run.id if release_run else None,
            type=test_type,
            status=status,
            created_at=created_at or datetime.utcnow(),
        )
        if urls is not None:
            run.config = TestRunConfig(urls=urls)
        db.add(run)
        db.commit()
        return run

    return _create
