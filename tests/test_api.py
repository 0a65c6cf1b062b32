"""Tests for the HTTP API."""

import uuid

import pytest
from fastapi.testclient import TestClient

from release_qa.database import get_db
from release_qa.main import app
from release_qa.models import ResultItem, UrlResult
from release_qa.models.enums import Provider, ResultStatus, Severity, TestStatus


@pytest.fixture
def client(session_factory):
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def finished_run(test_db, create_run):
    run = create_run(test_db, urls=["https://a.test/"], status=TestStatus.SUCCESS)
    url_result = UrlResult(test_run_id=run.id, url="https://a.test/", score=60, issue_count=1, metrics={"linkCount": 4})
    url_result.items = [
        ResultItem(
            provider=Provider.RELEASE_QA,
            code="PREFLIGHT_CANONICAL_MISSING",
            name="Canonical tag missing",
            status=ResultStatus.FAIL,
            severity=Severity.BLOCKER,
            meta={"reason": "Page may be treated as duplicate or ignored by search engines"},
        ),
        ResultItem(
            provider=Provider.RELEASE_QA,
            code="PREFLIGHT_H1_MISSING",
            name="H1 heading present",
            status=ResultStatus.PASS,
        ),
    ]
    test_db.add(url_result)
    run.score = 60
    test_db.commit()
    return run


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "healthy"}


def test_get_test_run(client, finished_run):
    response = client.get(f"/test-runs/{finished_run.id}")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "SUCCESS"
    assert data["type"] == "PAGE_PREFLIGHT"
    assert data["score"] == 60
    [url_result] = data["url_results"]
    assert url_result["metrics"] == {"linkCount": 4}
    codes = {item["code"]: item for item in url_result["items"]}
    assert codes["PREFLIGHT_CANONICAL_MISSING"]["severity"] == "BLOCKER"
    assert codes["PREFLIGHT_H1_MISSING"]["severity"] is None


def test_get_missing_test_run(client):
    response = client.get(f"/test-runs/{uuid.uuid4()}")
    assert response.status_code == 404
    assert response.json()["detail"] == "Test run not found"


def test_get_test_run_rejects_bad_id(client):
    assert client.get("/test-runs/not-a-uuid").status_code == 422


def test_ignore_result_item(client, test_db, finished_run):
    item = test_db.query(ResultItem).filter(ResultItem.code == "PREFLIGHT_CANONICAL_MISSING").one()

    response = client.patch(f"/result-items/{item.id}", json={"ignored": True})

    assert response.status_code == 200
    assert response.json() == {
        "id": str(item.id),
        "ignored": True,
        "url_result_score": 100,
        "test_run_score": 100,
    }


def test_ignore_missing_result_item(client):
    response = client.patch(f"/result-items/{uuid.uuid4()}", json={"ignored": True})
    assert response.status_code == 404
    assert response.json()["detail"] == "Result item not found"
