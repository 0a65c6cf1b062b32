"""Tests for ignore toggling and re-scoring."""

import uuid

from release_qa.models import IgnoredRule, ResultItem, TestRun, UrlResult
from release_qa.models.enums import Provider, ResultStatus, Severity, TestStatus, TestType
from release_qa.services.rescoring import rescore_test_run, set_ignored


def add_url_result(db, run, url, findings, score=None, error=None):
    url_result = UrlResult(test_run_id=run.id, url=url, score=score, error=error)
    url_result.items = [
        ResultItem(provider=Provider.RELEASE_QA, code=code, name=code, status=status, severity=severity)
        for code, status, severity in findings
    ]
    db.add(url_result)
    db.commit()
    return url_result


def scored_run(db, create_run, test_type=TestType.PAGE_PREFLIGHT, status=TestStatus.SUCCESS):
    run = create_run(db, test_type=test_type, status=status)
    first = add_url_result(
        db,
        run,
        "https://a.test/",
        [
            ("PREFLIGHT_H1_MISSING", ResultStatus.PASS, None),
            ("EMPTY_ALT_TAG", ResultStatus.FAIL, Severity.HIGH),
            ("PREFLIGHT_CANONICAL_MISSING", ResultStatus.FAIL, Severity.BLOCKER),
        ],
        score=50,
    )
    add_url_result(db, run, "https://a.test/about", [("EMPTY_ALT_TAG", ResultStatus.FAIL, Severity.HIGH)], score=90)
    run.score = 70
    db.commit()
    return run, first


def item_by_code(url_result, code):
    return next(item for item in url_result.items if item.code == code)


def test_ignore_rescores_url_and_run(test_db, create_run):
    run, url_result = scored_run(test_db, create_run)
    blocker = item_by_code(url_result, "PREFLIGHT_CANONICAL_MISSING")

    item = set_ignored(test_db, blocker.id, True)

    assert item.ignored is True
    test_db.expire_all()
    assert test_db.get(UrlResult, url_result.id).score == 90
    assert test_db.get(TestRun, run.id).score == 90

    rule = test_db.query(IgnoredRule).one()
    assert (rule.project_id, rule.url, rule.code) == (run.project_id, "https://a.test/", "PREFLIGHT_CANONICAL_MISSING")


def test_unignore_restores_score_and_removes_rule(test_db, create_run):
    run, url_result = scored_run(test_db, create_run)
    blocker = item_by_code(url_result, "PREFLIGHT_CANONICAL_MISSING")

    set_ignored(test_db, blocker.id, True)
    set_ignored(test_db, blocker.id, False)

    test_db.expire_all()
    assert test_db.get(UrlResult, url_result.id).score == 50
    assert test_db.get(TestRun, run.id).score == 70
    assert test_db.query(IgnoredRule).count() == 0


def test_ignoring_twice_keeps_one_rule(test_db, create_run):
    run, url_result = scored_run(test_db, create_run)
    item_id = item_by_code(url_result, "EMPTY_ALT_TAG").id

    set_ignored(test_db, item_id, True)
    set_ignored(test_db, item_id, True)

    assert test_db.query(IgnoredRule).count() == 1


def test_ignoring_a_pass_changes_nothing(test_db, create_run):
    run, url_result = scored_run(test_db, create_run)
    set_ignored(test_db, item_by_code(url_result, "PREFLIGHT_H1_MISSING").id, True)

    test_db.expire_all()
    assert test_db.get(UrlResult, url_result.id).score == 50


def test_unknown_item(test_db):
    assert set_ignored(test_db, uuid.uuid4(), True) is None


def test_failed_run_keeps_null_score(test_db, create_run):
    run = create_run(test_db, status=TestStatus.FAILED)
    url_result = add_url_result(
        test_db, run, "https://a.test/", [("EMPTY_ALT_TAG", ResultStatus.FAIL, Severity.HIGH)], score=90
    )
    add_url_result(test_db, run, "https://a.test/down", [], error="Failed to fetch https://a.test/down: 503")

    set_ignored(test_db, url_result.items[0].id, True)

    test_db.expire_all()
    assert test_db.get(UrlResult, url_result.id).score == 100
    assert test_db.get(TestRun, run.id).score is None


def test_remote_scores_are_not_recomputed(test_db, create_run):
    """Performance URL scores come from Lighthouse, not from findings."""
    run = create_run(test_db, test_type=TestType.PERFORMANCE, status=TestStatus.SUCCESS)
    url_result = add_url_result(
        test_db, run, "https://a.test/", [("CWV_CLS", ResultStatus.FAIL, Severity.HIGH)], score=73
    )
    run.score = 73
    test_db.commit()

    set_ignored(test_db, url_result.items[0].id, True)

    test_db.expire_all()
    assert test_db.get(UrlResult, url_result.id).score == 73
    assert test_db.get(TestRun, run.id).score == 73


def test_rescore_test_run_averages_url_scores(test_db, create_run):
    run, _ = scored_run(test_db, create_run)
    run.score = None

    assert rescore_test_run(test_db, run) == 70
