"""
Observability tests: submission log context, formatters and request timing.

Covers:
  - SubmissionLogger binds submission / organization / year; per-call extra wins
  - RequestContextFilter copies request_id and the routed submission id
  - JSON output nests request and submission groups, omitting empty ones
  - Readable output suffix
  - Lifecycle log records carry submission context
  - X-Request-ID / X-Request-Duration-Ms headers
"""

import json
import logging

from flask import g

from amsf_filing.middleware.logging_config import (
    JSONFormatter,
    ReadableFormatter,
    RequestContextFilter,
    submission_logger,
)
from amsf_filing.services.submission_lifecycle import transition_submission


def _record(msg="Populated", **extra):
    record = logging.LogRecord("amsf_filing.test", logging.INFO, __file__, 10, msg, (), None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestSubmissionLogger:
    def test_binds_submission_context(self, submission, caplog):
        log = submission_logger(logging.getLogger("amsf_filing.test"), submission)
        with caplog.at_level(logging.INFO, logger="amsf_filing.test"):
            log.info("Populated created=%d", 3)

        record = caplog.records[-1]
        assert record.submission_id == submission.id
        assert record.organization_id == submission.organization_id
        assert record.year == 2025

    def test_call_extra_wins(self, submission, caplog):
        log = submission_logger(logging.getLogger("amsf_filing.test"), submission)
        with caplog.at_level(logging.INFO, logger="amsf_filing.test"):
            log.info("Previous year", extra={"year": 2024})
        assert caplog.records[-1].year == 2024

    def test_transition_log_carries_context(self, submission, caplog):
        with caplog.at_level(logging.INFO, logger="amsf_filing.services.submission_lifecycle"):
            transition_submission(submission, "start_review")
        record = caplog.records[-1]
        assert "draft -> in_review" in record.getMessage()
        assert record.submission_id == submission.id


class TestRequestContextFilter:
    def test_outside_request_untouched(self):
        record = _record()
        assert RequestContextFilter().filter(record) is True
        assert not hasattr(record, "request_id")

    def test_copies_request_id_and_routed_submission(self, app):
        with app.test_request_context("/api/v1/submissions/7/xbrl"):
            g.request_id = "req42"
            record = _record()
            RequestContextFilter().filter(record)
        assert record.request_id == "req42"
        assert record.submission_id == 7

    def test_explicit_values_kept(self, app):
        with app.test_request_context("/api/v1/submissions/7/xbrl"):
            g.request_id = "req42"
            record = _record(submission_id=9)
            RequestContextFilter().filter(record)
        assert record.submission_id == 9


class TestJSONFormatter:
    def test_basic_fields(self):
        entry = json.loads(JSONFormatter().format(_record()))
        assert entry["level"] == "INFO"
        assert entry["logger"] == "amsf_filing.test"
        assert entry["message"] == "Populated"
        assert entry["location"].endswith(":10")

    def test_context_groups(self):
        entry = json.loads(JSONFormatter().format(
            _record(submission_id=7, organization_id=3, year=2025, request_id="r1", status=200),
        ))
        assert entry["submission"] == {"submission_id": 7, "organization_id": 3, "year": 2025}
        assert entry["request"] == {"request_id": "r1", "status": 200}

    def test_empty_groups_omitted(self):
        entry = json.loads(JSONFormatter().format(_record()))
        assert "submission" not in entry
        assert "request" not in entry


class TestReadableFormatter:
    def test_submission_suffix(self):
        line = ReadableFormatter().format(_record(submission_id=7, year=2025, duration_ms=12.3))
        assert "[sub=7 year=2025]" in line
        assert "[12ms]" in line


class TestRequestTiming:
    def test_headers_added(self, client):
        res = client.get("/api/v1/health/ready")
        assert "X-Request-Duration-Ms" in res.headers
        assert res.headers["X-Request-ID"]

    def test_request_id_echoed(self, client):
        res = client.get("/api/v1/health/ready", headers={"X-Request-ID": "abc123"})
        assert res.headers["X-Request-ID"] == "abc123"
