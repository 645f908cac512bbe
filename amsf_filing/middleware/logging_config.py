"""
AMSF Survey Filer
Logging setup and submission log context.

Every record can carry two groups of context:

    request     request_id, method, path, status, duration_ms
    submission  submission_id, organization_id, year

Services bind the submission group with ``submission_logger``; the
``RequestContextFilter`` fills request_id (and submission_id for
``/<sid>/`` routes) from the active Flask request. Formatters then render
the groups as nested JSON objects or as a compact ``[sub=.. org=.. year=..]``
suffix.

Usage:
    from amsf_filing.middleware.logging_config import submission_logger

    log = submission_logger(logger, submission)
    log.info("Populated created=%d", 12)
"""

import json
import logging
import os
import sys
from datetime import datetime, timezone

from flask import g, has_request_context, request

REQUEST_FIELDS = ("request_id", "method", "path", "status", "duration_ms", "remote_addr")
SUBMISSION_FIELDS = ("submission_id", "organization_id", "year")

_NOISY_LOGGERS = ("urllib3", "werkzeug", "sqlalchemy.engine")


def _collect(record, fields):
    return {k: getattr(record, k) for k in fields if getattr(record, k, None) is not None}


class SubmissionLogger(logging.LoggerAdapter):
    """Adapter that stamps submission context on every record.

    Per-call ``extra`` wins over the bound context.
    """

    def process(self, msg, kwargs):
        kwargs["extra"] = {**self.extra, **(kwargs.get("extra") or {})}
        return msg, kwargs


def submission_logger(logger, submission):
    return SubmissionLogger(logger, {
        "submission_id": submission.id,
        "organization_id": submission.organization_id,
        "year": submission.year,
    })


class RequestContextFilter(logging.Filter):
    """Copy request_id and the routed submission id onto records emitted in a request."""

    def filter(self, record):
        if not has_request_context():
            return True
        if getattr(record, "request_id", None) is None:
            record.request_id = g.get("request_id")
        if getattr(record, "submission_id", None) is None:
            record.submission_id = (request.view_args or {}).get("sid")
        return True


class JSONFormatter(logging.Formatter):
    """One JSON object per line; context groups are nested and omitted when empty."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "location": f"{record.module}:{record.funcName}:{record.lineno}",
        }
        for group, fields in (("request", REQUEST_FIELDS), ("submission", SUBMISSION_FIELDS)):
            values = _collect(record, fields)
            if values:
                entry[group] = values
        if record.exc_info and record.exc_info[0] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False, default=str)


class ReadableFormatter(logging.Formatter):
    """Single-line colored output for development terminals."""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"
    _SHORT = {"submission_id": "sub", "organization_id": "org", "year": "year"}

    def format(self, record: logging.LogRecord) -> str:
        ts = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        line = (f"{self.COLORS.get(record.levelname, '')}{ts} {record.levelname:<8}"
                f"{self.RESET} {record.name}: {record.getMessage()}")

        context = _collect(record, SUBMISSION_FIELDS)
        if context:
            line += " [" + " ".join(f"{self._SHORT[k]}={v}" for k, v in context.items()) + "]"
        duration = getattr(record, "duration_ms", None)
        if duration is not None:
            line += f" [{duration:.0f}ms]"

        if record.exc_info and record.exc_info[0] is not None:
            line += "\n" + self.formatException(record.exc_info)
        return line


def _wants_json(app):
    explicit = os.getenv("LOG_FORMAT", "").lower()
    if explicit in ("json", "text"):
        return explicit == "json"
    return not app.debug and not app.testing


def configure_logging(app):
    """
    Install one stderr handler on the root logger.

    LOG_FORMAT=json|text overrides the default (JSON outside debug/testing).
    LOG_LEVEL defaults to INFO for JSON output and DEBUG otherwise.
    """
    as_json = _wants_json(app)
    level_name = os.getenv("LOG_LEVEL", "INFO" if as_json else "DEBUG").upper()
    level = getattr(logging, level_name, logging.INFO)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(JSONFormatter() if as_json else ReadableFormatter())
    handler.addFilter(RequestContextFilter())
    handler.setLevel(level)

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    app.logger.setLevel(level)

    if not app.testing:
        app.logger.info("Logging configured: level=%s format=%s",
                        level_name, "json" if as_json else "text")
