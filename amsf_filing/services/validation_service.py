"""
Validation Orchestrator.

Two layers, both producing {valid, errors[], warnings[]} with error entries
{code, message, element}:

  local   always runs: required elements present, numeric elements parse
          (integers whole), boolean elements are Oui/Non, dimension keys
          are plain tokens
  remote  optional (REMOTE_VALIDATION_ENABLED), and only once the local layer
          passes: the rendered XBRL is posted to the validator service through
          ValidatorGateway. Outages become a degraded SERVICE_UNAVAILABLE
          result; nothing is raised.

Combined:
    valid = local.valid and (remote is None or remote.valid)

A degraded remote never blocks the workflow. Downloading an unvalidated
file needs ``acknowledge_unvalidated`` and is recorded on the submission.

Usage:
    from amsf_filing.services.validation_service import ValidationOrchestrator

    result = ValidationOrchestrator(remote_enabled=False).validate(submission)
    result.valid, result.local.errors
"""

import logging
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation

from flask import current_app

from amsf_filing.core.exceptions import RenderDataError
from amsf_filing.core.values import Dimensional
from amsf_filing.integrations.validator_gateway import validator_gateway
from amsf_filing.middleware.logging_config import submission_logger
from amsf_filing.models import db
from amsf_filing.services.value_merge import merged_map
from amsf_filing.services.xbrl_renderer import XbrlRenderer, valid_dimension_key
from amsf_filing.taxonomy.manifest import load_manifest

logger = logging.getLogger(__name__)

# ── Error codes ──────────────────────────────────────────────────────────────
MISSING_REQUIRED = "MISSING_REQUIRED"
INVALID_NUMBER = "INVALID_NUMBER"
INVALID_BOOLEAN = "INVALID_BOOLEAN"
INVALID_DIMENSION = "INVALID_DIMENSION"
FLAGGED_FOR_REVIEW = "FLAGGED_FOR_REVIEW"
SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"

BOOLEAN_VALUES = {"Oui", "Non"}


def issue(code, message, element=None):
    return {"code": code, "message": message, "element": element}


@dataclass
class ValidationResult:
    valid: bool
    errors: list = field(default_factory=list)
    warnings: list = field(default_factory=list)
    degraded: bool = False

    def to_dict(self):
        d = {"valid": self.valid, "errors": self.errors, "warnings": self.warnings}
        if self.degraded:
            d["degraded"] = True
        return d


@dataclass
class CombinedResult:
    local: ValidationResult
    remote: ValidationResult | None = None

    @property
    def valid(self):
        return self.local.valid and (self.remote is None or self.remote.valid)

    @property
    def degraded(self):
        return bool(self.remote and self.remote.degraded)

    @property
    def blocking(self):
        """True when the failure is real, not just a validator outage."""
        if not self.local.valid:
            return True
        return bool(self.remote and not self.remote.valid and not self.remote.degraded)

    def to_dict(self):
        return {
            "valid": self.valid,
            "degraded": self.degraded,
            "local": self.local.to_dict(),
            "remote": self.remote.to_dict() if self.remote else None,
        }


# ═════════════════════════════════════════════════════════════════════════════
# Local layer
# ═════════════════════════════════════════════════════════════════════════════


def _entries(value):
    if isinstance(value, Dimensional):
        return [(key, text) for key, text in value.sorted_items()]
    return [(None, value.text)]


def _blank(text):
    return text is None or str(text).strip() == ""


def _label(code, key):
    return f"{code}[{key}]" if key is not None else code


def local_validate(values, manifest) -> ValidationResult:
    """Check a merged answer map ({code: MergedValue}) against the manifest."""
    errors = []
    warnings = []

    for code in manifest.required_codes():
        item = values.get(code)
        if item is None or item.value.is_empty:
            errors.append(issue(MISSING_REQUIRED, f"{code} is required", code))

    for code, item in values.items():
        element = manifest.element(code)
        if element is None:
            continue
        for key, text in _entries(item.value):
            if _blank(text):
                continue
            if key is not None and not valid_dimension_key(key):
                errors.append(issue(
                    INVALID_DIMENSION, f"{code} has an invalid dimension key {key!r}", code,
                ))
                continue
            if element.numeric:
                try:
                    number = Decimal(str(text).strip())
                    if not number.is_finite():
                        raise InvalidOperation
                except InvalidOperation:
                    errors.append(issue(
                        INVALID_NUMBER,
                        f"{_label(code, key)} must be numeric, got {text!r}",
                        code,
                    ))
                    continue
                if element.value_type == "integer" and number != number.to_integral_value():
                    errors.append(issue(
                        INVALID_NUMBER,
                        f"{_label(code, key)} must be a whole number, got {text!r}",
                        code,
                    ))
            elif element.boolean and str(text).strip() not in BOOLEAN_VALUES:
                errors.append(issue(
                    INVALID_BOOLEAN,
                    f"{_label(code, key)} must be Oui or Non, got {text!r}",
                    code,
                ))

    return ValidationResult(valid=not errors, errors=errors, warnings=warnings)


def review_warnings(submission):
    return [
        issue(FLAGGED_FOR_REVIEW, f"{row.element_name} is flagged for review", row.element_name)
        for row in submission.values.filter_by(flagged_for_review=True)
    ]


# ═════════════════════════════════════════════════════════════════════════════
# Remote layer
# ═════════════════════════════════════════════════════════════════════════════


def degraded_result(message):
    return ValidationResult(
        valid=False,
        errors=[issue(SERVICE_UNAVAILABLE, message)],
        degraded=True,
    )


def _issues(raw):
    if not isinstance(raw, list):
        return []
    out = []
    for entry in raw:
        if isinstance(entry, dict):
            out.append(issue(entry.get("code"), entry.get("message"), entry.get("element")))
        else:
            out.append(issue(None, str(entry)))
    return out


def remote_result_from(gateway_result) -> ValidationResult:
    """Translate a GatewayResult into a ValidationResult."""
    data = gateway_result.data
    if gateway_result.ok:
        return ValidationResult(
            valid=bool(data.get("valid")),
            errors=_issues(data.get("errors")),
            warnings=_issues(data.get("warnings")),
        )
    if gateway_result.status_code == 422 and isinstance(data, dict):
        return ValidationResult(
            valid=False,
            errors=_issues(data.get("errors")),
            warnings=_issues(data.get("warnings")),
        )
    return degraded_result(
        f"Validation service unavailable: {gateway_result.error or 'no response'}"
    )


# ═════════════════════════════════════════════════════════════════════════════
# Orchestrator
# ═════════════════════════════════════════════════════════════════════════════


class ValidationOrchestrator:
    def __init__(self, remote_enabled=None, gateway=None):
        if remote_enabled is None:
            remote_enabled = current_app.config.get("REMOTE_VALIDATION_ENABLED", False)
        self.remote_enabled = bool(remote_enabled)
        self.gateway = gateway or validator_gateway

    def validate(self, submission) -> CombinedResult:
        manifest = load_manifest(submission.taxonomy_version)
        values = merged_map(submission, manifest)

        local = local_validate(values, manifest)
        local.warnings.extend(review_warnings(submission))

        remote = None
        if self.remote_enabled and local.valid:
            remote = self._remote(submission, manifest, values, local)

        result = CombinedResult(local=local, remote=remote)
        submission_logger(logger, submission).info(
            "Validated valid=%s local_errors=%d remote=%s",
            result.valid, len(local.errors),
            "off" if remote is None else ("degraded" if remote.degraded else remote.valid),
        )
        return result

    def _remote(self, submission, manifest, values, local):
        """Render and post to the validator. A render failure becomes a local error."""
        log = submission_logger(logger, submission)
        try:
            xml = XbrlRenderer(submission, manifest=manifest, values=list(values.values())).render()
        except RenderDataError as exc:
            code = INVALID_NUMBER if exc.reason == "non-numeric value" else INVALID_DIMENSION
            local.errors.append(issue(code, str(exc), exc.element))
            local.valid = False
            log.warning("Remote validation skipped: %s", exc)
            return None

        remote = remote_result_from(self.gateway.validate(xml))
        if remote.degraded:
            log.warning("Remote validation degraded")
        return remote


def acknowledge_unvalidated(submission, user_id=None):
    """Record that ``submission`` was downloaded without passing validation."""
    submission.downloaded_unvalidated = True
    db.session.commit()
    logger.warning(
        "AUDIT unvalidated XBRL download submission=%s year=%s user=%s",
        submission.id, submission.year, user_id,
    )
    return submission
