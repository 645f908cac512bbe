"""
Submission workflow.

SubmissionBuilder drives one (organization, year) through:
  1. find or create the Submission
  2. populate calculated values, then settings-backed values
  3. render XBRL (stamps generated_at)
  4. validate (local + optional remote)

The module-level services wrap the builder and return ServiceResult so
blueprints can branch on ``success`` without catching business errors.

Usage:
    builder = SubmissionBuilder(org, 2025)
    result = builder.build()
    if result.success:
        xml = builder.generate_xbrl()
        combined = builder.validate()
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone

from flask import current_app

from amsf_filing.core.exceptions import (
    InvalidTransitionError,
    NotBuiltError,
    RenderDataError,
    ValidationError,
)
from amsf_filing.models import db
from amsf_filing.models.organization import valid_rci_number
from amsf_filing.models.submission import MAX_YEAR, MIN_YEAR, Submission
from amsf_filing.services.calculation_engine import (
    populate_settings_values,
    populate_submission_values,
)
from amsf_filing.services.submission_lifecycle import transition_submission
from amsf_filing.services.validation_service import ValidationOrchestrator
from amsf_filing.services.xbrl_renderer import XbrlRenderer
from amsf_filing.taxonomy.manifest import load_manifest

logger = logging.getLogger(__name__)


@dataclass
class ServiceResult:
    success: bool
    record: object = None
    errors: list = field(default_factory=list)

    @property
    def failure(self):
        return not self.success

    @classmethod
    def ok(cls, record=None):
        return cls(success=True, record=record)

    @classmethod
    def fail(cls, errors, record=None):
        if isinstance(errors, str):
            errors = [errors]
        return cls(success=False, record=record, errors=list(errors))


def validate_year(year):
    try:
        year = int(year)
    except (TypeError, ValueError):
        raise ValidationError("year must be an integer", details={"year": "invalid"})
    if not MIN_YEAR <= year <= MAX_YEAR:
        raise ValidationError(
            f"year must be between {MIN_YEAR} and {MAX_YEAR}",
            details={"year": "out_of_range"},
        )
    return year


class SubmissionBuilder:
    def __init__(self, organization, year):
        if not valid_rci_number(organization.rci_number):
            raise ValidationError(
                f"Organization {organization.id} has an invalid RCI number",
                details={"rci_number": "invalid"},
            )
        self.organization = organization
        self.year = validate_year(year)
        self.submission = None
        self.stats = {}
        self.filename = None
        self._built = False

    def _find_or_create(self):
        submission = Submission.query.filter_by(
            organization_id=self.organization.id, year=self.year,
        ).first()
        if submission is None:
            manifest = load_manifest(current_app.config.get("TAXONOMY_VERSION"))
            submission = Submission(
                organization_id=self.organization.id,
                year=self.year,
                taxonomy_version=manifest.version,
            )
            db.session.add(submission)
            db.session.commit()
            logger.info("Created submission=%s org=%s year=%s",
                        submission.id, self.organization.id, self.year)
        return submission

    def build(self) -> ServiceResult:
        """Find or create the submission and populate its values.

        Frozen submissions are returned as they are.
        """
        self.submission = self._find_or_create()
        if self.submission.frozen:
            logger.info("Submission %s is %s; population skipped",
                        self.submission.id, self.submission.status)
            self.stats = {}
        else:
            self.stats = {
                "calculated": populate_submission_values(self.submission),
                "settings": populate_settings_values(self.submission),
            }
        self._built = True
        return ServiceResult.ok(self.submission)

    def _require_built(self, step):
        if not self._built:
            raise NotBuiltError(f"Call build before {step}")

    def generate_xbrl(self, strict=None) -> str:
        self._require_built("generate_xbrl")
        renderer = XbrlRenderer(self.submission, strict=strict)
        xml = renderer.render()
        self.filename = renderer.suggested_filename
        self.submission.generated_at = datetime.now(timezone.utc)
        db.session.commit()
        return xml

    def validate(self, remote_enabled=None):
        self._require_built("validate")
        return ValidationOrchestrator(remote_enabled=remote_enabled).validate(self.submission)


# ═════════════════════════════════════════════════════════════════════════════
# Services
# ═════════════════════════════════════════════════════════════════════════════


def generate_submission(organization, year, strict=None) -> ServiceResult:
    """Build and render. record = {"submission", "xbrl", "filename"}."""
    builder = SubmissionBuilder(organization, year)
    builder.build()
    try:
        xml = builder.generate_xbrl(strict=strict)
    except RenderDataError as e:
        return ServiceResult.fail([str(e)], record={"submission": builder.submission})
    return ServiceResult.ok({"submission": builder.submission, "xbrl": xml, "filename": builder.filename})


def validate_submission(submission, remote_enabled=None, user_id=None) -> ServiceResult:
    """Validate; an in_review submission that passes moves to validated.

    A degraded remote validator does not block the move.
    """
    combined = ValidationOrchestrator(remote_enabled=remote_enabled).validate(submission)
    record = {"submission": submission, "validation": combined}
    if combined.blocking:
        errors = [e["message"] for e in combined.local.errors]
        if combined.remote and not combined.remote.degraded:
            errors += [e["message"] for e in combined.remote.errors]
        return ServiceResult.fail(errors or ["XBRL validation failed"], record=record)

    if submission.status == "in_review":
        transition_submission(submission, "validate", user_id=user_id)
    return ServiceResult.ok(record)


def complete_submission(submission, remote_enabled=None, user_id=None) -> ServiceResult:
    """Validate if needed, then complete."""
    if submission.status not in ("in_review", "validated"):
        return ServiceResult.fail(
            [f"Submission must be in review or validated to complete (status={submission.status})"],
            record=submission,
        )
    try:
        if submission.status == "in_review":
            result = validate_submission(submission, remote_enabled=remote_enabled, user_id=user_id)
            if result.failure:
                return ServiceResult.fail(result.errors, record=submission)
        transition_submission(submission, "complete", user_id=user_id)
    except InvalidTransitionError as e:
        return ServiceResult.fail([str(e)], record=submission)
    return ServiceResult.ok(submission)
