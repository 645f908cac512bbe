"""
Submission workflow tests (SubmissionBuilder and module services).

Covers:
  - Year validation
  - build(): find-or-create, population stats, frozen skip
  - NotBuiltError ordering guard
  - generate_xbrl stamps generated_at and filename
  - validate_submission moves in_review → validated; degraded remote does not block
  - complete_submission
"""

from unittest.mock import patch

import pytest

from amsf_filing.core.exceptions import NotBuiltError, ValidationError
from amsf_filing.integrations.validator_gateway import GatewayResult
from amsf_filing.models import db
from amsf_filing.models.organization import Setting
from amsf_filing.models.submission import Submission
from amsf_filing.services.submission_builder import (
    ServiceResult,
    SubmissionBuilder,
    complete_submission,
    generate_submission,
    validate_submission,
    validate_year,
)
from amsf_filing.services.submission_lifecycle import transition_submission
from amsf_filing.taxonomy.manifest import load_manifest

GATEWAY = "amsf_filing.services.validation_service.validator_gateway"


def _employees(org, value="6"):
    db.session.add(Setting(organization_id=org.id, key="total_employees",
                           value=value, value_type="integer"))
    db.session.commit()


def _start_review(submission):
    """Populate the draft, then move it to in_review (which reads persisted rows)."""
    SubmissionBuilder(submission.organization, submission.year).build()
    transition_submission(submission, "start_review")


# ═════════════════════════════════════════════════════════════════════════════
# Builder
# ═════════════════════════════════════════════════════════════════════════════


class TestValidateYear:
    @pytest.mark.parametrize("year", [2009, "2025", 2099])
    def test_accepts(self, year):
        assert validate_year(year) == int(year)

    @pytest.mark.parametrize("year", [2008, 2100, "next", None])
    def test_rejects(self, year):
        with pytest.raises(ValidationError):
            validate_year(year)


class TestSubmissionBuilder:
    def test_build_creates_and_populates(self, organization):
        builder = SubmissionBuilder(organization, 2025)
        result = builder.build()

        assert result.success
        sub = result.record
        assert sub.status == "draft"
        assert sub.taxonomy_version == "2025"
        assert builder.stats["calculated"]["created"] == len(load_manifest("2025"))

    def test_build_reuses_existing(self, organization, submission):
        result = SubmissionBuilder(organization, 2025).build()
        assert result.record.id == submission.id
        assert Submission.query.count() == 1

    def test_build_frozen_skips_population(self, organization, submission):
        submission.status = "completed"
        db.session.commit()
        builder = SubmissionBuilder(organization, 2025)
        builder.build()
        assert builder.stats == {}
        assert submission.values.count() == 0

    def test_invalid_rci_number_rejected(self, organization):
        organization.rci_number = "RCI-12"
        db.session.commit()
        with pytest.raises(ValidationError) as exc:
            SubmissionBuilder(organization, 2025)
        assert exc.value.details == {"rci_number": "invalid"}

    def test_generate_before_build_raises(self, organization):
        with pytest.raises(NotBuiltError):
            SubmissionBuilder(organization, 2025).generate_xbrl()

    def test_validate_before_build_raises(self, organization):
        with pytest.raises(NotBuiltError):
            SubmissionBuilder(organization, 2025).validate()

    def test_generate_xbrl(self, organization):
        builder = SubmissionBuilder(organization, 2025)
        builder.build()
        xml = builder.generate_xbrl()

        assert "<strix:a1101" in xml
        assert builder.filename == "amsf_2025_RCI12345.xml"
        assert builder.submission.generated_at is not None


class TestServiceResult:
    def test_fail_wraps_string(self):
        result = ServiceResult.fail("boom")
        assert result.failure
        assert result.errors == ["boom"]


# ═════════════════════════════════════════════════════════════════════════════
# Services
# ═════════════════════════════════════════════════════════════════════════════


class TestGenerateSubmission:
    def test_success(self, organization):
        result = generate_submission(organization, 2025)
        assert result.success
        assert result.record["filename"] == "amsf_2025_RCI12345.xml"
        assert result.record["xbrl"].startswith("<?xml")

    def test_malformed_setting_fails_in_strict_mode(self, organization):
        db.session.add(Setting(organization_id=organization.id, key="headcount",
                               value="douze", xbrl_element="aC1102"))
        db.session.commit()
        result = generate_submission(organization, 2025, strict=True)
        assert result.failure
        assert "aC1102" in result.errors[0]

    def test_malformed_setting_zeroed_in_lenient_mode(self, organization):
        db.session.add(Setting(organization_id=organization.id, key="headcount",
                               value="douze", xbrl_element="aC1102"))
        db.session.commit()
        result = generate_submission(organization, 2025, strict=False)
        assert result.success
        assert ">0</strix:aC1102>" in result.record["xbrl"]


class TestValidateSubmission:
    def test_in_review_passes_to_validated(self, organization, submission):
        _employees(organization)
        _start_review(submission)

        result = validate_submission(submission, remote_enabled=False)
        assert result.success
        assert submission.status == "validated"

    def test_draft_stays_draft(self, organization, submission):
        _employees(organization)
        result = validate_submission(submission, remote_enabled=False)
        assert result.success
        assert submission.status == "draft"

    def test_local_errors_block(self, submission):
        _start_review(submission)
        result = validate_submission(submission, remote_enabled=False)
        assert result.failure
        assert result.errors == ["aC1102 is required"]
        assert submission.status == "in_review"

    def test_degraded_remote_does_not_block(self, organization, submission):
        _employees(organization)
        _start_review(submission)
        outage = GatewayResult(ok=False, status_code=None, data=None,
                               error="Request timed out after 30.0s", duration_ms=0, attempts=3)
        with patch(GATEWAY) as gw:
            gw.validate.return_value = outage
            result = validate_submission(submission, remote_enabled=True)

        assert result.success
        assert result.record["validation"].degraded
        assert submission.status == "validated"

    def test_remote_rejection_blocks(self, organization, submission):
        _employees(organization)
        _start_review(submission)
        rejection = GatewayResult(
            ok=True, status_code=200,
            data={"valid": False, "errors": [{"code": "CALC", "message": "a1105B mismatch"}]},
            error=None, duration_ms=4,
        )
        with patch(GATEWAY) as gw:
            gw.validate.return_value = rejection
            result = validate_submission(submission, remote_enabled=True)

        assert result.failure
        assert result.errors == ["a1105B mismatch"]
        assert submission.status == "in_review"


class TestCompleteSubmission:
    def test_from_in_review(self, organization, submission):
        _employees(organization)
        _start_review(submission)
        result = complete_submission(submission, remote_enabled=False)
        assert result.success
        assert submission.status == "completed"
        assert submission.completed_at is not None

    def test_from_draft_fails(self, submission):
        result = complete_submission(submission, remote_enabled=False)
        assert result.failure
        assert submission.status == "draft"

    def test_validation_failure_stops_completion(self, submission):
        _start_review(submission)
        result = complete_submission(submission, remote_enabled=False)
        assert result.failure
        assert submission.status == "in_review"
