"""
Calculation engine tests: populate_submission_values / populate_settings_values.

Covers:
  - First population creates one row per manifest element
  - Idempotence (second run only reports unchanged)
  - Changed source data updates calculated rows
  - Overridden and manual rows are never touched
  - Frozen submissions raise and are not recomputed
  - Settings mapped to an element become from_settings rows
"""

from datetime import date
from decimal import Decimal

import pytest

from amsf_filing.core.exceptions import SubmissionFrozenError
from amsf_filing.core.values import Scalar
from amsf_filing.models import db
from amsf_filing.models.client import Client
from amsf_filing.models.organization import Setting
from amsf_filing.models.submission import SubmissionValue
from amsf_filing.models.transaction import Transaction
from amsf_filing.services.calculation_engine import (
    populate_settings_values,
    populate_submission_values,
)
from amsf_filing.taxonomy.manifest import load_manifest


def _make_client(org, name="Client"):
    c = Client(organization_id=org.id, name=name, client_type="NATURAL_PERSON", nationality="MC")
    db.session.add(c)
    db.session.commit()
    return c


def _row(submission, code):
    return SubmissionValue.query.filter_by(submission_id=submission.id, element_name=code).one()


# ═════════════════════════════════════════════════════════════════════════════
# populate_submission_values
# ═════════════════════════════════════════════════════════════════════════════


class TestPopulate:
    def test_first_run_creates_every_element(self, submission):
        stats = populate_submission_values(submission)
        assert stats["created"] == len(load_manifest("2025"))
        assert stats["updated"] == 0
        assert submission.values.count() == stats["created"]

    def test_second_run_is_idempotent(self, submission):
        populate_submission_values(submission)
        stats = populate_submission_values(submission)
        assert stats["created"] == 0
        assert stats["updated"] == 0
        assert stats["unchanged"] == len(load_manifest("2025"))

    def test_source_change_updates_value(self, organization, submission):
        populate_submission_values(submission)
        assert _row(submission, "a1101").value == Scalar("0")

        _make_client(organization)
        stats = populate_submission_values(submission)
        assert stats["updated"] >= 1
        assert _row(submission, "a1101").value == Scalar("1")

    def test_overridden_row_untouched(self, organization, submission):
        populate_submission_values(submission)
        row = _row(submission, "a1101")
        row.update_value(Scalar("42"), user_id="alice", reason="manual count")
        db.session.commit()

        _make_client(organization)
        stats = populate_submission_values(submission)
        assert stats["skipped"] == 1
        assert _row(submission, "a1101").value == Scalar("42")

    def test_manual_row_untouched(self, submission):
        manual = SubmissionValue(submission_id=submission.id, element_name="a1101", source="manual")
        manual.value = Scalar("7")
        db.session.add(manual)
        db.session.commit()

        populate_submission_values(submission)
        assert _row(submission, "a1101").value == Scalar("7")

    def test_monetary_value_formatted(self, organization, submission):
        c = _make_client(organization)
        db.session.add(Transaction(organization_id=organization.id, client_id=c.id,
                                   transaction_type="PURCHASE", direction="BY_CLIENT",
                                   transaction_date=date(2025, 2, 1),
                                   transaction_value=Decimal("1234567.5")))
        db.session.commit()
        populate_submission_values(submission)
        assert _row(submission, "a1106B").value_text == "1234567.50"

    @pytest.mark.parametrize("status", ["validated", "completed"])
    def test_frozen_submission_raises(self, submission, status):
        submission.status = status
        db.session.commit()
        with pytest.raises(SubmissionFrozenError):
            populate_submission_values(submission)
        assert submission.values.count() == 0

    def test_in_review_still_populates(self, submission):
        submission.status = "in_review"
        db.session.commit()
        stats = populate_submission_values(submission)
        assert stats["created"] > 0


# ═════════════════════════════════════════════════════════════════════════════
# populate_settings_values
# ═════════════════════════════════════════════════════════════════════════════


class TestPopulateSettings:
    def test_mapped_setting_written(self, organization, submission):
        db.session.add(Setting(organization_id=organization.id, key="has_compliance_officer",
                               value="true", value_type="boolean", xbrl_element="aC114"))
        db.session.commit()

        stats = populate_settings_values(submission)
        assert stats["created"] == 1
        row = _row(submission, "aC114")
        assert row.source == "from_settings"
        assert row.value == Scalar("Oui")

    def test_unknown_element_skipped(self, organization, submission):
        db.session.add(Setting(organization_id=organization.id, key="stray",
                               value="x", xbrl_element="zUNKNOWN"))
        db.session.commit()
        stats = populate_settings_values(submission)
        assert stats == {"created": 0, "updated": 0, "skipped": 1}

    def test_replaces_calculated_row(self, organization, submission):
        populate_submission_values(submission)
        db.session.add(Setting(organization_id=organization.id, key="employees",
                               value="9", value_type="integer", xbrl_element="aC1102"))
        db.session.commit()

        stats = populate_settings_values(submission)
        assert stats["updated"] == 1
        row = _row(submission, "aC1102")
        assert row.source == "from_settings"
        assert row.value == Scalar("9")

    def test_confirmed_row_left_alone(self, organization, submission):
        row = SubmissionValue(submission_id=submission.id, element_name="aC114",
                              source="from_settings")
        row.value = Scalar("Non")
        row.confirm()
        db.session.add(row)
        db.session.add(Setting(organization_id=organization.id, key="has_compliance_officer",
                               value="true", value_type="boolean", xbrl_element="aC114"))
        db.session.commit()

        stats = populate_settings_values(submission)
        assert stats["skipped"] == 1
        assert _row(submission, "aC114").value == Scalar("Non")

    def test_frozen_raises(self, submission):
        submission.status = "completed"
        db.session.commit()
        with pytest.raises(SubmissionFrozenError):
            populate_settings_values(submission)
