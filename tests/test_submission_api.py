"""
Submission API tests (/api/v1/submissions).

Covers:
  - Create / read, input errors, 404s
  - Lifecycle transitions over HTTP (422 for illegal moves)
  - Lock acquire / conflict / release
  - Manual answers and signing (frozen guard, unknown codes)
  - Value overrides and YoY flagging on recalculate
  - Validation endpoint
  - XBRL download gate (acknowledge_unvalidated) and Markdown export
  - Year-over-year comparison payload
"""

import pytest

from amsf_filing.core.values import Scalar
from amsf_filing.models import db
from amsf_filing.models.organization import Setting
from amsf_filing.models.submission import Answer, Submission, SubmissionValue

BASE = "/api/v1/submissions"


def _create(client, organization, year=2025):
    res = client.post(BASE, json={"organization_id": organization.id, "year": year})
    assert res.status_code == 201
    return res.get_json()


def _employees(org):
    db.session.add(Setting(organization_id=org.id, key="total_employees",
                           value="3", value_type="integer"))
    db.session.commit()


def _transition(client, sid, event, user="alice"):
    return client.post(f"{BASE}/{sid}/transition", json={"event": event, "user": user})


# ═════════════════════════════════════════════════════════════════════════════
# Create / read
# ═════════════════════════════════════════════════════════════════════════════


class TestCreateSubmission:
    def test_create(self, client, organization):
        data = _create(client, organization)
        assert data["year"] == 2025
        assert data["status"] == "draft"
        assert data["available_events"] == ["start_review"]
        assert data["stats"]["calculated"]["created"] > 0
        assert any(v["element_name"] == "a1101" for v in data["values"])

    def test_create_is_find_or_create(self, client, organization):
        first = _create(client, organization)
        second = _create(client, organization)
        assert first["id"] == second["id"]
        assert second["stats"]["calculated"]["created"] == 0

    def test_missing_organization(self, client):
        res = client.post(BASE, json={"year": 2025})
        assert res.status_code == 400

    def test_missing_year(self, client, organization):
        res = client.post(BASE, json={"organization_id": organization.id})
        assert res.status_code == 400

    def test_unknown_organization(self, client):
        res = client.post(BASE, json={"organization_id": 999, "year": 2025})
        assert res.status_code == 404

    @pytest.mark.parametrize("year", [1999, "soon"])
    def test_invalid_year(self, client, organization, year):
        res = client.post(BASE, json={"organization_id": organization.id, "year": year})
        assert res.status_code == 422
        assert "year" in res.get_json()["details"]

    def test_get(self, client, submission):
        res = client.get(f"{BASE}/{submission.id}")
        assert res.status_code == 200
        assert res.get_json()["id"] == submission.id

    def test_get_404(self, client):
        res = client.get(f"{BASE}/4242")
        assert res.status_code == 404
        assert res.get_json()["error"] == "Submission not found"


# ═════════════════════════════════════════════════════════════════════════════
# Lifecycle & lock
# ═════════════════════════════════════════════════════════════════════════════


class TestTransitions:
    def test_start_review(self, client, submission):
        res = _transition(client, submission.id, "start_review")
        assert res.status_code == 200
        assert res.get_json()["new_status"] == "in_review"

    def test_illegal_transition_422(self, client, submission):
        res = _transition(client, submission.id, "complete")
        assert res.status_code == 422
        assert "complete" in res.get_json()["error"]

    def test_event_required(self, client, submission):
        res = client.post(f"{BASE}/{submission.id}/transition", json={})
        assert res.status_code == 400


class TestLockApi:
    def test_acquire_and_conflict(self, client, submission):
        res = client.post(f"{BASE}/{submission.id}/lock", json={"user": "alice"})
        assert res.status_code == 200
        assert res.get_json()["locked_by"] == "alice"

        res = client.post(f"{BASE}/{submission.id}/lock", json={"user": "bob"})
        assert res.status_code == 409
        assert res.get_json()["value"] == "alice"

    def test_release(self, client, submission):
        client.post(f"{BASE}/{submission.id}/lock", json={"user": "alice"})
        res = client.delete(f"{BASE}/{submission.id}/lock?user=alice")
        assert res.status_code == 200
        assert res.get_json() == {"released": True}

    def test_release_requires_user(self, client, submission):
        res = client.delete(f"{BASE}/{submission.id}/lock")
        assert res.status_code == 400

    def test_lock_requires_user(self, client, submission):
        res = client.post(f"{BASE}/{submission.id}/lock", json={})
        assert res.status_code == 422


# ═════════════════════════════════════════════════════════════════════════════
# Values
# ═════════════════════════════════════════════════════════════════════════════


class TestAnswersApi:
    def test_put_answer(self, client, submission):
        res = client.put(f"{BASE}/{submission.id}/answers/a1101", json={"value": 999})
        assert res.status_code == 200
        assert res.get_json()["value"] == "999"
        assert Answer.query.filter_by(submission_id=submission.id, xbrl_id="a1101").one().value == "999"

    def test_unknown_code(self, client, submission):
        res = client.put(f"{BASE}/{submission.id}/answers/zNOPE", json={"value": 1})
        assert res.status_code == 422

    def test_value_required(self, client, submission):
        res = client.put(f"{BASE}/{submission.id}/answers/a1101", json={})
        assert res.status_code == 400

    def test_frozen_rejected(self, client, submission):
        submission.status = "completed"
        db.session.commit()
        res = client.put(f"{BASE}/{submission.id}/answers/a1101", json={"value": 1})
        assert res.status_code == 422

    def test_recalculate(self, client, submission):
        res = client.post(f"{BASE}/{submission.id}/recalculate")
        assert res.status_code == 200
        assert res.get_json()["stats"]["calculated"]["created"] > 0

    def test_recalculate_flags_yoy_changes(self, client, organization, submission):
        previous = Submission(organization_id=organization.id, year=2024, status="completed")
        db.session.add(previous)
        db.session.flush()
        row = SubmissionValue(submission_id=previous.id, element_name="a1101", source="calculated")
        row.value = Scalar("10")
        db.session.add(row)
        db.session.commit()

        res = client.post(f"{BASE}/{submission.id}/recalculate")
        assert res.status_code == 200
        assert res.get_json()["flagged_for_review"] >= 1
        current = submission.values.filter_by(element_name="a1101").one()
        assert current.flagged_for_review is True
        assert current.previous_year_value == "10"

    def test_recalculate_frozen_422(self, client, submission):
        submission.status = "validated"
        db.session.commit()
        res = client.post(f"{BASE}/{submission.id}/recalculate")
        assert res.status_code == 422

    def test_sign(self, client, submission):
        res = client.post(f"{BASE}/{submission.id}/sign",
                          json={"name": "Marie Curie", "title": "Gérante"})
        assert res.status_code == 200
        assert res.get_json()["signatory_name"] == "Marie Curie"

    def test_sign_missing_title(self, client, submission):
        res = client.post(f"{BASE}/{submission.id}/sign", json={"name": "Marie Curie"})
        assert res.status_code == 422
        assert res.get_json()["details"] == {"title": "required"}


class TestValuesApi:
    def test_override_calculated_value(self, client, submission):
        client.post(f"{BASE}/{submission.id}/recalculate")
        res = client.put(f"{BASE}/{submission.id}/values/a1101",
                         json={"value": 42, "user": "alice", "reason": "late client"})
        data = res.get_json()
        assert res.status_code == 200
        assert data["changed"] is True
        assert data["overridden"] is True
        assert data["value"] == "42"

        client.post(f"{BASE}/{submission.id}/recalculate")
        row = submission.values.filter_by(element_name="a1101").one()
        assert row.value == Scalar("42")
        assert row.override_user_id == "alice"

    def test_unchanged_value_not_overridden(self, client, submission):
        client.post(f"{BASE}/{submission.id}/recalculate")
        res = client.put(f"{BASE}/{submission.id}/values/a1101", json={"value": "0"})
        assert res.get_json()["changed"] is False
        assert res.get_json()["overridden"] is False

    def test_missing_row_404(self, client, submission):
        res = client.put(f"{BASE}/{submission.id}/values/a1101", json={"value": 1})
        assert res.status_code == 404

    def test_frozen_rejected(self, client, submission):
        submission.status = "completed"
        db.session.commit()
        res = client.put(f"{BASE}/{submission.id}/values/a1101", json={"value": 1})
        assert res.status_code == 422


# ═════════════════════════════════════════════════════════════════════════════
# Validation & artifacts
# ═════════════════════════════════════════════════════════════════════════════


class TestValidateApi:
    def test_validate_in_review(self, client, organization):
        _employees(organization)
        sid = _create(client, organization)["id"]
        _transition(client, sid, "start_review")

        res = client.post(f"{BASE}/{sid}/validate")
        data = res.get_json()
        assert res.status_code == 200
        assert data["success"] is True
        assert data["status"] == "validated"
        assert data["validation"]["remote"] is None

    def test_validate_failure_reported(self, client, organization):
        sid = _create(client, organization)["id"]
        res = client.post(f"{BASE}/{sid}/validate")
        data = res.get_json()
        assert data["success"] is False
        assert data["errors"] == ["aC1102 is required"]


class TestXbrlDownload:
    def test_valid_draft_downloads(self, client, organization, submission):
        _employees(organization)
        res = client.get(f"{BASE}/{submission.id}/xbrl")
        assert res.status_code == 200
        assert res.mimetype == "application/xml"
        assert 'filename="amsf_2025_RCI12345.xml"' in res.headers["Content-Disposition"]
        assert b"<strix:aC1102" in res.data
        assert db.session.get(Submission, submission.id).generated_at is not None

    def test_invalid_draft_blocked(self, client, submission):
        res = client.get(f"{BASE}/{submission.id}/xbrl")
        assert res.status_code == 422
        assert res.get_json()["validation"]["valid"] is False
        assert submission.downloaded_unvalidated is False

    def test_invalid_draft_with_acknowledgement(self, client, submission):
        res = client.get(f"{BASE}/{submission.id}/xbrl?acknowledge_unvalidated=true")
        assert res.status_code == 200
        db.session.refresh(submission)
        assert submission.downloaded_unvalidated is True

    def test_frozen_submission_skips_validation(self, client, organization):
        _employees(organization)
        sid = _create(client, organization)["id"]
        _transition(client, sid, "start_review")
        client.post(f"{BASE}/{sid}/validate")

        res = client.get(f"{BASE}/{sid}/xbrl")
        assert res.status_code == 200


class TestMarkdownAndComparison:
    def test_markdown(self, client, submission):
        res = client.get(f"{BASE}/{submission.id}/markdown")
        assert res.status_code == 200
        assert res.mimetype == "text/markdown"
        assert res.data.decode().startswith("# AMSF Submission 2025")

    def test_comparison_first_year(self, client, submission):
        res = client.get(f"{BASE}/{submission.id}/comparison")
        data = res.get_json()
        assert res.status_code == 200
        assert data["first_submission"] is True
        assert data["significant_changes"] == []

    def test_comparison_with_previous_year(self, client, organization):
        previous = _create(client, organization, year=2024)["id"]
        current = _create(client, organization, year=2025)["id"]
        res = client.get(f"{BASE}/{current}/comparison")
        assert res.get_json()["previous_submission_id"] == previous
