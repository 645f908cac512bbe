"""
Submissions blueprint.

Endpoint groups:
  Build / read       POST /api/v1/submissions
                     GET  /api/v1/submissions/<id>
  Lifecycle          POST /api/v1/submissions/<id>/transition
  Lock               POST/DELETE /api/v1/submissions/<id>/lock
  Values             POST /api/v1/submissions/<id>/recalculate
                     PUT  /api/v1/submissions/<id>/values/<code>
                     PUT  /api/v1/submissions/<id>/answers/<code>
                     POST /api/v1/submissions/<id>/sign
  Validation         POST /api/v1/submissions/<id>/validate
  Artifacts          GET  /api/v1/submissions/<id>/xbrl?acknowledge_unvalidated=true
                     GET  /api/v1/submissions/<id>/markdown
  Comparison         GET  /api/v1/submissions/<id>/comparison

Service layer owns all business logic and commits. Domain exceptions are
translated to JSON responses by the handlers registered in create_app.
"""

import logging
from datetime import datetime, timezone

from flask import Blueprint, Response, jsonify, request

from amsf_filing.core.exceptions import SubmissionFrozenError, ValidationError
from amsf_filing.core.values import to_value
from amsf_filing.models import db
from amsf_filing.models.organization import Organization
from amsf_filing.models.submission import Submission
from amsf_filing.services.calculation_engine import (
    populate_settings_values,
    populate_submission_values,
)
from amsf_filing.services.markdown_renderer import render_markdown, suggested_markdown_filename
from amsf_filing.services.submission_builder import SubmissionBuilder, validate_submission
from amsf_filing.services.submission_lifecycle import (
    acquire_lock,
    available_events,
    release_lock,
    set_answer,
    sign,
    transition_submission,
)
from amsf_filing.services.validation_service import (
    ValidationOrchestrator,
    acknowledge_unvalidated,
)
from amsf_filing.services.xbrl_renderer import XbrlRenderer
from amsf_filing.services.yoy_comparator import YearOverYearComparator
from amsf_filing.taxonomy.manifest import load_manifest
from amsf_filing.utils.helpers import get_or_404, parse_flag

logger = logging.getLogger(__name__)

submission_bp = Blueprint("submission_bp", __name__, url_prefix="/api/v1/submissions")


def _body():
    return request.get_json(silent=True) or {}


def _user(data=None):
    data = data if data is not None else _body()
    return (data.get("user") or data.get("user_id") or request.args.get("user") or "").strip() or None


def _submission_payload(submission, **extra):
    d = submission.to_dict(include_values=True)
    d["available_events"] = available_events(submission)
    d.update(extra)
    return d


# ═════════════════════════════════════════════════════════════════════════
# Build / read
# ═════════════════════════════════════════════════════════════════════════


@submission_bp.route("", methods=["POST"])
def create_submission():
    """Find or create the submission for (organization_id, year) and populate it.

    Body: {organization_id, year}
    """
    data = _body()
    org_id = data.get("organization_id")
    if not org_id:
        return jsonify({"error": "organization_id is required"}), 400
    if data.get("year") is None:
        return jsonify({"error": "year is required"}), 400

    org, err = get_or_404(Organization, org_id)
    if err:
        return err

    builder = SubmissionBuilder(org, data["year"])
    result = builder.build()
    return jsonify(_submission_payload(result.record, stats=builder.stats)), 201


@submission_bp.route("/<int:sid>", methods=["GET"])
def get_submission(sid):
    submission, err = get_or_404(Submission, sid)
    if err:
        return err
    return jsonify(_submission_payload(submission)), 200


# ═════════════════════════════════════════════════════════════════════════
# Lifecycle and lock
# ═════════════════════════════════════════════════════════════════════════


@submission_bp.route("/<int:sid>/transition", methods=["POST"])
def transition(sid):
    """Body: {event, user?}"""
    submission, err = get_or_404(Submission, sid)
    if err:
        return err
    data = _body()
    event = (data.get("event") or "").strip()
    if not event:
        return jsonify({"error": "event is required"}), 400

    result = transition_submission(submission, event, user_id=_user(data))
    return jsonify(result), 200


@submission_bp.route("/<int:sid>/lock", methods=["POST"])
def lock(sid):
    submission, err = get_or_404(Submission, sid)
    if err:
        return err
    acquire_lock(submission, _user())
    return jsonify({"locked_by": submission.locked_by,
                    "locked_at": submission.locked_at.isoformat()}), 200


@submission_bp.route("/<int:sid>/lock", methods=["DELETE"])
def unlock(sid):
    submission, err = get_or_404(Submission, sid)
    if err:
        return err
    user = _user()
    if not user:
        return jsonify({"error": "user is required"}), 400
    released = release_lock(submission, user)
    return jsonify({"released": released}), 200


# ═════════════════════════════════════════════════════════════════════════
# Values
# ═════════════════════════════════════════════════════════════════════════


@submission_bp.route("/<int:sid>/recalculate", methods=["POST"])
def recalculate(sid):
    submission, err = get_or_404(Submission, sid)
    if err:
        return err
    stats = {
        "calculated": populate_submission_values(submission),
        "settings": populate_settings_values(submission),
    }
    flagged = YearOverYearComparator(submission).annotate()
    return jsonify({"submission_id": submission.id, "stats": stats, "flagged_for_review": flagged}), 200


@submission_bp.route("/<int:sid>/values/<code>", methods=["PUT"])
def override_value(sid, code):
    """Body: {value, user?, reason?}. A changed calculated value becomes overridden."""
    submission, err = get_or_404(Submission, sid)
    if err:
        return err
    if not submission.editable:
        raise SubmissionFrozenError(submission.id, submission.status)

    row = submission.values.filter_by(element_name=code).first()
    if row is None:
        return jsonify({"error": f"No value for {code} on submission {sid}"}), 404

    data = _body()
    if "value" not in data:
        return jsonify({"error": "value is required"}), 400
    changed = row.update_value(to_value(data["value"]), user_id=_user(data), reason=data.get("reason"))
    db.session.commit()
    if changed:
        logger.info("Value %s overridden on submission=%s", code, submission.id)
    return jsonify({**row.to_dict(), "changed": changed}), 200


@submission_bp.route("/<int:sid>/answers/<code>", methods=["PUT"])
def put_answer(sid, code):
    """Body: {value}. The code must exist in the submission's manifest."""
    submission, err = get_or_404(Submission, sid)
    if err:
        return err
    if not submission.editable:
        raise SubmissionFrozenError(submission.id, submission.status)

    manifest = load_manifest(submission.taxonomy_version)
    if code not in manifest:
        raise ValidationError(f"Unknown element code {code}", details={"code": "unknown"})

    data = _body()
    if "value" not in data:
        return jsonify({"error": "value is required"}), 400
    value = data["value"]
    answer = set_answer(submission, code, None if value is None else str(value))
    db.session.commit()
    logger.info("Answer %s set on submission=%s", code, submission.id)
    return jsonify(answer.to_dict()), 200


@submission_bp.route("/<int:sid>/sign", methods=["POST"])
def sign_submission(sid):
    """Body: {name, title}"""
    submission, err = get_or_404(Submission, sid)
    if err:
        return err
    data = _body()
    sign(submission, data.get("name"), data.get("title"))
    return jsonify(submission.to_dict()), 200


# ═════════════════════════════════════════════════════════════════════════
# Validation and artifacts
# ═════════════════════════════════════════════════════════════════════════


@submission_bp.route("/<int:sid>/validate", methods=["POST"])
def validate(sid):
    submission, err = get_or_404(Submission, sid)
    if err:
        return err
    result = validate_submission(submission, user_id=_user())
    return jsonify({
        "success": result.success,
        "errors": result.errors,
        "status": submission.status,
        "validation": result.record["validation"].to_dict(),
    }), 200


@submission_bp.route("/<int:sid>/xbrl", methods=["GET"])
def download_xbrl(sid):
    """Download the XBRL instance.

    Draft / in_review submissions are validated first. A failing result blocks
    the download unless ``acknowledge_unvalidated=true`` is passed, in which
    case the submission is flagged downloaded_unvalidated.
    """
    submission, err = get_or_404(Submission, sid)
    if err:
        return err

    if not submission.frozen:
        combined = ValidationOrchestrator().validate(submission)
        if not combined.valid:
            if not parse_flag(request.args.get("acknowledge_unvalidated")):
                return jsonify({
                    "error": "Submission did not pass validation",
                    "validation": combined.to_dict(),
                }), 422
            acknowledge_unvalidated(submission, user_id=_user({}))

    renderer = XbrlRenderer(submission)
    xml = renderer.render()
    submission.generated_at = datetime.now(timezone.utc)
    db.session.commit()

    return Response(
        xml,
        mimetype="application/xml",
        headers={"Content-Disposition": f'attachment; filename="{renderer.suggested_filename}"'},
    )


@submission_bp.route("/<int:sid>/markdown", methods=["GET"])
def download_markdown(sid):
    submission, err = get_or_404(Submission, sid)
    if err:
        return err
    content = render_markdown(submission)
    return Response(
        content,
        mimetype="text/markdown",
        headers={"Content-Disposition": f'inline; filename="{suggested_markdown_filename(submission)}"'},
    )


@submission_bp.route("/<int:sid>/comparison", methods=["GET"])
def comparison(sid):
    submission, err = get_or_404(Submission, sid)
    if err:
        return err
    return jsonify(YearOverYearComparator(submission).to_dict()), 200
