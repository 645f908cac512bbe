"""
Calculation Engine.

Runs every registered field calculator for one (organization, year) and
persists the results as SubmissionValue rows.

Persistence rules (populate_submission_values):
  - missing row                          → created, source=calculated
  - calculated row, not overridden       → updated when the value changed
  - overridden / from_settings / manual  → untouched
  - validated or completed submission    → SubmissionFrozenError, nothing recomputed

Everything is written in one transaction: on error the session is rolled
back and no partial population survives.

Usage:
    from amsf_filing.services.calculation_engine import (
        calculate_all, populate_submission_values,
    )

    values = calculate_all(org, 2025)              # {"aACTIVE": Scalar("Oui"), ...}
    stats = populate_submission_values(submission) # {"created": 298, "updated": 0, ...}
"""

import logging
from collections import OrderedDict

from amsf_filing.core.exceptions import SubmissionFrozenError, ValidationError
from amsf_filing.core.values import to_value
from amsf_filing.middleware.logging_config import submission_logger
from amsf_filing.models import db
from amsf_filing.models.organization import Setting, cast_value
from amsf_filing.models.submission import SubmissionValue
from amsf_filing.services.fields import FIELD_CALCULATORS, FieldContext
from amsf_filing.taxonomy.manifest import load_manifest

logger = logging.getLogger(__name__)


def calculate_field(code, organization, year):
    """Compute one element. Raises ValidationError for an unregistered code."""
    calculator = FIELD_CALCULATORS.get(code)
    if calculator is None:
        raise ValidationError(f"No calculator registered for element {code}",
                              details={"element_name": code})
    return to_value(calculator(FieldContext(organization, year)))


def calculate_all(organization, year, manifest=None):
    """Compute every manifest element that has a calculator, in manifest order.

    Nothing is persisted.
    """
    manifest = manifest or load_manifest()
    ctx = FieldContext(organization, year)
    results = OrderedDict()
    for code in manifest.codes:
        calculator = FIELD_CALCULATORS.get(code)
        if calculator is None:
            continue
        results[code] = to_value(calculator(ctx))
    return results


def _existing_rows(submission):
    return {row.element_name: row for row in submission.values}


def populate_submission_values(submission):
    """Upsert calculated values for ``submission``. Idempotent.

    Returns:
        {"created": int, "updated": int, "unchanged": int, "skipped": int}
    """
    if submission.frozen:
        raise SubmissionFrozenError(submission.id, submission.status)

    manifest = load_manifest(submission.taxonomy_version)
    stats = {"created": 0, "updated": 0, "unchanged": 0, "skipped": 0}

    try:
        computed = calculate_all(submission.organization, submission.year, manifest)
        existing = _existing_rows(submission)

        for code, value in computed.items():
            row = existing.get(code)
            if row is None:
                row = SubmissionValue(
                    submission_id=submission.id,
                    element_name=code,
                    source="calculated",
                )
                row.value = value
                db.session.add(row)
                stats["created"] += 1
            elif row.source != "calculated" or row.overridden:
                stats["skipped"] += 1
            elif row.value != value:
                row.value = value
                stats["updated"] += 1
            else:
                stats["unchanged"] += 1

        db.session.commit()
    except Exception:
        db.session.rollback()
        logger.exception("Population failed for submission=%s", submission.id)
        raise

    submission_logger(logger, submission).info(
        "Populated calculated values created=%d updated=%d skipped=%d",
        stats["created"], stats["updated"], stats["skipped"],
    )
    return stats


def _setting_value(setting):
    """Boolean settings become Oui/Non; anything else is written verbatim."""
    if setting.value_type == "boolean":
        return to_value(cast_value(setting.value, "boolean"))
    text = setting.value.strip() if setting.value else None
    return to_value(text or None)


def populate_settings_values(submission):
    """Write settings mapped to an element (``xbrl_element``) as from_settings rows.

    Confirmed and overridden rows are left alone. Settings pointing at a code
    the manifest does not define are skipped and logged.
    """
    if submission.frozen:
        raise SubmissionFrozenError(submission.id, submission.status)

    manifest = load_manifest(submission.taxonomy_version)
    stats = {"created": 0, "updated": 0, "skipped": 0}

    settings = (
        Setting.query
        .filter(
            Setting.organization_id == submission.organization_id,
            Setting.xbrl_element.isnot(None),
        )
        .order_by(Setting.key)
        .all()
    )

    try:
        existing = _existing_rows(submission)
        for setting in settings:
            code = setting.xbrl_element
            if code not in manifest:
                logger.warning(
                    "Setting %s maps to unknown element %s; skipped", setting.key, code,
                )
                stats["skipped"] += 1
                continue

            value = _setting_value(setting)
            row = existing.get(code)
            if row is None:
                row = SubmissionValue(
                    submission_id=submission.id, element_name=code, source="from_settings",
                )
                row.value = value
                db.session.add(row)
                existing[code] = row
                stats["created"] += 1
            elif row.confirmed or row.overridden or row.source == "manual":
                stats["skipped"] += 1
            elif row.source != "from_settings" or row.value != value:
                row.source = "from_settings"
                row.value = value
                stats["updated"] += 1

        db.session.commit()
    except Exception:
        db.session.rollback()
        logger.exception("Settings population failed for submission=%s", submission.id)
        raise

    submission_logger(logger, submission).info(
        "Populated settings values created=%d updated=%d skipped=%d",
        stats["created"], stats["updated"], stats["skipped"],
    )
    return stats
