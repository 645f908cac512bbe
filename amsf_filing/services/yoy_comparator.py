"""
Year-over-Year Comparator.

Compares a submission's merged values with the same organization's
submission for ``year - 1`` and flags material change.

    change_percent = (current - previous) / previous × 100, 2 places
                     None when previous is 0 / absent or a side is non-numeric
    significant    = |change_percent| > 25   (exactly 25 is not significant)

Usage:
    from amsf_filing.services.yoy_comparator import YearOverYearComparator

    cmp = YearOverYearComparator(submission)
    cmp.first_submission          # False
    cmp.comparison_for("a1101")   # {"element_name": "a1101", "change_percent": Decimal("20.00"), ...}
    cmp.significant_changes()     # [...]
    cmp.annotate()                # rows flagged, used by POST /<id>/recalculate
"""

import logging
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from amsf_filing.core.values import Scalar
from amsf_filing.middleware.logging_config import submission_logger
from amsf_filing.models import db
from amsf_filing.models.submission import Submission
from amsf_filing.services.value_merge import merged_map
from amsf_filing.taxonomy.manifest import load_manifest

logger = logging.getLogger(__name__)

SIGNIFICANCE_THRESHOLD = Decimal("25")


def _number(value):
    if not isinstance(value, Scalar) or value.is_empty:
        return None
    try:
        number = Decimal(str(value.text).strip())
    except InvalidOperation:
        return None
    return number if number.is_finite() else None


def change_percent(current, previous):
    """Percent change between two values, or None when it cannot be computed."""
    current_num = _number(current) if current is not None else None
    previous_num = _number(previous) if previous is not None else None
    if current_num is None or previous_num is None or previous_num == 0:
        return None
    pct = (current_num - previous_num) / previous_num * 100
    return pct.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def significant(pct) -> bool:
    if pct is None:
        return False
    return abs(pct) > SIGNIFICANCE_THRESHOLD


class YearOverYearComparator:
    def __init__(self, submission):
        self.submission = submission
        self.manifest = load_manifest(submission.taxonomy_version)
        self._previous = None
        self._previous_loaded = False
        self._current_values = None
        self._previous_values = None

    @property
    def previous_submission(self):
        if not self._previous_loaded:
            self._previous = Submission.query.filter_by(
                organization_id=self.submission.organization_id,
                year=self.submission.year - 1,
            ).first()
            self._previous_loaded = True
        return self._previous

    @property
    def first_submission(self) -> bool:
        return self.previous_submission is None

    @property
    def current_values(self):
        if self._current_values is None:
            self._current_values = merged_map(self.submission, self.manifest)
        return self._current_values

    @property
    def previous_values(self):
        if self._previous_values is None:
            prev = self.previous_submission
            self._previous_values = (
                merged_map(prev, self.manifest, refresh=False) if prev else {}
            )
        return self._previous_values

    def comparison_for(self, element_name):
        current = self.current_values.get(element_name)
        previous = self.previous_values.get(element_name)
        current_value = current.value if current else None
        previous_value = previous.value if previous else None
        pct = change_percent(current_value, previous_value)
        return {
            "element_name": element_name,
            "current_value": current_value.to_json() if current_value else None,
            "previous_value": previous_value.to_json() if previous_value else None,
            "change_percent": pct,
            "significant": significant(pct),
        }

    def comparisons(self):
        return [self.comparison_for(code) for code in self.current_values]

    def significant_changes(self):
        if self.first_submission:
            return []
        return [c for c in self.comparisons() if c["significant"]]

    def annotate(self):
        """Write previous_year_value and flagged_for_review onto editable rows."""
        if self.first_submission or not self.submission.editable:
            return 0
        flagged = 0
        for row in self.submission.values:
            comparison = self.comparison_for(row.element_name)
            prev = comparison["previous_value"]
            row.previous_year_value = None if prev is None or isinstance(prev, dict) else str(prev)
            row.flagged_for_review = comparison["significant"]
            flagged += int(comparison["significant"])
        db.session.commit()
        submission_logger(logger, self.submission).info("YoY annotated flagged=%d", flagged)
        return flagged

    def to_dict(self):
        changes = self.significant_changes()
        return {
            "submission_id": self.submission.id,
            "year": self.submission.year,
            "previous_submission_id": self.previous_submission.id if self.previous_submission else None,
            "first_submission": self.first_submission,
            "significant_changes": [_serializable(c) for c in changes],
            "comparisons": [_serializable(c) for c in self.comparisons()] if not self.first_submission else [],
        }


def _serializable(comparison):
    pct = comparison["change_percent"]
    return {**comparison, "change_percent": float(pct) if pct is not None else None}
