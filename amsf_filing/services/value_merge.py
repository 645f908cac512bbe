"""
Value Merge Layer.

Reconciles calculated, settings-backed and manual values into the final
answer set a renderer or validator consumes.

Precedence (highest first):
    Answer (manual free text) > SubmissionValue (manual / from_settings / calculated)

Snapshot rule:
    draft                          → recompute, then read
    in_review / validated / completed → read persisted rows only

Usage:
    from amsf_filing.services.value_merge import merged_answers

    for item in merged_answers(submission):
        print(item.code, item.value, item.source)
"""

import logging
from dataclasses import dataclass

from amsf_filing.core.values import Dimensional, Scalar
from amsf_filing.services.calculation_engine import populate_submission_values
from amsf_filing.taxonomy.manifest import load_manifest

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MergedValue:
    code: str
    value: Scalar | Dimensional
    source: str

    @property
    def is_empty(self):
        return self.value.is_empty

    def to_dict(self):
        return {"element_name": self.code, "value": self.value.to_json(), "source": self.source}


def refresh_if_draft(submission):
    """Recompute a draft before it is read. Other statuses keep their snapshot."""
    if submission.status == "draft":
        populate_submission_values(submission)
        return True
    return False


def persisted_values(submission):
    """{element_name: SubmissionValue} as stored, no recomputation."""
    return {row.element_name: row for row in submission.values}


def merged_answers(submission, manifest=None, refresh=True):
    """Final answer set in manifest order.

    A manual Answer always wins over a SubmissionValue with the same code.
    Codes the manifest does not define are dropped and logged.
    """
    if refresh:
        refresh_if_draft(submission)
    manifest = manifest or load_manifest(submission.taxonomy_version)

    merged = {}
    for code, row in persisted_values(submission).items():
        merged[code] = MergedValue(code, row.value, row.source)
    for answer in submission.answers:
        merged[answer.xbrl_id] = MergedValue(answer.xbrl_id, Scalar(answer.value), "answer")

    unknown = sorted(set(merged) - set(manifest.codes))
    if unknown:
        logger.warning(
            "Submission %s has values for unknown elements %s; dropped",
            submission.id, ", ".join(unknown),
        )

    return [merged[code] for code in manifest.codes if code in merged]


def merged_map(submission, manifest=None, refresh=True):
    """Same as merged_answers, keyed by element code."""
    return {item.code: item for item in merged_answers(submission, manifest, refresh)}
