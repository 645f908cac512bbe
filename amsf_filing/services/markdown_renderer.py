"""Markdown rendering of a submission, one table per questionnaire section."""

import logging
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation

from amsf_filing.core.exceptions import RenderError
from amsf_filing.core.values import Dimensional
from amsf_filing.services.value_merge import merged_map
from amsf_filing.taxonomy.manifest import load_manifest

logger = logging.getLogger(__name__)

TYPE_LABELS = {
    "integer": "Integer",
    "monetary": "Monetary",
    "decimal": "Decimal",
    "boolean": "Oui/Non",
    "string": "Text",
}

EMPTY_CELL = "-"
_MAX_DESCRIPTION = 60
_MAX_TEXT = 40


def _truncate(text, limit):
    text = str(text).replace("|", "/").replace("\n", " ")
    return text if len(text) <= limit else text[: limit - 3] + "..."


def _format_scalar(text, value_type):
    if text is None or str(text).strip() == "":
        return EMPTY_CELL
    if value_type == "monetary":
        try:
            return f"€{Decimal(str(text)):.2f}"
        except InvalidOperation:
            return _truncate(text, _MAX_TEXT)
    return _truncate(text, _MAX_TEXT)


def format_cell(value, value_type):
    if isinstance(value, Dimensional):
        if value.is_empty:
            return EMPTY_CELL
        return ", ".join(f"{k}: {_format_scalar(v, value_type)}" for k, v in value.sorted_items())
    return _format_scalar(value.text, value_type)


def render_markdown(submission, manifest=None, values=None, now=None) -> str:
    """
    Human-readable export of the merged answer set.

    Rows with no value are left out; sections keep manifest order.
    """
    try:
        manifest = manifest or load_manifest(submission.taxonomy_version)
        values = values if values is not None else merged_map(submission, manifest)
        org = submission.organization
        stamp = submission.generated_at or now or datetime.now(timezone.utc)

        lines = [
            f"# AMSF Submission {submission.year}",
            "",
            f"**Organization:** {org.name}",
            f"**RCI Number:** {org.rci_number}",
            f"**Status:** {submission.status}",
            f"**Generated:** {stamp.strftime('%Y-%m-%d %H:%M')}",
            "",
            "---",
            "",
        ]

        for section in manifest.sections:
            rows = []
            for element in manifest.elements_for(section.id):
                item = values.get(element.code)
                if item is None or item.value.is_empty:
                    continue
                rows.append(
                    f"| `{element.code}` | {_truncate(element.label, _MAX_DESCRIPTION)} "
                    f"| {TYPE_LABELS[element.value_type]} "
                    f"| {format_cell(item.value, element.value_type)} | {item.source} |"
                )
            if not rows:
                continue
            lines += [
                f"## {section.id} {section.title}",
                "",
                "| Code | Description | Type | Value | Source |",
                "|------|-------------|------|-------|--------|",
                *rows,
                "",
            ]

        lines += ["---", "", f"*Generated from AMSF taxonomy version {manifest.version}*", ""]
        return "\n".join(lines)
    except Exception as e:
        logger.exception("Markdown render failed for submission=%s", submission.id)
        raise RenderError(str(e), format="markdown", submission_id=submission.id, cause=e) from e


def suggested_markdown_filename(submission):
    return f"amsf_{submission.year}_{submission.organization.rci_number}.md"
