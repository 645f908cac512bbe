"""Markdown export tests."""

from datetime import datetime, timezone

from amsf_filing.core.values import Dimensional, Scalar
from amsf_filing.services.markdown_renderer import (
    format_cell,
    render_markdown,
    suggested_markdown_filename,
)
from amsf_filing.services.value_merge import MergedValue

NOW = datetime(2026, 1, 15, 9, 30, tzinfo=timezone.utc)


def _values(**codes):
    out = {}
    for code, raw in codes.items():
        value = Dimensional(raw) if isinstance(raw, dict) else Scalar(raw)
        out[code] = MergedValue(code, value, "calculated")
    return out


class TestRenderMarkdown:
    def test_header(self, submission):
        md = render_markdown(submission, values=_values(a1101="3"), now=NOW)
        lines = md.splitlines()
        assert lines[0] == "# AMSF Submission 2025"
        assert "**Organization:** Agence du Port" in lines
        assert "**RCI Number:** RCI12345" in lines
        assert "**Status:** draft" in lines
        assert "**Generated:** 2026-01-15 09:30" in lines

    def test_section_table(self, submission):
        md = render_markdown(submission, values=_values(a1101="3", a1106B="500000"), now=NOW)
        assert "## 1.2 Clients Summary" in md
        assert "| Code | Description | Type | Value | Source |" in md
        assert "| `a1101` | Total number of clients | Integer | 3 | calculated |" in md
        assert "| Monetary | €500000.00 | calculated |" in md

    def test_empty_sections_skipped(self, submission):
        md = render_markdown(submission, values=_values(a1101="3"), now=NOW)
        assert "## 1.1" not in md
        assert "## S1" not in md

    def test_dimensional_cell(self, submission):
        md = render_markdown(submission, values=_values(a1401={"IT": "1", "FR": "2"}), now=NOW)
        assert "FR: 2, IT: 1" in md

    def test_footer(self, submission):
        md = render_markdown(submission, values={}, now=NOW)
        assert md.rstrip().endswith("*Generated from AMSF taxonomy version 2025*")

    def test_answer_source_shown(self, submission):
        values = {"aS1": MergedValue("aS1", Scalar("Marie | Curie"), "answer")}
        md = render_markdown(submission, values=values, now=NOW)
        assert "| Marie / Curie | answer |" in md

    def test_reads_merged_values(self, submission):
        md = render_markdown(submission, now=NOW)
        assert "| `aACTIVE` |" in md


class TestFormatCell:
    def test_empty(self):
        assert format_cell(Scalar(None), "integer") == "-"
        assert format_cell(Dimensional({}), "integer") == "-"

    def test_long_text_truncated(self):
        cell = format_cell(Scalar("x" * 100), "string")
        assert len(cell) == 40
        assert cell.endswith("...")

    def test_filename(self, submission):
        assert suggested_markdown_filename(submission) == "amsf_2025_RCI12345.md"
