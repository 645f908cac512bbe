"""
Survey field values.

Every taxonomy element carries either a single scalar (text or None) or a
mapping dimension-key → text. The two shapes are kept distinct so renderers
and merges never have to guess.

Usage:
    from amsf_filing.core.values import to_value, Scalar, Dimensional

    to_value(3)                  # Scalar("3")
    to_value({"FR": 2})          # Dimensional({"FR": "2"})
    to_value(None).is_empty      # True
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal


@dataclass(frozen=True)
class Scalar:
    text: str | None = None

    kind = "scalar"

    @property
    def is_empty(self) -> bool:
        return self.text is None or str(self.text).strip() == ""

    def to_json(self):
        return self.text


@dataclass(frozen=True)
class Dimensional:
    entries: dict = field(default_factory=dict)

    kind = "dimensional"

    @property
    def is_empty(self) -> bool:
        return not self.entries

    def sorted_items(self):
        return sorted(self.entries.items())

    def to_json(self):
        return dict(self.sorted_items())


def _format_scalar(raw) -> str | None:
    if raw is None:
        return None
    if isinstance(raw, bool):
        return "Oui" if raw else "Non"
    if isinstance(raw, Decimal):
        return f"{raw:.2f}"
    if isinstance(raw, float):
        return f"{Decimal(str(raw)):.2f}"
    return str(raw)


def to_value(raw) -> Scalar | Dimensional:
    """Normalise a calculator result into a Scalar or Dimensional value."""
    if isinstance(raw, (Scalar, Dimensional)):
        return raw
    if isinstance(raw, dict):
        return Dimensional({str(k): _format_scalar(v) for k, v in raw.items() if k is not None})
    return Scalar(_format_scalar(raw))
