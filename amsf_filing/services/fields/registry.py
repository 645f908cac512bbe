"""
Field calculator registry.

Each calculator computes one taxonomy element for one (organization, year):

    @field("a1101")
    def total_clients(ctx):
        return ctx.clients().count()

``FIELD_CALCULATORS`` is the explicit code → callable map the calculation
engine iterates. ``check_completeness`` compares it with a manifest.
"""

from __future__ import annotations

FIELD_CALCULATORS: dict = {}


def field(code: str):
    """Decorator registering a calculator under a taxonomy element code."""
    def decorator(fn):
        if code in FIELD_CALCULATORS:
            raise ValueError(f"Duplicate field calculator for {code}")
        FIELD_CALCULATORS[code] = fn
        fn.element_code = code
        return fn
    return decorator


def check_completeness(manifest) -> dict:
    """Compare registered calculators with ``manifest``.

    Returns:
        {"missing": [codes in manifest without a calculator],
         "unknown": [registered codes the manifest does not define]}
    """
    registered = set(FIELD_CALCULATORS)
    missing = [c for c in manifest.codes if c not in registered]
    unknown = sorted(c for c in registered if c not in manifest)
    return {"missing": missing, "unknown": unknown}


def setting_field(code: str, kind: str, default=None, key: str | None = None):
    """Register a calculator that answers ``code`` straight from a Setting.

    ``kind`` selects the FieldContext reader: "flag", "text", "int" or "decimal".
    The setting key defaults to the lower-cased element code.
    """
    key = key or code.lower()
    reader = f"setting_{kind}"

    def calculator(ctx):
        return getattr(ctx, reader)(key, default)

    calculator.__name__ = f"setting_{code}"
    calculator.setting_key = key
    return field(code)(calculator)
