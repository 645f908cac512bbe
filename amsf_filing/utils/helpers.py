"""Shared blueprint helpers.

get_or_404:  tuple-return lookup, never abort()
parse_flag:  query-string / JSON boolean parsing
"""
import logging

from flask import jsonify

from amsf_filing.models import db

logger = logging.getLogger(__name__)

_TRUE_FLAGS = {"1", "true", "yes", "on"}


def get_or_404(model, pk, label=None):
    """Fetch a model instance by primary key or return a 404 error tuple.

    - Success: (obj, None)
    - Failure: (None, (jsonify_response, 404))

        obj, err = get_or_404(Submission, sid)
        if err:
            return err
    """
    label = label or model.__name__
    obj = db.session.get(model, pk)
    if not obj:
        return None, (jsonify({"error": f"{label} not found"}), 404)
    return obj, None


def parse_flag(value) -> bool:
    """Truthy for true/1/yes/on (any case) or a real bool; False otherwise."""
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    return str(value).strip().lower() in _TRUE_FLAGS
