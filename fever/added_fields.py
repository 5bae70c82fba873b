"""Preparation of extra key-value pairs to splice into JSON text."""

from __future__ import annotations

from fever.util import escape_json


def preprocess_added_fields(fields):
    """Render ``fields`` as a JSON snippet that replaces a closing brace.

    Each pair becomes ``,"key":"value"`` and the snippet ends with ``}``, so
    it can stand in for the final brace of a JSON object. With no fields the
    result is just ``}``.
    """
    pairs = "".join(
        f",{escape_json(key)}:{escape_json(value)}" for key, value in fields.items()
    )
    return pairs + "}"