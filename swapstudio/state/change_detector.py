"""
Unsaved-change detection for the raw configuration editor.

Two documents are equal when their canonical JSON forms (sorted keys,
fixed indentation) are equal, so reformatting alone never counts as a change.
"""

import json
from typing import Any


def render_config(document: Any) -> str:
    """Editor text for a configuration tree, key order preserved."""
    if document is None:
        return ""
    return json.dumps(document, indent=2, ensure_ascii=False)


def canonicalize(document: Any) -> str:
    """
    Canonical text for a document or for editor text.

    Text is parsed first; text that does not parse is compared as-is
    (whitespace-stripped).
    """
    if isinstance(document, str):
        text = document.strip()
        if not text:
            return ""
        try:
            document = json.loads(text)
        except ValueError:
            return text
    return json.dumps(document, sort_keys=True, indent=2, ensure_ascii=False)


def dirty(original: Any, current: Any) -> bool:
    """True when current differs from original in content."""
    return canonicalize(original) != canonicalize(current)
