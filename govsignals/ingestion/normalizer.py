"""Text cleanup for feed titles and bodies."""

from __future__ import annotations

import re

_TAG_RE = re.compile(r"<[^>]*>")
_WHITESPACE_RE = re.compile(r"\s+")

# Only these entities are decoded; anything else is left as-is.
_ENTITIES = (
    ("&nbsp;", " "),
    ("&amp;", "&"),
    ("&lt;", "<"),
    ("&gt;", ">"),
    ("&quot;", '"'),
    ("&#039;", "'"),
)


def clean_text(text: str | None) -> str:
    """Strip tags, decode common entities and collapse whitespace."""
    if not text:
        return ""

    cleaned = _TAG_RE.sub("", text)
    for entity, replacement in _ENTITIES:
        cleaned = cleaned.replace(entity, replacement)
    return _WHITESPACE_RE.sub(" ", cleaned).strip()
