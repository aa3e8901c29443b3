"""Text normalization shared by the classifiers and the duplicate detector."""

from __future__ import annotations

import re

_NON_ALNUM_RE = re.compile(r"[^a-z0-9 ]")
_WHITESPACE_RE = re.compile(r"\s+")


def normalize(text: str | None) -> str:
    """Normalize free text for comparison.

    - Lowercase
    - Replace anything outside [a-z0-9 ] with a space
    - Collapse whitespace and trim
    """
    if not text:
        return ""
    text = _NON_ALNUM_RE.sub(" ", text.lower())
    text = _WHITESPACE_RE.sub(" ", text)
    return text.strip()


def token_set(text: str | None) -> frozenset[str]:
    """Return the set of non-empty tokens of the normalized text."""
    normalized = normalize(text)
    if not normalized:
        return frozenset()
    return frozenset(normalized.split(" "))


def lower(text: str | None) -> str:
    """Lowercase without stripping punctuation.

    Keyword rules match against this form so that names such as
    "repairs & maintenance" keep their ampersand.
    """
    return text.lower() if text else ""


def contains_any(text: str, keywords) -> bool:
    return any(keyword in text for keyword in keywords)
