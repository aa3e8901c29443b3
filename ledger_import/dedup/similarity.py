"""Similarity primitives used by the duplicate detector."""

from __future__ import annotations

from datetime import date

from ledger_import.parsers.base import normalize


def jaccard(a: frozenset[str] | set[str], b: frozenset[str] | set[str]) -> float:
    """Token-set overlap |A∩B| / |A∪B|.

    Two empty sets count as a full match (1.0).
    """
    if not a and not b:
        return 1.0
    return len(a & b) / len(a | b)


def days_between(d1: date, d2: date) -> float:
    """Absolute difference in calendar days."""
    return float(abs((d1 - d2).days))


def substring_containment(a: str | None, b: str | None) -> bool:
    """Return True if either normalized description contains the other.

    Catches truncated or expanded descriptions ("office rent" vs
    "office rent july"). An empty description only contains another
    empty one.
    """
    norm_a = normalize(a)
    norm_b = normalize(b)
    if not norm_a or not norm_b:
        return norm_a == norm_b
    return norm_a in norm_b or norm_b in norm_a
