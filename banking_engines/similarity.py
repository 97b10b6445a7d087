"""
banking_engines.similarity -- String normalization and edit-distance similarity.

Responsibility:
    Normalize references and counterparty names so that formatting noise
    (case, punctuation, legal-form suffixes) does not hide a match, and score
    two strings by normalized Levenshtein distance.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  Edit distance comes from
    ``rapidfuzz``.
"""

import re

from rapidfuzz.distance import Levenshtein

# Trailing legal-form suffixes, stripped once each in this order.
COMPANY_SUFFIXES: tuple[str, ...] = (
    " oü",
    " as",
    " ou",
    " llc",
    " ltd",
    " inc",
    " gmbh",
    " ag",
)

_NON_ALNUM = re.compile(r"[^a-z0-9]")
_WHITESPACE = re.compile(r"\s+")


def similarity(a: str, b: str) -> float:
    """
    Return ``1 - levenshtein(a, b) / max(len(a), len(b))``.

    Two empty strings are identical (1.0); exactly one empty string scores 0.0.
    """
    if a == b:
        return 1.0
    if not a or not b:
        return 0.0
    distance = Levenshtein.distance(a, b)
    return 1.0 - distance / max(len(a), len(b))


def normalize_reference(value: str) -> str:
    """Lowercase and drop everything except ASCII letters and digits."""
    return _NON_ALNUM.sub("", value.lower())


def normalize_name(value: str) -> str:
    """Lowercase, trim, strip trailing legal suffixes and collapse whitespace."""
    name = value.lower().strip()
    for suffix in COMPANY_SUFFIXES:
        if name.endswith(suffix):
            name = name[: -len(suffix)]
    return _WHITESPACE.sub(" ", name).strip()
