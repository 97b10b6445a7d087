"""
Module: banking_engines
Responsibility:
    Package entrypoint that re-exports the public symbols of the pure
    matching engines.  Canonical import surface for banking_modules.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import banking_kernel (logging) and sibling engine modules.
    MUST NOT import banking_ingestion or banking_modules.

Invariants enforced:
    - Purity: engines never read the clock; dates are passed in.
    - Decimal-only arithmetic for amounts and confidences.
    - Determinism: identical inputs always produce identical outputs.
"""

from banking_engines.auto_match import AutoMatchPolicy
from banking_engines.matching import (
    CandidateMatcher,
    MatcherWeights,
    MatchSuggestion,
    PaymentForMatching,
)
from banking_engines.similarity import normalize_name, normalize_reference, similarity

__all__ = [
    "AutoMatchPolicy",
    "CandidateMatcher",
    "MatcherWeights",
    "MatchSuggestion",
    "PaymentForMatching",
    "normalize_name",
    "normalize_reference",
    "similarity",
]
