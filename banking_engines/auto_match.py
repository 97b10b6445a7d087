"""
banking_engines.auto_match -- Decide whether a ranked suggestion list has a clear winner.

Responsibility:
    Given suggestions for one transaction, pick the single payment to match
    automatically, or decline.  The sweep over an account (fetching
    candidates, applying the match transition, counting) lives in
    ``BankingService.auto_match_transactions``; this module is the decision.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - A match is selected only if the best confidence is at or above the
      threshold AND no runner-up reaches ``best * ambiguity_ratio``.
    - Suggestions are ranked here before deciding, so callers may pass them
      in any order.
"""

from collections.abc import Sequence
from dataclasses import dataclass
from decimal import Decimal

from banking_engines.matching import CandidateMatcher, MatchSuggestion
from banking_kernel.logging_config import get_logger

logger = get_logger("engines.auto_match")


@dataclass(frozen=True)
class AutoMatchPolicy:
    """Clear-winner rule for unattended matching."""

    threshold: Decimal
    ambiguity_ratio: Decimal = Decimal("0.9")

    def __post_init__(self) -> None:
        if not (Decimal("0") <= self.threshold <= Decimal("1")):
            raise ValueError("threshold must be between 0 and 1")
        if not (Decimal("0") < self.ambiguity_ratio <= Decimal("1")):
            raise ValueError("ambiguity_ratio must be in (0, 1]")

    def select(self, suggestions: Sequence[MatchSuggestion]) -> MatchSuggestion | None:
        """Return the suggestion to apply, or None when there is no clear winner."""
        ranked = CandidateMatcher.rank(suggestions, limit=2)
        if not ranked:
            return None

        best = ranked[0]
        if best.confidence < self.threshold:
            return None

        if len(ranked) > 1 and ranked[1].confidence >= best.confidence * self.ambiguity_ratio:
            logger.debug("auto_match_ambiguous", extra={
                "best_payment_id": str(best.payment_id),
                "best_confidence": str(best.confidence),
                "runner_up_confidence": str(ranked[1].confidence),
            })
            return None

        return best
