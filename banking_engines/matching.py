"""
banking_engines.matching -- Multi-signal confidence scoring of payments against a bank transaction.

Responsibility:
    Given one bank transaction and a set of candidate payments, compute a
    confidence in [0, 1] for each candidate from independent weighted
    signals (amount, date proximity, reference, counterparty name, payment
    number in description) and produce ranked ``MatchSuggestion`` objects
    with a human-readable reason string.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import ``banking_engines.similarity`` and kernel logging.

Invariants enforced:
    - Replay safety: identical inputs produce identical outputs; no clock
      access, no internal state.
    - Decimal arithmetic throughout; confidence is a ``Decimal`` clamped to
      at most 1.  Suggestions below ``min_confidence`` are never emitted.
    - Signal labels appear in ``match_reason`` in a fixed order: amount,
      date, reference, name, payment number.

Failure modes:
    - ValueError from ``MatcherWeights`` on negative weights, a non-positive
      ``max_date_diff_days`` or ``min_confidence`` outside [0, 1].
    - A payment with zero amount contributes no amount signal unless the
      transaction amount is also zero.

Usage:
    from banking_engines.matching import CandidateMatcher, MatcherWeights

    matcher = CandidateMatcher(MatcherWeights())
    ranked = matcher.rank(matcher.score(transaction, payments), limit=5)
"""

from __future__ import annotations

import time
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Protocol
from uuid import UUID

from banking_engines.similarity import normalize_name, normalize_reference, similarity
from banking_kernel.logging_config import get_logger

logger = get_logger("engines.matching")

_ONE = Decimal("1")
_ZERO = Decimal("0")
_HALF = Decimal("0.5")
_WITHIN_1_PCT_FACTOR = Decimal("0.8")

# Similarity cut-offs: (full weight, half weight)
REFERENCE_THRESHOLDS = (0.8, 0.5)
NAME_THRESHOLDS = (0.7, 0.4)


class MatchableTransaction(Protocol):
    """The transaction fields the matcher reads."""

    transaction_date: date
    amount: Decimal
    description: str
    reference: str
    counterparty_name: str


@dataclass(frozen=True)
class PaymentForMatching:
    """
    Read-only projection of an unallocated payment.

    ``amount`` is signed as stored by the payments system; the matcher only
    ever compares absolute values.
    """

    id: UUID
    payment_number: str
    payment_date: date
    amount: Decimal
    contact_name: str = ""
    reference: str = ""


@dataclass(frozen=True)
class MatcherWeights:
    """
    Tunable signal weights and cut-offs.

    Immutable configuration; defaults are the production weights.
    """

    exact_amount_bonus: Decimal = Decimal("0.5")
    date_proximity_weight: Decimal = Decimal("0.2")
    reference_match_weight: Decimal = Decimal("0.2")
    name_match_weight: Decimal = Decimal("0.1")
    payment_number_bonus: Decimal = Decimal("0.1")
    min_confidence: Decimal = Decimal("0.3")
    max_date_diff_days: int = 7

    def __post_init__(self) -> None:
        for name in (
            "exact_amount_bonus",
            "date_proximity_weight",
            "reference_match_weight",
            "name_match_weight",
            "payment_number_bonus",
        ):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} cannot be negative")
        if not (_ZERO <= self.min_confidence <= _ONE):
            raise ValueError("min_confidence must be between 0 and 1")
        if self.max_date_diff_days <= 0:
            raise ValueError("max_date_diff_days must be positive")

    def with_min_confidence(self, min_confidence: Decimal) -> MatcherWeights:
        """Copy of these weights with a different emission threshold."""
        return MatcherWeights(
            exact_amount_bonus=self.exact_amount_bonus,
            date_proximity_weight=self.date_proximity_weight,
            reference_match_weight=self.reference_match_weight,
            name_match_weight=self.name_match_weight,
            payment_number_bonus=self.payment_number_bonus,
            min_confidence=min_confidence,
            max_date_diff_days=self.max_date_diff_days,
        )


@dataclass(frozen=True)
class MatchSuggestion:
    """
    A proposed pairing of the scored transaction with one payment.

    Ephemeral: computed on request, never stored.
    """

    payment_id: UUID
    payment_number: str
    payment_date: date
    amount: Decimal
    contact_name: str
    reference: str
    confidence: Decimal
    match_reason: str

    @property
    def reasons(self) -> tuple[str, ...]:
        return tuple(self.match_reason.split(", ")) if self.match_reason else ()


class CandidateMatcher:
    """
    Scores candidate payments against a bank transaction.

    Stateless apart from its weights; safe to share.
    """

    def __init__(self, weights: MatcherWeights | None = None):
        self.weights = weights or MatcherWeights()

    def score(
        self,
        transaction: MatchableTransaction,
        payments: Sequence[PaymentForMatching],
    ) -> list[MatchSuggestion]:
        """
        Score every payment and keep those at or above ``min_confidence``.

        Returns:
            Suggestions in the order the payments were given.
        """
        t0 = time.monotonic()
        logger.debug("match_search_started", extra={
            "candidate_count": len(payments),
            "transaction_amount": transaction.amount,
        })

        suggestions: list[MatchSuggestion] = []
        for payment in payments:
            suggestion = self._evaluate(transaction, payment)
            if suggestion is not None:
                suggestions.append(suggestion)

        logger.info("match_search_completed", extra={
            "candidates_evaluated": len(payments),
            "suggestions_found": len(suggestions),
            "top_confidence": str(max((s.confidence for s in suggestions), default=_ZERO)),
            "duration_ms": round((time.monotonic() - t0) * 1000, 2),
        })
        return suggestions

    @staticmethod
    def rank(
        suggestions: Sequence[MatchSuggestion],
        limit: int | None = None,
    ) -> list[MatchSuggestion]:
        """Sort by confidence, highest first (stable), optionally truncated."""
        ranked = sorted(suggestions, key=lambda s: s.confidence, reverse=True)
        if limit is not None:
            ranked = ranked[:limit]
        return ranked

    # ------------------------------------------------------------------
    # Signals
    # ------------------------------------------------------------------

    def _evaluate(
        self,
        transaction: MatchableTransaction,
        payment: PaymentForMatching,
    ) -> MatchSuggestion | None:
        confidence = _ZERO
        reasons: list[str] = []

        for contribution, label in (
            self._amount_signal(transaction.amount, payment.amount),
            self._date_signal(transaction.transaction_date, payment.payment_date),
            self._reference_signal(transaction.reference, payment.reference),
            self._name_signal(transaction.counterparty_name, payment.contact_name),
            self._payment_number_signal(transaction.description, payment.payment_number),
        ):
            confidence += contribution
            if label:
                reasons.append(label)

        if confidence < self.weights.min_confidence:
            return None

        return MatchSuggestion(
            payment_id=payment.id,
            payment_number=payment.payment_number,
            payment_date=payment.payment_date,
            amount=payment.amount,
            contact_name=payment.contact_name,
            reference=payment.reference,
            confidence=min(confidence, _ONE),
            match_reason=", ".join(reasons),
        )

    def _amount_signal(self, txn_amount: Decimal, payment_amount: Decimal) -> tuple[Decimal, str]:
        bonus = self.weights.exact_amount_bonus
        txn_abs = abs(txn_amount)
        pay_abs = abs(payment_amount)
        if txn_abs == pay_abs:
            return bonus, "exact amount"
        if pay_abs == _ZERO:
            return _ZERO, ""
        relative_diff = abs(txn_abs - pay_abs) / pay_abs
        if relative_diff < Decimal("0.01"):
            return bonus * _WITHIN_1_PCT_FACTOR, "amount within 1%"
        if relative_diff < Decimal("0.05"):
            return bonus * _HALF, "amount within 5%"
        return _ZERO, ""

    def _date_signal(self, txn_date: date, payment_date: date) -> tuple[Decimal, str]:
        max_days = self.weights.max_date_diff_days
        days = abs((txn_date - payment_date).days)
        if days > max_days:
            return _ZERO, ""
        contribution = self.weights.date_proximity_weight * (
            _ONE - Decimal(days) / Decimal(max_days)
        )
        if days == 0:
            return contribution, "same date"
        if days <= 2:
            return contribution, "date within 2 days"
        return contribution, ""

    def _reference_signal(self, txn_ref: str, payment_ref: str) -> tuple[Decimal, str]:
        if not txn_ref or not payment_ref:
            return _ZERO, ""
        score = similarity(normalize_reference(txn_ref), normalize_reference(payment_ref))
        full, partial = REFERENCE_THRESHOLDS
        weight = self.weights.reference_match_weight
        if score > full:
            return weight, "reference match"
        if score > partial:
            return weight * _HALF, "partial reference match"
        return _ZERO, ""

    def _name_signal(self, counterparty: str, contact: str) -> tuple[Decimal, str]:
        if not counterparty or not contact:
            return _ZERO, ""
        score = similarity(normalize_name(counterparty), normalize_name(contact))
        full, partial = NAME_THRESHOLDS
        weight = self.weights.name_match_weight
        if score > full:
            return weight, "name match"
        if score > partial:
            return weight * _HALF, "partial name match"
        return _ZERO, ""

    def _payment_number_signal(self, description: str, payment_number: str) -> tuple[Decimal, str]:
        if payment_number and payment_number.lower() in description.lower():
            return self.weights.payment_number_bonus, "payment number in description"
        return _ZERO, ""
