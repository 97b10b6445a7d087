"""
Duplicate detection for statement imports.

A draft is a duplicate of a recorded transaction on the same account when
(1) it carries a bank external id that is already recorded, or otherwise
(2) a transaction with the same date and amount is already recorded.

The reference is accepted but not used to narrow rule (2): two genuine
same-day, same-amount payments on one account are treated as one.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import UUID

from banking_kernel.logging_config import get_logger
from banking_modules.banking.repository import BankingRepository

logger = get_logger("ingestion.duplicate_detector")


class DuplicateDetector:
    """Answers "is this draft already recorded?" through the repository."""

    def __init__(self, repository: BankingRepository):
        self._repository = repository

    def is_duplicate(
        self,
        account_id: UUID,
        transaction_date: date,
        amount: Decimal,
        reference: str = "",
        external_id: str = "",
    ) -> bool:
        if external_id and self._repository.exists_external_id(account_id, external_id):
            logger.debug("duplicate_by_external_id", extra={"external_id": external_id})
            return True
        if self._repository.exists_date_amount(account_id, transaction_date, amount):
            logger.debug("duplicate_by_date_amount", extra={
                "transaction_date": transaction_date,
                "amount": amount,
            })
            return True
        return False
