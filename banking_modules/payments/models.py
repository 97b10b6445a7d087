"""
banking_modules.payments.models
===============================

Payment vocabulary needed by reconciliation: the payment direction and the
frozen ``Payment`` DTO returned by the create-payment-from-transaction
shortcut.  Payment lifecycle beyond that belongs to the payments system.
"""

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID


class PaymentType(str, Enum):
    """Direction of a payment, with the prefix used for its number."""

    RECEIVED = "RECEIVED"
    MADE = "MADE"

    @property
    def number_prefix(self) -> str:
        return "PMT" if self is PaymentType.RECEIVED else "PAY"


@dataclass(frozen=True)
class Payment:
    """A payment record.  ``amount`` is always positive; direction is ``payment_type``."""

    id: UUID
    tenant_id: str
    payment_number: str
    payment_type: PaymentType
    payment_date: date
    amount: Decimal
    currency: str
    reference: str = ""
    notes: str = ""
    contact_id: UUID | None = None
    created_by: str = ""
    created_at: datetime | None = None
