"""
banking_modules.banking.models
==============================

Responsibility:
    Frozen dataclass value objects for banking -- bank accounts, statement
    transactions, reconciliation sessions, import summaries and the
    transaction filter.  No business logic; structure only.

Architecture:
    Module layer.  These are in-memory DTOs, NOT SQLAlchemy ORM models.
    Status fields are closed enums; they become strings only inside
    ``orm.py``.

Invariants enforced:
    - All monetary fields use ``Decimal`` -- never ``float``.
    - All DTOs are frozen (immutable after construction).
    - ``BankTransaction.matched_payment_id`` is set iff status is MATCHED or
      RECONCILED; ``BankReconciliation.completed_at`` is set iff COMPLETED.
      Both are enforced by ``__post_init__``.
"""

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID


class TransactionStatus(str, Enum):
    """Bank transaction states.  See ``workflows.TRANSACTION_WORKFLOW``."""

    UNMATCHED = "UNMATCHED"
    MATCHED = "MATCHED"
    RECONCILED = "RECONCILED"


class ReconciliationStatus(str, Enum):
    """Reconciliation session states.  See ``workflows.RECONCILIATION_WORKFLOW``."""

    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"


@dataclass(frozen=True)
class BankAccount:
    """
    A bank account owned by a tenant.

    ``balance`` is derived (sum of transaction amounts) and only populated on
    reads; it is never stored.
    """

    id: UUID
    tenant_id: str
    name: str
    account_number: str
    currency: str = "EUR"
    bank_name: str = ""
    swift_code: str = ""
    gl_account_code: str = ""
    is_default: bool = False
    is_active: bool = True
    created_at: datetime | None = None
    balance: Decimal = Decimal("0")


@dataclass(frozen=True)
class BankTransaction:
    """
    A single transaction from a bank statement.

    Contract:
        Created UNMATCHED by ingestion.  ``amount`` is signed: negative for
        outflows.
    """

    id: UUID
    tenant_id: str
    bank_account_id: UUID
    transaction_date: date
    amount: Decimal
    currency: str
    description: str = ""
    reference: str = ""
    counterparty_name: str = ""
    counterparty_account: str = ""
    external_id: str = ""
    value_date: date | None = None
    status: TransactionStatus = TransactionStatus.UNMATCHED
    matched_payment_id: UUID | None = None
    reconciliation_id: UUID | None = None
    imported_at: datetime | None = None

    def __post_init__(self) -> None:
        linked = self.status in (TransactionStatus.MATCHED, TransactionStatus.RECONCILED)
        if linked != (self.matched_payment_id is not None):
            raise ValueError(
                f"matched_payment_id must be set iff status is MATCHED or "
                f"RECONCILED (status={self.status.value})"
            )


@dataclass(frozen=True)
class BankReconciliation:
    """A dated reconciliation session for one bank account."""

    id: UUID
    tenant_id: str
    bank_account_id: UUID
    statement_date: date
    opening_balance: Decimal
    closing_balance: Decimal
    created_by: str
    status: ReconciliationStatus = ReconciliationStatus.IN_PROGRESS
    completed_at: datetime | None = None
    created_at: datetime | None = None

    def __post_init__(self) -> None:
        completed = self.status == ReconciliationStatus.COMPLETED
        if completed != (self.completed_at is not None):
            raise ValueError("completed_at must be set iff status is COMPLETED")


@dataclass(frozen=True)
class BankStatementImport:
    """Persisted summary of one statement import."""

    id: UUID
    tenant_id: str
    bank_account_id: UUID
    file_name: str
    transactions_imported: int
    transactions_matched: int
    duplicates_skipped: int
    created_at: datetime


@dataclass(frozen=True)
class TransactionFilter:
    """Optional criteria for listing bank transactions.  ``None`` means any."""

    bank_account_id: UUID | None = None
    status: TransactionStatus | None = None
    from_date: date | None = None
    to_date: date | None = None
    min_amount: Decimal | None = None
    max_amount: Decimal | None = None
