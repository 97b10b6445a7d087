"""
Banking ORM Models (``banking_modules.banking.orm``).

Responsibility
--------------
SQLAlchemy persistence models for bank accounts, statement transactions,
reconciliation sessions and import summaries.  Maps the frozen DTOs from
``models.py`` to database tables.  Status enums are converted to and from
their string values here and nowhere else.

Architecture position
---------------------
**Modules layer** -- persistence.  Imports from ``banking_kernel.db.base``
and sibling ``models.py``.  MUST NOT be imported by ``banking_kernel``.
"""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from banking_kernel.db.base import Base
from banking_modules.banking.models import (
    BankAccount,
    BankReconciliation,
    BankStatementImport,
    BankTransaction,
    ReconciliationStatus,
    TransactionStatus,
)


# ---------------------------------------------------------------------------
# BankAccountModel
# ---------------------------------------------------------------------------

class BankAccountModel(Base):
    """
    ORM model for ``BankAccount``.

    Table: ``bank_accounts``
    """

    __tablename__ = "bank_accounts"

    tenant_id: Mapped[str] = mapped_column(String(64))
    name: Mapped[str] = mapped_column(String(200))
    account_number: Mapped[str] = mapped_column(String(64))
    bank_name: Mapped[str] = mapped_column(String(200), default="")
    swift_code: Mapped[str] = mapped_column(String(16), default="")
    currency: Mapped[str] = mapped_column(String(3), default="EUR")
    gl_account_code: Mapped[str] = mapped_column(String(50), default="")
    is_default: Mapped[bool] = mapped_column(default=False)
    is_active: Mapped[bool] = mapped_column(default=True)
    created_at: Mapped[datetime]

    transactions: Mapped[list["BankTransactionModel"]] = relationship(
        back_populates="bank_account",
    )

    __table_args__ = (
        Index("idx_bank_accounts_tenant_id", "tenant_id"),
    )

    def to_dto(self, balance: Decimal = Decimal("0")) -> BankAccount:
        return BankAccount(
            id=self.id,
            tenant_id=self.tenant_id,
            name=self.name,
            account_number=self.account_number,
            currency=self.currency,
            bank_name=self.bank_name,
            swift_code=self.swift_code,
            gl_account_code=self.gl_account_code,
            is_default=self.is_default,
            is_active=self.is_active,
            created_at=self.created_at,
            balance=balance,
        )

    @classmethod
    def from_dto(cls, dto: BankAccount) -> "BankAccountModel":
        return cls(
            id=dto.id,
            tenant_id=dto.tenant_id,
            name=dto.name,
            account_number=dto.account_number,
            bank_name=dto.bank_name,
            swift_code=dto.swift_code,
            currency=dto.currency,
            gl_account_code=dto.gl_account_code,
            is_default=dto.is_default,
            is_active=dto.is_active,
            created_at=dto.created_at,
        )

    def __repr__(self) -> str:
        return f"<BankAccountModel(id={self.id!r}, name={self.name!r})>"


# ---------------------------------------------------------------------------
# BankReconciliationModel
# ---------------------------------------------------------------------------

class BankReconciliationModel(Base):
    """
    ORM model for ``BankReconciliation``.

    Table: ``bank_reconciliations``
    """

    __tablename__ = "bank_reconciliations"

    tenant_id: Mapped[str] = mapped_column(String(64))
    bank_account_id: Mapped[UUID] = mapped_column(ForeignKey("bank_accounts.id"))
    statement_date: Mapped[date]
    opening_balance: Mapped[Decimal]
    closing_balance: Mapped[Decimal]
    status: Mapped[str] = mapped_column(
        String(20), default=ReconciliationStatus.IN_PROGRESS.value,
    )
    completed_at: Mapped[datetime | None]
    created_by: Mapped[str] = mapped_column(String(100))
    created_at: Mapped[datetime]

    __table_args__ = (
        Index("idx_bank_reconciliations_tenant_account", "tenant_id", "bank_account_id"),
    )

    def to_dto(self) -> BankReconciliation:
        return BankReconciliation(
            id=self.id,
            tenant_id=self.tenant_id,
            bank_account_id=self.bank_account_id,
            statement_date=self.statement_date,
            opening_balance=self.opening_balance,
            closing_balance=self.closing_balance,
            created_by=self.created_by,
            status=ReconciliationStatus(self.status),
            completed_at=self.completed_at,
            created_at=self.created_at,
        )

    @classmethod
    def from_dto(cls, dto: BankReconciliation) -> "BankReconciliationModel":
        return cls(
            id=dto.id,
            tenant_id=dto.tenant_id,
            bank_account_id=dto.bank_account_id,
            statement_date=dto.statement_date,
            opening_balance=dto.opening_balance,
            closing_balance=dto.closing_balance,
            status=dto.status.value,
            completed_at=dto.completed_at,
            created_by=dto.created_by,
            created_at=dto.created_at,
        )


# ---------------------------------------------------------------------------
# BankTransactionModel
# ---------------------------------------------------------------------------

class BankTransactionModel(Base):
    """
    ORM model for ``BankTransaction``.

    Table: ``bank_transactions``

    ``matched_payment_id`` is a soft reference: payments belong to the
    payments collaborator and are not constrained from this side.
    """

    __tablename__ = "bank_transactions"

    tenant_id: Mapped[str] = mapped_column(String(64))
    bank_account_id: Mapped[UUID] = mapped_column(ForeignKey("bank_accounts.id"))
    transaction_date: Mapped[date]
    value_date: Mapped[date | None]
    amount: Mapped[Decimal]
    currency: Mapped[str] = mapped_column(String(3))
    description: Mapped[str] = mapped_column(String(500), default="")
    reference: Mapped[str] = mapped_column(String(200), default="")
    counterparty_name: Mapped[str] = mapped_column(String(200), default="")
    counterparty_account: Mapped[str] = mapped_column(String(64), default="")
    external_id: Mapped[str] = mapped_column(String(200), default="")
    status: Mapped[str] = mapped_column(
        String(20), default=TransactionStatus.UNMATCHED.value,
    )
    matched_payment_id: Mapped[UUID | None]
    reconciliation_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("bank_reconciliations.id"), nullable=True,
    )
    imported_at: Mapped[datetime]

    bank_account: Mapped["BankAccountModel"] = relationship(
        back_populates="transactions",
    )

    __table_args__ = (
        Index("idx_bank_transactions_account_date", "bank_account_id", "transaction_date"),
        Index("idx_bank_transactions_external_id", "bank_account_id", "external_id"),
        Index("idx_bank_transactions_status", "tenant_id", "status"),
        Index("idx_bank_transactions_matched_payment_id", "matched_payment_id"),
        Index("idx_bank_transactions_reconciliation_id", "reconciliation_id"),
    )

    def to_dto(self) -> BankTransaction:
        return BankTransaction(
            id=self.id,
            tenant_id=self.tenant_id,
            bank_account_id=self.bank_account_id,
            transaction_date=self.transaction_date,
            amount=self.amount,
            currency=self.currency,
            description=self.description,
            reference=self.reference,
            counterparty_name=self.counterparty_name,
            counterparty_account=self.counterparty_account,
            external_id=self.external_id,
            value_date=self.value_date,
            status=TransactionStatus(self.status),
            matched_payment_id=self.matched_payment_id,
            reconciliation_id=self.reconciliation_id,
            imported_at=self.imported_at,
        )

    @classmethod
    def from_dto(cls, dto: BankTransaction) -> "BankTransactionModel":
        return cls(
            id=dto.id,
            tenant_id=dto.tenant_id,
            bank_account_id=dto.bank_account_id,
            transaction_date=dto.transaction_date,
            value_date=dto.value_date,
            amount=dto.amount,
            currency=dto.currency,
            description=dto.description,
            reference=dto.reference,
            counterparty_name=dto.counterparty_name,
            counterparty_account=dto.counterparty_account,
            external_id=dto.external_id,
            status=dto.status.value,
            matched_payment_id=dto.matched_payment_id,
            reconciliation_id=dto.reconciliation_id,
            imported_at=dto.imported_at,
        )

    def __repr__(self) -> str:
        return (
            f"<BankTransactionModel(id={self.id!r}, "
            f"status={self.status!r}, amount={self.amount!r})>"
        )


# ---------------------------------------------------------------------------
# BankStatementImportModel
# ---------------------------------------------------------------------------

class BankStatementImportModel(Base):
    """
    ORM model for ``BankStatementImport`` -- one row per completed import.

    Table: ``bank_statement_imports``
    """

    __tablename__ = "bank_statement_imports"

    tenant_id: Mapped[str] = mapped_column(String(64))
    bank_account_id: Mapped[UUID] = mapped_column(ForeignKey("bank_accounts.id"))
    file_name: Mapped[str] = mapped_column(String(500))
    transactions_imported: Mapped[int] = mapped_column(default=0)
    transactions_matched: Mapped[int] = mapped_column(default=0)
    duplicates_skipped: Mapped[int] = mapped_column(default=0)
    created_at: Mapped[datetime]

    __table_args__ = (
        Index("idx_bank_statement_imports_account_created", "bank_account_id", "created_at"),
    )

    def to_dto(self) -> BankStatementImport:
        return BankStatementImport(
            id=self.id,
            tenant_id=self.tenant_id,
            bank_account_id=self.bank_account_id,
            file_name=self.file_name,
            transactions_imported=self.transactions_imported,
            transactions_matched=self.transactions_matched,
            duplicates_skipped=self.duplicates_skipped,
            created_at=self.created_at,
        )

    @classmethod
    def from_dto(cls, dto: BankStatementImport) -> "BankStatementImportModel":
        return cls(
            id=dto.id,
            tenant_id=dto.tenant_id,
            bank_account_id=dto.bank_account_id,
            file_name=dto.file_name,
            transactions_imported=dto.transactions_imported,
            transactions_matched=dto.transactions_matched,
            duplicates_skipped=dto.duplicates_skipped,
            created_at=dto.created_at,
        )
