"""
banking_modules.banking.repository
==================================

Responsibility:
    Tenant-scoped persistence contract for banking (``BankingRepository``)
    and its SQLAlchemy implementation.  Every status transition is a
    conditional UPDATE whose affected-row count tells the caller whether
    the expected state still held.

Architecture:
    Module layer -- persistence.  Takes a caller-owned ``Session``; never
    commits or rolls back.  Unit-of-work boundaries belong to the services.
    The SQLAlchemy session autoflushes before queries, so existence checks
    see rows added earlier in the same unit of work.

Invariants enforced:
    - Every query is filtered by ``tenant_id``.
    - ``conditional_update_*`` only write rows whose current status equals
      the expected status; a 0 return means the precondition failed.
    - Returned objects are frozen DTOs, never live ORM instances.
"""

from __future__ import annotations

import re
from collections.abc import Sequence
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Protocol
from uuid import UUID

from sqlalchemy import delete, exists, func, select, update
from sqlalchemy.orm import Session

from banking_engines.matching import PaymentForMatching
from banking_kernel.logging_config import get_logger
from banking_modules.banking.models import (
    BankAccount,
    BankReconciliation,
    BankStatementImport,
    BankTransaction,
    ReconciliationStatus,
    TransactionFilter,
    TransactionStatus,
)
from banking_modules.banking.orm import (
    BankAccountModel,
    BankReconciliationModel,
    BankStatementImportModel,
    BankTransactionModel,
)
from banking_modules.payments.models import Payment, PaymentType
from banking_modules.payments.orm import ContactModel, PaymentAllocationModel, PaymentModel

logger = get_logger("modules.banking.repository")

IMPORT_HISTORY_LIMIT = 50


class BankingRepository(Protocol):
    """Persistence operations the banking services depend on."""

    tenant_id: str

    # Accounts
    def find_account(self, account_id: UUID) -> BankAccount | None: ...
    def list_accounts(self, is_active: bool | None = None, currency: str | None = None) -> list[BankAccount]: ...
    def insert_account(self, account: BankAccount) -> None: ...
    def update_account(self, account_id: UUID, **values: Any) -> int: ...
    def delete_account(self, account_id: UUID) -> int: ...
    def clear_default_accounts(self) -> None: ...
    def account_balance(self, account_id: UUID) -> Decimal: ...

    # Transactions
    def insert_transaction(self, transaction: BankTransaction) -> None: ...
    def get_transaction(self, transaction_id: UUID) -> BankTransaction | None: ...
    def list_transactions(self, criteria: TransactionFilter) -> list[BankTransaction]: ...
    def count_transactions(self, account_id: UUID) -> int: ...
    def exists_external_id(self, account_id: UUID, external_id: str) -> bool: ...
    def exists_date_amount(self, account_id: UUID, transaction_date: date, amount: Decimal) -> bool: ...
    def conditional_update_transaction_status(
        self, transaction_id: UUID, expected: TransactionStatus, new: TransactionStatus, **values: Any,
    ) -> int: ...
    def set_transaction_reconciliation(self, transaction_id: UUID, reconciliation_id: UUID) -> int: ...

    # Payments
    def find_unallocated_payments(self, approx_amount: Decimal, limit: int) -> list[PaymentForMatching]: ...
    def next_payment_sequence(self, payment_type: PaymentType) -> int: ...
    def insert_payment(self, payment: Payment) -> None: ...

    # Reconciliations
    def insert_reconciliation(self, reconciliation: BankReconciliation) -> None: ...
    def get_reconciliation(self, reconciliation_id: UUID) -> BankReconciliation | None: ...
    def list_reconciliations(self, account_id: UUID) -> list[BankReconciliation]: ...
    def conditional_update_reconciliation_status(
        self, reconciliation_id: UUID, expected: ReconciliationStatus,
        new: ReconciliationStatus, completed_at: datetime | None,
    ) -> int: ...
    def bulk_promote_reconciled_transactions(self, reconciliation_id: UUID) -> int: ...

    # Import summaries
    def insert_import_summary(self, summary: BankStatementImport) -> None: ...
    def increment_import_matched_count(self, account_id: UUID, by: int) -> int: ...
    def list_imports(self, account_id: UUID, limit: int = IMPORT_HISTORY_LIMIT) -> list[BankStatementImport]: ...


class SqlAlchemyBankingRepository:
    """``BankingRepository`` over a SQLAlchemy session, scoped to one tenant."""

    def __init__(self, session: Session, tenant_id: str):
        self.session = session
        self.tenant_id = tenant_id

    # ------------------------------------------------------------------
    # Accounts
    # ------------------------------------------------------------------

    def _account_model(self, account_id: UUID) -> BankAccountModel | None:
        return self.session.scalars(
            select(BankAccountModel).where(
                BankAccountModel.id == account_id,
                BankAccountModel.tenant_id == self.tenant_id,
            )
        ).one_or_none()

    def find_account(self, account_id: UUID) -> BankAccount | None:
        model = self._account_model(account_id)
        if model is None:
            return None
        return model.to_dto(balance=self.account_balance(account_id))

    def list_accounts(
        self,
        is_active: bool | None = None,
        currency: str | None = None,
    ) -> list[BankAccount]:
        stmt = select(BankAccountModel).where(BankAccountModel.tenant_id == self.tenant_id)
        if is_active is not None:
            stmt = stmt.where(BankAccountModel.is_active == is_active)
        if currency:
            stmt = stmt.where(BankAccountModel.currency == currency)
        stmt = stmt.order_by(BankAccountModel.is_default.desc(), BankAccountModel.name)
        return [
            m.to_dto(balance=self.account_balance(m.id))
            for m in self.session.scalars(stmt)
        ]

    def insert_account(self, account: BankAccount) -> None:
        self.session.add(BankAccountModel.from_dto(account))
        self.session.flush()

    def update_account(self, account_id: UUID, **values: Any) -> int:
        result = self.session.execute(
            update(BankAccountModel)
            .where(
                BankAccountModel.id == account_id,
                BankAccountModel.tenant_id == self.tenant_id,
            )
            .values(**values)
        )
        return result.rowcount

    def delete_account(self, account_id: UUID) -> int:
        result = self.session.execute(
            delete(BankAccountModel).where(
                BankAccountModel.id == account_id,
                BankAccountModel.tenant_id == self.tenant_id,
            )
        )
        return result.rowcount

    def clear_default_accounts(self) -> None:
        self.session.execute(
            update(BankAccountModel)
            .where(BankAccountModel.tenant_id == self.tenant_id)
            .values(is_default=False)
        )

    def account_balance(self, account_id: UUID) -> Decimal:
        total = self.session.scalar(
            select(func.coalesce(func.sum(BankTransactionModel.amount), 0)).where(
                BankTransactionModel.bank_account_id == account_id,
                BankTransactionModel.tenant_id == self.tenant_id,
            )
        )
        return Decimal(str(total))

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    def insert_transaction(self, transaction: BankTransaction) -> None:
        self.session.add(BankTransactionModel.from_dto(transaction))

    def get_transaction(self, transaction_id: UUID) -> BankTransaction | None:
        model = self.session.scalars(
            select(BankTransactionModel)
            .where(
                BankTransactionModel.id == transaction_id,
                BankTransactionModel.tenant_id == self.tenant_id,
            )
            .execution_options(populate_existing=True)
        ).one_or_none()
        return model.to_dto() if model is not None else None

    def list_transactions(self, criteria: TransactionFilter) -> list[BankTransaction]:
        stmt = select(BankTransactionModel).where(
            BankTransactionModel.tenant_id == self.tenant_id,
        )
        if criteria.bank_account_id is not None:
            stmt = stmt.where(BankTransactionModel.bank_account_id == criteria.bank_account_id)
        if criteria.status is not None:
            stmt = stmt.where(BankTransactionModel.status == criteria.status.value)
        if criteria.from_date is not None:
            stmt = stmt.where(BankTransactionModel.transaction_date >= criteria.from_date)
        if criteria.to_date is not None:
            stmt = stmt.where(BankTransactionModel.transaction_date <= criteria.to_date)
        if criteria.min_amount is not None:
            stmt = stmt.where(BankTransactionModel.amount >= criteria.min_amount)
        if criteria.max_amount is not None:
            stmt = stmt.where(BankTransactionModel.amount <= criteria.max_amount)
        stmt = stmt.order_by(
            BankTransactionModel.transaction_date.desc(),
            BankTransactionModel.imported_at.desc(),
        ).execution_options(populate_existing=True)
        return [m.to_dto() for m in self.session.scalars(stmt)]

    def count_transactions(self, account_id: UUID) -> int:
        return self.session.scalar(
            select(func.count()).select_from(BankTransactionModel).where(
                BankTransactionModel.bank_account_id == account_id,
                BankTransactionModel.tenant_id == self.tenant_id,
            )
        ) or 0

    def exists_external_id(self, account_id: UUID, external_id: str) -> bool:
        return bool(self.session.scalar(
            select(exists().where(
                BankTransactionModel.tenant_id == self.tenant_id,
                BankTransactionModel.bank_account_id == account_id,
                BankTransactionModel.external_id == external_id,
            ))
        ))

    def exists_date_amount(self, account_id: UUID, transaction_date: date, amount: Decimal) -> bool:
        return bool(self.session.scalar(
            select(exists().where(
                BankTransactionModel.tenant_id == self.tenant_id,
                BankTransactionModel.bank_account_id == account_id,
                BankTransactionModel.transaction_date == transaction_date,
                BankTransactionModel.amount == amount,
            ))
        ))

    def conditional_update_transaction_status(
        self,
        transaction_id: UUID,
        expected: TransactionStatus,
        new: TransactionStatus,
        **values: Any,
    ) -> int:
        result = self.session.execute(
            update(BankTransactionModel)
            .where(
                BankTransactionModel.id == transaction_id,
                BankTransactionModel.tenant_id == self.tenant_id,
                BankTransactionModel.status == expected.value,
            )
            .values(status=new.value, **values)
        )
        return result.rowcount

    def set_transaction_reconciliation(self, transaction_id: UUID, reconciliation_id: UUID) -> int:
        result = self.session.execute(
            update(BankTransactionModel)
            .where(
                BankTransactionModel.id == transaction_id,
                BankTransactionModel.tenant_id == self.tenant_id,
            )
            .values(reconciliation_id=reconciliation_id)
        )
        return result.rowcount

    # ------------------------------------------------------------------
    # Payments
    # ------------------------------------------------------------------

    def find_unallocated_payments(self, approx_amount: Decimal, limit: int) -> list[PaymentForMatching]:
        """
        Payments with an unallocated remainder that no bank transaction
        already points at, closest to ``|approx_amount|`` first.
        """
        allocated = (
            select(func.coalesce(func.sum(PaymentAllocationModel.amount), 0))
            .where(PaymentAllocationModel.payment_id == PaymentModel.id)
            .scalar_subquery()
        )
        already_linked = exists().where(BankTransactionModel.matched_payment_id == PaymentModel.id)
        stmt = (
            select(
                PaymentModel.id,
                PaymentModel.payment_number,
                PaymentModel.payment_date,
                PaymentModel.amount,
                func.coalesce(ContactModel.name, "").label("contact_name"),
                func.coalesce(PaymentModel.reference, "").label("reference"),
            )
            .outerjoin(ContactModel, PaymentModel.contact_id == ContactModel.id)
            .where(
                PaymentModel.tenant_id == self.tenant_id,
                PaymentModel.amount - allocated > 0,
                ~already_linked,
            )
            .order_by(func.abs(PaymentModel.amount - abs(approx_amount)), PaymentModel.payment_number)
            .limit(limit)
        )
        return [
            PaymentForMatching(
                id=row.id,
                payment_number=row.payment_number,
                payment_date=row.payment_date,
                amount=row.amount,
                contact_name=row.contact_name,
                reference=row.reference,
            )
            for row in self.session.execute(stmt)
        ]

    def next_payment_sequence(self, payment_type: PaymentType) -> int:
        prefix = payment_type.number_prefix
        pattern = re.compile(rf"^{prefix}-(\d+)$")
        numbers = self.session.scalars(
            select(PaymentModel.payment_number).where(
                PaymentModel.tenant_id == self.tenant_id,
                PaymentModel.payment_number.like(f"{prefix}-%"),
            )
        )
        highest = 0
        for number in numbers:
            match = pattern.match(number)
            if match:
                highest = max(highest, int(match.group(1)))
        return highest + 1

    def insert_payment(self, payment: Payment) -> None:
        self.session.add(PaymentModel.from_dto(payment))
        self.session.flush()

    # ------------------------------------------------------------------
    # Reconciliations
    # ------------------------------------------------------------------

    def insert_reconciliation(self, reconciliation: BankReconciliation) -> None:
        self.session.add(BankReconciliationModel.from_dto(reconciliation))
        self.session.flush()

    def get_reconciliation(self, reconciliation_id: UUID) -> BankReconciliation | None:
        model = self.session.scalars(
            select(BankReconciliationModel)
            .where(
                BankReconciliationModel.id == reconciliation_id,
                BankReconciliationModel.tenant_id == self.tenant_id,
            )
            .execution_options(populate_existing=True)
        ).one_or_none()
        return model.to_dto() if model is not None else None

    def list_reconciliations(self, account_id: UUID) -> list[BankReconciliation]:
        stmt = (
            select(BankReconciliationModel)
            .where(
                BankReconciliationModel.tenant_id == self.tenant_id,
                BankReconciliationModel.bank_account_id == account_id,
            )
            .order_by(BankReconciliationModel.statement_date.desc())
            .execution_options(populate_existing=True)
        )
        return [m.to_dto() for m in self.session.scalars(stmt)]

    def conditional_update_reconciliation_status(
        self,
        reconciliation_id: UUID,
        expected: ReconciliationStatus,
        new: ReconciliationStatus,
        completed_at: datetime | None,
    ) -> int:
        result = self.session.execute(
            update(BankReconciliationModel)
            .where(
                BankReconciliationModel.id == reconciliation_id,
                BankReconciliationModel.tenant_id == self.tenant_id,
                BankReconciliationModel.status == expected.value,
            )
            .values(status=new.value, completed_at=completed_at)
        )
        return result.rowcount

    def bulk_promote_reconciled_transactions(self, reconciliation_id: UUID) -> int:
        result = self.session.execute(
            update(BankTransactionModel)
            .where(
                BankTransactionModel.tenant_id == self.tenant_id,
                BankTransactionModel.reconciliation_id == reconciliation_id,
                BankTransactionModel.status == TransactionStatus.MATCHED.value,
            )
            .values(status=TransactionStatus.RECONCILED.value)
        )
        return result.rowcount

    # ------------------------------------------------------------------
    # Import summaries
    # ------------------------------------------------------------------

    def insert_import_summary(self, summary: BankStatementImport) -> None:
        self.session.add(BankStatementImportModel.from_dto(summary))
        self.session.flush()

    def increment_import_matched_count(self, account_id: UUID, by: int) -> int:
        latest_id = self.session.scalar(
            select(BankStatementImportModel.id)
            .where(
                BankStatementImportModel.tenant_id == self.tenant_id,
                BankStatementImportModel.bank_account_id == account_id,
            )
            .order_by(BankStatementImportModel.created_at.desc())
            .limit(1)
        )
        if latest_id is None:
            return 0
        result = self.session.execute(
            update(BankStatementImportModel)
            .where(BankStatementImportModel.id == latest_id)
            .values(
                transactions_matched=BankStatementImportModel.transactions_matched + by,
            )
        )
        return result.rowcount

    def list_imports(self, account_id: UUID, limit: int = IMPORT_HISTORY_LIMIT) -> list[BankStatementImport]:
        stmt = (
            select(BankStatementImportModel)
            .where(
                BankStatementImportModel.tenant_id == self.tenant_id,
                BankStatementImportModel.bank_account_id == account_id,
            )
            .order_by(BankStatementImportModel.created_at.desc())
            .limit(limit)
            .execution_options(populate_existing=True)
        )
        return [m.to_dto() for m in self.session.scalars(stmt)]
