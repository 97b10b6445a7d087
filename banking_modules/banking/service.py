"""
banking_modules.banking.service
===============================

Responsibility:
    Orchestrates bank account management, payment matching and
    reconciliation by composing the matching engines with the banking
    repository.  Thin glue -- scoring lives in ``banking_engines``,
    SQL lives in ``repository.py``, states live in ``workflows.py``.

Architecture:
    Module layer.  Owns the transaction boundary: every public method that
    writes commits on success and rolls back on failure.

Invariants enforced:
    - Status transitions follow ``TRANSACTION_WORKFLOW`` and
      ``RECONCILIATION_WORKFLOW``.  The current status is re-read before
      every transition and the write is a conditional UPDATE on the
      expected status; losing a race surfaces as the same typed error as
      an invalid request.
    - Completing a reconciliation and promoting its MATCHED transactions
      to RECONCILED commit together.
    - Clock is injected; ``datetime.now()`` is never called directly.

Failure modes:
    - Missing rows -> ``*NotFoundError``.
    - Invalid transitions -> ``AlreadyMatchedError`` / ``NotMatchedError`` /
      ``ReconciliationAlreadyCompletedError``.
    - Auto-match swallows per-transaction failures (logged) and keeps going.
    - Unexpected exception -> session rolled back, exception re-raised.

Usage::

    service = BankingService(session, tenant_id="acme", clock=clock)
    suggestions = service.get_match_suggestions(transaction_id)
    service.match_transaction(transaction_id, suggestions[0].payment_id)
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import date
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from banking_engines.auto_match import AutoMatchPolicy
from banking_engines.matching import CandidateMatcher, MatchSuggestion
from banking_kernel.domain.clock import Clock, SystemClock
from banking_kernel.exceptions import (
    AccountNotFoundError,
    AlreadyMatchedError,
    BankAccountInUseError,
    BankingError,
    NotMatchedError,
    ReconciliationAlreadyCompletedError,
    ReconciliationNotFoundError,
    TransactionNotFoundError,
    TransactionNotReconcilableError,
)
from banking_kernel.logging_config import LogContext, get_logger
from banking_modules.banking.config import BankingConfig
from banking_modules.banking.models import (
    BankAccount,
    BankReconciliation,
    BankStatementImport,
    BankTransaction,
    ReconciliationStatus,
    TransactionFilter,
    TransactionStatus,
)
from banking_modules.banking.repository import BankingRepository, SqlAlchemyBankingRepository
from banking_modules.banking.workflows import RECONCILIATION_WORKFLOW, TRANSACTION_WORKFLOW
from banking_modules.payments.models import Payment, PaymentType

logger = get_logger("modules.banking.service")

CancelCheck = Callable[[], bool]


class BankingService:
    """
    Bank accounts, matching and reconciliation for one tenant.

    Contract:
        Each writing method either commits and returns the resulting DTO,
        or rolls back and raises.  No method leaves the session with
        uncommitted changes.

    Transaction boundary:
        ``auto_match_transactions`` commits once per matched transaction so
        that one failure never undoes earlier matches.
    """

    def __init__(
        self,
        session: Session,
        tenant_id: str,
        clock: Clock | None = None,
        config: BankingConfig | None = None,
        repository: BankingRepository | None = None,
    ):
        self._session = session
        self._tenant_id = tenant_id
        self._clock = clock or SystemClock()
        self._config = config or BankingConfig()
        self._repository = repository or SqlAlchemyBankingRepository(session, tenant_id)
        self._matcher = CandidateMatcher(self._config.matcher)

    # =========================================================================
    # Bank accounts
    # =========================================================================

    def create_bank_account(
        self,
        name: str,
        account_number: str,
        currency: str | None = None,
        bank_name: str = "",
        swift_code: str = "",
        gl_account_code: str = "",
        is_default: bool = False,
    ) -> BankAccount:
        """Create an active account.  Making it the default clears any other default."""
        account = BankAccount(
            id=uuid4(),
            tenant_id=self._tenant_id,
            name=name,
            account_number=account_number,
            currency=currency or self._config.default_currency,
            bank_name=bank_name,
            swift_code=swift_code,
            gl_account_code=gl_account_code,
            is_default=is_default,
            is_active=True,
            created_at=self._clock.now(),
        )
        try:
            if is_default:
                self._repository.clear_default_accounts()
            self._repository.insert_account(account)
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise
        logger.info("bank_account_created", extra={
            "bank_account_id": str(account.id),
            "currency": account.currency,
            "is_default": is_default,
        })
        return account

    def get_bank_account(self, account_id: UUID) -> BankAccount:
        account = self._repository.find_account(account_id)
        if account is None:
            raise AccountNotFoundError(str(account_id))
        return account

    def list_bank_accounts(
        self,
        is_active: bool | None = None,
        currency: str | None = None,
    ) -> list[BankAccount]:
        """Accounts ordered default first, then by name."""
        return self._repository.list_accounts(is_active=is_active, currency=currency)

    def update_bank_account(
        self,
        account_id: UUID,
        *,
        name: str | None = None,
        bank_name: str | None = None,
        swift_code: str | None = None,
        gl_account_code: str | None = None,
        is_active: bool | None = None,
        is_default: bool | None = None,
    ) -> BankAccount:
        """Update the given fields; ``None`` leaves a field unchanged."""
        changes = {
            key: value
            for key, value in {
                "name": name,
                "bank_name": bank_name,
                "swift_code": swift_code,
                "gl_account_code": gl_account_code,
                "is_active": is_active,
                "is_default": is_default,
            }.items()
            if value is not None
        }
        try:
            if self._repository.find_account(account_id) is None:
                raise AccountNotFoundError(str(account_id))
            if is_default:
                self._repository.clear_default_accounts()
            if changes:
                self._repository.update_account(account_id, **changes)
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise
        logger.info("bank_account_updated", extra={
            "bank_account_id": str(account_id),
            "fields": sorted(changes),
        })
        return self.get_bank_account(account_id)

    def delete_bank_account(self, account_id: UUID) -> None:
        """Delete an account that has no transactions."""
        try:
            if self._repository.find_account(account_id) is None:
                raise AccountNotFoundError(str(account_id))
            count = self._repository.count_transactions(account_id)
            if count > 0:
                raise BankAccountInUseError(str(account_id), count)
            self._repository.delete_account(account_id)
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise
        logger.info("bank_account_deleted", extra={"bank_account_id": str(account_id)})

    # =========================================================================
    # Transactions and matching
    # =========================================================================

    def list_transactions(self, criteria: TransactionFilter | None = None) -> list[BankTransaction]:
        """Newest first (transaction date, then import time)."""
        return self._repository.list_transactions(criteria or TransactionFilter())

    def get_transaction(self, transaction_id: UUID) -> BankTransaction:
        transaction = self._repository.get_transaction(transaction_id)
        if transaction is None:
            raise TransactionNotFoundError(str(transaction_id))
        return transaction

    def get_match_suggestions(self, transaction_id: UUID) -> list[MatchSuggestion]:
        """Best-scoring unallocated payments for one transaction, for manual review."""
        transaction = self.get_transaction(transaction_id)
        settings = self._config.auto_match
        payments = self._repository.find_unallocated_payments(
            transaction.amount, settings.candidate_limit,
        )
        return self._matcher.rank(
            self._matcher.score(transaction, payments),
            limit=settings.suggestion_limit,
        )

    def match_transaction(self, transaction_id: UUID, payment_id: UUID) -> BankTransaction:
        """
        UNMATCHED -> MATCHED, linking ``payment_id``.

        Raises:
            TransactionNotFoundError: Unknown transaction.
            AlreadyMatchedError: Transaction is not UNMATCHED (or stopped being
                UNMATCHED before the write landed).
        """
        try:
            self._match(transaction_id, payment_id)
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise
        logger.info("transaction_matched", extra={
            "transaction_id": str(transaction_id),
            "payment_id": str(payment_id),
        })
        return self.get_transaction(transaction_id)

    def unmatch_transaction(self, transaction_id: UUID) -> BankTransaction:
        """
        MATCHED -> UNMATCHED, clearing the payment link.

        Raises:
            TransactionNotFoundError: Unknown transaction.
            NotMatchedError: Transaction is not MATCHED.
        """
        transition = TRANSACTION_WORKFLOW.transition_for("unmatch")
        expected = TransactionStatus(transition.from_state)
        try:
            current = self.get_transaction(transaction_id)
            if current.status != expected:
                raise NotMatchedError(str(transaction_id), current.status.value)
            updated = self._repository.conditional_update_transaction_status(
                transaction_id,
                expected,
                TransactionStatus(transition.to_state),
                matched_payment_id=None,
            )
            if updated == 0:
                raise NotMatchedError(str(transaction_id), self._current_status(transaction_id))
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise
        logger.info("transaction_unmatched", extra={"transaction_id": str(transaction_id)})
        return self.get_transaction(transaction_id)

    def auto_match_transactions(
        self,
        account_id: UUID,
        min_confidence: Decimal,
        cancel: CancelCheck | None = None,
    ) -> int:
        """
        Match every UNMATCHED transaction of the account that has a clear winner.

        A suggestion is applied only when it reaches ``min_confidence`` and
        no runner-up comes within the configured ambiguity ratio.  If
        ``cancel()`` returns True the sweep stops before the next
        transaction; matches already made stay committed.

        Returns:
            Number of transactions matched.
        """
        settings = self._config.auto_match
        matcher = CandidateMatcher(self._config.matcher.with_min_confidence(min_confidence))
        policy = AutoMatchPolicy(threshold=min_confidence, ambiguity_ratio=settings.ambiguity_ratio)

        with LogContext.bind(tenant_id=self._tenant_id, bank_account_id=account_id):
            transactions = self._repository.list_transactions(TransactionFilter(
                bank_account_id=account_id,
                status=TransactionStatus.UNMATCHED,
            ))
            logger.info("auto_match_started", extra={
                "candidates": len(transactions),
                "min_confidence": str(min_confidence),
            })

            matched = 0
            for transaction in transactions:
                if cancel is not None and cancel():
                    logger.warning("auto_match_cancelled", extra={"matched": matched})
                    break
                try:
                    payments = self._repository.find_unallocated_payments(
                        transaction.amount, settings.candidate_limit,
                    )
                    best = policy.select(matcher.score(transaction, payments))
                    if best is None:
                        continue
                    self._match(transaction.id, best.payment_id)
                    self._session.commit()
                    matched += 1
                    logger.info("transaction_auto_matched", extra={
                        "transaction_id": str(transaction.id),
                        "payment_id": str(best.payment_id),
                        "confidence": str(best.confidence),
                        "match_reason": best.match_reason,
                    })
                except (BankingError, SQLAlchemyError):
                    self._session.rollback()
                    logger.warning("auto_match_transaction_skipped", extra={
                        "transaction_id": str(transaction.id),
                    }, exc_info=True)

            if matched:
                self._record_matched_count(account_id, matched)

            logger.info("auto_match_completed", extra={"matched": matched})
        return matched

    def create_payment_from_transaction(self, transaction_id: UUID, created_by: str) -> Payment:
        """
        Record a payment for an UNMATCHED transaction and match the two.

        Inflows become RECEIVED payments numbered ``PMT-nnnnnn``; outflows
        become MADE payments numbered ``PAY-nnnnnn``.  The payment amount is
        the absolute transaction amount.

        Raises:
            TransactionNotFoundError: Unknown transaction.
            AlreadyMatchedError: Transaction is not UNMATCHED.
        """
        try:
            transaction = self.get_transaction(transaction_id)
            if transaction.status != TransactionStatus.UNMATCHED:
                raise AlreadyMatchedError(str(transaction_id), transaction.status.value)

            payment_type = PaymentType.MADE if transaction.amount < 0 else PaymentType.RECEIVED
            sequence = self._repository.next_payment_sequence(payment_type)
            payment = Payment(
                id=uuid4(),
                tenant_id=self._tenant_id,
                payment_number=f"{payment_type.number_prefix}-{sequence:06d}",
                payment_type=payment_type,
                payment_date=transaction.transaction_date,
                amount=abs(transaction.amount),
                currency=transaction.currency,
                reference=transaction.reference,
                notes=f"Created from bank transaction: {transaction.description}",
                created_by=created_by,
                created_at=self._clock.now(),
            )
            self._repository.insert_payment(payment)
            self._match(transaction_id, payment.id)
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise
        logger.info("payment_created_from_transaction", extra={
            "transaction_id": str(transaction_id),
            "payment_id": str(payment.id),
            "payment_number": payment.payment_number,
        })
        return payment

    # =========================================================================
    # Reconciliation sessions
    # =========================================================================

    def create_reconciliation(
        self,
        account_id: UUID,
        statement_date: date,
        opening_balance: Decimal,
        closing_balance: Decimal,
        created_by: str,
    ) -> BankReconciliation:
        """Open an IN_PROGRESS reconciliation session for the account."""
        reconciliation = BankReconciliation(
            id=uuid4(),
            tenant_id=self._tenant_id,
            bank_account_id=account_id,
            statement_date=statement_date,
            opening_balance=opening_balance,
            closing_balance=closing_balance,
            created_by=created_by,
            status=ReconciliationStatus(RECONCILIATION_WORKFLOW.initial_state),
            created_at=self._clock.now(),
        )
        try:
            if self._repository.find_account(account_id) is None:
                raise AccountNotFoundError(str(account_id))
            self._repository.insert_reconciliation(reconciliation)
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise
        logger.info("reconciliation_created", extra={
            "reconciliation_id": str(reconciliation.id),
            "bank_account_id": str(account_id),
            "statement_date": statement_date,
        })
        return reconciliation

    def get_reconciliation(self, reconciliation_id: UUID) -> BankReconciliation:
        reconciliation = self._repository.get_reconciliation(reconciliation_id)
        if reconciliation is None:
            raise ReconciliationNotFoundError(str(reconciliation_id))
        return reconciliation

    def list_reconciliations(self, account_id: UUID) -> list[BankReconciliation]:
        """Most recent statement date first."""
        return self._repository.list_reconciliations(account_id)

    def add_transaction_to_reconciliation(
        self,
        reconciliation_id: UUID,
        transaction_id: UUID,
    ) -> BankTransaction:
        """
        Attach a transaction to an open reconciliation session.

        Raises:
            ReconciliationNotFoundError / TransactionNotFoundError: Unknown IDs.
            ReconciliationAlreadyCompletedError: Session is closed.
            TransactionNotReconcilableError: Transaction is already RECONCILED
                or belongs to another bank account.
        """
        try:
            reconciliation = self.get_reconciliation(reconciliation_id)
            if reconciliation.status != ReconciliationStatus.IN_PROGRESS:
                raise ReconciliationAlreadyCompletedError(str(reconciliation_id))
            transaction = self.get_transaction(transaction_id)
            if transaction.status == TransactionStatus.RECONCILED:
                raise TransactionNotReconcilableError(
                    str(reconciliation_id), str(transaction_id), "already reconciled",
                )
            if transaction.bank_account_id != reconciliation.bank_account_id:
                raise TransactionNotReconcilableError(
                    str(reconciliation_id), str(transaction_id), "different bank account",
                )
            self._repository.set_transaction_reconciliation(transaction_id, reconciliation_id)
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise
        logger.info("transaction_added_to_reconciliation", extra={
            "reconciliation_id": str(reconciliation_id),
            "transaction_id": str(transaction_id),
        })
        return self.get_transaction(transaction_id)

    def complete_reconciliation(self, reconciliation_id: UUID) -> BankReconciliation:
        """
        IN_PROGRESS -> COMPLETED, promoting its MATCHED transactions to RECONCILED.

        Raises:
            ReconciliationNotFoundError: Unknown reconciliation.
            ReconciliationAlreadyCompletedError: Session is not IN_PROGRESS.
        """
        transition = RECONCILIATION_WORKFLOW.transition_for("complete")
        expected = ReconciliationStatus(transition.from_state)
        try:
            current = self.get_reconciliation(reconciliation_id)
            if current.status != expected:
                raise ReconciliationAlreadyCompletedError(str(reconciliation_id))
            updated = self._repository.conditional_update_reconciliation_status(
                reconciliation_id,
                expected,
                ReconciliationStatus(transition.to_state),
                completed_at=self._clock.now(),
            )
            if updated == 0:
                raise ReconciliationAlreadyCompletedError(str(reconciliation_id))
            promoted = self._repository.bulk_promote_reconciled_transactions(reconciliation_id)
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise
        logger.info("reconciliation_completed", extra={
            "reconciliation_id": str(reconciliation_id),
            "transactions_reconciled": promoted,
        })
        return self.get_reconciliation(reconciliation_id)

    # =========================================================================
    # Import history
    # =========================================================================

    def get_import_history(self, account_id: UUID) -> list[BankStatementImport]:
        """The 50 most recent imports for the account, newest first."""
        return self._repository.list_imports(account_id)

    # =========================================================================
    # Internals
    # =========================================================================

    def _current_status(self, transaction_id: UUID) -> str:
        transaction = self._repository.get_transaction(transaction_id)
        return transaction.status.value if transaction is not None else "MISSING"

    def _match(self, transaction_id: UUID, payment_id: UUID) -> None:
        """Conditional UNMATCHED -> MATCHED write.  Caller owns commit/rollback."""
        transition = TRANSACTION_WORKFLOW.transition_for("match")
        expected = TransactionStatus(transition.from_state)
        current = self.get_transaction(transaction_id)
        if current.status != expected:
            raise AlreadyMatchedError(str(transaction_id), current.status.value)
        updated = self._repository.conditional_update_transaction_status(
            transaction_id,
            expected,
            TransactionStatus(transition.to_state),
            matched_payment_id=payment_id,
        )
        if updated == 0:
            raise AlreadyMatchedError(str(transaction_id), self._current_status(transaction_id))

    def _record_matched_count(self, account_id: UUID, matched: int) -> None:
        """Best-effort bump of the latest import's matched counter."""
        try:
            self._repository.increment_import_matched_count(account_id, matched)
            self._session.commit()
        except SQLAlchemyError:
            self._session.rollback()
            logger.warning("import_matched_count_update_failed", extra={
                "matched": matched,
            }, exc_info=True)
