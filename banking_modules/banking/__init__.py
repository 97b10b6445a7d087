"""
banking_modules.banking
=======================

Responsibility:
    Bank accounts, imported statement transactions, payment matching and
    reconciliation sessions.  Scoring is delegated to ``banking_engines``;
    statement parsing lives in ``banking_ingestion``.

Architecture:
    Module layer.  May import from banking_kernel and banking_engines.
    MUST NOT be imported by banking_kernel or banking_engines.

Invariants enforced:
    - Transaction and reconciliation statuses only move along the edges in
      ``workflows.py``, via conditional UPDATEs.
    - BankingService owns commit/rollback; the repository never commits.

Failure modes:
    - Unknown IDs -> ``*NotFoundError`` from banking_kernel.exceptions.
    - Invalid transitions -> ``AlreadyMatchedError`` / ``NotMatchedError`` /
      ``ReconciliationAlreadyCompletedError`` /
      ``TransactionNotReconcilableError``.
"""

from banking_modules.banking.config import AutoMatchSettings, BankingConfig, load_banking_config
from banking_modules.banking.models import (
    BankAccount,
    BankReconciliation,
    BankStatementImport,
    BankTransaction,
    ReconciliationStatus,
    TransactionFilter,
    TransactionStatus,
)
from banking_modules.banking.service import BankingService
from banking_modules.banking.workflows import RECONCILIATION_WORKFLOW, TRANSACTION_WORKFLOW

__all__ = [
    "AutoMatchSettings",
    "BankAccount",
    "BankingConfig",
    "BankingService",
    "BankReconciliation",
    "BankStatementImport",
    "BankTransaction",
    "ReconciliationStatus",
    "TransactionFilter",
    "TransactionStatus",
    "RECONCILIATION_WORKFLOW",
    "TRANSACTION_WORKFLOW",
    "load_banking_config",
]
