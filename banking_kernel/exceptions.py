"""
Typed Exception Hierarchy for bank statement ingestion and reconciliation.

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

All exceptions inherit from BankingError:

    BankingError (base)
    |
    +-- ParseError
    |   +-- InvalidAmountError
    |   +-- InvalidDateError
    |   +-- ColumnOutOfRangeError
    |
    +-- AccountError
    |   +-- AccountNotFoundError
    |   +-- BankAccountInUseError
    |
    +-- TransactionError
    |   +-- TransactionNotFoundError
    |   +-- AlreadyMatchedError
    |   +-- NotMatchedError
    |
    +-- ReconciliationError
    |   +-- ReconciliationNotFoundError
    |   +-- ReconciliationAlreadyCompletedError
    |   +-- TransactionNotReconcilableError
    |
    +-- StatementImportError
        +-- ImportFailedError
        +-- OperationCancelledError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                        | When Raised
----------------|-----------------------------|-----------------------------------------
Parse           | INVALID_AMOUNT              | Cell is not a finite decimal
                | INVALID_DATE                | Cell does not match the date layout
                | COLUMN_OUT_OF_RANGE         | Required column missing from the row
----------------|-----------------------------|-----------------------------------------
Account         | ACCOUNT_NOT_FOUND           | Bank account ID doesn't exist for tenant
                | BANK_ACCOUNT_IN_USE         | Can't delete, has transactions
----------------|-----------------------------|-----------------------------------------
Transaction     | TRANSACTION_NOT_FOUND       | Bank transaction ID doesn't exist
                | ALREADY_MATCHED             | Match attempted on non-UNMATCHED row
                | NOT_MATCHED                 | Unmatch attempted on non-MATCHED row
----------------|-----------------------------|-----------------------------------------
Reconciliation  | RECONCILIATION_NOT_FOUND    | Reconciliation ID doesn't exist
                | RECONCILIATION_COMPLETED    | Session already completed
                | TRANSACTION_NOT_RECONCILABLE| Already reconciled or other account
----------------|-----------------------------|-----------------------------------------
Import          | IMPORT_FAILED               | Batch-fatal failure, nothing committed
                | OPERATION_CANCELLED         | Caller cancelled a batch operation

===============================================================================
HANDLING PATTERNS
===============================================================================

Row-level parse errors never escape a batch: the statement parser converts
them into "Row N: ..." strings on the result. Transition conflicts carry the
status that was actually found so callers can report it without a re-read:

    try:
        service.match_transaction(txn_id, payment_id)
    except AlreadyMatchedError as e:
        return {"error": e.code, "status": e.current_status}
"""


class BankingError(Exception):
    """
    Base exception for all banking errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "BANKING_ERROR"


# Parse exceptions


class ParseError(BankingError):
    """Base exception for cell-level parsing errors."""

    code: str = "PARSE_ERROR"


class InvalidAmountError(ParseError):
    """Amount cell could not be parsed as a finite decimal."""

    code: str = "INVALID_AMOUNT"

    def __init__(self, raw: str, reason: str = "not a decimal number"):
        self.raw = raw
        self.reason = reason
        super().__init__(reason)


class InvalidDateError(ParseError):
    """Date cell does not match the expected layout."""

    code: str = "INVALID_DATE"

    def __init__(self, raw: str, reason: str):
        self.raw = raw
        self.reason = reason
        super().__init__(reason)


class ColumnOutOfRangeError(ParseError):
    """A required column index is beyond the end of the row."""

    code: str = "COLUMN_OUT_OF_RANGE"

    def __init__(self, column: str, index: int, row_length: int):
        self.column = column
        self.index = index
        self.row_length = row_length
        super().__init__(f"missing {column} column")


# Account exceptions


class AccountError(BankingError):
    """Base exception for bank account errors."""

    code: str = "ACCOUNT_ERROR"


class AccountNotFoundError(AccountError):
    """Bank account with given ID was not found for the tenant."""

    code: str = "ACCOUNT_NOT_FOUND"

    def __init__(self, account_id: str):
        self.account_id = account_id
        super().__init__(f"Bank account not found: {account_id}")


class BankAccountInUseError(AccountError):
    """Bank account cannot be deleted while transactions reference it."""

    code: str = "BANK_ACCOUNT_IN_USE"

    def __init__(self, account_id: str, transaction_count: int):
        self.account_id = account_id
        self.transaction_count = transaction_count
        super().__init__(
            f"Cannot delete bank account {account_id}: "
            f"{transaction_count} transactions exist"
        )


# Transaction exceptions


class TransactionError(BankingError):
    """Base exception for bank transaction errors."""

    code: str = "TRANSACTION_ERROR"


class TransactionNotFoundError(TransactionError):
    """Bank transaction with given ID was not found."""

    code: str = "TRANSACTION_NOT_FOUND"

    def __init__(self, transaction_id: str):
        self.transaction_id = transaction_id
        super().__init__(f"Bank transaction not found: {transaction_id}")


class AlreadyMatchedError(TransactionError):
    """Transaction is not UNMATCHED, so it cannot be matched."""

    code: str = "ALREADY_MATCHED"

    def __init__(self, transaction_id: str, current_status: str):
        self.transaction_id = transaction_id
        self.current_status = current_status
        super().__init__(
            f"Transaction {transaction_id} is {current_status}, not UNMATCHED"
        )


class NotMatchedError(TransactionError):
    """Transaction is not MATCHED, so it cannot be unmatched."""

    code: str = "NOT_MATCHED"

    def __init__(self, transaction_id: str, current_status: str):
        self.transaction_id = transaction_id
        self.current_status = current_status
        super().__init__(
            f"Transaction {transaction_id} is {current_status}, not MATCHED"
        )


# Reconciliation exceptions


class ReconciliationError(BankingError):
    """Base exception for reconciliation session errors."""

    code: str = "RECONCILIATION_ERROR"


class ReconciliationNotFoundError(ReconciliationError):
    """Reconciliation with given ID was not found."""

    code: str = "RECONCILIATION_NOT_FOUND"

    def __init__(self, reconciliation_id: str):
        self.reconciliation_id = reconciliation_id
        super().__init__(f"Reconciliation not found: {reconciliation_id}")


class ReconciliationAlreadyCompletedError(ReconciliationError):
    """Reconciliation has already been completed."""

    code: str = "RECONCILIATION_COMPLETED"

    def __init__(self, reconciliation_id: str):
        self.reconciliation_id = reconciliation_id
        super().__init__(f"Reconciliation already completed: {reconciliation_id}")


class TransactionNotReconcilableError(ReconciliationError):
    """Transaction cannot join this reconciliation session."""

    code: str = "TRANSACTION_NOT_RECONCILABLE"

    def __init__(self, reconciliation_id: str, transaction_id: str, reason: str):
        self.reconciliation_id = reconciliation_id
        self.transaction_id = transaction_id
        self.reason = reason
        super().__init__(
            f"Transaction {transaction_id} cannot join reconciliation "
            f"{reconciliation_id}: {reason}"
        )


# Import exceptions


class StatementImportError(BankingError):
    """Base exception for batch-fatal import errors."""

    code: str = "IMPORT_ERROR"


class ImportFailedError(StatementImportError):
    """
    A non-row failure aborted the import; nothing was committed.

    The underlying exception is chained as __cause__.
    """

    code: str = "IMPORT_FAILED"

    def __init__(self, account_id: str, stage: str, reason: str):
        self.account_id = account_id
        self.stage = stage
        self.reason = reason
        super().__init__(f"Import into {account_id} failed during {stage}: {reason}")


class OperationCancelledError(StatementImportError):
    """The caller cancelled a batch operation while it was running."""

    code: str = "OPERATION_CANCELLED"

    def __init__(self, operation: str, processed: int):
        self.operation = operation
        self.processed = processed
        super().__init__(f"{operation} cancelled after {processed} items")
