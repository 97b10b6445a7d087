"""
Import service: parse -> deduplicate -> persist -> summarize.

Orchestrates the CSV row reader, the statement parser and the duplicate
detector, and writes bank transactions plus one import summary through the
banking repository.  Uses structured logging (LogContext,
get_logger("ingestion.*")).

Transaction boundary:
    One import is one unit of work.  Row-level problems (unreadable
    records, unparseable cells, a failed duplicate check) are recorded as
    "Row N: ..." strings and the row is skipped.  Anything else -- an
    insert, the summary write, the commit -- rolls back the whole import
    and raises ``ImportFailedError``.  Cancellation rolls back and raises
    ``OperationCancelledError``.

    Each duplicate check runs in a SAVEPOINT; a failed check rolls back to
    it and leaves the import transaction usable.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Sequence
from itertools import chain
from typing import Any, TextIO
from uuid import UUID, uuid4

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from banking_ingestion.adapters.csv_adapter import CsvRowReader
from banking_ingestion.domain.formats import detect_format, mapping_for_format
from banking_ingestion.domain.types import (
    ColumnMapping,
    ImportResult,
    RowOutcome,
    StatementRow,
)
from banking_ingestion.mapping.engine import iter_row_outcomes, parse_statement_row
from banking_ingestion.services.duplicate_detector import DuplicateDetector
from banking_kernel.domain.clock import Clock, SystemClock
from banking_kernel.exceptions import (
    AccountNotFoundError,
    ImportFailedError,
    OperationCancelledError,
)
from banking_kernel.logging_config import LogContext, get_logger
from banking_modules.banking.models import (
    BankStatementImport,
    BankTransaction,
    TransactionStatus,
)
from banking_modules.banking.repository import BankingRepository, SqlAlchemyBankingRepository

logger = get_logger("ingestion.import_service")

CancelCheck = Callable[[], bool]


def _never_cancelled() -> bool:
    return False


class ImportService:
    """
    Imports bank statements into one tenant's accounts.

    Contract:
        ``import_csv`` and ``import_rows`` either commit every accepted row
        together with the import summary and return an ``ImportResult``,
        or roll back and raise.  No partial import is ever committed.
    """

    def __init__(
        self,
        session: Session,
        tenant_id: str,
        clock: Clock | None = None,
        repository: BankingRepository | None = None,
        reader: CsvRowReader | None = None,
    ):
        self._session = session
        self._tenant_id = tenant_id
        self._clock = clock or SystemClock()
        self._repository = repository or SqlAlchemyBankingRepository(session, tenant_id)
        self._detector = DuplicateDetector(self._repository)
        self._reader = reader or CsvRowReader()

    # =========================================================================
    # Public API
    # =========================================================================

    def import_csv(
        self,
        account_id: UUID,
        stream: TextIO,
        file_name: str,
        mapping: ColumnMapping | None = None,
        skip_duplicates: bool = True,
        cancel: CancelCheck | None = None,
        reader_options: dict[str, Any] | None = None,
    ) -> ImportResult:
        """
        Import a CSV statement export.

        When ``mapping`` is None the layout is detected from the header row.

        Raises:
            AccountNotFoundError: Unknown account for this tenant.
            ImportFailedError: Persisting failed; nothing was committed.
            OperationCancelledError: ``cancel()`` returned True mid-import.
        """
        records = self._reader.read(stream, reader_options, tolerant=True)
        if mapping is None:
            first = next(records, None)
            header = first if isinstance(first, list) else []
            detected = detect_format(header)
            mapping = mapping_for_format(detected)
            logger.info("import_format_detected", extra={"format": detected.value})
            if first is not None:
                records = chain([first], records)
        return self._run_import(
            account_id,
            file_name,
            iter_row_outcomes(records, mapping),
            skip_duplicates,
            cancel,
        )

    def import_rows(
        self,
        account_id: UUID,
        rows: Sequence[StatementRow],
        file_name: str,
        skip_duplicates: bool = True,
        cancel: CancelCheck | None = None,
    ) -> ImportResult:
        """
        Import caller-supplied pre-parsed rows (ISO dates, plain decimals).

        Row numbers in errors are 1-based positions in ``rows``.
        """
        outcomes = (parse_statement_row(row, i) for i, row in enumerate(rows, start=1))
        return self._run_import(account_id, file_name, outcomes, skip_duplicates, cancel)

    # =========================================================================
    # Pipeline
    # =========================================================================

    def _run_import(
        self,
        account_id: UUID,
        file_name: str,
        outcomes: Iterable[RowOutcome],
        skip_duplicates: bool,
        cancel: CancelCheck | None,
    ) -> ImportResult:
        cancel = cancel or _never_cancelled
        import_id = uuid4()

        with LogContext.bind(
            tenant_id=self._tenant_id,
            bank_account_id=account_id,
            import_id=import_id,
        ):
            account = self._repository.find_account(account_id)
            if account is None:
                raise AccountNotFoundError(str(account_id))

            logger.info("import_started", extra={
                "file_name": file_name,
                "skip_duplicates": skip_duplicates,
            })

            imported = 0
            duplicates = 0
            processed = 0
            errors: list[str] = []
            stage = "insert"
            try:
                for outcome in outcomes:
                    if cancel():
                        raise OperationCancelledError("import", processed)
                    processed += 1

                    if outcome.draft is None:
                        errors.append(outcome.error)
                        logger.debug("import_row_rejected", extra={"row": outcome.row_number})
                        continue
                    draft = outcome.draft

                    if skip_duplicates:
                        try:
                            with self._session.begin_nested():
                                is_duplicate = self._detector.is_duplicate(
                                    account_id,
                                    draft.transaction_date,
                                    draft.amount,
                                    reference=draft.reference,
                                    external_id=draft.external_id,
                                )
                        except SQLAlchemyError as exc:
                            errors.append(f"Row {draft.row_number}: duplicate check failed: {exc}")
                            logger.warning("import_duplicate_check_failed", extra={
                                "row": draft.row_number,
                            }, exc_info=True)
                            continue
                        if is_duplicate:
                            duplicates += 1
                            continue

                    self._repository.insert_transaction(BankTransaction(
                        id=uuid4(),
                        tenant_id=self._tenant_id,
                        bank_account_id=account_id,
                        transaction_date=draft.transaction_date,
                        value_date=draft.value_date,
                        amount=draft.amount,
                        currency=account.currency,
                        description=draft.description,
                        reference=draft.reference,
                        counterparty_name=draft.counterparty_name,
                        counterparty_account=draft.counterparty_account,
                        external_id=draft.external_id,
                        status=TransactionStatus.UNMATCHED,
                        imported_at=self._clock.now(),
                    ))
                    self._session.flush()
                    imported += 1

                stage = "summary"
                self._repository.insert_import_summary(BankStatementImport(
                    id=import_id,
                    tenant_id=self._tenant_id,
                    bank_account_id=account_id,
                    file_name=file_name,
                    transactions_imported=imported,
                    transactions_matched=0,
                    duplicates_skipped=duplicates,
                    created_at=self._clock.now(),
                ))

                stage = "commit"
                self._session.commit()

            except OperationCancelledError:
                self._session.rollback()
                logger.warning("import_cancelled", extra={"processed": processed})
                raise
            except SQLAlchemyError as exc:
                self._session.rollback()
                logger.error("import_failed", extra={"stage": stage}, exc_info=True)
                raise ImportFailedError(str(account_id), stage, str(exc)) from exc
            except Exception:
                self._session.rollback()
                raise

            logger.info("import_completed", extra={
                "transactions_imported": imported,
                "duplicates_skipped": duplicates,
                "error_count": len(errors),
            })

        return ImportResult(
            import_id=import_id,
            transactions_imported=imported,
            transactions_matched=0,
            duplicates_skipped=duplicates,
            errors=tuple(errors),
        )
