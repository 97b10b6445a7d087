"""
Statement parser: pure transformation from raw rows to transaction drafts.

ZERO I/O.  Every row yields a ``RowOutcome`` -- a draft or a row-tagged
error string -- so one malformed line never aborts the batch.  Row numbers
are 1-based positions in the source, counting skipped preamble rows and
the header.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence

from banking_ingestion.domain.types import (
    ABSENT,
    ColumnMapping,
    MalformedRecord,
    ParseResult,
    RowOutcome,
    StatementRow,
    TransactionDraft,
)
from banking_ingestion.mapping.normalizer import parse_amount, parse_date
from banking_kernel.exceptions import (
    ColumnOutOfRangeError,
    InvalidAmountError,
    InvalidDateError,
)

ISO_DATE_FORMAT = "%Y-%m-%d"


def _cell(row: Sequence[str], index: int) -> str:
    """Stripped cell text, or "" when the column is absent or out of range."""
    if index == ABSENT or index >= len(row):
        return ""
    return row[index].strip()


def parse_row(row: Sequence[str], mapping: ColumnMapping, row_number: int) -> RowOutcome:
    """Parse one data row. Pure function."""
    if mapping.date_column >= len(row):
        return RowOutcome(row_number, error=f"Row {row_number}: missing date column")
    date_text = row[mapping.date_column].strip()
    try:
        transaction_date = parse_date(date_text, mapping.date_format)
    except InvalidDateError as exc:
        return RowOutcome(
            row_number,
            error=f"Row {row_number}: invalid date '{date_text}': {exc.reason}",
        )

    value_date = None
    value_date_text = _cell(row, mapping.value_date_column)
    if value_date_text:
        try:
            value_date = parse_date(value_date_text, mapping.date_format)
        except InvalidDateError:
            value_date = None

    if mapping.amount_column >= len(row):
        return RowOutcome(row_number, error=f"Row {row_number}: missing amount column")
    amount_text = row[mapping.amount_column].strip()
    try:
        amount = parse_amount(
            amount_text,
            decimal_separator=mapping.decimal_separator,
            thousands_separator=mapping.thousands_separator,
        )
    except InvalidAmountError as exc:
        return RowOutcome(
            row_number,
            error=f"Row {row_number}: invalid amount '{amount_text}': {exc.reason}",
        )

    return RowOutcome(
        row_number,
        draft=TransactionDraft(
            row_number=row_number,
            transaction_date=transaction_date,
            amount=amount,
            description=_cell(row, mapping.description_column),
            reference=_cell(row, mapping.reference_column),
            counterparty_name=_cell(row, mapping.counterparty_name_column),
            counterparty_account=_cell(row, mapping.counterparty_account_column),
            external_id=_cell(row, mapping.external_id_column),
            value_date=value_date,
        ),
    )


def iter_row_outcomes(
    rows: Iterable[Sequence[str] | MalformedRecord],
    mapping: ColumnMapping,
) -> Iterable[RowOutcome]:
    """
    Skip the preamble and header, then parse each data row lazily.

    Blank lines still count towards row numbers but produce no outcome.
    A record the reader could not split becomes a row error.
    """
    row_number = mapping.first_data_row
    iterator = iter(rows)
    for _ in range(mapping.first_data_row - 1):
        if next(iterator, None) is None:
            return
    for row in iterator:
        if isinstance(row, MalformedRecord):
            yield RowOutcome(row_number, error=f"Row {row_number}: {row.reason}")
        elif row and any(cell.strip() for cell in row):
            yield parse_row(row, mapping, row_number)
        row_number += 1


def parse_statement(rows: Iterable[Sequence[str]], mapping: ColumnMapping) -> ParseResult:
    """Parse a whole statement into drafts and row-tagged errors."""
    drafts: list[TransactionDraft] = []
    errors: list[str] = []
    for outcome in iter_row_outcomes(rows, mapping):
        if outcome.draft is not None:
            drafts.append(outcome.draft)
        else:
            errors.append(outcome.error)
    return ParseResult(drafts=tuple(drafts), errors=tuple(errors))


def parse_statement_row(row: StatementRow, row_number: int) -> RowOutcome:
    """Parse a caller-supplied pre-parsed row (ISO date, plain decimal amount)."""
    try:
        transaction_date = parse_date(row.date, ISO_DATE_FORMAT)
    except InvalidDateError:
        return RowOutcome(row_number, error=f"Row {row_number}: invalid date '{row.date}'")

    value_date = None
    if row.value_date:
        try:
            value_date = parse_date(row.value_date, ISO_DATE_FORMAT)
        except InvalidDateError:
            value_date = None

    try:
        amount = parse_amount(
            row.amount, decimal_separator=".", thousands_separator="", currency_symbols="",
        )
    except InvalidAmountError:
        return RowOutcome(row_number, error=f"Row {row_number}: invalid amount '{row.amount}'")

    return RowOutcome(
        row_number,
        draft=TransactionDraft(
            row_number=row_number,
            transaction_date=transaction_date,
            amount=amount,
            description=row.description,
            reference=row.reference,
            counterparty_name=row.counterparty_name,
            counterparty_account=row.counterparty_account,
            external_id=row.external_id,
            value_date=value_date,
        ),
    )


def validate_row(row: Sequence[str], mapping: ColumnMapping) -> None:
    """
    Check a single row against ``mapping`` without building a draft.

    Raises:
        ColumnOutOfRangeError: If the date or amount column is missing.
        InvalidDateError: If the date does not match ``mapping.date_format``.
        InvalidAmountError: If the amount is not a decimal.
    """
    if mapping.date_column >= len(row):
        raise ColumnOutOfRangeError("date", mapping.date_column, len(row))
    if mapping.amount_column >= len(row):
        raise ColumnOutOfRangeError("amount", mapping.amount_column, len(row))
    parse_date(row[mapping.date_column], mapping.date_format)
    parse_amount(
        row[mapping.amount_column].strip(),
        decimal_separator=mapping.decimal_separator,
        thousands_separator=mapping.thousands_separator,
    )
