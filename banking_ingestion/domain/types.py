"""
banking_ingestion.domain.types -- Pure frozen dataclasses for statement ingestion.

ZERO I/O.  Column mappings, parsed drafts, per-row outcomes and the import
summary returned to callers.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID

# Column index meaning "this optional column is not present"
ABSENT = -1


class BankFormat(str, Enum):
    """Known bank export layouts."""

    GENERIC = "generic"
    SWEDBANK_EE = "swedbank_ee"
    SEB_EE = "seb_ee"
    LHV_EE = "lhv_ee"


@dataclass(frozen=True)
class ColumnMapping:
    """
    Where each field lives in a statement row and how to read it.

    Column indices are zero-based; ``ABSENT`` marks an optional column that
    the export does not have.  ``date_format`` is a ``strptime`` layout.
    """

    date_column: int
    amount_column: int
    description_column: int = ABSENT
    value_date_column: int = ABSENT
    reference_column: int = ABSENT
    counterparty_name_column: int = ABSENT
    counterparty_account_column: int = ABSENT
    external_id_column: int = ABSENT
    date_format: str = "%Y-%m-%d"
    decimal_separator: str = "."
    thousands_separator: str = ","
    skip_rows: int = 0
    has_header: bool = True

    def __post_init__(self) -> None:
        if self.date_column < 0 or self.amount_column < 0:
            raise ValueError("date_column and amount_column are required")
        if self.skip_rows < 0:
            raise ValueError("skip_rows cannot be negative")
        if not self.decimal_separator:
            raise ValueError("decimal_separator is required")
        if self.decimal_separator == self.thousands_separator:
            raise ValueError("decimal and thousands separators must differ")

    @property
    def first_data_row(self) -> int:
        """1-based source row number of the first data row."""
        return self.skip_rows + (1 if self.has_header else 0) + 1


@dataclass(frozen=True)
class TransactionDraft:
    """One parsed statement line, not yet deduplicated or persisted."""

    row_number: int
    transaction_date: date
    amount: Decimal
    description: str = ""
    reference: str = ""
    counterparty_name: str = ""
    counterparty_account: str = ""
    external_id: str = ""
    value_date: date | None = None


@dataclass(frozen=True)
class StatementRow:
    """
    A pre-parsed statement line supplied by the caller instead of a CSV.

    ``date`` and ``value_date`` are ISO ``YYYY-MM-DD`` strings; ``amount`` is
    a plain decimal string with ``.`` as the separator.
    """

    date: str
    amount: str
    description: str = ""
    reference: str = ""
    counterparty_name: str = ""
    counterparty_account: str = ""
    external_id: str = ""
    value_date: str = ""


@dataclass(frozen=True)
class MalformedRecord:
    """A source record the CSV reader could not split into cells."""

    reason: str


@dataclass(frozen=True)
class RowOutcome:
    """Result of parsing one row: a draft on success, an error string otherwise."""

    row_number: int
    draft: TransactionDraft | None = None
    error: str | None = None

    @property
    def success(self) -> bool:
        return self.draft is not None


@dataclass(frozen=True)
class ParseResult:
    """Drafts and row-tagged errors from one statement, in source order."""

    drafts: tuple[TransactionDraft, ...] = ()
    errors: tuple[str, ...] = ()


@dataclass(frozen=True)
class ImportResult:
    """Summary of one completed import."""

    import_id: UUID
    transactions_imported: int = 0
    transactions_matched: int = 0
    duplicates_skipped: int = 0
    errors: tuple[str, ...] = field(default_factory=tuple)
