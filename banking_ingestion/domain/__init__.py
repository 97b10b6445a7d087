"""Pure ingestion types and bank format presets."""

from banking_ingestion.domain.formats import (
    BANK_FORMATS,
    GENERIC_MAPPING,
    SWEDBANK_EE_MAPPING,
    detect_format,
    mapping_for_format,
)
from banking_ingestion.domain.types import (
    ABSENT,
    BankFormat,
    ColumnMapping,
    ImportResult,
    MalformedRecord,
    ParseResult,
    RowOutcome,
    StatementRow,
    TransactionDraft,
)

__all__ = [
    "ABSENT",
    "BANK_FORMATS",
    "BankFormat",
    "ColumnMapping",
    "GENERIC_MAPPING",
    "ImportResult",
    "MalformedRecord",
    "ParseResult",
    "RowOutcome",
    "SWEDBANK_EE_MAPPING",
    "StatementRow",
    "TransactionDraft",
    "detect_format",
    "mapping_for_format",
]
