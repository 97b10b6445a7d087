"""
banking_ingestion.domain.formats -- Built-in bank export layouts.

The registry is assembled once at import time and exposed read-only.
Formats without a dedicated layout resolve to the generic one.
"""

from collections.abc import Mapping, Sequence
from types import MappingProxyType

from banking_ingestion.domain.types import BankFormat, ColumnMapping

GENERIC_MAPPING = ColumnMapping(
    date_column=0,
    amount_column=1,
    description_column=2,
    date_format="%Y-%m-%d",
    decimal_separator=".",
    thousands_separator=",",
    skip_rows=0,
    has_header=True,
)

# Swedbank Estonia: Kuupäev;Väärtuspäev;...;Summa;...;Viitenumber;Selgitus;Saaja/Maksja nimi;Konto
SWEDBANK_EE_MAPPING = ColumnMapping(
    date_column=0,
    value_date_column=1,
    amount_column=3,
    reference_column=5,
    description_column=6,
    counterparty_name_column=7,
    counterparty_account_column=8,
    date_format="%d.%m.%Y",
    decimal_separator=",",
    thousands_separator=" ",
    skip_rows=0,
    has_header=True,
)

BANK_FORMATS: Mapping[BankFormat, ColumnMapping] = MappingProxyType({
    BankFormat.GENERIC: GENERIC_MAPPING,
    BankFormat.SWEDBANK_EE: SWEDBANK_EE_MAPPING,
})

# Header keywords that together identify a Swedbank EE export
_SWEDBANK_EE_MARKERS = ("kuupäev", "summa", "saaja/maksja nimi")


def detect_format(headers: Sequence[str]) -> BankFormat:
    """Guess the export layout from its header row."""
    header_text = ",".join(headers).lower()
    if all(marker in header_text for marker in _SWEDBANK_EE_MARKERS):
        return BankFormat.SWEDBANK_EE
    return BankFormat.GENERIC


def mapping_for_format(fmt: BankFormat) -> ColumnMapping:
    """Column mapping for ``fmt``; formats without one get the generic mapping."""
    return BANK_FORMATS.get(fmt, GENERIC_MAPPING)
