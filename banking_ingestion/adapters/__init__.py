"""Statement export readers."""

from banking_ingestion.adapters.base import RowSource, SourceProbe
from banking_ingestion.adapters.csv_adapter import CsvRowReader

__all__ = ["CsvRowReader", "RowSource", "SourceProbe"]
