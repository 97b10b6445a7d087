"""
Row source protocol and probe DTO.

Contract:
    RowSource.read() yields one list of cell strings per source record.
    RowSource.probe() returns a quick snapshot: header and first rows.

Architecture: banking_ingestion/adapters. Stream I/O only, no DB imports.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterator, Protocol, TextIO, runtime_checkable

from banking_ingestion.domain.types import MalformedRecord


@runtime_checkable
class RowSource(Protocol):
    """Protocol for reading statement exports into rows of cells."""

    def read(
        self,
        stream: TextIO,
        options: dict[str, Any] | None = None,
        tolerant: bool = False,
    ) -> Iterator[list[str] | MalformedRecord]:
        """Yield one list of cells per record. Streams; does not load the whole input."""
        ...

    def probe(self, stream: TextIO, options: dict[str, Any] | None = None) -> "SourceProbe":
        """Quick probe: first row (candidate header) and sample rows."""
        ...


@dataclass(frozen=True)
class SourceProbe:
    """Result of probing a statement export."""

    header: tuple[str, ...]
    sample_rows: tuple[tuple[str, ...], ...]
    delimiter: str
