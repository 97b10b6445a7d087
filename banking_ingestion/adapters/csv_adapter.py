"""
CSV row source for bank statement exports.

Uses csv.reader. Tolerant of what banks actually emit: ragged rows,
stray quotes inside fields, spaces after delimiters and a UTF-8 BOM.
Configurable: delimiter, quoting, encoding (for paths). Streams rows.
"""

from __future__ import annotations

import csv
import io
from pathlib import Path
from typing import Any, Iterator, TextIO

from banking_ingestion.adapters.base import SourceProbe
from banking_ingestion.domain.types import MalformedRecord

_QUOTING = {
    "minimal": csv.QUOTE_MINIMAL,
    "none": csv.QUOTE_NONE,
}

_BOM = "\ufeff"

PROBE_SAMPLE_SIZE = 5


def _get_encoding(options: dict[str, Any]) -> str:
    enc = options.get("encoding", "utf-8")
    if enc.lower() == "utf-8":
        return "utf-8-sig"  # Strip BOM if present
    return enc


def _get_quoting(options: dict[str, Any]) -> int:
    q = options.get("quoting", "minimal")
    if isinstance(q, int):
        return q
    return _QUOTING.get(str(q).lower(), csv.QUOTE_MINIMAL)


def _sniff_delimiter(first_line: str) -> str:
    # Estonian bank exports use ';', everything else ','
    return ";" if first_line.count(";") > first_line.count(",") else ","


class CsvRowReader:
    """Read CSV statement exports as one list of cells per row."""

    def read(
        self,
        stream: TextIO,
        options: dict[str, Any] | None = None,
        tolerant: bool = False,
    ) -> Iterator[list[str] | MalformedRecord]:
        """
        Yield one list of cells per record.

        With ``tolerant`` a record that csv cannot split (a field over
        ``csv.field_size_limit()``) is yielded as ``MalformedRecord`` and
        reading resumes on the next line.  Otherwise ``csv.Error`` propagates.
        """
        options = options or {}
        delimiter = options.get("delimiter")
        if delimiter is None:
            text = stream.read()
            delimiter = _sniff_delimiter(text.split("\n", 1)[0])
            stream = io.StringIO(text)
        reader = csv.reader(
            stream,
            delimiter=delimiter,
            quoting=_get_quoting(options),
            skipinitialspace=True,
            strict=False,
        )
        first = True
        while True:
            try:
                row = next(reader)
            except StopIteration:
                return
            except csv.Error as exc:
                if not tolerant:
                    raise
                first = False
                yield MalformedRecord(reason=str(exc))
                continue
            if first and row and row[0].startswith(_BOM):
                row[0] = row[0][len(_BOM):]
            first = False
            yield row

    def read_path(self, source_path: Path, options: dict[str, Any] | None = None) -> list[list[str]]:
        """Read a whole file; the encoding option applies here."""
        options = options or {}
        with source_path.open("r", encoding=_get_encoding(options), newline="") as f:
            return list(self.read(f, options))

    def preview(self, stream: TextIO, max_rows: int, options: dict[str, Any] | None = None) -> list[list[str]]:
        """First ``max_rows`` rows, header included, for showing a user before import."""
        rows: list[list[str]] = []
        if max_rows <= 0:
            return rows
        for row in self.read(stream, options):
            rows.append(row)
            if len(rows) >= max_rows:
                break
        return rows

    def probe(self, stream: TextIO, options: dict[str, Any] | None = None) -> SourceProbe:
        options = dict(options or {})
        if "delimiter" not in options:
            text = stream.read()
            options["delimiter"] = _sniff_delimiter(text.split("\n", 1)[0])
            stream = io.StringIO(text)
        rows = self.preview(stream, PROBE_SAMPLE_SIZE + 1, options)
        if not rows:
            return SourceProbe(header=(), sample_rows=(), delimiter=options["delimiter"])
        return SourceProbe(
            header=tuple(rows[0]),
            sample_rows=tuple(tuple(r) for r in rows[1:]),
            delimiter=options["delimiter"],
        )
