"""
CSV source adapter.

Uses csv.reader over an untranslated text stream, so CR, LF and CRLF line
endings all terminate records while quoted fields may still contain commas,
line breaks and doubled quotes.  A leading BOM is dropped.  Rows whose
cells are all blank are skipped; the row numbering still counts them.
"""

from __future__ import annotations

import csv
import io
from pathlib import Path

from lead_ingestion.adapters.base import RawTable, SourceProbe

_BOM = "\ufeff"


def _is_blank(cells: list[str]) -> bool:
    return all(not cell.strip() for cell in cells)


class CsvSourceAdapter:
    """Read a whole CSV document into a RawTable."""

    def __init__(self, delimiter: str = ","):
        self.delimiter = delimiter

    def read_text(self, text: str) -> RawTable:
        if text.startswith(_BOM):
            text = text[len(_BOM):]
        reader = csv.reader(io.StringIO(text, newline=""), delimiter=self.delimiter)

        headers: tuple[str, ...] | None = None
        rows: list[tuple[str, ...]] = []
        for cells in reader:
            if headers is None:
                if _is_blank(cells):
                    continue
                headers = tuple(cells)
                continue
            rows.append(tuple(cells))

        # Trailing blank rows carry no numbering information.
        while rows and _is_blank(list(rows[-1])):
            rows.pop()
        return RawTable(headers=headers or (), rows=tuple(rows))

    def read_path(self, source_path: Path, encoding: str = "utf-8") -> RawTable:
        if encoding.lower() == "utf-8":
            encoding = "utf-8-sig"
        with Path(source_path).open("r", encoding=encoding, newline="") as f:
            return self.read_text(f.read())

    def probe(self, text: str, sample_size: int = 5) -> SourceProbe:
        table = self.read_text(text)
        data = [row for row in table.rows if not _is_blank(list(row))]
        return SourceProbe(
            row_count=len(data),
            columns=table.headers,
            sample_rows=tuple(data[:sample_size]),
        )


def is_blank_row(cells: tuple[str, ...]) -> bool:
    return _is_blank(list(cells))
