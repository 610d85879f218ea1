"""
Source adapter protocol and table DTOs.

Contract:
    SourceAdapter.read_text() turns raw text into a header row plus data
    rows (lists of cell strings), leaving header interpretation to the
    mapping engine.

Architecture: lead_ingestion/adapters. Text/file I/O only, no DB imports.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Protocol, runtime_checkable


@dataclass(frozen=True)
class RawTable:
    """Header cells and data rows exactly as read. ``rows[i]`` is data row i+1."""

    headers: tuple[str, ...]
    rows: tuple[tuple[str, ...], ...]


@dataclass(frozen=True)
class SourceProbe:
    """Quick look at a source: row count, columns, first N rows."""

    row_count: int
    columns: tuple[str, ...]
    sample_rows: tuple[tuple[str, ...], ...]


@runtime_checkable
class SourceAdapter(Protocol):

    def read_text(self, text: str) -> RawTable:
        ...

    def read_path(self, source_path: Path, encoding: str = "utf-8") -> RawTable:
        ...
