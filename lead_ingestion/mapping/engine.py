"""
Mapping engine: pure transformation from a RawTable to staging field dicts.

Header normalization lowercases, turns every run of non-alphanumerics into
a single ``_`` and trims underscores.  The alias table maps normalized
headers to staging fields; when two columns alias the same field the
leftmost wins.  Unknown headers are ignored.  ZERO I/O.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime

from lead_ingestion.adapters.base import RawTable
from lead_ingestion.adapters.csv_adapter import is_blank_row
from lead_ingestion.domain.types import ParsedRow

_NON_ALNUM = re.compile(r"[^a-z0-9]+")
_ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")

DEFAULT_DATE_FORMATS: tuple[str, ...] = (
    "%Y/%m/%d",
    "%m/%d/%Y",
    "%m/%d/%y",
    "%m-%d-%Y",
    "%b %d, %Y",
    "%B %d, %Y",
    "%d %b %Y",
    "%d %B %Y",
    "%Y-%m-%dT%H:%M:%S",
    "%Y-%m-%dT%H:%M:%SZ",
    "%Y-%m-%d %H:%M:%S",
)


@dataclass(frozen=True)
class MappingResult:
    rows: tuple[ParsedRow, ...]
    column_map: dict[str, int]
    ignored_headers: tuple[str, ...] = ()


def normalize_header(header: str) -> str:
    return _NON_ALNUM.sub("_", header.strip().lower()).strip("_")


def build_column_map(headers: tuple[str, ...], aliases: dict[str, str]) -> tuple[dict[str, int], tuple[str, ...]]:
    """Staging field -> column index (leftmost wins), plus ignored headers."""
    column_map: dict[str, int] = {}
    ignored: list[str] = []
    for index, header in enumerate(headers):
        target = aliases.get(normalize_header(header))
        if target is None:
            ignored.append(header)
            continue
        column_map.setdefault(target, index)
    return column_map, tuple(ignored)


def normalize_filing_date(
    raw: str | None,
    formats: tuple[str, ...] = DEFAULT_DATE_FORMATS,
) -> str | None:
    """``YYYY-MM-DD`` verbatim; otherwise reparse and reformat; else None."""
    if raw is None:
        return None
    value = raw.strip()
    if not value:
        return None
    if _ISO_DATE.match(value):
        return value
    for fmt in formats:
        try:
            return datetime.strptime(value, fmt).date().isoformat()
        except ValueError:
            continue
    try:
        return datetime.fromisoformat(value).date().isoformat()
    except ValueError:
        return None


def clean_value(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    return value or None


def map_row(
    cells: tuple[str, ...],
    column_map: dict[str, int],
    fields: tuple[str, ...],
    date_formats: tuple[str, ...] = DEFAULT_DATE_FORMATS,
) -> dict[str, str | None]:
    """Short rows read as empty cells; extra cells are ignored."""
    mapped: dict[str, str | None] = {}
    for name in fields:
        index = column_map.get(name)
        raw = cells[index] if index is not None and index < len(cells) else None
        mapped[name] = clean_value(raw)
    if "filing_date" in mapped:
        mapped["filing_date"] = normalize_filing_date(mapped["filing_date"], date_formats)
    return mapped


def map_table(
    table: RawTable,
    aliases: dict[str, str],
    fields: tuple[str, ...],
    date_formats: tuple[str, ...] = DEFAULT_DATE_FORMATS,
) -> MappingResult:
    column_map, ignored = build_column_map(table.headers, aliases)
    rows = tuple(
        ParsedRow(source_row=number, fields=map_row(cells, column_map, fields, date_formats))
        for number, cells in enumerate(table.rows, start=1)
        if not is_blank_row(cells)
    )
    return MappingResult(rows=rows, column_map=column_map, ignored_headers=ignored)
