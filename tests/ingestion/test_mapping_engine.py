"""Tests for header aliasing and row mapping."""

import pytest

from lead_config.schema import STAGING_FIELDS
from lead_ingestion.adapters.base import RawTable
from lead_ingestion.mapping.engine import (
    build_column_map,
    map_row,
    map_table,
    normalize_filing_date,
    normalize_header,
)


@pytest.fixture
def aliases(ingestion_schema):
    return ingestion_schema.alias_table()


class TestNormalizeHeader:

    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("Company Name", "company_name"),
            ("  E-mail  ", "e_mail"),
            ("SEC Filing URL", "sec_filing_url"),
            ("__Phone #__", "phone"),
            ("Title/Role", "title_role"),
        ],
    )
    def test_normalization(self, raw, expected):
        assert normalize_header(raw) == expected


class TestBuildColumnMap:

    def test_aliases_resolve(self, aliases):
        column_map, ignored = build_column_map(("Company", "Work Email", "Favorite Color"), aliases)
        assert column_map == {"company_name": 0, "validated_corporate_email": 1}
        assert ignored == ("Favorite Color",)

    def test_leftmost_column_wins(self, aliases):
        column_map, _ = build_column_map(("Email", "Corporate Email"), aliases)
        assert column_map["validated_corporate_email"] == 0


class TestNormalizeFilingDate:

    def test_iso_kept_verbatim(self):
        assert normalize_filing_date("2024-02-03") == "2024-02-03"

    @pytest.mark.parametrize(
        "raw",
        ["02/03/2024", "2024/02/03", "Feb 03, 2024", "February 3, 2024", "3 Feb 2024", "2024-02-03T10:00:00"],
    )
    def test_reformatted(self, raw):
        assert normalize_filing_date(raw) == "2024-02-03"

    @pytest.mark.parametrize("raw", [None, "", "   ", "soon", "13/45/2024"])
    def test_unparseable_is_none(self, raw):
        assert normalize_filing_date(raw) is None


class TestMapRow:

    def test_short_rows_pad_with_none(self, aliases):
        column_map, _ = build_column_map(("Company", "Email", "Phone"), aliases)
        mapped = map_row(("Acme",), column_map, STAGING_FIELDS)
        assert mapped["company_name"] == "Acme"
        assert mapped["validated_corporate_email"] is None
        assert mapped["phone_number"] is None
        assert set(mapped) == set(STAGING_FIELDS)

    def test_values_trimmed_and_blank_is_none(self, aliases):
        column_map, _ = build_column_map(("Company", "Email"), aliases)
        mapped = map_row(("  Acme  ", "   "), column_map, STAGING_FIELDS)
        assert mapped["company_name"] == "Acme"
        assert mapped["validated_corporate_email"] is None

    def test_filing_date_normalized(self, aliases):
        column_map, _ = build_column_map(("Company", "Filing Date"), aliases)
        mapped = map_row(("Acme", "01/15/2024"), column_map, STAGING_FIELDS)
        assert mapped["filing_date"] == "2024-01-15"


class TestMapTable:

    def test_blank_rows_skipped_but_counted(self, aliases):
        table = RawTable(
            headers=("Company", "Email"),
            rows=(("Acme", "a@acme.com"), ("", ""), ("Beta", "b@beta.io")),
        )
        result = map_table(table, aliases, STAGING_FIELDS)
        assert [row.source_row for row in result.rows] == [1, 3]
        assert result.rows[1].fields["company_name"] == "Beta"
