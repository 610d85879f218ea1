"""Tests for ImportService: staging, validation, correction and rejection."""

from dataclasses import replace
from uuid import uuid4

import pytest

from lead_ingestion.domain.types import BatchStatus
from lead_ingestion.models.staging import LeadUploadBatch
from lead_ingestion.services.import_service import ImportService
from lead_kernel.exceptions import (
    BatchNotFoundError,
    InvalidBatchStateError,
    InvalidInputError,
    StagingRowNotFoundError,
)

GOOD_CSV = (
    "Company Name,Contact Name,Email,Phone,Website,Filing Date\n"
    "Acme Robotics,Jane Doe,jane@acme.com,,acme.com,01/15/2024\n"
    "Bluefin Capital,Omar Haddad,,555-0101,,2024-02-03\n"
)

MIXED_CSV = (
    "Company,Email,Phone\n"
    "Acme,jane@acme.com,\n"
    ",nobody@void.io,\n"
    "NoContact,,\n"
)


@pytest.fixture
def importer(session, ingestion_schema, deterministic_clock):
    return ImportService(session, ingestion_schema, deterministic_clock)


class TestStageCsv:

    def test_stages_every_row(self, importer, test_actor_id):
        summary = importer.stage_csv("leads.csv", GOOD_CSV, test_actor_id)
        assert summary.total_rows == 2
        assert summary.staged_rows == 2
        assert summary.insert_errors == 0

        batch = importer.get_batch(summary.batch_id)
        assert batch.status is BatchStatus.UPLOADED
        assert batch.filename == "leads.csv"
        assert batch.uploaded_by == test_actor_id

        rows = importer.get_staging_rows(summary.batch_id)
        assert [r.source_row for r in rows] == [1, 2]
        assert rows[0].fields["company_name"] == "Acme Robotics"
        assert rows[0].fields["filing_date"] == "2024-01-15"
        assert rows[1].fields["validated_corporate_email"] is None
        assert all(not r.is_valid for r in rows)

    def test_bytes_with_bom(self, importer, test_actor_id):
        summary = importer.stage_csv("leads.csv", ("\ufeff" + GOOD_CSV).encode("utf-8"), test_actor_id)
        rows = importer.get_staging_rows(summary.batch_id)
        assert rows[0].fields["company_name"] == "Acme Robotics"

    def test_extension_required(self, importer, test_actor_id):
        with pytest.raises(InvalidInputError) as exc_info:
            importer.stage_csv("leads.txt", GOOD_CSV, test_actor_id)
        assert exc_info.value.field == "filename"

    def test_header_only_is_empty(self, importer, test_actor_id):
        with pytest.raises(InvalidInputError, match="empty or invalid CSV"):
            importer.stage_csv("leads.csv", "Company,Email\n", test_actor_id)

    def test_oversized_field_is_invalid_csv(self, importer, test_actor_id):
        text = "Company,Email\n\"" + "A" * 200_000 + "\",a@acme.com\n"
        with pytest.raises(InvalidInputError, match="empty or invalid CSV") as exc_info:
            importer.stage_csv("leads.csv", text, test_actor_id)
        assert exc_info.value.field == "file"

    def test_non_utf8_rejected(self, importer, test_actor_id):
        with pytest.raises(InvalidInputError):
            importer.stage_csv("leads.csv", b"Company\n\xff\xfe\xfa\n", test_actor_id)

    def test_too_large_rejected(self, session, ingestion_schema, deterministic_clock, test_actor_id):
        tiny = ImportService(session, replace(ingestion_schema, max_upload_bytes=10), deterministic_clock)
        with pytest.raises(InvalidInputError, match="too large"):
            tiny.stage_csv("leads.csv", GOOD_CSV, test_actor_id)

    def test_small_chunks_stage_everything(self, session, ingestion_schema, deterministic_clock, test_actor_id):
        chunked = ImportService(session, replace(ingestion_schema, chunk_size=1), deterministic_clock)
        summary = chunked.stage_csv("leads.csv", GOOD_CSV, test_actor_id)
        assert summary.staged_rows == 2


class TestInsertStagingRow:

    def test_appends_with_next_source_row(self, importer, test_actor_id):
        batch = importer.create_upload_batch("manual.csv", 2, test_actor_id)
        assert importer.insert_staging_row(batch.batch_id, {"company_name": "Acme"}, test_actor_id)
        assert importer.insert_staging_row(batch.batch_id, {"company_name": "Beta"}, test_actor_id)
        rows = importer.get_staging_rows(batch.batch_id)
        assert [r.source_row for r in rows] == [1, 2]

    def test_bad_row_counts_insert_error(self, importer, test_actor_id):
        batch = importer.create_upload_batch("manual.csv", 2, test_actor_id)
        assert not importer.insert_staging_row(batch.batch_id, {"company_name": {"nested": 1}}, test_actor_id)
        assert importer.insert_staging_row(batch.batch_id, {"company_name": "Fine"}, test_actor_id)
        assert importer.get_batch(batch.batch_id).insert_errors == 1
        assert len(importer.get_staging_rows(batch.batch_id)) == 1

    def test_oversized_cell_counts_insert_error(self, importer, test_actor_id):
        batch = importer.create_upload_batch("manual.csv", 1, test_actor_id)
        assert not importer.insert_staging_row(batch.batch_id, {"company_name": "x" * 5000}, test_actor_id)

    def test_unknown_batch(self, importer, test_actor_id):
        with pytest.raises(BatchNotFoundError):
            importer.insert_staging_row(uuid4(), {"company_name": "Acme"}, test_actor_id)

    def test_only_uploaded_batches_accept_rows(self, importer, test_actor_id):
        batch = importer.create_upload_batch("manual.csv", 0, test_actor_id)
        importer.validate_batch(batch.batch_id, test_actor_id)
        with pytest.raises(InvalidBatchStateError):
            importer.insert_staging_row(batch.batch_id, {"company_name": "Late"}, test_actor_id)

    @pytest.mark.parametrize("filename,total", [("", 1), ("a.csv", -1), ("a.csv", True)])
    def test_create_batch_input_checks(self, importer, test_actor_id, filename, total):
        with pytest.raises(InvalidInputError):
            importer.create_upload_batch(filename, total, test_actor_id)


class TestValidateBatch:

    def test_counts_and_errors(self, importer, test_actor_id):
        summary = importer.stage_csv("mixed.csv", MIXED_CSV, test_actor_id)
        result = importer.validate_batch(summary.batch_id, test_actor_id)
        assert (result.total_rows, result.valid_rows, result.invalid_rows) == (3, 1, 2)

        batch = importer.get_batch(summary.batch_id)
        assert batch.status is BatchStatus.VALIDATED
        assert (batch.valid_rows, batch.invalid_rows) == (1, 2)

        invalid = importer.get_staging_rows(summary.batch_id, only_invalid=True)
        assert [r.validation_errors for r in invalid] == [
            "MISSING_REQUIRED_FIELD:company_name",
            "MISSING_CONTACT:validated_corporate_email|phone_number",
        ]

    def test_sets_identity_keys(self, importer, test_actor_id):
        summary = importer.stage_csv("leads.csv", GOOD_CSV, test_actor_id)
        importer.validate_batch(summary.batch_id, test_actor_id)
        first = importer.get_staging_rows(summary.batch_id)[0]
        assert first.email_norm == "jane@acme.com"
        assert first.company_norm == "acme robotics"

    def test_rerunnable(self, importer, test_actor_id):
        summary = importer.stage_csv("leads.csv", GOOD_CSV, test_actor_id)
        first = importer.validate_batch(summary.batch_id, test_actor_id)
        second = importer.validate_batch(summary.batch_id, test_actor_id)
        assert first == second

    def test_rejected_batch_cannot_validate(self, importer, test_actor_id):
        summary = importer.stage_csv("leads.csv", GOOD_CSV, test_actor_id)
        importer.reject_batch(summary.batch_id, test_actor_id)
        with pytest.raises(InvalidBatchStateError):
            importer.validate_batch(summary.batch_id, test_actor_id)


class TestCorrectStagingRow:

    def test_correction_clears_validation(self, importer, test_actor_id):
        summary = importer.stage_csv("mixed.csv", MIXED_CSV, test_actor_id)
        importer.validate_batch(summary.batch_id, test_actor_id)
        bad = importer.get_staging_rows(summary.batch_id, only_invalid=True)[0]

        corrected = importer.correct_staging_row(bad.row_id, {"company_name": " Void Labs "}, test_actor_id)
        assert corrected.fields["company_name"] == "Void Labs"
        assert corrected.is_valid is False
        assert corrected.validation_errors is None

        result = importer.validate_batch(summary.batch_id, test_actor_id)
        assert result.valid_rows == 2

    def test_filing_date_normalized(self, importer, test_actor_id):
        summary = importer.stage_csv("leads.csv", GOOD_CSV, test_actor_id)
        row = importer.get_staging_rows(summary.batch_id)[0]
        corrected = importer.correct_staging_row(row.row_id, {"filing_date": "March 9, 2024"}, test_actor_id)
        assert corrected.fields["filing_date"] == "2024-03-09"

    def test_unknown_field_rejected(self, importer, test_actor_id):
        summary = importer.stage_csv("leads.csv", GOOD_CSV, test_actor_id)
        row = importer.get_staging_rows(summary.batch_id)[0]
        with pytest.raises(InvalidInputError, match="unknown staging fields"):
            importer.correct_staging_row(row.row_id, {"favorite_color": "red"}, test_actor_id)

    def test_unknown_row(self, importer, test_actor_id):
        with pytest.raises(StagingRowNotFoundError):
            importer.correct_staging_row(uuid4(), {"company_name": "x"}, test_actor_id)

    def test_rejected_batch_rows_frozen(self, importer, test_actor_id):
        summary = importer.stage_csv("leads.csv", GOOD_CSV, test_actor_id)
        row = importer.get_staging_rows(summary.batch_id)[0]
        importer.reject_batch(summary.batch_id, test_actor_id)
        with pytest.raises(InvalidBatchStateError):
            importer.correct_staging_row(row.row_id, {"company_name": "x"}, test_actor_id)


class TestRejectAndList:

    def test_reject_stamps_time(self, importer, test_actor_id):
        summary = importer.stage_csv("leads.csv", GOOD_CSV, test_actor_id)
        batch = importer.reject_batch(summary.batch_id, test_actor_id)
        assert batch.status is BatchStatus.REJECTED
        assert batch.rejected_at is not None

    def test_reject_twice_fails(self, importer, test_actor_id):
        summary = importer.stage_csv("leads.csv", GOOD_CSV, test_actor_id)
        importer.reject_batch(summary.batch_id, test_actor_id)
        with pytest.raises(InvalidBatchStateError):
            importer.reject_batch(summary.batch_id, test_actor_id)

    def test_list_newest_first(self, importer, session, test_actor_id):
        first = importer.create_upload_batch("first.csv", 0, test_actor_id)
        second = importer.create_upload_batch("second.csv", 0, test_actor_id)
        listed = [b.batch_id for b in importer.list_batches()]
        assert listed.index(second.batch_id) < listed.index(first.batch_id)
        assert session.get(LeadUploadBatch, first.batch_id) is not None

    def test_get_staging_rows_unknown_batch(self, importer):
        with pytest.raises(BatchNotFoundError):
            importer.get_staging_rows(uuid4())
