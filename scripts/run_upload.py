#!/usr/bin/env python3
"""
Run the lead upload pipeline: stage a CSV file, validate it, and optionally merge.

Uses the header aliases and validation rules from the active config
(get_active_config).  Tables are created on first use.

Usage:
    python3 scripts/run_upload.py --file <path> [options]

Examples:
    # Stage and validate only
    python3 scripts/run_upload.py --file leads.csv

    # Full pipeline: stage, validate, approve and merge
    python3 scripts/run_upload.py --file leads.csv --merge

    # Probe source file (row count, columns, sample) without loading
    python3 scripts/run_upload.py --file leads.csv --probe-only
"""

from __future__ import annotations

import argparse
import os
import sys
from pathlib import Path
from uuid import UUID, uuid4

# Project root on sys.path
ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Run upload pipeline: stage -> validate -> [merge] using config header aliases.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "--file",
        required=True,
        type=Path,
        help="Path to the CSV file.",
    )
    parser.add_argument(
        "--merge",
        action="store_true",
        help="Approve and merge the batch when every row is valid.",
    )
    parser.add_argument(
        "--probe-only",
        action="store_true",
        help="Probe source file (row count, columns, sample rows) and exit. No DB writes.",
    )
    parser.add_argument(
        "--actor-id",
        default=None,
        help="Actor UUID for audit (default: RUN_UPLOAD_ACTOR_ID env or new UUID).",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Configuration YAML (default: LEADS_CONFIG_PATH or the shipped defaults).",
    )
    parser.add_argument(
        "--db-url",
        default=None,
        help="Database URL (default: database.url from the config).",
    )
    return parser.parse_args()


def main() -> int:
    args = _parse_args()

    actor_id = UUID(args.actor_id or os.environ.get("RUN_UPLOAD_ACTOR_ID") or str(uuid4()))
    source_path = args.file.resolve()
    if not source_path.is_file():
        print(f"ERROR: File not found: {source_path}", file=sys.stderr)
        return 1

    # Lazy imports so we fail fast on args first
    from lead_config import get_active_config
    from lead_config.bridges import engine_options
    from lead_ingestion.adapters.csv_adapter import CsvSourceAdapter
    from lead_ingestion.services.import_service import ImportService
    from lead_ingestion.services.merge_service import MergeService
    from lead_kernel.db.engine import create_tables, init_engine_from_url, session_scope
    from lead_kernel.domain.clock import SystemClock
    from lead_kernel.exceptions import LeadKernelError

    if args.probe_only:
        probe = CsvSourceAdapter().probe(source_path.read_text(encoding="utf-8-sig"))
        print(f"Rows: {probe.row_count}")
        print(f"Columns: {list(probe.columns)}")
        print("Sample (first 3):")
        for i, row in enumerate(probe.sample_rows[:3], 1):
            print(f"  {i}: {row}")
        return 0

    try:
        config = get_active_config(args.config)
    except Exception as e:
        print(f"ERROR: Failed to load config: {e}", file=sys.stderr)
        return 1

    try:
        init_engine_from_url(args.db_url or config.database.url, **engine_options(config))
        create_tables()
    except Exception as e:
        print(f"ERROR: Database init failed: {e}", file=sys.stderr)
        return 1

    clock = SystemClock()
    try:
        print(f"Staging {source_path}...")
        with session_scope() as session:
            staged = ImportService(session, config.ingestion, clock).stage_csv(
                source_path.name, source_path.read_bytes(), actor_id
            )
        print(
            f"  Staged {staged.staged_rows}/{staged.total_rows} rows "
            f"(batch_id={staged.batch_id}, insert_errors={staged.insert_errors})"
        )

        print("Validating...")
        with session_scope() as session:
            importer = ImportService(session, config.ingestion, clock)
            validated = importer.validate_batch(staged.batch_id, actor_id)
            invalid = importer.get_staging_rows(staged.batch_id, only_invalid=True)
        print(f"  Valid: {validated.valid_rows}, Invalid: {validated.invalid_rows}")
        for row in invalid[:10]:
            print(f"  Row {row.source_row}: {row.validation_errors}")
        if len(invalid) > 10:
            print(f"  ... and {len(invalid) - 10} more invalid rows.")

        if not args.merge:
            print("Skipping merge (pass --merge to merge).")
            return 0

        if validated.invalid_rows:
            print("Batch has invalid rows; correct and revalidate before merging.")
            return 1

        print("Merging...")
        with session_scope() as session:
            result = MergeService(session, clock).merge_batch(staged.batch_id, actor_id)
        print(f"  Inserted: {result.inserted_rows}, Skipped (duplicates): {result.skipped_rows}")
        return 0
    except LeadKernelError as e:
        print(f"ERROR [{e.code}]: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
