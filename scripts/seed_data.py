#!/usr/bin/env python3
"""
Seed the database with a small demo catalogue.

Drops all tables, recreates them, creates an admin and a buyer profile,
stages and merges a handful of leads, grants the buyer some credits and
unlocks two leads so the catalogue shows every claim status.

Usage:
    python3 scripts/seed_data.py [--db-url URL]
"""

import argparse
import logging
import sys
from datetime import UTC, datetime
from pathlib import Path
from uuid import UUID

# ---------------------------------------------------------------------------
# Project root on sys.path
# ---------------------------------------------------------------------------
ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------
ADMIN_ID = UUID("00000000-0000-4000-8000-000000000001")
BUYER_ID = UUID("00000000-0000-4000-8000-000000000002")
BUYER_CREDITS = 25

SAMPLE_CSV = """\
Company Name,Contact Name,Title,Email,Phone,Website,State,Regulation,Filing Date,SEC URL
Acme Robotics,Jane Doe,CFO,jane@acme-robotics.com,555-0101,acme-robotics.com,CA,Reg D,01/15/2024,https://www.sec.gov/a
Bluefin Capital,Omar Haddad,Partner,omar@bluefin.vc,,bluefin.vc,NY,Reg A+,2024-02-03,
Cedar Health,Li Wei,COO,,555-0199,https://cedarhealth.io,TX,Reg CF,"March 9, 2024",
Dunmore Logistics,Ana Ruiz,CEO,ana@dunmore.co,555-0144,dunmore.co,WA,Reg D,2024-04-22,
"""


def main() -> int:
    parser = argparse.ArgumentParser(description="Seed demo leads, profiles and credits.")
    parser.add_argument("--db-url", default=None, help="Database URL (default: from config).")
    args = parser.parse_args()

    logging.disable(logging.CRITICAL)

    from lead_config import get_active_config
    from lead_config.bridges import build_claim_policy, engine_options
    from lead_ingestion.services.import_service import ImportService
    from lead_ingestion.services.merge_service import MergeService
    from lead_kernel.db.engine import (
        create_tables,
        drop_tables,
        init_engine_from_url,
        session_scope,
    )
    from lead_kernel.domain.business_rules import BusinessMode
    from lead_kernel.domain.clock import DeterministicClock
    from lead_kernel.domain.dtos import Role
    from lead_kernel.selectors.entitlement_selector import LeadCatalogSelector
    from lead_kernel.services.ledger_service import LedgerService
    from lead_kernel.services.profile_service import ProfileService
    from lead_kernel.services.unlock_service import UnlockService

    config = get_active_config()
    policy = build_claim_policy(config)
    clock = DeterministicClock(datetime(2025, 6, 15, 12, 0, 0, tzinfo=UTC), auto_tick=True)

    # -----------------------------------------------------------------
    # 1. Connect + reset
    # -----------------------------------------------------------------
    print()
    print("  [1/5] Connecting...")
    try:
        init_engine_from_url(args.db_url or config.database.url, **engine_options(config))
    except Exception as exc:
        print(f"  ERROR: {exc}", file=sys.stderr)
        return 1

    print("  [2/5] Dropping old tables and recreating schema...")
    drop_tables()
    create_tables()

    # -----------------------------------------------------------------
    # 2. Profiles
    # -----------------------------------------------------------------
    print("  [3/5] Creating admin and buyer profiles...")
    with session_scope() as session:
        profiles = ProfileService(session, clock)
        profiles.set_role(ADMIN_ID, Role.ADMIN)
        profiles.set_business_rule(BUYER_ID, BusinessMode.HYBRID)

    # -----------------------------------------------------------------
    # 3. Upload pipeline
    # -----------------------------------------------------------------
    print("  [4/5] Staging and merging sample leads...")
    with session_scope() as session:
        importer = ImportService(session, config.ingestion, clock)
        staged = importer.stage_csv("seed.csv", SAMPLE_CSV, ADMIN_ID)
        validated = importer.validate_batch(staged.batch_id, ADMIN_ID)
    if validated.invalid_rows:
        print(f"  ERROR: {validated.invalid_rows} seed rows failed validation", file=sys.stderr)
        return 1
    with session_scope() as session:
        merged = MergeService(session, clock).merge_batch(staged.batch_id, ADMIN_ID)
    print(f"        inserted {merged.inserted_rows} leads")

    # -----------------------------------------------------------------
    # 4. Credits and unlocks
    # -----------------------------------------------------------------
    print("  [5/5] Granting credits and unlocking two leads...")
    with session_scope() as session:
        LedgerService(session, clock).grant_credits(BUYER_ID, BUYER_CREDITS, actor_id=ADMIN_ID)
    with session_scope() as session:
        result = UnlockService(session, clock, policy).unlock(
            BUYER_ID, list(merged.inserted_lead_ids[:2])
        )
    print(f"        balance after unlock: {result.balance_after}")

    with session_scope() as session:
        for view in LeadCatalogSelector(session, policy).list_leads(BUYER_ID):
            print(f"        {view.company:<20} {view.status:<10} {view.capacity_label}")

    print()
    print(f"  Admin:  {ADMIN_ID}")
    print(f"  Buyer:  {BUYER_ID}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
