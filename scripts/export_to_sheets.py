#!/usr/bin/env python3
"""
One-off export of the attendee list to Google Sheets.

Runs the same full refresh as the scheduled job, on demand.

Usage:
    python scripts/export_to_sheets.py [--dry-run]

Options:
    --dry-run    Show what would be written without touching the sheet
"""
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from sqlmodel import Session

from epass.core.config import settings
from epass.core.database import engine
from epass.core.errors import UpstreamUnavailable
from epass.integrations.sheets import (
    CHUNK_SIZE,
    export_attendees,
    get_sheets_exporter,
    snapshot_rows,
)


def main(dry_run: bool = False):
    exporter = get_sheets_exporter()
    if exporter is None:
        print("Error: Google Sheets is not configured.")
        print("Set GOOGLE_SHEET_ID and GOOGLE_CREDENTIALS in .env first.")
        sys.exit(1)

    with Session(engine) as session:
        if dry_run:
            rows = snapshot_rows(session)
            chunks = (len(rows) + CHUNK_SIZE - 1) // CHUNK_SIZE
            print(f"{len(rows)} attendees would be written to '{settings.google_sheet_name}' "
                  f"in {chunks} range(s).")
            for row in rows[:5]:
                print(f"  {row[0]}  {row[1]}  {row[6]}")
            if len(rows) > 5:
                print(f"  ... and {len(rows) - 5} more")
            print("--- DRY RUN: No changes made ---")
            return

        try:
            result = export_attendees(session, exporter)
        except UpstreamUnavailable as e:
            print(f"FAILED: {e.message}")
            sys.exit(1)

    print(f"Complete: {result['rows']} rows written in {result['batches']} batch(es)")


if __name__ == "__main__":
    dry_run = "--dry-run" in sys.argv
    main(dry_run=dry_run)
