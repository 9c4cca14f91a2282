#!/usr/bin/env python3
"""
Create the database schema and seed the default system settings.

Safe to run repeatedly: existing tables and settings are left alone.

Usage:
    python scripts/init_db.py
"""
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from epass.core.config import settings
from epass.core.database import SCHEMA_VERSION, init_schema
from epass.core.logging import setup_logging


def main():
    setup_logging(settings)
    print(f"Initialising schema v{SCHEMA_VERSION} on {settings.database_url.split('@')[-1]}")
    init_schema()
    print("Done.")


if __name__ == "__main__":
    main()
