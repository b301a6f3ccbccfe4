"""
seed_industry_multiples.py — Load industry multiples from CSV into the database.

This script:
1. Creates any missing tables
2. Replaces the industry_multiple table with the CSV rows (same validation
   as the admin import endpoint)
3. Recalculates every company and prints the {total, successful, failed} counts

Usage:
    python scripts/seed_industry_multiples.py --csv data/industry_multiples.csv
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from app.core.config import settings
from app.core.database import SessionLocal, init_db
from app.core.errors import InvalidInputError
from app.core.logging import configure_logging
from app.services.industry_multiples import import_multiples_csv

DEFAULT_CSV_PATH = Path(__file__).resolve().parent.parent / "data" / "industry_multiples.csv"


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Replace industry multiples from a CSV file and recalculate every company"
    )
    parser.add_argument(
        "--csv",
        type=str,
        default=str(DEFAULT_CSV_PATH),
        help="Path to the industry multiples CSV",
    )
    args = parser.parse_args()

    configure_logging(settings.LOG_LEVEL)

    if SessionLocal is None:
        print("ERROR: DATABASE_URL is not set", file=sys.stderr)
        sys.exit(1)

    csv_path = Path(args.csv)
    if not csv_path.exists():
        print(f"ERROR: CSV not found: {csv_path}", file=sys.stderr)
        sys.exit(1)

    init_db()
    db = SessionLocal()
    try:
        result = import_multiples_csv(db, csv_path.read_text(encoding="utf-8"))
    except InvalidInputError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        sys.exit(1)
    finally:
        db.close()

    print(f"Imported {result.imported} industry multiples from {csv_path}")
    counts = result.recalculation
    print(f"Recalculated companies: {counts.successful}/{counts.total} ({counts.failed} failed)")


if __name__ == "__main__":
    main()
