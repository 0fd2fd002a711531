#!/usr/bin/env python3
"""
Upload a municipal budget CSV to the database
"""

import argparse
import sys

from app.config import Settings
from app.db import BudgetStore, create_db_engine
from app.errors import BudgetError
from app.ingest import normalize_csv
from app.logger import setup_logger


def upload_budget_csv(path: str, create_schema: bool = False) -> int:
    """Normalize the CSV at path, insert it, and print a verification summary."""
    settings = Settings.from_env()
    setup_logger("app", settings.log_file, settings.log_level)

    print("Connecting to database...")
    store = BudgetStore(create_db_engine(settings.database_url))
    if create_schema:
        print("Creating municipal_budget table if missing...")
        store.create_schema()

    print(f"Reading {path}...")
    with open(path, "r", encoding="utf-8") as f:
        normalized = normalize_csv(f.read())

    print(f"Prepared {len(normalized.rows)} records for upload")
    if normalized.warning_count:
        print(f"Warnings: {normalized.skipped_rows} malformed lines skipped, "
              f"{normalized.rejected_rows} rows missing account/glcode, "
              f"{normalized.defaulted_values} amounts defaulted to 0")

    imported = store.insert_rows(normalized.rows)
    print(f"Successfully uploaded {imported} budget records!")

    print("\nVerification by department:")
    for summary in store.department_summary():
        print(f"  {summary.account}: {summary.row_count} records, "
              f"${summary.total_used:,.2f} used of ${summary.total_allocated:,.2f}")

    return imported


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Upload a budget CSV to municipal_budget")
    parser.add_argument("path", help="CSV file with account, glcode, budget_a, used_amt, remaining_amt columns")
    parser.add_argument("--create-schema", action="store_true", help="create the table before uploading")
    args = parser.parse_args(argv)

    try:
        upload_budget_csv(args.path, create_schema=args.create_schema)
    except BudgetError as e:
        print(f"Error uploading data: {e.message}")
        return 1
    except OSError as e:
        print(f"Error reading {args.path}: {e}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
