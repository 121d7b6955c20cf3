#!/usr/bin/env python3
"""
Quick health check of the hosted backend: the requests table and the storage buckets.

Usage:
    cd backend
    PYTHONPATH=. python scripts/check_status.py
    PYTHONPATH=. python scripts/check_status.py --create-schema   # local SQLite: create missing tables first
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from sqlalchemy import func, select  # noqa: E402
from sqlalchemy.exc import SQLAlchemyError  # noqa: E402

from app.core.dependencies import SessionLocal, create_schema  # noqa: E402
from app.core.storage import bucket_definitions, get_storage_client, list_bucket_names  # noqa: E402
from app.models.water_service_request import WaterServiceRequest  # noqa: E402


def check_table() -> bool:
    if SessionLocal is None:
        print("  DATABASE_URL is not set")
        return False
    db = SessionLocal()
    try:
        count = db.scalar(select(func.count()).select_from(WaterServiceRequest)) or 0
    except SQLAlchemyError as exc:
        print(f"  water_service_requests not accessible: {exc.__class__.__name__}: {exc}")
        return False
    finally:
        db.close()
    print(f"  water_service_requests accessible ({count} rows)")
    return True


def check_buckets() -> bool:
    try:
        client = get_storage_client()
        existing = set(list_bucket_names(client))
    except Exception as exc:
        print(f"  storage not accessible: {exc}")
        return False
    ok = True
    for name in bucket_definitions():
        present = name in existing
        ok = ok and present
        print(f"  {'ok' if present else 'MISSING'}: {name} bucket")
    return ok


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Check the requests table and storage buckets.")
    parser.add_argument("--create-schema", action="store_true", help="Create missing tables before checking.")
    args = parser.parse_args(argv)

    print("1. Database")
    if args.create_schema:
        try:
            create_schema()
        except (RuntimeError, SQLAlchemyError) as exc:
            print(f"  could not create tables: {exc}")
            return 1
        print("  tables created (if missing)")
    table_ok = check_table()
    print("2. Storage")
    buckets_ok = check_buckets()
    if table_ok and buckets_ok:
        print("\nAll checks passed.")
        return 0
    print("\nSome checks failed. Run scripts/setup_storage_buckets.py for missing buckets.")
    return 1


if __name__ == "__main__":
    sys.exit(main())
