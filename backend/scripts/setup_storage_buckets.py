#!/usr/bin/env python3
"""
Create the Supabase Storage buckets used by the sign-up form.

  - documents:  private, lease/deed uploads (size and MIME types from settings)
  - signatures: private, 2MB, PNG/JPEG

Safe to re-run: existing buckets are left as they are.

Usage:
    cd backend
    export SUPABASE_URL="https://<project>.supabase.co"
    export SUPABASE_SERVICE_ROLE_KEY="..."
    PYTHONPATH=. python scripts/setup_storage_buckets.py

    # Only show what would be created:
    PYTHONPATH=. python scripts/setup_storage_buckets.py --dry-run
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from app.core.storage import bucket_definitions, ensure_bucket, get_storage_client, list_bucket_names  # noqa: E402


def main() -> int:
    parser = argparse.ArgumentParser(description="Create the documents and signatures storage buckets.")
    parser.add_argument("--dry-run", action="store_true", help="List missing buckets without creating them.")
    args = parser.parse_args()

    try:
        client = get_storage_client()
    except RuntimeError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    definitions = bucket_definitions()
    existing = set(list_bucket_names(client))

    for name, options in definitions.items():
        if name in existing:
            print(f"  {name}: already exists")
            continue
        if args.dry_run:
            print(f"  {name}: would be created with {options}")
            continue
        try:
            ensure_bucket(client, name, options)
        except Exception as exc:
            print(f"  {name}: creation failed ({exc})", file=sys.stderr)
            return 1
        print(f"  {name}: created")

    if not args.dry_run:
        print("Available buckets: " + ", ".join(sorted(list_bucket_names(client))))
    return 0


if __name__ == "__main__":
    sys.exit(main())
