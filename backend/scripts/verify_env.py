#!/usr/bin/env python3
"""
Check that the environment (or backend/.env) carries usable configuration.

Prints one line per setting and exits non-zero when anything is missing,
still holds a placeholder, or the anon and service role keys are identical.

Usage:
    cd backend
    PYTHONPATH=. python scripts/verify_env.py
"""

from __future__ import annotations

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from app.core.config import Settings, looks_like_placeholder  # noqa: E402

REQUIRED = (
    ("DATABASE_URL", "database_url"),
    ("SUPABASE_URL", "supabase_url"),
    ("SUPABASE_KEY", "supabase_key"),
    ("SUPABASE_SERVICE_ROLE_KEY", "supabase_service_role_key"),
    ("SESSION_SECRET", "session_secret"),
)


def _preview(value: str) -> str:
    return value[:40] + ("..." if len(value) > 40 else "")


def check(settings: Settings) -> list[str]:
    problems = []
    for env_name, attr in REQUIRED:
        value = getattr(settings, attr) or ""
        if not value:
            problems.append(f"{env_name}: MISSING")
        elif looks_like_placeholder(value):
            problems.append(f"{env_name}: NOT CONFIGURED (still has placeholder)")
    if settings.supabase_key and settings.supabase_key == settings.supabase_service_role_key:
        problems.append("SUPABASE_KEY and SUPABASE_SERVICE_ROLE_KEY must be different keys")
    for problem in settings.validate_required_config():
        if not any(problem.split(" ")[0] in p for p in problems):
            problems.append(problem)
    return problems


def main() -> int:
    settings = Settings()
    for env_name, attr in REQUIRED:
        value = getattr(settings, attr) or ""
        if value and attr not in {"session_secret", "supabase_service_role_key"}:
            print(f"  {env_name}: {_preview(value)}")
        else:
            print(f"  {env_name}: {'set' if value else 'missing'}")

    problems = check(settings)
    if problems:
        print("\nConfiguration problems:")
        for problem in problems:
            print(f"  - {problem}")
        return 1
    print("\nConfiguration looks good.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
