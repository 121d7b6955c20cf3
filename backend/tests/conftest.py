import os

import pytest

# Tests run in-process against SQLite and never reach Supabase.
os.environ.setdefault("ENVIRONMENT", "test")

from app.core.auth import revoked_sessions  # noqa: E402
from app.core.config import get_settings  # noqa: E402
from app.utils.rate_limit import rate_limiter  # noqa: E402


@pytest.fixture(autouse=True)
def _reset_settings_cache():
    # Some tests mutate env vars and clear the settings cache. Ensure we don't leak
    # a cached Settings instance (e.g. with different admin credentials) across tests.
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture(autouse=True)
def _reset_process_state():
    rate_limiter.reset()
    revoked_sessions.reset()
    yield
    rate_limiter.reset()
    revoked_sessions.reset()
