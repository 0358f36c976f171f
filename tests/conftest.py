"""
Test configuration — ensures repo root is in sys.path + determinism guards.

This allows tests to import from top-level packages (insight_engine, api, cli).
Every test runs against a temp home directory so nothing reaches the live
database under ~/.insight_engine.
"""

import sqlite3
import sys
from pathlib import Path

import pytest

# Add repo root to sys.path so tests can import insight_engine.*, api.*, cli.*
REPO_ROOT = Path(__file__).parent.parent
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from insight_engine import paths  # noqa: E402
from insight_engine.settings import EngineSettings  # noqa: E402
from insight_engine.store import RecordStore  # noqa: E402

# =============================================================================
# DETERMINISM GUARD: Block live database access
# =============================================================================

HOME_DB_ABSOLUTE = Path.home() / ".insight_engine" / "data" / "insight_engine.db"

_original_sqlite_connect = sqlite3.connect


def _guarded_sqlite_connect(database, *args, **kwargs):
    """Intercept sqlite3.connect to block live DB access."""
    if str(database) == str(HOME_DB_ABSOLUTE):
        raise RuntimeError(
            f"DETERMINISM VIOLATION: Test attempted to access live DB at {database}.\n"
            "Tests must use the `store` fixture (tmp_path database)."
        )
    return _original_sqlite_connect(database, *args, **kwargs)


@pytest.fixture(autouse=True)
def guard_live_db_access(monkeypatch, tmp_path):
    """Point the app home at tmp_path and block the live DB for every test."""
    monkeypatch.setenv(paths.APP_ENV_HOME, str(tmp_path / "home"))
    monkeypatch.delenv(paths.APP_ENV_DB, raising=False)
    monkeypatch.setattr(sqlite3, "connect", _guarded_sqlite_connect)


# =============================================================================
# STORE / SETTINGS FIXTURES
# =============================================================================


@pytest.fixture
def db_path(tmp_path):
    return tmp_path / "insight_test.db"


@pytest.fixture
def store(db_path):
    """Empty, schema-converged record store."""
    return RecordStore(db_path)


@pytest.fixture
def settings():
    """Default engine settings, independent of config/insight_engine.yaml."""
    return EngineSettings()
