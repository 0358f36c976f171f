from __future__ import annotations

import os
from pathlib import Path

APP_ENV_HOME = "INSIGHT_ENGINE_HOME"
APP_ENV_DB = "INSIGHT_ENGINE_DB"
APP_ENV_CONFIG = "INSIGHT_ENGINE_CONFIG"


def project_root() -> Path:
    """
    Repository/project root directory.
    Contains insight_engine/, api/, cli/, config/, tests/.
    """
    return Path(__file__).parent.parent.resolve()


def app_home() -> Path:
    """
    User-writable home for the insight engine.
    Override with INSIGHT_ENGINE_HOME.
    """
    if os.environ.get(APP_ENV_HOME):
        return Path(os.environ[APP_ENV_HOME]).expanduser().resolve()
    return (Path.home() / ".insight_engine").resolve()


def data_dir() -> Path:
    d = app_home() / "data"
    d.mkdir(parents=True, exist_ok=True)
    return d


def db_path() -> Path:
    """
    Canonical DB path.

    Resolution order:
    1. INSIGHT_ENGINE_DB env var (explicit override)
    2. ~/.insight_engine/data/insight_engine.db (default)
    """
    if os.environ.get(APP_ENV_DB):
        return Path(os.environ[APP_ENV_DB]).expanduser().resolve()
    return data_dir() / "insight_engine.db"


def settings_path() -> Path:
    """
    Engine settings YAML.

    Resolution order:
    1. INSIGHT_ENGINE_CONFIG env var
    2. <project root>/config/insight_engine.yaml
    """
    if os.environ.get(APP_ENV_CONFIG):
        return Path(os.environ[APP_ENV_CONFIG]).expanduser().resolve()
    return project_root() / "config" / "insight_engine.yaml"
