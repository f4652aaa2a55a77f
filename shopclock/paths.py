from __future__ import annotations

import os
from pathlib import Path

APP_ENV_HOME = "SHOPCLOCK_HOME"
APP_ENV_DB = "SHOPCLOCK_DB"


def project_root() -> Path:
    """
    Repository/project root directory.
    Contains shopclock/, api/, cli/, config/, tests/.
    """
    return Path(__file__).parent.parent.resolve()


def app_home() -> Path:
    """
    User-writable home for ShopClock.
    Override with SHOPCLOCK_HOME.
    """
    if os.environ.get(APP_ENV_HOME):
        return Path(os.environ[APP_ENV_HOME]).expanduser().resolve()
    return (Path.home() / ".shopclock").resolve()


def config_dir() -> Path:
    d = app_home() / "config"
    d.mkdir(parents=True, exist_ok=True)
    return d


def data_dir() -> Path:
    d = app_home() / "data"
    d.mkdir(parents=True, exist_ok=True)
    return d


def db_path() -> Path:
    """
    Canonical DB path for shopclock.

    Resolution order:
    1. SHOPCLOCK_DB env var (explicit override)
    2. ~/.shopclock/data/shopclock.db (default)
    """
    if os.environ.get(APP_ENV_DB):
        return Path(os.environ[APP_ENV_DB]).expanduser().resolve()
    return data_dir() / "shopclock.db"


def default_config_file() -> Path:
    """Config file shipped with the repo. A copy in config_dir() wins if present."""
    user_file = app_home() / "config" / "shopclock.yaml"
    if user_file.exists():
        return user_file
    return project_root() / "config" / "shopclock.yaml"
