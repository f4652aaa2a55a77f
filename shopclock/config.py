"""
Centralized configuration for ShopClock.

Values come from config/shopclock.yaml and can be overridden by environment
variables. Anything the state machine or the aggregator depends on is passed
in through a Settings instance, never read from globals.
"""

import logging
import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml

from shopclock import paths

logger = logging.getLogger(__name__)

# ============================================================
# Grace period
# ============================================================

DEFAULT_GRACE_MINUTES = 15
MIN_GRACE_MINUTES = 5
MAX_GRACE_MINUTES = 60

# ============================================================
# Calendar
# ============================================================

DEFAULT_TIMEZONE = "UTC"
DEFAULT_SUMMARY_HOUR = 8

ENV_GRACE_MINUTES = "SHOPCLOCK_GRACE_MINUTES"
ENV_TIMEZONE = "SHOPCLOCK_TIMEZONE"
ENV_SUMMARY_HOUR = "SHOPCLOCK_SUMMARY_HOUR"
ENV_LOG_LEVEL = "SHOPCLOCK_LOG_LEVEL"
ENV_LOG_JSON = "SHOPCLOCK_LOG_JSON"


def _clamp(value: int, low: int, high: int) -> int:
    return min(max(value, low), high)


@dataclass
class Settings:
    """Runtime settings. Out-of-range values are clamped, not rejected."""

    grace_minutes: int = DEFAULT_GRACE_MINUTES
    timezone: str = DEFAULT_TIMEZONE
    summary_hour: int = DEFAULT_SUMMARY_HOUR
    db_path: Path = field(default_factory=paths.db_path)
    log_level: str = "INFO"
    log_json: bool | None = None

    def __post_init__(self):
        self.grace_minutes = _clamp(int(self.grace_minutes), MIN_GRACE_MINUTES, MAX_GRACE_MINUTES)
        self.summary_hour = _clamp(int(self.summary_hour), 0, 23)
        self.db_path = Path(self.db_path)
        self.log_level = str(self.log_level).upper()

    @property
    def grace_seconds(self) -> int:
        """Grace period in seconds, always within 300..3600."""
        return self.grace_minutes * 60

    @property
    def tzinfo(self) -> ZoneInfo:
        """Timezone used for day and week boundaries."""
        try:
            return ZoneInfo(self.timezone)
        except (ZoneInfoNotFoundError, ValueError):
            logger.warning("Unknown timezone %r, using %s", self.timezone, DEFAULT_TIMEZONE)
            return ZoneInfo(DEFAULT_TIMEZONE)

    def with_overrides(self, **changes) -> "Settings":
        """Return a copy with *changes* applied (and re-clamped)."""
        return replace(self, **changes)


def _load_yaml(config_path: Path) -> dict:
    """Load YAML config, return empty dict on failure."""
    if not config_path.exists():
        logger.warning("Config not found at %s, using defaults", config_path)
        return {}
    try:
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
    except (yaml.YAMLError, OSError) as exc:
        logger.error("Failed to load config %s: %s", config_path, exc)
        return {}
    if not isinstance(data, dict):
        logger.error("Config %s is not a mapping, using defaults", config_path)
        return {}
    return data


def _env_bool(raw: str) -> bool:
    return raw.strip().lower() in ("1", "true", "yes", "on")


def load_settings(config_path: Path | None = None, environ: dict | None = None) -> Settings:
    """
    Build Settings from the YAML file and the environment.

    Resolution order (later wins):
    1. Built-in defaults
    2. config/shopclock.yaml (or ~/.shopclock/config/shopclock.yaml)
    3. SHOPCLOCK_* environment variables
    """
    if config_path is None:
        config_path = paths.default_config_file()
    env = os.environ if environ is None else environ

    data = _load_yaml(Path(config_path))
    log_cfg = data.get("logging") or {}

    values: dict = {}
    if "grace_minutes" in data:
        values["grace_minutes"] = data["grace_minutes"]
    if "timezone" in data:
        values["timezone"] = data["timezone"]
    if "summary_hour" in data:
        values["summary_hour"] = data["summary_hour"]
    if "level" in log_cfg:
        values["log_level"] = log_cfg["level"]
    if "json" in log_cfg:
        values["log_json"] = bool(log_cfg["json"])

    if env.get(ENV_GRACE_MINUTES):
        values["grace_minutes"] = env[ENV_GRACE_MINUTES]
    if env.get(ENV_TIMEZONE):
        values["timezone"] = env[ENV_TIMEZONE]
    if env.get(ENV_SUMMARY_HOUR):
        values["summary_hour"] = env[ENV_SUMMARY_HOUR]
    if env.get(ENV_LOG_LEVEL):
        values["log_level"] = env[ENV_LOG_LEVEL]
    if env.get(ENV_LOG_JSON):
        values["log_json"] = _env_bool(env[ENV_LOG_JSON])
    if env.get(paths.APP_ENV_DB):
        values["db_path"] = Path(env[paths.APP_ENV_DB]).expanduser()

    try:
        return Settings(**values)
    except (TypeError, ValueError) as exc:
        logger.error("Invalid configuration (%s), using defaults", exc)
        return Settings()
