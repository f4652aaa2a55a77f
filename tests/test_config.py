"""
Tests for configuration loading.

Tests cover:
- Defaults and clamping of grace period and summary hour
- YAML file loading, missing and broken files
- Environment overrides
- Timezone resolution with fallback
"""

from pathlib import Path
from zoneinfo import ZoneInfo

from shopclock import paths
from shopclock.config import Settings, load_settings


class TestSettings:
    """Tests for the Settings dataclass."""

    def test_defaults(self, tmp_path):
        s = Settings(db_path=tmp_path / "x.db")
        assert s.grace_minutes == 15
        assert s.grace_seconds == 900
        assert s.timezone == "UTC"
        assert s.summary_hour == 8

    def test_grace_clamped_low(self, tmp_path):
        assert Settings(grace_minutes=1, db_path=tmp_path / "x.db").grace_seconds == 300

    def test_grace_clamped_high(self, tmp_path):
        assert Settings(grace_minutes=600, db_path=tmp_path / "x.db").grace_seconds == 3600

    def test_with_overrides_reclamps(self, tmp_path):
        s = Settings(db_path=tmp_path / "x.db").with_overrides(grace_minutes=0, summary_hour=99)
        assert s.grace_minutes == 5
        assert s.summary_hour == 23

    def test_tzinfo_resolves(self, tmp_path):
        s = Settings(timezone="America/Chicago", db_path=tmp_path / "x.db")
        assert s.tzinfo == ZoneInfo("America/Chicago")

    def test_unknown_timezone_falls_back_to_utc(self, tmp_path):
        s = Settings(timezone="Mars/Olympus_Mons", db_path=tmp_path / "x.db")
        assert s.tzinfo == ZoneInfo("UTC")

    def test_default_db_under_app_home(self, isolated_home):
        assert Settings().db_path == isolated_home.resolve() / "data" / "shopclock.db"


class TestLoadSettings:
    """Tests for load_settings()."""

    def test_yaml_values(self, tmp_path):
        cfg = tmp_path / "shopclock.yaml"
        cfg.write_text("grace_minutes: 20\ntimezone: Europe/Berlin\nsummary_hour: 9\nlogging:\n  level: debug\n")
        s = load_settings(cfg, environ={})
        assert s.grace_minutes == 20
        assert s.timezone == "Europe/Berlin"
        assert s.summary_hour == 9
        assert s.log_level == "DEBUG"

    def test_missing_file_gives_defaults(self, tmp_path):
        s = load_settings(tmp_path / "nope.yaml", environ={})
        assert s.grace_minutes == 15

    def test_broken_yaml_gives_defaults(self, tmp_path):
        cfg = tmp_path / "shopclock.yaml"
        cfg.write_text("grace_minutes: [unclosed\n")
        assert load_settings(cfg, environ={}).grace_minutes == 15

    def test_non_mapping_yaml_gives_defaults(self, tmp_path):
        cfg = tmp_path / "shopclock.yaml"
        cfg.write_text("- just\n- a list\n")
        assert load_settings(cfg, environ={}).timezone == "UTC"

    def test_env_overrides_yaml(self, tmp_path):
        cfg = tmp_path / "shopclock.yaml"
        cfg.write_text("grace_minutes: 20\n")
        env = {
            "SHOPCLOCK_GRACE_MINUTES": "45",
            "SHOPCLOCK_TIMEZONE": "Asia/Tokyo",
            "SHOPCLOCK_DB": str(tmp_path / "other.db"),
            "SHOPCLOCK_LOG_JSON": "true",
        }
        s = load_settings(cfg, environ=env)
        assert s.grace_minutes == 45
        assert s.timezone == "Asia/Tokyo"
        assert s.db_path == tmp_path / "other.db"
        assert s.log_json is True

    def test_env_out_of_range_is_clamped(self, tmp_path):
        s = load_settings(tmp_path / "nope.yaml", environ={"SHOPCLOCK_GRACE_MINUTES": "2"})
        assert s.grace_minutes == 5

    def test_invalid_value_gives_defaults(self, tmp_path):
        s = load_settings(tmp_path / "nope.yaml", environ={"SHOPCLOCK_GRACE_MINUTES": "soon"})
        assert s.grace_minutes == 15

    def test_repo_config_file_loads(self):
        s = load_settings(Path(paths.project_root()) / "config" / "shopclock.yaml", environ={})
        assert s.grace_minutes == 15
        assert s.summary_hour == 8
