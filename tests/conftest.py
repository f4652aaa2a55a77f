"""
Test configuration - repo root on sys.path, isolated app home, fake timers.

Every test gets its own SHOPCLOCK_HOME under tmp_path, and sqlite3.connect
refuses the real ~/.shopclock database so a test can never touch live data.
Grace timers are driven by hand through FakeTimerFactory.
"""

import sqlite3
import sys
from datetime import UTC, datetime
from pathlib import Path

import pytest

# Add repo root to sys.path so tests can import shopclock.*, api.*, cli.*
REPO_ROOT = Path(__file__).parent.parent
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from shopclock.clock import FrozenClock  # noqa: E402
from shopclock.config import Settings  # noqa: E402
from shopclock.grace_timer import GraceTimer  # noqa: E402
from shopclock.service import build_service  # noqa: E402
from shopclock.state_machine import ClockStateMachine  # noqa: E402
from shopclock.store import SessionStore  # noqa: E402

# Monday
T0 = datetime(2024, 3, 4, 8, 0, tzinfo=UTC)

# =============================================================================
# LIVE DB GUARD
# =============================================================================

LIVE_DB_ABSOLUTE = Path.home() / ".shopclock" / "data" / "shopclock.db"
_original_sqlite_connect = sqlite3.connect


def _guarded_sqlite_connect(database, *args, **kwargs):
    """Intercept sqlite3.connect to block the live DB."""
    if str(database) == str(LIVE_DB_ABSOLUTE):
        raise RuntimeError(f"Test attempted to access live DB at {database}")
    return _original_sqlite_connect(database, *args, **kwargs)


@pytest.fixture(autouse=True)
def isolated_home(monkeypatch, tmp_path):
    """Point SHOPCLOCK_HOME at a temp dir and guard the live DB."""
    home = tmp_path / "home"
    monkeypatch.setenv("SHOPCLOCK_HOME", str(home))
    for var in (
        "SHOPCLOCK_DB",
        "SHOPCLOCK_GRACE_MINUTES",
        "SHOPCLOCK_TIMEZONE",
        "SHOPCLOCK_SUMMARY_HOUR",
        "SHOPCLOCK_LOG_LEVEL",
        "SHOPCLOCK_LOG_JSON",
    ):
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setattr(sqlite3, "connect", _guarded_sqlite_connect)
    return home


# =============================================================================
# FAKE TIMERS
# =============================================================================


class FakeTimer:
    """Stand-in for threading.Timer that only fires when told to."""

    def __init__(self, interval, function, args=()):
        self.interval = interval
        self.function = function
        self.args = args
        self.daemon = False
        self.started = False
        self.cancelled = False

    def start(self):
        self.started = True

    def cancel(self):
        self.cancelled = True

    def fire(self, force: bool = False):
        """Run the callback. force=True simulates a firing that raced a cancel."""
        if self.cancelled and not force:
            return
        self.function(*self.args)


class FakeTimerFactory:
    def __init__(self):
        self.timers: list[FakeTimer] = []

    def __call__(self, interval, function, args=()):
        timer = FakeTimer(interval, function, args)
        self.timers.append(timer)
        return timer

    @property
    def last(self) -> FakeTimer:
        return self.timers[-1]


# =============================================================================
# FIXTURES
# =============================================================================


@pytest.fixture
def settings(tmp_path):
    return Settings(grace_minutes=15, timezone="UTC", db_path=tmp_path / "shopclock.db")


@pytest.fixture
def clock():
    return FrozenClock(T0)


@pytest.fixture
def timers():
    return FakeTimerFactory()


@pytest.fixture
def grace_timer(timers):
    return GraceTimer(timer_factory=timers)


@pytest.fixture
def store(settings):
    return SessionStore(settings.db_path)


@pytest.fixture
def machine(store, settings, clock, grace_timer):
    return ClockStateMachine(store, settings, clock=clock, timer=grace_timer)


@pytest.fixture
def service(settings, clock, grace_timer):
    svc = build_service(settings, clock=clock, timer=grace_timer)
    yield svc
    svc.stop()
