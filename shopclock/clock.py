"""Clock sources. All instants in ShopClock are timezone-aware UTC datetimes."""

import threading
from datetime import UTC, datetime, timedelta


def utc_now() -> datetime:
    return datetime.now(UTC)


def ensure_utc(dt: datetime, tz=None) -> datetime:
    """Normalize *dt* to aware UTC. Naive values are read in *tz* (UTC if None)."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=tz or UTC)
    return dt.astimezone(UTC)


class SystemClock:
    """Wall clock."""

    def now(self) -> datetime:
        return utc_now()


class FrozenClock:
    """
    Manually advanced clock for tests and replays.

    Thread-safe so a worker thread and the test thread can share it.
    """

    def __init__(self, start: datetime):
        self._now = ensure_utc(start)
        self._lock = threading.Lock()

    def now(self) -> datetime:
        with self._lock:
            return self._now

    def set(self, when: datetime) -> None:
        with self._lock:
            self._now = ensure_utc(when)

    def advance(self, seconds: float = 0, **kwargs) -> datetime:
        """Move forward by seconds (or any timedelta kwargs). Returns the new now."""
        with self._lock:
            self._now = self._now + timedelta(seconds=seconds, **kwargs)
            return self._now
