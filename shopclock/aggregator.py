"""
Hours Aggregator - worked time per day, per week, per arbitrary window.

Every session is clipped against the window, then every non-deleted gap of
that session is clipped against the same window and subtracted. Each
session's contribution is floored at zero on its own. Open sessions and
open gaps run until "now".

Arithmetic is done on timedeltas (integer microseconds) and converted to
hours once at the end, so seven day windows add up to exactly the week
window: day windows run from local midnight to the next local midnight and
tile the week without overlap, DST changes included.
"""

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import UTC, date, datetime, timedelta, tzinfo

from shopclock.clock import SystemClock, ensure_utc
from shopclock.config import Settings
from shopclock.models import Gap, WorkSession
from shopclock.store import SessionStore

logger = logging.getLogger(__name__)

HOUR = timedelta(hours=1)
DAY_NAMES = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")


# =============================================================================
# PURE FUNCTIONS
# =============================================================================


def clip(start: datetime, end: datetime, window_start: datetime, window_end: datetime) -> timedelta:
    """Length of [start, end) inside [window_start, window_end), never negative."""
    # Aware datetimes sharing a tzinfo subtract as wall-clock times; go through UTC.
    start, end = start.astimezone(UTC), end.astimezone(UTC)
    window_start, window_end = window_start.astimezone(UTC), window_end.astimezone(UTC)
    overlap = min(end, window_end) - max(start, window_start)
    return max(overlap, timedelta(0))


def session_worked_in_window(
    session: WorkSession, window_start: datetime, window_end: datetime, now: datetime
) -> timedelta:
    """Clipped session span minus its clipped non-deleted gaps, floored at zero."""
    span = clip(session.start, session.end or now, window_start, window_end)
    away = sum(
        (
            clip(gap.exit_time, gap.return_time or now, window_start, window_end)
            for gap in session.gaps
            if not gap.deleted
        ),
        timedelta(0),
    )
    return max(span - away, timedelta(0))


def worked_in_window(
    sessions: Iterable[WorkSession], window_start: datetime, window_end: datetime, now: datetime
) -> timedelta:
    return sum(
        (session_worked_in_window(s, window_start, window_end, now) for s in sessions),
        timedelta(0),
    )


def hours_for_window(
    sessions: Iterable[WorkSession], window_start: datetime, window_end: datetime, now: datetime
) -> float:
    """Worked hours of *sessions* inside [window_start, window_end)."""
    return worked_in_window(sessions, window_start, window_end, now) / HOUR


def local_midnight(d: date, tz: tzinfo) -> datetime:
    """Start of calendar day *d* in *tz*, as an aware datetime."""
    return datetime(d.year, d.month, d.day, tzinfo=tz)


def day_bounds(d: date, tz: tzinfo) -> tuple[datetime, datetime]:
    """[local midnight of d, local midnight of the next day), as UTC instants."""
    return (
        local_midnight(d, tz).astimezone(UTC),
        local_midnight(d + timedelta(days=1), tz).astimezone(UTC),
    )


def monday_of(d: date) -> date:
    """Monday of the ISO week containing *d*."""
    return d - timedelta(days=d.weekday())


def overlaps(session: WorkSession, window_start: datetime, window_end: datetime, now: datetime) -> bool:
    return session.start < window_end and (session.end or now) > window_start


# =============================================================================
# SUMMARY TYPES
# =============================================================================


@dataclass
class DayEntry:
    date: date
    day_name: str
    hours: float

    def to_dict(self) -> dict:
        return {"date": self.date.isoformat(), "day_name": self.day_name, "hours": self.hours}


@dataclass
class WeeklySummary:
    week_start: date
    total_hours: float
    daily_breakdown: list[DayEntry] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "week_start": self.week_start.isoformat(),
            "total_hours": self.total_hours,
            "daily_breakdown": [d.to_dict() for d in self.daily_breakdown],
        }


# =============================================================================
# AGGREGATOR
# =============================================================================


class HoursAggregator:
    """
    Read-only queries over the session store.

    Calendar boundaries use settings.tzinfo; "now" comes from the injected
    clock so open sessions are measured consistently within one call.
    """

    def __init__(self, store: SessionStore, settings: Settings, clock=None):
        self.store = store
        self.settings = settings
        self.clock = clock or SystemClock()

    @property
    def tz(self) -> tzinfo:
        return self.settings.tzinfo

    def local_date(self, value: date | datetime) -> date:
        """Calendar date of *value* in the configured timezone."""
        if isinstance(value, datetime):
            if value.tzinfo is None:
                return value.date()
            return value.astimezone(self.tz).date()
        return value

    # -------------------------------------------------------------------------
    # Windows
    # -------------------------------------------------------------------------

    def worked_in_window(self, window_start: datetime, window_end: datetime) -> timedelta:
        now = self.clock.now()
        window_start, window_end = ensure_utc(window_start, self.tz), ensure_utc(window_end, self.tz)
        sessions = self.store.fetch_sessions_overlapping(window_start, window_end)
        return worked_in_window(sessions, window_start, window_end, now)

    def hours_for_window(self, window_start: datetime, window_end: datetime) -> float:
        return self.worked_in_window(window_start, window_end) / HOUR

    def hours_for_date(self, d: date | datetime) -> float:
        start, end = day_bounds(self.local_date(d), self.tz)
        return self.hours_for_window(start, end)

    def today_hours(self) -> float:
        return self.hours_for_date(self.clock.now())

    # -------------------------------------------------------------------------
    # Weeks
    # -------------------------------------------------------------------------

    def week_start_of(self, value: date | datetime) -> datetime:
        """Monday local midnight of the ISO week containing *value*."""
        return local_midnight(monday_of(self.local_date(value)), self.tz)

    def current_week_start(self) -> datetime:
        return self.week_start_of(self.clock.now())

    def week_bounds(self, week_start: date | datetime) -> tuple[datetime, datetime]:
        """[Monday local midnight, next Monday local midnight), as UTC instants."""
        monday = self.local_date(week_start)
        return (
            local_midnight(monday, self.tz).astimezone(UTC),
            local_midnight(monday + timedelta(days=7), self.tz).astimezone(UTC),
        )

    def weekly_summary(self, week_start: date | datetime) -> WeeklySummary:
        """
        Seven daily totals starting at *week_start* (normally a Monday).

        total_hours is the sum of the seven days, which equals
        hours_for_window over the whole week.
        """
        first_day = self.local_date(week_start)
        now = self.clock.now()
        week_begin, week_end = self.week_bounds(first_day)
        sessions = self.store.fetch_sessions_overlapping(week_begin, week_end)

        entries = []
        total = timedelta(0)
        for offset in range(7):
            day = first_day + timedelta(days=offset)
            start, end = day_bounds(day, self.tz)
            day_sessions = [s for s in sessions if overlaps(s, start, end, now)]
            worked = worked_in_window(day_sessions, start, end, now)
            total += worked
            entries.append(DayEntry(date=day, day_name=DAY_NAMES[day.weekday()], hours=worked / HOUR))

        return WeeklySummary(week_start=first_day, total_hours=total / HOUR, daily_breakdown=entries)

    def all_week_starts(self) -> list[datetime]:
        """Every week from the first recorded session to now, most recent first."""
        first = self.store.earliest_session_start()
        if first is None:
            return []
        current = self.week_start_of(first)
        last = self.current_week_start()
        weeks = []
        while current <= last:
            weeks.append(current)
            current = local_midnight(current.date() + timedelta(days=7), self.tz)
        weeks.reverse()
        return weeks

    # -------------------------------------------------------------------------
    # Day detail
    # -------------------------------------------------------------------------

    def sessions_for_date(self, d: date | datetime) -> list[WorkSession]:
        """Sessions overlapping the local day, ordered by start."""
        start, end = day_bounds(self.local_date(d), self.tz)
        now = self.clock.now()
        return [
            s for s in self.store.fetch_sessions_overlapping(start, end) if overlaps(s, start, end, now)
        ]

    def gaps_for_date(self, d: date | datetime) -> list[Gap]:
        """Gaps (deleted ones included) of the day's sessions, by exit time."""
        gaps = [g for s in self.sessions_for_date(d) for g in s.gaps]
        return sorted(gaps, key=lambda g: g.exit_time)
