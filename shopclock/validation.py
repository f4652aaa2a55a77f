"""
Input validation for manual clock actions and edits.

Raises ValidationError (a ValueError) with a message meant for the person
who typed the value. Unknown record ids are a LookupError, raised by the
editor, not here.
"""

from datetime import date, datetime, tzinfo

from shopclock.clock import ensure_utc
from shopclock.models import WorkSession


class ValidationError(ValueError):
    """Manual input rejected at the boundary."""


def parse_timestamp(value: str | datetime | None, tz: tzinfo, default: datetime | None = None) -> datetime:
    """
    ISO 8601 text (or a datetime) -> aware UTC datetime.

    Naive values are read in *tz*. None returns *default* when given.
    """
    if value is None or value == "":
        if default is None:
            raise ValidationError("timestamp is required")
        return ensure_utc(default)
    if isinstance(value, datetime):
        return ensure_utc(value, tz)
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError as e:
        raise ValidationError(f"invalid timestamp {value!r}: expected ISO 8601") from e
    return ensure_utc(parsed, tz)


def parse_date(value: str | date) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(value.strip())
    except ValueError as e:
        raise ValidationError(f"invalid date {value!r}: expected YYYY-MM-DD") from e


def validate_entry(start: datetime, end: datetime) -> None:
    """A manually added entry must end after it starts."""
    if end <= start:
        raise ValidationError("clock out must be after clock in")


def validate_session_edit(
    session: WorkSession,
    new_start: datetime | None,
    new_end: datetime | None,
    now: datetime,
) -> None:
    """
    Check a move of clock in and/or clock out against the whole session.

    Both values are checked together, so a change is either valid as a
    pair or rejected before anything is written.
    """
    if new_end is not None and session.is_open:
        raise ValidationError("session is still open; clock out instead of editing")
    start = new_start if new_start is not None else session.start
    end = new_end if new_end is not None else (session.end or now)
    if end <= start:
        raise ValidationError("clock out must be after clock in")
    for gap in session.gaps:
        if new_start is not None and new_start > gap.exit_time:
            raise ValidationError("clock in cannot be later than a recorded gap")
        if new_end is not None and (gap.return_time is None or gap.return_time > new_end):
            raise ValidationError("clock out cannot be earlier than a recorded gap")


def last_recorded_time(session: WorkSession, pending_exit: datetime | None = None) -> datetime:
    """Latest instant already recorded for *session*: start, gap exits and returns, pending exit."""
    times = [session.start]
    for gap in session.gaps:
        times.append(gap.exit_time)
        if gap.return_time is not None:
            times.append(gap.return_time)
    if pending_exit is not None:
        times.append(pending_exit)
    return max(times)


def validate_manual_clock_out(
    session: WorkSession | None, when: datetime, pending_exit: datetime | None = None
) -> None:
    if session is None:
        return
    if when < session.start:
        raise ValidationError("clock out cannot be before the session started")
    if when < last_recorded_time(session, pending_exit):
        raise ValidationError("clock out cannot be before the last recorded departure or return")


def validate_manual_clock_in(when: datetime, previous_end: datetime | None) -> None:
    """A new session may not start inside the previous one."""
    if previous_end is not None and when < previous_end:
        raise ValidationError("clock in cannot be before the previous session ended")
