"""
Clock State Machine - the serialized decision core of ShopClock.

States:
- CLOCKED_OUT
- CLOCKED_IN
- PENDING_EXIT (grace timer armed, exit time captured)
- AWAY (gap committed and still open)

Every event (zone signals, manual clock actions, grace timer firings) goes
through handle(), which holds the machine's monitor lock for the whole
transition including the write-through to the store. The grace timer never
mutates anything itself: its firing is posted back as a GraceTimerFired
event, so it is applied in the same serialized context as everything else.

(state, event) pairs that have no transition leave the state unchanged;
this is what makes duplicate signals idempotent. Zone signals stamped
before something already recorded (the session start, a gap, the previous
session's end) are ignored the same way. Manual actions with such a time
raise ValidationError and leave the state unchanged.
"""

import logging
import threading
from collections.abc import Callable
from datetime import datetime
from typing import Any

from shopclock.clock import SystemClock, ensure_utc
from shopclock.config import Settings
from shopclock.events import (
    ClockEvent,
    ClockState,
    GeofenceTransition,
    GraceTimerFired,
    ManualClockAction,
    ManualKind,
    TransitionKind,
)
from shopclock.grace_timer import GraceTimer
from shopclock.models import Gap, WorkSession
from shopclock.store import SessionStore, StoreError
from shopclock.validation import (
    last_recorded_time,
    validate_manual_clock_in,
    validate_manual_clock_out,
)

logger = logging.getLogger(__name__)


class ClockStateMachine:
    """
    Owns the active-session reference and the grace timer slot.

    Dependencies are injected; the composing layer (ClockService) decides
    their lifetime.
    """

    def __init__(
        self,
        store: SessionStore,
        settings: Settings,
        clock=None,
        timer: GraceTimer | None = None,
        on_confirm_request: Callable[[datetime], None] | None = None,
    ):
        self.store = store
        self.settings = settings
        self.clock = clock or SystemClock()
        self.timer = timer or GraceTimer()
        self.on_confirm_request = on_confirm_request

        self._lock = threading.RLock()
        self._post: Callable[[ClockEvent], Any] = self.handle
        self._active: WorkSession | None = None
        self._dirty_sessions: dict[str, WorkSession] = {}
        self._dirty_gaps: dict[str, Gap] = {}
        self._first_enter_pending = True
        self.confirm_clock_in_pending = False

        self._restore()

    # ==================== Wiring ====================

    def bind_event_sink(self, post: Callable[[ClockEvent], Any]) -> None:
        """Route grace timer firings into an event queue instead of handle()."""
        self._post = post

    def _restore(self) -> None:
        """Pick up an open session (and its open gap) left by a previous run."""
        try:
            self._active = self.store.fetch_active_session()
        except StoreError as e:
            logger.error("Could not restore active session: %s", e)
            self._active = None
            return

        if self._active is not None:
            logger.info(
                "Restored open session %s (started %s, state %s)",
                self._active.id,
                self._active.start.isoformat(),
                self.state.value,
            )

    # ==================== Queries ====================

    @property
    def state(self) -> ClockState:
        with self._lock:
            if self._active is None:
                return ClockState.CLOCKED_OUT
            if self.timer.is_armed:
                return ClockState.PENDING_EXIT
            if self._active.open_gap is not None:
                return ClockState.AWAY
            return ClockState.CLOCKED_IN

    @property
    def is_clocked_in(self) -> bool:
        return self.state.is_clocked_in

    @property
    def active_session(self) -> WorkSession | None:
        with self._lock:
            return self._active

    @property
    def pending_exit_time(self) -> datetime | None:
        """Exit captured by the armed grace timer, if any."""
        armed = self.timer.armed
        return armed.exit_time if armed else None

    @property
    def pending_or_open_gap(self) -> Gap | None:
        """
        The open gap while AWAY. While PENDING_EXIT, a provisional gap for
        the captured exit that is not (yet) part of the session.
        """
        with self._lock:
            if self._active is None:
                return None
            open_gap = self._active.open_gap
            if open_gap is not None:
                return open_gap
            exit_time = self.pending_exit_time
            if exit_time is not None:
                return Gap(exit_time=exit_time, session_id=self._active.id)
            return None

    @property
    def has_unsaved_changes(self) -> bool:
        with self._lock:
            return bool(self._dirty_sessions or self._dirty_gaps)

    def snapshot(self) -> dict:
        """Current state as plain data (for status endpoints and the CLI)."""
        with self._lock:
            active = self._active
            gap = self.pending_or_open_gap
            return {
                "state": self.state.value,
                "is_clocked_in": active is not None,
                "session_id": active.id if active else None,
                "session_start": active.start.isoformat() if active else None,
                "pending_exit_time": (
                    self.pending_exit_time.isoformat() if self.pending_exit_time else None
                ),
                "open_gap_id": gap.id if gap and not self.timer.is_armed else None,
                "open_gap_exit_time": gap.exit_time.isoformat() if gap else None,
                "confirm_clock_in_pending": self.confirm_clock_in_pending,
                "unsaved_changes": self.has_unsaved_changes,
            }

    # ==================== Event handling ====================

    def handle(self, event: ClockEvent) -> ClockState:
        """Apply one event and return the resulting state."""
        with self._lock:
            before = self.state
            if isinstance(event, GeofenceTransition):
                when = ensure_utc(event.timestamp)
                if event.kind is TransitionKind.ENTER:
                    self._on_enter(before, when)
                else:
                    self._on_exit(before, when)
            elif isinstance(event, ManualClockAction):
                when = ensure_utc(event.timestamp)
                if event.kind is ManualKind.IN:
                    self._on_manual_in(before, when)
                else:
                    self._on_manual_out(before, when)
            elif isinstance(event, GraceTimerFired):
                self._on_timer_fired(before, event.token)
            else:
                raise TypeError(f"Unsupported clock event: {event!r}")

            after = self.state
            if after is not before:
                logger.info("Clock state %s -> %s", before.value, after.value)
            return after

    def _on_enter(self, state: ClockState, when: datetime) -> None:
        first = self._first_enter_pending
        self._first_enter_pending = False

        if state is ClockState.CLOCKED_OUT:
            if first:
                # Already inside the zone on the very first evaluation: ask, don't assume.
                self.confirm_clock_in_pending = True
                logger.info("Inside zone at first check, requesting clock-in confirmation")
                if self.on_confirm_request is not None:
                    self.on_confirm_request(when)
                return
            previous_end = self._previous_end()
            if previous_end is not None and when < previous_end:
                logger.debug("Enter at %s ignored, before the previous session ended", when.isoformat())
                return
            self._open_session(when, source="geofence")
        elif state is ClockState.PENDING_EXIT:
            self.timer.cancel()
            logger.info("Returned within grace period, no gap recorded")
        elif state is ClockState.AWAY:
            gap = self._active.open_gap
            if when < gap.exit_time:
                logger.debug("Enter at %s ignored, before gap %s started", when.isoformat(), gap.id)
                return
            gap.return_time = when
            logger.info("Gap %s closed at %s", gap.id, when.isoformat())
            self._write_through(gaps=[gap])
        else:
            logger.debug("Enter ignored in state %s", state.value)

    def _on_exit(self, state: ClockState, when: datetime) -> None:
        if state is not ClockState.CLOCKED_IN:
            logger.debug("Exit ignored in state %s", state.value)
            return
        if when < last_recorded_time(self._active):
            logger.debug("Exit at %s ignored, before the last recorded time", when.isoformat())
            return
        self.timer.arm(self.settings.grace_seconds, when, self._deliver_timer_fired)
        logger.info(
            "Left zone at %s, grace period %ds started",
            when.isoformat(),
            self.settings.grace_seconds,
        )

    def _deliver_timer_fired(self, token: int) -> None:
        # Runs on the timer thread; hand the firing back as an event.
        self._post(GraceTimerFired(token))

    def _on_timer_fired(self, state: ClockState, token: int) -> None:
        exit_time = self.timer.take(token)
        if exit_time is None or self._active is None:
            logger.debug("Grace timer firing ignored in state %s (token=%d)", state.value, token)
            return
        gap = self._active.add_gap(Gap(exit_time=exit_time, session_id=self._active.id))
        logger.info("Grace period expired, gap %s committed from %s", gap.id, exit_time.isoformat())
        self._write_through(gaps=[gap])

    def _on_manual_in(self, state: ClockState, when: datetime) -> None:
        if state is not ClockState.CLOCKED_OUT:
            logger.debug("Manual clock-in ignored, already clocked in")
            return
        validate_manual_clock_in(when, self._previous_end())
        self._open_session(when, source="manual")

    def _on_manual_out(self, state: ClockState, when: datetime) -> None:
        if state is ClockState.CLOCKED_OUT:
            logger.debug("Manual clock-out ignored, no active session")
            return
        session = self._active
        validate_manual_clock_out(session, when, self.pending_exit_time)

        # Manual clock-out always wins over a pending exit or an open gap.
        self.timer.cancel()
        closed = []
        gap = session.open_gap
        if gap is not None:
            gap.return_time = when
            closed.append(gap)
        session.end = when
        self._active = None
        logger.info(
            "Clocked out session %s at %s (%.2f h worked)",
            session.id,
            when.isoformat(),
            session.worked_hours(when),
        )
        self._write_through(sessions=[session], gaps=closed)

    def _open_session(self, when: datetime, source: str) -> None:
        session = WorkSession(start=when)
        self._active = session
        self.confirm_clock_in_pending = False
        logger.info("Clocked in (%s) at %s, session %s", source, when.isoformat(), session.id)
        self._write_through(sessions=[session])

    def _previous_end(self) -> datetime | None:
        """Latest end among closed sessions, unsaved ones included."""
        ends = [s.end for s in self._dirty_sessions.values() if s.end is not None]
        try:
            stored = self.store.latest_session_end()
        except StoreError as e:
            logger.warning("Could not read the previous session end: %s", e)
            stored = None
        if stored is not None:
            ends.append(stored)
        return max(ends, default=None)

    # ==================== Confirmation prompt ====================

    def dismiss_confirm_request(self) -> None:
        with self._lock:
            self.confirm_clock_in_pending = False

    # ==================== Persistence ====================

    def _write_through(self, sessions=(), gaps=()) -> bool:
        """
        Queue records for writing, then flush everything still unsaved.

        Failures leave the records queued; in-memory state stays
        authoritative and the next mutation retries them first.
        """
        for session in sessions:
            self._dirty_sessions[session.id] = session
        for gap in gaps:
            self._dirty_gaps[gap.id] = gap
        return self.flush()

    def flush(self) -> bool:
        """Write all unsaved records. Sessions go first (gaps reference them)."""
        with self._lock:
            try:
                for session_id, session in list(self._dirty_sessions.items()):
                    self.store.save_session(session)
                    del self._dirty_sessions[session_id]
                for gap_id, gap in list(self._dirty_gaps.items()):
                    self.store.save_gap(gap)
                    del self._dirty_gaps[gap_id]
            except StoreError as e:
                logger.warning(
                    "Store write failed, %d record(s) kept for retry: %s",
                    len(self._dirty_sessions) + len(self._dirty_gaps),
                    e,
                )
                return False
            return True

    # ==================== Manual edit hook ====================

    def run_exclusive(self, fn: Callable[[WorkSession | None], Any]) -> Any:
        """Run *fn(active_session)* inside the serialized context."""
        with self._lock:
            return fn(self._active)

    def write_through(self, session: WorkSession | None = None, gap: Gap | None = None) -> bool:
        """Persist records changed through run_exclusive()."""
        with self._lock:
            return self._write_through(
                sessions=[session] if session is not None else [],
                gaps=[gap] if gap is not None else [],
            )
