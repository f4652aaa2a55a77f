"""
Manual edits to recorded sessions and gaps.

Covers what a person fixes by hand after the fact: adding a forgotten
entry, moving a clock-in or clock-out, and soft-deleting (or restoring) a
gap. Edits run inside the state machine's serialized context, so they never
interleave with a zone event. The open session is edited in memory and
written through the machine; closed sessions go straight to the store.
"""

import logging
from collections.abc import Callable
from datetime import datetime
from typing import Any

from shopclock.clock import SystemClock, ensure_utc
from shopclock.models import Gap, WorkSession
from shopclock.store import SessionStore
from shopclock.validation import (
    ValidationError,
    validate_entry,
    validate_session_edit,
)

logger = logging.getLogger(__name__)


class SessionEditor:
    def __init__(self, store: SessionStore, machine=None, clock=None):
        self.store = store
        self.machine = machine
        self.clock = clock or (machine.clock if machine is not None else SystemClock())

    def _exclusive(self, fn: Callable[[WorkSession | None], Any]) -> Any:
        if self.machine is None:
            return fn(None)
        return self.machine.run_exclusive(fn)

    def _load_session(self, session_id: str) -> WorkSession:
        session = self.store.get_session(session_id)
        if session is None:
            raise LookupError(f"session not found: {session_id}")
        return session

    # ==================== Sessions ====================

    def add_entry(self, start: datetime, end: datetime) -> WorkSession:
        """Record a closed session the tracker missed."""
        start, end = ensure_utc(start), ensure_utc(end)
        validate_entry(start, end)
        session = WorkSession(start=start, end=end)

        def insert(_active):
            self.store.insert_session(session)
            return session

        self._exclusive(insert)
        logger.info("Added manual entry %s (%s - %s)", session.id, start.isoformat(), end.isoformat())
        return session

    def edit_session(
        self,
        session_id: str,
        new_start: datetime | None = None,
        new_end: datetime | None = None,
    ) -> WorkSession:
        """
        Move clock in and/or clock out in one step.

        Both values are validated against the session and its gaps before
        anything changes, and the session is written once. The open session
        only takes a new clock in; it is ended by a manual clock-out.
        """
        if new_start is None and new_end is None:
            raise ValidationError("nothing to change: give start and/or end")
        new_start = ensure_utc(new_start) if new_start is not None else None
        new_end = ensure_utc(new_end) if new_end is not None else None

        def apply(active: WorkSession | None) -> WorkSession:
            now = self.clock.now()
            if active is not None and active.id == session_id:
                validate_session_edit(active, new_start, new_end, now)
                pending = self.machine.pending_exit_time
                if pending is not None and new_start > pending:
                    raise ValidationError("clock in cannot be later than the pending departure")
                active.start = new_start
                self.machine.write_through(session=active)
                return active

            session = self._load_session(session_id)
            validate_session_edit(session, new_start, new_end, now)
            if new_start is not None:
                session.start = new_start
            if new_end is not None:
                session.end = new_end
            self.store.save_session(session)
            return session

        session = self._exclusive(apply)
        logger.info(
            "Session %s edited (start %s, end %s)",
            session_id,
            session.start.isoformat(),
            session.end.isoformat() if session.end else "open",
        )
        return session

    def edit_clock_in(self, session_id: str, new_start: datetime) -> WorkSession:
        return self.edit_session(session_id, new_start=new_start)

    def edit_clock_out(self, session_id: str, new_end: datetime) -> WorkSession:
        """Move the end of a closed session. The open session is clocked out instead."""
        return self.edit_session(session_id, new_end=new_end)

    # ==================== Gaps ====================

    def set_gap_deleted(self, gap_id: str, deleted: bool) -> Gap:
        """Soft-delete or restore a gap. The row is never removed."""

        def apply(active: WorkSession | None) -> Gap:
            if active is not None:
                for gap in active.gaps:
                    if gap.id == gap_id:
                        gap.deleted = deleted
                        self.machine.write_through(gap=gap)
                        return gap

            gap = self.store.get_gap(gap_id)
            if gap is None:
                raise LookupError(f"gap not found: {gap_id}")
            gap.deleted = deleted
            self.store.save_gap(gap)
            return gap

        gap = self._exclusive(apply)
        logger.info("Gap %s %s", gap_id, "deleted" if deleted else "restored")
        return gap

    def toggle_gap(self, gap_id: str) -> Gap:
        def current(active: WorkSession | None) -> bool:
            if active is not None:
                for gap in active.gaps:
                    if gap.id == gap_id:
                        return gap.deleted
            gap = self.store.get_gap(gap_id)
            if gap is None:
                raise LookupError(f"gap not found: {gap_id}")
            return gap.deleted

        # RLock: the nested run_exclusive in set_gap_deleted re-enters.
        return self._exclusive(lambda active: self.set_gap_deleted(gap_id, not current(active)))
