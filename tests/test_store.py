"""
Tests for SessionStore.

Tests cover:
- Schema creation is idempotent
- Session and gap upserts
- Single open session enforced by the database
- Overlap queries used by the aggregator
- Errors surface as StoreError
"""

from datetime import UTC, datetime, timedelta

import pytest

from shopclock.models import Gap, WorkSession
from shopclock.store import SessionStore, StoreError, from_db_time, to_db_time

T0 = datetime(2024, 3, 4, 8, 0, tzinfo=UTC)


def at(hours: float) -> datetime:
    return T0 + timedelta(hours=hours)


class TestTimestamps:
    def test_round_trip_keeps_microseconds(self):
        dt = datetime(2024, 3, 4, 8, 0, 0, 123456, tzinfo=UTC)
        assert from_db_time(to_db_time(dt)) == dt

    def test_naive_rejected(self):
        with pytest.raises(ValueError):
            to_db_time(datetime(2024, 3, 4, 8, 0))

    def test_none_passes_through(self):
        assert to_db_time(None) is None
        assert from_db_time(None) is None


class TestSessionStore:
    """Tests for SessionStore persistence."""

    def test_init_schema_twice(self, store):
        store.init_schema()
        assert store.table_counts() == {"sessions": 0, "gaps": 0}

    def test_insert_and_get_with_gaps(self, store):
        session = WorkSession(start=T0, end=at(8))
        session.add_gap(Gap(exit_time=at(2), session_id="", return_time=at(2.5)))
        store.insert_session(session)

        loaded = store.get_session(session.id)
        assert loaded.start == T0
        assert loaded.end == at(8)
        assert len(loaded.gaps) == 1
        assert loaded.gaps[0].return_time == at(2.5)

    def test_get_unknown_returns_none(self, store):
        assert store.get_session("missing") is None
        assert store.get_gap("missing") is None

    def test_save_session_updates(self, store):
        session = WorkSession(start=T0)
        store.save_session(session)
        session.end = at(4)
        store.save_session(session)
        assert store.get_session(session.id).end == at(4)
        assert store.table_counts()["sessions"] == 1

    def test_save_gap_soft_delete(self, store):
        session = WorkSession(start=T0, end=at(8))
        store.save_session(session)
        gap = Gap(exit_time=at(1), session_id=session.id, return_time=at(2))
        store.save_gap(gap)
        gap.deleted = True
        store.save_gap(gap)
        assert store.get_gap(gap.id).deleted is True
        assert store.table_counts()["gaps"] == 1

    def test_fetch_active_session(self, store):
        store.save_session(WorkSession(start=T0, end=at(1)))
        open_session = WorkSession(start=at(2))
        store.save_session(open_session)
        store.save_gap(Gap(exit_time=at(3), session_id=open_session.id))

        active = store.fetch_active_session()
        assert active.id == open_session.id
        assert active.open_gap is not None

    def test_second_open_session_rejected(self, store):
        """The database itself allows only one session with no end."""
        store.save_session(WorkSession(start=T0))
        with pytest.raises(StoreError):
            store.save_session(WorkSession(start=at(1)))
        assert store.open_session_count() == 1

    def test_end_before_start_rejected(self, store):
        with pytest.raises(StoreError):
            store.save_session(WorkSession(start=at(2), end=at(1)))

    def test_gap_for_unknown_session_rejected(self, store):
        with pytest.raises(StoreError):
            store.save_gap(Gap(exit_time=T0, session_id="nope"))

    def test_fetch_overlapping(self, store):
        before = WorkSession(start=at(-30), end=at(-20))
        spanning = WorkSession(start=at(-2), end=at(2))
        inside = WorkSession(start=at(3), end=at(5))
        still_open = WorkSession(start=at(10))
        for s in (before, spanning, inside, still_open):
            store.save_session(s)

        found = store.fetch_sessions_overlapping(T0, at(24))
        assert [s.id for s in found] == [spanning.id, inside.id, still_open.id]

    def test_session_ending_at_window_start_excluded(self, store):
        store.save_session(WorkSession(start=at(-2), end=T0))
        assert store.fetch_sessions_overlapping(T0, at(1)) == []

    def test_earliest_session_start(self, store):
        assert store.earliest_session_start() is None
        store.save_session(WorkSession(start=at(5), end=at(6)))
        store.save_session(WorkSession(start=at(-48), end=at(-40)))
        assert store.earliest_session_start() == at(-48)

    def test_unwritable_path_raises_store_error(self, tmp_path):
        store = SessionStore(tmp_path / "db" / "shopclock.db")
        store.db_path = tmp_path / "missing-dir" / "shopclock.db"
        with pytest.raises(StoreError):
            store.fetch_all_sessions()
