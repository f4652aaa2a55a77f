"""
Tests for the work session model.

Tests cover:
- Gap open/closed and soft-delete status
- Gap ordering inside a session
- Worked time = elapsed - non-deleted gaps, floored at zero
"""

from datetime import UTC, datetime, timedelta

from shopclock.models import Gap, GapStatus, WorkSession

T0 = datetime(2024, 3, 4, 8, 0, tzinfo=UTC)


def at(minutes: float) -> datetime:
    return T0 + timedelta(minutes=minutes)


class TestGap:
    """Tests for Gap."""

    def test_open_gap_has_no_return(self):
        gap = Gap(exit_time=at(60), session_id="s1")
        assert gap.is_open
        assert gap.status is GapStatus.ACTIVE

    def test_open_gap_duration_runs_to_now(self):
        gap = Gap(exit_time=at(60), session_id="s1")
        assert gap.duration_seconds(now=at(90)) == 30 * 60

    def test_deleted_status(self):
        gap = Gap(exit_time=at(60), session_id="s1", return_time=at(70), deleted=True)
        assert not gap.is_open
        assert gap.status is GapStatus.DELETED

    def test_ids_are_unique(self):
        assert Gap(exit_time=T0, session_id="s").id != Gap(exit_time=T0, session_id="s").id


class TestWorkSession:
    """Tests for WorkSession."""

    def test_add_gap_sets_session_id(self):
        session = WorkSession(start=T0)
        gap = session.add_gap(Gap(exit_time=at(10), session_id=""))
        assert gap.session_id == session.id

    def test_gaps_kept_in_exit_order(self):
        session = WorkSession(start=T0)
        late = session.add_gap(Gap(exit_time=at(120), session_id="", return_time=at(130)))
        early = session.add_gap(Gap(exit_time=at(30), session_id="", return_time=at(40)))
        assert session.gaps == [early, late]

    def test_open_gap_is_the_unreturned_one(self):
        session = WorkSession(start=T0)
        session.add_gap(Gap(exit_time=at(30), session_id="", return_time=at(40)))
        current = session.add_gap(Gap(exit_time=at(60), session_id=""))
        assert session.open_gap is current

    def test_worked_subtracts_gaps(self):
        """8 hour shift with a 30 minute gap is 7.5 hours."""
        session = WorkSession(start=T0, end=at(8 * 60))
        session.add_gap(Gap(exit_time=at(120), session_id="", return_time=at(150)))
        assert session.worked_hours() == 7.5

    def test_deleted_gap_not_subtracted(self):
        session = WorkSession(start=T0, end=at(8 * 60))
        session.add_gap(Gap(exit_time=at(120), session_id="", return_time=at(150), deleted=True))
        assert session.worked_hours() == 8.0

    def test_open_session_measured_to_now(self):
        session = WorkSession(start=T0)
        assert session.is_open
        assert session.worked_seconds(now=at(45)) == 45 * 60

    def test_worked_never_negative(self):
        session = WorkSession(start=T0, end=at(10))
        session.add_gap(Gap(exit_time=T0, session_id="", return_time=at(60)))
        assert session.worked_seconds() == 0.0
