"""
Tests for GraceTimer.

Tests cover:
- Arming captures the exit time and starts a daemon timer
- Cancel and re-arm semantics
- Token redemption, stale firings ignored
- Callback failures are contained on the timer thread
- Real threading.Timer end to end
"""

import threading
from datetime import UTC, datetime

from shopclock.grace_timer import GraceTimer

T0 = datetime(2024, 3, 4, 8, 0, tzinfo=UTC)


class TestGraceTimer:
    """Tests for GraceTimer with a fake timer factory."""

    def test_arm_starts_timer(self, grace_timer, timers):
        token = grace_timer.arm(900, T0, lambda t: None)
        assert grace_timer.is_armed
        assert grace_timer.armed.exit_time == T0
        assert timers.last.interval == 900
        assert timers.last.started
        assert timers.last.daemon is True
        assert token == grace_timer.armed.token

    def test_cancel(self, grace_timer, timers):
        grace_timer.arm(900, T0, lambda t: None)
        assert grace_timer.cancel() is True
        assert not grace_timer.is_armed
        assert timers.last.cancelled

    def test_cancel_when_idle(self, grace_timer):
        assert grace_timer.cancel() is False

    def test_fire_calls_back_with_token(self, grace_timer, timers):
        fired = []
        token = grace_timer.arm(900, T0, fired.append)
        timers.last.fire()
        assert fired == [token]
        # Firing alone does not disarm; the owner redeems the token.
        assert grace_timer.is_armed

    def test_take_redeems_once(self, grace_timer):
        token = grace_timer.arm(900, T0, lambda t: None)
        assert grace_timer.take(token) == T0
        assert not grace_timer.is_armed
        assert grace_timer.take(token) is None

    def test_rearm_replaces_previous(self, grace_timer, timers):
        first = grace_timer.arm(900, T0, lambda t: None)
        first_timer = timers.last
        second = grace_timer.arm(900, T0.replace(hour=9), lambda t: None)
        assert first_timer.cancelled
        assert second != first
        assert grace_timer.take(first) is None
        assert grace_timer.take(second) == T0.replace(hour=9)

    def test_stale_firing_ignored(self, grace_timer, timers):
        """A firing that raced a cancel never reaches the callback."""
        fired = []
        grace_timer.arm(900, T0, fired.append)
        grace_timer.cancel()
        timers.last.fire(force=True)
        assert fired == []

    def test_callback_error_is_logged(self, grace_timer, timers, caplog):
        def boom(token):
            raise RuntimeError("boom")

        grace_timer.arm(900, T0, boom)
        timers.last.fire()
        assert "Grace timer callback failed" in caplog.text


class TestGraceTimerThreaded:
    """End to end with threading.Timer."""

    def test_real_timer_fires(self):
        timer = GraceTimer()
        done = threading.Event()
        received = []

        def on_fire(token):
            received.append(token)
            done.set()

        token = timer.arm(0.01, T0, on_fire)
        assert done.wait(2.0)
        assert received == [token]
        assert timer.take(token) == T0

    def test_real_timer_cancelled(self):
        timer = GraceTimer()
        fired = threading.Event()
        timer.arm(0.2, T0, lambda t: fired.set())
        timer.cancel()
        assert not fired.wait(0.4)
