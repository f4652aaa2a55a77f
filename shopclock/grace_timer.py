"""
Grace Timer - single-shot, cancellable delay between a zone exit and a gap.

One slot per process. Arming captures the exit timestamp; firing never
touches the store, it only hands a token back to whoever armed it (the
clock service posts it into the serialized event queue). The state machine
then redeems the token with take(); a token that was cancelled or replaced
in the meantime redeems to None.
"""

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ArmedExit:
    token: int
    exit_time: datetime
    delay_seconds: float


class GraceTimer:
    """
    Single-slot grace timer backed by threading.Timer.

    timer_factory must accept (interval, function, args=...) and return an
    object with start() and cancel(); tests inject a manually fired fake.
    """

    def __init__(self, timer_factory: Callable = threading.Timer):
        self._timer_factory = timer_factory
        self._lock = threading.RLock()
        self._timer = None
        self._armed: ArmedExit | None = None
        self._generation = 0

    @property
    def is_armed(self) -> bool:
        with self._lock:
            return self._armed is not None

    @property
    def armed(self) -> ArmedExit | None:
        with self._lock:
            return self._armed

    def arm(self, delay_seconds: float, exit_time: datetime, on_fire: Callable[[int], None]) -> int:
        """
        Start the countdown for an exit at *exit_time*. Returns the arming token.

        Arming while armed replaces the earlier countdown and discards its
        captured exit time.
        """
        with self._lock:
            if self._armed is not None:
                logger.warning(
                    "Grace timer re-armed, discarding exit captured at %s",
                    self._armed.exit_time.isoformat(),
                )
                self._cancel_locked()

            self._generation += 1
            token = self._generation
            self._armed = ArmedExit(token=token, exit_time=exit_time, delay_seconds=delay_seconds)

            timer = self._timer_factory(delay_seconds, self._fire, args=(token, on_fire))
            timer.daemon = True
            self._timer = timer
            timer.start()

        logger.debug("Grace timer armed (token=%d, %.0fs)", token, delay_seconds)
        return token

    def cancel(self) -> bool:
        """Disarm. Returns True if a countdown was pending."""
        with self._lock:
            if self._armed is None:
                return False
            self._cancel_locked()
        logger.debug("Grace timer cancelled")
        return True

    def take(self, token: int) -> datetime | None:
        """
        Redeem a fired token: returns the captured exit time and disarms.

        Returns None if *token* is not the current arming (cancelled or
        replaced before its firing was processed).
        """
        with self._lock:
            if self._armed is None or self._armed.token != token:
                return None
            exit_time = self._armed.exit_time
            self._armed = None
            self._timer = None
            return exit_time

    def _cancel_locked(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
        self._timer = None
        self._armed = None

    def _fire(self, token: int, on_fire: Callable[[int], None]) -> None:
        with self._lock:
            current = self._armed is not None and self._armed.token == token
        if not current:
            logger.debug("Stale grace timer firing ignored (token=%d)", token)
            return
        try:
            on_fire(token)
        except Exception:
            # Runs on the timer thread; nothing above us would see this.
            logger.exception("Grace timer callback failed (token=%d)", token)
