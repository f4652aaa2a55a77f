"""
Clock Service - ordered event channel in front of the state machine.

Zone signals, manual actions and grace timer firings are all posted to one
FIFO queue. A single worker thread applies them in arrival order; when the
worker is not running (CLI, tests) drain() applies them on the caller's
thread instead. Either way only one event is in flight at a time.

Usage:
    service = build_service(load_settings())
    service.start()
    service.post(enter(now))
    ...
    service.stop()
"""

import logging
import queue
import threading
from dataclasses import dataclass

from shopclock.aggregator import HoursAggregator
from shopclock.clock import SystemClock
from shopclock.config import Settings
from shopclock.edits import SessionEditor
from shopclock.events import ClockEvent, ClockState, describe_event
from shopclock.grace_timer import GraceTimer
from shopclock.observability.context import CorrelationContext
from shopclock.state_machine import ClockStateMachine
from shopclock.store import SessionStore
from shopclock.validation import ValidationError

logger = logging.getLogger(__name__)

_STOP = object()


@dataclass
class _Envelope:
    event: ClockEvent
    done: threading.Event
    result: ClockState | None = None
    error: BaseException | None = None


class ClockService:
    """Owns the event queue and the worker that feeds ClockStateMachine."""

    def __init__(self, machine: ClockStateMachine, aggregator: HoursAggregator, editor: SessionEditor):
        self.machine = machine
        self.aggregator = aggregator
        self.editor = editor
        self._queue: queue.Queue = queue.Queue()
        self._worker: threading.Thread | None = None
        self._lock = threading.Lock()
        machine.bind_event_sink(self.post)

    @property
    def running(self) -> bool:
        return self._worker is not None and self._worker.is_alive()

    # ==================== Lifecycle ====================

    def start(self) -> None:
        with self._lock:
            if self.running:
                return
            self._worker = threading.Thread(target=self._run, name="shopclock-events", daemon=True)
            self._worker.start()
        logger.info("Clock service started")

    def stop(self, timeout: float = 5.0) -> None:
        """Stop the worker after the queued events, disarm the timer, flush."""
        with self._lock:
            worker = self._worker
            self._worker = None
        if worker is not None:
            self._queue.put(_STOP)
            worker.join(timeout)
        self.machine.timer.cancel()
        self.machine.flush()
        logger.info("Clock service stopped")

    # ==================== Event channel ====================

    def post(self, event: ClockEvent) -> threading.Event:
        """Enqueue *event*. Returns an Event set once it has been applied."""
        envelope = _Envelope(event=event, done=threading.Event())
        self._queue.put(envelope)
        return envelope.done

    def submit(self, event: ClockEvent, timeout: float = 5.0) -> ClockState:
        """
        Enqueue *event* and wait until it has been applied.

        Without a running worker the queue is drained on this thread.
        """
        envelope = _Envelope(event=event, done=threading.Event())
        self._queue.put(envelope)
        if not self.running:
            self.drain()
        if not envelope.done.wait(timeout):
            raise TimeoutError(f"clock event not applied within {timeout}s: {event!r}")
        if envelope.error is not None:
            raise envelope.error
        return envelope.result

    def drain(self) -> int:
        """Apply every queued event on the calling thread. Returns the count."""
        applied = 0
        while True:
            try:
                item = self._queue.get_nowait()
            except queue.Empty:
                return applied
            if item is _STOP:
                continue
            self._apply(item)
            applied += 1

    def _run(self) -> None:
        while True:
            item = self._queue.get()
            if item is _STOP:
                return
            self._apply(item)

    def _apply(self, envelope: _Envelope) -> None:
        with CorrelationContext(prefix="evt", clock_event=describe_event(envelope.event)):
            try:
                envelope.result = self.machine.handle(envelope.event)
            except ValidationError as e:
                logger.warning("Rejected %r: %s", envelope.event, e)
                envelope.error = e
            except Exception as e:
                logger.exception("Failed to apply %r", envelope.event)
                envelope.error = e
            finally:
                envelope.done.set()


def build_service(settings: Settings, clock=None, timer: GraceTimer | None = None) -> ClockService:
    """Composition root: store, clock, timer, machine, aggregator, editor."""
    clock = clock or SystemClock()
    store = SessionStore(settings.db_path)
    machine = ClockStateMachine(store, settings, clock=clock, timer=timer)
    aggregator = HoursAggregator(store, settings, clock=clock)
    editor = SessionEditor(store, machine=machine, clock=clock)
    return ClockService(machine, aggregator, editor)
