"""
Log context for one HTTP request or one queued clock event.

The context is a frozen LogContext held in a contextvar. Formatters read
it to stamp each line with the correlation id and, while a queued event is
being applied, a short label of that event. A context opened inside
another one (an event drained on a request thread) keeps the outer
correlation id, so the request and the events it caused share one id.
"""

import contextvars
import uuid
from dataclasses import dataclass


@dataclass(frozen=True)
class LogContext:
    correlation_id: str
    clock_event: str | None = None


_current: contextvars.ContextVar[LogContext | None] = contextvars.ContextVar(
    "shopclock_log_context", default=None
)


def current_context() -> LogContext | None:
    return _current.get()


def get_correlation_id() -> str | None:
    ctx = _current.get()
    return ctx.correlation_id if ctx else None


def get_clock_event() -> str | None:
    ctx = _current.get()
    return ctx.clock_event if ctx else None


def generate_correlation_id(prefix: str = "req") -> str:
    """e.g. evt-1f2e3d4c5b6a7988."""
    return f"{prefix}-{uuid.uuid4().hex[:16]}"


class CorrelationContext:
    """
    Bind a LogContext for the enclosed block.

    Usage:
        with CorrelationContext(prefix="evt", clock_event="geofence:exit"):
            machine.handle(event)
    """

    def __init__(
        self,
        correlation_id: str | None = None,
        prefix: str = "req",
        clock_event: str | None = None,
    ):
        outer = _current.get()
        if correlation_id is None and outer is not None:
            correlation_id = outer.correlation_id
        self.context = LogContext(
            correlation_id=correlation_id or generate_correlation_id(prefix),
            clock_event=clock_event,
        )
        self._token: contextvars.Token | None = None

    @property
    def correlation_id(self) -> str:
        return self.context.correlation_id

    def __enter__(self) -> "CorrelationContext":
        self._token = _current.set(self.context)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if self._token is not None:
            _current.reset(self._token)
