"""Events consumed by the clock state machine, and the states it moves through."""

from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum


class ClockState(StrEnum):
    CLOCKED_OUT = "clocked_out"
    CLOCKED_IN = "clocked_in"
    PENDING_EXIT = "clocked_in_pending_exit"  # grace timer armed
    AWAY = "clocked_in_away"  # gap committed and open

    @property
    def is_clocked_in(self) -> bool:
        return self is not ClockState.CLOCKED_OUT


class TransitionKind(StrEnum):
    ENTER = "enter"
    EXIT = "exit"


class ManualKind(StrEnum):
    IN = "in"
    OUT = "out"


@dataclass(frozen=True)
class GeofenceTransition:
    """Zone boundary crossing reported by the zone monitor."""

    kind: TransitionKind
    timestamp: datetime


@dataclass(frozen=True)
class ManualClockAction:
    """Clock in/out requested by a person (API, CLI)."""

    kind: ManualKind
    timestamp: datetime


@dataclass(frozen=True)
class GraceTimerFired:
    """Posted back into the serialized context when the grace timer expires.

    token identifies which arming fired; a stale token is ignored.
    """

    token: int


ClockEvent = GeofenceTransition | ManualClockAction | GraceTimerFired


def enter(timestamp: datetime) -> GeofenceTransition:
    return GeofenceTransition(TransitionKind.ENTER, timestamp)


def exit_(timestamp: datetime) -> GeofenceTransition:
    return GeofenceTransition(TransitionKind.EXIT, timestamp)


def clock_in(timestamp: datetime) -> ManualClockAction:
    return ManualClockAction(ManualKind.IN, timestamp)


def clock_out(timestamp: datetime) -> ManualClockAction:
    return ManualClockAction(ManualKind.OUT, timestamp)


def describe_event(event) -> str:
    """Short label for log lines: 'geofence:enter', 'manual:out', 'timer:3'."""
    if isinstance(event, GeofenceTransition):
        return f"geofence:{event.kind.value}"
    if isinstance(event, ManualClockAction):
        return f"manual:{event.kind.value}"
    if isinstance(event, GraceTimerFired):
        return f"timer:{event.token}"
    return type(event).__name__
