# ShopClock - Core Library
"""
Geofence-driven work-hours tracker.

Exports for cli/main.py, the API and other consumers.
"""

from .aggregator import DayEntry, HoursAggregator, WeeklySummary
from .config import Settings, load_settings
from .events import ClockState, clock_in, clock_out, enter, exit_
from .models import Gap, WorkSession
from .service import ClockService, build_service
from .store import SessionStore, StoreError
from .validation import ValidationError

__version__ = "1.0.0"

__all__ = [
    "ClockService",
    "ClockState",
    "DayEntry",
    "Gap",
    "HoursAggregator",
    "SessionStore",
    "Settings",
    "StoreError",
    "ValidationError",
    "WeeklySummary",
    "WorkSession",
    "build_service",
    "clock_in",
    "clock_out",
    "enter",
    "exit_",
    "load_settings",
]
