"""
Clock API Router - current state, manual clock actions, zone transitions.

Endpoints:
- GET /api/clock/status - current state and today's hours
- POST /api/clock/in - manual clock in
- POST /api/clock/out - manual clock out (closes any open gap)
- POST /api/clock/prompt/dismiss - dismiss the first-launch clock-in prompt
- POST /api/geofence - zone enter/exit from the zone monitor
"""

import logging

from fastapi import APIRouter, Depends

from api.deps import get_service
from api.response_models import ClockActionRequest, ClockStatusResponse, GeofenceRequest
from shopclock.events import GeofenceTransition, clock_in, clock_out
from shopclock.service import ClockService
from shopclock.validation import parse_timestamp

logger = logging.getLogger(__name__)

router = APIRouter(tags=["clock"])


def _status(service: ClockService) -> ClockStatusResponse:
    snapshot = service.machine.snapshot()
    return ClockStatusResponse(**snapshot, today_hours=round(service.aggregator.today_hours(), 4))


def _when(service: ClockService, raw: str | None):
    settings = service.machine.settings
    return parse_timestamp(raw, settings.tzinfo, default=service.machine.clock.now())


@router.get("/clock/status", response_model=ClockStatusResponse)
def get_status(service: ClockService = Depends(get_service)):
    """Current clock state."""
    return _status(service)


@router.post("/clock/in", response_model=ClockStatusResponse)
def post_clock_in(
    body: ClockActionRequest | None = None,
    service: ClockService = Depends(get_service),
):
    """Clock in by hand. No-op when already clocked in; 422 if before the previous session ended."""
    service.submit(clock_in(_when(service, body.timestamp if body else None)))
    return _status(service)


@router.post("/clock/out", response_model=ClockStatusResponse)
def post_clock_out(
    body: ClockActionRequest | None = None,
    service: ClockService = Depends(get_service),
):
    """Clock out by hand. Wins over a pending exit or an open gap; 422 if earlier than any recorded time."""
    when = _when(service, body.timestamp if body else None)
    service.submit(clock_out(when))
    return _status(service)


@router.post("/clock/prompt/dismiss", response_model=ClockStatusResponse)
def post_dismiss_prompt(service: ClockService = Depends(get_service)):
    service.machine.dismiss_confirm_request()
    return _status(service)


@router.post("/geofence", response_model=ClockStatusResponse)
def post_geofence(body: GeofenceRequest, service: ClockService = Depends(get_service)):
    """Zone transition. Duplicates and signals stamped before recorded times are no-ops."""
    when = _when(service, body.timestamp)
    service.submit(GeofenceTransition(kind=body.kind, timestamp=when))
    return _status(service)
