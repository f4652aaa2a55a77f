"""
Hours API Router - worked hours per day, week and arbitrary window.

Endpoints:
- GET /api/hours/day/{date}
- GET /api/hours/week/current
- GET /api/hours/week/{week_start}
- GET /api/hours/week/{week_start}/message
- GET /api/hours/history
- GET /api/hours/window?start=&end=
- GET /api/days/{date} - sessions and gaps of a day
"""

from datetime import date

from fastapi import APIRouter, Depends, Query

from api.deps import get_service
from api.response_models import (
    DayDetailResponse,
    HistoryResponse,
    HoursResponse,
    MessageResponse,
    WeeklySummaryResponse,
    gap_model,
    session_model,
    weekly_summary_model,
)
from shopclock.service import ClockService
from shopclock.summary import format_hours, text_for_summary
from shopclock.validation import ValidationError, parse_timestamp

router = APIRouter(tags=["hours"])


@router.get("/hours/day/{day}", response_model=HoursResponse)
def get_day_hours(day: date, service: ClockService = Depends(get_service)):
    hours = service.aggregator.hours_for_date(day)
    return HoursResponse(hours=hours, formatted=format_hours(hours), date=day.isoformat())


@router.get("/hours/week/current", response_model=WeeklySummaryResponse)
def get_current_week(service: ClockService = Depends(get_service)):
    aggregator = service.aggregator
    return weekly_summary_model(aggregator.weekly_summary(aggregator.current_week_start()))


@router.get("/hours/week/{week_start}", response_model=WeeklySummaryResponse)
def get_week(week_start: date, service: ClockService = Depends(get_service)):
    """Seven days starting at *week_start* (normally a Monday)."""
    return weekly_summary_model(service.aggregator.weekly_summary(week_start))


@router.get("/hours/week/{week_start}/message", response_model=MessageResponse)
def get_week_message(week_start: date, service: ClockService = Depends(get_service)):
    """Payroll text for the week."""
    summary = service.aggregator.weekly_summary(week_start)
    return MessageResponse(week_start=week_start.isoformat(), message=text_for_summary(summary))


@router.get("/hours/history", response_model=HistoryResponse)
def get_history(service: ClockService = Depends(get_service)):
    aggregator = service.aggregator
    items = [weekly_summary_model(aggregator.weekly_summary(ws)) for ws in aggregator.all_week_starts()]
    return HistoryResponse(items=items, total=len(items))


@router.get("/hours/window", response_model=HoursResponse)
def get_window_hours(
    start: str = Query(..., description="ISO 8601"),
    end: str = Query(..., description="ISO 8601"),
    service: ClockService = Depends(get_service),
):
    tz = service.machine.settings.tzinfo
    window_start = parse_timestamp(start, tz)
    window_end = parse_timestamp(end, tz)
    if window_end < window_start:
        raise ValidationError("end must not be before start")
    hours = service.aggregator.hours_for_window(window_start, window_end)
    return HoursResponse(
        hours=hours,
        formatted=format_hours(hours),
        start=window_start.isoformat(),
        end=window_end.isoformat(),
    )


@router.get("/days/{day}", response_model=DayDetailResponse)
def get_day_detail(day: date, service: ClockService = Depends(get_service)):
    """Sessions overlapping the day and their gaps, deleted ones included."""
    aggregator = service.aggregator
    now = service.machine.clock.now()
    return DayDetailResponse(
        date=day.isoformat(),
        hours=aggregator.hours_for_date(day),
        sessions=[session_model(s, now) for s in aggregator.sessions_for_date(day)],
        gaps=[gap_model(g, now) for g in aggregator.gaps_for_date(day)],
    )
