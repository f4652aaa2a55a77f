"""
Shared Pydantic request/response models for the ShopClock API.

These models give FastAPI the type information it needs to generate
accurate OpenAPI schemas.

Usage:
    from api.response_models import WeeklySummaryResponse

    @router.get("/week/{week_start}", response_model=WeeklySummaryResponse)
    def week(week_start: date): ...
"""

from datetime import datetime

from pydantic import BaseModel, Field

from shopclock.aggregator import WeeklySummary
from shopclock.events import TransitionKind
from shopclock.models import Gap, WorkSession
from shopclock.summary import format_gap_duration

# ==== Requests ====


class ClockActionRequest(BaseModel):
    """Manual clock in / clock out."""

    timestamp: str | None = Field(default=None, description="ISO 8601; defaults to now")


class GeofenceRequest(BaseModel):
    """Zone transition reported by the zone monitor."""

    kind: TransitionKind = Field(description="enter or exit")
    timestamp: str | None = Field(default=None, description="ISO 8601; defaults to now")


class AddEntryRequest(BaseModel):
    """A closed session entered by hand."""

    start: str = Field(description="Clock in, ISO 8601")
    end: str = Field(description="Clock out, ISO 8601")


class SessionPatchRequest(BaseModel):
    """Move the clock in and/or clock out of a session."""

    start: str | None = None
    end: str | None = None


# ==== Clock ====


class ClockStatusResponse(BaseModel):
    """Current clock state."""

    state: str = Field(description="clocked_out, clocked_in, clocked_in_pending_exit, clocked_in_away")
    is_clocked_in: bool
    session_id: str | None = None
    session_start: str | None = None
    pending_exit_time: str | None = None
    open_gap_id: str | None = None
    open_gap_exit_time: str | None = None
    confirm_clock_in_pending: bool = False
    unsaved_changes: bool = False
    today_hours: float = 0.0


# ==== Records ====


class GapModel(BaseModel):
    id: str
    session_id: str
    exit_time: datetime
    return_time: datetime | None = None
    deleted: bool = False
    status: str
    duration: str = Field(description="e.g. '43 min', '1 hr 15 min'")


class SessionModel(BaseModel):
    id: str
    start: datetime
    end: datetime | None = None
    is_open: bool
    worked_hours: float
    gaps: list[GapModel] = Field(default_factory=list)


class DayDetailResponse(BaseModel):
    """Sessions and gaps of one local day."""

    date: str
    hours: float
    sessions: list[SessionModel] = Field(default_factory=list)
    gaps: list[GapModel] = Field(default_factory=list)


# ==== Hours ====


class HoursResponse(BaseModel):
    hours: float
    formatted: str = Field(description="e.g. '8.5 hrs'")
    start: str | None = None
    end: str | None = None
    date: str | None = None


class DayEntryModel(BaseModel):
    date: str
    day_name: str
    hours: float


class WeeklySummaryResponse(BaseModel):
    week_start: str
    total_hours: float
    daily_breakdown: list[DayEntryModel] = Field(default_factory=list)


class MessageResponse(BaseModel):
    week_start: str
    message: str


class HistoryResponse(BaseModel):
    """Every recorded week, most recent first."""

    items: list[WeeklySummaryResponse] = Field(default_factory=list)
    total: int = Field(description="Total count")


# ==== Health Check ====


class HealthResponse(BaseModel):
    """Health check result."""

    status: str = Field(description="healthy or degraded")
    version: str
    timestamp: str = Field(description="ISO timestamp")
    state: str
    sessions: int = 0
    gaps: int = 0
    unsaved_changes: bool = False


# ==== Serialization ====


def gap_model(gap: Gap, now: datetime) -> GapModel:
    return GapModel(
        id=gap.id,
        session_id=gap.session_id,
        exit_time=gap.exit_time,
        return_time=gap.return_time,
        deleted=gap.deleted,
        status=gap.status.value,
        duration=format_gap_duration(gap.duration_seconds(now)),
    )


def session_model(session: WorkSession, now: datetime) -> SessionModel:
    return SessionModel(
        id=session.id,
        start=session.start,
        end=session.end,
        is_open=session.is_open,
        worked_hours=round(session.worked_hours(now), 4),
        gaps=[gap_model(g, now) for g in session.gaps],
    )


def weekly_summary_model(summary: WeeklySummary) -> WeeklySummaryResponse:
    return WeeklySummaryResponse(**summary.to_dict())
