"""
Edit API Router - manual corrections to recorded time.

Endpoints:
- POST /api/sessions - add a closed entry
- PATCH /api/sessions/{session_id} - move clock in and/or clock out
- POST /api/gaps/{gap_id}/delete - soft-delete a gap
- POST /api/gaps/{gap_id}/restore - restore a soft-deleted gap
"""

import logging

from fastapi import APIRouter, Depends

from api.deps import get_service
from api.response_models import (
    AddEntryRequest,
    GapModel,
    SessionModel,
    SessionPatchRequest,
    gap_model,
    session_model,
)
from shopclock.service import ClockService
from shopclock.validation import parse_timestamp

logger = logging.getLogger(__name__)

router = APIRouter(tags=["edits"])


@router.post("/sessions", response_model=SessionModel, status_code=201)
def post_session(body: AddEntryRequest, service: ClockService = Depends(get_service)):
    tz = service.machine.settings.tzinfo
    session = service.editor.add_entry(parse_timestamp(body.start, tz), parse_timestamp(body.end, tz))
    return session_model(session, service.machine.clock.now())


@router.patch("/sessions/{session_id}", response_model=SessionModel)
def patch_session(session_id: str, body: SessionPatchRequest, service: ClockService = Depends(get_service)):
    """Move clock in and/or clock out. Both ends are checked before either is saved."""
    tz = service.machine.settings.tzinfo
    session = service.editor.edit_session(
        session_id,
        new_start=parse_timestamp(body.start, tz) if body.start is not None else None,
        new_end=parse_timestamp(body.end, tz) if body.end is not None else None,
    )
    return session_model(session, service.machine.clock.now())


@router.post("/gaps/{gap_id}/delete", response_model=GapModel)
def delete_gap(gap_id: str, service: ClockService = Depends(get_service)):
    """Soft delete: the gap stops counting against worked time."""
    gap = service.editor.set_gap_deleted(gap_id, True)
    return gap_model(gap, service.machine.clock.now())


@router.post("/gaps/{gap_id}/restore", response_model=GapModel)
def restore_gap(gap_id: str, service: ClockService = Depends(get_service)):
    gap = service.editor.set_gap_deleted(gap_id, False)
    return gap_model(gap, service.machine.clock.now())
