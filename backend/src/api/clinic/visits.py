# pyright: reportMissingTypeStubs=false
"""
Visit Queue API endpoints for the staff dashboard.

The dashboard either polls ``GET /visits`` or keeps ``GET /visits/stream``
open: a Server-Sent Events stream that sends the whole day's queue as a
``data`` event on connect and after every change, and an ``error`` event when
the queue cannot be loaded.
"""

import asyncio
import json
import logging
from datetime import date as date_type
from typing import List, Literal, Optional, Tuple

from fastapi import APIRouter, Depends, Query, Request, status
from fastapi.responses import StreamingResponse
from pydantic import field_validator
from sqlalchemy.orm import Session

from api.responses import (
    CamelModel, CloseAllResponse, VisitListResponse, VisitResponse,
    visit_to_response, visits_to_response,
)
from auth.dependencies import SessionContext, require_staff
from core.database import get_db
from models import Visit
from services import VisitService
from services.visit_queue_hub import get_visit_queue_hub
from utils.datetime_utils import clinic_today, parse_date_string
from utils.patient_validators import normalize_patient_id, validate_patient_name

logger = logging.getLogger(__name__)

router = APIRouter()

# Seconds between keep-alive comments on an idle stream
STREAM_KEEPALIVE_SECONDS = 15


class ProxyVisitRequest(CamelModel):
    """Request model for a staff check-in on a patient's behalf."""
    patient_id: str
    name: str

    @field_validator('patient_id')
    @classmethod
    def validate_patient_id(cls, v: str) -> str:
        return normalize_patient_id(v)

    @field_validator('name')
    @classmethod
    def validate_name(cls, v: str) -> str:
        return validate_patient_name(v)


class VisitStatusUpdateRequest(CamelModel):
    """Request model for a status change."""
    status: Literal["active", "paid", "cancelled"]


class CloseAllRequest(CamelModel):
    """Request model for end-of-day close; defaults to today."""
    date: Optional[date_type] = None


def _resolve_date(value: Optional[str]) -> date_type:
    """Parse an optional ?date= query value, defaulting to today (JST)."""
    return parse_date_string(value) if value else clinic_today()


def format_sse_event(event: str, data: str) -> str:
    """Format one Server-Sent Events message."""
    return f"event: {event}\ndata: {data}\n\n"


@router.get("/visits", response_model=VisitListResponse)
async def list_visits(
    visit_date: Optional[str] = Query(None, alias="date"),
    _: SessionContext = Depends(require_staff),
    db: Session = Depends(get_db)
):
    """List a day's visits in arrival order (today by default)."""
    day = _resolve_date(visit_date)
    return visits_to_response(day, VisitService.list_visits_for_date(db, day))


@router.get("/visits/stream")
async def stream_visits(
    request: Request,
    visit_date: Optional[str] = Query(None, alias="date"),
    _: SessionContext = Depends(require_staff),
):
    """
    Stream a day's queue as Server-Sent Events.

    The subscription is cancelled when the client disconnects.
    """
    day = _resolve_date(visit_date)
    loop = asyncio.get_running_loop()
    events: "asyncio.Queue[Tuple[str, str]]" = asyncio.Queue()

    # Hub callbacks run on the writer's thread
    def on_data(visits: List[Visit]) -> None:
        payload = visits_to_response(day, visits).model_dump_json(by_alias=True)
        loop.call_soon_threadsafe(events.put_nowait, ("data", payload))

    def on_error(error: Exception) -> None:
        payload = json.dumps({"detail": "受付一覧を取得できませんでした"}, ensure_ascii=False)
        loop.call_soon_threadsafe(events.put_nowait, ("error", payload))

    unsubscribe = await asyncio.to_thread(get_visit_queue_hub().subscribe, day, on_data, on_error)
    logger.info(f"Visit stream opened for {day}")

    async def event_stream():
        try:
            while True:
                if await request.is_disconnected():
                    break
                try:
                    event, data = await asyncio.wait_for(events.get(), timeout=STREAM_KEEPALIVE_SECONDS)
                except asyncio.TimeoutError:
                    yield ": keep-alive\n\n"
                    continue
                yield format_sse_event(event, data)
        finally:
            unsubscribe()
            logger.info(f"Visit stream closed for {day}")

    return StreamingResponse(
        event_stream(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )


@router.post("/visits", response_model=VisitResponse, status_code=status.HTTP_201_CREATED)
async def create_proxy_visit(
    request: ProxyVisitRequest,
    _: SessionContext = Depends(require_staff),
    db: Session = Depends(get_db)
):
    """Check a patient in on their behalf. No same-day duplicate check."""
    visit = VisitService.create_proxy_visit(db, request.patient_id, request.name)
    return visit_to_response(visit)


@router.put("/visits/{visit_id}/status", response_model=VisitResponse)
async def update_visit_status(
    visit_id: int,
    request: VisitStatusUpdateRequest,
    _: SessionContext = Depends(require_staff),
    db: Session = Depends(get_db)
):
    """Move a visit to active, paid or cancelled."""
    visit = VisitService.update_status(db, visit_id, request.status)
    return visit_to_response(visit)


@router.post("/visits/close-all", response_model=CloseAllResponse)
async def close_all_visits(
    request: Optional[CloseAllRequest] = None,
    session: SessionContext = Depends(require_staff),
    db: Session = Depends(get_db)
):
    """Cancel every visit of the day that is still active."""
    day = request.date if request and request.date else clinic_today()
    closed_count = VisitService.close_all_active(db, day)
    logger.info(f"Staff {session.email} closed {closed_count} visits for {day}")
    return CloseAllResponse(closed_count=closed_count)


@router.post("/visits/{visit_id}/receipt", response_model=VisitResponse)
async def toggle_visit_receipt(
    visit_id: int,
    _: SessionContext = Depends(require_staff),
    db: Session = Depends(get_db)
):
    """Flip the receipt-computer registration flag of a visit."""
    visit = VisitService.toggle_receipt(db, visit_id)
    return visit_to_response(visit)
