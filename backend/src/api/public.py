# pyright: reportMissingTypeStubs=false
"""
Public API endpoints for the waiting-room display.

No authentication: these endpoints only expose the aggregate queue length and
estimated wait, never individual visits.
"""

import logging
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from api.responses import CongestionResponse, PublicStatusResponse, public_status_to_response
from core.database import get_db
from services import PublicStatusService
from services.wait_time_service import wait_label

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/status", response_model=PublicStatusResponse)
async def get_public_status(db: Session = Depends(get_db)):
    """Get the latest published queue length, estimated wait and display label."""
    public_status = PublicStatusService.get(db)
    if public_status is None:
        return public_status_to_response(None, wait_label(0, 0))
    return public_status_to_response(
        public_status,
        wait_label(public_status.active_count, public_status.estimated_wait_minutes),
    )


@router.get("/congestion", response_model=CongestionResponse)
async def get_congestion(db: Session = Depends(get_db)):
    """Get only the number of waiting patients, for lightweight polling displays."""
    public_status = PublicStatusService.get(db)
    return CongestionResponse(count=public_status.active_count if public_status else 0)
