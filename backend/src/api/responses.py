"""
Shared response models for API endpoints.

This module contains Pydantic response models that are shared across the
LIFF, clinic and public endpoints. Field names are serialized in camelCase
(patientId, arrivedAt, ...), which is what the three front-end apps read.
"""

from datetime import datetime, date as date_type
from typing import List, Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from models import Patient, PublicStatus, Visit
from utils.datetime_utils import ensure_jst, format_clock


class CamelModel(BaseModel):
    """Base model serialized with camelCase keys; accepts either spelling on input."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class PatientResponse(CamelModel):
    """Response model for patient information."""
    patient_id: str
    name: str
    kana: Optional[str] = None
    is_linked: bool
    linked_at: Optional[datetime] = None
    created_by_type: str


class PatientLookupResponse(CamelModel):
    """Response model for a patient number lookup (staff autofill)."""
    found: bool
    patient: Optional[PatientResponse] = None


class PatientVerifyResponse(CamelModel):
    """Response model for identity verification before linking."""
    found: bool  # False: unknown patient number, continue as new registration
    patient_id: str
    name: Optional[str] = None


class PatientImportResponse(CamelModel):
    """Response model for bulk patient import."""
    imported: int
    skipped: int
    skipped_lines: List[int]


class VisitResponse(CamelModel):
    """Response model for one visit in the queue."""
    id: int
    date: date_type
    patient_id: str
    name: str
    status: str
    arrived_at: datetime
    arrived_time: str  # HH:MM (JST), for queue displays
    completed_at: Optional[datetime] = None
    created_by: str
    closed_by: Optional[str] = None
    receipt_status: bool
    is_line_user: bool


class VisitListResponse(CamelModel):
    """Response model for a day's queue."""
    date: date_type
    visits: List[VisitResponse]


class CloseAllResponse(CamelModel):
    """Response model for end-of-day bulk close."""
    closed_count: int


class PublicStatusResponse(CamelModel):
    """Response model for the waiting-room display."""
    active_count: int
    estimated_wait_minutes: int
    wait_label: str
    updated_at: Optional[datetime] = None


class CongestionResponse(CamelModel):
    """Response model for lightweight congestion polling."""
    count: int


def patient_to_response(patient: Patient) -> PatientResponse:
    """Build the API representation of a patient."""
    return PatientResponse(
        patient_id=patient.patient_id,
        name=patient.name,
        kana=patient.kana,
        is_linked=patient.line_user_id is not None,
        linked_at=ensure_jst(patient.linked_at),
        created_by_type=patient.created_by_type,
    )


def visit_to_response(visit: Visit) -> VisitResponse:
    """Build the API representation of a visit."""
    arrived_at = ensure_jst(visit.arrived_at)
    assert arrived_at is not None
    return VisitResponse(
        id=visit.id,
        date=visit.date,
        patient_id=visit.patient_id,
        name=visit.name,
        status=visit.status,
        arrived_at=arrived_at,
        arrived_time=format_clock(arrived_at),
        completed_at=ensure_jst(visit.completed_at),
        created_by=visit.created_by,
        closed_by=visit.closed_by,
        receipt_status=visit.receipt_status,
        is_line_user=visit.line_user_id is not None,
    )


def visits_to_response(visit_date: date_type, visits: List[Visit]) -> VisitListResponse:
    """Build the API representation of a day's queue."""
    return VisitListResponse(date=visit_date, visits=[visit_to_response(v) for v in visits])


def public_status_to_response(public_status: Optional[PublicStatus], wait_label: str) -> PublicStatusResponse:
    """Build the public status payload; an empty status before the first recompute."""
    if public_status is None:
        return PublicStatusResponse(active_count=0, estimated_wait_minutes=0, wait_label=wait_label)
    return PublicStatusResponse(
        active_count=public_status.active_count,
        estimated_wait_minutes=public_status.estimated_wait_minutes,
        wait_label=wait_label,
        updated_at=ensure_jst(public_status.updated_at),
    )
