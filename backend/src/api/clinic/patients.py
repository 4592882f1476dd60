# pyright: reportMissingTypeStubs=false
"""
Patient Management API endpoints.
"""

import logging

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile, status
from pydantic import field_validator
from sqlalchemy.orm import Session

from api.responses import (
    CamelModel, PatientImportResponse, PatientLookupResponse, PatientResponse,
    patient_to_response,
)
from auth.dependencies import SessionContext, require_staff
from core.database import get_db
from services import PatientService
from utils.patient_validators import validate_patient_name

logger = logging.getLogger(__name__)

router = APIRouter()


class PatientNameUpdateRequest(CamelModel):
    """Request model for correcting a patient's name."""
    name: str

    @field_validator('name')
    @classmethod
    def validate_name(cls, v: str) -> str:
        return validate_patient_name(v)


class PatientImportRequest(CamelModel):
    """Request model for bulk import sent as text."""
    csv_text: str


def _decode_import_file(content: bytes) -> str:
    """Decode an uploaded import file (UTF-8 with or without BOM, or Shift_JIS from Excel)."""
    for encoding in ("utf-8-sig", "cp932"):
        try:
            return content.decode(encoding)
        except UnicodeDecodeError:
            continue
    raise HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail="ファイルの文字コードを判別できません（UTF-8 または Shift_JIS）"
    )


@router.get("/patients/{patient_id}", response_model=PatientLookupResponse)
async def lookup_patient(
    patient_id: str,
    _: SessionContext = Depends(require_staff),
    db: Session = Depends(get_db)
):
    """Look up a patient number, e.g. to autofill the name on proxy check-in."""
    patient = PatientService.get_by_patient_id(db, patient_id)
    if not patient:
        return PatientLookupResponse(found=False)
    return PatientLookupResponse(found=True, patient=patient_to_response(patient))


@router.put("/patients/{patient_id}/name", response_model=PatientResponse)
async def update_patient_name(
    patient_id: str,
    request: PatientNameUpdateRequest,
    session: SessionContext = Depends(require_staff),
    db: Session = Depends(get_db)
):
    """
    Correct a patient's name.

    The new name is also applied to the patient's visits that are still
    active. Unknown patient numbers are registered.
    """
    patient = PatientService.update_name(db, patient_id, request.name)
    logger.info(f"Staff {session.email} corrected name of patient {patient.patient_id}")
    return patient_to_response(patient)


@router.post("/patients/import", response_model=PatientImportResponse)
async def import_patients(
    request: PatientImportRequest,
    _: SessionContext = Depends(require_staff),
    db: Session = Depends(get_db)
):
    """Register or update patients from pasted ``patientId, name`` lines."""
    result = PatientService.import_patients(db, request.csv_text)
    return PatientImportResponse(
        imported=result.imported,
        skipped=result.skipped,
        skipped_lines=result.skipped_lines,
    )


@router.post("/patients/import/file", response_model=PatientImportResponse)
async def import_patients_file(
    file: UploadFile = File(...),
    _: SessionContext = Depends(require_staff),
    db: Session = Depends(get_db)
):
    """Register or update patients from an uploaded CSV file."""
    content = file.file.read()
    logger.info(f"Importing patients from {file.filename or 'upload'} ({len(content)} bytes)")
    result = PatientService.import_patients(db, _decode_import_file(content))
    return PatientImportResponse(
        imported=result.imported,
        skipped=result.skipped,
        skipped_lines=result.skipped_lines,
    )
