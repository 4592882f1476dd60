# pyright: reportMissingTypeStubs=false
"""
Clinic API modules.

Staff-only endpoints for the reception dashboard, organized by domain.
"""

from fastapi import APIRouter

from api.clinic.visits import router as visits_router
from api.clinic.patients import router as patients_router

router = APIRouter()
router.include_router(visits_router)
router.include_router(patients_router)

__all__ = [
    'router',
    'visits_router',
    'patients_router',
]
