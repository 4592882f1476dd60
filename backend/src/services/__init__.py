"""
Services package for shared business logic.

This package contains service classes that encapsulate business logic
shared across the LIFF, clinic and public API endpoints.
"""

from .patient_service import PatientService
from .visit_service import VisitService
from .wait_time_service import PublicStatusService

__all__ = [
    "PatientService",
    "VisitService",
    "PublicStatusService",
]
