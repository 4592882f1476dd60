# Package initialization
# Import all models so they are registered with Base.metadata
from .patient import Patient
from .visit import Visit
from .public_status import PublicStatus
from .staff_user import StaffUser

__all__ = [
    "Patient",
    "Visit",
    "PublicStatus",
    "StaffUser",
]
