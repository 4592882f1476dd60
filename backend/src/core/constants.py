"""Application constants and configuration values."""

from core.config import FRONTEND_URL, PUBLIC_DISPLAY_URL

# Database field lengths
MAX_STRING_LENGTH = 255
MAX_PATIENT_ID_LENGTH = 32
MAX_PATIENT_NAME_LENGTH = 100

# Database connection settings
DB_POOL_RECYCLE_SECONDS = 300  # 5 minutes

# CORS origins for development and production
# Note: production URLs should be added via FRONTEND_URL / PUBLIC_DISPLAY_URL environment variables
_CORS_ORIGINS_RAW = [
    "http://localhost:5173",      # Patient LIFF app (Vite)
    "http://localhost:5174",      # Staff dashboard (Vite)
    "http://localhost:5175",      # Public status display (Vite)
    FRONTEND_URL,
    PUBLIC_DISPLAY_URL,
]

# Filter out None values and empty strings to avoid CORS errors
CORS_ORIGINS = [origin for origin in _CORS_ORIGINS_RAW if origin and origin.strip()]

# Visit status values
VISIT_STATUS_ACTIVE = "active"
VISIT_STATUS_PAID = "paid"
VISIT_STATUS_CANCELLED = "cancelled"
VISIT_STATUSES = (VISIT_STATUS_ACTIVE, VISIT_STATUS_PAID, VISIT_STATUS_CANCELLED)

# Who created a visit / patient record, and who bulk-closed a visit
CREATED_BY_PATIENT = "patient"
CREATED_BY_STAFF = "staff"
CLOSED_BY_STAFF = "staff"

# Wait-time estimation
DEFAULT_SERVICE_MINUTES = 15  # Used until the first visit of the day is paid

# Banded wait display: (max active count, label). Counts above the last bound use WAIT_BAND_OVERFLOW_LABEL.
WAIT_BANDS = [
    (3, "すぐご案内可能です"),
    (8, "5〜10分以内にご案内可能"),
    (12, "10〜15分以内にご案内可能"),
]
WAIT_BAND_OVERFLOW_LABEL = "15分以上"

# The public status table holds a single row under this key
PUBLIC_STATUS_ID = "today"

# Bulk patient import
# Writes are committed in chunks that stay under a 500-operation batch ceiling
IMPORT_BATCH_SIZE = 450

# LINE Login ID token verification endpoint
LINE_ID_TOKEN_VERIFY_URL = "https://api.line.me/oauth2/v2.1/verify"
