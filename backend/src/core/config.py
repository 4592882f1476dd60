"""
Application configuration using python-dotenv.

This module loads environment variables from .env file into os.environ
for use throughout the application.
"""

import os
import pathlib
from dotenv import load_dotenv


# Determine if we're running in a test environment
# Don't load .env file during testing to ensure predictable test behavior
is_testing = os.getenv("PYTEST_VERSION") is not None or any("pytest" in str(frame) for frame in __import__('inspect').stack(0))

# Load .env file into os.environ (only outside of testing)
if not is_testing:
    # Try multiple possible locations for .env file
    possible_paths = [
        pathlib.Path(__file__).parent.parent.parent / ".env",  # backend/.env (when run from backend/src)
        pathlib.Path(__file__).parent.parent.parent.parent / ".env",  # .env (when run from src)
        pathlib.Path.cwd() / ".env",  # .env in current directory
        pathlib.Path.cwd().parent / ".env",  # .env in parent directory
    ]

    for env_path in possible_paths:
        if env_path.exists():
            load_dotenv(env_path)
            break


# Configuration constants with defaults
# These match the environment variables defined in .env.example
def get_database_url():
    """Get the database URL from environment."""
    return os.getenv(
        "DATABASE_URL",
        "postgresql://localhost/clinic_reception_dev"
    )

DATABASE_URL = get_database_url()
API_BASE_URL = os.getenv("API_BASE_URL", "http://localhost:8000")
FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:5173")
PUBLIC_DISPLAY_URL = os.getenv("PUBLIC_DISPLAY_URL", "")

# Authentication
JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "dev-secret-key-change-in-production")
JWT_ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("JWT_ACCESS_TOKEN_EXPIRE_MINUTES", "60"))
LIFF_SESSION_EXPIRE_MINUTES = int(os.getenv("LIFF_SESSION_EXPIRE_MINUTES", "10080"))  # 7 days

# LINE Login channel used by the LIFF app. When empty, ID tokens are not verified
# against LINE and the client-supplied LINE user id is trusted (local development only).
LINE_LOGIN_CHANNEL_ID = os.getenv("LINE_LOGIN_CHANNEL_ID", "")

# Registration verification: "name" (patient number + kanji name) or
# "birth_date" (patient number + date of birth)
PATIENT_VERIFICATION_STRATEGY = os.getenv("PATIENT_VERIFICATION_STRATEGY", "name")

# Public display wording: "minutes" (estimated minutes) or "band" (fixed wait bands)
WAIT_DISPLAY_STRATEGY = os.getenv("WAIT_DISPLAY_STRATEGY", "minutes")

# Seconds between scheduled public status recomputes (also follows the day rollover)
PUBLIC_STATUS_REFRESH_SECONDS = int(os.getenv("PUBLIC_STATUS_REFRESH_SECONDS", "60"))
