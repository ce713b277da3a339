import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./scheduling.db")

# Security - CRITICAL: No default secret key in production
SECRET_KEY = os.getenv("SECRET_KEY")
if not SECRET_KEY:
    import warnings

    warnings.warn(
        "SECRET_KEY not set! Using insecure default - DO NOT USE IN PRODUCTION", RuntimeWarning, stacklevel=2
    )
    SECRET_KEY = "INSECURE-DEV-KEY-CHANGE-IN-PRODUCTION"  # noqa: S105 - Dev fallback only

# Fernet key for OAuth tokens at rest (generate with: python -c "from cryptography.fernet import Fernet; print(Fernet.generate_key().decode())")
# Falls back to a key derived from SECRET_KEY when unset
TOKEN_ENCRYPTION_KEY = os.getenv("TOKEN_ENCRYPTION_KEY")

# Calendly OAuth Configuration
CALENDLY_CLIENT_ID = os.getenv("CALENDLY_CLIENT_ID")
CALENDLY_CLIENT_SECRET = os.getenv("CALENDLY_CLIENT_SECRET")

# Microsoft Graph (Outlook) OAuth Configuration
MICROSOFT_CLIENT_ID = os.getenv("MICROSOFT_CLIENT_ID")
MICROSOFT_CLIENT_SECRET = os.getenv("MICROSOFT_CLIENT_SECRET")
MICROSOFT_TENANT = os.getenv("MICROSOFT_TENANT", "common")

# Google Calendar OAuth Configuration
GOOGLE_CLIENT_ID = os.getenv("GOOGLE_CLIENT_ID")
GOOGLE_CLIENT_SECRET = os.getenv("GOOGLE_CLIENT_SECRET")

# Slot generation and booking defaults (minutes)
SLOT_DURATION_MINUTES = int(os.getenv("SLOT_DURATION_MINUTES", "30"))
DEFAULT_BOOKING_DURATION_MINUTES = int(os.getenv("DEFAULT_BOOKING_DURATION_MINUTES", "30"))

# Longest availability or booking listing range accepted in one request (days)
MAX_QUERY_RANGE_DAYS = int(os.getenv("MAX_QUERY_RANGE_DAYS", "62"))

# Timeout for calls to external calendar providers (seconds)
PROVIDER_HTTP_TIMEOUT = float(os.getenv("PROVIDER_HTTP_TIMEOUT", "15"))
