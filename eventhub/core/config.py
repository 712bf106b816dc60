"""
Configuration constants and environment variables.
Values are read once at import; the gateway copies them into app.config,
where tests and callers may override them per app.
"""

import os
from typing import List

from dotenv import load_dotenv

# Load .env only once here
load_dotenv()

# --- JWT ---
JWT_SECRET = os.getenv("JWT_SECRET", "")
TOKEN_EXPIRATION_MINUTES = int(os.getenv("TOKEN_EXPIRATION_MINUTES", 1440))  # Default 24 hours
JWT_ISSUER = os.getenv("JWT_ISSUER", "virtual-event-platform")
JWT_AUDIENCE = os.getenv("JWT_AUDIENCE", "virtual-event-users")
JWT_ALGORITHM = "HS256"

# --- STORAGE ---
DATA_DIR = os.getenv("DATA_DIR", os.path.join(os.getcwd(), "data"))
USERS_FILE = os.getenv("USERS_FILE", "users.json")
EVENTS_FILE = os.getenv("EVENTS_FILE", "events.json")

# One of 'fail', 'quarantine', 'ignore'
SNAPSHOT_ON_CORRUPT = os.getenv("SNAPSHOT_ON_CORRUPT", "quarantine").lower()

# --- SERVER ---
GATEWAY_PORT = int(os.getenv("GATEWAY_PORT", 5050))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

_CORS_ALLOWED_ORIGINS_STR = os.getenv(
    "CORS_ALLOWED_ORIGINS",
    "http://localhost:5500,http://localhost:5050,http://localhost:8080",
)
CORS_ALLOWED_ORIGINS: List[str] = [
    origin.strip()
    for origin in _CORS_ALLOWED_ORIGINS_STR.split(",")
    if origin.strip()
]

# --- DOMAIN CONSTANTS ---
USER_ROLES = ["organizer", "attendee"]
EVENT_STATUSES = ["scheduled", "ongoing", "completed", "cancelled"]
EVENT_CATEGORIES = [
    "technology",
    "business",
    "education",
    "entertainment",
    "health",
    "sports",
    "general",
]

# --- VALIDATION ---
PASSWORD_MIN_LENGTH = 8
NAME_MIN_LENGTH = 2
NAME_MAX_LENGTH = 50
TITLE_MIN_LENGTH = 3
TITLE_MAX_LENGTH = 200
DESCRIPTION_MAX_LENGTH = 2000
DURATION_MIN = 15  # minutes
DURATION_MAX = 480  # 8 hours
MAX_PARTICIPANTS_MIN = 1
MAX_PARTICIPANTS_MAX = 10000

# --- PAGINATION ---
DEFAULT_PAGE = 1
DEFAULT_LIMIT = 10
MAX_LIMIT = 100


def defaults() -> dict:
    """Return the app.config keys the gateway expects, with their env values."""
    return {
        "JWT_SECRET": JWT_SECRET,
        "TOKEN_EXPIRATION_MINUTES": TOKEN_EXPIRATION_MINUTES,
        "JWT_ISSUER": JWT_ISSUER,
        "JWT_AUDIENCE": JWT_AUDIENCE,
        "DATA_DIR": DATA_DIR,
        "USERS_FILE": USERS_FILE,
        "EVENTS_FILE": EVENTS_FILE,
        "SNAPSHOT_ON_CORRUPT": SNAPSHOT_ON_CORRUPT,
        "CORS_ALLOWED_ORIGINS": CORS_ALLOWED_ORIGINS,
    }
