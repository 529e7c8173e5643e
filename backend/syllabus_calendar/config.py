import logging
import os

from dotenv import load_dotenv

# ============================================================
# CONFIG
# ============================================================
load_dotenv()

logger = logging.getLogger(__name__)


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning("Ignoring non-integer %s=%r, using %d", name, raw, default)
        return default


LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
CORS_ALLOW_ORIGINS = [
    o.strip() for o in os.getenv("CORS_ALLOW_ORIGINS", "*").split(",") if o.strip()
]

# Google OAuth / Calendar
GOOGLE_CLIENT_ID = os.getenv("GOOGLE_CLIENT_ID", "")
GOOGLE_CLIENT_SECRET = os.getenv("GOOGLE_CLIENT_SECRET", "")
GOOGLE_TOKEN_URI = os.getenv("GOOGLE_TOKEN_URI", "https://oauth2.googleapis.com/token")
GOOGLE_TOKENINFO_URL = os.getenv(
    "GOOGLE_TOKENINFO_URL", "https://www.googleapis.com/oauth2/v1/tokeninfo"
)
GOOGLE_CALENDAR_ID = os.getenv("GOOGLE_CALENDAR_ID", "primary")

# Scheduling
CONFLICT_WINDOW_MONTHS = _int_env("CONFLICT_WINDOW_MONTHS", 6)
STAGGER_MINUTES = _int_env("STAGGER_MINUTES", 30)
DEFAULT_EVENT_MINUTES = _int_env("DEFAULT_EVENT_MINUTES", 60)
DEFAULT_EVENT_TYPE = os.getenv("DEFAULT_EVENT_TYPE", "event")

# Calendar file
ICS_PRODID = os.getenv("ICS_PRODID", "-//Syllabus Calendar//EN")
UID_DOMAIN = os.getenv("UID_DOMAIN", "syllabuscalendar.com")
