import logging
import os
import re

from dotenv import find_dotenv, load_dotenv


ENV_ALIASES = {"dev": "development", "prod": "production", "stg": "staging"}


def _load_env_files() -> None:
    """
    Load ``.env`` first, then either ``ENV_FILE`` or ``.env.<environment>``.
    Variables already present in the process environment always win.
    """
    base_path = find_dotenv(".env", usecwd=True)
    if base_path:
        load_dotenv(base_path, override=False)

    explicit = os.environ.get("ENV_FILE")
    if explicit:
        path = explicit if os.path.isabs(explicit) else find_dotenv(explicit, usecwd=True)
        if path:
            load_dotenv(path, override=False)
        return

    slug = os.environ.get("ENVIRONMENT", "").strip().lower()
    if not slug:
        return
    for name in dict.fromkeys((ENV_ALIASES.get(slug, slug), slug)):
        path = find_dotenv(f".env.{name}", usecwd=True)
        if path:
            load_dotenv(path, override=False)
            break


_load_env_files()

# === Environment Configuration ===
_env_slug = os.environ.get("ENVIRONMENT", "development").strip().lower()
ENVIRONMENT = ENV_ALIASES.get(_env_slug, _env_slug)  # development, staging, production, test

# === Server Configuration ===
SERVER_HOST = os.environ.get("SERVER_HOST", "0.0.0.0")


def _get_int_env(var_name: str, default_value: int) -> int:
    """
    Parse an integer environment variable robustly.
    - Trims whitespace and trailing semicolons.
    - Falls back to the first integer found in the string.
    - Returns the provided default if parsing fails.
    """
    raw = os.environ.get(var_name, str(default_value))
    text = str(raw).strip().rstrip(";")
    try:
        return int(text)
    except ValueError:
        match = re.search(r"[-+]?\d+", text or "")
        if match:
            return int(match.group(0))
    return int(default_value)


SERVER_PORT = _get_int_env("SERVER_PORT", 8060)
DEBUG = os.environ.get("DEBUG", "true").lower() == "true"
LOG_LEVEL = os.environ.get("LOG_LEVEL", "DEBUG" if DEBUG else "INFO").upper()


# === CORS Configuration ===
def _get_cors_origins() -> list[str]:
    """
    Return CORS origins from env or a safe default.
    Example env format:
      CORS_ORIGINS="http://localhost:3060,http://127.0.0.1:3060,https://yourdomain.com"
    """
    raw = os.environ.get("CORS_ORIGINS", "").strip()
    if not raw:
        # Default to permissive wildcard for local/dev if not provided
        return ["*"]
    return [o.strip() for o in raw.split(",") if o.strip()]


CORS_ORIGINS = _get_cors_origins()

# === Database Configuration ===
# Without MONGODB_URI the API falls back to the in-process store.
MONGODB_URI = os.environ.get("MONGODB_URI")
DATABASE_NAME = os.environ.get("DATABASE_NAME", "trip_timeline")

# === JWT Configuration ===
JWT_SECRET = os.environ.get("JWT_SECRET", "your-secret-key-change-this-in-production")
JWT_ALGORITHM = os.environ.get("JWT_ALGORITHM", "HS256")
JWT_EXPIRATION_HOURS = _get_int_env("JWT_EXPIRATION_HOURS", 24)

# === Client Configuration ===
API_BASE_URL = os.environ.get("API_BASE_URL", f"http://localhost:{SERVER_PORT}")
API_TIMEOUT_SECONDS = _get_int_env("API_TIMEOUT_SECONDS", 15)

# === Timeline Limits ===
MAX_SCHEDULES_PER_TRIP = _get_int_env("MAX_SCHEDULES_PER_TRIP", 300)
MAX_PATTERNS_PER_DAY = _get_int_env("MAX_PATTERNS_PER_DAY", 10)
MAX_TRIP_DAYS = _get_int_env("MAX_TRIP_DAYS", 365)
MAX_END_DAY_OFFSET = _get_int_env("MAX_END_DAY_OFFSET", 30)
SHIFT_PREVIEW_LIMIT = _get_int_env("SHIFT_PREVIEW_LIMIT", 3)
STATUS_TRANSITION_MAX_ATTEMPTS = _get_int_env("STATUS_TRANSITION_MAX_ATTEMPTS", 3)

# === Application Settings ===
APP_NAME = "Trip Timeline API"
APP_VERSION = "1.0.0"


def configure_logging(level: str | None = None) -> None:
    """Install a single stream handler on the root logger."""
    logging.basicConfig(
        level=(level or LOG_LEVEL),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
