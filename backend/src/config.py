"""Configuration for the trip proposal service."""

import os
from dotenv import load_dotenv

# Load local env files if present (never commit these).
# - `.env.local` is convenient for local dev.
# - `.env` is the default for docker-compose variable substitution.
load_dotenv(dotenv_path=".env.local", override=False)
load_dotenv(dotenv_path=".env", override=False)

# Environment name (used for warnings/behavior toggles)
ENV = os.getenv("ENV", "development")

# Database URL (async driver recommended: postgresql+asyncpg://...)
DATABASE_URL = os.getenv("DATABASE_URL")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# Apply the ordered schema compatibility patches once when the process boots.
# When disabled, each category table is patched lazily before its first write.
SCHEMA_COMPAT_ON_STARTUP = os.getenv("SCHEMA_COMPAT_ON_STARTUP", "true").lower() == "true"

# A proposal whose average rank is at or below this value is shown as "top choice".
TOP_CHOICE_MAX_AVERAGE_RANK = float(os.getenv("TOP_CHOICE_MAX_AVERAGE_RANK", "1.5"))


def _parse_csv_list(value: str | None) -> list[str] | None:
    if not value:
        return None
    items = [v.strip() for v in value.split(",")]
    items = [v for v in items if v]
    return items or None


def cors_allow_origins() -> list[str]:
    origins = _parse_csv_list(os.getenv("CORS_ALLOW_ORIGINS"))
    if origins:
        return origins
    if ENV == "production":
        return []
    return ["http://localhost:5173", "http://127.0.0.1:5173"]
