"""Centralized configuration for the DocWebsite backend.

Secret resolution order (per variable):
  1. Environment variable / ``.env`` file  (local dev)
  2. AWS SSM Parameter Store SecureString  (when ``AWS_EXECUTION_ENV`` is set)

The SSM paths follow the convention ``/docwebsite/<VARIABLE_NAME>``.
LLM provider keys are optional: a provider whose key is missing is simply
left out of the fallback chain.
"""

from __future__ import annotations

import logging
import os

from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)

# ── Feature flag: running on AWS? ────────────────────────────────────
_ON_AWS = bool(os.getenv("AWS_EXECUTION_ENV"))


# ── Secret resolution ────────────────────────────────────────────────

def _get_ssm_parameter(name: str) -> str | None:
    """Fetch a SecureString from SSM Parameter Store.

    Returns ``None`` if the parameter does not exist or boto3 is
    unavailable.  Errors are logged but never raised so that local-dev
    fallback still works.
    """
    try:
        import boto3  # noqa: PLC0415 — lazy import to avoid boto3 dep in tests

        ssm = boto3.client("ssm")
        resp = ssm.get_parameter(Name=f"/docwebsite/{name}", WithDecryption=True)
        return resp["Parameter"]["Value"]
    except Exception:
        logger.debug("SSM lookup for %s failed (expected locally)", name)
        return None


def _require_env(name: str) -> str:
    """Return a config value from env-var or SSM, or raise a clear error."""
    value = _optional_env(name)
    if value:
        return value

    raise OSError(
        f"Missing required configuration: {name}. "
        f"Set it in .env (local) or SSM Parameter Store /docwebsite/{name} (AWS)."
    )


def _optional_env(name: str, default: str = "") -> str:
    """Like ``_require_env`` but falls back to *default* instead of raising."""
    value = os.getenv(name)
    if value and not value.startswith("your_"):
        return value

    if _ON_AWS:
        ssm_value = _get_ssm_parameter(name)
        if ssm_value:
            return ssm_value

    return default


def _bool_env(name: str, default: bool) -> bool:
    return os.getenv(name, str(default)).lower() in ("1", "true", "yes")


# ── MongoDB ─────────────────────────────────────────────────────────
MONGODB_URI: str = _require_env("MONGODB_URI")
MONGODB_DATABASE: str = os.getenv("MONGODB_DATABASE", "docwebsite")
MONGODB_SERVER_SELECTION_TIMEOUT_MS: int = int(
    os.getenv("MONGODB_SERVER_SELECTION_TIMEOUT_MS", "5000")
)

# ── LLM providers ───────────────────────────────────────────────────
GOOGLE_AI_API_KEY: str = _optional_env("GOOGLE_AI_API_KEY")
GOOGLE_AI_MODEL: str = os.getenv("GOOGLE_AI_MODEL", "gemini-2.0-flash-001")

DEEPSEEK_API_KEY: str = _optional_env("DEEPSEEK_API_KEY")
DEEPSEEK_BASE_URL: str = os.getenv("DEEPSEEK_BASE_URL", "https://api.deepseek.com/v1")
DEEPSEEK_MODEL: str = os.getenv("DEEPSEEK_MODEL", "deepseek-chat")

AZURE_OPENAI_API_KEY: str = _optional_env("AZURE_OPENAI_API_KEY")
AZURE_OPENAI_API_ENDPOINT: str = os.getenv("AZURE_OPENAI_API_ENDPOINT", "")
AZURE_OPENAI_API_DEPLOYMENT: str = os.getenv("AZURE_OPENAI_API_DEPLOYMENT", "")
AZURE_OPENAI_API_VERSION: str = os.getenv("AZURE_OPENAI_API_VERSION", "2024-02-15-preview")

# Last-resort provider; off unless a key is configured
ANTHROPIC_API_KEY: str = _optional_env("ANTHROPIC_API_KEY")
ANTHROPIC_MODEL: str = os.getenv("ANTHROPIC_MODEL", "claude-haiku-4-5")

# ── Google OAuth / Calendar ─────────────────────────────────────────
GOOGLE_CLIENT_ID: str = _optional_env("GOOGLE_CLIENT_ID")
GOOGLE_CLIENT_SECRET: str = _optional_env("GOOGLE_CLIENT_SECRET")
GOOGLE_CALENDAR_BASE_URL: str = "https://www.googleapis.com"
GOOGLE_OAUTH_TOKEN_URL: str = "https://oauth2.googleapis.com/token"
GOOGLE_OAUTH_AUTH_URL: str = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_USERINFO_URL: str = "https://www.googleapis.com/oauth2/v2/userinfo"

# ── Webhooks ────────────────────────────────────────────────────────
BACKEND_URL: str = os.getenv("BACKEND_URL", "http://localhost:8000").rstrip("/")
WEBHOOK_SECRET: str = _require_env("WEBHOOK_SECRET")
WEBHOOK_MONITOR_ENABLED: bool = _bool_env("WEBHOOK_MONITOR_ENABLED", True)
WEBHOOK_RATE_LIMIT_PER_MINUTE: int = int(os.getenv("WEBHOOK_RATE_LIMIT_PER_MINUTE", "100"))

# ── Booking ─────────────────────────────────────────────────────────
BOOKING_MIN_LEAD_HOURS: float = float(os.getenv("BOOKING_MIN_LEAD_HOURS", "1"))
# Clients must cancel or reschedule at least this long before the visit
BOOKING_CHANGE_NOTICE_HOURS: float = float(os.getenv("BOOKING_CHANGE_NOTICE_HOURS", "24"))
BOOKING_WINDOW_DAYS: int = int(os.getenv("BOOKING_WINDOW_DAYS", "30"))

# ── Server ──────────────────────────────────────────────────────────
SESSION_SECRET: str = _require_env("SESSION_SECRET")
FRONTEND_URL: str = os.getenv("FRONTEND_URL", "http://localhost:3000").rstrip("/")
PUBLIC_SITE_DOMAIN: str = os.getenv("PUBLIC_SITE_DOMAIN", "docwebsite.app")
SERVER_HOST: str = os.getenv("SERVER_HOST", "0.0.0.0")
SERVER_PORT: int = int(os.getenv("SERVER_PORT", "8000"))
CORS_ORIGINS: list[str] = os.getenv(
    "CORS_ORIGINS",
    "http://localhost:3000,http://localhost:5173",
).split(",")
