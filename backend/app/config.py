"""
Application configuration.

All environment reads happen here, once, at startup. The resulting Settings
object is immutable and handed to the mail dispatcher, template store and
routers through FastAPI dependencies (see app.dependencies), so nothing else
in the app touches os.environ.

Environment variables
---------------------
PORT                 Listen port for the ``portfolio-api`` entry point (3000).
NODE_ENV / APP_ENV   Environment label, only used for the startup banner.
EMAIL_SERVICE        "gmail" (default) or anything else for custom SMTP.
EMAIL_USER           SMTP username; also the envelope sender.
EMAIL_PASSWORD       SMTP password / app password. Required to send mail.
SMTP_HOST            Custom SMTP host (default smtp.gmail.com).
SMTP_PORT            Custom SMTP port (default 587).
SMTP_SECURE          "true" for implicit TLS on the custom host (default false).
EMAIL_POOL           Reuse SMTP connections across requests (default true).
OWNER_EMAIL          Where notifications go. Defaults to EMAIL_USER.
OWNER_NAME           Display name on auto-replies.
SUBMISSION_TIMEZONE  IANA zone used for SUBMISSION_TIME (America/New_York).
TEMPLATES_DIR        Directory holding the email templates.
CORS_ORIGINS         Extra comma-separated CORS origins.
LOG_LEVEL            Root log level (INFO).
"""

import os
from functools import lru_cache
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel

load_dotenv()

DEFAULT_TEMPLATES_DIR = Path(__file__).resolve().parents[1] / "templates" / "emails"

GMAIL_HOST = "smtp.gmail.com"
GMAIL_PORT = 465

# Rate limiting for POST /api/contact, in limits notation
CONTACT_RATE_LIMIT = "5/hour"

_TRUTHY = {"1", "true", "yes", "on"}


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in _TRUTHY


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}")


class Settings(BaseModel):
    """Immutable process configuration."""

    model_config = {"frozen": True}

    port: int = 3000
    environment: str = "development"
    log_level: str = "INFO"

    email_service: str = "gmail"
    email_user: Optional[str] = None
    email_password: Optional[str] = None
    smtp_host: str = GMAIL_HOST
    smtp_port: int = 587
    smtp_secure: bool = False
    email_pool: bool = True

    # SMTP timeouts (seconds) and pool limits
    connection_timeout: float = 60.0
    greeting_timeout: float = 30.0
    socket_timeout: float = 60.0
    max_connections: int = 5
    max_messages_per_connection: int = 100

    owner_email: Optional[str] = None
    owner_name: str = "Portfolio Owner"
    submission_timezone: str = "America/New_York"
    templates_dir: Path = DEFAULT_TEMPLATES_DIR

    cors_origins: list[str] = []

    @property
    def uses_gmail(self) -> bool:
        return self.email_service.strip().lower() == "gmail"

    @property
    def mail_host(self) -> str:
        return GMAIL_HOST if self.uses_gmail else self.smtp_host

    @property
    def mail_port(self) -> int:
        return GMAIL_PORT if self.uses_gmail else self.smtp_port

    @property
    def mail_use_tls(self) -> bool:
        """True for implicit TLS (SMTPS); False means STARTTLS when offered."""
        return True if self.uses_gmail else self.smtp_secure

    @property
    def contact_address(self) -> str:
        """Address shown to visitors as the direct-contact fallback."""
        return self.owner_email or self.email_user or ""

    @classmethod
    def from_env(cls) -> "Settings":
        """Build Settings from the process environment (and .env)."""
        cors_env = os.getenv("CORS_ORIGINS", "").strip()
        extra_origins = [o.strip() for o in cors_env.split(",") if o.strip()]

        email_user = os.getenv("EMAIL_USER") or None

        return cls(
            port=_env_int("PORT", 3000),
            environment=os.getenv("NODE_ENV") or os.getenv("APP_ENV") or "development",
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            email_service=os.getenv("EMAIL_SERVICE", "gmail"),
            email_user=email_user,
            email_password=os.getenv("EMAIL_PASSWORD") or None,
            smtp_host=os.getenv("SMTP_HOST") or GMAIL_HOST,
            smtp_port=_env_int("SMTP_PORT", 587),
            smtp_secure=_env_bool("SMTP_SECURE", False),
            email_pool=_env_bool("EMAIL_POOL", True),
            owner_email=os.getenv("OWNER_EMAIL") or email_user,
            owner_name=os.getenv("OWNER_NAME") or "Portfolio Owner",
            submission_timezone=os.getenv("SUBMISSION_TIMEZONE") or "America/New_York",
            templates_dir=Path(os.getenv("TEMPLATES_DIR") or DEFAULT_TEMPLATES_DIR),
            cors_origins=extra_origins,
        )


@lru_cache
def get_settings() -> Settings:
    return Settings.from_env()
