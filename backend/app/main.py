"""
Portfolio Backend API
FastAPI application for the portfolio contact form.
"""

import logging
from datetime import datetime, timezone
from typing import List

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.config import Settings, get_settings
from app.dependencies import get_dispatcher
from app.errors import ContactError
from app.models.contact import HealthResponse
from app.routers import contact
from app.security import add_security_headers

settings = get_settings()

# Configure logging to output to console
logging.basicConfig(
    level=getattr(logging, settings.log_level, logging.INFO),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)

logger = logging.getLogger(__name__)

# Origins the portfolio frontend is served from
DEFAULT_CORS_ORIGINS = [
    "http://localhost:8000",
    "http://127.0.0.1:8000",
    "https://abhishekgoel.dev",
    "https://getsoftware.netlify.app",
]

app = FastAPI(
    title="Portfolio API",
    description="Contact form backend for the portfolio site",
    version="1.0.0",
)


def get_cors_origins(settings: Settings) -> List[str]:
    """
    Build the list of allowed CORS origins.

    Always includes DEFAULT_CORS_ORIGINS. Additional origins come from the
    CORS_ORIGINS environment variable as a comma-separated list, e.g.:
        CORS_ORIGINS=https://preview.abhishekgoel.dev,http://localhost:5173

    Browsers send Origin without a trailing slash, so trailing slashes are
    stripped. Duplicates are removed while preserving order.
    """
    seen: set = set()
    origins: List[str] = []
    for origin in DEFAULT_CORS_ORIGINS + list(settings.cors_origins):
        origin = origin.rstrip("/")
        if origin and origin not in seen:
            seen.add(origin)
            origins.append(origin)
    return origins


app.add_middleware(
    CORSMiddleware,
    allow_origins=get_cors_origins(settings),
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
)
add_security_headers(app)

app.include_router(contact.router, prefix="/api", tags=["contact"])


# ---------------------------------------------------------------------------
# Error handlers: every error leaves as {"success": false, "message": ...}
# ---------------------------------------------------------------------------

def _error_response(status_code: int, message: str, headers: dict | None = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "message": message},
        headers=headers or None,
    )


@app.exception_handler(ContactError)
async def contact_error_handler(request: Request, exc: ContactError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"Contact request failed ({type(exc).__name__}): {exc.detail}")
    else:
        logger.info(f"Contact request rejected ({exc.status_code}): {exc.detail}")

    headers = dict(getattr(request.state, "rate_limit_headers", None) or {})
    headers.update(exc.headers)
    return _error_response(exc.status_code, exc.message, headers)


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    if exc.status_code == 404:
        return _error_response(404, "Endpoint not found")
    return _error_response(exc.status_code, str(exc.detail), getattr(exc, "headers", None))


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return _error_response(400, "Invalid request.")


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"Server error on {request.method} {request.url.path}: {exc}")
    return _error_response(500, "Internal server error")


# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------

@app.on_event("startup")
async def log_startup_banner() -> None:
    """
    Log where the API is listening and how mail is configured.

    Example output:

        Portfolio API started
          Server:  http://localhost:3000
          Health:  http://localhost:3000/api/health
          Contact: http://localhost:3000/api/contact
          Environment: development
          Email service: gmail (smtp.gmail.com:465 (ssl))
    """
    base = f"http://localhost:{settings.port}"
    logger.info(
        "Portfolio API started\n"
        "  Server:  %s\n"
        "  Health:  %s/api/health\n"
        "  Contact: %s/api/contact\n"
        "  Environment: %s\n"
        "  Email service: %s (%s)",
        base,
        base,
        base,
        settings.environment,
        settings.email_service,
        get_dispatcher().describe(),
    )
    if not settings.email_password:
        logger.warning(
            "EMAIL_PASSWORD is not set; contact submissions will fail until it is configured"
        )


@app.on_event("shutdown")
async def close_mail_pool() -> None:
    logger.info("Shutting down, closing SMTP connections")
    await get_dispatcher().close()


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------

@app.get("/api/health", response_model=HealthResponse)
async def health():
    # e.g. 2026-10-18T18:05:00.123Z
    now = datetime.now(timezone.utc).isoformat(timespec="milliseconds")
    return HealthResponse(
        success=True,
        message="Portfolio API is running!",
        timestamp=now.replace("+00:00", "Z"),
    )


def run() -> None:
    """Entry point for the ``portfolio-api`` console script."""
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=settings.port)
