"""
FastAPI dependency providers.

Process-wide singletons (settings, rate limiter, mail dispatcher) are built
lazily on first use and cached. Tests swap any of them out through
``app.dependency_overrides``.
"""

from functools import lru_cache

from fastapi import Depends, Request

from app.config import CONTACT_RATE_LIMIT, Settings, get_settings
from app.errors import RateLimitExceeded
from app.services.contact import ContactService
from app.services.mailer import MailDispatcher
from app.services.rate_limiter import ContactRateLimiter, RateLimitResult
from app.services.templates import TemplateStore


@lru_cache
def get_rate_limiter() -> ContactRateLimiter:
    return ContactRateLimiter(CONTACT_RATE_LIMIT)


@lru_cache
def get_dispatcher() -> MailDispatcher:
    return MailDispatcher(get_settings())


def get_template_store(settings: Settings = Depends(get_settings)) -> TemplateStore:
    return TemplateStore(settings.templates_dir)


def get_contact_service(
    settings: Settings = Depends(get_settings),
    templates: TemplateStore = Depends(get_template_store),
    dispatcher: MailDispatcher = Depends(get_dispatcher),
) -> ContactService:
    return ContactService(settings, templates, dispatcher)


def client_key(request: Request) -> str:
    """Rate-limit key for a request: the peer address as seen by the server."""
    return request.client.host if request.client else "unknown"


def enforce_contact_rate_limit(
    request: Request,
    limiter: ContactRateLimiter = Depends(get_rate_limiter),
) -> RateLimitResult:
    """
    Count the request against the caller's window.

    The RateLimit-* headers are stashed on request.state so every response
    from the route carries them, error responses included.

    Raises:
        RateLimitExceeded: the caller used up its quota for this window.
    """
    result = limiter.hit(client_key(request))
    request.state.rate_limit_headers = result.headers()
    if not result.allowed:
        raise RateLimitExceeded(result.headers())
    return result
