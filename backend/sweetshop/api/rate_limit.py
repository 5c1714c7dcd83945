import logging

from fastapi import Request
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from sweetshop.config import settings

log = logging.getLogger(__name__)

# in-memory counters keyed on the client address; one process only
limiter = Limiter(key_func=get_remote_address, enabled=settings.RATE_LIMIT_ENABLED)


def register_limit() -> str:
    return settings.REGISTER_RATE_LIMIT


def login_limit() -> str:
    return settings.LOGIN_RATE_LIMIT


def refresh_limit() -> str:
    return settings.REFRESH_RATE_LIMIT


def security_limit() -> str:
    return settings.SECURITY_RATE_LIMIT


def rate_limit_exceeded(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    log.warning("Rate limit hit on %s from %s (%s)", request.url.path, get_remote_address(request), exc.detail)
    return JSONResponse(
        status_code=429, content={"detail": {"message": "Too many requests, please try again later"}}
    )
