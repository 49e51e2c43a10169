"""
Rate limiting using slowapi (client IP keyed, in-process storage).
Protects the public auth endpoints from credential stuffing.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
from fastapi import Request
from fastapi.responses import JSONResponse

from shared.config.settings import settings
from shared.config.logging import get_logger

logger = get_logger(__name__)

limiter = Limiter(key_func=get_remote_address, enabled=settings.rate_limit_enabled)

# Decorator strings for the endpoints that use them
LOGIN_RATE = f"{settings.login_rate_limit}/minute"
REGISTER_RATE = "10/hour"
PUBLIC_WRITE_RATE = "30/minute"


def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """
    Answer rate limit violations with the standard error envelope.
    """
    logger.warning(
        "Rate limit exceeded",
        path=request.url.path,
        client=get_remote_address(request),
        limit=str(exc.detail),
    )
    return JSONResponse(
        status_code=429,
        content={
            "success": False,
            "message": "Demasiadas solicitudes. Intente más tarde.",
            "error": {"limit": str(exc.detail)},
        },
    )
