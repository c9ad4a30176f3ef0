"""Upload rate limiting using slowapi.

Only document uploads are limited: they are the one endpoint that accepts
file bodies and starts verification work.

Keys:
- Local mode: client IP.
- Hosted mode with a verifiable cookie: "user:{user_id}".
- Hosted mode otherwise: "anon:{ip}", so forged cookies share one bucket.
"""

import contextlib

from fastapi import Request, Response
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from starlette.responses import JSONResponse

from intake.core.auth import decode_session_token
from intake.core.config import settings
from intake.core.errors import UnauthorizedError
from intake.core.responses import ErrorDetail, ErrorResponse

_DEFAULT_RETRY_AFTER_SECONDS = 60


def upload_rate_key(request: Request) -> str:
    """Rate limit key for an upload request."""
    ip = get_remote_address(request)
    if not settings.auth_enabled:
        return ip

    token = request.cookies.get(settings.auth_cookie_name)
    if token:
        with contextlib.suppress(UnauthorizedError):
            return f"user:{decode_session_token(token)}"
    return f"anon:{ip}"


# In-memory storage (single-instance deployment)
limiter = Limiter(key_func=upload_rate_key, enabled=settings.rate_limit_enabled)


def rate_limit_exceeded_handler(_request: Request, exc: RateLimitExceeded) -> Response:
    """Return 429 with the standard error envelope and a Retry-After header.

    The header is the window length of the exceeded limit.
    """
    try:
        retry_after = int(exc.limit.limit.get_expiry())
    except (AttributeError, TypeError, ValueError):
        retry_after = _DEFAULT_RETRY_AFTER_SECONDS

    return JSONResponse(
        status_code=429,
        content=ErrorResponse(
            error=ErrorDetail(
                code="RATE_LIMITED",
                message=f"Too many uploads: {exc.detail}. Try again shortly.",
            )
        ).model_dump(),
        headers={"Retry-After": str(retry_after)},
    )
