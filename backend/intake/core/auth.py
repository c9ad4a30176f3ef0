"""Session token verification.

The Cyber Hub frontend issues the session cookie; this service only
verifies it. Shared by the user dependency and the upload rate limiter.
"""

import uuid

import jwt

from intake.core.config import settings
from intake.core.errors import UnauthorizedError


def decode_session_token(token: str) -> uuid.UUID:
    """Verify a session JWT and return its subject.

    Checks the HS256 signature and the exp, aud and iss claims.

    Args:
        token: Raw cookie value.

    Returns:
        The user ID in the sub claim.

    Raises:
        UnauthorizedError: For any invalid token. The message never says why.
    """
    try:
        payload = jwt.decode(
            token,
            settings.auth_secret.get_secret_value(),
            algorithms=["HS256"],
            audience=settings.auth_audience,
            issuer=settings.auth_issuer,
        )
        return uuid.UUID(str(payload["sub"]))
    except (jwt.InvalidTokenError, KeyError, ValueError) as exc:
        raise UnauthorizedError() from exc
