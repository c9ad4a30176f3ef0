"""Shared dependencies for API endpoints.

Authentication is consumed, not issued: local mode uses DEFAULT_USER_ID,
hosted mode validates the JWT session cookie set by the Cyber Hub frontend.

The onboarding services are process-wide singletons built from settings on
first use. Tests replace them through app.dependency_overrides or the
reset function.
"""

import uuid
from typing import Annotated

from fastapi import Depends, Request

from intake.core.auth import decode_session_token
from intake.core.config import settings
from intake.core.database import get_session_factory
from intake.core.errors import UnauthorizedError
from intake.providers.factory import get_document_verifier
from intake.services.completion_notifier import (
    CompletionNotifier,
    InMemoryUserRecordStore,
    SqlUserRecordStore,
    UserRecordStore,
)
from intake.services.document_verification import DocumentVerificationService
from intake.services.onboarding_controller import OnboardingController
from intake.services.session_store import OnboardingSessionStore

# =============================================================================
# Authentication
# =============================================================================


async def get_current_user_id(request: Request) -> uuid.UUID:
    """Get current user ID from auth context.

    Validation steps (hosted mode):
    1. Read JWT from cookie
    2. Decode + verify signature (HS256)
    3. Verify exp, aud, iss claims
    4. Extract sub as UUID

    Args:
        request: HTTP request (injected by FastAPI).

    Returns:
        UUID of the current user.

    Raises:
        UnauthorizedError: For any auth failure. The message never says why.
    """
    if not settings.auth_enabled:
        if settings.default_user_id is None:
            raise UnauthorizedError()
        return settings.default_user_id

    token = request.cookies.get(settings.auth_cookie_name)
    if not token:
        raise UnauthorizedError()

    return decode_session_token(token)


CurrentUserId = Annotated[uuid.UUID, Depends(get_current_user_id)]

# =============================================================================
# Onboarding services
# =============================================================================

_user_record_store: UserRecordStore | None = None
_controller: OnboardingController | None = None
_session_store: OnboardingSessionStore | None = None


def get_user_record_store() -> UserRecordStore:
    """Get the user record store singleton for the configured backend."""
    global _user_record_store
    if _user_record_store is None:
        if settings.user_record_backend == "sql":
            _user_record_store = SqlUserRecordStore(get_session_factory())
        else:
            _user_record_store = InMemoryUserRecordStore()
    return _user_record_store


def get_onboarding_controller() -> OnboardingController:
    """Get the onboarding controller singleton."""
    global _controller
    if _controller is None:
        _controller = OnboardingController(
            verification=DocumentVerificationService(
                get_document_verifier(),
                max_upload_bytes=settings.upload_max_size_bytes,
            ),
            notifier=CompletionNotifier(get_user_record_store()),
        )
    return _controller


def get_session_store() -> OnboardingSessionStore:
    """Get the onboarding session store singleton."""
    global _session_store
    if _session_store is None:
        _session_store = OnboardingSessionStore(
            get_onboarding_controller(),
            ttl_minutes=settings.onboarding_session_ttl_minutes,
        )
    return _session_store


def reset_onboarding_services() -> None:
    """Tear down open sessions and drop the singletons (for testing)."""
    global _user_record_store, _controller, _session_store
    if _session_store is not None:
        _session_store.close_all()
    _user_record_store = None
    _controller = None
    _session_store = None


Controller = Annotated[OnboardingController, Depends(get_onboarding_controller)]
SessionStore = Annotated[OnboardingSessionStore, Depends(get_session_store)]
UserRecords = Annotated[UserRecordStore, Depends(get_user_record_store)]
