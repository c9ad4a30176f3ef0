"""In-memory store for onboarding sessions.

A session lives for as long as the applicant keeps the wizard open. There
is no persistence across restarts: an abandoned or expired wizard simply
starts over.

Every removal path (discard, expiry, replacement, shutdown) tears the
session down through OnboardingController.close, which cancels any
verification still in flight.

Safe for async/await usage (single-threaded event loop) but not for
multi-threaded access.
"""

import uuid
from datetime import UTC, datetime, timedelta

import structlog

from intake.services.onboarding_controller import OnboardingController
from intake.services.onboarding_session import OnboardingSession

logger = structlog.get_logger()

DEFAULT_SESSION_TTL_MINUTES = 60


class OnboardingSessionStore:
    """Holds the open wizard sessions, at most one in progress per user.

    Args:
        controller: Controller used to tear sessions down.
        ttl_minutes: Idle lifetime of a session.
    """

    def __init__(
        self,
        controller: OnboardingController,
        ttl_minutes: int = DEFAULT_SESSION_TTL_MINUTES,
    ) -> None:
        self._controller = controller
        self._ttl = timedelta(minutes=ttl_minutes)
        self._sessions: dict[uuid.UUID, OnboardingSession] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def create(self, user_id: uuid.UUID) -> OnboardingSession:
        """Open a new wizard for a user.

        Any session the user still has in progress is abandoned first.

        Args:
            user_id: The applicant.

        Returns:
            A fresh session at the first step.
        """
        for existing in list(self._sessions.values()):
            if existing.user_id == user_id and not existing.is_completed:
                logger.info(
                    "Replacing in-progress onboarding session",
                    session_id=str(existing.session_id),
                    user_id=str(user_id),
                )
                self.discard(existing.session_id)

        session = OnboardingSession(user_id=user_id)
        self.touch(session)
        self._sessions[session.session_id] = session
        logger.info(
            "Onboarding session opened",
            session_id=str(session.session_id),
            user_id=str(user_id),
        )
        return session

    def get(self, session_id: uuid.UUID, user_id: uuid.UUID) -> OnboardingSession | None:
        """Get a session if it exists, is live, and belongs to the user.

        Expired sessions are torn down on access.

        Args:
            session_id: Session identifier.
            user_id: The requesting user's ID.

        Returns:
            The session, or None if not found/expired/wrong user.
        """
        session = self._sessions.get(session_id)
        if session is None:
            return None

        if session.user_id != user_id:
            return None

        if session.expires_at is not None and datetime.now(UTC) > session.expires_at:
            self.discard(session_id)
            return None

        return session

    def touch(self, session: OnboardingSession) -> None:
        """Extend a session's idle lifetime."""
        session.expires_at = datetime.now(UTC) + self._ttl

    def discard(self, session_id: uuid.UUID) -> bool:
        """Remove and tear down a session.

        Args:
            session_id: Session identifier.

        Returns:
            True if a session was removed.
        """
        session = self._sessions.pop(session_id, None)
        if session is None:
            return False
        self._controller.close(session)
        return True

    def cleanup_expired(self) -> int:
        """Tear down all expired sessions.

        Returns:
            Number of sessions removed.
        """
        now = datetime.now(UTC)
        expired = [
            session_id
            for session_id, session in self._sessions.items()
            if session.expires_at is not None and now > session.expires_at
        ]
        for session_id in expired:
            self.discard(session_id)
        return len(expired)

    def close_all(self) -> int:
        """Tear down every session (service shutdown).

        Returns:
            Number of sessions removed.
        """
        session_ids = list(self._sessions)
        for session_id in session_ids:
            self.discard(session_id)
        return len(session_ids)
