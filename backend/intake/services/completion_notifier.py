"""Onboarding completion notifier.

On an explicit finish, the notifier freezes the applicant's outcome into a
CompletionRecord, flips the user record's onboarding flag through a
UserRecordStore, then hands the record to any registered listeners
(dashboards, cohort placement, ...).

Idempotence: the record is claimed on the session before the store write
is awaited, so a second or interleaved call for the same session is a
no-op. If the store write fails the claim is released and finish can be
retried.
"""

import dataclasses
import uuid
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from intake.core.errors import NotFoundError
from intake.repositories.user_repository import UserRepository
from intake.services.onboarding_session import (
    ApplicantProfile,
    OnboardingSession,
    VerificationStatus,
)
from intake.services.track_scoring import TrackScore

logger = structlog.get_logger()


@dataclass(frozen=True)
class CompletionRecord:
    """Frozen outcome of a finished onboarding session.

    Attributes:
        user_id: User whose record is flipped.
        session_id: Session that completed.
        profile: Copy of the applicant profile at completion.
        selected_track: Track the applicant chose.
        recommended_track: Track recommended by scoring.
        track_scores: Final scores, in track declaration order.
        document_confidences: Verification confidence per document kind.
        completed_at: Completion timestamp.
    """

    user_id: uuid.UUID
    session_id: uuid.UUID
    profile: ApplicantProfile
    selected_track: str | None
    recommended_track: str | None
    track_scores: tuple[TrackScore, ...]
    document_confidences: dict[str, int] = field(default_factory=dict)
    completed_at: datetime = field(default_factory=lambda: datetime.now(UTC))


CompletionListener = Callable[[CompletionRecord], Awaitable[None]]


# =============================================================================
# User Record Stores
# =============================================================================


class UserRecordStore(ABC):
    """The external user record holding the onboarding flag."""

    @abstractmethod
    async def is_onboarding_complete(self, user_id: uuid.UUID) -> bool:
        """Return whether the user has already finished onboarding."""
        ...

    @abstractmethod
    async def mark_onboarding_complete(self, record: CompletionRecord) -> None:
        """Set the onboarding flag and store the frozen outcome.

        Raises:
            NotFoundError: If the user record does not exist.
        """
        ...


@dataclass
class UserRecord:
    """In-memory user record."""

    user_id: uuid.UUID
    onboarding_completed: bool = False
    completion: CompletionRecord | None = None


class InMemoryUserRecordStore(UserRecordStore):
    """Process-local user records, created on first touch.

    Used in local mode and in tests. Safe for single event loop use only.
    """

    def __init__(self) -> None:
        self._records: dict[uuid.UUID, UserRecord] = {}

    def get(self, user_id: uuid.UUID) -> UserRecord:
        """Return the user's record, creating a blank one if needed."""
        record = self._records.get(user_id)
        if record is None:
            record = UserRecord(user_id=user_id)
            self._records[user_id] = record
        return record

    async def is_onboarding_complete(self, user_id: uuid.UUID) -> bool:
        return self.get(user_id).onboarding_completed

    async def mark_onboarding_complete(self, record: CompletionRecord) -> None:
        user = self.get(record.user_id)
        if user.onboarding_completed:
            return
        user.onboarding_completed = True
        user.completion = record


class SqlUserRecordStore(UserRecordStore):
    """User records in the relational database.

    Args:
        session_factory: Async session factory for DB access.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def is_onboarding_complete(self, user_id: uuid.UUID) -> bool:
        async with self._session_factory() as db:
            user = await UserRepository.get_by_id(db, user_id)
            return user is not None and user.onboarding_completed

    async def mark_onboarding_complete(self, record: CompletionRecord) -> None:
        async with self._session_factory() as db:
            user = await UserRepository.apply_onboarding_completion(db, record)
            if user is None:
                raise NotFoundError("User", str(record.user_id))
            await db.commit()


# =============================================================================
# Notifier
# =============================================================================


def build_completion_record(session: OnboardingSession) -> CompletionRecord:
    """Freeze a session's outcome.

    Args:
        session: Session at the results step.

    Returns:
        CompletionRecord with copies of the profile and final scores.
    """
    return CompletionRecord(
        user_id=session.user_id,
        session_id=session.session_id,
        profile=dataclasses.replace(session.profile),
        selected_track=session.selected_track,
        recommended_track=session.recommended_track,
        track_scores=tuple(session.track_scores),
        document_confidences={
            kind.value: upload.verification_confidence
            for kind, upload in session.uploads.items()
            if upload.status is VerificationStatus.VERIFIED
            and upload.verification_confidence is not None
        },
    )


class CompletionNotifier:
    """Reports completed onboarding sessions exactly once.

    Args:
        store: User record collaborator.
        listeners: Async callables receiving each CompletionRecord.
    """

    def __init__(
        self,
        store: UserRecordStore,
        listeners: list[CompletionListener] | None = None,
    ) -> None:
        self._store = store
        self._listeners: list[CompletionListener] = list(listeners or [])

    def add_listener(self, listener: CompletionListener) -> None:
        """Register a consumer of completion records."""
        self._listeners.append(listener)

    async def complete(self, session: OnboardingSession) -> CompletionRecord | None:
        """Report a session's completion.

        Args:
            session: Session being finished.

        Returns:
            The new CompletionRecord, or None if this session was already
            reported (no side effect in that case).

        Raises:
            NotFoundError: If the user record does not exist.
        """
        if session.completion is not None:
            logger.debug(
                "Completion already reported",
                session_id=str(session.session_id),
            )
            return None

        record = build_completion_record(session)
        session.completion = record
        try:
            await self._store.mark_onboarding_complete(record)
        except Exception:
            session.completion = None
            raise

        logger.info(
            "Onboarding completed",
            session_id=str(session.session_id),
            user_id=str(session.user_id),
            recommended_track=record.recommended_track,
            selected_track=record.selected_track,
        )

        for listener in self._listeners:
            try:
                await listener(record)
            except Exception:  # noqa: BLE001
                logger.exception(
                    "Completion listener failed",
                    session_id=str(session.session_id),
                )

        return record
