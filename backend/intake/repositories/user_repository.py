"""Repository for the user record.

Provides the two operations onboarding needs: reading the onboarding flag
and writing the frozen onboarding outcome.
"""

import uuid
from typing import TYPE_CHECKING

from sqlalchemy.ext.asyncio import AsyncSession

from intake.models.user import User

if TYPE_CHECKING:
    from intake.services.completion_notifier import CompletionRecord


class UserRepository:
    """Stateless repository for User table operations.

    All methods are static with no instance state. Pass an AsyncSession
    for every call so the caller controls transaction boundaries.
    """

    @staticmethod
    async def get_by_id(db: AsyncSession, user_id: uuid.UUID) -> User | None:
        """Fetch a user by primary key.

        Args:
            db: Async database session.
            user_id: UUID primary key.

        Returns:
            User if found, None otherwise.
        """
        return await db.get(User, user_id)

    @staticmethod
    async def apply_onboarding_completion(
        db: AsyncSession,
        record: "CompletionRecord",
    ) -> User | None:
        """Flip the onboarding flag and store the frozen outcome.

        Does not commit. Re-applying to a user that is already onboarded
        leaves the first outcome untouched.

        Args:
            db: Async database session.
            record: Completion record of the finished session.

        Returns:
            Updated User, or None if the user does not exist.
        """
        user = await db.get(User, record.user_id)
        if user is None:
            return None
        if user.onboarding_completed:
            return user

        profile = record.profile
        user.onboarding_completed = True
        user.onboarding_completed_at = record.completed_at
        user.name = profile.full_name or user.name
        user.phone = profile.phone
        user.address = profile.address
        user.education_level = profile.education_level
        user.institution = profile.institution
        user.graduation_year = profile.graduation_year
        user.selected_track = record.selected_track
        user.recommended_track = record.recommended_track
        user.track_scores = {
            score.track_id: score.normalized_score for score in record.track_scores
        }
        await db.flush()
        return user
