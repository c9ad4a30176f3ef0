"""User model - the external user record flipped by onboarding completion.

Accounts are created by the auth service; this service only reads the
onboarding flag and writes the frozen onboarding outcome.
"""

import uuid
from datetime import datetime

from sqlalchemy import Boolean, Integer, String, Text, text
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column

from intake.models.base import Base, TimestampMixin

_DEFAULT_UUID = text("gen_random_uuid()")


class User(Base, TimestampMixin):
    """Student account with its onboarding outcome.

    Attributes:
        id: UUID primary key.
        email: Unique email address.
        name: Display name.
        onboarding_completed: Whether the intake wizard was finished.
        onboarding_completed_at: When it was finished.
        phone, address, education_level, institution, graduation_year:
            Profile fields frozen at completion.
        selected_track: Track the applicant picked themselves.
        recommended_track: Track recommended by the aptitude assessment.
        track_scores: Normalized score per track id, frozen at completion.
    """

    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        server_default=_DEFAULT_UUID,
    )
    email: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        nullable=False,
    )
    name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    onboarding_completed: Mapped[bool] = mapped_column(
        Boolean(),
        nullable=False,
        server_default=text("false"),
    )
    onboarding_completed_at: Mapped[datetime | None] = mapped_column(nullable=True)
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    address: Mapped[str | None] = mapped_column(Text(), nullable=True)
    education_level: Mapped[str | None] = mapped_column(String(50), nullable=True)
    institution: Mapped[str | None] = mapped_column(String(255), nullable=True)
    graduation_year: Mapped[int | None] = mapped_column(Integer(), nullable=True)
    selected_track: Mapped[str | None] = mapped_column(String(50), nullable=True)
    recommended_track: Mapped[str | None] = mapped_column(String(50), nullable=True)
    track_scores: Mapped[dict | None] = mapped_column(JSONB(), nullable=True)
