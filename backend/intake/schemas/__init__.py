"""Pydantic request/response schemas for API endpoints."""

from intake.schemas.onboarding import (
    AnswerRequest,
    DocumentUploadSchema,
    ProfileSchema,
    ProfileUpdateRequest,
    QuestionSchema,
    SessionSnapshot,
    TrackSchema,
    TrackScoreSchema,
    TrackSelectionRequest,
)

__all__ = [
    "AnswerRequest",
    "DocumentUploadSchema",
    "ProfileSchema",
    "ProfileUpdateRequest",
    "QuestionSchema",
    "SessionSnapshot",
    "TrackSchema",
    "TrackScoreSchema",
    "TrackSelectionRequest",
]
