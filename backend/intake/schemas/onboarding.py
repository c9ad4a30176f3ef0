"""Onboarding wizard request/response schemas.

Request schemas validate the shape of user input; the step rules in
intake.services.onboarding_validation decide whether the content is
complete enough to move on.

SessionSnapshot is the read-only view handed to the results presenter.
"""

import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from intake.services.onboarding_controller import can_retreat, current_question
from intake.services.onboarding_session import (
    TOTAL_STEPS,
    DocumentUpload,
    OnboardingSession,
)
from intake.services.question_bank import QUESTION_COUNT, Question
from intake.services.track_scoring import TrackScore
from intake.services.tracks import Track, get_track

# =============================================================================
# Request Schemas
# =============================================================================


class ProfileUpdateRequest(BaseModel):
    """Request body for PATCH /sessions/{id}/profile.

    Only the fields present in the body are changed.
    """

    model_config = ConfigDict(extra="forbid")

    first_name: str | None = Field(default=None, max_length=100)
    last_name: str | None = Field(default=None, max_length=100)
    email: str | None = Field(default=None, max_length=255)
    phone: str | None = Field(default=None, max_length=30)
    address: str | None = Field(default=None, max_length=500)
    education_level: str | None = Field(default=None, max_length=50)
    institution: str | None = Field(default=None, max_length=255)
    graduation_year: int | None = None


class TrackSelectionRequest(BaseModel):
    """Request body for PUT /sessions/{id}/track."""

    model_config = ConfigDict(extra="forbid")

    track_id: str = Field(..., min_length=1, max_length=50)


class AnswerRequest(BaseModel):
    """Request body for POST /sessions/{id}/answers."""

    model_config = ConfigDict(extra="forbid")

    value: str = Field(..., min_length=1, max_length=5)


# =============================================================================
# Response Schemas
# =============================================================================


class TrackSchema(BaseModel):
    """A learning track."""

    track_id: str
    name: str
    description: str

    @classmethod
    def from_track(cls, track: Track) -> "TrackSchema":
        return cls(track_id=track.track_id, name=track.name, description=track.description)


class TrackScoreSchema(BaseModel):
    """Score of one track, with display name."""

    track_id: str
    name: str
    raw_weight: int
    normalized_score: int
    recommended: bool

    @classmethod
    def from_score(cls, score: TrackScore) -> "TrackScoreSchema":
        track = get_track(score.track_id)
        return cls(
            track_id=score.track_id,
            name=track.name if track else score.track_id,
            raw_weight=score.raw_weight,
            normalized_score=score.normalized_score,
            recommended=score.recommended,
        )


class QuestionOptionSchema(BaseModel):
    """One answer choice. The track tag is not exposed to applicants."""

    value: str
    text: str


class QuestionSchema(BaseModel):
    """The question shown at an aptitude step."""

    question_id: int
    number: int
    total: int
    category: str
    prompt: str
    options: list[QuestionOptionSchema]

    @classmethod
    def from_question(cls, question: Question, total: int) -> "QuestionSchema":
        return cls(
            question_id=question.question_id,
            number=question.question_id,
            total=total,
            category=question.category.value,
            prompt=question.prompt,
            options=[
                QuestionOptionSchema(value=option.value, text=option.text)
                for option in question.options
            ],
        )


class DocumentUploadSchema(BaseModel):
    """An upload and its verification state."""

    kind: str
    upload_id: uuid.UUID
    file_ref: str
    content_type: str
    size_bytes: int
    status: str
    verification_confidence: int | None
    verification_error: str | None
    uploaded_at: datetime

    @classmethod
    def from_upload(cls, upload: DocumentUpload) -> "DocumentUploadSchema":
        return cls(
            kind=upload.kind.value,
            upload_id=upload.upload_id,
            file_ref=upload.file_ref,
            content_type=upload.content_type,
            size_bytes=upload.size_bytes,
            status=upload.status.value,
            verification_confidence=upload.verification_confidence,
            verification_error=upload.verification_error,
            uploaded_at=upload.uploaded_at,
        )


class ProfileSchema(BaseModel):
    """Applicant profile as entered so far."""

    first_name: str
    last_name: str
    full_name: str
    email: str
    phone: str
    address: str
    education_level: str
    institution: str
    graduation_year: int | None


class SessionSnapshot(BaseModel):
    """Read-only view of an onboarding session."""

    session_id: uuid.UUID
    status: str
    current_step: int
    step_name: str
    step_title: str
    total_steps: int
    progress_percent: int
    can_go_back: bool
    profile: ProfileSchema
    selected_track: str | None
    uploads: list[DocumentUploadSchema]
    answered_questions: int
    current_question: QuestionSchema | None
    track_scores: list[TrackScoreSchema]
    recommended_track: TrackSchema | None
    recommendation_matches_selection: bool | None
    completed_at: datetime | None
    expires_at: datetime | None

    @classmethod
    def from_session(cls, session: OnboardingSession) -> "SessionSnapshot":
        """Build a snapshot of a session."""
        profile = session.profile
        question = current_question(session)
        recommended = session.recommended_track
        recommended_track = get_track(recommended) if recommended else None

        return cls(
            session_id=session.session_id,
            status=session.status.value,
            current_step=session.current_step.value,
            step_name=session.current_step.name.lower(),
            step_title=session.current_step.title,
            total_steps=TOTAL_STEPS,
            progress_percent=session.progress_percent,
            can_go_back=can_retreat(session),
            profile=ProfileSchema(
                first_name=profile.first_name,
                last_name=profile.last_name,
                full_name=profile.full_name,
                email=profile.email,
                phone=profile.phone,
                address=profile.address,
                education_level=profile.education_level,
                institution=profile.institution,
                graduation_year=profile.graduation_year,
            ),
            selected_track=session.selected_track,
            uploads=[
                DocumentUploadSchema.from_upload(upload)
                for upload in session.uploads.values()
            ],
            answered_questions=len(session.answers),
            current_question=(
                QuestionSchema.from_question(question, QUESTION_COUNT)
                if question
                else None
            ),
            track_scores=[TrackScoreSchema.from_score(s) for s in session.track_scores],
            recommended_track=(
                TrackSchema.from_track(recommended_track) if recommended_track else None
            ),
            recommendation_matches_selection=(
                recommended == session.selected_track
                if recommended and session.selected_track
                else None
            ),
            completed_at=(
                session.completion.completed_at
                if session.is_completed and session.completion
                else None
            ),
            expires_at=session.expires_at,
        )
