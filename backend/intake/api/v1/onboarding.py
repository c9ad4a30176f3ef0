"""Onboarding wizard API router.

Endpoints:
- GET    /tracks: track catalogue.
- POST   /sessions: open a wizard.
- GET    /sessions/{session_id}: session snapshot.
- PATCH  /sessions/{session_id}/profile: partial profile update.
- PUT    /sessions/{session_id}/track: choose a track.
- POST   /sessions/{session_id}/advance: next step.
- POST   /sessions/{session_id}/retreat: previous step.
- POST   /sessions/{session_id}/documents/{kind}: upload a document.
- GET    /sessions/{session_id}/question: current aptitude question.
- POST   /sessions/{session_id}/answers: answer it.
- POST   /sessions/{session_id}/finish: complete onboarding.
- DELETE /sessions/{session_id}: abandon the wizard.

Every session endpoint returns the updated SessionSnapshot and extends the
session's idle lifetime.
"""

import uuid
from typing import Annotated

import structlog
from fastapi import APIRouter, File, Request, Response, UploadFile, status

from intake.api.deps import Controller, CurrentUserId, SessionStore, UserRecords
from intake.core.config import settings
from intake.core.errors import InvalidStateError, NotFoundError
from intake.core.file_validation import read_file_with_size_limit
from intake.core.rate_limiting import limiter
from intake.core.responses import DataResponse
from intake.schemas import (
    AnswerRequest,
    DocumentUploadSchema,
    ProfileUpdateRequest,
    QuestionSchema,
    SessionSnapshot,
    TrackSchema,
    TrackSelectionRequest,
)
from intake.services.onboarding_controller import current_question
from intake.services.onboarding_session import DocumentKind, OnboardingSession
from intake.services.question_bank import QUESTION_COUNT
from intake.services.session_store import OnboardingSessionStore
from intake.services.tracks import TRACKS

logger = structlog.get_logger()

router = APIRouter()


def _load_session(
    store: OnboardingSessionStore,
    session_id: uuid.UUID,
    user_id: uuid.UUID,
) -> OnboardingSession:
    """Fetch the caller's live session and extend its lifetime.

    Raises:
        NotFoundError: If the session is unknown, expired, or not the caller's.
    """
    session = store.get(session_id, user_id)
    if session is None:
        raise NotFoundError("Onboarding session", str(session_id))
    store.touch(session)
    return session


def _snapshot(session: OnboardingSession) -> DataResponse[SessionSnapshot]:
    return DataResponse(data=SessionSnapshot.from_session(session))


# =============================================================================
# Catalogue
# =============================================================================


@router.get("/tracks")
async def list_tracks(user_id: CurrentUserId) -> DataResponse[list[TrackSchema]]:  # noqa: ARG001
    """List the learning tracks in declaration order."""
    return DataResponse(data=[TrackSchema.from_track(track) for track in TRACKS])


# =============================================================================
# Session lifecycle
# =============================================================================


@router.post("/sessions", status_code=status.HTTP_201_CREATED)
async def create_session(
    user_id: CurrentUserId,
    store: SessionStore,
    user_records: UserRecords,
) -> DataResponse[SessionSnapshot]:
    """Open an onboarding wizard at the first step.

    An in-progress wizard the user already has is abandoned.

    Raises:
        InvalidStateError: If the user has already completed onboarding.
    """
    if await user_records.is_onboarding_complete(user_id):
        raise InvalidStateError("Onboarding has already been completed.")
    return _snapshot(store.create(user_id))


@router.get("/sessions/{session_id}")
async def get_session(
    session_id: uuid.UUID,
    user_id: CurrentUserId,
    store: SessionStore,
) -> DataResponse[SessionSnapshot]:
    """Get the current state of a wizard."""
    return _snapshot(_load_session(store, session_id, user_id))


@router.delete("/sessions/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
async def abandon_session(
    session_id: uuid.UUID,
    user_id: CurrentUserId,
    store: SessionStore,
) -> Response:
    """Abandon a wizard. Pending verifications are cancelled."""
    session = _load_session(store, session_id, user_id)
    store.discard(session.session_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# =============================================================================
# Field input
# =============================================================================


@router.patch("/sessions/{session_id}/profile")
async def update_profile(
    session_id: uuid.UUID,
    request: ProfileUpdateRequest,
    user_id: CurrentUserId,
    store: SessionStore,
    controller: Controller,
) -> DataResponse[SessionSnapshot]:
    """Update the fields present in the body. Completeness is checked on advance."""
    session = _load_session(store, session_id, user_id)
    controller.update_profile(session, **request.model_dump(exclude_unset=True))
    return _snapshot(session)


@router.put("/sessions/{session_id}/track")
async def select_track(
    session_id: uuid.UUID,
    request: TrackSelectionRequest,
    user_id: CurrentUserId,
    store: SessionStore,
    controller: Controller,
) -> DataResponse[SessionSnapshot]:
    """Record the applicant's own track choice."""
    session = _load_session(store, session_id, user_id)
    controller.select_track(session, request.track_id)
    return _snapshot(session)


@router.post("/sessions/{session_id}/documents/{kind}")
@limiter.limit(settings.rate_limit_uploads)
async def upload_document(
    request: Request,  # noqa: ARG001
    session_id: uuid.UUID,
    kind: str,
    file: Annotated[UploadFile, File(...)],
    user_id: CurrentUserId,
    store: SessionStore,
    controller: Controller,
) -> DataResponse[DocumentUploadSchema]:
    """Upload one of the required documents.

    The file is checked (size, magic bytes) before verification starts.
    Verification then runs in the background; poll the session snapshot
    for the outcome.

    Args:
        request: HTTP request (required by rate limiter).
        session_id: Wizard session.
        kind: "id", "transcript" or "cv".
        file: Uploaded file.
        user_id: Current user (injected).
        store: Session store (injected).
        controller: Onboarding controller (injected).

    Returns:
        DataResponse with the new upload, pending verification.

    Raises:
        NotFoundError: If the session or document kind is unknown.
        UploadError: If the file is empty, too large, or of the wrong type.
    """
    try:
        document_kind = DocumentKind(kind)
    except ValueError:
        raise NotFoundError("Document kind", kind) from None

    session = _load_session(store, session_id, user_id)
    content = await read_file_with_size_limit(file, settings.upload_max_size_bytes)
    upload = controller.upload_document(
        session, document_kind, file.filename or "upload", content
    )
    return DataResponse(data=DocumentUploadSchema.from_upload(upload))


# =============================================================================
# Navigation
# =============================================================================


@router.post("/sessions/{session_id}/advance")
async def advance(
    session_id: uuid.UUID,
    user_id: CurrentUserId,
    store: SessionStore,
    controller: Controller,
) -> DataResponse[SessionSnapshot]:
    """Move to the next step.

    Raises:
        ValidationError: With one detail per failing field; the step is unchanged.
        InvalidStateError: At the results step or on a completed session.
    """
    session = _load_session(store, session_id, user_id)
    controller.advance(session)
    return _snapshot(session)


@router.post("/sessions/{session_id}/retreat")
async def retreat(
    session_id: uuid.UUID,
    user_id: CurrentUserId,
    store: SessionStore,
    controller: Controller,
) -> DataResponse[SessionSnapshot]:
    """Move back one step. A no-op where Back is disabled."""
    session = _load_session(store, session_id, user_id)
    controller.retreat(session)
    return _snapshot(session)


# =============================================================================
# Aptitude assessment
# =============================================================================


@router.get("/sessions/{session_id}/question")
async def get_current_question(
    session_id: uuid.UUID,
    user_id: CurrentUserId,
    store: SessionStore,
) -> DataResponse[QuestionSchema]:
    """Get the question shown at the current aptitude step.

    Raises:
        InvalidStateError: If the current step is not an aptitude question.
    """
    session = _load_session(store, session_id, user_id)
    question = current_question(session)
    if question is None:
        raise InvalidStateError("No aptitude question is active at this step.")
    return DataResponse(data=QuestionSchema.from_question(question, QUESTION_COUNT))


@router.post("/sessions/{session_id}/answers")
async def submit_answer(
    session_id: uuid.UUID,
    request: AnswerRequest,
    user_id: CurrentUserId,
    store: SessionStore,
    controller: Controller,
) -> DataResponse[SessionSnapshot]:
    """Answer the current question and move to the next step."""
    session = _load_session(store, session_id, user_id)
    controller.submit_answer(session, request.value)
    return _snapshot(session)


@router.post("/sessions/{session_id}/finish")
async def finish(
    session_id: uuid.UUID,
    user_id: CurrentUserId,
    store: SessionStore,
    controller: Controller,
) -> DataResponse[SessionSnapshot]:
    """Complete onboarding. Finishing again returns the same outcome.

    Raises:
        InvalidStateError: If the session is not at the results step.
        ValidationError: If a required document is not verified yet.
    """
    session = _load_session(store, session_id, user_id)
    await controller.finish(session)
    return _snapshot(session)
