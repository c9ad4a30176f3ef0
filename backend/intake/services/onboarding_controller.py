"""Onboarding step controller.

Owns every transition of an OnboardingSession. Navigation is strictly
linear and table driven:

    PERSONAL_INFO → EDUCATION → DOCUMENTS → TRACK_SELECTION → REVIEW →
        → QUESTION_1 … QUESTION_5 → RESULTS → finish() → [completed]

Rules:
- advance() moves forward only when the current step's validation rule
  passes. Inside the aptitude block the rule requires an answer, so
  questions are left through submit_answer(), which auto-advances.
- retreat() is allowed back through Review. Once an answer is committed
  the aptitude block cannot be re-entered backwards.
- RESULTS is left only through finish(), which reports completion once.
- There is no jump or skip transition.
"""

import asyncio
from typing import Any

import structlog

from intake.core.errors import InvalidStateError, UploadError, ValidationError
from intake.services.completion_notifier import CompletionNotifier, CompletionRecord
from intake.services.document_verification import DocumentVerificationService
from intake.services.onboarding_session import (
    PROFILE_FIELDS,
    DocumentKind,
    DocumentUpload,
    OnboardingSession,
    OnboardingStep,
    SessionStatus,
)
from intake.services.onboarding_validation import (
    validate_documents_resolved,
    validate_step,
)
from intake.services.question_bank import AnswerRecord, Question, get_question
from intake.services.track_scoring import score_answers
from intake.services.tracks import TRACK_IDS

logger = structlog.get_logger()

# =============================================================================
# Transition Table
# =============================================================================

_ORDER: tuple[OnboardingStep, ...] = tuple(OnboardingStep)

# Forward edges. RESULTS has none: finish() is its only exit.
_NEXT_STEP: dict[OnboardingStep, OnboardingStep] = dict(zip(_ORDER, _ORDER[1:]))

# Backward edges. Leaving QUESTION_1 backwards is allowed because no answer
# is committed yet; from QUESTION_2 on, the previous answer is final.
_PREVIOUS_STEP: dict[OnboardingStep, OnboardingStep] = {
    OnboardingStep.EDUCATION: OnboardingStep.PERSONAL_INFO,
    OnboardingStep.DOCUMENTS: OnboardingStep.EDUCATION,
    OnboardingStep.TRACK_SELECTION: OnboardingStep.DOCUMENTS,
    OnboardingStep.REVIEW: OnboardingStep.TRACK_SELECTION,
    OnboardingStep.QUESTION_1: OnboardingStep.REVIEW,
}

_LAST_EDITABLE_STEP = OnboardingStep.REVIEW
"""Profile and track choice are editable up to and including Review."""


def can_retreat(session: OnboardingSession) -> bool:
    """Whether Back is enabled for the session's current step."""
    return not session.is_completed and session.current_step in _PREVIOUS_STEP


def current_question(session: OnboardingSession) -> Question | None:
    """Return the question bound to the current step, if unanswered.

    Args:
        session: Session to inspect.

    Returns:
        The question shown at an aptitude step, None elsewhere.
    """
    index = session.current_step.question_index
    if index is None or index < len(session.answers):
        return None
    return get_question(index)


class OnboardingController:
    """Applies user actions to onboarding sessions.

    Args:
        verification: Starts and cancels document verification.
        notifier: Reports completion to the user record.
    """

    def __init__(
        self,
        verification: DocumentVerificationService,
        notifier: CompletionNotifier,
    ) -> None:
        self._verification = verification
        self._notifier = notifier

    # -------------------------------------------------------------------------
    # Field input
    # -------------------------------------------------------------------------

    def _ensure_editable(self, session: OnboardingSession) -> None:
        session.ensure_mutable()
        if session.current_step.value > _LAST_EDITABLE_STEP.value:
            raise InvalidStateError(
                "Profile details can no longer be changed once the "
                "aptitude assessment has started."
            )

    def update_profile(
        self, session: OnboardingSession, **fields: Any
    ) -> OnboardingSession:
        """Set one or more profile fields.

        Args:
            session: Session being edited.
            **fields: Profile field names and values.

        Returns:
            The same session, updated.

        Raises:
            InvalidStateError: If the session no longer accepts profile edits.
            ValidationError: If a field name is unknown or a value has the
                wrong type.
        """
        self._ensure_editable(session)

        errors = []
        for name, value in fields.items():
            if name not in PROFILE_FIELDS:
                errors.append({"field": name, "error": "UNKNOWN_FIELD"})
            elif name == "graduation_year":
                if value is not None and (
                    isinstance(value, bool) or not isinstance(value, int)
                ):
                    errors.append({"field": name, "error": "INVALID_TYPE"})
            elif not isinstance(value, str):
                errors.append({"field": name, "error": "INVALID_TYPE"})
        if errors:
            raise ValidationError("Invalid profile update.", details=errors)

        for name, value in fields.items():
            setattr(session.profile, name, value.strip() if isinstance(value, str) else value)
        return session

    def select_track(self, session: OnboardingSession, track_id: str) -> OnboardingSession:
        """Record the applicant's own track choice.

        Raises:
            InvalidStateError: If the session no longer accepts edits.
            ValidationError: If the track is not declared.
        """
        self._ensure_editable(session)
        if track_id not in TRACK_IDS:
            raise ValidationError(
                f"Unknown track '{track_id}'.",
                details=[{"field": "selected_track", "error": "INVALID_CHOICE"}],
            )
        session.selected_track = track_id
        return session

    def upload_document(
        self,
        session: OnboardingSession,
        kind: DocumentKind,
        filename: str,
        content: bytes,
    ) -> DocumentUpload:
        """Accept a document and start verifying it in the background.

        Allowed at any step while the session is in progress, so a document
        whose verification failed can be replaced later.

        Raises:
            InvalidStateError: If the session no longer accepts input.
            UploadError: If the file is rejected before verification.
        """
        return self._verification.start(session, kind, filename, content)

    # -------------------------------------------------------------------------
    # Navigation
    # -------------------------------------------------------------------------

    def advance(self, session: OnboardingSession) -> OnboardingSession:
        """Move to the next step if the current step is valid.

        On failure the session is left untouched.

        Returns:
            The same session, one step further.

        Raises:
            ValidationError: If the current step's rule fails.
            UploadError: If the only failures are documents that failed
                verification.
            InvalidStateError: At RESULTS, or if the session is completed/closed.
        """
        session.ensure_mutable()
        step = session.current_step
        if step not in _NEXT_STEP:
            raise InvalidStateError("The results step can only be left by finishing.")

        errors = validate_step(session)
        if errors:
            logger.info(
                "Advance blocked by validation",
                session_id=str(session.session_id),
                step=step.name,
                fields=[e["field"] for e in errors],
            )
            if all(e["error"] == "VERIFICATION_FAILED" for e in errors):
                raise UploadError(
                    "A document failed verification. Please upload it again.",
                    details=errors,
                )
            raise ValidationError(
                "Please complete the required fields before continuing.",
                details=errors,
            )

        session.current_step = _NEXT_STEP[step]
        return session

    def retreat(self, session: OnboardingSession) -> bool:
        """Move back one step when allowed.

        A no-op at the first step and anywhere past a committed answer.

        Returns:
            True if the step changed.

        Raises:
            InvalidStateError: If the session is completed or closed.
        """
        session.ensure_mutable()
        previous = _PREVIOUS_STEP.get(session.current_step)
        if previous is None:
            return False
        session.current_step = previous
        return True

    # -------------------------------------------------------------------------
    # Aptitude assessment
    # -------------------------------------------------------------------------

    def submit_answer(self, session: OnboardingSession, value: str) -> AnswerRecord:
        """Commit the answer to the current question and auto-advance.

        Args:
            session: Session at an aptitude step.
            value: Chosen option value.

        Returns:
            The committed AnswerRecord.

        Raises:
            InvalidStateError: If no question is active at the current step.
            ValidationError: If value is not one of the question's options.
        """
        session.ensure_mutable()
        question = current_question(session)
        if question is None:
            raise InvalidStateError("No aptitude question is active at this step.")

        if question.get_option(value) is None:
            raise ValidationError(
                "Please choose one of the listed options.",
                details=[{"field": "answer", "error": "INVALID_CHOICE"}],
            )

        record = AnswerRecord(question_index=len(session.answers), chosen_value=value)
        session.answers.append(record)
        session.track_scores = score_answers(session.answers)
        self.advance(session)
        return record

    # -------------------------------------------------------------------------
    # Completion and teardown
    # -------------------------------------------------------------------------

    async def finish(self, session: OnboardingSession) -> CompletionRecord:
        """Complete onboarding from the results step.

        Idempotent: finishing a completed session returns its record again
        without touching the user record. A finish issued while another is
        still writing the user record waits for it and gets the same record
        or the same exception.

        Returns:
            The session's CompletionRecord.

        Raises:
            InvalidStateError: If called before RESULTS or on a closed session.
            ValidationError: If a required document is missing or not verified.
            NotFoundError: If the user record does not exist.
        """
        if session.is_completed and session.completion is not None:
            return session.completion
        if session.finishing is not None:
            return await asyncio.shield(session.finishing)

        session.ensure_mutable()
        if session.current_step is not OnboardingStep.RESULTS:
            raise InvalidStateError(
                f"Cannot finish onboarding from step {session.current_step.name}."
            )

        errors = validate_documents_resolved(session)
        if errors:
            raise ValidationError(
                "All documents must be verified before finishing.",
                details=errors,
            )

        session.finishing = asyncio.create_task(
            self._complete(session), name=f"finish-{session.session_id}"
        )
        return await asyncio.shield(session.finishing)

    async def _complete(self, session: OnboardingSession) -> CompletionRecord:
        try:
            record = await self._notifier.complete(session)
            if record is None:
                # Reported outside this controller; nothing to share
                raise InvalidStateError("Onboarding completion is not available.")

            session.status = SessionStatus.COMPLETED
            self._verification.cancel_all(session)
            return record
        finally:
            session.finishing = None

    def close(self, session: OnboardingSession) -> None:
        """Tear a session down, cancelling in-flight verification.

        Safe to call more than once. After close nothing writes to the session.
        """
        if session.closed:
            return
        self._verification.cancel_all(session)
        session.closed = True
        logger.info(
            "Onboarding session closed",
            session_id=str(session.session_id),
            status=session.status.value,
            step=session.current_step.name,
        )
