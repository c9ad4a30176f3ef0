"""Per-step validation rules.

Each rule inspects the session and returns a list of field errors
({"field": ..., "error": ...}); an empty list means "Next" is enabled.
Rules never mutate the session.
"""

import re
from collections.abc import Callable
from datetime import UTC, datetime

from intake.services.onboarding_session import (
    EDUCATION_LEVELS,
    REQUIRED_DOCUMENTS,
    OnboardingSession,
    OnboardingStep,
    VerificationStatus,
)
from intake.services.tracks import TRACK_IDS

FieldErrors = list[dict[str, str]]
StepRule = Callable[[OnboardingSession], FieldErrors]

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
"""Loose email shape check; deliverability is not our concern."""

_PHONE_RE = re.compile(r"^\+?[\d\s\-().]+$")
_MIN_PHONE_DIGITS = 7
_MAX_PHONE_DIGITS = 15

_MIN_GRADUATION_YEAR = 1950
_MAX_YEARS_AHEAD = 6
"""Expected graduation may lie a few years in the future."""


def _error(field: str, error: str) -> dict[str, str]:
    return {"field": field, "error": error}


def _required(value: str | None) -> bool:
    return bool(value and value.strip())


def validate_personal_info(session: OnboardingSession) -> FieldErrors:
    """Name, email, phone and address are all required."""
    profile = session.profile
    errors: FieldErrors = []

    for name in ("first_name", "last_name"):
        if not _required(getattr(profile, name)):
            errors.append(_error(name, "REQUIRED"))

    if not _required(profile.email):
        errors.append(_error("email", "REQUIRED"))
    elif not _EMAIL_RE.match(profile.email.strip()):
        errors.append(_error("email", "INVALID_EMAIL"))

    if not _required(profile.phone):
        errors.append(_error("phone", "REQUIRED"))
    else:
        digits = sum(ch.isdigit() for ch in profile.phone)
        if (
            not _PHONE_RE.match(profile.phone.strip())
            or not _MIN_PHONE_DIGITS <= digits <= _MAX_PHONE_DIGITS
        ):
            errors.append(_error("phone", "INVALID_PHONE"))

    if not _required(profile.address):
        errors.append(_error("address", "REQUIRED"))

    return errors


def validate_education(session: OnboardingSession) -> FieldErrors:
    """Education level, institution and graduation year are required."""
    profile = session.profile
    errors: FieldErrors = []

    if not _required(profile.education_level):
        errors.append(_error("education_level", "REQUIRED"))
    elif profile.education_level not in EDUCATION_LEVELS:
        errors.append(_error("education_level", "INVALID_CHOICE"))

    if not _required(profile.institution):
        errors.append(_error("institution", "REQUIRED"))

    year = profile.graduation_year
    if year is None:
        errors.append(_error("graduation_year", "REQUIRED"))
    else:
        latest = datetime.now(UTC).year + _MAX_YEARS_AHEAD
        if not _MIN_GRADUATION_YEAR <= year <= latest:
            errors.append(_error("graduation_year", "OUT_OF_RANGE"))

    return errors


def validate_documents(session: OnboardingSession) -> FieldErrors:
    """Every required document is uploaded and has not failed verification.

    Verification may still be pending; finish re-checks with
    validate_documents_resolved.
    """
    errors: FieldErrors = []
    for kind in REQUIRED_DOCUMENTS:
        upload = session.uploads.get(kind)
        if upload is None:
            errors.append(_error(kind.value, "DOCUMENT_REQUIRED"))
        elif upload.status is VerificationStatus.FAILED:
            errors.append(_error(kind.value, "VERIFICATION_FAILED"))
    return errors


def validate_documents_resolved(session: OnboardingSession) -> FieldErrors:
    """Every required document is uploaded and verified (not pending)."""
    errors = validate_documents(session)
    for kind in REQUIRED_DOCUMENTS:
        upload = session.uploads.get(kind)
        if upload is not None and upload.status is VerificationStatus.PENDING:
            errors.append(_error(kind.value, "VERIFICATION_PENDING"))
    return errors


def validate_track_selection(session: OnboardingSession) -> FieldErrors:
    """A declared track must be selected."""
    if session.selected_track is None:
        return [_error("selected_track", "REQUIRED")]
    if session.selected_track not in TRACK_IDS:
        return [_error("selected_track", "INVALID_CHOICE")]
    return []


def validate_review(session: OnboardingSession) -> FieldErrors:
    """Everything entered so far is re-checked before the assessment starts."""
    return (
        validate_personal_info(session)
        + validate_education(session)
        + validate_documents(session)
        + validate_track_selection(session)
    )


def _validate_question(session: OnboardingSession) -> FieldErrors:
    index = session.current_step.question_index
    if index is None or len(session.answers) <= index:
        return [_error("answer", "ANSWER_REQUIRED")]
    return []


STEP_RULES: dict[OnboardingStep, StepRule] = {
    OnboardingStep.PERSONAL_INFO: validate_personal_info,
    OnboardingStep.EDUCATION: validate_education,
    OnboardingStep.DOCUMENTS: validate_documents,
    OnboardingStep.TRACK_SELECTION: validate_track_selection,
    OnboardingStep.REVIEW: validate_review,
    OnboardingStep.QUESTION_1: _validate_question,
    OnboardingStep.QUESTION_2: _validate_question,
    OnboardingStep.QUESTION_3: _validate_question,
    OnboardingStep.QUESTION_4: _validate_question,
    OnboardingStep.QUESTION_5: _validate_question,
}
"""Rule gating "Next" on each step. RESULTS has none: finish is its only exit."""


def validate_step(session: OnboardingSession) -> FieldErrors:
    """Run the current step's rule.

    Args:
        session: Session to check.

    Returns:
        Field errors; empty when the step may be advanced.
    """
    rule = STEP_RULES.get(session.current_step)
    if rule is None:
        return []
    return rule(session)
