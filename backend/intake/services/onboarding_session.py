"""Onboarding session state.

An OnboardingSession is the single-pass lifecycle of one applicant moving
through the intake wizard. It is a plain value owned by the step controller:
every operation takes the session and mutates or returns it, so transitions
can be exercised in isolation without any HTTP or storage layer.

Steps:
    PERSONAL_INFO → EDUCATION → DOCUMENTS → TRACK_SELECTION → REVIEW →
        → QUESTION_1 … QUESTION_5 → RESULTS → [completed]

Invariants:
- 1 <= current_step <= TOTAL_STEPS
- len(answers) <= QUESTION_COUNT
- track_scores holds one entry per declared track
- status only moves IN_PROGRESS → COMPLETED
"""

import asyncio
import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import TYPE_CHECKING

from intake.core.errors import InvalidStateError
from intake.services.question_bank import QUESTION_COUNT, AnswerRecord
from intake.services.track_scoring import TrackScore, recommended_track, score_answers

if TYPE_CHECKING:
    from intake.services.completion_notifier import CompletionRecord


class OnboardingStep(Enum):
    """Wizard steps, valued by their 1-based position."""

    PERSONAL_INFO = 1
    EDUCATION = 2
    DOCUMENTS = 3
    TRACK_SELECTION = 4
    REVIEW = 5
    QUESTION_1 = 6
    QUESTION_2 = 7
    QUESTION_3 = 8
    QUESTION_4 = 9
    QUESTION_5 = 10
    RESULTS = 11

    @property
    def question_index(self) -> int | None:
        """0-based question index for aptitude steps, None otherwise."""
        if self in _QUESTION_STEPS:
            return _QUESTION_STEPS.index(self)
        return None

    @property
    def title(self) -> str:
        """Header title shown for this step."""
        if self.question_index is not None:
            return "Aptitude Assessment"
        return _STEP_TITLES[self]


_QUESTION_STEPS: tuple[OnboardingStep, ...] = (
    OnboardingStep.QUESTION_1,
    OnboardingStep.QUESTION_2,
    OnboardingStep.QUESTION_3,
    OnboardingStep.QUESTION_4,
    OnboardingStep.QUESTION_5,
)

_STEP_TITLES: dict[OnboardingStep, str] = {
    OnboardingStep.PERSONAL_INFO: "Personal Information",
    OnboardingStep.EDUCATION: "Educational Background",
    OnboardingStep.DOCUMENTS: "Document Upload",
    OnboardingStep.TRACK_SELECTION: "Track Selection",
    OnboardingStep.REVIEW: "Review & Confirm",
    OnboardingStep.RESULTS: "Your Results",
}

TOTAL_STEPS = len(OnboardingStep)

# Sanity check at import time: one aptitude step per question in the bank
if len(_QUESTION_STEPS) != QUESTION_COUNT:
    raise RuntimeError(
        f"Expected {QUESTION_COUNT} aptitude steps, got {len(_QUESTION_STEPS)}"
    )


def question_step(question_index: int) -> OnboardingStep:
    """Return the aptitude step for a 0-based question index."""
    return _QUESTION_STEPS[question_index]


class SessionStatus(str, Enum):
    """Lifecycle status of a session."""

    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class DocumentKind(str, Enum):
    """Documents collected on the Documents step."""

    ID = "id"
    TRANSCRIPT = "transcript"
    CV = "cv"


REQUIRED_DOCUMENTS: tuple[DocumentKind, ...] = (
    DocumentKind.ID,
    DocumentKind.TRANSCRIPT,
    DocumentKind.CV,
)


class VerificationStatus(str, Enum):
    """Derived verification state of an upload."""

    PENDING = "pending"
    VERIFIED = "verified"
    FAILED = "failed"


EDUCATION_LEVELS: tuple[str, ...] = (
    "high-school",
    "diploma",
    "bachelors",
    "masters",
    "phd",
)


@dataclass
class ApplicantProfile:
    """Applicant data collected on the first two steps.

    Created empty, mutated field by field, frozen into the user record on
    completion.
    """

    first_name: str = ""
    last_name: str = ""
    email: str = ""
    phone: str = ""
    address: str = ""
    education_level: str = ""
    institution: str = ""
    graduation_year: int | None = None

    @property
    def full_name(self) -> str:
        """First and last name joined, ignoring blanks."""
        return " ".join(p for p in (self.first_name.strip(), self.last_name.strip()) if p)


PROFILE_FIELDS: frozenset[str] = frozenset(
    {
        "first_name",
        "last_name",
        "email",
        "phone",
        "address",
        "education_level",
        "institution",
        "graduation_year",
    }
)


@dataclass
class DocumentUpload:
    """An uploaded document and its verification outcome.

    verification_confidence stays None while verification is pending and is
    set exactly once. Re-uploading replaces the whole record, so a new
    upload_id marks every earlier resolution as stale.

    Attributes:
        kind: Which required document this is.
        file_ref: Sanitized original filename.
        content_type: MIME type detected from the content.
        size_bytes: Size of the uploaded content.
        upload_id: Identity of this particular upload.
        uploaded_at: When the file was accepted.
        verification_confidence: 0-100 once verified, None while pending.
        verification_error: Retryable failure message, if verification failed.
    """

    kind: DocumentKind
    file_ref: str
    content_type: str
    size_bytes: int
    upload_id: uuid.UUID = field(default_factory=uuid.uuid4)
    uploaded_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    verification_confidence: int | None = None
    verification_error: str | None = None

    @property
    def status(self) -> VerificationStatus:
        """Derived verification status."""
        if self.verification_error is not None:
            return VerificationStatus.FAILED
        if self.verification_confidence is None:
            return VerificationStatus.PENDING
        return VerificationStatus.VERIFIED

    def resolve(self, confidence: int) -> None:
        """Record the verification confidence.

        Raises:
            RuntimeError: If this upload was already resolved.
            ValueError: If confidence is outside 0-100.
        """
        if self.status is not VerificationStatus.PENDING:
            raise RuntimeError(f"Upload {self.upload_id} is already resolved")
        if not 0 <= confidence <= 100:
            raise ValueError(f"Confidence must be within 0-100, got {confidence}")
        self.verification_confidence = confidence

    def fail(self, message: str) -> None:
        """Record a verification failure.

        Raises:
            RuntimeError: If this upload was already resolved.
        """
        if self.status is not VerificationStatus.PENDING:
            raise RuntimeError(f"Upload {self.upload_id} is already resolved")
        self.verification_error = message


@dataclass
class OnboardingSession:
    """State of one applicant's pass through the wizard.

    Attributes:
        user_id: Owner; the user record flipped on completion.
        session_id: Identity of this wizard instance.
        current_step: Step currently shown.
        profile: Applicant profile.
        selected_track: Track chosen on the track selection step.
        uploads: Latest upload per document kind.
        answers: Committed aptitude answers, in question order.
        track_scores: Scores derived from answers.
        status: in_progress until finish succeeds.
        created_at: When the wizard was opened.
        expires_at: When an idle session may be discarded.
        completion: Record handed to the user record on completion.
        finishing: In-flight finish; concurrent finish calls share its outcome.
        closed: True once torn down; nothing may write to it afterwards.
        verification_tasks: In-flight verification per document kind.
    """

    user_id: uuid.UUID
    session_id: uuid.UUID = field(default_factory=uuid.uuid4)
    current_step: OnboardingStep = OnboardingStep.PERSONAL_INFO
    profile: ApplicantProfile = field(default_factory=ApplicantProfile)
    selected_track: str | None = None
    uploads: dict[DocumentKind, DocumentUpload] = field(default_factory=dict)
    answers: list[AnswerRecord] = field(default_factory=list)
    track_scores: list[TrackScore] = field(default_factory=lambda: score_answers([]))
    status: SessionStatus = SessionStatus.IN_PROGRESS
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    expires_at: datetime | None = None
    completion: "CompletionRecord | None" = None
    finishing: "asyncio.Task[CompletionRecord] | None" = field(default=None, repr=False)
    closed: bool = False
    verification_tasks: dict[DocumentKind, "asyncio.Task[None]"] = field(
        default_factory=dict, repr=False
    )

    @property
    def is_completed(self) -> bool:
        """Whether finish has succeeded."""
        return self.status is SessionStatus.COMPLETED

    @property
    def recommended_track(self) -> str | None:
        """Recommended track id, None before any answer."""
        return recommended_track(self.track_scores)

    @property
    def progress_percent(self) -> int:
        """Position in the wizard as a rounded percentage."""
        return round(100 * self.current_step.value / TOTAL_STEPS)

    def ensure_mutable(self) -> None:
        """Raise unless the session still accepts applicant input.

        Raises:
            InvalidStateError: If the session is completed or torn down.
        """
        if self.is_completed:
            raise InvalidStateError("Onboarding is already complete for this session.")
        if self.closed:
            raise InvalidStateError("This onboarding session has been closed.")
