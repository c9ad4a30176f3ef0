"""Tests for per-step validation rules.

Rules return field errors and never mutate the session.
"""

from datetime import UTC, datetime

import pytest

from intake.services.onboarding_session import (
    ApplicantProfile,
    DocumentKind,
    DocumentUpload,
    OnboardingSession,
    OnboardingStep,
)
from intake.services.onboarding_validation import (
    validate_documents,
    validate_documents_resolved,
    validate_education,
    validate_personal_info,
    validate_review,
    validate_step,
    validate_track_selection,
)
from intake.services.question_bank import AnswerRecord
from tests.conftest import TEST_USER_ID, VALID_EDUCATION, VALID_PERSONAL_INFO


def _session(**profile: object) -> OnboardingSession:
    return OnboardingSession(
        user_id=TEST_USER_ID,
        profile=ApplicantProfile(**profile),  # type: ignore[arg-type]
    )


def _upload(kind: DocumentKind, confidence: int | None = None) -> DocumentUpload:
    upload = DocumentUpload(
        kind=kind, file_ref=f"{kind.value}.pdf", content_type="application/pdf", size_bytes=10
    )
    if confidence is not None:
        upload.resolve(confidence)
    return upload


def _fields(errors: list[dict[str, str]]) -> dict[str, str]:
    return {e["field"]: e["error"] for e in errors}


# =============================================================================
# Personal information
# =============================================================================


class TestPersonalInfo:
    def test_valid(self) -> None:
        assert validate_personal_info(_session(**VALID_PERSONAL_INFO)) == []

    def test_all_required(self) -> None:
        assert _fields(validate_personal_info(_session())) == {
            "first_name": "REQUIRED",
            "last_name": "REQUIRED",
            "email": "REQUIRED",
            "phone": "REQUIRED",
            "address": "REQUIRED",
        }

    def test_whitespace_only_is_missing(self) -> None:
        info = {**VALID_PERSONAL_INFO, "address": "   "}
        assert _fields(validate_personal_info(_session(**info))) == {"address": "REQUIRED"}

    @pytest.mark.parametrize("email", ["amina", "amina@", "amina@example", "a b@example.com"])
    def test_invalid_email(self, email: str) -> None:
        info = {**VALID_PERSONAL_INFO, "email": email}
        assert _fields(validate_personal_info(_session(**info))) == {
            "email": "INVALID_EMAIL"
        }

    @pytest.mark.parametrize("phone", ["call me", "12345", "+1 (555) 000-0000-0000-00"])
    def test_invalid_phone(self, phone: str) -> None:
        info = {**VALID_PERSONAL_INFO, "phone": phone}
        assert _fields(validate_personal_info(_session(**info))) == {
            "phone": "INVALID_PHONE"
        }

    def test_formatted_phone_accepted(self) -> None:
        info = {**VALID_PERSONAL_INFO, "phone": "(020) 555-0199"}
        assert validate_personal_info(_session(**info)) == []

    def test_does_not_mutate(self) -> None:
        session = _session(first_name="  Amina ")
        validate_personal_info(session)
        assert session.profile.first_name == "  Amina "


# =============================================================================
# Education
# =============================================================================


class TestEducation:
    def test_valid(self) -> None:
        assert validate_education(_session(**VALID_EDUCATION)) == []

    def test_all_required(self) -> None:
        assert _fields(validate_education(_session())) == {
            "education_level": "REQUIRED",
            "institution": "REQUIRED",
            "graduation_year": "REQUIRED",
        }

    def test_unknown_level(self) -> None:
        education = {**VALID_EDUCATION, "education_level": "bootcamp"}
        assert _fields(validate_education(_session(**education))) == {
            "education_level": "INVALID_CHOICE"
        }

    @pytest.mark.parametrize("year", [1900, datetime.now(UTC).year + 20])
    def test_year_out_of_range(self, year: int) -> None:
        education = {**VALID_EDUCATION, "graduation_year": year}
        assert _fields(validate_education(_session(**education))) == {
            "graduation_year": "OUT_OF_RANGE"
        }

    def test_expected_graduation_in_near_future(self) -> None:
        education = {**VALID_EDUCATION, "graduation_year": datetime.now(UTC).year + 2}
        assert validate_education(_session(**education)) == []


# =============================================================================
# Documents
# =============================================================================


class TestDocuments:
    def test_all_missing(self) -> None:
        assert _fields(validate_documents(_session())) == {
            "id": "DOCUMENT_REQUIRED",
            "transcript": "DOCUMENT_REQUIRED",
            "cv": "DOCUMENT_REQUIRED",
        }

    def test_pending_is_enough_to_advance(self) -> None:
        session = _session()
        for kind in DocumentKind:
            session.uploads[kind] = _upload(kind)
        assert validate_documents(session) == []

    def test_failed_verification_blocks(self) -> None:
        session = _session()
        for kind in DocumentKind:
            session.uploads[kind] = _upload(kind, confidence=90)
        failed = _upload(DocumentKind.CV)
        failed.fail("Please upload it again.")
        session.uploads[DocumentKind.CV] = failed

        assert _fields(validate_documents(session)) == {"cv": "VERIFICATION_FAILED"}

    def test_resolved_rejects_pending(self) -> None:
        session = _session()
        session.uploads[DocumentKind.ID] = _upload(DocumentKind.ID, confidence=92)
        session.uploads[DocumentKind.TRANSCRIPT] = _upload(DocumentKind.TRANSCRIPT)

        assert _fields(validate_documents_resolved(session)) == {
            "transcript": "VERIFICATION_PENDING",
            "cv": "DOCUMENT_REQUIRED",
        }

    def test_resolved_accepts_all_verified(self) -> None:
        session = _session()
        for kind in DocumentKind:
            session.uploads[kind] = _upload(kind, confidence=88)
        assert validate_documents_resolved(session) == []


# =============================================================================
# Track selection, review and dispatch
# =============================================================================


class TestTrackSelection:
    def test_required(self) -> None:
        assert _fields(validate_track_selection(_session())) == {
            "selected_track": "REQUIRED"
        }

    def test_unknown_track(self) -> None:
        session = _session()
        session.selected_track = "hackers"
        assert _fields(validate_track_selection(session)) == {
            "selected_track": "INVALID_CHOICE"
        }

    def test_valid(self) -> None:
        session = _session()
        session.selected_track = "researchers"
        assert validate_track_selection(session) == []


class TestReview:
    def test_rechecks_every_earlier_step(self) -> None:
        session = _session(**VALID_PERSONAL_INFO)
        fields = _fields(validate_review(session))

        assert "first_name" not in fields
        assert fields["institution"] == "REQUIRED"
        assert fields["id"] == "DOCUMENT_REQUIRED"
        assert fields["selected_track"] == "REQUIRED"


class TestValidateStep:
    def test_dispatches_on_current_step(self) -> None:
        session = _session(**VALID_PERSONAL_INFO)
        assert validate_step(session) == []

        session.current_step = OnboardingStep.EDUCATION
        assert "institution" in _fields(validate_step(session))

    def test_question_step_requires_answer(self) -> None:
        session = _session()
        session.current_step = OnboardingStep.QUESTION_2
        session.answers.append(AnswerRecord(question_index=0, chosen_value="A"))

        assert _fields(validate_step(session)) == {"answer": "ANSWER_REQUIRED"}

        session.answers.append(AnswerRecord(question_index=1, chosen_value="B"))
        assert validate_step(session) == []

    def test_results_has_no_rule(self) -> None:
        session = _session()
        session.current_step = OnboardingStep.RESULTS
        assert validate_step(session) == []
