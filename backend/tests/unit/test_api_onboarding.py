"""Tests for the onboarding wizard API.

Drives the wizard over HTTP with the in-memory services from conftest:
the mock verifier resolves every document with confidence 95.
"""

import uuid

import pytest
from httpx import AsyncClient

from intake.core.config import settings
from intake.services.session_store import OnboardingSessionStore
from intake.services.tracks import TRACKS
from tests.conftest import (
    BUILDER_ANSWERS,
    OTHER_USER_ID,
    PDF_BYTES,
    TEST_USER_ID,
    TEXT_BYTES,
    VALID_EDUCATION,
    VALID_PERSONAL_INFO,
    settle,
)

BASE = "/api/v1/onboarding"


async def _create(client: AsyncClient) -> str:
    response = await client.post(f"{BASE}/sessions")
    assert response.status_code == 201
    return response.json()["data"]["session_id"]


async def _upload(client: AsyncClient, session_id: str, kind: str, content: bytes = PDF_BYTES):
    return await client.post(
        f"{BASE}/sessions/{session_id}/documents/{kind}",
        files={"file": (f"{kind}.pdf", content, "application/pdf")},
    )


async def _settle(store: OnboardingSessionStore, session_id: str) -> None:
    session = store.get(uuid.UUID(session_id), TEST_USER_ID)
    assert session is not None
    await settle(session)


async def _drive_to_review(
    client: AsyncClient, store: OnboardingSessionStore, session_id: str
) -> None:
    url = f"{BASE}/sessions/{session_id}"
    await client.patch(f"{url}/profile", json=VALID_PERSONAL_INFO)
    assert (await client.post(f"{url}/advance")).status_code == 200
    await client.patch(f"{url}/profile", json=VALID_EDUCATION)
    assert (await client.post(f"{url}/advance")).status_code == 200
    for kind in ("id", "transcript", "cv"):
        assert (await _upload(client, session_id, kind)).status_code == 200
    await _settle(store, session_id)
    assert (await client.post(f"{url}/advance")).status_code == 200
    await client.put(f"{url}/track", json={"track_id": "builders"})
    response = await client.post(f"{url}/advance")
    assert response.json()["data"]["step_name"] == "review"


# =============================================================================
# Catalogue and health
# =============================================================================


class TestCatalogue:
    async def test_tracks_in_declaration_order(self, client: AsyncClient) -> None:
        response = await client.get(f"{BASE}/tracks")

        assert response.status_code == 200
        ids = [t["track_id"] for t in response.json()["data"]]
        assert ids == ["builders", "leaders", "entrepreneurs", "educators", "researchers"]

    async def test_health_has_security_headers(self, client: AsyncClient) -> None:
        response = await client.get("/health")

        assert response.status_code == 200
        assert response.headers["X-Frame-Options"] == "DENY"
        assert response.headers["X-Content-Type-Options"] == "nosniff"

    async def test_api_responses_not_cached(self, client: AsyncClient) -> None:
        response = await client.get(f"{BASE}/tracks")
        assert response.headers["Cache-Control"] == "no-store, max-age=0"


# =============================================================================
# Full flow
# =============================================================================


class TestWizardFlow:
    async def test_create_session(self, client: AsyncClient) -> None:
        response = await client.post(f"{BASE}/sessions")

        data = response.json()["data"]
        assert response.status_code == 201
        assert data["status"] == "in_progress"
        assert data["current_step"] == 1
        assert data["step_name"] == "personal_info"
        assert data["total_steps"] == 11
        assert data["can_go_back"] is False
        assert data["track_scores"] == [
            {
                "track_id": track.track_id,
                "name": track.name,
                "raw_weight": 0,
                "normalized_score": 0,
                "recommended": False,
            }
            for track in TRACKS
        ]
        assert data["recommended_track"] is None

    async def test_complete_flow(
        self, client: AsyncClient, session_store: OnboardingSessionStore
    ) -> None:
        session_id = await _create(client)
        url = f"{BASE}/sessions/{session_id}"
        await _drive_to_review(client, session_store, session_id)

        response = await client.post(f"{url}/advance")
        assert response.json()["data"]["step_name"] == "question_1"

        question = (await client.get(f"{url}/question")).json()["data"]
        assert question["number"] == 1
        assert question["total"] == 5
        assert all(set(o) == {"value", "text"} for o in question["options"])

        for value in BUILDER_ANSWERS:
            response = await client.post(f"{url}/answers", json={"value": value})
            assert response.status_code == 200

        data = response.json()["data"]
        assert data["step_name"] == "results"
        assert data["answered_questions"] == 5
        scores = {s["track_id"]: s["normalized_score"] for s in data["track_scores"]}
        assert scores["builders"] == 80
        assert scores["leaders"] == 20
        assert sum(scores.values()) == 100
        assert data["recommended_track"]["track_id"] == "builders"
        assert data["recommendation_matches_selection"] is True

        finished = await client.post(f"{url}/finish")
        assert finished.status_code == 200
        assert finished.json()["data"]["status"] == "completed"
        completed_at = finished.json()["data"]["completed_at"]
        assert completed_at is not None

        again = await client.post(f"{url}/finish")
        assert again.status_code == 200
        assert again.json()["data"]["completed_at"] == completed_at

    async def test_new_session_refused_after_completion(
        self, client: AsyncClient, session_store: OnboardingSessionStore
    ) -> None:
        session_id = await _create(client)
        url = f"{BASE}/sessions/{session_id}"
        await _drive_to_review(client, session_store, session_id)
        await client.post(f"{url}/advance")
        for value in BUILDER_ANSWERS:
            await client.post(f"{url}/answers", json={"value": value})
        await client.post(f"{url}/finish")

        response = await client.post(f"{BASE}/sessions")

        assert response.status_code == 422
        assert response.json()["error"]["code"] == "INVALID_STATE_TRANSITION"

    async def test_edit_after_completion_rejected(
        self, client: AsyncClient, session_store: OnboardingSessionStore
    ) -> None:
        session_id = await _create(client)
        url = f"{BASE}/sessions/{session_id}"
        await _drive_to_review(client, session_store, session_id)
        await client.post(f"{url}/advance")
        for value in BUILDER_ANSWERS:
            await client.post(f"{url}/answers", json={"value": value})
        await client.post(f"{url}/finish")

        response = await client.patch(f"{url}/profile", json={"first_name": "Zawadi"})

        assert response.status_code == 422

    async def test_upload_returns_pending_then_verified(
        self, client: AsyncClient, session_store: OnboardingSessionStore
    ) -> None:
        session_id = await _create(client)

        response = await _upload(client, session_id, "cv")
        upload = response.json()["data"]
        assert upload["kind"] == "cv"
        assert upload["status"] == "pending"
        assert upload["content_type"] == "application/pdf"

        await _settle(session_store, session_id)
        snapshot = (await client.get(f"{BASE}/sessions/{session_id}")).json()["data"]
        assert snapshot["uploads"][0]["status"] == "verified"
        assert snapshot["uploads"][0]["verification_confidence"] == 95


# =============================================================================
# Navigation
# =============================================================================


class TestNavigation:
    async def test_advance_blocked_by_missing_fields(self, client: AsyncClient) -> None:
        session_id = await _create(client)

        response = await client.post(f"{BASE}/sessions/{session_id}/advance")

        body = response.json()
        assert response.status_code == 400
        assert body["error"]["code"] == "VALIDATION_ERROR"
        fields = {d["field"] for d in body["error"]["details"]}
        assert fields == {"first_name", "last_name", "email", "phone", "address"}

        snapshot = (await client.get(f"{BASE}/sessions/{session_id}")).json()["data"]
        assert snapshot["current_step"] == 1

    async def test_retreat_at_first_step_is_a_no_op(self, client: AsyncClient) -> None:
        session_id = await _create(client)

        response = await client.post(f"{BASE}/sessions/{session_id}/retreat")

        assert response.status_code == 200
        assert response.json()["data"]["current_step"] == 1

    async def test_retreat_keeps_entered_data(self, client: AsyncClient) -> None:
        session_id = await _create(client)
        url = f"{BASE}/sessions/{session_id}"
        await client.patch(f"{url}/profile", json=VALID_PERSONAL_INFO)
        await client.post(f"{url}/advance")

        response = await client.post(f"{url}/retreat")

        data = response.json()["data"]
        assert data["current_step"] == 1
        assert data["profile"]["full_name"] == "Amina Wanjiru"

    async def test_partial_profile_update(self, client: AsyncClient) -> None:
        session_id = await _create(client)
        url = f"{BASE}/sessions/{session_id}/profile"
        await client.patch(url, json={"first_name": "Amina"})

        response = await client.patch(url, json={"last_name": "Wanjiru"})

        profile = response.json()["data"]["profile"]
        assert profile["first_name"] == "Amina"
        assert profile["last_name"] == "Wanjiru"

    async def test_question_outside_assessment(self, client: AsyncClient) -> None:
        session_id = await _create(client)

        response = await client.get(f"{BASE}/sessions/{session_id}/question")

        assert response.status_code == 422

    async def test_finish_before_results(self, client: AsyncClient) -> None:
        session_id = await _create(client)

        response = await client.post(f"{BASE}/sessions/{session_id}/finish")

        assert response.status_code == 422


# =============================================================================
# Errors
# =============================================================================


class TestErrors:
    async def test_unknown_session(self, client: AsyncClient) -> None:
        response = await client.get(f"{BASE}/sessions/{uuid.uuid4()}")

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "NOT_FOUND"

    async def test_other_users_session_not_found(
        self, client: AsyncClient, session_store: OnboardingSessionStore
    ) -> None:
        session = session_store.create(OTHER_USER_ID)

        response = await client.get(f"{BASE}/sessions/{session.session_id}")

        assert response.status_code == 404

    async def test_unknown_document_kind(self, client: AsyncClient) -> None:
        session_id = await _create(client)

        response = await _upload(client, session_id, "passport")

        assert response.status_code == 404

    async def test_invalid_document_content(self, client: AsyncClient) -> None:
        session_id = await _create(client)

        response = await _upload(client, session_id, "transcript", TEXT_BYTES)

        error = response.json()["error"]
        assert response.status_code == 400
        assert error["code"] == "UPLOAD_ERROR"
        assert error["details"] == [{"field": "file", "error": "INVALID_FILE_CONTENT"}]

    async def test_unknown_profile_field_rejected(self, client: AsyncClient) -> None:
        session_id = await _create(client)

        response = await client.patch(
            f"{BASE}/sessions/{session_id}/profile", json={"nickname": "ami"}
        )

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"

    async def test_unknown_track_rejected(self, client: AsyncClient) -> None:
        session_id = await _create(client)

        response = await client.put(
            f"{BASE}/sessions/{session_id}/track", json={"track_id": "wizards"}
        )

        assert response.status_code == 400

    async def test_abandon_session(self, client: AsyncClient) -> None:
        session_id = await _create(client)

        response = await client.delete(f"{BASE}/sessions/{session_id}")

        assert response.status_code == 204
        assert (await client.get(f"{BASE}/sessions/{session_id}")).status_code == 404


# =============================================================================
# Authentication
# =============================================================================


class TestAuthentication:
    async def test_missing_cookie_is_unauthorized(
        self, client: AsyncClient, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setattr(settings, "auth_enabled", True)

        response = await client.post(f"{BASE}/sessions")

        assert response.status_code == 401
        assert response.json()["error"]["code"] == "UNAUTHORIZED"

    async def test_invalid_cookie_is_unauthorized(
        self, client: AsyncClient, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setattr(settings, "auth_enabled", True)
        client.cookies.set(settings.auth_cookie_name, "not-a-jwt")

        response = await client.get(f"{BASE}/tracks")

        assert response.status_code == 401

    async def test_valid_cookie(self, auth_client: AsyncClient) -> None:
        response = await auth_client.post(f"{BASE}/sessions")

        assert response.status_code == 201
