import asyncio
import socket
import uuid
from collections.abc import AsyncGenerator, Iterator
from datetime import UTC, datetime, timedelta
from unittest.mock import patch

import jwt
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from pydantic import SecretStr
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from intake.core.config import settings
from intake.models.base import Base
from intake.providers.verification.mock_adapter import MockDocumentVerifier
from intake.services.completion_notifier import (
    CompletionNotifier,
    InMemoryUserRecordStore,
)
from intake.services.document_verification import DocumentVerificationService
from intake.services.onboarding_controller import OnboardingController
from intake.services.onboarding_session import (
    REQUIRED_DOCUMENTS,
    OnboardingSession,
    OnboardingStep,
)
from intake.services.session_store import OnboardingSessionStore

# Use separate test database
TEST_DATABASE_URL = settings.database_url.replace(
    settings.database_name, f"{settings.database_name}_test"
)

# Test user ID (consistent across tests for predictable auth)
TEST_USER_ID = uuid.UUID("00000000-0000-0000-0000-000000000001")
OTHER_USER_ID = uuid.UUID("00000000-0000-0000-0000-000000000099")

# Security: This is a test-only secret. Production uses a real secret from env.
TEST_AUTH_SECRET = "test-secret-key-that-is-at-least-32-characters-long"  # nosec B105  # gitleaks:allow

TEST_MAX_UPLOAD_BYTES = 1024 * 1024

PDF_BYTES = b"%PDF-1.4\n%\xe2\xe3\xcf\xd3\n1 0 obj\n<< /Type /Catalog >>\nendobj\n"
PNG_BYTES = b"\x89PNG\r\n\x1a\n\x00\x00\x00\rIHDR"
TEXT_BYTES = b"just some plain text, not a document"

VALID_PERSONAL_INFO = {
    "first_name": "Amina",
    "last_name": "Wanjiru",
    "email": "amina@example.com",
    "phone": "+254 712 345 678",
    "address": "12 Moi Avenue, Nairobi",
}

VALID_EDUCATION = {
    "education_level": "bachelors",
    "institution": "University of Nairobi",
    "graduation_year": 2023,
}

# Option values tagged builders, builders, builders, leaders, builders
BUILDER_ANSWERS = ["A", "A", "A", "B", "A"]


def create_test_jwt(
    user_id: uuid.UUID = TEST_USER_ID,
    *,
    secret: str = TEST_AUTH_SECRET,
    expires_delta: timedelta | None = None,
) -> str:
    """Create a signed JWT for test authentication."""
    now = datetime.now(UTC)
    payload = {
        "sub": str(user_id),
        "aud": settings.auth_audience,
        "iss": settings.auth_issuer,
        "exp": now + (expires_delta or timedelta(hours=1)),
        "iat": now,
    }
    return jwt.encode(payload, secret, algorithm="HS256")


# =============================================================================
# Content sniffing
# =============================================================================


def fake_from_buffer(content: bytes, mime: bool = False) -> str:  # noqa: ARG001
    """Stand-in for magic.from_buffer keyed on well-known signatures."""
    if content.startswith(b"%PDF"):
        return "application/pdf"
    if content.startswith(b"\x89PNG"):
        return "image/png"
    if content.startswith(b"\xff\xd8\xff"):
        return "image/jpeg"
    return "text/plain"


@pytest.fixture(autouse=True)
def fake_magic() -> Iterator[None]:
    """Make content detection independent of the host's libmagic database."""
    with patch("intake.core.file_validation.magic.from_buffer", side_effect=fake_from_buffer):
        yield


# =============================================================================
# Onboarding service fixtures
# =============================================================================


@pytest.fixture
def mock_verifier() -> MockDocumentVerifier:
    """Verifier that resolves immediately with confidence 95."""
    return MockDocumentVerifier()


@pytest.fixture
def user_store() -> InMemoryUserRecordStore:
    return InMemoryUserRecordStore()


@pytest.fixture
def verification(mock_verifier: MockDocumentVerifier) -> DocumentVerificationService:
    return DocumentVerificationService(
        mock_verifier, max_upload_bytes=TEST_MAX_UPLOAD_BYTES
    )


@pytest.fixture
def notifier(user_store: InMemoryUserRecordStore) -> CompletionNotifier:
    return CompletionNotifier(user_store)


@pytest.fixture
def controller(
    verification: DocumentVerificationService,
    notifier: CompletionNotifier,
) -> OnboardingController:
    return OnboardingController(verification, notifier)


@pytest.fixture
def session_store(controller: OnboardingController) -> OnboardingSessionStore:
    return OnboardingSessionStore(controller, ttl_minutes=30)


@pytest.fixture
def session() -> OnboardingSession:
    """Fresh session at the first step."""
    return OnboardingSession(user_id=TEST_USER_ID)


# =============================================================================
# Session driving helpers
# =============================================================================


def upload_all_documents(
    controller: OnboardingController, session: OnboardingSession
) -> None:
    """Upload a valid PDF for every required document."""
    for kind in REQUIRED_DOCUMENTS:
        controller.upload_document(session, kind, f"{kind.value}.pdf", PDF_BYTES)


async def settle(session: OnboardingSession) -> None:
    """Wait for every in-flight verification of the session."""
    await DocumentVerificationService.wait_for(session)


async def drive_to_review(
    controller: OnboardingController, session: OnboardingSession
) -> None:
    """Fill every form step, verify documents and stop at Review."""
    controller.update_profile(session, **VALID_PERSONAL_INFO)
    controller.advance(session)
    controller.update_profile(session, **VALID_EDUCATION)
    controller.advance(session)
    upload_all_documents(controller, session)
    await settle(session)
    controller.advance(session)
    controller.select_track(session, "builders")
    controller.advance(session)
    assert session.current_step is OnboardingStep.REVIEW


async def drive_to_results(
    controller: OnboardingController,
    session: OnboardingSession,
    answers: list[str] = BUILDER_ANSWERS,
) -> None:
    """Drive a session through every step up to Results."""
    await drive_to_review(controller, session)
    controller.advance(session)
    for value in answers:
        controller.submit_answer(session, value)
    assert session.current_step is OnboardingStep.RESULTS


# =============================================================================
# Database fixtures
# =============================================================================


def _is_postgres_available() -> bool:
    """Check if PostgreSQL is accepting connections on the configured port."""
    try:
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        sock.settimeout(1)
        result = sock.connect_ex(("127.0.0.1", settings.database_port))
        sock.close()
        return result == 0
    except OSError:
        return False


# Check once at module load time
_POSTGRES_AVAILABLE = _is_postgres_available()


def skip_if_no_postgres() -> None:
    """Skip test if PostgreSQL is not available."""
    if not _POSTGRES_AVAILABLE:
        pytest.skip(
            f"PostgreSQL not available on port {settings.database_port}. "
            "Start a database to run repository tests."
        )


@pytest_asyncio.fixture
async def db_engine():
    """Create test database engine with a fresh schema."""
    skip_if_no_postgres()

    engine = create_async_engine(TEST_DATABASE_URL, echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture
async def db_session_factory(db_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(
    db_session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    async with db_session_factory() as db:
        yield db
        await db.rollback()


# =============================================================================
# API Test Fixtures
# =============================================================================


@pytest_asyncio.fixture
async def client(
    controller: OnboardingController,
    session_store: OnboardingSessionStore,
    user_store: InMemoryUserRecordStore,
) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client in local mode (DEFAULT_USER_ID, no JWT).

    The onboarding services are replaced with the test instances so tests
    can reach into the session store and the mock verifier.
    """
    from intake.api.deps import (
        get_onboarding_controller,
        get_session_store,
        get_user_record_store,
    )
    from intake.core.rate_limiting import limiter
    from intake.main import app

    app.dependency_overrides[get_onboarding_controller] = lambda: controller
    app.dependency_overrides[get_session_store] = lambda: session_store
    app.dependency_overrides[get_user_record_store] = lambda: user_store

    original_auth_enabled = settings.auth_enabled
    original_default_user_id = settings.default_user_id
    settings.auth_enabled = False
    settings.default_user_id = TEST_USER_ID
    limiter.reset()

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    session_store.close_all()
    # Let cancelled verification tasks unwind before the loop closes
    await asyncio.sleep(0)

    settings.auth_enabled = original_auth_enabled
    settings.default_user_id = original_default_user_id
    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def auth_client(
    client: AsyncClient,  # noqa: ARG001 - installs service overrides
) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client in hosted mode with a valid JWT cookie."""
    from intake.main import app

    original_auth_secret = settings.auth_secret
    settings.auth_enabled = True
    settings.auth_secret = SecretStr(TEST_AUTH_SECRET)

    transport = ASGITransport(app=app)
    async with AsyncClient(
        transport=transport,
        base_url="http://test",
        cookies={settings.auth_cookie_name: create_test_jwt(TEST_USER_ID)},
    ) as ac:
        yield ac

    settings.auth_secret = original_auth_secret
