"""Mock document verifier for testing.

MockDocumentVerifier makes verification deterministic: confidences come
from a queue, resolution can be held until the test releases it, and
chosen document kinds can be made to fail.
"""

import asyncio
from typing import Any

from intake.providers.verification.base import (
    DocumentVerifier,
    UploadedDocument,
    VerificationError,
)
from intake.services.onboarding_session import DocumentKind


class MockDocumentVerifier(DocumentVerifier):
    """Deterministic verifier test double.

    Each call takes the next queued confidence at call time (falling back to
    default_confidence), then waits for the release gate before returning.

    Attributes:
        calls: Record of all verify invocations for test assertions.
    """

    def __init__(
        self,
        confidences: list[int] | None = None,
        *,
        default_confidence: int = 95,
        hold: bool = False,
        fail_kinds: set[DocumentKind] | None = None,
    ) -> None:
        """Initialize mock verifier.

        Args:
            confidences: Confidences to hand out in call order.
            default_confidence: Confidence once the queue is empty.
            hold: If True, calls block until release() is called.
            fail_kinds: Document kinds whose verification raises.
        """
        self.calls: list[dict[str, Any]] = []
        self._confidences = list(confidences or [])
        self._default_confidence = default_confidence
        self._fail_kinds = set(fail_kinds or ())
        self._gate = asyncio.Event()
        if not hold:
            self._gate.set()

    async def verify(self, kind: DocumentKind, document: UploadedDocument) -> int:
        """Return the next queued confidence once the gate is open."""
        confidence = (
            self._confidences.pop(0) if self._confidences else self._default_confidence
        )
        self.calls.append(
            {
                "method": "verify",
                "kind": kind,
                "filename": document.filename,
                "confidence": confidence,
            }
        )
        await self._gate.wait()
        if kind in self._fail_kinds:
            raise VerificationError(f"Mock verification failed for {kind.value}")
        return confidence

    def release(self) -> None:
        """Let every held and future call resolve."""
        self._gate.set()

    def fail(self, kind: DocumentKind) -> None:
        """Make future resolutions for a kind fail."""
        self._fail_kinds.add(kind)

    def recover(self, kind: DocumentKind) -> None:
        """Stop failing resolutions for a kind."""
        self._fail_kinds.discard(kind)
