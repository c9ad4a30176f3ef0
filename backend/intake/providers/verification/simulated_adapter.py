"""Simulated document verifier.

Default verifier for the service: waits a fixed delay, then reports a
pseudo-random confidence. No document content is inspected.
"""

import asyncio
import random

import structlog

from intake.providers.verification.base import (
    MIN_CONFIDENCE,
    DocumentVerifier,
    UploadedDocument,
)
from intake.services.onboarding_session import DocumentKind

logger = structlog.get_logger()

_SIMULATED_MAX_CONFIDENCE = 99
"""Simulated confidences land in 85-99."""


class SimulatedDocumentVerifier(DocumentVerifier):
    """Verifier that sleeps, then draws a confidence from an RNG.

    Args:
        delay_seconds: Simulated processing time.
        rng: Random source; pass a seeded Random for reproducible output.
    """

    def __init__(
        self,
        *,
        delay_seconds: float = 1.5,
        rng: random.Random | None = None,
    ) -> None:
        self._delay_seconds = delay_seconds
        self._rng = rng or random.Random()  # nosec B311 - not security sensitive

    async def verify(self, kind: DocumentKind, document: UploadedDocument) -> int:
        """Sleep for the configured delay and return a simulated confidence."""
        await asyncio.sleep(self._delay_seconds)
        confidence = self._rng.randint(MIN_CONFIDENCE, _SIMULATED_MAX_CONFIDENCE)
        logger.debug(
            "Simulated document verification",
            kind=kind.value,
            size_bytes=document.size_bytes,
            confidence=confidence,
        )
        return confidence
