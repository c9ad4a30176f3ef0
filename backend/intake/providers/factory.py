"""Provider factory functions.

Singleton document verifier, configured from settings on first use.
"""

from intake.core.config import settings
from intake.providers.verification.base import DocumentVerifier
from intake.providers.verification.simulated_adapter import SimulatedDocumentVerifier

_document_verifier: DocumentVerifier | None = None


def get_document_verifier() -> DocumentVerifier:
    """Get or create the document verifier singleton.

    Returns:
        DocumentVerifier instance.
    """
    global _document_verifier

    if _document_verifier is None:
        _document_verifier = SimulatedDocumentVerifier(
            delay_seconds=settings.verification_delay_seconds,
        )

    return _document_verifier


def reset_providers() -> None:
    """Reset provider singletons (for testing)."""
    global _document_verifier
    _document_verifier = None
