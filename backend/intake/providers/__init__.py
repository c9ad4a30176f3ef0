"""External collaborator adapters.

Exports the document verification interface and its implementations.
"""

from intake.providers.verification.base import (
    DocumentVerifier,
    UploadedDocument,
    VerificationError,
)
from intake.providers.verification.mock_adapter import MockDocumentVerifier
from intake.providers.verification.simulated_adapter import SimulatedDocumentVerifier

__all__ = [
    "DocumentVerifier",
    "MockDocumentVerifier",
    "SimulatedDocumentVerifier",
    "UploadedDocument",
    "VerificationError",
]
