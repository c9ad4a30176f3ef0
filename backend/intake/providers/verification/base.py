"""Abstract base class and types for document verification providers.

The verifier is a stand-in for an external document-checking service.
Only its contract matters: given an accepted upload it eventually returns
a confidence score, or raises VerificationError.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from intake.services.onboarding_session import DocumentKind

MIN_CONFIDENCE = 85
MAX_CONFIDENCE = 100
"""Successful verification always lands within this range (inclusive)."""


@dataclass(frozen=True)
class UploadedDocument:
    """In-memory file handle passed to a verifier.

    Attributes:
        filename: Sanitized original filename.
        content_type: MIME type detected from the content.
        content: Raw file bytes.
    """

    filename: str
    content_type: str
    content: bytes

    @property
    def size_bytes(self) -> int:
        """Size of the content."""
        return len(self.content)


class VerificationError(Exception):
    """The verifier could not produce a confidence for this document.

    Retryable: the applicant may upload the document again.
    """

    pass


class DocumentVerifier(ABC):
    """Abstract base class for document verification providers.

    Implementations must not touch session state; the verification service
    decides whether a result is still wanted when it arrives.
    """

    @abstractmethod
    async def verify(self, kind: "DocumentKind", document: UploadedDocument) -> int:
        """Verify a document.

        Args:
            kind: Which required document this is.
            document: The accepted upload.

        Returns:
            Confidence within MIN_CONFIDENCE..MAX_CONFIDENCE.

        Raises:
            VerificationError: If the document could not be verified.
        """
        ...
