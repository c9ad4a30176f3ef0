"""File validation utilities for onboarding document uploads.

Security: Validates file content (magic bytes, not the declared type or
extension), enforces size limits, and sanitizes filenames before they are
stored on an upload record or echoed back to the client.
"""

import re
from typing import TYPE_CHECKING

import magic
import structlog

if TYPE_CHECKING:
    from fastapi import UploadFile

from intake.core.errors import UploadError

logger = structlog.get_logger()

# Chunk size for reading files (64 KB)
CHUNK_SIZE_BYTES = 64 * 1024

_PDF = "application/pdf"
_DOC = "application/msword"
_DOCX = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"

# Allowed MIME types per document kind, mapped to a display label.
# id: scanned ID or photo; transcript: PDF only; cv: PDF or Word.
ALLOWED_MIMES: dict[str, dict[str, str]] = {
    "id": {
        _PDF: "PDF",
        "image/jpeg": "JPEG",
        "image/png": "PNG",
        "image/webp": "WEBP",
    },
    "transcript": {
        _PDF: "PDF",
    },
    "cv": {
        _PDF: "PDF",
        _DOC: "DOC",
        _DOCX: "DOCX",
    },
}


async def read_file_with_size_limit(file: "UploadFile", max_size: int) -> bytes:
    """Read file content with size limit to prevent DoS.

    Args:
        file: UploadFile from FastAPI.
        max_size: Maximum allowed file size in bytes.

    Returns:
        File content as bytes.

    Raises:
        UploadError: If file exceeds size limit.
    """
    content = b""
    total_size = 0

    while True:
        chunk = await file.read(CHUNK_SIZE_BYTES)
        if not chunk:
            break
        total_size += len(chunk)
        if total_size > max_size:
            raise UploadError(
                message=f"File too large. Maximum size: {max_size // (1024 * 1024)}MB",
                details=[{"field": "file", "error": "FILE_TOO_LARGE"}],
            )
        content += chunk

    return content


def validate_document_content(
    kind: str,
    content: bytes,
    filename: str,
    max_size: int,
) -> str:
    """Validate a document's size and content type for its kind.

    Args:
        kind: Document kind ("id", "transcript", "cv").
        content: File binary content.
        filename: Original filename (for logging only).
        max_size: Maximum allowed file size in bytes.

    Returns:
        Detected MIME type.

    Raises:
        UploadError: If the file is empty, too large, or its content does
            not match the kind's allowed types.
    """
    if not content:
        raise UploadError(
            message="Uploaded file is empty.",
            details=[{"field": "file", "error": "EMPTY_FILE"}],
        )
    if len(content) > max_size:
        raise UploadError(
            message=f"File too large. Maximum size: {max_size // (1024 * 1024)}MB",
            details=[{"field": "file", "error": "FILE_TOO_LARGE"}],
        )

    allowed = ALLOWED_MIMES[kind]
    detected_mime = magic.from_buffer(content, mime=True)

    if detected_mime not in allowed:
        # Log detected MIME for server-side debugging; do NOT expose to client
        logger.warning(
            "Document content validation failed",
            kind=kind,
            detected_mime=detected_mime,
            filename=filename,
        )
        labels = ", ".join(sorted(set(allowed.values())))
        raise UploadError(
            message=f"Invalid file type for {kind} document. Allowed: {labels}.",
            details=[{"field": "file", "error": "INVALID_FILE_CONTENT"}],
        )

    return detected_mime


def sanitize_filename(filename: str, max_length: int = 200) -> str:
    """Sanitize a client-supplied filename for storage and display.

    Removes path components, quotes, and control characters.

    Args:
        filename: Original filename.
        max_length: Maximum allowed filename length.

    Returns:
        Sanitized filename, "upload" if nothing usable remains.
    """
    # Drop any directory component a client might send
    safe = re.split(r"[\\/]", filename)[-1]

    # Remove characters that could cause header injection
    safe = re.sub(r'["\r\n;]', "", safe)

    # Remove any control characters
    safe = re.sub(r"[\x00-\x1f\x7f]", "", safe)

    if len(safe) > max_length:
        # Preserve extension if present
        if "." in safe:
            name, ext = safe.rsplit(".", 1)
            ext = f".{ext}"
            safe = name[: max_length - len(ext)] + ext
        else:
            safe = safe[:max_length]

    if not safe:
        safe = "upload"

    return safe
