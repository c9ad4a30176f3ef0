"""Document upload and asynchronous verification.

Accepting an upload is synchronous: the file is validated, the session's
upload record for that kind is replaced, and a verification task is
spawned. The task resolves independently of step navigation.

A resolution is written back only if, when it arrives:
- the session has not been torn down, and
- the upload is still the current one for its kind.

Re-uploading cancels the previous task for that kind; teardown cancels all
of them. The two checks above still guard against a result that lands in
the same loop iteration as the cancellation.
"""

import asyncio
import contextlib

import structlog

from intake.core.file_validation import sanitize_filename, validate_document_content
from intake.providers.verification.base import (
    MAX_CONFIDENCE,
    MIN_CONFIDENCE,
    DocumentVerifier,
    UploadedDocument,
    VerificationError,
)
from intake.services.onboarding_session import (
    DocumentKind,
    DocumentUpload,
    OnboardingSession,
)

logger = structlog.get_logger()

_RETRY_MESSAGE = "We could not verify this document. Please upload it again."
"""Shown to the applicant on a failed verification; never the raw cause."""


class DocumentVerificationService:
    """Starts, tracks and cancels verification tasks for sessions.

    Args:
        verifier: Verification collaborator.
        max_upload_bytes: Size limit enforced before verification.
    """

    def __init__(self, verifier: DocumentVerifier, *, max_upload_bytes: int) -> None:
        self._verifier = verifier
        self._max_upload_bytes = max_upload_bytes

    def start(
        self,
        session: OnboardingSession,
        kind: DocumentKind,
        filename: str,
        content: bytes,
    ) -> DocumentUpload:
        """Accept an upload and start verifying it.

        Must be called from a running event loop.

        Args:
            session: Session receiving the upload.
            kind: Which required document this is.
            filename: Client-supplied filename.
            content: Raw file bytes.

        Returns:
            The new upload record, pending verification.

        Raises:
            InvalidStateError: If the session no longer accepts input.
            UploadError: If the file is empty, too large or of the wrong type.
        """
        session.ensure_mutable()

        safe_name = sanitize_filename(filename)
        content_type = validate_document_content(
            kind.value, content, safe_name, self._max_upload_bytes
        )
        document = UploadedDocument(
            filename=safe_name,
            content_type=content_type,
            content=content,
        )

        self._cancel(session, kind)

        upload = DocumentUpload(
            kind=kind,
            file_ref=safe_name,
            content_type=content_type,
            size_bytes=document.size_bytes,
        )
        session.uploads[kind] = upload
        session.verification_tasks[kind] = asyncio.create_task(
            self._resolve(session, upload, document),
            name=f"verify-{session.session_id}-{kind.value}",
        )

        logger.info(
            "Document accepted for verification",
            session_id=str(session.session_id),
            kind=kind.value,
            upload_id=str(upload.upload_id),
            size_bytes=upload.size_bytes,
        )
        return upload

    async def _resolve(
        self,
        session: OnboardingSession,
        upload: DocumentUpload,
        document: UploadedDocument,
    ) -> None:
        """Await the verifier and write the outcome if still wanted."""
        log = logger.bind(
            session_id=str(session.session_id),
            kind=upload.kind.value,
            upload_id=str(upload.upload_id),
        )
        try:
            try:
                confidence = await self._verifier.verify(upload.kind, document)
            except VerificationError as exc:
                if self._is_current(session, upload):
                    upload.fail(_RETRY_MESSAGE)
                    log.warning("Document verification failed", error=str(exc)[:200])
                return
            except Exception:  # noqa: BLE001
                if self._is_current(session, upload):
                    upload.fail(_RETRY_MESSAGE)
                log.exception("Unexpected error in document verifier")
                return

            if not self._is_current(session, upload):
                log.info("Discarding stale verification result")
                return

            if not MIN_CONFIDENCE <= confidence <= MAX_CONFIDENCE:
                upload.fail(_RETRY_MESSAGE)
                log.warning("Verifier returned out-of-range confidence", confidence=confidence)
                return

            upload.resolve(confidence)
            log.info("Document verified", confidence=confidence)
        finally:
            if session.verification_tasks.get(upload.kind) is asyncio.current_task():
                del session.verification_tasks[upload.kind]

    @staticmethod
    def _is_current(session: OnboardingSession, upload: DocumentUpload) -> bool:
        return not session.closed and session.uploads.get(upload.kind) is upload

    @staticmethod
    def _cancel(session: OnboardingSession, kind: DocumentKind) -> None:
        task = session.verification_tasks.pop(kind, None)
        if task is not None and not task.done():
            task.cancel()
            logger.debug(
                "Cancelled superseded verification",
                session_id=str(session.session_id),
                kind=kind.value,
            )

    def cancel_all(self, session: OnboardingSession) -> int:
        """Cancel every in-flight verification of a session.

        Args:
            session: Session being torn down.

        Returns:
            Number of tasks that were still running.
        """
        cancelled = 0
        for kind in list(session.verification_tasks):
            task = session.verification_tasks.pop(kind)
            if not task.done():
                task.cancel()
                cancelled += 1
        if cancelled:
            logger.info(
                "Cancelled pending verifications",
                session_id=str(session.session_id),
                count=cancelled,
            )
        return cancelled

    @staticmethod
    async def wait_for(session: OnboardingSession) -> None:
        """Wait until every in-flight verification of a session settles."""
        tasks = list(session.verification_tasks.values())
        for task in tasks:
            with contextlib.suppress(asyncio.CancelledError):
                await task
