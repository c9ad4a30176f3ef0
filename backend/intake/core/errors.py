"""API error classes.

Every failure in the onboarding wizard is local and recoverable; these
classes carry a machine-readable code and the HTTP status the exception
handlers in intake.main map them to.

Taxonomy:
- ValidationError: a required field is missing or invalid at the current step.
- UploadError: an uploaded document is empty, too large, or of the wrong type.
- InvalidStateError: an operation is not legal in the session's current state.
- NotFoundError / UnauthorizedError: session lookup and auth failures.

Calling finish twice is deliberately NOT an error (it is a no-op).
"""


class APIError(Exception):
    """Base class for API errors.

    Attributes:
        code: Machine-readable error code (e.g., "NOT_FOUND").
        message: Human-readable error message.
        status_code: HTTP status code to return.
        details: Optional list of additional error details.
    """

    def __init__(
        self,
        code: str,
        message: str,
        status_code: int = 500,
        details: list[dict] | None = None,
    ) -> None:
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details
        super().__init__(message)


class ValidationError(APIError):
    """Field validation failed (400).

    Raised when a step's validation rule blocks advancing, or when a
    submitted value is not acceptable. Details carry one entry per field:
    {"field": ..., "error": ...}.
    """

    def __init__(
        self,
        message: str,
        details: list[dict] | None = None,
        *,
        code: str = "VALIDATION_ERROR",
    ) -> None:
        super().__init__(
            code=code,
            message=message,
            status_code=400,
            details=details,
        )


class UploadError(ValidationError):
    """Uploaded document rejected (400).

    Raised before any verification call is issued. Always retryable:
    the applicant fixes the file and uploads again.
    """

    def __init__(
        self,
        message: str,
        details: list[dict] | None = None,
    ) -> None:
        super().__init__(message, details, code="UPLOAD_ERROR")


class UnauthorizedError(APIError):
    """Authentication required (401)."""

    def __init__(self, message: str = "Authentication required") -> None:
        super().__init__(
            code="UNAUTHORIZED",
            message=message,
            status_code=401,
        )


class NotFoundError(APIError):
    """Resource not found (404).

    Use when the requested resource doesn't exist OR doesn't belong to the
    caller. Revealing "exists but not yours" leaks information.
    """

    def __init__(self, resource: str, resource_id: str | None = None) -> None:
        if resource_id:
            message = f"{resource} with id '{resource_id}' not found"
        else:
            message = f"{resource} not found"
        super().__init__(
            code="NOT_FOUND",
            message=message,
            status_code=404,
        )


class InvalidStateError(APIError):
    """Business rule violation (422).

    Use when a request is well-formed but illegal in the current state,
    e.g. finishing before the results step or editing a completed session.
    """

    def __init__(self, message: str) -> None:
        super().__init__(
            code="INVALID_STATE_TRANSITION",
            message=message,
            status_code=422,
        )

