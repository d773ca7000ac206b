"""
core/errors.py -- Domain failure kinds raised below the HTTP layer.

Stores and the auth provider raise these; api/main.py maps each one to a
status code and the shared ErrorResponse envelope. Authentication failures
are not modelled here: the guard turns every cause into the same HTTP 401.

Layer rule: no imports from api/, web/, auth/, or users/.
"""


class AppError(Exception):
    """Base class for failures that carry a stable client-facing code."""

    code = "error"
    status_code = 400

    def __init__(self, message: str, detail: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.detail = detail


class NotFoundError(AppError):
    """Requested record does not exist."""

    code = "not_found"
    status_code = 404


class ConflictError(AppError):
    """A unique constraint would be violated (duplicate email)."""

    code = "conflict"
    status_code = 409


class MalformedBodyError(AppError):
    """Request body could not be decoded for its declared content type."""

    code = "malformed_body"
    status_code = 400


class PayloadTooLargeError(AppError):
    code = "payload_too_large"
    status_code = 413
