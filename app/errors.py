from enum import Enum


class RejectionReason(str, Enum):
    METHOD_NOT_ALLOWED = "method_not_allowed"
    MALFORMED_REQUEST = "malformed_request"
    FILE_TOO_LARGE = "file_too_large"
    NOT_A_PDF = "not_a_pdf"
    RATE_LIMITED = "rate_limited"
    STORAGE_WRITE_FAILED = "storage_write_failed"
    GRANT_ISSUANCE_FAILED = "grant_issuance_failed"
    INTERNAL_ERROR = "internal_error"

    @property
    def status_code(self) -> int:
        return _STATUS_CODES[self]

    @property
    def default_message(self) -> str:
        return _MESSAGES[self]


_STATUS_CODES = {
    RejectionReason.METHOD_NOT_ALLOWED: 405,
    RejectionReason.MALFORMED_REQUEST: 400,
    RejectionReason.FILE_TOO_LARGE: 400,
    RejectionReason.NOT_A_PDF: 400,
    RejectionReason.RATE_LIMITED: 429,
    RejectionReason.STORAGE_WRITE_FAILED: 500,
    RejectionReason.GRANT_ISSUANCE_FAILED: 500,
    RejectionReason.INTERNAL_ERROR: 500,
}

_MESSAGES = {
    RejectionReason.METHOD_NOT_ALLOWED: "Method not allowed",
    RejectionReason.MALFORMED_REQUEST: "Missing file data or name",
    RejectionReason.FILE_TOO_LARGE: "File too large",
    RejectionReason.NOT_A_PDF: "Invalid PDF file",
    RejectionReason.RATE_LIMITED: "Too many uploads. Please try again later.",
    RejectionReason.STORAGE_WRITE_FAILED: "Upload failed",
    RejectionReason.GRANT_ISSUANCE_FAILED: "Failed to generate URLs",
    RejectionReason.INTERNAL_ERROR: "Internal server error",
}


class UploadRejected(Exception):
    """The message is shown to the caller and never carries collaborator detail."""

    def __init__(self, reason: RejectionReason, message: str | None = None):
        self.reason = reason
        self.message = message or reason.default_message
        super().__init__(self.message)

    @property
    def status_code(self) -> int:
        return self.reason.status_code


class StorageError(RuntimeError):
    """Raised by object store adapters for any failed operation."""


class ObjectExistsError(StorageError):
    pass
