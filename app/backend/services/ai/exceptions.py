"""
Shared exceptions for AI service modules.
"""


class AIServiceError(Exception):
    """Raised when AI service operations fail."""

    pass


class BackendError(AIServiceError):
    """Raised when a single text-completion call fails.

    Covers network and authentication failures as well as empty or
    malformed backend responses.
    """

    def __init__(self, message: str, backend: str | None = None):
        super().__init__(message)
        self.backend = backend


class UnsupportedBackendError(AIServiceError):
    """Raised when a backend selector is not in the known set."""

    code = "unsupported_backend"


class CombinationError(AIServiceError):
    """Raised when per-document tables cannot be reconciled into one table."""

    pass


class InvalidBatchInputError(ValueError):
    """Raised when a batch request is rejected before any backend call."""

    code = "invalid_batch_input"
    status_code = 400


class PayloadTooLargeError(InvalidBatchInputError):
    """Raised when the uploaded documents exceed the configured size limit."""

    code = "payload_too_large"
    status_code = 413
