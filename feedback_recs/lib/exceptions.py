"""Custom exception classes for the feedback recommendations backend.

Synchronous-path errors carry an HTTP status and are converted to a JSON
error body by the API layer. Asynchronous-path errors are split into two
lanes: ``MalformedMessageError`` and ``UpstreamFailureError`` are absorbed by
the worker, everything else aborts the batch so the queue redelivers it.
"""

from typing import Optional, Dict, Any


class BaseServiceError(Exception):
    """Base exception for all service errors."""

    ERROR_CODE = "SERVICE_001"
    STATUS_CODE = 500
    ERROR_NAME = "Internal Server Error"

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        """Initialize exception with message, code, and optional details.

        Args:
            message: Error message
            error_code: Optional error code override
            details: Optional dictionary with additional error details
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self.ERROR_CODE
        self.details = details or {}


class UnauthorizedError(BaseServiceError):
    """Raised when no verified caller identity accompanies a request."""

    ERROR_CODE = "AUTH_001"
    STATUS_CODE = 401
    ERROR_NAME = "Unauthorized"


class BadRequestError(BaseServiceError):
    """Raised for malformed, oversized or missing request input."""

    ERROR_CODE = "REQUEST_001"
    STATUS_CODE = 400
    ERROR_NAME = "Bad Request"


class RecordNotFoundError(BaseServiceError):
    """Raised when an update targets a record that does not exist."""

    ERROR_CODE = "STORE_404"
    STATUS_CODE = 404
    ERROR_NAME = "Not Found"


class InternalError(BaseServiceError):
    """Catch-all for unexpected failures on the synchronous path."""

    ERROR_CODE = "INTERNAL_001"


class StoreFailureError(BaseServiceError):
    """Raised when a record store operation fails."""

    ERROR_CODE = "STORE_001"


class ChannelPublishError(BaseServiceError):
    """Raised when a submission cannot be published to the dispatch channel."""

    ERROR_CODE = "CHANNEL_001"


class ChannelReceiveError(BaseServiceError):
    """Raised when the queue cannot be polled."""

    ERROR_CODE = "CHANNEL_002"


class MalformedMessageError(BaseServiceError):
    """Raised when a queued message cannot be parsed into a submission.

    The worker records the message as skipped and moves on; it is never
    retried.
    """

    ERROR_CODE = "MESSAGE_001"


class UpstreamFailureError(BaseServiceError):
    """Raised when the inference call fails or returns unusable text.

    Absorbed by the enrichment step, which substitutes the fallback
    recommendation.
    """

    ERROR_CODE = "UPSTREAM_001"


class FatalProcessingError(BaseServiceError):
    """Raised when a message cannot be normalized or persisted.

    Propagates out of the batch so the whole batch is redelivered.
    """

    ERROR_CODE = "WORKER_001"
