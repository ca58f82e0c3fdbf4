"""Error taxonomy shared by the recommendation service and its clients.

Empty results are never errors: every ranking component returns an empty
list when it has nothing to offer so that callers can apply their fallback.
"""

from typing import Any


class RecommendationError(Exception):
    """Base exception for recommendation errors."""

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        details: dict[str, Any] | None = None,
    ):
        """Initialize exception.

        Args:
            message: Human-readable error message
            status_code: HTTP status code for API responses
            details: Additional error details for debugging
        """
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": False,
            "error": self.message,
            "error_type": type(self).__name__,
            "details": self.details,
        }


class ValidationError(RecommendationError):
    """Raised for malformed page, limit or id parameters."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message, status_code=400, details=details)


class NotFoundError(RecommendationError):
    """Raised when an anchor product does not exist."""

    def __init__(self, resource: str, resource_id: str):
        super().__init__(
            f"{resource} '{resource_id}' not found",
            status_code=404,
            details={"resource": resource, "id": resource_id},
        )


class UpstreamError(RecommendationError):
    """Raised when a backing store or upstream service fails."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message, status_code=502, details=details)


class TransientNetworkError(RecommendationError):
    """Raised by the delivery client on timeout, abort or connection failure."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message, status_code=504, details=details)


class RefreshRequiredError(RecommendationError):
    """Terminal client state: the retry budget is spent."""

    def __init__(self, attempts: int):
        super().__init__(
            "Maximum retry attempts reached. Please refresh the page.",
            status_code=503,
            details={"attempts": attempts},
        )
