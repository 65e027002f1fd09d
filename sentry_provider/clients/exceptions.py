"""Exception classes for the Sentry client and reconciliation core."""

from typing import Optional


class IdentityError(ValueError):
    """Base exception for composite identifier encoding errors."""
    pass


class InvalidSegmentError(IdentityError):
    """Raised when a segment is empty or contains the separator."""
    pass


class MalformedIDError(IdentityError):
    """Raised when an identifier has the wrong number of segments."""
    pass


class EmptyIDError(IdentityError):
    """Raised when an identifier is empty."""
    pass


class APIError(Exception):
    """Base exception for API-related errors."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        response_text: Optional[str] = None,
    ) -> None:
        """Initialize API error.

        Args:
            message: Error message
            status_code: HTTP status code if available
            response_text: Response body text if available
        """
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.response_text = response_text
        self.resource_type: Optional[str] = None
        self.resource_id: Optional[str] = None

    def add_context(
        self,
        resource_type: Optional[str] = None,
        resource_id: Optional[str] = None,
    ) -> "APIError":
        """Attach the resource being reconciled, keeping any existing context."""
        if resource_type and not self.resource_type:
            self.resource_type = resource_type
        if resource_id and not self.resource_id:
            self.resource_id = resource_id
        return self

    def __str__(self) -> str:
        """String representation of the error."""
        parts = [self.message]
        if self.resource_type:
            target = self.resource_type
            if self.resource_id:
                target = f"{target} {self.resource_id}"
            parts.append(f"Resource: {target}")
        if self.status_code:
            parts.append(f"Status: {self.status_code}")
        if self.response_text:
            # Truncate response text for readability
            response_preview = self.response_text[:200]
            if len(self.response_text) > 200:
                response_preview += "..."
            parts.append(f"Response: {response_preview}")
        return " | ".join(parts)


class RateLimitError(APIError):
    """Raised when the remote throttles requests (429)."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        response_text: Optional[str] = None,
        retry_after: Optional[float] = None,
    ) -> None:
        """Initialize rate limit error.

        Args:
            message: Error message
            status_code: HTTP status code
            response_text: Response body text
            retry_after: Seconds to wait before retrying
        """
        super().__init__(message, status_code, response_text)
        self.retry_after = retry_after


class RemoteError(APIError):
    """Raised for any non-2xx response other than throttling."""
    pass


class AuthenticationError(RemoteError):
    """Raised when authentication or authorization fails (401/403)."""
    pass


class ResourceNotFoundError(RemoteError):
    """Raised when a requested resource is not found (404)."""
    pass


class ConflictError(RemoteError):
    """Raised when there's a conflict with the current state (409)."""
    pass


class NetworkError(APIError):
    """Raised for network-related errors."""
    pass


class UnexpectedShapeError(APIError):
    """Raised when a remote response lacks a field the translator requires."""
    pass


class ReplacementRequiredError(APIError):
    """Raised when a change can only be applied by recreating the resource."""

    def __init__(self, message: str, fields: Optional[list[str]] = None) -> None:
        super().__init__(message)
        self.fields = fields or []


class DeadlineExceededError(APIError):
    """Raised when the caller's deadline expires mid-operation."""
    pass


class ConfigurationError(Exception):
    """Raised when provider configuration is invalid."""
    pass
