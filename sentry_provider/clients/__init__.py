"""HTTP clients for the Sentry API."""

from .base import BaseAPIClient, WriteTracker, track_writes
from .exceptions import (
    APIError,
    AuthenticationError,
    ConfigurationError,
    ConflictError,
    DeadlineExceededError,
    EmptyIDError,
    IdentityError,
    InvalidSegmentError,
    MalformedIDError,
    NetworkError,
    RateLimitError,
    RemoteError,
    ReplacementRequiredError,
    ResourceNotFoundError,
    UnexpectedShapeError,
)
from .sentry import Page, SentryClient

__all__ = [
    "APIError",
    "AuthenticationError",
    "BaseAPIClient",
    "ConfigurationError",
    "ConflictError",
    "DeadlineExceededError",
    "EmptyIDError",
    "IdentityError",
    "InvalidSegmentError",
    "MalformedIDError",
    "NetworkError",
    "Page",
    "RateLimitError",
    "RemoteError",
    "ReplacementRequiredError",
    "ResourceNotFoundError",
    "SentryClient",
    "UnexpectedShapeError",
    "WriteTracker",
    "track_writes",
]
