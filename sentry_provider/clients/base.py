"""HTTP transport shared by the Sentry API clients."""

import time
from abc import ABC, abstractmethod
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional, TypeVar

import httpx
import structlog
from asyncio_throttle import Throttler
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from sentry_provider.clients.exceptions import (
    APIError,
    AuthenticationError,
    ConflictError,
    NetworkError,
    RateLimitError,
    RemoteError,
    ResourceNotFoundError,
)

logger = structlog.get_logger(__name__)

T = TypeVar("T")

WRITE_METHODS = frozenset({"POST", "PUT", "PATCH", "DELETE"})


@dataclass(slots=True)
class WriteTracker:
    """Counts write requests issued inside a :func:`track_writes` block."""

    count: int = 0


_write_tracker: ContextVar[Optional[WriteTracker]] = ContextVar("write_tracker", default=None)


@contextmanager
def track_writes() -> Iterator[WriteTracker]:
    """Count write requests made by the current task.

    The counter lives in a context variable, so reconciliations running
    concurrently under ``asyncio.gather`` each see only their own writes.
    """
    tracker = WriteTracker()
    token = _write_tracker.set(tracker)
    try:
        yield tracker
    finally:
        _write_tracker.reset(token)


class BaseAPIClient(ABC):
    """Throttled HTTP transport that retries rate-limited requests."""

    def __init__(
        self,
        base_url: str,
        timeout_seconds: float = 30,
        rate_limit_per_minute: int = 600,
        max_retries: int = 5,
        retry_delay_seconds: float = 1.0,
        max_delay_seconds: float = 30.0,
        user_agent: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """Initialize the base API client.

        Args:
            base_url: Base URL for the API
            timeout_seconds: Request timeout in seconds
            rate_limit_per_minute: Maximum requests per minute
            max_retries: Maximum retry attempts for rate-limited requests
            retry_delay_seconds: Initial delay between retries
            max_delay_seconds: Upper bound for a single backoff delay
            user_agent: Custom user agent string
            transport: Optional httpx transport (used to stub the network)
        """
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self.rate_limit_per_minute = rate_limit_per_minute
        self.max_retries = max_retries
        self.retry_delay_seconds = retry_delay_seconds
        self.max_delay_seconds = max_delay_seconds

        headers = {
            "User-Agent": user_agent or self._get_default_user_agent(),
            "Accept": "application/json",
            "Content-Type": "application/json",
        }

        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(timeout_seconds),
            headers=headers,
            follow_redirects=True,
            transport=transport,
        )

        self._throttler = Throttler(rate_limit=rate_limit_per_minute, period=60)

        # Request tracking for logging and debugging
        self._request_count = 0
        self._error_count = 0
        self._last_request_time: Optional[float] = None

        self._logger = logger.bind(
            client_type=self.__class__.__name__,
            base_url=self.base_url,
        )

    async def __aenter__(self) -> "BaseAPIClient":
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Async context manager exit."""
        await self.close()

    async def close(self) -> None:
        """Close the HTTP client and cleanup resources."""
        if self._client:
            await self._client.aclose()

    @abstractmethod
    def _get_auth_headers(self) -> Dict[str, str]:
        """Get authentication headers for requests.

        Returns:
            Dictionary of authentication headers
        """
        pass

    def _get_default_user_agent(self) -> str:
        """Get default user agent string."""
        from sentry_provider import __version__
        return f"sentry-provider/{__version__}"

    def _build_url(self, path: str) -> str:
        if path.startswith(("http://", "https://")):
            return path
        return f"{self.base_url}/{path.lstrip('/')}"

    async def _make_request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        json_data: Optional[Any] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> httpx.Response:
        """Make a single HTTP request with rate limiting and error mapping.

        Args:
            method: HTTP method (GET, POST, PUT, DELETE, etc.)
            path: API endpoint path (relative to base URL) or absolute URL
            params: Query parameters
            json_data: JSON request body
            headers: Additional headers

        Returns:
            HTTP response object

        Raises:
            RateLimitError: On 429
            RemoteError: On any other non-2xx status
            NetworkError: If the request could not be sent
        """
        async with self._throttler:
            url = self._build_url(path)
            request_headers = self._get_auth_headers()
            if headers:
                request_headers.update(headers)

            self._request_count += 1
            self._last_request_time = time.time()
            if method.upper() in WRITE_METHODS:
                tracker = _write_tracker.get()
                if tracker is not None:
                    tracker.count += 1

            request_id = f"req_{self._request_count}"

            self._logger.debug(
                "Making API request",
                request_id=request_id,
                method=method,
                url=url,
                params=params,
                has_json_data=json_data is not None,
            )

            try:
                response = await self._client.request(
                    method=method,
                    url=url,
                    params=params,
                    json=json_data,
                    headers=request_headers,
                )
            except httpx.RequestError as e:
                self._error_count += 1
                self._logger.error(
                    "Network error during API request",
                    request_id=request_id,
                    error=str(e),
                )
                raise NetworkError(f"Network error: {e}") from e

            self._logger.debug(
                "API request completed",
                request_id=request_id,
                status_code=response.status_code,
                response_size=len(response.content),
            )

            if response.is_success:
                return response

            self._error_count += 1
            raise self._error_for_response(method, url, response)

    def _error_for_response(self, method: str, url: str, response: httpx.Response) -> APIError:
        """Map a non-2xx response onto the exception taxonomy."""
        status = response.status_code
        text = response.text
        if status == 429:
            return RateLimitError(
                "Rate limit exceeded",
                status_code=status,
                response_text=text,
                retry_after=self._get_retry_after(response),
            )
        if status == 404:
            return ResourceNotFoundError(
                f"Not found: {method} {url}", status_code=status, response_text=text
            )
        if status in (401, 403):
            return AuthenticationError(
                "Authentication failed", status_code=status, response_text=text
            )
        if status == 409:
            return ConflictError(
                f"Conflict: {method} {url}", status_code=status, response_text=text
            )
        return RemoteError(
            f"Remote error: {method} {url}", status_code=status, response_text=text
        )

    def _get_retry_after(self, response: httpx.Response) -> Optional[float]:
        """Extract retry-after value from response headers.

        Args:
            response: HTTP response

        Returns:
            Retry-after value in seconds, or None if not present
        """
        retry_after = response.headers.get("Retry-After")
        if retry_after:
            try:
                return float(retry_after)
            except ValueError:
                pass
        return None

    def _wait_before_retry(self, retry_state: RetryCallState) -> float:
        """Exponential backoff, stretched to the server's Retry-After when larger."""
        delay = wait_exponential(
            multiplier=self.retry_delay_seconds,
            max=self.max_delay_seconds,
        )(retry_state)

        exception = retry_state.outcome.exception() if retry_state.outcome else None
        if isinstance(exception, RateLimitError) and exception.retry_after:
            delay = max(delay, min(exception.retry_after, self.max_delay_seconds))
        return delay

    async def with_retry(
        self,
        operation_name: str,
        operation: Callable[[], Awaitable[T]],
    ) -> T:
        """Execute an operation, retrying only while the remote throttles us.

        Args:
            operation_name: Name of the operation for logging
            operation: Zero-argument callable returning a fresh awaitable per attempt

        Returns:
            Result of the operation

        Raises:
            RateLimitError: If the remote is still throttling after all retries
            APIError: Any other failure, surfaced on the first attempt
        """
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.max_retries + 1),
            wait=self._wait_before_retry,
            retry=retry_if_exception_type(RateLimitError),
            reraise=True,
            before_sleep=lambda state: self._logger.warning(
                "Rate limited, backing off",
                operation=operation_name,
                attempt=state.attempt_number,
                delay=state.next_action.sleep if state.next_action else None,
            ),
        )

        try:
            async for attempt in retrying:
                with attempt:
                    return await operation()
        except RateLimitError:
            self._logger.error(
                "Operation still rate limited after all retries",
                operation=operation_name,
                attempts=self.max_retries + 1,
            )
            raise

    async def request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        json_data: Optional[Any] = None,
    ) -> httpx.Response:
        """Make a request with rate-limit retries."""
        return await self.with_retry(
            f"{method} {path}",
            lambda: self._make_request(method, path, params=params, json_data=json_data),
        )

    async def request_json(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        json_data: Optional[Any] = None,
    ) -> Any:
        """Make a request and decode the JSON body (None for an empty body).

        Raises:
            APIError: If the response body is not valid JSON
        """
        response = await self.request(method, path, params=params, json_data=json_data)
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise APIError(
                f"Failed to parse JSON response: {e}",
                status_code=response.status_code,
                response_text=response.text,
            ) from e

    async def get_json(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        """Make a GET request and return the decoded JSON body."""
        return await self.request_json("GET", path, params=params)

    async def post_json(self, path: str, json_data: Optional[Any] = None) -> Any:
        """Make a POST request and return the decoded JSON body."""
        return await self.request_json("POST", path, json_data=json_data)

    async def put_json(self, path: str, json_data: Optional[Any] = None) -> Any:
        """Make a PUT request and return the decoded JSON body."""
        return await self.request_json("PUT", path, json_data=json_data)

    async def delete(self, path: str, params: Optional[Dict[str, Any]] = None) -> None:
        """Make a DELETE request."""
        await self.request("DELETE", path, params=params)

    def get_stats(self) -> Dict[str, Any]:
        """Get client statistics for monitoring.

        Returns:
            Dictionary with client statistics
        """
        return {
            "request_count": self._request_count,
            "error_count": self._error_count,
            "error_rate": self._error_count / max(self._request_count, 1),
            "last_request_time": self._last_request_time,
            "rate_limit_per_minute": self.rate_limit_per_minute,
            "base_url": self.base_url,
        }
