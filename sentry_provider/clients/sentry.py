"""Sentry API client with cursor pagination."""

from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, List, Optional

import httpx
import structlog
from pydantic import SecretStr

from sentry_provider.clients.base import BaseAPIClient
from sentry_provider.clients.exceptions import UnexpectedShapeError

if TYPE_CHECKING:
    from sentry_provider.config.models import ProviderConfig

logger = structlog.get_logger(__name__)


@dataclass(slots=True)
class Page:
    """One page of a listing plus the cursor for the next one."""

    items: List[Dict[str, Any]] = field(default_factory=list)
    next_cursor: Optional[str] = None
    has_more: bool = False


class SentryClient(BaseAPIClient):
    """Authenticated client for the Sentry web API."""

    def __init__(
        self,
        token: SecretStr,
        base_url: str = "https://sentry.io/api/",
        timeout_seconds: float = 30,
        rate_limit_per_minute: int = 600,
        max_retries: int = 5,
        retry_delay_seconds: float = 1.0,
        max_delay_seconds: float = 30.0,
        user_agent: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """Initialize Sentry client.

        Args:
            token: Sentry authentication token
            base_url: API base URL ending in /api/
            timeout_seconds: Request timeout in seconds
            rate_limit_per_minute: Maximum requests per minute
            max_retries: Maximum retry attempts on throttling
            retry_delay_seconds: Initial retry delay
            max_delay_seconds: Upper bound for a single backoff delay
            user_agent: Custom user agent string
            transport: Optional httpx transport
        """
        self._token = token
        super().__init__(
            base_url=str(base_url),
            timeout_seconds=timeout_seconds,
            rate_limit_per_minute=rate_limit_per_minute,
            max_retries=max_retries,
            retry_delay_seconds=retry_delay_seconds,
            max_delay_seconds=max_delay_seconds,
            user_agent=user_agent,
            transport=transport,
        )

    @classmethod
    def from_config(
        cls,
        config: "ProviderConfig",
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> "SentryClient":
        """Build a client from a validated provider configuration."""
        return cls(
            token=config.token,
            base_url=config.api_url,
            timeout_seconds=config.timeout_seconds,
            rate_limit_per_minute=config.rate_limit_per_minute,
            max_retries=config.retry.max_retries,
            retry_delay_seconds=config.retry.retry_delay_seconds,
            max_delay_seconds=config.retry.max_delay_seconds,
            user_agent=config.user_agent,
            transport=transport,
        )

    def _get_auth_headers(self) -> Dict[str, str]:
        """Get Sentry bearer authentication headers."""
        return {
            "Authorization": f"Bearer {self._token.get_secret_value()}",
        }

    # Pagination

    async def list_page(
        self,
        path: str,
        cursor: Optional[str] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> Page:
        """Fetch a single page of a listing endpoint.

        Args:
            path: API endpoint path
            cursor: Cursor returned by the previous page, None for the first
            params: Extra query parameters

        Returns:
            The page with its continuation cursor

        Raises:
            UnexpectedShapeError: If the endpoint does not return a JSON list
        """
        current_params = dict(params) if params else {}
        if cursor:
            current_params["cursor"] = cursor

        response = await self.request("GET", path, params=current_params or None)
        try:
            items = response.json()
        except ValueError as e:
            raise UnexpectedShapeError(
                f"Listing {path} did not return JSON: {e}",
                status_code=response.status_code,
                response_text=response.text,
            ) from e
        if not isinstance(items, list):
            raise UnexpectedShapeError(
                f"Expected list response from {path}, got {type(items).__name__}",
                status_code=response.status_code,
            )

        next_cursor = None
        has_more = False
        link_header = response.headers.get("Link")
        if link_header:
            next_link = self._parse_link_header(link_header).get("next", {})
            has_more = next_link.get("results") == "true"
            next_cursor = next_link.get("cursor") if has_more else None

        return Page(items=items, next_cursor=next_cursor, has_more=has_more and bool(next_cursor))

    async def iter_pages(
        self,
        path: str,
        params: Optional[Dict[str, Any]] = None,
    ) -> AsyncIterator[Page]:
        """Yield pages until the remote reports no more results.

        Callers may stop iterating early; the cursor never outlives the loop.
        """
        cursor: Optional[str] = None
        while True:
            page = await self.list_page(path, cursor=cursor, params=params)
            yield page
            if not page.has_more:
                break
            cursor = page.next_cursor

    async def paginate(
        self,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        """Paginate through all results for an endpoint.

        Args:
            path: API endpoint path
            params: Query parameters
            limit: Maximum number of items to retrieve

        Returns:
            List of all items from all pages
        """
        all_items: List[Dict[str, Any]] = []
        async for page in self.iter_pages(path, params=params):
            all_items.extend(page.items)
            if limit and len(all_items) >= limit:
                return all_items[:limit]
        return all_items

    def _parse_link_header(self, link_header: str) -> Dict[str, Dict[str, str]]:
        """Parse Sentry's Link header.

        Sentry sends both a ``previous`` and a ``next`` link, each with
        ``results`` and ``cursor`` attributes, e.g.
        ``<https://...?&cursor=100:1:0>; rel="next"; results="true"; cursor="100:1:0"``.

        Args:
            link_header: Link header value

        Returns:
            Mapping of relation type to its attributes (``url`` included)
        """
        links: Dict[str, Dict[str, str]] = {}
        for link in link_header.split(","):
            parts = link.strip().split(";")
            if len(parts) < 2:
                continue
            attributes = {"url": parts[0].strip().strip("<>")}
            for part in parts[1:]:
                if "=" not in part:
                    continue
                key, value = part.split("=", 1)
                attributes[key.strip()] = value.strip().strip('"')
            rel = attributes.get("rel")
            if rel:
                links[rel] = attributes
        return links
