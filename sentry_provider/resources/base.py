"""Abstract base class for Sentry resource kinds.

Each kind pairs a remote gateway (the HTTP calls that address one object,
list its siblings, create, update and delete it) with a state translator
(desired state to API payload and API response to canonical state). The
reconciler drives both through this interface only.
"""

import functools
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Callable, Mapping
from typing import Any, ClassVar, Generic, TypeVar

import structlog
from pydantic import BaseModel, ConfigDict, ValidationError

from sentry_provider import identity
from sentry_provider.clients.exceptions import (
    InvalidSegmentError,
    ReplacementRequiredError,
    ResourceNotFoundError,
    UnexpectedShapeError,
)
from sentry_provider.clients.sentry import Page, SentryClient

logger = structlog.get_logger(__name__)


class ResourceState(BaseModel):
    """Base for the desired/canonical state model of a resource kind.

    Fields listed in ``read_only`` are assigned by Sentry; they appear in
    canonical state but are never sent. Fields listed in ``path_fields``
    address the object in the URL and are not part of the request body.
    """

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    read_only: ClassVar[frozenset[str]] = frozenset()
    path_fields: ClassVar[frozenset[str]] = frozenset({"organization"})


class NestedState(BaseModel):
    """Base for nested objects (widgets, triggers, actions)."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)


StateT = TypeVar("StateT", bound=ResourceState)


def differs(desired: Any, current: Any) -> bool:
    """Whether ``current`` fails to match every value ``desired`` sets.

    Mappings are compared on the desired keys only, recursively, so that
    nested attributes left to their server default do not count as
    changes. Lists must match in length and order.
    """
    if isinstance(desired, Mapping):
        if not isinstance(current, Mapping):
            return True
        return any(differs(value, current.get(key)) for key, value in desired.items())
    if isinstance(desired, list):
        if not isinstance(current, list) or len(desired) != len(current):
            return True
        return any(differs(d, c) for d, c in zip(desired, current))
    return desired != current


def require(remote: Mapping[str, Any], field: str, kind: str) -> Any:
    """Return ``remote[field]`` or fail with UnexpectedShapeError."""
    if not isinstance(remote, Mapping) or field not in remote or remote[field] is None:
        raise UnexpectedShapeError(f"Sentry {kind} response is missing required field '{field}'")
    return remote[field]


def translates_remote(method: Callable[..., StateT]) -> Callable[..., StateT]:
    """Report invalid values in a Sentry response as UnexpectedShapeError.

    Wraps ``from_remote`` so that a field Sentry returns with the wrong type
    or an unknown value fails like a missing one.
    """

    @functools.wraps(method)
    def wrapper(self: "SentryResource", remote: Mapping[str, Any], parent: tuple[str, ...]) -> StateT:
        try:
            return method(self, remote, parent)
        except ValidationError as e:
            first = e.errors()[0]
            location = ".".join(str(part) for part in first["loc"])
            raise UnexpectedShapeError(
                f"Sentry {self.kind} response has an invalid value for '{location}': {first['msg']}"
            ) from e

    return wrapper


class SentryResource(ABC, Generic[StateT]):
    """Abstract base class for resource kinds.

    Subclasses declare:
    - ``kind``: name used in logs and error context
    - ``state_model``: pydantic model for desired and canonical state
    - ``id_arity``: number of segments in the composite identifier
    - ``updatable`` / ``immutable_fields``: which payload keys can change in place
    - ``write_only_fields``: payload keys Sentry accepts but never returns
    - ``server_defaults``: values Sentry fills in when a field is omitted
    """

    kind: ClassVar[str]
    state_model: ClassVar[type[ResourceState]]
    id_arity: ClassVar[int] = 2
    updatable: ClassVar[bool] = True
    immutable_fields: ClassVar[frozenset[str]] = frozenset()
    write_only_fields: ClassVar[frozenset[str]] = frozenset()
    server_defaults: ClassVar[dict[str, Any]] = {}

    def __init__(self, client: SentryClient) -> None:
        """Initialize the resource kind.

        Args:
            client: Authenticated Sentry client shared by all kinds.
        """
        self.client = client
        self._logger = logger.bind(resource_type=self.kind)

    # Identity

    def parent_of(self, state: StateT) -> tuple[str, ...]:
        """Identifier segments of the parent objects (organization by default)."""
        return (state.organization,)

    @abstractmethod
    def local_id(self, state: StateT) -> str | None:
        """Last identifier segment, usually a slug or a Sentry-assigned id."""
        pass

    def key_for(self, state: StateT) -> tuple[str, ...]:
        """Full key used to address the object remotely."""
        local = self.local_id(state)
        if local is None:
            raise InvalidSegmentError(f"{self.kind} state has no identifier yet")
        return (*self.parent_of(state), str(local))

    def encode_id(self, state: StateT) -> str:
        """Encode the composite identifier for a canonical state."""
        return identity.encode(self.key_for(state))

    def decode_id(self, resource_id: str) -> tuple[str, ...]:
        """Decode a composite identifier into a key."""
        return identity.decode(resource_id, self.id_arity)

    # Translation

    def validate_desired(self, desired: Mapping[str, Any] | StateT) -> StateT:
        """Validate a desired-state mapping against the kind's model.

        Raises:
            pydantic.ValidationError: On unknown attributes or bad values.
        """
        if isinstance(desired, self.state_model):
            return desired
        return self.state_model.model_validate(dict(desired))

    def to_payload(self, state: StateT) -> dict[str, Any]:
        """Translate state into the API payload, omitting unset optional fields."""
        return state.model_dump(
            by_alias=True,
            exclude_none=True,
            exclude=set(state.read_only | state.path_fields),
        )

    def update_payload(self, payload: dict[str, Any]) -> dict[str, Any]:
        """Desired payload with write-only keys removed, as sent on update."""
        return {k: v for k, v in payload.items() if k not in self.write_only_fields}

    @abstractmethod
    def from_remote(self, remote: Mapping[str, Any], parent: tuple[str, ...]) -> StateT:
        """Translate an API response into canonical state.

        Args:
            remote: Decoded JSON object returned by Sentry
            parent: Parent identifier segments, which the response may omit

        Raises:
            UnexpectedShapeError: If a required field is absent.
        """
        pass

    def changed_fields(
        self,
        desired_payload: Mapping[str, Any],
        current_payload: Mapping[str, Any],
    ) -> list[str]:
        """Payload keys whose desired value differs from the current one.

        Only keys present in the desired payload are compared, so fields the
        user left unset never count as changes. Write-only keys are skipped
        since Sentry never reports them back.
        """
        return [
            key
            for key, value in desired_payload.items()
            if key not in self.write_only_fields and differs(value, current_payload.get(key))
        ]

    def check_replacement(self, changed: list[str]) -> None:
        """Fail when a change cannot be applied in place."""
        if not changed:
            return
        blocked = changed if not self.updatable else [k for k in changed if k in self.immutable_fields]
        if blocked:
            raise ReplacementRequiredError(
                f"Changing {', '.join(sorted(blocked))} on {self.kind} requires replacement",
                fields=sorted(blocked),
            )

    # Gateway

    @abstractmethod
    def collection_path(self, parent: tuple[str, ...]) -> str:
        """Listing endpoint for objects of this kind under ``parent``."""
        pass

    @abstractmethod
    async def fetch(self, key: tuple[str, ...]) -> dict[str, Any] | None:
        """Fetch one object; None means it does not exist."""
        pass

    async def list_page(self, *parent: str, cursor: str | None = None) -> Page:
        """Fetch one page of objects under ``parent`` (usually the organization)."""
        return await self.client.list_page(self.collection_path(parent), cursor=cursor)

    async def iter_pages(self, *parent: str) -> AsyncIterator[Page]:
        """Iterate pages of objects under ``parent``, allowing early exit."""
        async for page in self.client.iter_pages(self.collection_path(parent)):
            yield page

    async def list_all(self, *parent: str) -> list[dict[str, Any]]:
        """List every object of this kind under ``parent``, following cursors."""
        return await self.client.paginate(self.collection_path(parent))

    @abstractmethod
    async def create(self, state: StateT, payload: dict[str, Any]) -> dict[str, Any]:
        """Create the object and return the remote representation."""
        pass

    async def update(
        self,
        key: tuple[str, ...],
        payload: dict[str, Any],
        current: StateT,
    ) -> dict[str, Any]:
        """Update the object in place and return the remote representation."""
        raise ReplacementRequiredError(f"{self.kind} cannot be updated in place")

    @abstractmethod
    async def delete(self, key: tuple[str, ...]) -> None:
        """Delete the object."""
        pass

    # Helpers for subclasses

    async def _get_or_none(self, path: str) -> dict[str, Any] | None:
        """GET an object, mapping 404 to None."""
        try:
            return await self.client.get_json(path)
        except ResourceNotFoundError:
            return None

    async def _find_in_listing(
        self,
        parent: tuple[str, ...],
        predicate: Callable[[Mapping[str, Any]], bool],
    ) -> dict[str, Any] | None:
        """Scan a listing page by page, stopping at the first match.

        Used by kinds that have no single-object GET endpoint.
        """
        async for page in self.client.iter_pages(self.collection_path(parent)):
            for item in page.items:
                if predicate(item):
                    return item
        return None
