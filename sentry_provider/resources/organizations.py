"""Organization resource for the Sentry provider."""

from collections.abc import Mapping
from typing import Any

from pydantic import Field

from sentry_provider.resources.base import (
    ResourceState,
    SentryResource,
    require,
    translates_remote,
)


class OrganizationState(ResourceState):
    """A top-level organization, addressed by its slug alone."""

    read_only = frozenset({"internal_id"})
    path_fields = frozenset()

    name: str
    slug: str | None = None
    agree_terms: bool | None = Field(default=None, alias="agreeTerms")
    internal_id: str | None = None


class OrganizationResource(SentryResource[OrganizationState]):
    """Gateway and translator for Sentry organizations.

    ``agreeTerms`` is only meaningful on creation. Sentry never echoes it
    back, so it is excluded from change detection and from updates.
    """

    kind = "organization"
    state_model = OrganizationState
    id_arity = 1
    write_only_fields = frozenset({"agreeTerms"})

    def parent_of(self, state: OrganizationState) -> tuple[str, ...]:
        return ()

    def local_id(self, state: OrganizationState) -> str | None:
        return state.slug

    def collection_path(self, parent: tuple[str, ...]) -> str:
        return "0/organizations/"

    def _organization_path(self, key: tuple[str, ...]) -> str:
        (slug,) = key
        return f"0/organizations/{slug}/"

    @translates_remote
    def from_remote(
        self,
        remote: Mapping[str, Any],
        parent: tuple[str, ...],
    ) -> OrganizationState:
        return OrganizationState(
            name=require(remote, "name", self.kind),
            slug=require(remote, "slug", self.kind),
            internal_id=str(require(remote, "id", self.kind)),
        )

    async def fetch(self, key: tuple[str, ...]) -> dict[str, Any] | None:
        return await self._get_or_none(self._organization_path(key))

    async def create(
        self,
        state: OrganizationState,
        payload: dict[str, Any],
    ) -> dict[str, Any]:
        self._logger.info("Creating organization", name=state.name, slug=state.slug)
        return await self.client.post_json(self.collection_path(()), payload)

    async def update(
        self,
        key: tuple[str, ...],
        payload: dict[str, Any],
        current: OrganizationState,
    ) -> dict[str, Any]:
        self._logger.info("Updating organization", slug=key[0])
        return await self.client.put_json(self._organization_path(key), payload)

    async def delete(self, key: tuple[str, ...]) -> None:
        self._logger.info("Deleting organization", slug=key[0])
        await self.client.delete(self._organization_path(key))
