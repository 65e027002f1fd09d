"""GitHub repository resource for the Sentry provider."""

from collections.abc import Mapping
from typing import Any

from sentry_provider.resources.base import (
    ResourceState,
    SentryResource,
    require,
    translates_remote,
)

GITHUB_PROVIDER = "integrations:github"


class GithubRepositoryState(ResourceState):
    """A GitHub repository connected through an installed integration."""

    read_only = frozenset({"internal_id", "name", "url", "status"})

    organization: str
    integration_id: str
    identifier: str
    internal_id: str | None = None
    name: str | None = None
    url: str | None = None
    status: str | None = None


class GithubRepositoryResource(SentryResource[GithubRepositoryState]):
    """Gateway and translator for organization GitHub repositories.

    Repositories cannot be edited; any change means replacing them. The
    organization listing is the only read endpoint.
    """

    kind = "github_repository"
    state_model = GithubRepositoryState
    id_arity = 2
    updatable = False

    def local_id(self, state: GithubRepositoryState) -> str | None:
        return state.internal_id

    def collection_path(self, parent: tuple[str, ...]) -> str:
        (organization,) = parent
        return f"0/organizations/{organization}/repos/"

    def _repository_path(self, key: tuple[str, ...]) -> str:
        organization, repository_id = key
        return f"0/organizations/{organization}/repos/{repository_id}/"

    def to_payload(self, state: GithubRepositoryState) -> dict[str, Any]:
        return {
            "installation": state.integration_id,
            "identifier": state.identifier,
        }

    @translates_remote
    def from_remote(
        self,
        remote: Mapping[str, Any],
        parent: tuple[str, ...],
    ) -> GithubRepositoryState:
        return GithubRepositoryState(
            organization=parent[0],
            integration_id=str(require(remote, "integrationId", self.kind)),
            identifier=require(remote, "externalSlug", self.kind),
            internal_id=str(require(remote, "id", self.kind)),
            name=remote.get("name"),
            url=remote.get("url"),
            status=remote.get("status"),
        )

    async def fetch(self, key: tuple[str, ...]) -> dict[str, Any] | None:
        organization, repository_id = key
        return await self._find_in_listing(
            (organization,),
            lambda item: str(item.get("id")) == repository_id,
        )

    async def create(
        self,
        state: GithubRepositoryState,
        payload: dict[str, Any],
    ) -> dict[str, Any]:
        self._logger.info(
            "Connecting GitHub repository",
            organization=state.organization,
            identifier=state.identifier,
        )
        return await self.client.post_json(
            self.collection_path(self.parent_of(state)),
            {"provider": GITHUB_PROVIDER, **payload},
        )

    async def delete(self, key: tuple[str, ...]) -> None:
        self._logger.info("Disconnecting GitHub repository", organization=key[0], repository_id=key[1])
        await self.client.delete(self._repository_path(key))
