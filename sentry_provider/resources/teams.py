"""Team resource for the Sentry provider."""

from collections.abc import Mapping
from typing import Any

from sentry_provider.resources.base import (
    ResourceState,
    SentryResource,
    require,
    translates_remote,
)


class TeamState(ResourceState):
    """A team inside an organization, addressed as ``organization/slug``."""

    read_only = frozenset({"internal_id", "has_access", "is_member"})

    organization: str
    name: str
    slug: str | None = None
    internal_id: str | None = None
    has_access: bool | None = None
    is_member: bool | None = None


class TeamResource(SentryResource[TeamState]):
    """Gateway and translator for Sentry teams.

    Teams are created through the organization's team collection but read,
    updated and deleted through ``0/teams/{organization}/{slug}/``. Omitting
    the slug lets Sentry derive it from the name.
    """

    kind = "team"
    state_model = TeamState
    id_arity = 2

    def local_id(self, state: TeamState) -> str | None:
        return state.slug

    def collection_path(self, parent: tuple[str, ...]) -> str:
        (organization,) = parent
        return f"0/organizations/{organization}/teams/"

    def _team_path(self, key: tuple[str, ...]) -> str:
        organization, slug = key
        return f"0/teams/{organization}/{slug}/"

    @translates_remote
    def from_remote(self, remote: Mapping[str, Any], parent: tuple[str, ...]) -> TeamState:
        return TeamState(
            organization=parent[0],
            name=require(remote, "name", self.kind),
            slug=require(remote, "slug", self.kind),
            internal_id=str(require(remote, "id", self.kind)),
            has_access=remote.get("hasAccess"),
            is_member=remote.get("isMember"),
        )

    async def fetch(self, key: tuple[str, ...]) -> dict[str, Any] | None:
        return await self._get_or_none(self._team_path(key))

    async def create(self, state: TeamState, payload: dict[str, Any]) -> dict[str, Any]:
        self._logger.info("Creating team", organization=state.organization, name=state.name)
        return await self.client.post_json(self.collection_path(self.parent_of(state)), payload)

    async def update(
        self,
        key: tuple[str, ...],
        payload: dict[str, Any],
        current: TeamState,
    ) -> dict[str, Any]:
        self._logger.info("Updating team", organization=key[0], slug=key[1])
        return await self.client.put_json(self._team_path(key), payload)

    async def delete(self, key: tuple[str, ...]) -> None:
        self._logger.info("Deleting team", organization=key[0], slug=key[1])
        await self.client.delete(self._team_path(key))
