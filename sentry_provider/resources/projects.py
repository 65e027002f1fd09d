"""Project resource for the Sentry provider."""

from collections.abc import Mapping
from typing import Any

from pydantic import Field

from sentry_provider import identity
from sentry_provider.clients.exceptions import APIError
from sentry_provider.resources.base import (
    ResourceState,
    SentryResource,
    require,
    translates_remote,
)


class ProjectState(ResourceState):
    """A project owned by one or more teams.

    ``teams`` is ordered: the first team owns the project at creation and
    the rest are linked afterwards in list order.
    """

    read_only = frozenset({"internal_id", "status"})

    organization: str
    name: str
    teams: list[str] = Field(..., min_length=1)
    slug: str | None = None
    platform: str | None = None
    resolve_age: int | None = Field(default=None, ge=0, alias="resolveAge")
    internal_id: str | None = None
    status: str | None = None


class ProjectResource(SentryResource[ProjectState]):
    """Gateway and translator for Sentry projects.

    Team ownership is managed through the project's team sub-resource, one
    request per link. Resolve age can only be set with a follow-up PUT.
    """

    kind = "project"
    state_model = ProjectState
    id_arity = 2
    server_defaults = {"platform": "other", "resolve_age": 0}

    BODY_FIELDS = ("name", "slug", "platform", "resolveAge")

    def local_id(self, state: ProjectState) -> str | None:
        return state.slug

    def collection_path(self, parent: tuple[str, ...]) -> str:
        (organization,) = parent
        return f"0/organizations/{organization}/projects/"

    def _project_path(self, key: tuple[str, ...]) -> str:
        organization, slug = key
        return f"0/projects/{organization}/{slug}/"

    def _team_link_path(self, key: tuple[str, ...], team: str) -> str:
        organization, slug = key
        return f"0/projects/{organization}/{slug}/teams/{team}/"

    @translates_remote
    def from_remote(self, remote: Mapping[str, Any], parent: tuple[str, ...]) -> ProjectState:
        teams = require(remote, "teams", self.kind)
        return ProjectState(
            organization=parent[0],
            name=require(remote, "name", self.kind),
            slug=require(remote, "slug", self.kind),
            teams=[require(team, "slug", self.kind) for team in teams],
            platform=remote.get("platform"),
            resolveAge=remote.get("resolveAge"),
            internal_id=str(require(remote, "id", self.kind)),
            status=remote.get("status"),
        )

    def _body(self, payload: Mapping[str, Any]) -> dict[str, Any]:
        return {k: payload[k] for k in self.BODY_FIELDS if k in payload}

    def changed_fields(
        self,
        desired_payload: Mapping[str, Any],
        current_payload: Mapping[str, Any],
    ) -> list[str]:
        # Team links have no order once created; Sentry lists them its own way.
        changed = super().changed_fields(desired_payload, current_payload)
        if "teams" in changed and sorted(desired_payload["teams"]) == sorted(
            current_payload.get("teams") or []
        ):
            changed.remove("teams")
        return changed

    async def fetch(self, key: tuple[str, ...]) -> dict[str, Any] | None:
        return await self._get_or_none(self._project_path(key))

    async def create(self, state: ProjectState, payload: dict[str, Any]) -> dict[str, Any]:
        """Create the project under its first team, then link the others.

        The project exists once the first POST succeeds. If a later team link
        or the resolve age PUT fails, the error carries the new project's
        identifier so the caller can import or delete it; nothing is rolled
        back.
        """
        organization = state.organization
        owner, *extra_teams = state.teams
        body = self._body(payload)
        resolve_age = body.pop("resolveAge", None)

        self._logger.info(
            "Creating project",
            organization=organization,
            name=state.name,
            team=owner,
        )
        created = await self.client.post_json(
            f"0/teams/{organization}/{owner}/projects/", body
        )
        key = (organization, require(created, "slug", self.kind))

        try:
            for team in extra_teams:
                await self.client.post_json(self._team_link_path(key, team))

            if resolve_age is not None:
                await self.client.put_json(self._project_path(key), {"resolveAge": resolve_age})

            if extra_teams or resolve_age is not None:
                return await self.client.get_json(self._project_path(key))
        except APIError as e:
            self._logger.error(
                "Project created but not fully configured",
                organization=organization,
                slug=key[1],
                error=str(e),
            )
            e.add_context(self.kind, identity.encode(key))
            raise
        return created

    async def update(
        self,
        key: tuple[str, ...],
        payload: dict[str, Any],
        current: ProjectState,
    ) -> dict[str, Any]:
        current_payload = self.to_payload(current)
        body = {
            k: v for k, v in self._body(payload).items() if current_payload.get(k) != v
        }

        if body:
            self._logger.info("Updating project", organization=key[0], slug=key[1], fields=sorted(body))
            updated = await self.client.put_json(self._project_path(key), body)
            key = (key[0], require(updated, "slug", self.kind))

        desired_teams = payload.get("teams", current.teams)
        for team in desired_teams:
            if team not in current.teams:
                self._logger.info("Adding team to project", slug=key[1], team=team)
                await self.client.post_json(self._team_link_path(key, team))
        for team in current.teams:
            if team not in desired_teams:
                self._logger.info("Removing team from project", slug=key[1], team=team)
                await self.client.delete(self._team_link_path(key, team))

        return await self.client.get_json(self._project_path(key))

    async def delete(self, key: tuple[str, ...]) -> None:
        self._logger.info("Deleting project", organization=key[0], slug=key[1])
        await self.client.delete(self._project_path(key))
