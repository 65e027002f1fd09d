"""Organization code mapping resource for the Sentry provider."""

from collections.abc import Mapping
from typing import Any

from pydantic import Field

from sentry_provider.resources.base import (
    ResourceState,
    SentryResource,
    require,
    translates_remote,
)


class CodeMappingState(ResourceState):
    """Maps a stack trace root in a project to a source root in a repository."""

    read_only = frozenset({"internal_id"})

    organization: str
    integration_id: str = Field(..., alias="integrationId")
    repository_id: str = Field(..., alias="repositoryId")
    project_id: str = Field(..., alias="projectId")
    default_branch: str = Field(..., alias="defaultBranch")
    stack_root: str = Field(..., alias="stackRoot")
    source_root: str = Field(..., alias="sourceRoot")
    internal_id: str | None = None


class CodeMappingResource(SentryResource[CodeMappingState]):
    """Gateway and translator for organization code mappings.

    Sentry has no endpoint for a single mapping, so ``fetch`` pages through
    the organization's mappings and stops at the first matching id.
    """

    kind = "code_mapping"
    state_model = CodeMappingState
    id_arity = 2

    def local_id(self, state: CodeMappingState) -> str | None:
        return state.internal_id

    def collection_path(self, parent: tuple[str, ...]) -> str:
        (organization,) = parent
        return f"0/organizations/{organization}/code-mappings/"

    def _mapping_path(self, key: tuple[str, ...]) -> str:
        organization, mapping_id = key
        return f"0/organizations/{organization}/code-mappings/{mapping_id}/"

    @translates_remote
    def from_remote(
        self,
        remote: Mapping[str, Any],
        parent: tuple[str, ...],
    ) -> CodeMappingState:
        # The listing nests the repository; write responses flatten it.
        repository_id = remote.get("repoId")
        if repository_id is None and isinstance(remote.get("repository"), Mapping):
            repository_id = remote["repository"].get("id")
        if repository_id is None:
            repository_id = require(remote, "repositoryId", self.kind)

        return CodeMappingState(
            organization=parent[0],
            integrationId=str(require(remote, "integrationId", self.kind)),
            repositoryId=str(repository_id),
            projectId=str(require(remote, "projectId", self.kind)),
            defaultBranch=require(remote, "defaultBranch", self.kind),
            stackRoot=require(remote, "stackRoot", self.kind),
            sourceRoot=require(remote, "sourceRoot", self.kind),
            internal_id=str(require(remote, "id", self.kind)),
        )

    async def fetch(self, key: tuple[str, ...]) -> dict[str, Any] | None:
        organization, mapping_id = key
        return await self._find_in_listing(
            (organization,),
            lambda item: str(item.get("id")) == mapping_id,
        )

    async def create(self, state: CodeMappingState, payload: dict[str, Any]) -> dict[str, Any]:
        self._logger.info(
            "Creating code mapping",
            organization=state.organization,
            project_id=state.project_id,
            stack_root=state.stack_root,
        )
        return await self.client.post_json(self.collection_path(self.parent_of(state)), payload)

    async def update(
        self,
        key: tuple[str, ...],
        payload: dict[str, Any],
        current: CodeMappingState,
    ) -> dict[str, Any]:
        self._logger.info("Updating code mapping", organization=key[0], mapping_id=key[1])
        return await self.client.put_json(self._mapping_path(key), payload)

    async def delete(self, key: tuple[str, ...]) -> None:
        self._logger.info("Deleting code mapping", organization=key[0], mapping_id=key[1])
        await self.client.delete(self._mapping_path(key))
