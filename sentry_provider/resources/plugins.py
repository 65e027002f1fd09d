"""Legacy project plugin resource for the Sentry provider."""

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


class PluginState(ResourceState):
    """An enabled plugin on a project, with its configuration values."""

    path_fields = frozenset({"organization", "project", "plugin"})

    organization: str
    project: str
    plugin: str
    config: dict[str, Any] = Field(default_factory=dict)


def config_from_remote(fields: Any) -> dict[str, Any]:
    """Flatten Sentry's plugin config field list into ``{name: value}``.

    Fields without a value are dropped, as they are when sending.
    """
    if isinstance(fields, Mapping):
        return {k: v for k, v in fields.items() if v is not None}
    config = {}
    for field in fields or []:
        name = require(field, "name", "plugin config field")
        value = field.get("value")
        if value is not None:
            config[name] = value
    return config


class PluginResource(SentryResource[PluginState]):
    """Gateway and translator for legacy project plugins.

    A plugin exists while it is enabled. Creation enables it and then
    writes the configuration; deletion disables it.
    """

    kind = "plugin"
    state_model = PluginState
    id_arity = 3

    def parent_of(self, state: PluginState) -> tuple[str, ...]:
        return (state.organization, state.project)

    def local_id(self, state: PluginState) -> str | None:
        return state.plugin

    def collection_path(self, parent: tuple[str, ...]) -> str:
        organization, project = parent
        return f"0/projects/{organization}/{project}/plugins/"

    def _plugin_path(self, key: tuple[str, ...]) -> str:
        organization, project, plugin = key
        return f"0/projects/{organization}/{project}/plugins/{plugin}/"

    def to_payload(self, state: PluginState) -> dict[str, Any]:
        return {"config": {k: v for k, v in state.config.items() if v is not None}}

    @translates_remote
    def from_remote(self, remote: Mapping[str, Any], parent: tuple[str, ...]) -> PluginState:
        organization, project = parent
        return PluginState(
            organization=organization,
            project=project,
            plugin=require(remote, "id", self.kind),
            config=config_from_remote(remote.get("config")),
        )

    async def fetch(self, key: tuple[str, ...]) -> dict[str, Any] | None:
        remote = await self._get_or_none(self._plugin_path(key))
        if remote is None or not remote.get("enabled", False):
            return None
        return remote

    async def create(self, state: PluginState, payload: dict[str, Any]) -> dict[str, Any]:
        key = self.key_for(state)
        self._logger.info("Enabling plugin", organization=key[0], project=key[1], plugin=key[2])
        await self.client.post_json(self._plugin_path(key))
        try:
            if payload.get("config"):
                await self.client.put_json(self._plugin_path(key), payload["config"])
            return await self.client.get_json(self._plugin_path(key))
        except APIError as e:
            # The plugin is already enabled at this point.
            e.add_context(self.kind, identity.encode(key))
            raise

    async def update(
        self,
        key: tuple[str, ...],
        payload: dict[str, Any],
        current: PluginState,
    ) -> dict[str, Any]:
        self._logger.info("Configuring plugin", organization=key[0], project=key[1], plugin=key[2])
        await self.client.put_json(self._plugin_path(key), payload.get("config", {}))
        return await self.client.get_json(self._plugin_path(key))

    async def delete(self, key: tuple[str, ...]) -> None:
        self._logger.info("Disabling plugin", organization=key[0], project=key[1], plugin=key[2])
        await self.client.delete(self._plugin_path(key))
