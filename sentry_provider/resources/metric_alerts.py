"""Metric alert resource for the Sentry provider."""

from collections.abc import Mapping
from typing import Any

from pydantic import Field

from sentry_provider.clients.exceptions import UnexpectedShapeError
from sentry_provider.resources.base import (
    NestedState,
    ResourceState,
    SentryResource,
    require,
    translates_remote,
)


class TriggerAction(NestedState):
    type: str
    target_type: str = Field(..., alias="targetType")
    target_identifier: str | None = Field(default=None, alias="targetIdentifier")
    integration_id: int | None = Field(default=None, alias="integrationId")
    input_channel_id: str | None = Field(default=None, alias="inputChannelId")


class Trigger(NestedState):
    label: str
    alert_threshold: float = Field(..., alias="alertThreshold")
    resolve_threshold: float | None = Field(default=None, alias="resolveThreshold")
    threshold_type: int | None = Field(default=None, ge=0, le=1, alias="thresholdType")
    actions: list[TriggerAction] = Field(default_factory=list)


class MetricAlertState(ResourceState):
    """A metric alert rule scoped to one project.

    Triggers and each trigger's actions are ordered; Sentry evaluates them
    in the order given.
    """

    read_only = frozenset({"internal_id"})
    path_fields = frozenset({"organization", "project"})

    organization: str
    project: str
    name: str
    aggregate: str
    time_window: float = Field(..., gt=0, alias="timeWindow")
    query: str = ""
    dataset: str | None = None
    event_types: list[str] | None = Field(default=None, alias="eventTypes")
    environment: str | None = None
    threshold_type: int | None = Field(default=None, ge=0, le=1, alias="thresholdType")
    resolve_threshold: float | None = Field(default=None, alias="resolveThreshold")
    owner: str | None = None
    triggers: list[Trigger] = Field(..., min_length=1)
    internal_id: str | None = None


def _action_from_remote(remote: Mapping[str, Any]) -> TriggerAction:
    integration_id = remote.get("integrationId")
    target_identifier = remote.get("targetIdentifier")
    return TriggerAction(
        type=require(remote, "type", "metric alert action"),
        targetType=require(remote, "targetType", "metric alert action"),
        targetIdentifier=str(target_identifier) if target_identifier is not None else None,
        integrationId=int(integration_id) if integration_id is not None else None,
        inputChannelId=remote.get("inputChannelId"),
    )


def _trigger_from_remote(remote: Mapping[str, Any]) -> Trigger:
    return Trigger(
        label=require(remote, "label", "metric alert trigger"),
        alertThreshold=require(remote, "alertThreshold", "metric alert trigger"),
        resolveThreshold=remote.get("resolveThreshold"),
        thresholdType=remote.get("thresholdType"),
        actions=[_action_from_remote(a) for a in remote.get("actions") or []],
    )


class MetricAlertResource(SentryResource[MetricAlertState]):
    """Gateway and translator for metric alert rules.

    Rules are addressed as ``organization/project/id``. The request body
    also carries the project list Sentry expects alongside the path.
    """

    kind = "metric_alert"
    state_model = MetricAlertState
    id_arity = 3
    server_defaults = {"dataset": "events", "threshold_type": 0, "query": ""}

    def parent_of(self, state: MetricAlertState) -> tuple[str, ...]:
        return (state.organization, state.project)

    def local_id(self, state: MetricAlertState) -> str | None:
        return state.internal_id

    def collection_path(self, parent: tuple[str, ...]) -> str:
        if len(parent) == 1:
            (organization,) = parent
            return f"0/organizations/{organization}/alert-rules/"
        organization, project = parent
        return f"0/projects/{organization}/{project}/alert-rules/"

    def _rule_path(self, key: tuple[str, ...]) -> str:
        organization, project, rule_id = key
        return f"0/projects/{organization}/{project}/alert-rules/{rule_id}/"

    @translates_remote
    def from_remote(
        self,
        remote: Mapping[str, Any],
        parent: tuple[str, ...],
    ) -> MetricAlertState:
        if len(parent) == 2:
            organization, project = parent
        else:
            organization = parent[0]
            projects = require(remote, "projects", self.kind)
            if not projects:
                raise UnexpectedShapeError("Sentry metric_alert response has an empty project list")
            project = projects[0]

        return MetricAlertState(
            organization=organization,
            project=project,
            name=require(remote, "name", self.kind),
            aggregate=require(remote, "aggregate", self.kind),
            timeWindow=require(remote, "timeWindow", self.kind),
            query=remote.get("query") or "",
            dataset=remote.get("dataset"),
            eventTypes=remote.get("eventTypes"),
            environment=remote.get("environment"),
            thresholdType=remote.get("thresholdType"),
            resolveThreshold=remote.get("resolveThreshold"),
            owner=remote.get("owner"),
            triggers=[_trigger_from_remote(t) for t in require(remote, "triggers", self.kind)],
            internal_id=str(require(remote, "id", self.kind)),
        )

    def _body(self, project: str, payload: Mapping[str, Any]) -> dict[str, Any]:
        return {**payload, "projects": [project]}

    async def fetch(self, key: tuple[str, ...]) -> dict[str, Any] | None:
        return await self._get_or_none(self._rule_path(key))

    async def create(self, state: MetricAlertState, payload: dict[str, Any]) -> dict[str, Any]:
        self._logger.info(
            "Creating metric alert",
            organization=state.organization,
            project=state.project,
            name=state.name,
            trigger_count=len(state.triggers),
        )
        return await self.client.post_json(
            self.collection_path(self.parent_of(state)),
            self._body(state.project, payload),
        )

    async def update(
        self,
        key: tuple[str, ...],
        payload: dict[str, Any],
        current: MetricAlertState,
    ) -> dict[str, Any]:
        self._logger.info("Updating metric alert", organization=key[0], project=key[1], rule_id=key[2])
        return await self.client.put_json(self._rule_path(key), self._body(key[1], payload))

    async def delete(self, key: tuple[str, ...]) -> None:
        self._logger.info("Deleting metric alert", organization=key[0], project=key[1], rule_id=key[2])
        await self.client.delete(self._rule_path(key))
