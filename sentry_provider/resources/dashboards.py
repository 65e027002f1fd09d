"""Dashboard resource for the Sentry provider."""

from collections.abc import Mapping
from typing import Any

from pydantic import Field

from sentry_provider.resources.base import (
    NestedState,
    ResourceState,
    SentryResource,
    require,
    translates_remote,
)


class WidgetQuery(NestedState):
    name: str | None = None
    fields: list[str] | None = None
    aggregates: list[str] | None = None
    columns: list[str] | None = None
    field_aliases: list[str] | None = Field(default=None, alias="fieldAliases")
    conditions: str | None = None
    orderby: str | None = None


class WidgetLayout(NestedState):
    x: int = Field(..., ge=0)
    y: int = Field(..., ge=0)
    w: int = Field(..., ge=1)
    h: int = Field(..., ge=1)
    min_h: int | None = Field(default=None, alias="minH")


class Widget(NestedState):
    title: str
    display_type: str = Field(..., alias="displayType")
    widget_type: str | None = Field(default=None, alias="widgetType")
    interval: str | None = None
    limit: int | None = Field(default=None, ge=1, le=10)
    queries: list[WidgetQuery] | None = None
    layout: WidgetLayout | None = None


class DashboardState(ResourceState):
    """A custom dashboard; widgets and their queries keep declared order.

    Leaving ``widgets`` unset keeps whatever widgets the dashboard has.
    """

    read_only = frozenset({"internal_id"})

    organization: str
    title: str
    widgets: list[Widget] | None = None
    internal_id: str | None = None


def _query_from_remote(remote: Mapping[str, Any]) -> WidgetQuery:
    return WidgetQuery(
        name=remote.get("name"),
        fields=remote.get("fields"),
        aggregates=remote.get("aggregates"),
        columns=remote.get("columns"),
        fieldAliases=remote.get("fieldAliases"),
        conditions=remote.get("conditions"),
        orderby=remote.get("orderby"),
    )


def _layout_from_remote(remote: Mapping[str, Any] | None) -> WidgetLayout | None:
    if not remote:
        return None
    return WidgetLayout(
        x=require(remote, "x", "dashboard widget layout"),
        y=require(remote, "y", "dashboard widget layout"),
        w=require(remote, "w", "dashboard widget layout"),
        h=require(remote, "h", "dashboard widget layout"),
        minH=remote.get("minH"),
    )


def _widget_from_remote(remote: Mapping[str, Any]) -> Widget:
    return Widget(
        title=require(remote, "title", "dashboard widget"),
        displayType=require(remote, "displayType", "dashboard widget"),
        widgetType=remote.get("widgetType"),
        interval=remote.get("interval"),
        limit=remote.get("limit"),
        queries=[_query_from_remote(q) for q in remote.get("queries") or []],
        layout=_layout_from_remote(remote.get("layout")),
    )


class DashboardResource(SentryResource[DashboardState]):
    """Gateway and translator for organization dashboards.

    A PUT that carries widgets replaces the whole widget list, so updates
    send the complete desired dashboard rather than only changed widgets.
    """

    kind = "dashboard"
    state_model = DashboardState
    id_arity = 2

    def local_id(self, state: DashboardState) -> str | None:
        return state.internal_id

    def collection_path(self, parent: tuple[str, ...]) -> str:
        (organization,) = parent
        return f"0/organizations/{organization}/dashboards/"

    def _dashboard_path(self, key: tuple[str, ...]) -> str:
        organization, dashboard_id = key
        return f"0/organizations/{organization}/dashboards/{dashboard_id}/"

    @translates_remote
    def from_remote(
        self,
        remote: Mapping[str, Any],
        parent: tuple[str, ...],
    ) -> DashboardState:
        return DashboardState(
            organization=parent[0],
            title=require(remote, "title", self.kind),
            widgets=[_widget_from_remote(w) for w in remote.get("widgets") or []],
            internal_id=str(require(remote, "id", self.kind)),
        )

    async def fetch(self, key: tuple[str, ...]) -> dict[str, Any] | None:
        return await self._get_or_none(self._dashboard_path(key))

    async def create(self, state: DashboardState, payload: dict[str, Any]) -> dict[str, Any]:
        self._logger.info(
            "Creating dashboard",
            organization=state.organization,
            title=state.title,
            widget_count=len(state.widgets or []),
        )
        return await self.client.post_json(self.collection_path(self.parent_of(state)), payload)

    async def update(
        self,
        key: tuple[str, ...],
        payload: dict[str, Any],
        current: DashboardState,
    ) -> dict[str, Any]:
        self._logger.info("Updating dashboard", organization=key[0], dashboard_id=key[1])
        return await self.client.put_json(self._dashboard_path(key), payload)

    async def delete(self, key: tuple[str, ...]) -> None:
        self._logger.info("Deleting dashboard", organization=key[0], dashboard_id=key[1])
        await self.client.delete(self._dashboard_path(key))
