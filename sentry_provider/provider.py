"""Entry point the host engine uses to reconcile Sentry resources."""

from typing import Any

import httpx
import structlog

from sentry_provider.clients.sentry import SentryClient
from sentry_provider.config.models import ProviderConfig
from sentry_provider.core.reconciler import Reconciler
from sentry_provider.resources import (
    CodeMappingResource,
    CodeMappingState,
    DashboardResource,
    DashboardState,
    GithubRepositoryResource,
    GithubRepositoryState,
    MemberResource,
    MemberState,
    MetricAlertResource,
    MetricAlertState,
    OrganizationResource,
    OrganizationState,
    PluginResource,
    PluginState,
    ProjectResource,
    ProjectState,
    TeamResource,
    TeamState,
)

logger = structlog.get_logger(__name__)


class SentryProvider:
    """One reconciler per resource kind, sharing a single API client.

    Example:
        async with SentryProvider(ProviderConfig.from_env()) as provider:
            result = await provider.teams.create({"organization": "acme", "name": "core-team"})
    """

    def __init__(
        self,
        config: ProviderConfig,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize provider.

        Args:
            config: Validated provider configuration
            transport: Optional httpx transport, used to stub the network
        """
        self.config = config
        self.client = SentryClient.from_config(config, transport=transport)

        self.organizations: Reconciler[OrganizationState] = Reconciler(
            OrganizationResource(self.client)
        )
        self.teams: Reconciler[TeamState] = Reconciler(TeamResource(self.client))
        self.projects: Reconciler[ProjectState] = Reconciler(ProjectResource(self.client))
        self.dashboards: Reconciler[DashboardState] = Reconciler(DashboardResource(self.client))
        self.metric_alerts: Reconciler[MetricAlertState] = Reconciler(
            MetricAlertResource(self.client)
        )
        self.code_mappings: Reconciler[CodeMappingState] = Reconciler(
            CodeMappingResource(self.client)
        )
        self.members: Reconciler[MemberState] = Reconciler(MemberResource(self.client))
        self.github_repositories: Reconciler[GithubRepositoryState] = Reconciler(
            GithubRepositoryResource(self.client)
        )
        self.plugins: Reconciler[PluginState] = Reconciler(PluginResource(self.client))

        logger.debug("Sentry provider configured", base_url=config.api_url)

    async def __aenter__(self) -> "SentryProvider":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self.client.close()

    def get_stats(self) -> dict[str, Any]:
        """Request statistics of the shared client."""
        return self.client.get_stats()
