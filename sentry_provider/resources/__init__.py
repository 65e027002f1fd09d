"""Resource kinds managed by the Sentry provider."""

from .base import NestedState, ResourceState, SentryResource
from .code_mappings import CodeMappingResource, CodeMappingState
from .dashboards import DashboardResource, DashboardState
from .members import MemberResource, MemberState
from .metric_alerts import MetricAlertResource, MetricAlertState
from .organizations import OrganizationResource, OrganizationState
from .plugins import PluginResource, PluginState
from .projects import ProjectResource, ProjectState
from .repositories import GithubRepositoryResource, GithubRepositoryState
from .teams import TeamResource, TeamState

__all__ = [
    "CodeMappingResource",
    "CodeMappingState",
    "DashboardResource",
    "DashboardState",
    "GithubRepositoryResource",
    "GithubRepositoryState",
    "MemberResource",
    "MemberState",
    "MetricAlertResource",
    "MetricAlertState",
    "NestedState",
    "OrganizationResource",
    "OrganizationState",
    "PluginResource",
    "PluginState",
    "ProjectResource",
    "ProjectState",
    "ResourceState",
    "SentryResource",
    "TeamResource",
    "TeamState",
]
