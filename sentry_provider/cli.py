"""Command-line interface for inspecting Sentry resources through the provider."""

import asyncio
import sys
from enum import Enum
from pathlib import Path
from typing import Annotated

import structlog
import typer
from rich.console import Console
from rich.table import Table

from sentry_provider.clients.exceptions import APIError, ConfigurationError, IdentityError
from sentry_provider.config import ProviderConfig, find_config_file, load_config_from_path
from sentry_provider.core.reconciler import Reconciler
from sentry_provider.logging_setup import setup_logging
from sentry_provider.provider import SentryProvider

app = typer.Typer(
    name="sentry-provider",
    help="Inspect Sentry resources the way the provider sees them",
    add_completion=False,
)

console = Console()


class ResourceKind(str, Enum):
    organization = "organization"
    team = "team"
    project = "project"
    dashboard = "dashboard"
    metric_alert = "metric_alert"
    code_mapping = "code_mapping"
    member = "member"
    github_repository = "github_repository"
    plugin = "plugin"


# Scope segment counts accepted by `list`; other kinds take an organization.
ORGANIZATION_SCOPE = ((1,), "an organization")
LIST_SCOPES: dict[ResourceKind, tuple[tuple[int, ...], str]] = {
    ResourceKind.organization: ((0,), "no scope"),
    ResourceKind.metric_alert: ((1, 2), "an organization or organization/project"),
    ResourceKind.plugin: ((2,), "organization/project"),
}


def reconciler_for(provider: SentryProvider, kind: ResourceKind) -> Reconciler:
    """Return the provider's reconciler for ``kind``."""
    match kind:
        case ResourceKind.organization:
            return provider.organizations
        case ResourceKind.team:
            return provider.teams
        case ResourceKind.project:
            return provider.projects
        case ResourceKind.dashboard:
            return provider.dashboards
        case ResourceKind.metric_alert:
            return provider.metric_alerts
        case ResourceKind.code_mapping:
            return provider.code_mappings
        case ResourceKind.member:
            return provider.members
        case ResourceKind.github_repository:
            return provider.github_repositories
        case ResourceKind.plugin:
            return provider.plugins
    raise ValueError(f"Unknown resource kind: {kind}")


ConfigOption = Annotated[
    Path | None,
    typer.Option(
        "--config",
        "-c",
        help="Path to a YAML or JSON configuration file",
    ),
]
LogLevelOption = Annotated[
    str,
    typer.Option(
        "--log-level",
        "-l",
        help="Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    ),
]


def _load_config(config_path: Path | None) -> ProviderConfig:
    config_path = config_path or find_config_file()
    if config_path:
        return load_config_from_path(config_path)
    return ProviderConfig.from_env()


@app.command("check-config")
def check_config(
    config_path: ConfigOption = None,
    log_level: LogLevelOption = "WARNING",
) -> None:
    """Validate configuration and test that the token is accepted."""
    setup_logging(log_level, "text")
    logger = structlog.get_logger(__name__)

    try:
        console.print("[blue]Validating configuration...[/blue]")
        config = _load_config(config_path)
        console.print(f"[green]✓[/green] Configuration loaded (base URL {config.api_url})")

        console.print("[blue]Testing connectivity...[/blue]")
        asyncio.run(_test_connectivity(config))
        console.print("[green]✓[/green] Token accepted by Sentry")

    except (ConfigurationError, APIError) as e:
        console.print(f"[red]✗ Validation failed: {e}[/red]")
        logger.error("Validation failed", error=str(e))
        sys.exit(1)


async def _test_connectivity(config: ProviderConfig) -> None:
    async with SentryProvider(config) as provider:
        await provider.client.get_json("0/")


@app.command("import")
def import_resource(
    kind: Annotated[ResourceKind, typer.Argument(help="Resource kind")],
    resource_id: Annotated[str, typer.Argument(help="Composite identifier, e.g. acme/core-team")],
    config_path: ConfigOption = None,
    log_level: LogLevelOption = "WARNING",
) -> None:
    """Fetch one resource by identifier and print its canonical state."""
    setup_logging(log_level, "text")

    try:
        config = _load_config(config_path)
        result = asyncio.run(_import(config, kind, resource_id))
    except (ConfigurationError, APIError, IdentityError) as e:
        console.print(f"[red]✗ {e}[/red]")
        sys.exit(1)

    console.print(f"[green]✓[/green] {kind.value} [bold]{result.id}[/bold]")
    console.print_json(result.state.model_dump_json(by_alias=True))


async def _import(config: ProviderConfig, kind: ResourceKind, resource_id: str):
    async with SentryProvider(config) as provider:
        return await reconciler_for(provider, kind).import_(resource_id)


@app.command("list")
def list_resources(
    kind: Annotated[ResourceKind, typer.Argument(help="Resource kind")],
    scope: Annotated[
        str,
        typer.Argument(help="Parent identifier: organization, or organization/project for plugins"),
    ] = "",
    limit: Annotated[
        int | None,
        typer.Option("--limit", "-n", help="Stop after this many resources"),
    ] = None,
    config_path: ConfigOption = None,
    log_level: LogLevelOption = "WARNING",
) -> None:
    """List resources of one kind and print their identifiers."""
    setup_logging(log_level, "text")
    parent = tuple(segment for segment in scope.split("/") if segment)
    lengths, expected = LIST_SCOPES.get(kind, ORGANIZATION_SCOPE)
    if len(parent) not in lengths:
        console.print(f"[red]✗ Listing {kind.value} takes {expected}, got '{scope}'[/red]")
        sys.exit(1)

    try:
        config = _load_config(config_path)
        rows = asyncio.run(_list(config, kind, parent, limit))
    except (ConfigurationError, APIError, IdentityError) as e:
        console.print(f"[red]✗ {e}[/red]")
        sys.exit(1)

    table = Table(title=f"{kind.value} resources")
    table.add_column("ID", style="cyan")
    table.add_column("Name")
    for resource_id, name in rows:
        table.add_row(resource_id, name)
    console.print(table)
    console.print(f"{len(rows)} resource(s)")


async def _list(
    config: ProviderConfig,
    kind: ResourceKind,
    parent: tuple[str, ...],
    limit: int | None,
) -> list[tuple[str, str]]:
    rows: list[tuple[str, str]] = []
    async with SentryProvider(config) as provider:
        resource = reconciler_for(provider, kind).resource
        async for page in resource.iter_pages(*parent):
            for item in page.items:
                state = resource.from_remote(item, parent)
                name = item.get("name") or item.get("title") or item.get("email") or ""
                rows.append((resource.encode_id(state), str(name)))
                if limit and len(rows) >= limit:
                    return rows
    return rows


if __name__ == "__main__":
    app()
