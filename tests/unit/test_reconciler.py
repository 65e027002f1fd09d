"""Unit tests for the reconciler state machine."""

import asyncio

import pytest
from pydantic import ValidationError

from sentry_provider.clients.exceptions import (
    DeadlineExceededError,
    MalformedIDError,
    RateLimitError,
    RemoteError,
    ReplacementRequiredError,
    ResourceNotFoundError,
    UnexpectedShapeError,
)
from sentry_provider.clients.sentry import Page
from sentry_provider.core.reconciler import LifecycleState, Reconciler
from sentry_provider.resources.members import MemberResource
from sentry_provider.resources.repositories import GithubRepositoryResource
from sentry_provider.resources.teams import TeamResource

TEAM_ID = "acme/core-team"
TEAM_PATH = "0/teams/acme/core-team/"
REMOTE_TEAM = {
    "id": "42",
    "slug": "core-team",
    "name": "core-team",
    "hasAccess": True,
    "isMember": True,
}


def not_found():
    return ResourceNotFoundError("Not found", status_code=404)


@pytest.fixture
def teams(mock_client):
    """Create a team reconciler over the mock client."""
    return Reconciler(TeamResource(mock_client))


@pytest.mark.asyncio
class TestCreate:
    """Test ABSENT -> CREATING -> PRESENT."""

    async def test_create_team(self, teams, mock_client):
        mock_client.post_json.return_value = dict(REMOTE_TEAM)

        result = await teams.create({"organization": "acme", "name": "core-team"})

        assert result.id == TEAM_ID
        assert result.status == LifecycleState.PRESENT
        assert result.state.name == "core-team"
        assert result.state.internal_id == "42"
        mock_client.post_json.assert_awaited_once_with(
            "0/organizations/acme/teams/", {"name": "core-team"}
        )

    async def test_create_rejects_unknown_attributes(self, teams, mock_client):
        with pytest.raises(ValidationError):
            await teams.create({"organization": "acme", "name": "core-team", "colour": "red"})

        mock_client.post_json.assert_not_awaited()

    async def test_create_failure_carries_context(self, teams, mock_client):
        mock_client.post_json.side_effect = RemoteError("Bad request", status_code=400)

        with pytest.raises(RemoteError) as exc_info:
            await teams.create({"organization": "acme", "name": "core-team"})

        assert exc_info.value.resource_type == "team"

    async def test_create_surfaces_exhausted_rate_limit(self, teams, mock_client):
        mock_client.post_json.side_effect = RateLimitError("Rate limit exceeded", status_code=429)

        with pytest.raises(RateLimitError):
            await teams.create({"organization": "acme", "name": "core-team"})


@pytest.mark.asyncio
class TestRead:
    """Test reading remote state."""

    async def test_read_returns_fetched_state(self, teams, mock_client):
        mock_client.get_json.return_value = dict(REMOTE_TEAM, name="Renamed")

        result = await teams.read(TEAM_ID)

        assert result.status == LifecycleState.PRESENT
        assert result.state.name == "Renamed"
        mock_client.get_json.assert_awaited_once_with(TEAM_PATH)

    async def test_read_reports_drift_but_keeps_remote(self, teams, mock_client):
        mock_client.post_json.return_value = dict(REMOTE_TEAM)
        created = await teams.create({"organization": "acme", "name": "core-team"})
        mock_client.get_json.return_value = dict(REMOTE_TEAM, name="Renamed")

        result = await teams.read(TEAM_ID, previous=created.state)

        assert set(result.drift.changes) == {"name"}
        assert result.state.name == "Renamed"

    async def test_read_missing_is_absent(self, teams, mock_client):
        mock_client.get_json.side_effect = not_found()

        result = await teams.read(TEAM_ID, previous=None)

        assert result.status == LifecycleState.ABSENT
        assert result.state is None
        assert result.exists is False

    async def test_read_missing_with_previous_requires_recreate(self, teams, mock_client):
        mock_client.post_json.return_value = dict(REMOTE_TEAM)
        created = await teams.create({"organization": "acme", "name": "core-team"})
        mock_client.get_json.side_effect = not_found()

        result = await teams.read(TEAM_ID, previous=created.state)

        assert result.drift.recreate_required is True

    async def test_read_error_carries_context(self, teams, mock_client):
        mock_client.get_json.side_effect = RemoteError("Server error", status_code=500)

        with pytest.raises(RemoteError) as exc_info:
            await teams.read(TEAM_ID)

        assert exc_info.value.resource_type == "team"
        assert exc_info.value.resource_id == TEAM_ID
        assert "team acme/core-team" in str(exc_info.value)

    async def test_read_invalid_remote_value(self, mock_client):
        members = Reconciler(MemberResource(mock_client))
        mock_client.get_json.return_value = {
            "id": "7",
            "email": "dev@example.com",
            "orgRole": "wizard",
            "teams": [],
        }

        with pytest.raises(UnexpectedShapeError, match="role") as exc_info:
            await members.read("acme/7")

        assert exc_info.value.resource_type == "member"
        assert exc_info.value.resource_id == "acme/7"

    async def test_read_malformed_id(self, teams, mock_client):
        with pytest.raises(MalformedIDError):
            await teams.read("acme")

        mock_client.get_json.assert_not_awaited()


@pytest.mark.asyncio
class TestUpdate:
    """Test PRESENT -> UPDATING -> PRESENT."""

    async def test_unchanged_update_issues_no_writes(self, teams, mock_client):
        mock_client.get_json.return_value = dict(REMOTE_TEAM)

        result = await teams.update(TEAM_ID, {"organization": "acme", "name": "core-team"})

        assert result.status == LifecycleState.PRESENT
        assert result.writes == 0
        mock_client.put_json.assert_not_awaited()

    async def test_update_sends_changed_state(self, teams, mock_client):
        mock_client.get_json.return_value = dict(REMOTE_TEAM)
        mock_client.put_json.return_value = dict(REMOTE_TEAM, name="Core Team")

        result = await teams.update(TEAM_ID, {"organization": "acme", "name": "Core Team"})

        mock_client.put_json.assert_awaited_once_with(TEAM_PATH, {"name": "Core Team"})
        assert result.state.name == "Core Team"
        assert result.id == TEAM_ID

    async def test_slug_change_moves_identifier(self, teams, mock_client):
        mock_client.get_json.return_value = dict(REMOTE_TEAM)
        mock_client.put_json.return_value = dict(REMOTE_TEAM, slug="platform")

        result = await teams.update(
            TEAM_ID, {"organization": "acme", "name": "core-team", "slug": "platform"}
        )

        assert result.id == "acme/platform"

    async def test_update_missing_is_not_found(self, teams, mock_client):
        mock_client.get_json.side_effect = not_found()

        with pytest.raises(ResourceNotFoundError) as exc_info:
            await teams.update(TEAM_ID, {"organization": "acme", "name": "core-team"})

        assert exc_info.value.resource_id == TEAM_ID
        mock_client.put_json.assert_not_awaited()

    async def test_moving_organization_requires_replacement(self, teams, mock_client):
        mock_client.get_json.return_value = dict(REMOTE_TEAM)

        with pytest.raises(ReplacementRequiredError):
            await teams.update(TEAM_ID, {"organization": "other", "name": "core-team"})

    async def test_immutable_field_requires_replacement(self, mock_client):
        members = Reconciler(MemberResource(mock_client))
        mock_client.get_json.return_value = {
            "id": "7",
            "email": "dev@example.com",
            "role": "member",
            "teams": [],
        }

        with pytest.raises(ReplacementRequiredError) as exc_info:
            await members.update(
                "acme/7",
                {"organization": "acme", "email": "other@example.com", "role": "member"},
            )

        assert exc_info.value.fields == ["email"]
        mock_client.put_json.assert_not_awaited()

    async def test_member_teams_left_unset_are_kept(self, mock_client):
        members = Reconciler(MemberResource(mock_client))
        mock_client.get_json.return_value = {
            "id": "7",
            "email": "dev@example.com",
            "role": "member",
            "teams": ["backend"],
        }

        result = await members.update(
            "acme/7", {"organization": "acme", "email": "dev@example.com", "role": "member"}
        )

        assert result.writes == 0
        assert result.state.teams == ["backend"]
        mock_client.put_json.assert_not_awaited()

    async def test_member_role_change_leaves_teams_out(self, mock_client):
        members = Reconciler(MemberResource(mock_client))
        remote = {"id": "7", "email": "dev@example.com", "role": "member", "teams": ["backend"]}
        mock_client.get_json.return_value = remote
        mock_client.put_json.return_value = dict(remote, role="admin")

        await members.update(
            "acme/7", {"organization": "acme", "email": "dev@example.com", "role": "admin"}
        )

        mock_client.put_json.assert_awaited_once_with(
            "0/organizations/acme/members/7/", {"role": "admin"}
        )

    async def test_non_updatable_kind_requires_replacement(self, mock_client):
        repositories = Reconciler(GithubRepositoryResource(mock_client))
        remote = {"id": "9", "integrationId": "5", "externalSlug": "acme/web", "name": "acme/web"}

        async def listing(path):
            yield Page(items=[remote])

        mock_client.iter_pages = listing

        with pytest.raises(ReplacementRequiredError):
            await repositories.update(
                "acme/9",
                {"organization": "acme", "integration_id": "5", "identifier": "acme/api"},
            )


@pytest.mark.asyncio
class TestDelete:
    """Test PRESENT -> DELETING -> ABSENT."""

    async def test_delete_present(self, teams, mock_client):
        mock_client.get_json.return_value = dict(REMOTE_TEAM)

        result = await teams.delete(TEAM_ID)

        assert result.status == LifecycleState.ABSENT
        mock_client.delete.assert_awaited_once_with(TEAM_PATH)

    async def test_delete_absent_issues_no_delete(self, teams, mock_client):
        mock_client.get_json.side_effect = not_found()

        result = await teams.delete(TEAM_ID)

        assert result.status == LifecycleState.ABSENT
        assert result.writes == 0
        mock_client.delete.assert_not_awaited()

    async def test_delete_racing_removal(self, teams, mock_client):
        mock_client.get_json.return_value = dict(REMOTE_TEAM)
        mock_client.delete.side_effect = not_found()

        result = await teams.delete(TEAM_ID)

        assert result.status == LifecycleState.ABSENT


@pytest.mark.asyncio
class TestImport:
    """Test attaching existing objects."""

    async def test_import_existing(self, teams, mock_client):
        mock_client.get_json.return_value = dict(REMOTE_TEAM)

        result = await teams.import_(TEAM_ID)

        assert result.id == TEAM_ID
        assert result.state.organization == "acme"

    async def test_import_missing(self, teams, mock_client):
        mock_client.get_json.side_effect = not_found()

        with pytest.raises(ResourceNotFoundError):
            await teams.import_(TEAM_ID)

    async def test_import_malformed(self, teams):
        with pytest.raises(MalformedIDError):
            await teams.import_("acme/core-team/extra")

    async def test_lookup_by_segments(self, teams, mock_client):
        mock_client.get_json.return_value = dict(REMOTE_TEAM)

        result = await teams.lookup("acme", "core-team")

        assert result.id == TEAM_ID
        mock_client.get_json.assert_awaited_once_with(TEAM_PATH)


@pytest.mark.asyncio
class TestDeadline:
    """Test caller deadlines."""

    async def test_deadline_exceeded_without_retry(self, teams, mock_client):
        async def slow(*args, **kwargs):
            await asyncio.sleep(5)

        mock_client.get_json.side_effect = slow

        with pytest.raises(DeadlineExceededError) as exc_info:
            await teams.read(TEAM_ID, timeout=0.01)

        assert mock_client.get_json.await_count == 1
        assert exc_info.value.resource_id == TEAM_ID

    async def test_deadline_mid_update(self, teams, mock_client):
        async def slow_put(*args, **kwargs):
            await asyncio.sleep(5)

        mock_client.get_json.return_value = dict(REMOTE_TEAM)
        mock_client.put_json.side_effect = slow_put

        with pytest.raises(DeadlineExceededError):
            await teams.update(TEAM_ID, {"organization": "acme", "name": "x"}, timeout=0.01)

        assert mock_client.put_json.await_count == 1
