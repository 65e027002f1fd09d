"""Organization member resource for the Sentry provider."""

from collections.abc import Mapping
from typing import Any

from pydantic import field_validator

from sentry_provider.resources.base import (
    ResourceState,
    SentryResource,
    require,
    translates_remote,
)

VALID_ROLES = frozenset({"member", "admin", "manager", "owner", "billing"})


class MemberState(ResourceState):
    """An organization member or pending invite.

    Team memberships form a set; they are kept sorted so that the order
    Sentry reports them in never shows up as a change. Leaving ``teams``
    unset keeps the memberships the member already has.
    """

    read_only = frozenset({"internal_id", "pending", "expired"})

    organization: str
    email: str
    role: str
    teams: list[str] | None = None
    internal_id: str | None = None
    pending: bool | None = None
    expired: bool | None = None

    @field_validator("role")
    @classmethod
    def validate_role(cls, v: str) -> str:
        """Validate organization role."""
        if v not in VALID_ROLES:
            raise ValueError(f"Role must be one of: {', '.join(sorted(VALID_ROLES))}")
        return v

    @field_validator("teams")
    @classmethod
    def sort_teams(cls, v: list[str] | None) -> list[str] | None:
        if v is None:
            return v
        return sorted(set(v))


class MemberResource(SentryResource[MemberState]):
    """Gateway and translator for organization members.

    The email identifies the invite and cannot be changed afterwards.
    """

    kind = "member"
    state_model = MemberState
    id_arity = 2
    immutable_fields = frozenset({"email"})

    def local_id(self, state: MemberState) -> str | None:
        return state.internal_id

    def collection_path(self, parent: tuple[str, ...]) -> str:
        (organization,) = parent
        return f"0/organizations/{organization}/members/"

    def _member_path(self, key: tuple[str, ...]) -> str:
        organization, member_id = key
        return f"0/organizations/{organization}/members/{member_id}/"

    @translates_remote
    def from_remote(self, remote: Mapping[str, Any], parent: tuple[str, ...]) -> MemberState:
        # Newer API versions report the role as orgRole.
        role = remote.get("orgRole") or require(remote, "role", self.kind)
        return MemberState(
            organization=parent[0],
            email=require(remote, "email", self.kind),
            role=role,
            teams=remote.get("teams") or [],
            internal_id=str(require(remote, "id", self.kind)),
            pending=remote.get("pending"),
            expired=remote.get("expired"),
        )

    async def fetch(self, key: tuple[str, ...]) -> dict[str, Any] | None:
        return await self._get_or_none(self._member_path(key))

    async def create(self, state: MemberState, payload: dict[str, Any]) -> dict[str, Any]:
        self._logger.info(
            "Inviting organization member",
            organization=state.organization,
            role=state.role,
            team_count=len(state.teams or []),
        )
        return await self.client.post_json(self.collection_path(self.parent_of(state)), payload)

    async def update(
        self,
        key: tuple[str, ...],
        payload: dict[str, Any],
        current: MemberState,
    ) -> dict[str, Any]:
        body = {k: v for k, v in payload.items() if k != "email"}
        self._logger.info("Updating organization member", organization=key[0], member_id=key[1])
        return await self.client.put_json(self._member_path(key), body)

    async def delete(self, key: tuple[str, ...]) -> None:
        self._logger.info("Removing organization member", organization=key[0], member_id=key[1])
        await self.client.delete(self._member_path(key))
