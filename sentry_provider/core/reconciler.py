"""Lifecycle reconciliation for a single Sentry resource kind.

The reconciler is what the host engine talks to. For every call it
validates the desired state, reads the remote object through the kind's
gateway, decides which writes (if any) are needed, and hands back the
composite identifier with the canonical state Sentry reports.
"""

import asyncio
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any, Generic, TypeVar

import structlog

from sentry_provider import identity
from sentry_provider.clients.base import WriteTracker, track_writes
from sentry_provider.clients.exceptions import (
    APIError,
    DeadlineExceededError,
    ReplacementRequiredError,
    ResourceNotFoundError,
)
from sentry_provider.core.drift import DriftDetector, DriftReport
from sentry_provider.resources.base import ResourceState, SentryResource

logger = structlog.get_logger(__name__)

StateT = TypeVar("StateT", bound=ResourceState)


class LifecycleState(str, Enum):
    """Where a resource instance stands in its lifecycle."""

    ABSENT = "absent"
    CREATING = "creating"
    PRESENT = "present"
    UPDATING = "updating"
    DELETING = "deleting"


@dataclass(slots=True)
class ReconcileResult(Generic[StateT]):
    """Outcome of one reconciler call.

    Attributes:
        id: Composite identifier, None when nothing was ever created
        state: Canonical state as Sentry reports it, None when absent
        status: Lifecycle state at the end of the call
        writes: Number of write requests issued by the call
        drift: Drift report, set by ``read`` only
    """

    id: str | None
    state: StateT | None
    status: LifecycleState
    writes: int = 0
    drift: DriftReport[StateT] | None = None

    @property
    def exists(self) -> bool:
        return self.status == LifecycleState.PRESENT


class Reconciler(Generic[StateT]):
    """Drives create, read, update, delete and import for one resource kind.

    Args:
        resource: Gateway and translator of the kind being reconciled
    """

    def __init__(self, resource: SentryResource[StateT]) -> None:
        self.resource = resource
        self.drift = DriftDetector(resource.server_defaults)
        self._logger = logger.bind(resource_type=resource.kind)

    @property
    def kind(self) -> str:
        return self.resource.kind

    async def _run(
        self,
        operation: str,
        resource_id: str | None,
        timeout: float | None,
        body: Callable[[WriteTracker], Awaitable[ReconcileResult[StateT]]],
    ) -> ReconcileResult[StateT]:
        """Run one operation under a deadline, counting the writes it makes.

        Raises:
            DeadlineExceededError: If ``timeout`` seconds pass first. Writes
                already sent are not rolled back.
            APIError: With resource type and id attached.
        """
        with track_writes() as writes:
            try:
                async with asyncio.timeout(timeout):
                    result = await body(writes)
            except TimeoutError as e:
                self._logger.error(
                    "Operation deadline exceeded",
                    operation=operation,
                    resource_id=resource_id,
                    timeout=timeout,
                    writes=writes.count,
                )
                raise DeadlineExceededError(
                    f"{operation} did not finish within {timeout}s"
                ).add_context(self.kind, resource_id) from e
            except APIError as e:
                self._logger.error(
                    "Operation failed",
                    operation=operation,
                    resource_id=resource_id,
                    error=str(e),
                )
                e.add_context(self.kind, resource_id)
                raise

        result.writes = writes.count
        return result

    def _transition(self, resource_id: str | None, old: LifecycleState, new: LifecycleState) -> None:
        self._logger.debug(
            "Lifecycle transition",
            resource_id=resource_id,
            old=old.value,
            new=new.value,
        )

    def _canonical(self, remote: Mapping[str, Any], parent: tuple[str, ...]) -> StateT:
        return self.resource.from_remote(remote, parent)

    async def _fetch_current(self, key: tuple[str, ...]) -> StateT | None:
        remote = await self.resource.fetch(key)
        if remote is None:
            return None
        return self._canonical(remote, key[:-1])

    def _not_found(self, resource_id: str) -> ResourceNotFoundError:
        return ResourceNotFoundError(
            f"{self.kind} {resource_id} does not exist", status_code=404
        ).add_context(self.kind, resource_id)

    async def create(
        self,
        desired: Mapping[str, Any] | StateT,
        timeout: float | None = None,
    ) -> ReconcileResult[StateT]:
        """Create the resource from its desired state.

        Args:
            desired: Desired attributes, validated against the kind's model
            timeout: Deadline in seconds for the whole call

        Returns:
            PRESENT result with the new identifier and canonical state
        """
        state = self.resource.validate_desired(desired)

        async def body(writes: WriteTracker) -> ReconcileResult[StateT]:
            self._transition(None, LifecycleState.ABSENT, LifecycleState.CREATING)
            payload = self.resource.to_payload(state)
            remote = await self.resource.create(state, payload)
            created = self._canonical(remote, self.resource.parent_of(state))
            resource_id = self.resource.encode_id(created)
            self._transition(resource_id, LifecycleState.CREATING, LifecycleState.PRESENT)
            self._logger.info("Created resource", resource_id=resource_id, writes=writes.count)
            return ReconcileResult(id=resource_id, state=created, status=LifecycleState.PRESENT)

        return await self._run("create", None, timeout, body)

    async def read(
        self,
        resource_id: str,
        previous: StateT | None = None,
        timeout: float | None = None,
    ) -> ReconcileResult[StateT]:
        """Read the current remote state.

        The returned state is exactly what Sentry reports; ``previous`` is
        only used to describe drift. A missing object yields an ABSENT
        result, which tells the host to recreate it.
        """
        key = self.resource.decode_id(resource_id)

        async def body(writes: WriteTracker) -> ReconcileResult[StateT]:
            fresh = await self._fetch_current(key)
            report = self.drift.detect(previous, fresh)
            if fresh is None:
                self._logger.warning("Resource no longer exists remotely", resource_id=resource_id)
                return ReconcileResult(
                    id=resource_id,
                    state=None,
                    status=LifecycleState.ABSENT,
                    drift=report,
                )
            return ReconcileResult(
                id=self.resource.encode_id(fresh),
                state=fresh,
                status=LifecycleState.PRESENT,
                drift=report,
            )

        return await self._run("read", resource_id, timeout, body)

    async def update(
        self,
        resource_id: str,
        desired: Mapping[str, Any] | StateT,
        timeout: float | None = None,
    ) -> ReconcileResult[StateT]:
        """Converge an existing resource on its desired state.

        Only attributes set in ``desired`` are compared; when none differ no
        request other than the read is made.

        Raises:
            ResourceNotFoundError: If the resource does not exist
            ReplacementRequiredError: If a changed attribute cannot be
                updated in place
        """
        key = self.resource.decode_id(resource_id)
        state = self.resource.validate_desired(desired)

        async def body(writes: WriteTracker) -> ReconcileResult[StateT]:
            current = await self._fetch_current(key)
            if current is None:
                raise self._not_found(resource_id)

            if self.resource.parent_of(state) != key[:-1]:
                raise ReplacementRequiredError(
                    f"{self.kind} {resource_id} cannot move to "
                    f"{identity.SEPARATOR.join(self.resource.parent_of(state))}",
                    fields=sorted(state.path_fields),
                )

            desired_payload = self.resource.to_payload(state)
            changed = self.resource.changed_fields(
                desired_payload, self.resource.to_payload(current)
            )
            if not changed:
                self._logger.debug("No changes to apply", resource_id=resource_id)
                return ReconcileResult(id=resource_id, state=current, status=LifecycleState.PRESENT)

            self.resource.check_replacement(changed)

            self._transition(resource_id, LifecycleState.PRESENT, LifecycleState.UPDATING)
            remote = await self.resource.update(
                key, self.resource.update_payload(desired_payload), current
            )
            updated = self._canonical(remote, key[:-1])
            new_id = self.resource.encode_id(updated)
            self._transition(new_id, LifecycleState.UPDATING, LifecycleState.PRESENT)
            self._logger.info(
                "Updated resource",
                resource_id=new_id,
                fields=changed,
                writes=writes.count,
            )
            return ReconcileResult(id=new_id, state=updated, status=LifecycleState.PRESENT)

        return await self._run("update", resource_id, timeout, body)

    async def delete(
        self,
        resource_id: str,
        timeout: float | None = None,
    ) -> ReconcileResult[StateT]:
        """Delete the resource; deleting an absent resource is a no-op."""
        key = self.resource.decode_id(resource_id)

        async def body(writes: WriteTracker) -> ReconcileResult[StateT]:
            if await self.resource.fetch(key) is None:
                self._logger.info("Resource already absent", resource_id=resource_id)
                return ReconcileResult(id=resource_id, state=None, status=LifecycleState.ABSENT)

            self._transition(resource_id, LifecycleState.PRESENT, LifecycleState.DELETING)
            try:
                await self.resource.delete(key)
            except ResourceNotFoundError:
                self._logger.info("Resource disappeared before delete", resource_id=resource_id)
            self._transition(resource_id, LifecycleState.DELETING, LifecycleState.ABSENT)
            self._logger.info("Deleted resource", resource_id=resource_id, writes=writes.count)
            return ReconcileResult(id=resource_id, state=None, status=LifecycleState.ABSENT)

        return await self._run("delete", resource_id, timeout, body)

    async def import_(
        self,
        raw_id: str,
        timeout: float | None = None,
    ) -> ReconcileResult[StateT]:
        """Attach an existing remote object by its composite identifier.

        Raises:
            IdentityError: If ``raw_id`` does not decode for this kind
            ResourceNotFoundError: If nothing exists under that identifier
        """
        key = self.resource.decode_id(raw_id)

        async def body(writes: WriteTracker) -> ReconcileResult[StateT]:
            current = await self._fetch_current(key)
            if current is None:
                raise self._not_found(raw_id)
            return ReconcileResult(
                id=self.resource.encode_id(current),
                state=current,
                status=LifecycleState.PRESENT,
            )

        return await self._run("import", raw_id, timeout, body)

    async def lookup(self, *segments: str, timeout: float | None = None) -> ReconcileResult[StateT]:
        """Read-only lookup by identifier segments, e.g. ``lookup("acme", "core-team")``."""
        return await self.import_(identity.encode(segments), timeout=timeout)
