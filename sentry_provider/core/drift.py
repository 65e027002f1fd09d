"""Drift detection between a previously recorded state and a fresh read."""

from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

import structlog

from sentry_provider.resources.base import ResourceState

logger = structlog.get_logger(__name__)

StateT = TypeVar("StateT", bound=ResourceState)


@dataclass(slots=True)
class FieldDrift:
    """Old and new value of one attribute."""

    old: Any
    new: Any


@dataclass(slots=True)
class DriftReport(Generic[StateT]):
    """Result of comparing recorded state with what Sentry reports now.

    ``state`` is always the fresh remote state: local values are never
    merged back in.
    """

    state: StateT | None
    changes: dict[str, FieldDrift] = field(default_factory=dict)
    recreate_required: bool = False

    @property
    def has_drift(self) -> bool:
        return self.recreate_required or bool(self.changes)


class DriftDetector:
    """Compares canonical states field by field.

    Args:
        server_defaults: Values Sentry fills in for attributes left unset.
            A field that was unset before and now holds its server default
            is not reported.
    """

    def __init__(self, server_defaults: dict[str, Any] | None = None) -> None:
        self.server_defaults = dict(server_defaults or {})

    def detect(self, previous: StateT | None, fresh: StateT | None) -> DriftReport[StateT]:
        """Compare ``previous`` with ``fresh`` and return the fresh state.

        Args:
            previous: State recorded by the last successful call, if any
            fresh: State just read from Sentry, None if the object is gone

        Returns:
            DriftReport carrying ``fresh`` unchanged
        """
        if fresh is None:
            return DriftReport(state=None, recreate_required=previous is not None)
        if previous is None:
            return DriftReport(state=fresh)

        old_values = previous.model_dump()
        new_values = fresh.model_dump()
        changes: dict[str, FieldDrift] = {}

        for name, new in new_values.items():
            old = old_values.get(name)
            if old == new:
                continue
            if old is None and name in self.server_defaults and new == self.server_defaults[name]:
                continue
            changes[name] = FieldDrift(old=old, new=new)

        if changes:
            logger.info("Remote drift detected", fields=sorted(changes))

        return DriftReport(state=fresh, changes=changes)
