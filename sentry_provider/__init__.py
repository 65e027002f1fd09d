"""Reconcile declared Sentry configuration against the Sentry API."""

__version__ = "0.1.0"

from sentry_provider.config import ProviderConfig  # noqa: E402
from sentry_provider.core import LifecycleState, ReconcileResult, Reconciler  # noqa: E402
from sentry_provider.provider import SentryProvider  # noqa: E402

__all__ = [
    "LifecycleState",
    "ProviderConfig",
    "ReconcileResult",
    "Reconciler",
    "SentryProvider",
    "__version__",
]
