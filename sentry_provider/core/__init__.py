"""Reconciliation core: lifecycle state machine and drift detection."""

from .drift import DriftDetector, DriftReport, FieldDrift
from .reconciler import LifecycleState, ReconcileResult, Reconciler

__all__ = [
    "DriftDetector",
    "DriftReport",
    "FieldDrift",
    "LifecycleState",
    "ReconcileResult",
    "Reconciler",
]
