"""
Service layer for the GrowthBook operator.

This module provides the reconciler and its collaborators that handle the
business logic of converging the GrowthBook store, separated from the kopf
handler layer.
"""

from .base_reconciler import BaseReconciler
from .dispatcher import ReconcileDispatcher
from .finalizers import FinalizerManager, finalizer_token
from .instance_reconciler import InstanceReconciler, ReconcileResult

__all__ = [
    "BaseReconciler",
    "FinalizerManager",
    "InstanceReconciler",
    "ReconcileDispatcher",
    "ReconcileResult",
    "finalizer_token",
]
