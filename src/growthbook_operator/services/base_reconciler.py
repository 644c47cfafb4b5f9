"""
Base reconciler class providing common patterns for resource reconciliation.

This module defines the BaseReconciler class that implements standard
patterns for status condition management and Kubernetes client access.
"""

from abc import ABC, abstractmethod
from datetime import UTC, datetime
from typing import Any

from ..constants import (
    CONDITION_FALSE,
    CONDITION_READY,
    CONDITION_TRUE,
)
from ..models.instance import GrowthbookInstanceStatus
from ..observability.logging import OperatorLogger
from ..utils.kubernetes import ResourceClient, get_kubernetes_client


class BaseReconciler(ABC):
    """
    Base class for resource reconcilers.

    Provides common patterns for:
    - Status management with conditions
    - Kubernetes client management
    """

    def __init__(self, resource_client: ResourceClient | None = None):
        """
        Initialize base reconciler.

        Args:
            resource_client: Access to the declared resources, created on
                first use if not provided
        """
        self._resource_client = resource_client
        self.logger = OperatorLogger(self.__class__.__name__)

    @property
    def resource_client(self) -> ResourceClient:
        """Get or create the resource client."""
        if self._resource_client is None:
            self._resource_client = ResourceClient(get_kubernetes_client())
        return self._resource_client

    @abstractmethod
    async def reconcile(self, namespace: str, name: str) -> Any:
        """Run one reconcile pass of the named resource."""

    def update_status_ready(
        self,
        status: GrowthbookInstanceStatus,
        reason: str,
        message: str,
        generation: int = 0,
    ) -> None:
        """Update status to indicate the resource is ready."""
        self._add_condition(
            status, CONDITION_READY, CONDITION_TRUE, reason, message, generation
        )

    def update_status_not_ready(
        self,
        status: GrowthbookInstanceStatus,
        reason: str,
        message: str,
        generation: int = 0,
    ) -> None:
        """Update status to indicate the resource is not ready."""
        self._add_condition(
            status, CONDITION_READY, CONDITION_FALSE, reason, message, generation
        )

    def _add_condition(
        self,
        status: GrowthbookInstanceStatus,
        condition_type: str,
        condition_status: str,
        reason: str,
        message: str,
        generation: int = 0,
    ) -> None:
        """Add or update a status condition with observedGeneration tracking."""
        previous = self.get_condition(status, condition_type)

        transition_time = datetime.now(UTC).isoformat()
        if previous is not None and previous.get("status") == condition_status:
            transition_time = previous.get("lastTransitionTime") or transition_time

        # Replace the existing condition of the same type
        conditions = [c for c in status.conditions if c.get("type") != condition_type]
        conditions.append(
            {
                "type": condition_type,
                "status": condition_status,
                "reason": reason,
                "message": message,
                "lastTransitionTime": transition_time,
                "observedGeneration": generation,
            }
        )
        status.conditions = conditions

    def get_condition(
        self, status: GrowthbookInstanceStatus, condition_type: str
    ) -> dict[str, Any] | None:
        """Get a specific status condition."""
        for condition in status.conditions:
            if condition.get("type") == condition_type:
                return condition
        return None
