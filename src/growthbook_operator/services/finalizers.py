"""
Finalizer lifecycle of resources managed by an instance.

An instance places its own token on every child it selects. The token keeps
the child from disappearing until the instance has decided whether the
corresponding store document is pruned or orphaned.
"""

from ..models.common import CustomResource
from ..models.instance import GrowthbookInstance
from ..models.registry import RESOURCE_KINDS
from ..observability.logging import OperatorLogger
from ..utils.kubernetes import ResourceClient

logger = OperatorLogger(__name__)


def finalizer_token(instance: GrowthbookInstance) -> str:
    """Token of the form ``<domain>/<instance name>.<instance namespace>``."""
    return instance.child_finalizer


class FinalizerManager:
    """Adds and removes finalizer tokens on declared resources."""

    def __init__(self, resource_client: ResourceClient):
        self.resource_client = resource_client

    async def _latest(self, resource: CustomResource) -> CustomResource | None:
        kind = RESOURCE_KINDS[resource.kind]
        return await self.resource_client.get(kind, resource.namespace, resource.name)

    async def _patch(
        self, resource: CustomResource, finalizers: list[str], resource_version: str
    ) -> None:
        kind = RESOURCE_KINDS[resource.kind]
        await self.resource_client.patch_finalizers(
            kind, resource.namespace, resource.name, finalizers, resource_version
        )
        resource.metadata.finalizers = list(finalizers)

    async def ensure(self, token: str, resource: CustomResource) -> bool:
        """
        Add a finalizer token to a resource.

        Resources already marked for deletion are left alone.

        Returns:
            True if the token was added by this call
        """
        if resource.is_deleting:
            return False

        latest = await self._latest(resource)
        if latest is None or latest.is_deleting:
            return False
        if token in latest.metadata.finalizers:
            return False

        await self._patch(
            resource,
            [*latest.metadata.finalizers, token],
            latest.metadata.resource_version,
        )
        logger.info(
            f"Added finalizer to {resource.kind} {resource.namespace}/{resource.name}",
            kind=resource.kind,
            resource_name=resource.name,
            namespace=resource.namespace,
            finalizer=token,
        )
        return True

    async def release(self, token: str, resource: CustomResource) -> bool:
        """
        Remove a finalizer token from a resource, whether or not it is deleting.

        Returns:
            True if the token was removed by this call
        """
        latest = await self._latest(resource)
        if latest is None or token not in latest.metadata.finalizers:
            return False

        await self._patch(
            resource,
            [f for f in latest.metadata.finalizers if f != token],
            latest.metadata.resource_version,
        )
        logger.info(
            f"Released finalizer of {resource.kind} {resource.namespace}/{resource.name}",
            kind=resource.kind,
            resource_name=resource.name,
            namespace=resource.namespace,
            finalizer=token,
        )
        return True
