"""
GrowthbookInstance reconciliation.

One pass fetches the instance, opens its MongoDB store and converges users,
organizations and, per organization, features and clients. Every child
selected by the instance carries the instance's finalizer token, which is
released once the child (or the instance) is deleted and its store document
has been pruned or orphaned according to ``spec.prune``.

The pass is fail-fast. The first error aborts the remaining steps, is
reported in the Ready condition and leads to a requeue.
"""

import asyncio
import time
from dataclasses import dataclass

from ..constants import (
    FINALIZER,
    KIND_INSTANCE,
    REASON_FAILED,
    REASON_SYNCHRONIZED,
    SUCCESS_RECONCILIATION,
)
from ..errors import (
    OperatorError,
    ReconcileTimeoutError,
    ReconciliationError,
    TemporaryError,
)
from ..growthbook import (
    Feature,
    Organization,
    OrganizationMember,
    SDKConnection,
    StoreEntity,
    User,
    delete,
    upsert,
)
from ..models.client import GrowthbookClient
from ..models.common import CustomResource
from ..models.feature import GrowthbookFeature
from ..models.instance import GrowthbookInstance
from ..models.organization import GrowthbookOrganization
from ..models.registry import CLIENT, FEATURE, INSTANCE, ORGANIZATION, USER
from ..models.user import GrowthbookUser
from ..observability.metrics import metrics_collector
from ..settings import settings
from ..storage import Database, DatabaseProvider, StoreConnection, mongodb
from ..utils.credentials import CredentialResolver
from ..utils.durations import format_duration
from ..utils.kubernetes import ResourceClient
from ..utils.selectors import merge_selectors
from .base_reconciler import BaseReconciler
from .catalog import record
from .finalizers import FinalizerManager

RESOURCE_TYPE = KIND_INSTANCE.lower()


@dataclass
class ReconcileResult:
    """Outcome of a pass as seen by the dispatcher."""

    requeue: bool = False
    requeue_after: float | None = None


class InstanceReconciler(BaseReconciler):
    """
    Reconciler for GrowthbookInstance resources.

    Args:
        resource_client: Access to the declared resources and secrets
        database_provider: Opens a store connection for ``(uri, username,
            password)``, defaults to MongoDB
    """

    def __init__(
        self,
        resource_client: ResourceClient | None = None,
        database_provider: DatabaseProvider | None = None,
    ):
        super().__init__(resource_client)
        self.database_provider = database_provider or mongodb.connect

    @property
    def finalizers(self) -> FinalizerManager:
        return FinalizerManager(self.resource_client)

    @property
    def credentials(self) -> CredentialResolver:
        return CredentialResolver(self.resource_client)

    async def reconcile(self, namespace: str, name: str) -> ReconcileResult:
        """
        Run one reconcile pass of an instance.

        Failures of the pass are reported in the instance status and never
        raised. Errors reading or patching the instance itself propagate.

        Args:
            namespace: Namespace of the instance
            name: Name of the instance

        Returns:
            Whether and when the instance should be reconciled again
        """
        instance = await self.resource_client.get(INSTANCE, namespace, name)
        if instance is None:
            metrics_collector.remove_instance(namespace, name)
            return ReconcileResult()

        if instance.spec.suspend:
            self.logger.info(
                f"Instance {namespace}/{name} is suspended, skipping reconciliation",
                instance=name,
                namespace=namespace,
            )
            return ReconcileResult()

        await self.finalizers.ensure(FINALIZER, instance)

        self.logger.log_reconciliation_start(RESOURCE_TYPE, name, namespace)
        start = time.monotonic()
        error: OperatorError | None = None
        interval: float | None = None

        try:
            async with metrics_collector.track_reconciliation(
                resource_type=RESOURCE_TYPE, namespace=namespace, name=name
            ):
                interval = instance.interval_seconds
                await self._reconcile_with_deadline(instance)
        except OperatorError as e:
            error = e
        except Exception as e:
            # Wrap unexpected errors as temporary to allow retry
            error = TemporaryError(f"Unexpected error during reconciliation: {e}")

        duration = time.monotonic() - start
        status = instance.status
        generation = instance.metadata.generation
        status.observed_generation = generation
        status.last_reconcile_duration = format_duration(duration)

        if error is not None:
            self.logger.log_reconciliation_error(
                RESOURCE_TYPE, name, namespace, error, duration
            )
            self.update_status_not_ready(
                status, REASON_FAILED, error.message, generation
            )
            result = ReconcileResult(requeue=True)
        else:
            self.logger.log_reconciliation_success(
                RESOURCE_TYPE, name, namespace, duration
            )
            if instance.is_deleting:
                await self.finalizers.release(FINALIZER, instance)
                metrics_collector.remove_instance(namespace, name)
                return ReconcileResult()

            self.update_status_ready(
                status, REASON_SYNCHRONIZED, SUCCESS_RECONCILIATION, generation
            )
            result = ReconcileResult(requeue_after=interval)

        await self._patch_status(instance)
        metrics_collector.update_instance_status(
            namespace,
            name,
            ready=error is None,
            catalog_size=len(status.sub_resource_catalog),
        )
        return result

    async def _reconcile_with_deadline(self, instance: GrowthbookInstance) -> None:
        timeout = instance.timeout_seconds
        if timeout is None:
            await self._reconcile_pass(instance)
            return

        try:
            await asyncio.wait_for(self._reconcile_pass(instance), timeout)
        except TimeoutError as e:
            raise ReconcileTimeoutError() from e

    async def _reconcile_pass(self, instance: GrowthbookInstance) -> None:
        username = password = ""
        root_secret = instance.spec.mongodb.root_secret
        if root_secret is not None:
            username, password = await self.credentials.get_username_password(
                instance.namespace, root_secret
            )

        connection = await self.database_provider(
            instance.spec.mongodb.uri, username, password
        )
        try:
            db = connection.database
            instance.status.sub_resource_catalog = []

            await self._step("users", self.reconcile_users(instance, db))
            organizations = await self._step(
                "organizations", self.reconcile_organizations(instance, db)
            )
            for org in organizations:
                await self._step("features", self.reconcile_features(instance, org, db))
                await self._step("clients", self.reconcile_clients(instance, org, db))
        finally:
            await self._disconnect(connection)

    @staticmethod
    async def _step(step: str, coro):
        try:
            return await coro
        except Exception as e:
            raise ReconciliationError.for_step(step, e) from e

    async def _disconnect(self, connection: StoreConnection) -> None:
        try:
            await asyncio.wait_for(
                connection.close(), settings.mongodb_disconnect_timeout_seconds
            )
        except Exception as e:
            self.logger.error(f"failed disconnecting mongodb: {e}", exc_info=True)

    async def _patch_status(self, instance: GrowthbookInstance) -> None:
        # Patch against the latest resourceVersion, a concurrent spec change
        # is picked up by the next pass
        latest = await self.resource_client.get(
            INSTANCE, instance.namespace, instance.name
        )
        if latest is None:
            return

        await self.resource_client.patch_status(
            INSTANCE,
            instance.namespace,
            instance.name,
            instance.status.model_dump(by_alias=True, mode="json"),
            latest.metadata.resource_version,
        )

    async def _claim(
        self, instance: GrowthbookInstance, children: list[CustomResource]
    ) -> None:
        """Put the instance token on the children and record the live ones."""
        if instance.is_deleting:
            return

        for child in children:
            await self.finalizers.ensure(instance.child_finalizer, child)
            if not child.is_deleting:
                record(instance.status.sub_resource_catalog, child)

    async def _retire(
        self,
        instance: GrowthbookInstance,
        db: Database,
        child: CustomResource,
        entity: StoreEntity,
    ) -> None:
        """Prune or orphan the document of a removed child, then let it go."""
        if instance.spec.prune:
            await delete(db, entity)
        await self.finalizers.release(instance.child_finalizer, child)

    @staticmethod
    def _is_active(instance: GrowthbookInstance, child: CustomResource) -> bool:
        return not child.is_deleting and not instance.is_deleting

    async def reconcile_users(self, instance: GrowthbookInstance, db: Database) -> None:
        users: list[GrowthbookUser] = await self.resource_client.list_matching(
            USER, instance.namespace, instance.spec.resource_selector
        )
        await self._claim(instance, users)

        for user in users:
            entity = User.from_resource(user)
            if not self._is_active(instance, user):
                await self._retire(instance, db, user, entity)
                continue

            if user.spec.secret is not None:
                username, password = await self.credentials.get_optional_username_password(
                    user.namespace, user.spec.secret
                )
                if username:
                    entity.name = username
                await entity.set_password(db, password)

            await upsert(db, entity)

    async def reconcile_organizations(
        self, instance: GrowthbookInstance, db: Database
    ) -> list[GrowthbookOrganization]:
        organizations: list[GrowthbookOrganization] = (
            await self.resource_client.list_matching(
                ORGANIZATION, instance.namespace, instance.spec.resource_selector
            )
        )
        await self._claim(instance, organizations)

        for org in organizations:
            entity = Organization.from_resource(org)
            if not self._is_active(instance, org):
                await self._retire(instance, db, org, entity)
                continue

            for binding in org.spec.users:
                members = await self.resource_client.list_matching(
                    USER, instance.namespace, binding.selector
                )
                entity.members.extend(
                    OrganizationMember(id=user.effective_id, role=binding.role)
                    for user in members
                )

            await upsert(db, entity)

        return organizations

    async def reconcile_features(
        self,
        instance: GrowthbookInstance,
        org: GrowthbookOrganization,
        db: Database,
    ) -> None:
        selector = merge_selectors(
            org.spec.resource_selector, instance.spec.resource_selector
        )
        features: list[GrowthbookFeature] = await self.resource_client.list_matching(
            FEATURE, instance.namespace, selector
        )
        await self._claim(instance, features)

        for feature in features:
            entity = Feature.from_resource(feature, org.effective_id)
            if self._is_active(instance, feature):
                await upsert(db, entity)
            else:
                await self._retire(instance, db, feature, entity)

    async def reconcile_clients(
        self,
        instance: GrowthbookInstance,
        org: GrowthbookOrganization,
        db: Database,
    ) -> None:
        selector = merge_selectors(
            org.spec.resource_selector, instance.spec.resource_selector
        )
        clients: list[GrowthbookClient] = await self.resource_client.list_matching(
            CLIENT, instance.namespace, selector
        )
        await self._claim(instance, clients)

        for client in clients:
            entity = SDKConnection.from_resource(client, org.effective_id)
            if not self._is_active(instance, client):
                await self._retire(instance, db, client, entity)
                continue

            entity.key = await self.credentials.get_client_token(client)
            await upsert(db, entity)
