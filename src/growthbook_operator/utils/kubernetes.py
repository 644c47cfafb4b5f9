"""
Kubernetes utilities for the GrowthBook operator.

This module provides helper functions for interacting with the Kubernetes API:
- Kubernetes client management and configuration
- Typed get/list of the GrowthBook custom resources
- Metadata (finalizer) and status patches with optimistic concurrency
- Secret reads

The kubernetes client is synchronous, every call runs in a worker thread so
that a reconcile deadline can cancel the awaiting coroutine.
"""

import asyncio
import base64
import logging
from typing import Any

import pydantic
from kubernetes import client, config
from kubernetes.client.rest import ApiException

from ..constants import API_GROUP, API_VERSION
from ..errors import KubernetesAPIError, ValidationError
from ..models.common import CustomResource, LabelSelector
from ..models.registry import ResourceKind
from .selectors import to_label_selector_string

logger = logging.getLogger(__name__)


def get_kubernetes_client() -> client.ApiClient:
    """
    Get configured Kubernetes API client.

    This function handles both in-cluster and local development configurations.

    Returns:
        Configured Kubernetes API client
    """
    try:
        # Try in-cluster config first (when running in a pod)
        config.load_incluster_config()
        logger.debug("Loaded in-cluster Kubernetes configuration")
    except config.ConfigException:
        try:
            # Fall back to local kubeconfig (for development)
            config.load_kube_config()
            logger.debug("Loaded kubeconfig from local environment")
        except config.ConfigException as e:
            logger.error(f"Failed to load Kubernetes configuration: {e}")
            raise

    return client.ApiClient()


def _api_error(action: str, e: ApiException) -> KubernetesAPIError:
    http_status = getattr(e, "status", None)
    return KubernetesAPIError(
        f"Failed to {action}: {http_status} {e.reason}",
        reason=e.reason,
        retryable=http_status is None or http_status >= 500 or http_status == 409,
    )


class ResourceClient:
    """Access to the declared GrowthBook resources and their secrets."""

    def __init__(self, k8s_client: client.ApiClient | None = None):
        """
        Initialize resource client.

        Args:
            k8s_client: Optional Kubernetes API client
        """
        self.k8s_client = k8s_client
        self._custom: client.CustomObjectsApi | None = None
        self._v1: client.CoreV1Api | None = None

    @property
    def custom_api(self) -> client.CustomObjectsApi:
        if self._custom is None:
            self._custom = client.CustomObjectsApi(self.k8s_client)
        return self._custom

    @property
    def v1(self) -> client.CoreV1Api:
        if self._v1 is None:
            self._v1 = client.CoreV1Api(self.k8s_client)
        return self._v1

    @staticmethod
    def _parse(kind: ResourceKind, body: dict[str, Any]) -> CustomResource:
        try:
            return kind.model.from_body(body)
        except pydantic.ValidationError as e:
            name = body.get("metadata", {}).get("name", "<unknown>")
            raise ValidationError(
                f"{kind.kind} {name} could not be parsed: {e.errors()[0]['msg']}",
                field=".".join(str(p) for p in e.errors()[0]["loc"]),
            ) from e

    async def get(
        self, kind: ResourceKind, namespace: str, name: str
    ) -> CustomResource | None:
        """
        Fetch a single resource.

        Returns:
            The parsed resource, or None if it does not exist

        Raises:
            KubernetesAPIError: If the read fails for reasons other than 404
        """
        try:
            body = await asyncio.to_thread(
                self.custom_api.get_namespaced_custom_object,
                group=API_GROUP,
                version=API_VERSION,
                namespace=namespace,
                plural=kind.plural,
                name=name,
            )
        except ApiException as e:
            if e.status == 404:
                return None
            raise _api_error(f"get {kind.kind} {namespace}/{name}", e) from e
        return self._parse(kind, body)

    async def list_matching(
        self,
        kind: ResourceKind,
        namespace: str,
        selector: LabelSelector | None = None,
    ) -> list[CustomResource]:
        """
        List resources of a kind in one namespace matching a selector.

        Args:
            kind: Resource kind to list
            namespace: Namespace to list in
            selector: Label selector, None lists everything
        """
        label_selector = to_label_selector_string(selector)
        try:
            result = await asyncio.to_thread(
                self.custom_api.list_namespaced_custom_object,
                group=API_GROUP,
                version=API_VERSION,
                namespace=namespace,
                plural=kind.plural,
                label_selector=label_selector,
            )
        except ApiException as e:
            raise _api_error(f"list {kind.plural} in {namespace}", e) from e

        items = []
        for body in result.get("items", []):
            body.setdefault("kind", kind.kind)
            items.append(self._parse(kind, body))
        return items

    async def patch_finalizers(
        self,
        kind: ResourceKind,
        namespace: str,
        name: str,
        finalizers: list[str],
        resource_version: str,
    ) -> None:
        """
        Replace the finalizer list of a resource.

        The patch carries the resourceVersion it was computed from, a
        concurrent modification makes the API server reject it with 409.
        """
        metadata: dict[str, Any] = {"finalizers": finalizers}
        if resource_version:
            metadata["resourceVersion"] = resource_version
        try:
            await asyncio.to_thread(
                self.custom_api.patch_namespaced_custom_object,
                group=API_GROUP,
                version=API_VERSION,
                namespace=namespace,
                plural=kind.plural,
                name=name,
                body={"metadata": metadata},
            )
        except ApiException as e:
            raise _api_error(f"patch finalizers of {kind.kind} {namespace}/{name}", e) from e

    async def patch_status(
        self,
        kind: ResourceKind,
        namespace: str,
        name: str,
        status: dict[str, Any],
        resource_version: str,
    ) -> None:
        """Patch the status subresource against the given resourceVersion."""
        body: dict[str, Any] = {"status": status}
        if resource_version:
            body["metadata"] = {"resourceVersion": resource_version}
        try:
            await asyncio.to_thread(
                self.custom_api.patch_namespaced_custom_object_status,
                group=API_GROUP,
                version=API_VERSION,
                namespace=namespace,
                plural=kind.plural,
                name=name,
                body=body,
            )
        except ApiException as e:
            raise _api_error(f"patch status of {kind.kind} {namespace}/{name}", e) from e

    async def read_secret(self, namespace: str, name: str) -> dict[str, str] | None:
        """
        Read and decode the data of a secret.

        Returns:
            Mapping of field name to decoded value, or None if not found

        Raises:
            KubernetesAPIError: If read fails for reasons other than 404
        """
        try:
            secret = await asyncio.to_thread(
                self.v1.read_namespaced_secret, name=name, namespace=namespace
            )
        except ApiException as e:
            if e.status == 404:
                return None
            raise KubernetesAPIError(
                f"Failed to read secret {namespace}/{name}: {e.reason}",
                reason=e.reason,
            ) from e

        data = secret.data or {}
        return {
            key: base64.b64decode(value).decode("utf-8") for key, value in data.items()
        }
