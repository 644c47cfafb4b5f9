"""
Watches on resources an instance depends on.

Changes of organizations, users, features and clients re-queue the
instances selecting them. Changes of secrets re-queue the instances reading
them, either as MongoDB credentials or through a selected user or client.
"""

import logging
from typing import Any

import kopf

from ..constants import (
    API_GROUP,
    API_VERSION,
    PLURAL_CLIENTS,
    PLURAL_FEATURES,
    PLURAL_ORGANIZATIONS,
    PLURAL_USERS,
)
from ..errors import OperatorError
from ..services.reverse_index import instances_for_child, instances_for_secret
from ..utils.handler_logging import log_handler_entry

logger = logging.getLogger(__name__)


def _enqueue_all(memo: kopf.Memo, keys: list[tuple[str, str]], source: str) -> None:
    for namespace, instance_name in keys:
        logger.info(
            f"Change of referenced resource {source} detected, "
            f"queueing GrowthbookInstance {namespace}/{instance_name}",
            extra={"instance": instance_name, "namespace": namespace},
        )
        memo.dispatcher.enqueue(namespace, instance_name)


async def _on_child_event(
    plural: str,
    type: str | None,
    name: str,
    namespace: str,
    labels: dict[str, str],
    memo: kopf.Memo,
) -> None:
    if type is None:
        # Initial listing, instances are reconciled on resume anyway
        return

    log_handler_entry("event", plural, name, namespace, extra={"event_type": type})
    try:
        keys = await instances_for_child(memo.resource_client, namespace, dict(labels))
    except OperatorError as e:
        logger.error(f"Failed to resolve instances for {plural} {namespace}/{name}: {e}")
        return
    _enqueue_all(memo, keys, f"{plural}/{name}")


@kopf.on.event(PLURAL_ORGANIZATIONS, group=API_GROUP, version=API_VERSION)
async def organization_event(
    type: str | None,
    name: str,
    namespace: str,
    labels: dict[str, str],
    memo: kopf.Memo,
    **kwargs: Any,
) -> None:
    await _on_child_event(PLURAL_ORGANIZATIONS, type, name, namespace, labels, memo)


@kopf.on.event(PLURAL_USERS, group=API_GROUP, version=API_VERSION)
async def user_event(
    type: str | None,
    name: str,
    namespace: str,
    labels: dict[str, str],
    memo: kopf.Memo,
    **kwargs: Any,
) -> None:
    await _on_child_event(PLURAL_USERS, type, name, namespace, labels, memo)


@kopf.on.event(PLURAL_FEATURES, group=API_GROUP, version=API_VERSION)
async def feature_event(
    type: str | None,
    name: str,
    namespace: str,
    labels: dict[str, str],
    memo: kopf.Memo,
    **kwargs: Any,
) -> None:
    await _on_child_event(PLURAL_FEATURES, type, name, namespace, labels, memo)


@kopf.on.event(PLURAL_CLIENTS, group=API_GROUP, version=API_VERSION)
async def client_event(
    type: str | None,
    name: str,
    namespace: str,
    labels: dict[str, str],
    memo: kopf.Memo,
    **kwargs: Any,
) -> None:
    await _on_child_event(PLURAL_CLIENTS, type, name, namespace, labels, memo)


@kopf.on.event("v1", "secrets")
async def secret_event(
    type: str | None, name: str, namespace: str, memo: kopf.Memo, **kwargs: Any
) -> None:
    """Re-queue the instances that read a changed secret."""
    if type is None:
        # Initial listing, instances are reconciled on resume anyway
        return

    try:
        keys = await instances_for_secret(memo.resource_client, namespace, name)
    except OperatorError as e:
        logger.error(f"Failed to resolve instances for secret {namespace}/{name}: {e}")
        return
    if keys:
        log_handler_entry("event", "secrets", name, namespace, extra={"event_type": type})
    _enqueue_all(memo, keys, f"secrets/{name}")
