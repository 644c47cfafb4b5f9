"""
GrowthbookInstance handlers - hand instance lifecycle events to the dispatcher.

The reconcile pass itself runs in the dispatcher so that events coming from
instances, their child resources and secrets share one queue per instance.
Deletion is handled by the operator's own finalizer, kopf only observes it.
"""

import logging
from typing import Any

import kopf

from ..constants import API_GROUP, API_VERSION, PLURAL_INSTANCES
from ..utils.handler_logging import log_handler_entry

logger = logging.getLogger(__name__)


@kopf.on.create(PLURAL_INSTANCES, group=API_GROUP, version=API_VERSION)
@kopf.on.resume(PLURAL_INSTANCES, group=API_GROUP, version=API_VERSION)
async def ensure_growthbook_instance(
    name: str, namespace: str, memo: kopf.Memo, **kwargs: Any
) -> None:
    """
    Queue a reconcile pass for a new or resumed instance.

    Args:
        name: Name of the GrowthbookInstance resource
        namespace: Namespace where the resource exists
        memo: Operator memo holding the dispatcher
    """
    log_handler_entry("create/resume", PLURAL_INSTANCES, name, namespace)
    memo.dispatcher.enqueue(namespace, name)


@kopf.on.update(PLURAL_INSTANCES, group=API_GROUP, version=API_VERSION)
async def update_growthbook_instance(
    name: str, namespace: str, memo: kopf.Memo, diff: kopf.Diff, **kwargs: Any
) -> None:
    """Queue a reconcile pass after a change of the instance."""
    log_handler_entry(
        "update",
        PLURAL_INSTANCES,
        name,
        namespace,
        extra={"changed_fields": [".".join(map(str, d[1])) for d in diff]},
    )
    memo.dispatcher.enqueue(namespace, name)


@kopf.on.delete(PLURAL_INSTANCES, group=API_GROUP, version=API_VERSION, optional=True)
async def delete_growthbook_instance(
    name: str, namespace: str, memo: kopf.Memo, **kwargs: Any
) -> None:
    """
    Queue the final pass of an instance marked for deletion.

    The pass releases the instance token from every child (pruning store
    documents if requested) and finally removes the instance's own finalizer.
    """
    log_handler_entry("delete", PLURAL_INSTANCES, name, namespace)
    memo.dispatcher.enqueue(namespace, name)


@kopf.on.event(PLURAL_INSTANCES, group=API_GROUP, version=API_VERSION)
async def forget_deleted_instance(
    type: str | None, name: str, namespace: str, memo: kopf.Memo, **kwargs: Any
) -> None:
    """Drop the scheduling state of an instance once it is gone."""
    if type != "DELETED":
        return

    logger.info(f"GrowthbookInstance {namespace}/{name} was removed")
    memo.dispatcher.forget(namespace, name)
