"""
Mapping of changed resources back to the instances that depend on them.

Instances are only watched directly for spec changes. A change of a child
resource or of a referenced secret is translated into the set of instances
whose next pass would see it.
"""

import logging

from ..errors import SelectorInvalidError
from ..models.instance import GrowthbookInstance
from ..models.registry import CLIENT, INSTANCE, USER
from ..utils.kubernetes import ResourceClient
from ..utils.selectors import matches

logger = logging.getLogger(__name__)

InstanceKey = tuple[str, str]


def _key(instance: GrowthbookInstance) -> InstanceKey:
    return instance.namespace, instance.name


def instances_selecting(
    instances: list[GrowthbookInstance], labels: dict[str, str] | None
) -> list[InstanceKey]:
    """
    Instances whose resourceSelector matches the given labels.

    Instances with an invalid selector are skipped, their own pass reports
    the selector error.
    """
    keys = []
    for instance in instances:
        try:
            selected = matches(labels, instance.spec.resource_selector)
        except SelectorInvalidError as e:
            logger.warning(
                f"Ignoring instance {instance.namespace}/{instance.name}: {e.message}"
            )
            continue
        if selected:
            keys.append(_key(instance))
    return keys


async def referenced_secrets(
    resource_client: ResourceClient, instance: GrowthbookInstance
) -> set[str]:
    """
    Names of the secrets a pass of the instance reads.

    These are the MongoDB root secret, the secrets of the selected users and
    the token secrets of the selected clients, all in the instance namespace.
    """
    names: set[str] = set()
    if instance.spec.mongodb.root_secret is not None:
        names.add(instance.spec.mongodb.root_secret.name)

    users = await resource_client.list_matching(
        USER, instance.namespace, instance.spec.resource_selector
    )
    names.update(user.spec.secret.name for user in users if user.spec.secret)

    clients = await resource_client.list_matching(
        CLIENT, instance.namespace, instance.spec.resource_selector
    )
    names.update(
        client.spec.token_secret.name for client in clients if client.spec.token_secret
    )
    return names


async def instances_for_secret(
    resource_client: ResourceClient, namespace: str, secret_name: str
) -> list[InstanceKey]:
    """Instances in the namespace of a changed secret that reference it."""
    instances = await resource_client.list_matching(INSTANCE, namespace)
    return [
        _key(instance)
        for instance in instances
        if secret_name in await referenced_secrets(resource_client, instance)
    ]


async def instances_for_child(
    resource_client: ResourceClient, namespace: str, labels: dict[str, str] | None
) -> list[InstanceKey]:
    """Instances in the namespace of a changed child resource that select it."""
    instances = await resource_client.list_matching(INSTANCE, namespace)
    return instances_selecting(instances, labels)
