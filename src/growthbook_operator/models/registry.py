"""
Static table of the resource kinds served by the operator.

Maps each kind to its plural name and pydantic model so that generic code
(the resource client, watches and the catalog) can work on any kind.
"""

from dataclasses import dataclass

from ..constants import (
    KIND_CLIENT,
    KIND_FEATURE,
    KIND_INSTANCE,
    KIND_ORGANIZATION,
    KIND_USER,
    PLURAL_CLIENTS,
    PLURAL_FEATURES,
    PLURAL_INSTANCES,
    PLURAL_ORGANIZATIONS,
    PLURAL_USERS,
)
from .client import GrowthbookClient
from .common import CustomResource
from .feature import GrowthbookFeature
from .instance import GrowthbookInstance
from .organization import GrowthbookOrganization
from .user import GrowthbookUser


@dataclass(frozen=True)
class ResourceKind:
    kind: str
    plural: str
    model: type[CustomResource]


INSTANCE = ResourceKind(KIND_INSTANCE, PLURAL_INSTANCES, GrowthbookInstance)
ORGANIZATION = ResourceKind(
    KIND_ORGANIZATION, PLURAL_ORGANIZATIONS, GrowthbookOrganization
)
USER = ResourceKind(KIND_USER, PLURAL_USERS, GrowthbookUser)
FEATURE = ResourceKind(KIND_FEATURE, PLURAL_FEATURES, GrowthbookFeature)
CLIENT = ResourceKind(KIND_CLIENT, PLURAL_CLIENTS, GrowthbookClient)

RESOURCE_KINDS: dict[str, ResourceKind] = {
    rk.kind: rk for rk in (INSTANCE, ORGANIZATION, USER, FEATURE, CLIENT)
}

