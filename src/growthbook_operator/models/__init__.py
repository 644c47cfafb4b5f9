"""
Models package - Pydantic models for type-safe resource handling.

Defines data models for:
- GrowthbookInstance specifications and status
- GrowthbookOrganization, GrowthbookUser, GrowthbookFeature and GrowthbookClient
- Shared selectors, secret references and catalog entries
"""

from .client import GrowthbookClient
from .common import (
    CustomResource,
    LabelSelector,
    LabelSelectorRequirement,
    ObjectMeta,
    ResourceReference,
    SecretReference,
    TokenSecretReference,
)
from .feature import GrowthbookFeature
from .instance import GrowthbookInstance
from .organization import GrowthbookOrganization
from .user import GrowthbookUser

__all__ = [
    "CustomResource",
    "GrowthbookClient",
    "GrowthbookFeature",
    "GrowthbookInstance",
    "GrowthbookOrganization",
    "GrowthbookUser",
    "LabelSelector",
    "LabelSelectorRequirement",
    "ObjectMeta",
    "ResourceReference",
    "SecretReference",
    "TokenSecretReference",
]
