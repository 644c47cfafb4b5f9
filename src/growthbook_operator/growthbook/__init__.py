"""
GrowthBook package - documents of the GrowthBook MongoDB store.

Maps declared resources to store entities and converges the store with
idempotent upserts.
"""

from .base import StoreEntity, delete, upsert
from .crypto import generate_key, hash_password
from .feature import Feature
from .organization import Organization, OrganizationMember
from .sdkconnection import SDKConnection
from .user import User

__all__ = [
    "Feature",
    "Organization",
    "OrganizationMember",
    "SDKConnection",
    "StoreEntity",
    "User",
    "delete",
    "generate_key",
    "hash_password",
    "upsert",
]
