"""
Storage package - access to the GrowthBook document store.

Defines the logical collection contract used by the store writers and its
MongoDB implementation.
"""

from .base import Collection, Database, DatabaseProvider, Document, StoreConnection

__all__ = [
    "Collection",
    "Database",
    "DatabaseProvider",
    "Document",
    "StoreConnection",
]
