"""
Logical contract of the GrowthBook document store.

The reconciler only needs equality-filtered single document reads and writes
on named collections, plus a bulk delete used to invalidate cached payloads.
Any MongoDB compatible backend (or an in-memory fake in tests) can serve it.
"""

from collections.abc import Awaitable, Callable
from typing import Any, Protocol

Document = dict[str, Any]


class Collection(Protocol):
    """A named collection of documents."""

    async def find_one(self, filter: Document) -> Document | None: ...

    async def insert_one(self, document: Document) -> None: ...

    async def update_one(self, filter: Document, update: Document) -> None: ...

    async def delete_one(self, filter: Document) -> None: ...

    async def delete_many(self, filter: Document) -> None: ...


class Database(Protocol):
    """A database holding the GrowthBook collections."""

    def collection(self, name: str) -> Collection: ...


class StoreConnection(Protocol):
    """An open connection, released at the end of a reconcile pass."""

    @property
    def database(self) -> Database: ...

    async def close(self) -> None: ...


# (uri, username, password) -> open connection
DatabaseProvider = Callable[[str, str, str], Awaitable[StoreConnection]]
