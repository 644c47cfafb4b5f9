"""
MongoDB backend of the GrowthBook document store.

Wraps pymongo's asyncio client so that driver failures surface as
StoreError and the reconciler never deals with pymongo types directly.
"""

import logging
from typing import Any

from pymongo import AsyncMongoClient
from pymongo.asynchronous.collection import AsyncCollection
from pymongo.asynchronous.database import AsyncDatabase
from pymongo.errors import PyMongoError

from ..constants import OPERATOR_OWNER
from ..errors import StoreError
from ..settings import settings
from .base import Document

logger = logging.getLogger(__name__)


class MongoCollection:
    """Collection adapter translating driver errors."""

    def __init__(self, collection: AsyncCollection):
        self._collection = collection

    @property
    def name(self) -> str:
        return self._collection.name

    def _error(self, action: str, e: PyMongoError) -> StoreError:
        return StoreError(f"{action} on {self.name} failed: {e}", cause=e)

    async def find_one(self, filter: Document) -> Document | None:
        try:
            return await self._collection.find_one(filter)
        except PyMongoError as e:
            raise self._error("find", e) from e

    async def insert_one(self, document: Document) -> None:
        try:
            await self._collection.insert_one(document)
        except PyMongoError as e:
            raise self._error("insert", e) from e

    async def update_one(self, filter: Document, update: Document) -> None:
        try:
            await self._collection.update_one(filter, update)
        except PyMongoError as e:
            raise self._error("update", e) from e

    async def delete_one(self, filter: Document) -> None:
        try:
            await self._collection.delete_one(filter)
        except PyMongoError as e:
            raise self._error("delete", e) from e

    async def delete_many(self, filter: Document) -> None:
        try:
            await self._collection.delete_many(filter)
        except PyMongoError as e:
            raise self._error("delete many", e) from e


class MongoDatabase:
    def __init__(self, database: AsyncDatabase):
        self._database = database

    @property
    def name(self) -> str:
        return self._database.name

    def collection(self, name: str) -> MongoCollection:
        return MongoCollection(self._database.get_collection(name))


class MongoConnection:
    """A client opened for one reconcile pass."""

    def __init__(self, client: AsyncMongoClient, database: MongoDatabase):
        self._client = client
        self._database = database

    @property
    def database(self) -> MongoDatabase:
        return self._database

    async def close(self) -> None:
        await self._client.close()


async def connect(uri: str, username: str = "", password: str = "") -> MongoConnection:
    """
    Open a MongoDB client for a GrowthBook instance.

    The database is taken from the path of the URI, falling back to the
    configured default database when the URI does not name one.

    Args:
        uri: MongoDB connection string
        username: Optional username overriding the URI credentials
        password: Optional password overriding the URI credentials

    Returns:
        An open connection, to be closed by the caller

    Raises:
        StoreError: If the URI is invalid or the server cannot be reached
    """
    options: dict[str, Any] = {
        "appname": OPERATOR_OWNER,
        "tz_aware": True,
        "serverSelectionTimeoutMS": settings.mongodb_server_selection_timeout_ms,
    }
    if username or password:
        options["username"] = username
        options["password"] = password

    try:
        client: AsyncMongoClient = AsyncMongoClient(uri, **options)
    except PyMongoError as e:
        raise StoreError(f"failed connecting to mongodb: {e}", cause=e) from e

    try:
        await client.aconnect()
        database = client.get_default_database(
            default=settings.mongodb_default_database
        )
    except PyMongoError as e:
        await client.close()
        raise StoreError(f"failed connecting to mongodb: {e}", cause=e) from e

    logger.debug(f"Connected to MongoDB database {database.name}")
    return MongoConnection(client, MongoDatabase(database))
