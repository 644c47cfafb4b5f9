"""
Idempotent writer for GrowthBook store documents.

Every entity is looked up by its logical ``id``. A missing document is
inserted, an existing one is overlaid with the declared fields according to
the merge policy of its entity type and only written back when the BSON
encoding of the merged document differs from what is stored.
"""

from datetime import UTC, datetime
from typing import Any, ClassVar, Self

import bson
from pydantic import BaseModel, model_serializer, model_validator

from ..observability.logging import OperatorLogger
from ..observability.metrics import metrics_collector
from ..storage import Database, Document

logger = OperatorLogger(__name__)


def utcnow() -> datetime:
    # BSON dates carry millisecond precision
    now = datetime.now(UTC)
    return now.replace(microsecond=now.microsecond // 1000 * 1000)


class StoreEntity(BaseModel):
    """
    Base class of documents written to the GrowthBook store.

    Subclasses declare their fields with the store's field names as aliases,
    set ``collection`` and implement ``merge_into``. Document fields not
    modelled here are ignored when reading and left untouched by the partial
    update.
    """

    model_config = {"populate_by_name": True, "extra": "ignore"}

    collection: ClassVar[str]

    id: str = ""

    @model_validator(mode="before")
    @classmethod
    def drop_nulls(cls, data: Any):
        # Empty lists may be stored as null
        return _without_nulls(data)

    @classmethod
    def from_document(cls, document: Document) -> Self:
        return cls.model_validate(document)

    def to_document(self) -> Document:
        return self.model_dump(by_alias=True)

    def merge_into(self, existing: Self) -> Self:
        """Overlay the declared fields onto a copy of the stored entity."""
        raise NotImplementedError

    def on_create(self, now: datetime) -> None:
        """Fill store owned fields before the first insert."""

    def on_update(self, now: datetime) -> None:
        """Stamp fields of a changed document before it is written."""

    async def after_write(self, db: Database) -> None:
        """Invalidate data derived from this document."""


class OmitEmptyModel(BaseModel):
    """
    Nested store value whose empty fields are not written.

    Unknown fields are kept so that values edited in GrowthBook survive a
    round trip through the operator.
    """

    model_config = {"populate_by_name": True, "extra": "allow"}

    @model_validator(mode="before")
    @classmethod
    def drop_nulls(cls, data: Any):
        return _without_nulls(data)

    @model_serializer(mode="wrap")
    def omit_empty(self, handler):
        data = handler(self)
        return {k: v for k, v in data.items() if not _is_empty(v)}


def _without_nulls(data: Any) -> Any:
    if isinstance(data, dict):
        return {k: v for k, v in data.items() if v is not None}
    return data


def _is_empty(value: Any) -> bool:
    if value is None:
        return True
    return isinstance(value, str | bool | int | float | list | dict) and not value


async def upsert(db: Database, entity: StoreEntity) -> bool:
    """
    Converge the stored document of an entity to its declared state.

    Args:
        db: Store database
        entity: Declared entity as produced by its mapper

    Returns:
        True if a document was inserted or updated, False if the stored
        document already matched

    Raises:
        StoreError: On any store failure, no retry is attempted here
    """
    entity = entity.model_copy(deep=True)
    collection = db.collection(entity.collection)
    filter = {"id": entity.id}

    found = await collection.find_one(filter)
    if found is None:
        entity.on_create(utcnow())
        await collection.insert_one(entity.to_document())
        _record_write("insert", entity)
        await entity.after_write(db)
        return True

    existing = type(entity).from_document(found)
    snapshot = bson.encode(existing.to_document())

    merged = entity.merge_into(existing)
    if bson.encode(merged.to_document()) == snapshot:
        metrics_collector.record_store_unchanged(entity.collection)
        logger.debug(
            f"Store document {entity.collection}/{entity.id} is up to date",
            collection=entity.collection,
            entity_id=entity.id,
        )
        return False

    merged.on_update(utcnow())
    await collection.update_one(filter, {"$set": merged.to_document()})
    _record_write("update", merged)
    await merged.after_write(db)
    return True


async def delete(db: Database, entity: StoreEntity) -> None:
    """Remove the stored document of an entity by its ID."""
    await db.collection(entity.collection).delete_one({"id": entity.id})
    _record_write("delete", entity)


def _record_write(operation: str, entity: StoreEntity) -> None:
    metrics_collector.record_store_write(entity.collection, operation)
    logger.log_store_operation(operation, entity.collection, entity.id)
