"""GrowthBook user documents."""

from typing import ClassVar

from pydantic import Field

from ..constants import COLLECTION_USERS
from ..models.user import GrowthbookUser
from ..storage import Database
from .base import StoreEntity
from .crypto import hash_password


class User(StoreEntity):
    collection: ClassVar[str] = COLLECTION_USERS

    email: str = ""
    name: str = ""
    password_hash: str = Field("", alias="passwordHash")
    revision: int = Field(0, alias="__v")

    @classmethod
    def from_resource(cls, user: GrowthbookUser) -> "User":
        return cls(id=user.effective_id, name=user.effective_name, email=user.spec.email)

    async def set_password(self, db: Database, password: str) -> None:
        """
        Hash a password, reusing the salt of the stored hash if there is one.

        Keeping the salt makes the hash of an unchanged password identical,
        so reconciling the same credentials does not rewrite the user.
        """
        existing = await db.collection(self.collection).find_one({"id": self.id})
        existing_hash = ""
        if existing is not None:
            existing_hash = existing.get("passwordHash") or ""
        self.password_hash = hash_password(existing_hash, password)

    def merge_into(self, existing: "User") -> "User":
        merged = existing.model_copy(deep=True)
        merged.id = self.id
        merged.email = self.email
        merged.name = self.name
        if self.password_hash:
            merged.password_hash = self.password_hash
        return merged
