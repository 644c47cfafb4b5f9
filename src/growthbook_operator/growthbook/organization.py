"""GrowthBook organization documents."""

from datetime import datetime
from typing import ClassVar

from pydantic import BaseModel, Field

from ..constants import COLLECTION_ORGANIZATIONS
from ..models.organization import GrowthbookOrganization
from .base import StoreEntity


class OrganizationMember(BaseModel):
    id: str = ""
    role: str = ""


class Organization(StoreEntity):
    collection: ClassVar[str] = COLLECTION_ORGANIZATIONS

    owner_email: str = Field("", alias="ownerEmail")
    name: str = ""
    date_created: datetime | None = Field(None, alias="dateCreated")
    members: list[OrganizationMember] = Field(default_factory=list)
    revision: int = Field(0, alias="__v")

    @classmethod
    def from_resource(cls, org: GrowthbookOrganization) -> "Organization":
        """Map a declared organization, members are resolved by the reconciler."""
        return cls(
            id=org.effective_id,
            name=org.effective_name,
            owner_email=org.spec.owner_email,
        )

    def merge_into(self, existing: "Organization") -> "Organization":
        merged = existing.model_copy(deep=True)
        merged.id = self.id
        merged.owner_email = self.owner_email
        merged.name = self.name
        merged.members = [m.model_copy() for m in self.members]
        return merged

    def on_create(self, now: datetime) -> None:
        self.date_created = now
