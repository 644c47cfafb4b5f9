"""Pydantic models for GrowthbookOrganization resources."""

from pydantic import BaseModel, Field

from ..constants import KIND_ORGANIZATION
from .common import CustomResource, LabelSelector


class OrganizationUserBinding(BaseModel):
    """Grants a role to every user matched by the selector."""

    selector: LabelSelector | None = None
    role: str = ""


class GrowthbookOrganizationSpec(BaseModel):
    model_config = {"populate_by_name": True}

    id: str = ""
    name: str = ""
    owner_email: str = Field("", alias="ownerEmail")
    users: list[OrganizationUserBinding] = Field(default_factory=list)
    resource_selector: LabelSelector | None = Field(None, alias="resourceSelector")


class GrowthbookOrganization(CustomResource):
    kind: str = KIND_ORGANIZATION
    spec: GrowthbookOrganizationSpec = Field(default_factory=GrowthbookOrganizationSpec)

    @property
    def effective_id(self) -> str:
        return self._override_or_name(self.spec.id)

    @property
    def effective_name(self) -> str:
        return self._override_or_name(self.spec.name)
