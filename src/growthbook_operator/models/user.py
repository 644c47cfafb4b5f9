"""Pydantic models for GrowthbookUser resources."""

from pydantic import BaseModel, Field

from ..constants import KIND_USER
from .common import CustomResource, SecretReference


class GrowthbookUserSpec(BaseModel):
    id: str = ""
    name: str = ""
    email: str = ""
    secret: SecretReference | None = Field(
        None, description="Secret with the password and an optional login name"
    )


class GrowthbookUser(CustomResource):
    kind: str = KIND_USER
    spec: GrowthbookUserSpec = Field(default_factory=GrowthbookUserSpec)

    @property
    def effective_id(self) -> str:
        return self._override_or_name(self.spec.id)

    @property
    def effective_name(self) -> str:
        return self._override_or_name(self.spec.name)
