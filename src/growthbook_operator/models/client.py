"""
Pydantic models for GrowthbookClient resources.

A client declares a GrowthBook SDK connection. Its access key is read from a
secret so that it can be shared with the applications using the SDK.
"""

from pydantic import BaseModel, Field

from ..constants import KIND_CLIENT
from .common import CustomResource, TokenSecretReference


class GrowthbookClientSpec(BaseModel):
    model_config = {"populate_by_name": True}

    id: str = ""
    name: str = ""
    languages: list[str] = Field(default_factory=list)
    environment: str = ""
    encrypt_payload: bool = Field(False, alias="encryptPayload")
    project: str = ""
    include_visual_experiments: bool = Field(False, alias="includeVisualExperiments")
    include_draft_experiments: bool = Field(False, alias="includeDraftExperiments")
    include_experiment_names: bool = Field(False, alias="includeExperimentNames")
    token_secret: TokenSecretReference | None = Field(None, alias="tokenSecret")


class GrowthbookClient(CustomResource):
    kind: str = KIND_CLIENT
    spec: GrowthbookClientSpec = Field(default_factory=GrowthbookClientSpec)

    @property
    def effective_id(self) -> str:
        return self._override_or_name(self.spec.id)

    @property
    def effective_name(self) -> str:
        return self._override_or_name(self.spec.name)
