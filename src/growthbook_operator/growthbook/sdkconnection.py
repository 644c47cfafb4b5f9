"""
GrowthBook SDK connection documents.

The encryption key and the proxy signing key are generated by the operator
when the connection is first created and owned by the store afterwards.
GrowthBook caches the payload served to SDKs per organization and
environment, every write of a connection drops that cache.
"""

from datetime import datetime
from typing import ClassVar

from pydantic import BaseModel, Field

from ..constants import COLLECTION_SDK_CONNECTIONS, COLLECTION_SDK_PAYLOADS
from ..models.client import GrowthbookClient
from ..storage import Database
from .base import StoreEntity
from .crypto import generate_key


class SDKConnectionProxy(BaseModel):
    model_config = {"populate_by_name": True, "extra": "allow"}

    signing_key: str = Field("", alias="signingKey")


class SDKConnection(StoreEntity):
    collection: ClassVar[str] = COLLECTION_SDK_CONNECTIONS

    key: str = ""
    languages: list[str] = Field(default_factory=list)
    name: str = ""
    environment: str = ""
    encrypt_payload: bool = Field(False, alias="encryptPayload")
    encryption_key: str = Field("", alias="encryptionKey")
    organization: str = ""
    project: str = ""
    include_visual_experiments: bool = Field(False, alias="includeVisualExperiments")
    include_draft_experiments: bool = Field(False, alias="includeDraftExperiments")
    include_experiment_names: bool = Field(False, alias="includeExperimentNames")
    date_created: datetime | None = Field(None, alias="dateCreated")
    date_updated: datetime | None = Field(None, alias="dateUpdated")
    proxy: SDKConnectionProxy = Field(default_factory=SDKConnectionProxy)
    revision: int = Field(0, alias="__v")

    @classmethod
    def from_resource(
        cls, client: GrowthbookClient, organization_id: str
    ) -> "SDKConnection":
        """
        Map a declared client owned by an organization.

        The access key is read from the client's token secret by the
        reconciler and set on the returned connection.
        """
        return cls(
            id=client.effective_id,
            name=client.effective_name,
            languages=list(client.spec.languages),
            environment=client.spec.environment,
            encrypt_payload=client.spec.encrypt_payload,
            project=client.spec.project,
            include_visual_experiments=client.spec.include_visual_experiments,
            include_draft_experiments=client.spec.include_draft_experiments,
            include_experiment_names=client.spec.include_experiment_names,
            organization=organization_id,
        )

    def merge_into(self, existing: "SDKConnection") -> "SDKConnection":
        merged = existing.model_copy(deep=True)
        merged.id = self.id
        merged.key = self.key
        merged.languages = list(self.languages)
        merged.name = self.name
        merged.environment = self.environment
        merged.encrypt_payload = self.encrypt_payload
        merged.organization = self.organization
        merged.project = self.project
        merged.include_visual_experiments = self.include_visual_experiments
        merged.include_draft_experiments = self.include_draft_experiments
        merged.include_experiment_names = self.include_experiment_names
        return merged

    def on_create(self, now: datetime) -> None:
        self.date_created = now
        self.date_updated = now
        self.encryption_key = generate_key()
        self.proxy.signing_key = generate_key()

    def on_update(self, now: datetime) -> None:
        self.date_updated = now

    async def after_write(self, db: Database) -> None:
        await db.collection(COLLECTION_SDK_PAYLOADS).delete_many(
            {"environment": self.environment, "organization": self.organization}
        )
