"""
Common models shared across different resource types.

This module defines shared data structures used by multiple resource models,
such as label selectors, secret references and object metadata.
"""

from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, Field

from ..constants import (
    API_GROUP_VERSION,
    DEFAULT_PASSWORD_FIELD,
    DEFAULT_TOKEN_FIELD,
    DEFAULT_USER_FIELD,
)


class LabelSelectorRequirement(BaseModel):
    """A single set-based label requirement."""

    key: str = Field(..., description="Label key the requirement applies to")
    operator: str = Field(..., description="One of In, NotIn, Exists, DoesNotExist")
    values: list[str] = Field(default_factory=list)


class LabelSelector(BaseModel):
    """Kubernetes label selector."""

    model_config = {"populate_by_name": True}

    match_labels: dict[str, str] = Field(default_factory=dict, alias="matchLabels")
    match_expressions: list[LabelSelectorRequirement] = Field(
        default_factory=list, alias="matchExpressions"
    )


class SecretReference(BaseModel):
    """Reference to a secret in the same namespace holding user credentials."""

    model_config = {"populate_by_name": True}

    name: str = Field(..., description="Name of the secret")
    user_field: str = Field(DEFAULT_USER_FIELD, alias="userField")
    password_field: str = Field(DEFAULT_PASSWORD_FIELD, alias="passwordField")


class TokenSecretReference(BaseModel):
    """Reference to a secret in the same namespace holding an SDK token."""

    model_config = {"populate_by_name": True}

    name: str = Field(..., description="Name of the secret")
    token_field: str = Field(DEFAULT_TOKEN_FIELD, alias="tokenField")


class ResourceReference(BaseModel):
    """Entry of an instance resource catalog."""

    model_config = {"populate_by_name": True, "frozen": True}

    kind: str
    name: str
    api_version: str = Field(..., alias="apiVersion")


class ObjectMeta(BaseModel):
    """Subset of Kubernetes object metadata the operator reads."""

    model_config = {"populate_by_name": True, "extra": "ignore"}

    name: str
    namespace: str = ""
    labels: dict[str, str] = Field(default_factory=dict)
    finalizers: list[str] = Field(default_factory=list)
    deletion_timestamp: str | None = Field(None, alias="deletionTimestamp")
    generation: int = 0
    resource_version: str = Field("", alias="resourceVersion")
    uid: str = ""


class CustomResource(BaseModel):
    """Base for declared GrowthBook resources read from the API server."""

    model_config = {"populate_by_name": True, "extra": "ignore"}

    api_version: str = Field(API_GROUP_VERSION, alias="apiVersion")
    kind: str
    metadata: ObjectMeta

    @property
    def name(self) -> str:
        return self.metadata.name

    @property
    def namespace(self) -> str:
        return self.metadata.namespace

    @property
    def labels(self) -> dict[str, str]:
        return self.metadata.labels

    @property
    def is_deleting(self) -> bool:
        """Whether the resource carries a deletion timestamp."""
        return bool(self.metadata.deletion_timestamp)

    def reference(self) -> ResourceReference:
        return ResourceReference(
            kind=self.kind, name=self.name, api_version=self.api_version
        )

    def _override_or_name(self, override: str | None) -> str:
        """Effective identifier: the spec override if set, else the resource name."""
        return override if override else self.metadata.name

    @classmethod
    def from_body(cls, body: Mapping[str, Any]):
        """Build a resource model from a raw API object or kopf body."""
        return cls.model_validate(_to_plain(body))


def _to_plain(value: Any) -> Any:
    """Recursively convert mapping views (e.g. kopf.Body) into plain dicts."""
    if isinstance(value, Mapping):
        return {k: _to_plain(v) for k, v in value.items()}
    if isinstance(value, list | tuple):
        return [_to_plain(v) for v in value]
    return value
