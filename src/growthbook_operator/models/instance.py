"""
Pydantic models for GrowthbookInstance resources.

An instance describes one GrowthBook deployment: where its MongoDB store
lives, how often it is reconciled and which child resources it manages.
"""

from typing import Any

from pydantic import BaseModel, Field

from ..constants import FINALIZER, KIND_INSTANCE
from ..utils.durations import parse_duration
from .common import CustomResource, LabelSelector, ResourceReference, SecretReference


class MongoDBSpec(BaseModel):
    """Connection descriptor of the GrowthBook MongoDB store."""

    model_config = {"populate_by_name": True}

    uri: str = Field("", description="MongoDB connection URI, the path names the database")
    root_secret: SecretReference | None = Field(
        None,
        alias="rootSecret",
        description="Secret holding the MongoDB username and password",
    )


class GrowthbookInstanceSpec(BaseModel):
    """Specification of a GrowthbookInstance."""

    model_config = {"populate_by_name": True}

    mongodb: MongoDBSpec = Field(default_factory=MongoDBSpec)
    interval: str | None = Field(
        None, description="Periodic reconcile interval, e.g. 5m (unset = event driven)"
    )
    timeout: str | None = Field(
        None, description="Deadline for a single reconcile pass, e.g. 2m"
    )
    prune: bool = Field(
        False, description="Delete store documents of removed child resources"
    )
    suspend: bool = Field(False, description="Skip reconciliation entirely")
    resource_selector: LabelSelector | None = Field(None, alias="resourceSelector")


class GrowthbookInstanceStatus(BaseModel):
    """Reported status of a GrowthbookInstance."""

    model_config = {"populate_by_name": True}

    conditions: list[dict[str, Any]] = Field(default_factory=list)
    observed_generation: int = Field(0, alias="observedGeneration")
    last_reconcile_duration: str = Field("0s", alias="lastReconcileDuration")
    sub_resource_catalog: list[ResourceReference] = Field(
        default_factory=list, alias="subResourceCatalog"
    )


class GrowthbookInstance(CustomResource):
    """A GrowthbookInstance as read from the API server."""

    kind: str = KIND_INSTANCE
    spec: GrowthbookInstanceSpec = Field(default_factory=GrowthbookInstanceSpec)
    status: GrowthbookInstanceStatus = Field(default_factory=GrowthbookInstanceStatus)

    @property
    def interval_seconds(self) -> float | None:
        if not self.spec.interval:
            return None
        return parse_duration(self.spec.interval)

    @property
    def timeout_seconds(self) -> float | None:
        if not self.spec.timeout:
            return None
        return parse_duration(self.spec.timeout)

    @property
    def child_finalizer(self) -> str:
        """Finalizer token this instance places on the children it manages."""
        return f"{FINALIZER}/{self.name}.{self.namespace}"
