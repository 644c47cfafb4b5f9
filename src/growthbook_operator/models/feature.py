"""
Pydantic models for GrowthbookFeature resources.

These models mirror the GrowthBook feature flag structure: a default value
plus per-environment rule lists (force, rollout and experiment rules).
"""

from typing import Any

from pydantic import BaseModel, Field, field_validator

from ..constants import KIND_FEATURE
from .common import CustomResource

VALUE_TYPES = ("boolean", "string", "number", "json")
RULE_TYPES = ("force", "rollout", "experiment")
SAVED_GROUP_MATCHES = ("all", "none", "any")


class ScheduleRule(BaseModel):
    timestamp: str = ""
    enabled: bool = False


class SavedGroupTargeting(BaseModel):
    match: str = ""
    ids: list[str] = Field(default_factory=list)

    @field_validator("match")
    @classmethod
    def validate_match(cls, v):
        if v and v not in SAVED_GROUP_MATCHES:
            raise ValueError(f"match must be one of {list(SAVED_GROUP_MATCHES)}")
        return v


class FeaturePrerequisite(BaseModel):
    id: str = ""
    condition: str = ""


class ExperimentValue(BaseModel):
    value: str = ""
    weight: float = 0
    name: str | None = None


class NamespaceValue(BaseModel):
    enabled: bool = False
    name: str = ""
    range: list[float] = Field(default_factory=list)


class FeatureRule(BaseModel):
    """A single rule of a feature environment."""

    model_config = {"populate_by_name": True}

    id: str = ""
    type: str = ""
    description: str = ""
    condition: str = ""
    enabled: bool = False
    schedule_rules: list[ScheduleRule] = Field(
        default_factory=list, alias="scheduleRules"
    )
    saved_groups: list[SavedGroupTargeting] = Field(
        default_factory=list, alias="savedGroups"
    )
    prerequisites: list[FeaturePrerequisite] = Field(default_factory=list)
    value: str = ""
    coverage: str = Field(
        "", description="Fraction of users included, parsed as a float"
    )
    hash_attribute: str = Field("", alias="hashAttribute")
    tracking_key: str = Field("", alias="trackingKey")
    fallback_attribute: str | None = Field(None, alias="fallbackAttribute")
    disable_sticky_bucketing: bool | None = Field(None, alias="disableStickyBucketing")
    bucket_version: int | None = Field(None, alias="bucketVersion")
    min_bucket_version: int | None = Field(None, alias="minBucketVersion")
    namespace: NamespaceValue | None = None
    values: list[ExperimentValue] = Field(default_factory=list)

    @field_validator("type")
    @classmethod
    def validate_type(cls, v):
        if v and v not in RULE_TYPES:
            raise ValueError(f"Rule type must be one of {list(RULE_TYPES)}")
        return v

    @field_validator("coverage", mode="before")
    @classmethod
    def coverage_as_string(cls, v: Any):
        if v is None:
            return ""
        if isinstance(v, int | float) and not isinstance(v, bool):
            return str(v)
        return v


class FeatureEnvironment(BaseModel):
    name: str
    enabled: bool = False
    rules: list[FeatureRule] = Field(default_factory=list)


class GrowthbookFeatureSpec(BaseModel):
    model_config = {"populate_by_name": True}

    id: str = ""
    description: str = ""
    tags: list[str] = Field(default_factory=list)
    default_value: str = Field("", alias="defaultValue")
    value_type: str = Field("", alias="valueType")
    environments: list[FeatureEnvironment] = Field(default_factory=list)

    @field_validator("value_type")
    @classmethod
    def validate_value_type(cls, v):
        if v and v not in VALUE_TYPES:
            raise ValueError(f"valueType must be one of {list(VALUE_TYPES)}")
        return v


class GrowthbookFeature(CustomResource):
    kind: str = KIND_FEATURE
    spec: GrowthbookFeatureSpec = Field(default_factory=GrowthbookFeatureSpec)

    @property
    def effective_id(self) -> str:
        return self._override_or_name(self.spec.id)
