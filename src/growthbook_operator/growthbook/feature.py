"""
GrowthBook feature documents.

Rules are stored with empty values omitted. Rules created in GrowthBook
itself carry an ID the declared feature does not know about, the merge keeps
those and appends the declared rules after them.
"""

import re
from datetime import datetime
from typing import ClassVar

from pydantic import BaseModel, Field, field_validator

from ..constants import COLLECTION_FEATURES, OPERATOR_OWNER
from ..models.feature import FeatureRule as DeclaredRule
from ..models.feature import GrowthbookFeature
from .base import OmitEmptyModel, StoreEntity


class ScheduleRule(OmitEmptyModel):
    timestamp: str = ""
    enabled: bool = False


class SavedGroupTargeting(OmitEmptyModel):
    match: str = ""
    ids: list[str] = Field(default_factory=list)


class FeaturePrerequisite(OmitEmptyModel):
    id: str = ""
    condition: str = ""


class ExperimentValue(OmitEmptyModel):
    value: str = ""
    weight: float = 0
    name: str | None = None


class NamespaceValue(OmitEmptyModel):
    enabled: bool = False
    name: str = ""
    range: list[float] = Field(default_factory=list)


class FeatureRule(OmitEmptyModel):
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
    coverage: float = 0
    hash_attribute: str = Field("", alias="hashAttribute")
    tracking_key: str = Field("", alias="trackingKey")
    fallback_attribute: str | None = Field(None, alias="fallbackAttribute")
    disable_sticky_bucketing: bool | None = Field(None, alias="disableStickyBucketing")
    bucket_version: int | None = Field(None, alias="bucketVersion")
    min_bucket_version: int | None = Field(None, alias="minBucketVersion")
    namespace: NamespaceValue | None = None
    values: list[ExperimentValue] = Field(default_factory=list)

    @classmethod
    def from_declared(cls, rule: DeclaredRule) -> "FeatureRule":
        namespace = None
        if rule.namespace is not None:
            namespace = NamespaceValue(
                enabled=rule.namespace.enabled,
                name=rule.namespace.name,
                range=list(rule.namespace.range),
            )

        return cls(
            id=rule.id,
            type=rule.type,
            description=rule.description,
            condition=rule.condition,
            enabled=rule.enabled,
            schedule_rules=[
                ScheduleRule(timestamp=s.timestamp, enabled=s.enabled)
                for s in rule.schedule_rules
            ],
            saved_groups=[
                SavedGroupTargeting(match=g.match, ids=list(g.ids))
                for g in rule.saved_groups
            ],
            prerequisites=[
                FeaturePrerequisite(id=p.id, condition=p.condition)
                for p in rule.prerequisites
            ],
            value=rule.value,
            coverage=parse_coverage(rule.coverage),
            hash_attribute=rule.hash_attribute,
            tracking_key=rule.tracking_key,
            fallback_attribute=rule.fallback_attribute,
            disable_sticky_bucketing=rule.disable_sticky_bucketing,
            bucket_version=rule.bucket_version,
            min_bucket_version=rule.min_bucket_version,
            namespace=namespace,
            values=[
                ExperimentValue(value=v.value, weight=v.weight, name=v.name)
                for v in rule.values
            ],
        )


_FLOAT = re.compile(
    r"[+-]?(?:(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?|inf(?:inity)?|nan)",
    re.ASCII | re.IGNORECASE,
)


def parse_coverage(coverage: str) -> float:
    """Parse a rule coverage, anything that is not a plain number counts as 0."""
    # float() alone also accepts surrounding whitespace, digit separators
    # and non-ASCII digits
    if not _FLOAT.fullmatch(coverage):
        return 0.0
    return float(coverage)


class EnvironmentSetting(BaseModel):
    model_config = {"extra": "allow"}

    enabled: bool = False
    rules: list[FeatureRule] = Field(default_factory=list)

    @field_validator("rules", mode="before")
    @classmethod
    def null_rules(cls, v):
        return [] if v is None else v


def merge_rules(existing: list[FeatureRule], declared: list[FeatureRule]) -> list[FeatureRule]:
    """Keep stored rules with an ID the declaration does not claim, then the declared rules."""
    declared_ids = {rule.id for rule in declared if rule.id}
    kept = [
        rule.model_copy(deep=True)
        for rule in existing
        if rule.id and rule.id not in declared_ids
    ]
    return kept + [rule.model_copy(deep=True) for rule in declared]


class Feature(StoreEntity):
    collection: ClassVar[str] = COLLECTION_FEATURES

    owner: str = ""
    description: str = ""
    tags: list[str] = Field(default_factory=list)
    default_value: str = Field("", alias="defaultValue")
    value_type: str = Field("", alias="valueType")
    organization: str = ""
    environments: list[str] = Field(default_factory=list, alias="environment")
    environment_settings: dict[str, EnvironmentSetting] = Field(
        default_factory=dict, alias="environmentSettings"
    )
    date_created: datetime | None = Field(None, alias="dateCreated")
    date_updated: datetime | None = Field(None, alias="dateUpdated")
    archived: bool = False
    revision: int = Field(0, alias="__v")

    @classmethod
    def from_resource(cls, feature: GrowthbookFeature, organization_id: str) -> "Feature":
        """
        Map a declared feature owned by an organization.

        Args:
            feature: Declared feature
            organization_id: Effective ID of the owning organization
        """
        settings = {
            env.name: EnvironmentSetting(
                enabled=env.enabled,
                rules=[FeatureRule.from_declared(rule) for rule in env.rules],
            )
            for env in feature.spec.environments
        }

        return cls(
            id=feature.effective_id,
            owner=OPERATOR_OWNER,
            description=feature.spec.description,
            tags=list(feature.spec.tags),
            default_value=feature.spec.default_value,
            value_type=feature.spec.value_type,
            organization=organization_id,
            environments=[],
            environment_settings=settings,
        )

    def merge_into(self, existing: "Feature") -> "Feature":
        merged = existing.model_copy(deep=True)
        merged.id = self.id
        merged.description = self.description
        merged.default_value = self.default_value
        merged.value_type = self.value_type
        merged.tags = list(self.tags)
        merged.environments = list(self.environments)
        merged.organization = self.organization

        settings: dict[str, EnvironmentSetting] = {}
        for env, current in merged.environment_settings.items():
            declared = self.environment_settings.get(env)
            if declared is None:
                continue
            current.enabled = declared.enabled
            current.rules = merge_rules(current.rules, declared.rules)
            settings[env] = current

        for env, declared in self.environment_settings.items():
            if env not in settings:
                settings[env] = declared.model_copy(deep=True)

        merged.environment_settings = settings
        return merged

    def on_create(self, now: datetime) -> None:
        self.date_created = now
        self.date_updated = now

    def on_update(self, now: datetime) -> None:
        self.date_updated = now
