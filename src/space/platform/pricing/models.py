"""
Pricing models.

A pricing is the versioned catalog of one service: features, usage limits,
plans and add-ons. Feature values are tagged by ``ValueType`` and every
configured value is checked against the tag of the feature or usage limit
it configures.
"""

from datetime import UTC, date, datetime, time
from enum import Enum
from typing import Any

from pydantic import Field, field_validator, model_validator

from space.platform.models import SpaceBaseModel


class ValueType(str, Enum):
    """Type tag of a feature or usage limit value."""

    BOOLEAN = "BOOLEAN"
    NUMERIC = "NUMERIC"
    TEXT = "TEXT"


def coerce_value(value_type: ValueType, value: Any) -> Any:
    """Check that ``value`` matches ``value_type`` and return it.

    Raises:
        ValueError: If the value does not fit the tag
    """
    if value_type is ValueType.BOOLEAN:
        if isinstance(value, bool):
            return value
    elif value_type is ValueType.NUMERIC:
        if isinstance(value, int | float) and not isinstance(value, bool):
            return value
    elif isinstance(value, str):
        return value
    elif isinstance(value, list) and all(isinstance(item, str) for item in value):
        return value
    raise ValueError(f"expected a {value_type.value} value, got {value!r}")


def _unwrap_values(values: Any) -> Any:
    # Plans and add-ons may write either ``name: value`` or ``name: {value: X}``
    if not isinstance(values, dict):
        return values
    return {
        name: value["value"] if isinstance(value, dict) and "value" in value else value
        for name, value in values.items()
    }


def _with_name(name: str, entry: Any) -> Any:
    if entry is None:
        return {"name": name}
    if isinstance(entry, dict) and "name" not in entry:
        return {**entry, "name": name}
    return entry


class FeatureDefinition(SpaceBaseModel):
    """A gated capability of a service."""

    name: str
    description: str | None = None
    value_type: ValueType
    default_value: Any
    expression: str | None = Field(None, description="Client-side evaluation expression")
    server_expression: str | None = Field(None, description="Server-side evaluation expression")
    type: str | None = Field(None, description="Pricing2Yaml feature type, e.g. DOMAIN")
    allow_overage: bool = Field(False, description="Allow consumption beyond linked limits")

    @model_validator(mode="after")
    def check_default_value(self) -> "FeatureDefinition":
        coerce_value(self.value_type, self.default_value)
        return self

    def expression_for(self, server: bool) -> str | None:
        """Pick the expression variant for server or client evaluation."""
        if server:
            return self.server_expression or self.expression
        return self.expression


class UsageLimitType(str, Enum):
    RENEWABLE = "RENEWABLE"
    NON_RENEWABLE = "NON_RENEWABLE"


class PeriodUnit(str, Enum):
    SEC = "SEC"
    MIN = "MIN"
    HOUR = "HOUR"
    DAY = "DAY"
    MONTH = "MONTH"
    YEAR = "YEAR"


class Period(SpaceBaseModel):
    """Renewal period of a renewable usage limit."""

    value: int = Field(1, gt=0)
    unit: PeriodUnit = PeriodUnit.MONTH


class UsageLimit(SpaceBaseModel):
    """A numeric or boolean cap that applies to one or more features."""

    name: str
    description: str | None = None
    value_type: ValueType = ValueType.NUMERIC
    default_value: Any = 0
    unit: str | None = None
    linked_features: list[str] = Field(default_factory=list)
    trackable: bool = False
    type: UsageLimitType = UsageLimitType.NON_RENEWABLE
    period: Period | None = None

    @model_validator(mode="after")
    def check_default_value(self) -> "UsageLimit":
        coerce_value(self.value_type, self.default_value)
        return self

    @property
    def is_renewable(self) -> bool:
        return self.type is UsageLimitType.RENEWABLE


class Plan(SpaceBaseModel):
    name: str
    description: str | None = None
    price: float | str | None = None
    unit: str | None = None
    features: dict[str, Any] = Field(default_factory=dict)
    usage_limits: dict[str, Any] = Field(default_factory=dict)

    @field_validator("features", "usage_limits", mode="before")
    @classmethod
    def unwrap_values(cls, v: Any) -> Any:
        return _unwrap_values(v) if v is not None else {}


class AddOn(SpaceBaseModel):
    name: str
    description: str | None = None
    price: float | str | None = None
    unit: str | None = None
    available_for: list[str] = Field(default_factory=list)
    depends_on: list[str] = Field(default_factory=list)
    features: dict[str, Any] = Field(default_factory=dict)
    usage_limits: dict[str, Any] = Field(default_factory=dict)
    usage_limits_extensions: dict[str, Any] = Field(default_factory=dict)

    @field_validator("features", "usage_limits", "usage_limits_extensions", mode="before")
    @classmethod
    def unwrap_values(cls, v: Any) -> Any:
        return _unwrap_values(v) if v is not None else {}

    def is_available_for(self, plan: str | None) -> bool:
        return not self.available_for or plan in self.available_for


class Pricing(SpaceBaseModel):
    """A published, immutable pricing version of a service."""

    id: str | None = None
    saas_name: str
    version: str
    currency: str = "USD"
    created_at: datetime
    features: dict[str, FeatureDefinition]
    usage_limits: dict[str, UsageLimit] = Field(default_factory=dict)
    plans: dict[str, Plan] | None = None
    add_ons: dict[str, AddOn] | None = None

    @model_validator(mode="before")
    @classmethod
    def fill_entry_names(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        for key in ("features", "usage_limits", "usageLimits", "plans", "add_ons", "addOns"):
            entries = data.get(key)
            if isinstance(entries, dict):
                data[key] = {name: _with_name(name, entry) for name, entry in entries.items()}
        return data

    @field_validator("version", mode="before")
    @classmethod
    def version_as_string(cls, v: Any) -> Any:
        if isinstance(v, int | float) and not isinstance(v, bool):
            return str(v)
        return v

    @field_validator("created_at", mode="before")
    @classmethod
    def date_as_datetime(cls, v: Any) -> Any:
        if isinstance(v, date) and not isinstance(v, datetime):
            return datetime.combine(v, time(), tzinfo=UTC)
        return v

    @field_validator("created_at")
    @classmethod
    def assume_utc(cls, v: datetime) -> datetime:
        return v if v.tzinfo else v.replace(tzinfo=UTC)

    @field_validator("usage_limits", mode="before")
    @classmethod
    def empty_usage_limits(cls, v: Any) -> Any:
        return v if v is not None else {}

    @model_validator(mode="after")
    def check_references(self) -> "Pricing":
        errors = self.structural_errors()
        if errors:
            raise ValueError("; ".join(errors))
        return self

    def structural_errors(self) -> list[str]:
        """List every dangling reference or mistyped value in this pricing."""
        errors: list[str] = []

        if not self.plans and not self.add_ons:
            errors.append("a pricing must define at least one plan or add-on")

        for limit in self.usage_limits.values():
            for feature in limit.linked_features:
                if feature not in self.features:
                    errors.append(f"usage limit '{limit.name}' links unknown feature '{feature}'")

        for plan in (self.plans or {}).values():
            owner = f"plan '{plan.name}'"
            errors.extend(self._value_errors(owner, plan.features, plan.usage_limits))

        for add_on in (self.add_ons or {}).values():
            owner = f"add-on '{add_on.name}'"
            errors.extend(self._value_errors(owner, add_on.features, add_on.usage_limits))
            for name, value in add_on.usage_limits_extensions.items():
                limit = self.usage_limits.get(name)
                if limit is None:
                    errors.append(f"{owner} extends unknown usage limit '{name}'")
                elif limit.value_type is not ValueType.NUMERIC:
                    errors.append(f"{owner} extends non-numeric usage limit '{name}'")
                else:
                    try:
                        coerce_value(ValueType.NUMERIC, value)
                    except ValueError as e:
                        errors.append(f"{owner} extension of '{name}': {e}")
            for plan in add_on.available_for:
                if plan not in (self.plans or {}):
                    errors.append(f"{owner} is available for unknown plan '{plan}'")
            for dependency in add_on.depends_on:
                if dependency not in (self.add_ons or {}):
                    errors.append(f"{owner} depends on unknown add-on '{dependency}'")

        return errors

    def _value_errors(
        self, owner: str, features: dict[str, Any], usage_limits: dict[str, Any]
    ) -> list[str]:
        errors: list[str] = []
        for name, value in features.items():
            feature = self.features.get(name)
            if feature is None:
                errors.append(f"{owner} references unknown feature '{name}'")
                continue
            try:
                coerce_value(feature.value_type, value)
            except ValueError as e:
                errors.append(f"{owner} feature '{name}': {e}")
        for name, value in usage_limits.items():
            limit = self.usage_limits.get(name)
            if limit is None:
                errors.append(f"{owner} references unknown usage limit '{name}'")
                continue
            try:
                coerce_value(limit.value_type, value)
            except ValueError as e:
                errors.append(f"{owner} usage limit '{name}': {e}")
        return errors

    def linked_usage_limits(self, feature_name: str) -> list[UsageLimit]:
        """Usage limits that cap the given feature, in declaration order."""
        return [
            limit for limit in self.usage_limits.values() if feature_name in limit.linked_features
        ]


class PricingStatus(str, Enum):
    """Which pricing versions of a service to consider."""

    ACTIVE = "active"
    ARCHIVED = "archived"
    ALL = "all"


class PricingLocator(SpaceBaseModel):
    """Where a pricing version lives: in the pricing store or at a URL."""

    id: str | None = None
    url: str | None = None

    @model_validator(mode="after")
    def check_exactly_one(self) -> "PricingLocator":
        if bool(self.id) == bool(self.url):
            raise ValueError("a pricing locator needs exactly one of 'id' or 'url'")
        return self


class Service(SpaceBaseModel):
    """A SaaS offering of an organization and its pricing versions."""

    id: str | None = None
    name: str
    organization_id: str
    disabled: bool = False
    active_pricings: dict[str, PricingLocator] = Field(default_factory=dict)
    archived_pricings: dict[str, PricingLocator] = Field(default_factory=dict)

    @field_validator("active_pricings", "archived_pricings", mode="before")
    @classmethod
    def empty_pricings(cls, v: Any) -> Any:
        return v if v is not None else {}

    @model_validator(mode="after")
    def check_disjoint_versions(self) -> "Service":
        overlap = set(self.active_pricings) & set(self.archived_pricings)
        if overlap:
            raise ValueError(
                f"versions {sorted(overlap)} cannot be both active and archived"
            )
        return self

    def locate(self, version: str) -> PricingLocator | None:
        """Find a version among active pricings first, then archived ones."""
        return self.active_pricings.get(version) or self.archived_pricings.get(version)

    def versions(self, status: PricingStatus) -> dict[str, PricingLocator]:
        if status is PricingStatus.ACTIVE:
            return dict(self.active_pricings)
        if status is PricingStatus.ARCHIVED:
            return dict(self.archived_pricings)
        return {**self.active_pricings, **self.archived_pricings}


class FeatureListing(SpaceBaseModel):
    """A feature of the catalog with the pricing it belongs to."""

    info: FeatureDefinition
    service: str
    pricing_version: str
