"""Evaluation request options and results."""

from dataclasses import dataclass, field
from typing import Any, Literal

from pydantic import Field, field_validator

from space.platform.models import SpaceBaseModel
from space.platform.pricing.models import PricingStatus


class FeatureEvaluationResult(SpaceBaseModel):
    """Outcome of evaluating one feature.

    ``used`` and ``limit`` describe the numeric usage limit bound to the
    feature, if any. ``limit_reached`` distinguishes a rejected consumption
    from an expression that merely evaluated to false.
    """

    eval: bool | int | float | str | list[str] | None = False
    used: float | None = None
    limit: float | None = None
    limit_reached: bool = False
    # Detailed evaluations only
    expression: str | None = None
    variables: dict[str, Any] | None = None
    error: str | None = None


class EvaluationOptions(SpaceBaseModel):
    details: bool = False
    server: bool = False
    return_contexts: bool = False


class SingleEvaluationOptions(SpaceBaseModel):
    revert: bool = False
    latest: bool = False
    server: bool = False


_SORT_KEYS = {"featurename": "featureName", "servicename": "serviceName"}


class FeatureListFilters(SpaceBaseModel):
    """Filters, ordering and pagination of the feature catalog."""

    feature_name: str | None = None
    service_name: str | None = None
    pricing_version: str | None = None
    page: int = Field(1, ge=1)
    offset: int = Field(0, ge=0)
    limit: int = Field(20, ge=1)
    sort: Literal["featureName", "serviceName"] = "serviceName"
    order: Literal["asc", "desc"] = "asc"
    show: PricingStatus = PricingStatus.ACTIVE

    @field_validator("sort", mode="before")
    @classmethod
    def canonical_sort(cls, v: Any) -> Any:
        return _SORT_KEYS.get(v.lower(), v) if isinstance(v, str) else v

    @field_validator("order", "show", mode="before")
    @classmethod
    def lower_case(cls, v: Any) -> Any:
        return v.lower() if isinstance(v, str) else v

    @property
    def start_index(self) -> int:
        return self.offset if self.offset else (self.page - 1) * self.limit


@dataclass
class EvaluationContexts:
    """The three flat contexts of one evaluation request."""

    pricing_context: dict[str, Any] = field(default_factory=dict)
    subscription_context: dict[str, Any] = field(default_factory=dict)
    evaluation_context: dict[str, str] = field(default_factory=dict)


class EvaluationEnvelope(SpaceBaseModel):
    """Evaluation result together with the contexts it was computed from."""

    pricing_context: dict[str, Any]
    subscription_context: dict[str, Any]
    result: dict[str, FeatureEvaluationResult]
