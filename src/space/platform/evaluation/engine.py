"""
Pure evaluation core.

Builds contexts from a contract and its pricings, evaluates features and
decides consumption, returning results together with the cache effects
the caller should apply. Nothing here performs I/O.
"""

from dataclasses import dataclass, field
from typing import Any

import structlog

from space.platform.cache.keys import CacheKey
from space.platform.cache.service import CacheEffect
from space.platform.contracts.models import Contract
from space.platform.evaluation.contexts import (
    flatten_configurations_into_pricing_context,
    flatten_feature_evaluations_into_evaluation_context,
    flatten_usage_levels_into_subscription_context,
    get_user_subscriptions_from_contract,
    map_subscriptions_to_configurations_by_service,
)
from space.platform.evaluation.expressions import ExpressionEvaluator
from space.platform.evaluation.models import EvaluationContexts, FeatureEvaluationResult
from space.platform.exceptions import ExpressionError, FeatureNotFoundError, ValidationError
from space.platform.pricing.models import Pricing, ValueType

logger = structlog.get_logger(__name__)


@dataclass
class FeatureOutcome:
    """Evaluation of one feature and the consumption to persist for it."""

    service: str
    feature: str
    result: FeatureEvaluationResult
    consumption: dict[str, float] = field(default_factory=dict)
    cacheable: bool = True

    @property
    def feature_id(self) -> str:
        return f"{self.service}.{self.feature}"


def build_contexts(
    contract: Contract, pricings: dict[str, Pricing], server: bool = False
) -> EvaluationContexts:
    configurations = map_subscriptions_to_configurations_by_service(
        get_user_subscriptions_from_contract(contract), pricings
    )
    return EvaluationContexts(
        pricing_context=flatten_configurations_into_pricing_context(configurations),
        subscription_context=flatten_usage_levels_into_subscription_context(
            contract.usage_levels
        ),
        evaluation_context=flatten_feature_evaluations_into_evaluation_context(
            {service: pricing.features for service, pricing in pricings.items()}, server=server
        ),
    )


def build_service_scope(
    service: str,
    pricing: Pricing,
    contexts: EvaluationContexts,
    usage: dict[str, float] | None = None,
) -> dict[str, Any]:
    """Variables visible to the expressions of one service.

    Every declared feature and usage limit is present, falling back to the
    pricing defaults and zero usage. ``usage`` overrides consumed amounts.
    """
    scope: dict[str, Any] = {}
    for name, feature in pricing.features.items():
        value = contexts.pricing_context.get(f"{service}.features.{name}", feature.default_value)
        scope[f"features.{name}"] = value
        scope[f"pricingContext.features.{name}"] = value

    for name, limit in pricing.usage_limits.items():
        value = contexts.pricing_context.get(f"{service}.usageLimits.{name}", limit.default_value)
        scope[f"usageLimits.{name}"] = value
        scope[f"limits.{name}"] = value
        scope[f"pricingContext.usageLimits.{name}"] = value

        used = contexts.subscription_context.get(f"{service}.{name}.used", 0)
        if usage and name in usage:
            used = usage[name]
        scope[f"usage.{name}"] = used
        scope[f"subscriptionContext.{name}"] = used

    return scope


def resolve_feature_id(feature_id: str, pricings: dict[str, Pricing]) -> tuple[str, str]:
    """Map ``"<service>.<feature>"`` or a unique bare feature name to its service.

    Raises:
        FeatureNotFoundError: If no contracted pricing declares the feature
        ValidationError: If a bare name is declared by several services
    """
    service, _, feature = feature_id.partition(".")
    if feature and service in pricings:
        if feature in pricings[service].features:
            return service, feature
        raise FeatureNotFoundError(
            f"Feature {feature} not found in service {service}", feature_id=feature_id
        )

    owners = [name for name, pricing in pricings.items() if feature_id in pricing.features]
    if not owners:
        raise FeatureNotFoundError(f"Feature {feature_id} not found", feature_id=feature_id)
    if len(owners) > 1:
        raise ValidationError(
            f"Feature {feature_id} is ambiguous across services {owners}",
            context={"feature_id": feature_id, "services": owners},
            recovery_hint="Qualify the feature as '<service>.<feature>'",
        )
    return owners[0], feature_id


def _consumption_amounts(
    service: str, pricing: Pricing, expected: dict[str, float] | None
) -> dict[str, float]:
    amounts: dict[str, float] = {}
    for key, amount in (expected or {}).items():
        name = key.removeprefix(f"{service}.")
        if name not in pricing.usage_limits:
            raise ValidationError(
                f"Usage limit {name} does not exist in service {service}",
                context={"service": service, "usage_limit": name},
            )
        amounts[name] = amounts.get(name, 0) + amount
    return amounts


def _numeric(value: Any) -> bool:
    return isinstance(value, int | float) and not isinstance(value, bool)


def evaluate_feature(
    evaluator: ExpressionEvaluator,
    service: str,
    feature: str,
    pricing: Pricing,
    contexts: EvaluationContexts,
    expected_consumption: dict[str, float] | None = None,
    details: bool = True,
) -> FeatureOutcome:
    """Evaluate one feature, optionally with a prospective consumption.

    A consumption that would push a numeric usage limit past its value is
    rejected unless the feature allows overage: the result is false, marks
    ``limit_reached`` and reports the unchanged usage. Otherwise the
    expression is evaluated with the usage the consumption would leave. A
    truthy result yields the consumption to persist and reports that usage;
    a falsy one persists nothing, reports the unchanged usage and is not
    cacheable when a consumption was requested.

    Raises:
        ExpressionError: If the feature's expression cannot be evaluated
        ValidationError: If the consumption names an unknown usage limit
    """
    definition = pricing.features[feature]
    expression = contexts.evaluation_context[f"{service}.{feature}"]
    amounts = _consumption_amounts(service, pricing, expected_consumption)
    scope = build_service_scope(service, pricing, contexts)

    linked = [limit.name for limit in pricing.linked_usage_limits(feature)]
    bound = [name for name in amounts if name in linked] or linked or list(amounts)
    prospective = {name: scope[f"usage.{name}"] + amount for name, amount in amounts.items()}

    for name, used in prospective.items():
        limit_value = scope[f"usageLimits.{name}"]
        if _numeric(limit_value) and used > limit_value and not definition.allow_overage:
            result = FeatureEvaluationResult(
                eval=False,
                used=scope[f"usage.{name}"],
                limit=limit_value,
                limit_reached=True,
            )
            if details:
                result.expression = expression
            return FeatureOutcome(service, feature, result, cacheable=False)

    prospective_scope = build_service_scope(service, pricing, contexts, usage=prospective)
    value = evaluator.evaluate(expression, prospective_scope)
    reported = prospective_scope if value else scope

    result = FeatureEvaluationResult(eval=value)
    numeric_bound = [
        name for name in bound if pricing.usage_limits[name].value_type is ValueType.NUMERIC
    ]
    if numeric_bound:
        name = numeric_bound[0]
        result.used = reported[f"usage.{name}"]
        result.limit = reported[f"usageLimits.{name}"]
    if details:
        result.expression = expression
        result.variables = {
            variable: prospective_scope.get(variable)
            for variable in evaluator.referenced_names(expression)
        }

    return FeatureOutcome(
        service,
        feature,
        result,
        consumption=amounts if value else {},
        cacheable=bool(value) or not amounts,
    )


def evaluate_all_features(
    evaluator: ExpressionEvaluator,
    pricings: dict[str, Pricing],
    contexts: EvaluationContexts,
    details: bool = False,
) -> dict[str, FeatureEvaluationResult]:
    """Evaluate every feature of every contracted pricing.

    A broken expression does not abort the others: its result is false
    and carries the error message.
    """
    results: dict[str, FeatureEvaluationResult] = {}
    for service, pricing in pricings.items():
        for feature in pricing.features:
            key = f"{service}.{feature}"
            try:
                outcome = evaluate_feature(
                    evaluator, service, feature, pricing, contexts, details=details
                )
                results[key] = outcome.result
            except ExpressionError as e:
                logger.warning("evaluation.expression_failed", feature=key, error=e.message)
                results[key] = FeatureEvaluationResult(
                    eval=False,
                    error=e.message,
                    expression=contexts.evaluation_context.get(key) if details else None,
                )
    return results


def aggregate_cache_effects(
    user_id: str, results: dict[str, FeatureEvaluationResult], ttl: int
) -> list[CacheEffect]:
    document = {key: result.to_document() for key, result in results.items()}
    return [CacheEffect.set(CacheKey.evaluation(user_id), document, ttl=ttl, overwrite=True)]


def feature_cache_effects(
    user_id: str, feature_id: str, outcome: FeatureOutcome, ttl: int
) -> list[CacheEffect]:
    if not outcome.cacheable or outcome.result.limit_reached:
        return []
    return [
        CacheEffect.set(
            CacheKey.feature_evaluation(user_id, feature_id),
            outcome.result.to_document(),
            ttl=ttl,
            overwrite=True,
        )
    ]
