"""
Context flattening.

Converts per-service pricing, subscription and usage structures into the
flat ``"<service>.<key>"`` mappings the evaluator reads:

- pricing context: ``"<service>.features.<feature>"`` and
  ``"<service>.usageLimits.<limit>"``
- subscription context: ``"<service>.<limit>.used"`` and
  ``"<service>.<limit>.resetTimeStamp"``
- evaluation context: ``"<service>.<feature>"`` to expression

All functions are pure.
"""

from dataclasses import dataclass, field
from typing import Any

import structlog

from space.platform.contracts.models import Contract, UsageLevel
from space.platform.pricing.models import FeatureDefinition, Pricing, ValueType

logger = structlog.get_logger(__name__)

type PricingContext = dict[str, Any]
type SubscriptionContext = dict[str, Any]
type EvaluationContext = dict[str, str]


@dataclass
class ServiceSubscription:
    """What a contract subscribes to within one service."""

    plan: str | None = None
    add_ons: dict[str, int] = field(default_factory=dict)


def flatten_usage_levels_into_subscription_context(
    usage_levels: dict[str, dict[str, UsageLevel]],
) -> SubscriptionContext:
    context: SubscriptionContext = {}
    for service, levels in usage_levels.items():
        for limit, level in levels.items():
            context[f"{service}.{limit}.used"] = level.consumed
            if level.reset_timestamp is not None:
                context[f"{service}.{limit}.resetTimeStamp"] = level.reset_timestamp.isoformat()
    return context


def get_user_subscriptions_from_contract(contract: Contract) -> dict[str, ServiceSubscription]:
    return {
        service: ServiceSubscription(
            plan=contract.subscription_plans.get(service),
            add_ons=dict(contract.subscription_add_ons.get(service, {})),
        )
        for service in contract.contracted_services
    }


def _merge_add_on_value(value_type: ValueType, current: Any, value: Any, quantity: int) -> Any:
    if value_type is ValueType.NUMERIC:
        return current + value * quantity
    return value if quantity > 0 else current


def map_subscriptions_to_configurations_by_service(
    subscriptions: dict[str, ServiceSubscription], pricings: dict[str, Pricing]
) -> dict[str, dict[str, Any]]:
    """Effective feature and usage limit values of every subscribed service.

    Plan values override pricing defaults. Add-ons then add
    ``quantity * value`` to numeric values, override boolean and text values
    when their quantity is positive, and extend usage limits additively.
    A service with neither a known plan nor a known add-on gets no entry.
    """
    configurations: dict[str, dict[str, Any]] = {}

    for service, subscription in subscriptions.items():
        pricing = pricings.get(service)
        if pricing is None:
            continue

        plan = (pricing.plans or {}).get(subscription.plan) if subscription.plan else None
        add_ons = {
            name: quantity
            for name, quantity in subscription.add_ons.items()
            if name in (pricing.add_ons or {})
        }
        if plan is None and not add_ons:
            logger.debug("evaluation.context.empty_subscription", service=service)
            continue

        features = {name: feature.default_value for name, feature in pricing.features.items()}
        limits = {name: limit.default_value for name, limit in pricing.usage_limits.items()}
        if plan is not None:
            features.update(plan.features)
            limits.update(plan.usage_limits)

        for name, quantity in add_ons.items():
            add_on = (pricing.add_ons or {})[name]
            for feature, value in add_on.features.items():
                features[feature] = _merge_add_on_value(
                    pricing.features[feature].value_type, features[feature], value, quantity
                )
            for limit, value in add_on.usage_limits.items():
                limits[limit] = _merge_add_on_value(
                    pricing.usage_limits[limit].value_type, limits[limit], value, quantity
                )
            for limit, extension in add_on.usage_limits_extensions.items():
                limits[limit] = limits[limit] + extension * quantity

        configuration = {f"features.{name}": value for name, value in features.items()}
        configuration.update({f"usageLimits.{name}": value for name, value in limits.items()})
        configurations[service] = configuration

    return configurations


def flatten_configurations_into_pricing_context(
    configurations: dict[str, dict[str, Any]],
) -> PricingContext:
    return {
        f"{service}.{key}": value
        for service, configuration in configurations.items()
        for key, value in configuration.items()
    }


def default_expression(feature_name: str) -> str:
    """Expression used by features that declare none: their own value."""
    return f"features[{feature_name!r}]"


def flatten_feature_evaluations_into_evaluation_context(
    features_by_service: dict[str, dict[str, FeatureDefinition]], server: bool = False
) -> EvaluationContext:
    """Pick each feature's server or client expression.

    Server evaluation falls back to the client expression when no server
    variant is declared.
    """
    return {
        f"{service}.{name}": feature.expression_for(server) or default_expression(name)
        for service, features in features_by_service.items()
        for name, feature in features.items()
    }
