"""
Contract novation.

Rewrites a contract's subscription when a pricing version is archived or a
service is removed, closing the current billing period into ``history``.
All functions are pure: they take ``now`` and return new contracts.
"""

from datetime import datetime, timedelta

from pydantic import Field

from space.platform.contracts.models import (
    BillingPeriod,
    Contract,
    ContractHistoryEntry,
    Subscription,
)
from space.platform.contracts.usage import generate_usage_levels
from space.platform.exceptions import InvalidSubscriptionError
from space.platform.models import SpaceBaseModel
from space.platform.pricing.models import Pricing

DEFAULT_RENEWAL_DAYS = 30


class FallbackSubscription(SpaceBaseModel):
    """Plan and add-ons that affected contracts are moved to."""

    subscription_plan: str | None = None
    subscription_add_ons: dict[str, int] | None = Field(default=None)

    def is_empty(self) -> bool:
        return self.subscription_plan is None and self.subscription_add_ons is None


def _history_entry(contract: Contract, now: datetime) -> ContractHistoryEntry:
    return ContractHistoryEntry(
        start_date=contract.billing_period.start_date,
        end_date=now,
        contracted_services=dict(contract.contracted_services),
        subscription_plans=dict(contract.subscription_plans),
        subscription_add_ons={k: dict(v) for k, v in contract.subscription_add_ons.items()},
    )


def perform_novation(
    contract: Contract,
    new_subscription: Subscription,
    now: datetime,
    renewal_days: int | None = None,
    auto_renew: bool | None = None,
) -> Contract:
    """Move a contract to a new subscription, opening a fresh billing period.

    The previous period and subscription are appended to ``history``. The
    new period starts at ``now`` and lasts the supplied or previous renewal
    days (30 when neither is set). Usage levels of services that remain
    contracted are kept; others are dropped.
    """
    if renewal_days is None:
        renewal_days = contract.billing_period.renewal_days or DEFAULT_RENEWAL_DAYS
    if auto_renew is None:
        auto_renew = contract.billing_period.auto_renew

    services = new_subscription.contracted_services
    novated = contract.model_copy(
        update={
            "contracted_services": dict(services),
            "subscription_plans": dict(new_subscription.subscription_plans),
            "subscription_add_ons": {
                k: dict(v) for k, v in new_subscription.subscription_add_ons.items()
            },
            "usage_levels": {
                name: levels
                for name, levels in contract.usage_levels.items()
                if name in services
            },
            "history": [*contract.history, _history_entry(contract, now)],
            "billing_period": BillingPeriod(
                start_date=now,
                end_date=now + timedelta(days=renewal_days),
                auto_renew=auto_renew,
                renewal_days=renewal_days,
            ),
        },
        deep=True,
    )
    return novated.normalized()


def validate_subscription(
    service_name: str, pricing: Pricing, plan: str | None, add_ons: dict[str, int] | None
) -> None:
    """Check that a plan and add-ons exist in a pricing and fit together.

    Raises:
        InvalidSubscriptionError: If the subscription does not fit the pricing
    """

    def fail(reason: str) -> InvalidSubscriptionError:
        return InvalidSubscriptionError(
            f"Subscription to {service_name} is not valid for version {pricing.version}: {reason}",
            service_name=service_name,
            version=pricing.version,
        )

    add_ons = add_ons or {}
    if pricing.plans:
        if plan is None:
            raise fail("a plan is required")
        if plan not in pricing.plans:
            raise fail(f"plan '{plan}' does not exist")
    elif plan is not None:
        raise fail("the pricing has no plans")
    elif not add_ons:
        raise fail("at least one add-on is required when the pricing has no plans")

    available = pricing.add_ons or {}
    for name, quantity in add_ons.items():
        add_on = available.get(name)
        if add_on is None:
            raise fail(f"add-on '{name}' does not exist")
        if quantity < 0:
            raise fail(f"add-on '{name}' has a negative quantity")
        if not add_on.is_available_for(plan):
            raise fail(f"add-on '{name}' is not available for plan '{plan}'")
        for dependency in add_on.depends_on:
            if not add_ons.get(dependency):
                raise fail(f"add-on '{name}' requires add-on '{dependency}'")


def novate_contract_to_pricing(
    contract: Contract,
    service_name: str,
    pricing: Pricing,
    now: datetime,
    fallback: FallbackSubscription | None = None,
) -> Contract:
    """Move the contract's subscription to ``service_name`` onto ``pricing``.

    The fallback plan and add-ons replace the current ones when given.
    Usage levels of the service are regenerated from the pricing, or
    cleared when it tracks none.

    Raises:
        InvalidSubscriptionError: If the subscription does not fit the pricing
    """
    plan = contract.subscription_plans.get(service_name)
    add_ons = contract.subscription_add_ons.get(service_name, {})
    if fallback is not None and not fallback.is_empty():
        plan = fallback.subscription_plan
        add_ons = dict(fallback.subscription_add_ons or {})

    validate_subscription(service_name, pricing, plan, add_ons)

    subscription = contract.subscription
    subscription.contracted_services[service_name] = pricing.version
    if plan is None:
        subscription.subscription_plans.pop(service_name, None)
    else:
        subscription.subscription_plans[service_name] = plan
    subscription.subscription_add_ons[service_name] = dict(add_ons)

    novated = perform_novation(contract, subscription, now)
    novated.usage_levels[service_name] = generate_usage_levels(pricing, now)
    return novated


def remove_service_from_contract(contract: Contract, service_name: str, now: datetime) -> Contract:
    """Strip a service from a contract.

    When no service remains, the contract is force-disabled: usage levels
    are cleared and the billing period becomes zero-length and non-renewing.
    A contract without the service is returned unchanged.
    """
    if service_name not in contract.contracted_services:
        return contract

    subscription = Subscription(
        contracted_services={
            name: version
            for name, version in contract.contracted_services.items()
            if name != service_name
        },
        subscription_plans={
            name: plan for name, plan in contract.subscription_plans.items() if name != service_name
        },
        subscription_add_ons={
            name: dict(add_ons)
            for name, add_ons in contract.subscription_add_ons.items()
            if name != service_name
        },
    )

    novated = perform_novation(contract, subscription, now)
    if subscription.contracted_services:
        return novated

    return novated.model_copy(
        update={
            "usage_levels": {},
            "billing_period": BillingPeriod(
                start_date=now, end_date=now, auto_renew=False, renewal_days=0
            ),
            "disabled": True,
        }
    )
