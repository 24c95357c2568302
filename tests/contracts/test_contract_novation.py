"""Tests for contract novation."""

from datetime import UTC, datetime, timedelta

import pytest

from space.platform.contracts.models import Subscription, UsageLevel
from space.platform.contracts.novation import (
    FallbackSubscription,
    novate_contract_to_pricing,
    perform_novation,
    remove_service_from_contract,
    validate_subscription,
)
from space.platform.exceptions import InvalidSubscriptionError
from space.platform.pricing.models import Pricing

NOW = datetime(2025, 3, 15, tzinfo=UTC)


@pytest.mark.unit
class TestPerformNovation:
    """Moving a contract to a new subscription."""

    def test_closes_period_into_history(self, contract_factory):
        contract = contract_factory(renewal_days=14, auto_renew=True)
        previous_start = contract.billing_period.start_date

        novated = perform_novation(
            contract,
            Subscription(
                contracted_services={"acme": "2.0"}, subscription_plans={"acme": "PRO"}
            ),
            NOW,
        )

        assert len(novated.history) == 1
        entry = novated.history[0]
        assert entry.start_date == previous_start
        assert entry.end_date == NOW
        assert entry.contracted_services == {"acme": "1.0.0"}
        assert novated.billing_period.start_date == NOW
        assert novated.billing_period.end_date == NOW + timedelta(days=14)
        assert novated.billing_period.auto_renew is True
        assert novated.subscription_plans == {"acme": "PRO"}
        assert novated.subscription_add_ons == {"acme": {}}

    def test_default_renewal_days(self, contract_factory):
        contract = contract_factory(renewal_days=0)

        novated = perform_novation(contract, contract.subscription, NOW)

        assert novated.billing_period.end_date == NOW + timedelta(days=30)
        assert novated.billing_period.renewal_days == 30

    def test_explicit_period_settings(self, contract_factory):
        novated = perform_novation(
            contract_factory(),
            contract_factory().subscription,
            NOW,
            renewal_days=7,
            auto_renew=True,
        )

        assert novated.billing_period.end_date == NOW + timedelta(days=7)
        assert novated.billing_period.auto_renew is True

    def test_keeps_usage_of_remaining_services(self, contract_factory):
        contract = contract_factory(
            services={"acme": "1.0.0", "beta": "1.0"},
            plans={"acme": "BASIC", "beta": "BASIC"},
            usage_levels={
                "acme": {"seats": UsageLevel(consumed=4)},
                "beta": {"seats": UsageLevel(consumed=9)},
            },
        )

        novated = perform_novation(
            contract,
            Subscription(
                contracted_services={"acme": "1.0.0"}, subscription_plans={"acme": "BASIC"}
            ),
            NOW,
        )

        assert novated.usage_levels == {"acme": {"seats": UsageLevel(consumed=4)}}
        assert "beta" not in novated.subscription_add_ons


@pytest.mark.unit
class TestValidateSubscription:
    """Subscriptions against pricing structure."""

    def test_valid(self, acme_pricing):
        validate_subscription("acme", acme_pricing, "PRO", {"ssoPack": 1, "extraSeats": 2})

    @pytest.mark.parametrize(
        "plan,add_ons,reason",
        [
            (None, {}, "a plan is required"),
            ("ENTERPRISE", {}, "plan 'ENTERPRISE' does not exist"),
            ("BASIC", {"ghost": 1}, "add-on 'ghost' does not exist"),
            ("BASIC", {"ssoPack": 1}, "not available for plan 'BASIC'"),
            ("PRO", {"extraSeats": -1}, "negative quantity"),
        ],
    )
    def test_invalid(self, acme_pricing, plan, add_ons, reason):
        with pytest.raises(InvalidSubscriptionError, match=reason) as exc_info:
            validate_subscription("acme", acme_pricing, plan, add_ons)

        assert exc_info.value.context == {"service_name": "acme", "version": "1.0.0"}

    def test_add_on_dependencies(self, pricing_document):
        document = pricing_document()
        document["addOns"]["ssoPack"]["dependsOn"] = ["extraSeats"]
        pricing = Pricing.model_validate(document)

        with pytest.raises(InvalidSubscriptionError, match="requires add-on 'extraSeats'"):
            validate_subscription("acme", pricing, "PRO", {"ssoPack": 1})
        validate_subscription("acme", pricing, "PRO", {"ssoPack": 1, "extraSeats": 1})

    def test_add_on_only_pricing(self, pricing_document):
        document = pricing_document(plans=None)
        document["addOns"]["extraSeats"]["availableFor"] = []
        document["addOns"]["ssoPack"]["availableFor"] = []
        pricing = Pricing.model_validate(document)

        validate_subscription("acme", pricing, None, {"extraSeats": 1})
        with pytest.raises(InvalidSubscriptionError, match="has no plans"):
            validate_subscription("acme", pricing, "BASIC", {"extraSeats": 1})
        with pytest.raises(InvalidSubscriptionError, match="at least one add-on"):
            validate_subscription("acme", pricing, None, {})


@pytest.mark.unit
class TestNovateToPricing:
    """Moving one service to another pricing version."""

    @pytest.fixture
    def version_two(self, pricing_document) -> Pricing:
        return Pricing.model_validate(pricing_document(version="2.0"))

    def test_keeps_subscription_without_fallback(self, contract_factory, version_two):
        contract = contract_factory(add_ons={"acme": {"extraSeats": 1}})

        novated = novate_contract_to_pricing(contract, "acme", version_two, NOW)

        assert novated.contracted_services == {"acme": "2.0"}
        assert novated.subscription_plans == {"acme": "BASIC"}
        assert novated.subscription_add_ons == {"acme": {"extraSeats": 1}}
        assert novated.usage_levels["acme"]["seats"].consumed == 0

    def test_fallback_replaces_subscription(self, contract_factory, version_two):
        novated = novate_contract_to_pricing(
            contract_factory(),
            "acme",
            version_two,
            NOW,
            FallbackSubscription(subscription_plan="PRO", subscription_add_ons={"ssoPack": 1}),
        )

        assert novated.subscription_plans == {"acme": "PRO"}
        assert novated.subscription_add_ons == {"acme": {"ssoPack": 1}}

    def test_invalid_fallback(self, contract_factory, version_two):
        with pytest.raises(InvalidSubscriptionError):
            novate_contract_to_pricing(
                contract_factory(),
                "acme",
                version_two,
                NOW,
                FallbackSubscription(subscription_plan="ENTERPRISE"),
            )

    def test_fallback_is_empty(self):
        assert FallbackSubscription().is_empty()
        assert not FallbackSubscription(subscription_add_ons={}).is_empty()


@pytest.mark.unit
class TestRemoveService:
    """Stripping a service from a contract."""

    def test_other_services_remain(self, contract_factory):
        contract = contract_factory(
            services={"acme": "1.0.0", "beta": "1.0"},
            plans={"acme": "BASIC", "beta": "PRO"},
            add_ons={"acme": {"extraSeats": 1}, "beta": {}},
        )

        novated = remove_service_from_contract(contract, "acme", NOW)

        assert novated.contracted_services == {"beta": "1.0"}
        assert novated.subscription_plans == {"beta": "PRO"}
        assert novated.subscription_add_ons == {"beta": {}}
        assert novated.disabled is False
        assert len(novated.history) == 1

    def test_last_service_disables_contract(self, contract_factory):
        novated = remove_service_from_contract(contract_factory(auto_renew=True), "acme", NOW)

        assert novated.disabled is True
        assert novated.contracted_services == {}
        assert novated.usage_levels == {}
        assert novated.billing_period.start_date == NOW
        assert novated.billing_period.end_date == NOW
        assert novated.billing_period.auto_renew is False
        assert novated.billing_period.renewal_days == 0
        assert novated.history[0].contracted_services == {"acme": "1.0.0"}

    def test_contract_without_service_is_unchanged(self, contract_factory):
        contract = contract_factory()
        assert remove_service_from_contract(contract, "beta", NOW) is contract
