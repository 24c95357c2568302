"""Tests for the in-memory stores."""

import pytest

from space.platform.contracts.models import ContractFilters
from space.platform.exceptions import ContractNotFoundError, ServiceNotFoundError
from space.platform.pricing.models import Pricing, PricingLocator, Service
from space.platform.stores.memory import (
    InMemoryContractStore,
    InMemoryPricingStore,
    InMemoryServiceStore,
)


@pytest.mark.unit
class TestInMemoryServiceStore:
    """Service documents keep escaped version keys."""

    async def test_versions_are_escaped_at_rest(self):
        store = InMemoryServiceStore()
        service = Service(
            name="Acme",
            organization_id="org-1",
            active_pricings={"2.0.1": PricingLocator(id="p2")},
            archived_pricings={"1.0": PricingLocator(url="https://pricing.test/acme.yml")},
        )

        created = await store.create(service)
        document = store._documents[("org-1", "acme")]
        found = await store.find_by_name("ACME", "org-1")

        assert created.id
        assert list(document["activePricings"]) == ["2_0_1"]
        assert list(document["archivedPricings"]) == ["1_0"]
        assert list(found.active_pricings) == ["2.0.1"]
        assert found.archived_pricings["1.0"].url == "https://pricing.test/acme.yml"

    async def test_find_all_scopes_organization_and_disabled(self):
        store = InMemoryServiceStore()
        await store.create(Service(name="acme", organization_id="org-1"))
        await store.create(Service(name="beta", organization_id="org-1"))
        await store.create(Service(name="gamma", organization_id="org-2"))
        await store.disable("beta", "org-1")

        enabled = await store.find_all("org-1")
        disabled = await store.find_all("org-1", disabled=True)

        assert [service.name for service in enabled] == ["acme"]
        assert [service.name for service in disabled] == ["beta"]

    async def test_update_missing_service(self):
        store = InMemoryServiceStore()

        with pytest.raises(ServiceNotFoundError):
            await store.update(Service(name="ghost", organization_id="org-1"))

        assert await store.disable("ghost", "org-1") is None


@pytest.mark.unit
class TestInMemoryPricingStore:
    """Pricing lookups by id and by service name."""

    async def test_find_by_service_name(self, pricing_document):
        store = InMemoryPricingStore()
        first = await store.create(Pricing.model_validate(pricing_document()), "org-1")
        second = await store.create(
            Pricing.model_validate(pricing_document(version="2.0")), "org-1"
        )
        await store.create(Pricing.model_validate(pricing_document()), "org-2")

        found = await store.find_pricings_by_service_name("ACME", ["1.0.0", "2.0"], "org-1")

        assert {pricing.id for pricing in found} == {first.id, second.id}
        assert store._documents[first.id]["version"] == "1_0_0"
        assert (await store.find_by_id(first.id)).version == "1.0.0"
        assert await store.find_by_id("missing") is None


@pytest.mark.unit
class TestInMemoryContractStore:
    """Contract writes and filtering."""

    async def test_create_and_update(self, contract_factory):
        store = InMemoryContractStore()
        contract = await store.create(contract_factory())

        updated = contract.model_copy(update={"subscription_plans": {"acme": "PRO"}})
        await store.update(updated)

        found = await store.find_by_user_id("user-1")
        assert found.id == contract.id
        assert found.subscription_plans == {"acme": "PRO"}

    async def test_update_missing_contract(self, contract_factory):
        with pytest.raises(ContractNotFoundError):
            await InMemoryContractStore().update(contract_factory())

    async def test_find_by_filters(self, contract_factory):
        store = InMemoryContractStore()
        await store.create(contract_factory(user_id="a"))
        await store.create(contract_factory(user_id="b", plans={"acme": "PRO"}))
        await store.create(contract_factory(user_id="c", organization_id="org-2"))

        by_plan = await store.find_by_filters(ContractFilters(plans={"acme": ["PRO"]}))
        by_org = await store.find_by_filters(ContractFilters(organization_id="org-2"))
        by_version = await store.find_by_filters(ContractFilters(services={"acme": ["2.0"]}))

        assert [contract.user_id for contract in by_plan] == ["b"]
        assert [contract.user_id for contract in by_org] == ["c"]
        assert by_version == []

    async def test_bulk_update_is_all_or_nothing(self, contract_factory):
        store = InMemoryContractStore()
        known = await store.create(contract_factory(user_id="a"))
        unknown = contract_factory(user_id="b")

        assert await store.bulk_update([known, unknown], disable=True) == 0
        assert not (await store.find_by_user_id("a")).disabled

        assert await store.bulk_update([known], disable=True) == 1
        assert await store.find_by_filters(ContractFilters()) == []
        assert len(await store.find_by_filters(ContractFilters(include_disabled=True))) == 1
