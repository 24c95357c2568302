"""Tests for pricing resolution."""

import asyncio
from unittest.mock import AsyncMock, patch

import pytest
import yaml

from space.platform.exceptions import (
    PricingNotFoundError,
    RemoteFetchError,
    ServiceNotFoundError,
)
from space.platform.pricing.models import Pricing, PricingLocator, PricingStatus, Service
from space.platform.pricing.resolver import PricingResolver

ORG_ID = "org-1"
REMOTE_URL = "https://pricings.example.com/acme/2.0.yml"


@pytest.fixture
def resolver(components) -> PricingResolver:
    return components.resolver


@pytest.fixture
async def url_backed_version(components, acme_service, remote_documents, pricing_document):
    """Publish version 2.0 of acme as a URL-backed pricing."""
    remote_documents[REMOTE_URL] = yaml.safe_dump(
        pricing_document(version="2.0", createdAt="2025-06-01T00:00:00Z")
    )
    service = acme_service.model_copy(
        update={
            "active_pricings": {
                **acme_service.active_pricings,
                "2.0": PricingLocator(url=REMOTE_URL),
            }
        }
    )
    return await components.service_store.update(service)


@pytest.mark.unit
class TestGatherBounded:
    """Bounded, fail-fast fan-out."""

    async def test_concurrency_bounds(self, components):
        with pytest.raises(ValueError):
            PricingResolver(
                components.service_store,
                components.pricing_store,
                components.cache,
                components.fetcher,
                concurrency=11,
            )
        with pytest.raises(ValueError):
            PricingResolver(
                components.service_store,
                components.pricing_store,
                components.cache,
                components.fetcher,
                concurrency=0,
            )

    async def test_limits_in_flight_and_keeps_order(self, components):
        resolver = PricingResolver(
            components.service_store,
            components.pricing_store,
            components.cache,
            components.fetcher,
            concurrency=3,
        )
        in_flight = 0
        peak = 0

        async def work(index: int) -> int:
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            await asyncio.sleep(0.01 * (index % 3))
            in_flight -= 1
            return index

        results = await resolver.gather_bounded(work(i) for i in range(12))

        assert results == list(range(12))
        assert peak == 3

    async def test_first_failure_cancels_the_rest(self, resolver):
        cancelled = []

        async def slow(index: int) -> int:
            try:
                await asyncio.sleep(5)
            except asyncio.CancelledError:
                cancelled.append(index)
                raise
            return index

        async def failing() -> int:
            raise RemoteFetchError("boom")

        with pytest.raises(RemoteFetchError):
            await resolver.gather_bounded([slow(0), failing(), slow(2)])

        assert sorted(cancelled) == [0, 2]

    async def test_empty(self, resolver):
        assert await resolver.gather_bounded([]) == []


@pytest.mark.unit
class TestGetService:
    """Service lookup."""

    async def test_reads_through_cache(self, resolver, acme_service):
        with patch.object(
            resolver.service_store,
            "find_by_name",
            wraps=resolver.service_store.find_by_name,
        ) as find_by_name:
            first = await resolver.get_service("acme", ORG_ID)
            second = await resolver.get_service("ACME", ORG_ID)

        assert first.name == second.name == "acme"
        assert find_by_name.await_count == 1

    async def test_missing_service(self, resolver):
        with pytest.raises(ServiceNotFoundError) as exc_info:
            await resolver.get_service("ghost", ORG_ID)

        assert exc_info.value.status_code == 404
        assert exc_info.value.context == {"service_name": "ghost", "organization_id": ORG_ID}

    async def test_disabled_service_is_not_found(self, components, resolver, acme_service):
        await components.service_store.disable("acme", ORG_ID)

        with pytest.raises(ServiceNotFoundError):
            await resolver.get_service("acme", ORG_ID)

    async def test_other_organization(self, resolver, acme_service):
        with pytest.raises(ServiceNotFoundError):
            await resolver.get_service("acme", "org-2")

    async def test_invalidate_service(self, components, resolver, acme_service):
        await resolver.get_service("acme", ORG_ID)
        await resolver.invalidate_service("acme", ORG_ID)

        assert await components.cache.get("service.org-1.acme") is None


@pytest.mark.unit
class TestResolvePricing:
    """Single-version resolution."""

    async def test_stored_version(self, resolver, acme_service):
        pricing = await resolver.resolve_pricing("acme", "1.0.0", ORG_ID)

        assert pricing.version == "1.0.0"
        assert pricing.id == acme_service.active_pricings["1.0.0"].id

    async def test_url_backed_version(self, resolver, url_backed_version):
        pricing = await resolver.resolve_pricing("acme", "2.0", ORG_ID)
        assert pricing.version == "2.0"

    async def test_url_backed_version_is_cached(self, components, resolver, url_backed_version):
        with patch.object(
            components.fetcher, "fetch", wraps=components.fetcher.fetch
        ) as fetch:
            await resolver.resolve_pricing("acme", "2.0", ORG_ID)
            await resolver.resolve_pricing("acme", "2.0", ORG_ID)

        assert fetch.await_count == 1
        assert await components.cache.get(f"pricing.url.{REMOTE_URL}") is not None

    async def test_unknown_version(self, resolver, acme_service):
        with pytest.raises(PricingNotFoundError) as exc_info:
            await resolver.resolve_pricing("acme", "9.9", ORG_ID)

        assert exc_info.value.context == {"service_name": "acme", "version": "9.9"}

    async def test_cache_failure_does_not_fail_resolution(self, resolver, acme_service):
        with patch.object(resolver.cache, "set", AsyncMock(return_value=False)):
            pricing = await resolver.resolve_pricing("acme", "1.0.0", ORG_ID)

        assert pricing.saas_name == "acme"

    async def test_unreachable_url(self, components, resolver, acme_service):
        service = acme_service.model_copy(
            update={
                "active_pricings": {
                    **acme_service.active_pricings,
                    "3.0": PricingLocator(url="https://pricings.example.com/missing.yml"),
                }
            }
        )
        await components.service_store.update(service)

        with pytest.raises(RemoteFetchError):
            await resolver.resolve_pricing("acme", "3.0", ORG_ID)


@pytest.mark.unit
class TestResolveMany:
    """Contract, service and organization fan-out."""

    async def test_contract_pricings(self, resolver, acme_contract):
        pricings = await resolver.resolve_contract_pricings(acme_contract)

        assert list(pricings) == ["acme"]
        assert pricings["acme"].version == "1.0.0"

    async def test_contract_pricings_fail_fast(self, resolver, acme_contract):
        contract = acme_contract.model_copy(
            update={"contracted_services": {"acme": "1.0.0", "ghost": "1.0"}}
        )

        with pytest.raises(ServiceNotFoundError):
            await resolver.resolve_contract_pricings(contract)

    async def test_service_pricings_by_status(self, components, resolver, url_backed_version):
        service = url_backed_version.model_copy(
            update={
                "active_pricings": {"2.0": url_backed_version.active_pricings["2.0"]},
                "archived_pricings": {"1.0.0": url_backed_version.active_pricings["1.0.0"]},
            }
        )

        active = await resolver.resolve_service_pricings(service, PricingStatus.ACTIVE)
        archived = await resolver.resolve_service_pricings(service, PricingStatus.ARCHIVED)
        everything = await resolver.resolve_service_pricings(service, PricingStatus.ALL)

        assert list(active) == ["2.0"]
        assert list(archived) == ["1.0.0"]
        assert list(everything) == ["2.0", "1.0.0"]

    async def test_latest_active_pricing(self, resolver, url_backed_version):
        latest = await resolver.get_latest_active_pricing(url_backed_version)
        assert latest.version == "2.0"

    async def test_latest_active_pricing_without_versions(self, resolver):
        service = Service(name="empty", organization_id=ORG_ID)
        assert await resolver.get_latest_active_pricing(service) is None

    async def test_organization_pricings_skip_disabled(
        self, components, resolver, acme_service, pricing_document
    ):
        beta = Pricing.model_validate(pricing_document(saasName="beta"))
        stored = await components.pricing_store.create(beta, ORG_ID)
        await components.service_store.create(
            Service(
                name="beta",
                organization_id=ORG_ID,
                active_pricings={"1.0.0": PricingLocator(id=stored.id)},
            )
        )
        await components.service_store.disable("beta", ORG_ID)

        pricings = await resolver.resolve_organization_pricings(PricingStatus.ACTIVE, ORG_ID)

        assert list(pricings) == ["acme"]
        assert list(pricings["acme"]) == ["1.0.0"]
