"""
Pricing resolution.

Turns ``(service, version)`` pairs into concrete ``Pricing`` documents,
reading through the cache, the pricing store (id-backed versions) and the
fetcher (URL-backed versions). Fan-out over several pricings runs through
a bounded semaphore and fails fast: the first error cancels the rest.
"""

import asyncio
from collections.abc import Awaitable, Iterable
from typing import TypeVar

import structlog

from space.platform.cache.keys import CacheKey
from space.platform.cache.service import CacheService
from space.platform.contracts.models import Contract
from space.platform.exceptions import PricingNotFoundError, ServiceNotFoundError
from space.platform.pricing.fetcher import PricingFetcher
from space.platform.pricing.models import Pricing, PricingLocator, PricingStatus, Service
from space.platform.stores.interfaces import PricingStore, ServiceStore

logger = structlog.get_logger(__name__)

T = TypeVar("T")


class PricingResolver:
    """Resolves services and pricing versions with caching."""

    def __init__(
        self,
        service_store: ServiceStore,
        pricing_store: PricingStore,
        cache: CacheService,
        fetcher: PricingFetcher,
        concurrency: int = 8,
        cache_ttl: int = 3600,
    ):
        if not 1 <= concurrency <= 10:
            raise ValueError("concurrency must be between 1 and 10")
        self.service_store = service_store
        self.pricing_store = pricing_store
        self.cache = cache
        self.fetcher = fetcher
        self.concurrency = concurrency
        self.cache_ttl = cache_ttl

    async def gather_bounded(self, awaitables: Iterable[Awaitable[T]]) -> list[T]:
        """Run awaitables with at most ``concurrency`` in flight.

        Results keep input order. On the first failure the remaining tasks
        are cancelled and the error is raised.
        """
        semaphore = asyncio.Semaphore(self.concurrency)

        async def bounded(awaitable: Awaitable[T]) -> T:
            async with semaphore:
                return await awaitable

        tasks = [asyncio.ensure_future(bounded(awaitable)) for awaitable in awaitables]
        try:
            return await asyncio.gather(*tasks)
        except BaseException:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

    async def get_service(self, service_name: str, organization_id: str) -> Service:
        """Enabled service by name, read through the ``service.<org>.<name>`` entry.

        Raises:
            ServiceNotFoundError: If the service does not exist or is disabled
        """
        key = CacheKey.service(organization_id, service_name)
        cached = await self.cache.get(key)
        if cached is not None:
            service = Service.model_validate(cached)
        else:
            service = await self.service_store.find_by_name(service_name, organization_id)
            if service is not None and not service.disabled:
                await self.cache.set(
                    key, service.to_document(), ttl=self.cache_ttl, overwrite=True
                )

        if service is None or service.disabled:
            raise ServiceNotFoundError(
                f"Service {service_name} not found",
                service_name=service_name,
                organization_id=organization_id,
            )
        return service

    async def invalidate_service(self, service_name: str, organization_id: str) -> None:
        await self.cache.delete(CacheKey.service(organization_id, service_name))

    async def load_pricing(self, locator: PricingLocator) -> Pricing | None:
        """Load the pricing a locator points at, read through the cache."""
        if locator.id:
            key = CacheKey.pricing_by_id(locator.id)
        else:
            key = CacheKey.pricing_by_url(locator.url or "")

        cached = await self.cache.get(key)
        if cached is not None:
            return Pricing.model_validate(cached)

        if locator.id:
            pricing = await self.pricing_store.find_by_id(locator.id)
            if pricing is None:
                return None
        else:
            pricing = await self.fetcher.fetch(locator.url or "")

        # A failed cache write never fails the resolution
        await self.cache.set(key, pricing.to_document(), ttl=self.cache_ttl, overwrite=True)
        return pricing

    async def resolve_pricing(
        self, service_name: str, version: str, organization_id: str
    ) -> Pricing:
        """Resolve one version of a service.

        Raises:
            ServiceNotFoundError: If the service is missing or disabled
            PricingNotFoundError: If the version is not active or archived
            RemoteFetchError: If a URL-backed pricing cannot be retrieved
            InvalidPricingError: If a fetched document is not a valid pricing
        """
        service = await self.get_service(service_name, organization_id)
        locator = service.locate(version)
        pricing = await self.load_pricing(locator) if locator else None
        if pricing is None:
            raise PricingNotFoundError(
                f"Pricing version {version} for service {service_name} not found",
                service_name=service_name,
                version=version,
            )
        return pricing

    async def resolve_contract_pricings(self, contract: Contract) -> dict[str, Pricing]:
        """Pricing of every contracted service; any failure fails the whole call."""
        names = list(contract.contracted_services)
        pricings = await self.gather_bounded(
            self.resolve_pricing(name, contract.contracted_services[name], contract.organization_id)
            for name in names
        )
        return dict(zip(names, pricings, strict=True))

    async def resolve_service_pricings(
        self, service: Service, status: PricingStatus = PricingStatus.ACTIVE
    ) -> dict[str, Pricing]:
        """Pricings of a service for the requested status, keyed by version."""
        locators = service.versions(status)
        resolved: dict[str, Pricing] = {}

        id_versions = [version for version, locator in locators.items() if locator.id]
        if id_versions:
            stored = await self.pricing_store.find_pricings_by_service_name(
                service.name, id_versions, service.organization_id
            )
            resolved.update({pricing.version: pricing for pricing in stored})

        url_versions = [version for version, locator in locators.items() if locator.url]
        fetched = await self.gather_bounded(
            self.load_pricing(locators[version]) for version in url_versions
        )
        for version, pricing in zip(url_versions, fetched, strict=True):
            if pricing is not None:
                resolved[version] = pricing

        # Keep the order of the service's own version map
        return {version: resolved[version] for version in locators if version in resolved}

    async def resolve_organization_pricings(
        self, status: PricingStatus, organization_id: str
    ) -> dict[str, dict[str, Pricing]]:
        """Visible pricings of every enabled service of an organization."""
        services = await self.service_store.find_all(organization_id, disabled=False)
        result: dict[str, dict[str, Pricing]] = {}
        for service in services:
            result[service.name] = await self.resolve_service_pricings(service, status)
        return result

    async def get_latest_active_pricing(self, service: Service) -> Pricing | None:
        """The active pricing with the newest ``created_at``."""
        pricings = await self.resolve_service_pricings(service, PricingStatus.ACTIVE)
        if not pricings:
            return None
        return max(pricings.values(), key=lambda pricing: pricing.created_at)
