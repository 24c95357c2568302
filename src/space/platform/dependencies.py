"""
Component wiring.

Builds the engine's object graph by explicit constructor injection. Stores
and the event sink are supplied by the caller; everything else is derived
from settings.
"""

from dataclasses import dataclass

import httpx

from space.platform.cache.backends import MemoryCacheBackend, RedisCacheBackend
from space.platform.cache.interfaces import CacheBackend
from space.platform.cache.service import CacheService
from space.platform.contracts.service import ContractService
from space.platform.evaluation.expressions import ExpressionEvaluator
from space.platform.evaluation.service import FeatureEvaluationService
from space.platform.events import EventSink, PricingEventNotifier
from space.platform.pricing.fetcher import PricingFetcher
from space.platform.pricing.resolver import PricingResolver
from space.platform.pricing.service import PricingAdminService
from space.platform.settings import Settings, get_settings
from space.platform.stores.interfaces import ContractStore, PricingStore, ServiceStore
from space.platform.stores.memory import (
    InMemoryContractStore,
    InMemoryPricingStore,
    InMemoryServiceStore,
)


@dataclass
class EngineComponents:
    """Every collaborator of the evaluation engine, wired together."""

    settings: Settings
    cache: CacheService
    service_store: ServiceStore
    pricing_store: PricingStore
    contract_store: ContractStore
    fetcher: PricingFetcher
    resolver: PricingResolver
    contracts: ContractService
    evaluator: ExpressionEvaluator
    events: PricingEventNotifier
    evaluation: FeatureEvaluationService
    pricing_admin: PricingAdminService

    async def startup(self) -> None:
        await self.cache.backend.connect()

    async def shutdown(self) -> None:
        await self.events.drain()
        await self.fetcher.aclose()
        await self.cache.backend.disconnect()


def build_cache_backend(settings: Settings) -> CacheBackend:
    if settings.cache.backend == "redis":
        return RedisCacheBackend(
            url=settings.redis.redis_url,
            max_connections=settings.redis.max_connections,
            socket_timeout=settings.redis.socket_timeout,
        )
    return MemoryCacheBackend(max_size=settings.cache.max_size)


def build_components(
    settings: Settings | None = None,
    *,
    service_store: ServiceStore | None = None,
    pricing_store: PricingStore | None = None,
    contract_store: ContractStore | None = None,
    cache_backend: CacheBackend | None = None,
    http_client: httpx.AsyncClient | None = None,
    event_sink: EventSink | None = None,
) -> EngineComponents:
    """Wire the engine. Missing stores default to in-memory ones."""
    settings = settings or get_settings()

    cache = CacheService(
        cache_backend or build_cache_backend(settings),
        key_prefix=settings.cache.key_prefix,
        default_ttl=settings.cache.default_ttl,
    )
    service_store = service_store or InMemoryServiceStore()
    pricing_store = pricing_store or InMemoryPricingStore()
    contract_store = contract_store or InMemoryContractStore()

    fetcher = PricingFetcher(
        timeout=settings.pricing.fetch_timeout_seconds,
        verify_ssl=settings.pricing.verify_ssl,
        local_root=settings.pricing.local_pricing_root,
        client=http_client,
    )
    resolver = PricingResolver(
        service_store,
        pricing_store,
        cache,
        fetcher,
        concurrency=settings.pricing.fetch_concurrency,
        cache_ttl=settings.pricing.cache_ttl,
    )
    contracts = ContractService(
        contract_store,
        cache,
        cache_ttl=settings.evaluation.cache_ttl,
        default_renewal_days=settings.evaluation.default_renewal_days,
    )
    evaluator = ExpressionEvaluator(
        max_length=settings.evaluation.max_expression_length,
        cache_size=settings.evaluation.expression_cache_size,
    )
    events = PricingEventNotifier(event_sink)

    return EngineComponents(
        settings=settings,
        cache=cache,
        service_store=service_store,
        pricing_store=pricing_store,
        contract_store=contract_store,
        fetcher=fetcher,
        resolver=resolver,
        contracts=contracts,
        evaluator=evaluator,
        events=events,
        evaluation=FeatureEvaluationService(
            resolver, contracts, cache, evaluator, cache_ttl=settings.evaluation.cache_ttl
        ),
        pricing_admin=PricingAdminService(
            service_store, pricing_store, contract_store, resolver, cache, events
        ),
    )
