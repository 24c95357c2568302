"""
Shared fixtures for the SPACE platform test suite.

Provides an ``acme`` pricing (the reference service used across tests),
in-memory stores, a memory-backed cache and a fully wired engine.
"""

import copy
from datetime import UTC, datetime, timedelta
from typing import Any

import httpx
import pytest

from space.platform.cache.backends import MemoryCacheBackend
from space.platform.cache.service import CacheService
from space.platform.contracts.models import BillingPeriod, Contract, UsageLevel, UserContact
from space.platform.dependencies import EngineComponents, build_components
from space.platform.pricing.models import Pricing, PricingLocator, Service
from space.platform.settings import Settings

ORG_ID = "org-1"
USER_ID = "user-1"

ACME_DOCUMENT: dict[str, Any] = {
    "saasName": "acme",
    "version": "1.0.0",
    "currency": "USD",
    "createdAt": "2025-01-01T00:00:00Z",
    "features": {
        "maxSeats": {
            "valueType": "BOOLEAN",
            "defaultValue": False,
            "type": "DOMAIN",
            "expression": "features.maxSeats && usage.seats <= usageLimits.seats",
        },
        "apiAccess": {
            "valueType": "BOOLEAN",
            "defaultValue": False,
            "type": "INTEGRATION",
            "expression": "pricingContext['features']['apiAccess'] && "
            "subscriptionContext['apiCalls'] < pricingContext['usageLimits']['apiCalls']",
            "serverExpression": "features.apiAccess",
        },
        "sso": {
            "valueType": "BOOLEAN",
            "defaultValue": False,
            "type": "MANAGEMENT",
        },
        "supportLevel": {
            "valueType": "TEXT",
            "defaultValue": "community",
            "type": "SUPPORT",
            "expression": "features.supportLevel != 'community'",
        },
    },
    "usageLimits": {
        "seats": {
            "valueType": "NUMERIC",
            "defaultValue": 1,
            "linkedFeatures": ["maxSeats"],
            "trackable": True,
            "type": "NON_RENEWABLE",
        },
        "apiCalls": {
            "valueType": "NUMERIC",
            "defaultValue": 0,
            "linkedFeatures": ["apiAccess"],
            "trackable": True,
            "type": "RENEWABLE",
            "period": {"value": 1, "unit": "MONTH"},
        },
    },
    "plans": {
        "BASIC": {
            "price": 10,
            "features": {"maxSeats": True},
            "usageLimits": {"seats": 10},
        },
        "PRO": {
            "price": 30,
            "features": {"maxSeats": True, "apiAccess": True, "supportLevel": "priority"},
            "usageLimits": {"seats": 50, "apiCalls": 1000},
        },
    },
    "addOns": {
        "extraSeats": {
            "price": 2,
            "availableFor": ["BASIC", "PRO"],
            "usageLimitsExtensions": {"seats": 5},
        },
        "ssoPack": {
            "price": 5,
            "availableFor": ["PRO"],
            "features": {"sso": True},
        },
    },
}


def acme_document(**overrides: Any) -> dict[str, Any]:
    """A deep copy of the reference pricing document with top-level overrides."""
    document = copy.deepcopy(ACME_DOCUMENT)
    document.update(overrides)
    return document


def make_contract(
    user_id: str = USER_ID,
    services: dict[str, str] | None = None,
    plans: dict[str, str] | None = None,
    add_ons: dict[str, dict[str, int]] | None = None,
    usage_levels: dict[str, dict[str, UsageLevel]] | None = None,
    end_date: datetime | None = None,
    auto_renew: bool = False,
    renewal_days: int = 30,
    organization_id: str = ORG_ID,
) -> Contract:
    now = datetime.now(UTC)
    services = services if services is not None else {"acme": "1.0.0"}
    return Contract(
        user_id=user_id,
        organization_id=organization_id,
        user_contact=UserContact(user_id=user_id, username=f"{user_id}-name"),
        billing_period=BillingPeriod(
            start_date=now - timedelta(days=1),
            end_date=end_date or now + timedelta(days=29),
            auto_renew=auto_renew,
            renewal_days=renewal_days,
        ),
        contracted_services=services,
        subscription_plans=plans if plans is not None else {"acme": "BASIC"},
        subscription_add_ons=add_ons if add_ons is not None else {"acme": {}},
        usage_levels=usage_levels
        if usage_levels is not None
        else {"acme": {"seats": UsageLevel(consumed=0)}},
    ).normalized()


@pytest.fixture
def pricing_document():
    """Factory for copies of the reference pricing document."""
    return acme_document


@pytest.fixture
def contract_factory():
    """Factory for contracts subscribed to the reference pricing."""
    return make_contract


@pytest.fixture
def acme_pricing() -> Pricing:
    return Pricing.model_validate(acme_document())


@pytest.fixture
def memory_cache() -> CacheService:
    return CacheService(MemoryCacheBackend())


@pytest.fixture
def engine_settings() -> Settings:
    return Settings(environment="test", testing=True)


@pytest.fixture
def remote_documents() -> dict[str, str]:
    """URL to YAML body served by the mock HTTP transport."""
    return {}


@pytest.fixture
def http_client(remote_documents: dict[str, str]) -> httpx.AsyncClient:
    def handler(request: httpx.Request) -> httpx.Response:
        body = remote_documents.get(str(request.url))
        if body is None:
            return httpx.Response(404, text="not found")
        return httpx.Response(200, text=body)

    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


@pytest.fixture
async def components(engine_settings: Settings, http_client: httpx.AsyncClient) -> EngineComponents:
    engine = build_components(engine_settings, http_client=http_client)
    await engine.startup()
    yield engine
    await engine.shutdown()


@pytest.fixture
async def acme_service(components: EngineComponents, acme_pricing: Pricing) -> Service:
    """The ``acme`` service with version 1.0.0 stored and active."""
    stored = await components.pricing_store.create(acme_pricing, ORG_ID)
    return await components.service_store.create(
        Service(
            name="acme",
            organization_id=ORG_ID,
            active_pricings={"1.0.0": PricingLocator(id=stored.id)},
        )
    )


@pytest.fixture
async def acme_contract(components: EngineComponents, acme_service: Service) -> Contract:
    return await components.contract_store.create(make_contract())
