"""
In-memory stores.

Documents are kept in their stored (camelCase, escaped-version) form and
converted back to models on read, so the version codec runs exactly as it
would against a document database.
"""

import asyncio
from typing import Any
from uuid import uuid4

from space.platform.contracts.models import Contract, ContractFilters
from space.platform.exceptions import ContractNotFoundError, ServiceNotFoundError
from space.platform.pricing.models import Pricing, Service
from space.platform.pricing.versions import (
    escape_version,
    escape_version_keys,
    reset_escape_version_in_pricing,
    reset_escape_version_in_service,
)
from space.platform.stores.interfaces import ContractStore, PricingStore, ServiceStore


def _service_document(service: Service) -> dict[str, Any]:
    document = service.to_document()
    document["activePricings"] = escape_version_keys(document["activePricings"])
    document["archivedPricings"] = escape_version_keys(document["archivedPricings"])
    return document


class InMemoryServiceStore(ServiceStore):
    def __init__(self) -> None:
        self._documents: dict[tuple[str, str], dict[str, Any]] = {}
        self._lock = asyncio.Lock()

    async def find_by_name(self, name: str, organization_id: str) -> Service | None:
        document = self._documents.get((organization_id, name.lower()))
        if document is None:
            return None
        return Service.model_validate(reset_escape_version_in_service(document))

    async def find_all(self, organization_id: str, disabled: bool = False) -> list[Service]:
        return [
            Service.model_validate(reset_escape_version_in_service(document))
            for (org, _), document in self._documents.items()
            if org == organization_id and document["disabled"] == disabled
        ]

    async def create(self, service: Service) -> Service:
        async with self._lock:
            if service.id is None:
                service = service.model_copy(update={"id": uuid4().hex})
            self._documents[(service.organization_id, service.name.lower())] = (
                _service_document(service)
            )
        return service

    async def update(self, service: Service) -> Service:
        key = (service.organization_id, service.name.lower())
        async with self._lock:
            if key not in self._documents:
                raise ServiceNotFoundError(
                    f"Service {service.name} not found",
                    service_name=service.name,
                    organization_id=service.organization_id,
                )
            self._documents[key] = _service_document(service)
        return service

    async def disable(self, name: str, organization_id: str) -> Service | None:
        async with self._lock:
            document = self._documents.get((organization_id, name.lower()))
            if document is None:
                return None
            document["disabled"] = True
        return Service.model_validate(reset_escape_version_in_service(document))


class InMemoryPricingStore(PricingStore):
    def __init__(self) -> None:
        self._documents: dict[str, dict[str, Any]] = {}
        self._owners: dict[str, str] = {}

    async def find_by_id(self, pricing_id: str) -> Pricing | None:
        document = self._documents.get(pricing_id)
        if document is None:
            return None
        return Pricing.model_validate(reset_escape_version_in_pricing(document))

    async def find_pricings_by_service_name(
        self, service_name: str, versions: list[str], organization_id: str
    ) -> list[Pricing]:
        wanted = {escape_version(version) for version in versions}
        return [
            Pricing.model_validate(reset_escape_version_in_pricing(document))
            for pricing_id, document in self._documents.items()
            if self._owners[pricing_id] == organization_id
            and document["saasName"].lower() == service_name.lower()
            and document["version"] in wanted
        ]

    async def create(self, pricing: Pricing, organization_id: str) -> Pricing:
        pricing_id = pricing.id or uuid4().hex
        pricing = pricing.model_copy(update={"id": pricing_id})
        document = pricing.to_document()
        document["version"] = escape_version(document["version"])
        self._documents[pricing_id] = document
        self._owners[pricing_id] = organization_id
        return pricing


class InMemoryContractStore(ContractStore):
    def __init__(self) -> None:
        self._documents: dict[str, dict[str, Any]] = {}
        self._lock = asyncio.Lock()

    async def find_by_user_id(self, user_id: str) -> Contract | None:
        document = self._documents.get(user_id)
        return Contract.model_validate(document) if document is not None else None

    async def find_by_filters(self, filters: ContractFilters) -> list[Contract]:
        contracts = [Contract.model_validate(document) for document in self._documents.values()]
        return [contract for contract in contracts if filters.matches(contract)]

    async def create(self, contract: Contract) -> Contract:
        if contract.id is None:
            contract = contract.model_copy(update={"id": uuid4().hex})
        async with self._lock:
            self._documents[contract.user_id] = contract.to_document()
        return contract

    async def update(self, contract: Contract) -> Contract:
        async with self._lock:
            if contract.user_id not in self._documents:
                raise ContractNotFoundError(
                    f"Contract for user {contract.user_id} not found", user_id=contract.user_id
                )
            self._documents[contract.user_id] = contract.to_document()
        return contract

    async def bulk_update(self, contracts: list[Contract], disable: bool = False) -> int:
        async with self._lock:
            if any(contract.user_id not in self._documents for contract in contracts):
                return 0
            for contract in contracts:
                if disable:
                    contract = contract.model_copy(update={"disabled": True})
                self._documents[contract.user_id] = contract.to_document()
        return len(contracts)
