"""
Persistence interfaces consumed by the engine.

Drivers live outside this package; the in-memory implementations in
``space.platform.stores.memory`` back tests and local development.
Version-keyed mappings keep insertion order.
"""

from abc import ABC, abstractmethod

from space.platform.contracts.models import Contract, ContractFilters
from space.platform.pricing.models import Pricing, Service


class ServiceStore(ABC):
    """Abstract store of services."""

    @abstractmethod
    async def find_by_name(self, name: str, organization_id: str) -> Service | None:
        """Find a service by name within an organization."""
        pass

    @abstractmethod
    async def find_all(self, organization_id: str, disabled: bool = False) -> list[Service]:
        """List the services of an organization."""
        pass

    @abstractmethod
    async def create(self, service: Service) -> Service:
        """Store a new service."""
        pass

    @abstractmethod
    async def update(self, service: Service) -> Service:
        """Replace a stored service."""
        pass

    @abstractmethod
    async def disable(self, name: str, organization_id: str) -> Service | None:
        """Mark a service as disabled."""
        pass


class PricingStore(ABC):
    """Abstract store of id-backed pricings."""

    @abstractmethod
    async def find_by_id(self, pricing_id: str) -> Pricing | None:
        """Find a pricing by id."""
        pass

    @abstractmethod
    async def find_pricings_by_service_name(
        self, service_name: str, versions: list[str], organization_id: str
    ) -> list[Pricing]:
        """Find stored pricings of a service among the given versions."""
        pass

    @abstractmethod
    async def create(self, pricing: Pricing, organization_id: str) -> Pricing:
        """Store a new pricing and return it with its id."""
        pass


class ContractStore(ABC):
    """Abstract store of contracts."""

    @abstractmethod
    async def find_by_user_id(self, user_id: str) -> Contract | None:
        """Find the contract of a user."""
        pass

    @abstractmethod
    async def find_by_filters(self, filters: ContractFilters) -> list[Contract]:
        """Find contracts matching the filters."""
        pass

    @abstractmethod
    async def create(self, contract: Contract) -> Contract:
        """Store a new contract."""
        pass

    @abstractmethod
    async def update(self, contract: Contract) -> Contract:
        """Replace the stored contract of ``contract.user_id``."""
        pass

    @abstractmethod
    async def bulk_update(self, contracts: list[Contract], disable: bool = False) -> int:
        """Replace several contracts at once.

        All-or-nothing: returns the number of contracts written, which is
        either ``len(contracts)`` or zero. ``disable`` marks every written
        contract as disabled.
        """
        pass
