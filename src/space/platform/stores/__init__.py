"""Store interfaces and in-memory implementations."""

from space.platform.stores.interfaces import ContractStore, PricingStore, ServiceStore
from space.platform.stores.memory import (
    InMemoryContractStore,
    InMemoryPricingStore,
    InMemoryServiceStore,
)

__all__ = [
    "ContractStore",
    "InMemoryContractStore",
    "InMemoryPricingStore",
    "InMemoryServiceStore",
    "PricingStore",
    "ServiceStore",
]
