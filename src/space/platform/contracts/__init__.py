"""Contracts: models, usage-level lifecycle, novation and persistence."""

from space.platform.contracts.models import (
    BillingPeriod,
    ConsumptionRecord,
    Contract,
    ContractFilters,
    ContractHistoryEntry,
    Subscription,
    UsageLevel,
    UserContact,
)
from space.platform.contracts.novation import (
    FallbackSubscription,
    novate_contract_to_pricing,
    perform_novation,
    remove_service_from_contract,
    validate_subscription,
)

__all__ = [
    "BillingPeriod",
    "ConsumptionRecord",
    "Contract",
    "ContractFilters",
    "ContractHistoryEntry",
    "FallbackSubscription",
    "Subscription",
    "UsageLevel",
    "UserContact",
    "novate_contract_to_pricing",
    "perform_novation",
    "remove_service_from_contract",
    "validate_subscription",
]
