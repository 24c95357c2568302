"""
Contract models.

A contract holds one user's subscriptions across services, their usage
levels and the billing period. Past periods are kept in ``history``.
"""

from datetime import datetime
from typing import Any

from pydantic import Field, field_validator

from space.platform.models import SpaceBaseModel


class ConsumptionRecord(SpaceBaseModel):
    """One recorded consumption of a usage limit by a feature."""

    feature: str
    amount: float
    recorded_at: datetime


class UsageLevel(SpaceBaseModel):
    """Consumption of one usage limit since its last reset."""

    consumed: float = 0
    reset_timestamp: datetime | None = Field(None, alias="resetTimeStamp")
    records: list[ConsumptionRecord] = Field(default_factory=list)


class BillingPeriod(SpaceBaseModel):
    start_date: datetime
    end_date: datetime
    auto_renew: bool = False
    renewal_days: int = Field(30, ge=0)

    def is_expired(self, now: datetime) -> bool:
        return now > self.end_date


class UserContact(SpaceBaseModel):
    user_id: str
    username: str
    first_name: str | None = None
    last_name: str | None = None
    email: str | None = None
    phone: str | None = None


class Subscription(SpaceBaseModel):
    """The services, plans and add-ons a contract is subscribed to."""

    contracted_services: dict[str, str]
    subscription_plans: dict[str, str] = Field(default_factory=dict)
    subscription_add_ons: dict[str, dict[str, int]] = Field(default_factory=dict)


class ContractHistoryEntry(SpaceBaseModel):
    """A closed billing period and the subscription it covered."""

    start_date: datetime
    end_date: datetime
    contracted_services: dict[str, str]
    subscription_plans: dict[str, str] = Field(default_factory=dict)
    subscription_add_ons: dict[str, dict[str, int]] = Field(default_factory=dict)


class Contract(SpaceBaseModel):
    """A user's subscription record across the services of an organization."""

    id: str | None = None
    user_id: str
    organization_id: str
    user_contact: UserContact | None = None
    billing_period: BillingPeriod
    contracted_services: dict[str, str] = Field(default_factory=dict)
    subscription_plans: dict[str, str] = Field(default_factory=dict)
    subscription_add_ons: dict[str, dict[str, int]] = Field(default_factory=dict)
    usage_levels: dict[str, dict[str, UsageLevel]] = Field(default_factory=dict)
    history: list[ContractHistoryEntry] = Field(default_factory=list)
    disabled: bool = False

    @field_validator("subscription_plans", "subscription_add_ons", "usage_levels", mode="before")
    @classmethod
    def empty_maps(cls, v: Any) -> Any:
        return v if v is not None else {}

    @property
    def subscription(self) -> Subscription:
        return Subscription(
            contracted_services=dict(self.contracted_services),
            subscription_plans=dict(self.subscription_plans),
            subscription_add_ons={k: dict(v) for k, v in self.subscription_add_ons.items()},
        )

    def normalized(self) -> "Contract":
        """Copy in which every contracted service has add-on and usage entries.

        Entries of services no longer contracted are removed. A service
        contracted only through add-ons has no ``subscription_plans`` entry,
        so plan-level lookups for it fall back to the pricing defaults.
        """
        services = self.contracted_services
        return self.model_copy(
            update={
                "subscription_plans": {
                    name: plan for name, plan in self.subscription_plans.items() if name in services
                },
                "subscription_add_ons": {
                    name: dict(self.subscription_add_ons.get(name, {})) for name in services
                },
                "usage_levels": {
                    name: {
                        limit: level.model_copy(deep=True)
                        for limit, level in self.usage_levels.get(name, {}).items()
                    }
                    for name in services
                },
            },
            deep=True,
        )


class ContractFilters(SpaceBaseModel):
    """Criteria for selecting contracts.

    ``services`` is either a list of service names, or a mapping of service
    name to the pricing versions of interest.
    """

    organization_id: str | None = None
    services: list[str] | dict[str, list[str]] | None = None
    plans: dict[str, list[str]] | None = None
    include_disabled: bool = False

    def matches(self, contract: Contract) -> bool:
        if contract.disabled and not self.include_disabled:
            return False
        if self.organization_id and contract.organization_id != self.organization_id:
            return False
        if isinstance(self.services, dict):
            if not any(
                contract.contracted_services.get(service) in versions
                for service, versions in self.services.items()
            ):
                return False
        elif self.services is not None:
            if not any(service in contract.contracted_services for service in self.services):
                return False
        if self.plans:
            if not any(
                contract.subscription_plans.get(service) in plans
                for service, plans in self.plans.items()
            ):
                return False
        return True
