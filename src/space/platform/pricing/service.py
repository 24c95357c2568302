"""
Pricing administration with contract novation.

Changing which pricing versions of a service are available, or disabling
the service, rewrites every affected contract. The whole affected set is
read and validated before anything is written, and a short bulk write is
reported as a failure of the whole operation.
"""

from datetime import UTC, datetime

import structlog

from space.platform.cache.keys import CacheKey
from space.platform.cache.service import CacheService
from space.platform.contracts.models import Contract, ContractFilters
from space.platform.contracts.novation import (
    FallbackSubscription,
    novate_contract_to_pricing,
    remove_service_from_contract,
)
from space.platform.events import PricingEventNotifier
from space.platform.exceptions import (
    NovationError,
    PricingNotFoundError,
    ServiceNotFoundError,
    ValidationError,
)
from space.platform.pricing.models import Pricing, PricingLocator, PricingStatus, Service
from space.platform.pricing.resolver import PricingResolver
from space.platform.stores.interfaces import ContractStore, PricingStore, ServiceStore

logger = structlog.get_logger(__name__)


class PricingAdminService:
    """Publishes, archives and activates pricings and disables services."""

    def __init__(
        self,
        service_store: ServiceStore,
        pricing_store: PricingStore,
        contract_store: ContractStore,
        resolver: PricingResolver,
        cache: CacheService,
        events: PricingEventNotifier,
    ):
        self.service_store = service_store
        self.pricing_store = pricing_store
        self.contract_store = contract_store
        self.resolver = resolver
        self.cache = cache
        self.events = events

    async def _get_service(self, service_name: str, organization_id: str) -> Service:
        service = await self.service_store.find_by_name(service_name, organization_id)
        if service is None or service.disabled:
            raise ServiceNotFoundError(
                f"Service {service_name} not found",
                service_name=service_name,
                organization_id=organization_id,
            )
        return service

    async def _save_service(self, service: Service) -> Service:
        updated = await self.service_store.update(service)
        await self.resolver.invalidate_service(service.name, service.organization_id)
        return updated

    async def _write_contracts(self, contracts: list[Contract]) -> None:
        if not contracts:
            return
        updated = await self.contract_store.bulk_update(contracts)
        if updated != len(contracts):
            logger.error(
                "novation.bulk_update.short", expected=len(contracts), updated=updated
            )
            raise NovationError(
                f"Only {updated} of {len(contracts)} contracts could be novated",
                expected=len(contracts),
                updated=updated,
            )
        for contract in contracts:
            await self.cache.delete(CacheKey.contract(contract.user_id))
            await self.cache.delete_pattern(CacheKey.evaluations_pattern(contract.user_id))

    async def add_pricing(
        self,
        service_name: str,
        organization_id: str,
        pricing: Pricing | None = None,
        url: str | None = None,
    ) -> Service:
        """Publish a new active version, stored (``pricing``) or URL-backed (``url``)."""
        if (pricing is None) == (url is None):
            raise ValidationError("Provide exactly one of a pricing document or a pricing URL")

        service = await self._get_service(service_name, organization_id)
        if pricing is None:
            pricing = await self.resolver.fetcher.fetch(url or "")

        if service.locate(pricing.version) is not None:
            raise ValidationError(
                f"Version {pricing.version} already exists for service {service_name}",
                context={"service_name": service_name, "version": pricing.version},
            )
        if pricing.saas_name.lower() != service.name.lower():
            raise ValidationError(
                f"Pricing belongs to {pricing.saas_name}, not to service {service_name}",
                context={"service_name": service_name, "saas_name": pricing.saas_name},
            )

        if url is None:
            pricing = await self.pricing_store.create(pricing, organization_id)
            locator = PricingLocator(id=pricing.id)
        else:
            locator = PricingLocator(url=url)

        updated = await self._save_service(
            service.model_copy(
                update={"active_pricings": {**service.active_pricings, pricing.version: locator}}
            )
        )
        logger.info("pricing.created", service_name=service.name, version=pricing.version)
        self.events.pricing_created(service.name, pricing.version)
        return updated

    async def update_pricing_availability(
        self,
        service_name: str,
        version: str,
        availability: PricingStatus,
        organization_id: str,
        fallback: FallbackSubscription | None = None,
    ) -> Service:
        """Archive or re-activate a pricing version.

        Archiving moves every contract on that version to the newest
        remaining active pricing with the fallback subscription.

        Raises:
            ValidationError: If the last active version would be archived, or
                no fallback subscription is given for an archival
            InvalidSubscriptionError: If the fallback does not fit the target pricing
            NovationError: If not every affected contract could be written
        """
        if availability is PricingStatus.ALL:
            raise ValidationError("Availability must be 'active' or 'archived'")

        service = await self._get_service(service_name, organization_id)
        if availability is PricingStatus.ACTIVE and version in service.active_pricings:
            return service
        if availability is PricingStatus.ARCHIVED and version in service.archived_pricings:
            return service

        locator = service.locate(version)
        if locator is None:
            raise PricingNotFoundError(
                f"Pricing version {version} not found for service {service_name}",
                service_name=service_name,
                version=version,
            )

        if availability is PricingStatus.ACTIVE:
            archived = dict(service.archived_pricings)
            archived.pop(version)
            updated = await self._save_service(
                service.model_copy(
                    update={
                        "active_pricings": {**service.active_pricings, version: locator},
                        "archived_pricings": archived,
                    }
                )
            )
            logger.info("pricing.activated", service_name=service.name, version=version)
            self.events.pricing_activated(service.name, version)
            return updated

        if len(service.active_pricings) == 1:
            raise ValidationError(
                f"You cannot archive the last active pricing for service {service_name}",
                context={"service_name": service_name, "version": version},
                recovery_hint="Publish or activate another version before archiving this one",
            )
        if fallback is None or fallback.is_empty():
            raise ValidationError(
                f"Archiving version {version} of service {service_name} requires a "
                "fallback subscription for the affected contracts",
                context={"service_name": service_name, "version": version},
                recovery_hint="Provide a subscription plan and/or add-ons of the latest version",
            )

        active = dict(service.active_pricings)
        active.pop(version)
        archived_service = service.model_copy(
            update={
                "active_pricings": active,
                "archived_pricings": {**service.archived_pricings, version: locator},
            }
        )

        novated = await self._novate_contracts_to_latest_version(
            archived_service, version, fallback
        )
        await self._write_contracts(novated)

        updated = await self._save_service(archived_service)
        await self.cache.delete_pattern(CacheKey.all_evaluations())
        logger.info(
            "pricing.archived",
            service_name=service.name,
            version=version,
            novated_contracts=len(novated),
        )
        self.events.pricing_archived(service.name, version)
        return updated

    async def _novate_contracts_to_latest_version(
        self, service: Service, version: str, fallback: FallbackSubscription
    ) -> list[Contract]:
        contracts = await self.contract_store.find_by_filters(
            ContractFilters(
                organization_id=service.organization_id, services={service.name: [version]}
            )
        )
        if not contracts:
            return []

        latest = await self.resolver.get_latest_active_pricing(service)
        if latest is None:
            raise PricingNotFoundError(
                f"No active pricing found for service {service.name}", service_name=service.name
            )

        now = datetime.now(UTC)
        return [
            novate_contract_to_pricing(contract, service.name, latest, now, fallback)
            for contract in contracts
        ]

    async def disable_service(self, service_name: str, organization_id: str) -> Service:
        """Remove a service from every contract, then disable it.

        Contracts left without services are force-disabled.

        Raises:
            NovationError: If not every affected contract could be written
        """
        service = await self._get_service(service_name, organization_id)
        contracts = await self.contract_store.find_by_filters(
            ContractFilters(organization_id=organization_id, services=[service.name])
        )

        now = datetime.now(UTC)
        novated = [
            remove_service_from_contract(contract, service.name, now) for contract in contracts
        ]
        await self._write_contracts(novated)

        disabled = await self.service_store.disable(service.name, organization_id)
        await self.resolver.invalidate_service(service.name, organization_id)
        logger.info(
            "service.disabled",
            service_name=service.name,
            novated_contracts=len(novated),
            disabled_contracts=sum(1 for contract in novated if contract.disabled),
        )
        self.events.service_disabled(service.name)
        return disabled or service.model_copy(update={"disabled": True})
