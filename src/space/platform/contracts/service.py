"""
Contract service.

Persists contract state changes made during evaluation (renewals, usage
resets, consumption and reverts) and keeps the per-user caches coherent:
every change drops the cached contract and evaluations of that user.
"""

from datetime import UTC, datetime, timedelta

import structlog

from space.platform.cache.keys import CacheKey
from space.platform.cache.service import CacheService
from space.platform.contracts.models import BillingPeriod, Contract, ContractHistoryEntry
from space.platform.contracts.usage import (
    expired_usage_levels,
    record_consumption,
    reset_usage_levels,
    revert_consumption,
)
from space.platform.exceptions import ContractNotFoundError
from space.platform.pricing.models import Pricing
from space.platform.stores.interfaces import ContractStore

logger = structlog.get_logger(__name__)


def split_feature_id(feature_id: str, services: dict[str, str]) -> tuple[str | None, str]:
    """Split ``"<service>.<feature>"`` when the prefix is a contracted service."""
    service, _, feature = feature_id.partition(".")
    if feature and service in services:
        return service, feature
    return None, feature_id


class ContractService:
    """Reads and updates contracts on behalf of the evaluation engine."""

    def __init__(
        self,
        store: ContractStore,
        cache: CacheService,
        cache_ttl: int = 3600,
        default_renewal_days: int = 30,
    ):
        self.store = store
        self.cache = cache
        self.cache_ttl = cache_ttl
        self.default_renewal_days = default_renewal_days

    async def show(self, user_id: str) -> Contract:
        contract = await self.store.find_by_user_id(user_id)
        if contract is None:
            raise ContractNotFoundError(
                f"Contract with userId {user_id} not found", user_id=user_id
            )
        return contract

    async def get_cached(self, user_id: str) -> Contract:
        """Contract of a user, read through the ``contracts.<user>`` cache entry."""
        cached = await self.cache.get(CacheKey.contract(user_id))
        if cached is not None:
            return Contract.model_validate(cached)

        contract = await self.show(user_id)
        await self.cache.set(
            CacheKey.contract(user_id), contract.to_document(), ttl=self.cache_ttl, overwrite=True
        )
        return contract

    async def invalidate(self, user_id: str) -> None:
        """Drop cached evaluations and the cached contract of a user."""
        await self.cache.delete_pattern(CacheKey.evaluations_pattern(user_id))
        await self.cache.delete(CacheKey.contract(user_id))

    async def _save(self, contract: Contract) -> Contract:
        await self.invalidate(contract.user_id)
        return await self.store.update(contract)

    async def renew(self, contract: Contract, now: datetime | None = None) -> Contract:
        """Open a new billing period of ``renewal_days`` starting now."""
        now = now or datetime.now(UTC)
        period = contract.billing_period
        renewal_days = period.renewal_days or self.default_renewal_days

        renewed = contract.model_copy(
            update={
                "history": [
                    *contract.history,
                    ContractHistoryEntry(
                        start_date=period.start_date,
                        end_date=period.end_date,
                        contracted_services=dict(contract.contracted_services),
                        subscription_plans=dict(contract.subscription_plans),
                        subscription_add_ons={
                            k: dict(v) for k, v in contract.subscription_add_ons.items()
                        },
                    ),
                ],
                "billing_period": BillingPeriod(
                    start_date=now,
                    end_date=now + timedelta(days=renewal_days),
                    auto_renew=period.auto_renew,
                    renewal_days=renewal_days,
                ),
            },
            deep=True,
        )

        logger.info(
            "contract.renewed",
            user_id=contract.user_id,
            previous_end=period.end_date.isoformat(),
            new_end=renewed.billing_period.end_date.isoformat(),
        )
        return await self._save(renewed)

    async def reset_expired_usage_levels(
        self, contract: Contract, pricings: dict[str, Pricing], now: datetime | None = None
    ) -> Contract:
        """Reset every usage level whose reset timestamp has passed.

        The user's caches are invalidated before the reset is persisted.
        """
        now = now or datetime.now(UTC)
        expired = expired_usage_levels(contract, now)
        if not expired:
            return contract

        await self.invalidate(contract.user_id)
        reset = reset_usage_levels(contract, expired, pricings, now)
        logger.info(
            "contract.usage_levels.reset",
            user_id=contract.user_id,
            usage_levels=[f"{service}.{limit}" for service, limit in expired],
        )
        return await self._save(reset)

    async def record_consumption(
        self,
        contract: Contract,
        service: str,
        feature: str,
        amounts: dict[str, float],
        now: datetime | None = None,
        pricing: Pricing | None = None,
    ) -> Contract:
        now = now or datetime.now(UTC)
        updated = record_consumption(contract, service, feature, amounts, now, pricing=pricing)
        logger.debug(
            "contract.consumption.recorded",
            user_id=contract.user_id,
            service=service,
            feature=feature,
            amounts=amounts,
        )
        return await self._save(updated)

    async def revert_consumption(
        self, user_id: str, feature_id: str, latest: bool = True
    ) -> Contract:
        """Undo the latest, or every, consumption recorded for a feature."""
        contract = await self.show(user_id)
        service, feature = split_feature_id(feature_id, contract.contracted_services)
        reverted, amount = revert_consumption(contract, service, feature, latest=latest)

        logger.info(
            "contract.consumption.reverted",
            user_id=user_id,
            feature_id=feature_id,
            latest=latest,
            amount=amount,
        )
        return await self._save(reverted)
