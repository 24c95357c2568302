"""
Feature evaluation orchestrator.

Answers "what may this user do" for all features of their contract, or
for one feature with an optional consumption, and lists the feature
catalog of an organization. Contract validity is checked, and expired
usage levels are reset, before any expression is evaluated.
"""

from datetime import UTC, datetime

import structlog

from space.platform.cache.keys import CacheKey
from space.platform.cache.service import CacheService
from space.platform.contracts.models import Contract
from space.platform.contracts.service import ContractService
from space.platform.evaluation.engine import (
    aggregate_cache_effects,
    build_contexts,
    evaluate_all_features,
    evaluate_feature,
    feature_cache_effects,
    resolve_feature_id,
)
from space.platform.evaluation.expressions import ExpressionEvaluator
from space.platform.evaluation.models import (
    EvaluationContexts,
    EvaluationEnvelope,
    EvaluationOptions,
    FeatureEvaluationResult,
    FeatureListFilters,
    SingleEvaluationOptions,
)
from space.platform.exceptions import ContractNotFoundError, SubscriptionExpiredError
from space.platform.logging import log_context
from space.platform.pricing.models import FeatureListing, Pricing
from space.platform.pricing.resolver import PricingResolver

logger = structlog.get_logger(__name__)


class FeatureEvaluationService:
    """Coordinates pricing resolution, contract upkeep and evaluation."""

    def __init__(
        self,
        resolver: PricingResolver,
        contracts: ContractService,
        cache: CacheService,
        evaluator: ExpressionEvaluator,
        cache_ttl: int = 3600,
    ):
        self.resolver = resolver
        self.contracts = contracts
        self.cache = cache
        self.evaluator = evaluator
        self.cache_ttl = cache_ttl

    # ------------------------------------------------------------------
    # Catalog
    # ------------------------------------------------------------------

    async def list_features(
        self, filters: FeatureListFilters, organization_id: str
    ) -> list[FeatureListing]:
        """Page of the organization's features matching the filters."""
        pricings = await self.resolver.resolve_organization_pricings(filters.show, organization_id)
        features = self._parse_pricings_to_features(pricings, filters)
        self._sort_features(features, filters)
        start = filters.start_index
        return features[start : start + filters.limit]

    @staticmethod
    def _parse_pricings_to_features(
        pricings: dict[str, dict[str, Pricing]], filters: FeatureListFilters
    ) -> list[FeatureListing]:
        def matches(value: str, wanted: str | None) -> bool:
            return not wanted or wanted.lower() in value.lower()

        return [
            FeatureListing(info=feature, service=service, pricing_version=version)
            for service, versions in pricings.items()
            if matches(service, filters.service_name)
            for version, pricing in versions.items()
            if matches(version, filters.pricing_version)
            for feature in pricing.features.values()
            if matches(feature.name, filters.feature_name)
        ]

    @staticmethod
    def _sort_features(features: list[FeatureListing], filters: FeatureListFilters) -> None:
        if filters.sort == "featureName":
            features.sort(key=lambda f: f.info.name.lower(), reverse=filters.order == "desc")
        else:
            features.sort(key=lambda f: f.service.lower(), reverse=filters.order == "desc")

    # ------------------------------------------------------------------
    # Evaluation
    # ------------------------------------------------------------------

    async def _retrieve_contexts(
        self, user_id: str, organization_id: str, server: bool
    ) -> tuple[Contract, dict[str, Pricing], EvaluationContexts]:
        contract = await self.contracts.get_cached(user_id)
        if contract.organization_id != organization_id:
            raise ContractNotFoundError(
                f"Contract with userId {user_id} not found in organization {organization_id}",
                user_id=user_id,
            )

        now = datetime.now(UTC)
        if contract.billing_period.is_expired(now):
            if not contract.billing_period.auto_renew:
                logger.info("evaluation.subscription_expired", user_id=user_id)
                raise SubscriptionExpiredError(
                    "Invalid subscription: your subscription has expired and is not set to "
                    "renew automatically. Purchase a subscription to keep accessing features.",
                    user_id=user_id,
                )
            contract = await self.contracts.renew(contract, now)

        pricings = await self.resolver.resolve_contract_pricings(contract)
        contract = await self.contracts.reset_expired_usage_levels(contract, pricings, now)
        return contract, pricings, build_contexts(contract, pricings, server=server)

    async def evaluate_all(
        self,
        user_id: str,
        organization_id: str,
        options: EvaluationOptions | None = None,
    ) -> dict[str, FeatureEvaluationResult] | EvaluationEnvelope:
        """Evaluate every feature of the user's contract.

        Raises:
            ContractNotFoundError: If the user has no contract
            SubscriptionExpiredError: If the contract lapsed without auto-renewal
            NotFoundError, RemoteFetchError, InvalidPricingError: If any
                contracted pricing cannot be resolved
        """
        with log_context(user_id=user_id, organization_id=organization_id):
            options = options or EvaluationOptions()
            _, pricings, contexts = await self._retrieve_contexts(
                user_id, organization_id, options.server
            )

            results = evaluate_all_features(
                self.evaluator, pricings, contexts, details=options.details
            )
            await self.cache.apply(aggregate_cache_effects(user_id, results, self.cache_ttl))

            if options.return_contexts:
                return EvaluationEnvelope(
                    pricing_context=contexts.pricing_context,
                    subscription_context=contexts.subscription_context,
                    result=results,
                )
            return results

    async def evaluate_one(
        self,
        user_id: str,
        feature_id: str,
        expected_consumption: dict[str, float] | None,
        organization_id: str,
        options: SingleEvaluationOptions | None = None,
    ) -> bool | FeatureEvaluationResult:
        """Evaluate one feature, consuming usage when the evaluation allows it.

        With ``options.revert`` the latest (or every) consumption of the
        feature is undone instead and ``True`` is returned.

        Raises:
            FeatureNotFoundError: If no contracted pricing declares the feature
            ExpressionError: If the feature's expression cannot be evaluated
        """
        with log_context(user_id=user_id, organization_id=organization_id):
            options = options or SingleEvaluationOptions()

            if not options.revert and not expected_consumption:
                cached = await self.cache.get(CacheKey.feature_evaluation(user_id, feature_id))
                if cached is not None:
                    return FeatureEvaluationResult.model_validate(cached)

            contract, pricings, contexts = await self._retrieve_contexts(
                user_id, organization_id, options.server
            )

            if options.revert:
                await self.contracts.revert_consumption(user_id, feature_id, latest=options.latest)
                return True

            service, feature = resolve_feature_id(feature_id, pricings)
            outcome = evaluate_feature(
                self.evaluator,
                service,
                feature,
                pricings[service],
                contexts,
                expected_consumption=expected_consumption,
            )

            if outcome.consumption:
                await self.contracts.record_consumption(
                    contract,
                    service,
                    feature,
                    outcome.consumption,
                    pricing=pricings[service],
                )
            elif outcome.result.limit_reached:
                logger.info(
                    "evaluation.limit_reached",
                    feature_id=outcome.feature_id,
                    used=outcome.result.used,
                    limit=outcome.result.limit,
                )

            await self.cache.apply(
                feature_cache_effects(user_id, feature_id, outcome, self.cache_ttl)
            )
            return outcome.result
