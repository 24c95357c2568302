"""
Pricings: models, document parsing, retrieval and administration.

Resolution and administration live in ``pricing.resolver`` and
``pricing.service``; they are not re-exported here since they depend on
the stores.
"""

from space.platform.pricing.models import (
    AddOn,
    FeatureDefinition,
    FeatureListing,
    Period,
    PeriodUnit,
    Plan,
    Pricing,
    PricingLocator,
    PricingStatus,
    Service,
    UsageLimit,
    UsageLimitType,
    ValueType,
)
from space.platform.pricing.parser import build_pricing, parse_pricing_document
from space.platform.pricing.versions import escape_version, unescape_version

__all__ = [
    "AddOn",
    "FeatureDefinition",
    "FeatureListing",
    "Period",
    "PeriodUnit",
    "Plan",
    "Pricing",
    "PricingLocator",
    "PricingStatus",
    "Service",
    "UsageLimit",
    "UsageLimitType",
    "ValueType",
    "build_pricing",
    "escape_version",
    "parse_pricing_document",
    "unescape_version",
]
