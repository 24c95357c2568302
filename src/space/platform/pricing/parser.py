"""
Pricing document parser.

Reads Pricing2Yaml-style documents (YAML, or JSON which is a YAML subset)
into validated ``Pricing`` models. Any structural problem fails the whole
document; no partially parsed pricing is ever returned.
"""

from typing import Any

import structlog
import yaml
from pydantic import ValidationError as PydanticValidationError

from space.platform.exceptions import InvalidPricingError
from space.platform.pricing.models import Pricing

logger = structlog.get_logger(__name__)


def _format_errors(error: PydanticValidationError) -> list[str]:
    messages = []
    for detail in error.errors():
        location = ".".join(str(part) for part in detail["loc"])
        message = detail["msg"]
        messages.append(f"{location}: {message}" if location else message)
    return messages


def build_pricing(document: Any, source: str | None = None) -> Pricing:
    """Validate an already-loaded pricing document.

    Raises:
        InvalidPricingError: If the document is not a valid pricing
    """
    if not isinstance(document, dict):
        raise InvalidPricingError("Pricing document must be a mapping", source=source)

    try:
        return Pricing.model_validate(document)
    except PydanticValidationError as e:
        errors = _format_errors(e)
        logger.warning("pricing.parse.invalid", source=source, errors=errors)
        raise InvalidPricingError(
            "Pricing document failed validation", source=source, validation_errors=errors
        ) from e


def parse_pricing_document(content: str | bytes, source: str | None = None) -> Pricing:
    """Parse and validate the text of a pricing document.

    Args:
        content: YAML or JSON text
        source: URL or path the document came from, for error context

    Raises:
        InvalidPricingError: If the text is not YAML or not a valid pricing
    """
    try:
        document = yaml.safe_load(content)
    except yaml.YAMLError as e:
        logger.warning("pricing.parse.malformed", source=source, error=str(e))
        raise InvalidPricingError(
            "Pricing document is not valid YAML", source=source, validation_errors=[str(e)]
        ) from e

    return build_pricing(document, source=source)
