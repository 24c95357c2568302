"""
Feature evaluation engine exceptions.

Custom exceptions for pricing resolution, contract bookkeeping and feature
evaluation. Every error carries a status code, machine-readable error code,
context and a recovery hint so the excluded HTTP layer can render it as-is.
"""

from typing import Any


class SpaceError(Exception):
    """
    Base engine error with enhanced context.

    Attributes:
        message: Human-readable error message
        error_code: Machine-readable error code for API responses
        status_code: HTTP status code for this error type
        context: Additional context data about the error
        recovery_hint: Suggested action to resolve the error
    """

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        status_code: int = 400,
        context: dict[str, Any] | None = None,
        recovery_hint: str | None = None,
    ):
        self.message = message
        self.error_code = error_code or "SPACE_ERROR"
        self.status_code = status_code
        self.context = context or {}
        self.recovery_hint = recovery_hint
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for API responses."""
        return {
            "error_code": self.error_code,
            "message": self.message,
            "status_code": self.status_code,
            "context": self.context,
            "recovery_hint": self.recovery_hint,
        }


# ============================================================================
# Not found
# ============================================================================


class NotFoundError(SpaceError):
    """A service, pricing, contract or feature does not exist."""

    def __init__(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        recovery_hint: str | None = None,
    ):
        super().__init__(
            message, "NOT_FOUND", status_code=404, context=context, recovery_hint=recovery_hint
        )


class ServiceNotFoundError(NotFoundError):
    """Service not found error."""

    def __init__(
        self, message: str, service_name: str | None = None, organization_id: str | None = None
    ) -> None:
        context = {}
        if service_name:
            context["service_name"] = service_name
        if organization_id:
            context["organization_id"] = organization_id

        super().__init__(
            message,
            context=context,
            recovery_hint="Verify the service name and ensure the service is enabled",
        )
        self.error_code = "SERVICE_NOT_FOUND"


class PricingNotFoundError(NotFoundError):
    """Pricing version not found error."""

    def __init__(
        self, message: str, service_name: str | None = None, version: str | None = None
    ) -> None:
        context = {}
        if service_name:
            context["service_name"] = service_name
        if version:
            context["version"] = version

        super().__init__(
            message,
            context=context,
            recovery_hint="Verify the pricing version is active or archived for the service",
        )
        self.error_code = "PRICING_NOT_FOUND"


class ContractNotFoundError(NotFoundError):
    """Contract not found error."""

    def __init__(self, message: str, user_id: str | None = None) -> None:
        context = {}
        if user_id:
            context["user_id"] = user_id

        super().__init__(
            message,
            context=context,
            recovery_hint="Verify the user ID and ensure the user holds a contract",
        )
        self.error_code = "CONTRACT_NOT_FOUND"


class FeatureNotFoundError(NotFoundError):
    """Feature not found in any contracted pricing."""

    def __init__(self, message: str, feature_id: str | None = None) -> None:
        context = {}
        if feature_id:
            context["feature_id"] = feature_id

        super().__init__(
            message,
            context=context,
            recovery_hint="Use '<service>.<feature>' or a feature name of a contracted service",
        )
        self.error_code = "FEATURE_NOT_FOUND"


# ============================================================================
# Validation
# ============================================================================


class ValidationError(SpaceError):
    """Malformed pricing document, subscription or request."""

    def __init__(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        recovery_hint: str | None = None,
    ):
        super().__init__(
            message,
            "VALIDATION_ERROR",
            status_code=422,
            context=context,
            recovery_hint=recovery_hint,
        )


class InvalidPricingError(ValidationError):
    """A pricing document failed structural validation."""

    def __init__(
        self,
        message: str,
        source: str | None = None,
        validation_errors: list[str] | None = None,
    ):
        context: dict[str, Any] = {}
        if source:
            context["source"] = source
        if validation_errors:
            context["validation_errors"] = validation_errors

        super().__init__(
            message,
            context=context,
            recovery_hint="Fix the pricing document so every referenced feature and limit exists",
        )
        self.error_code = "INVALID_PRICING"


class InvalidSubscriptionError(ValidationError):
    """A subscription does not fit the structure of a pricing."""

    def __init__(
        self,
        message: str,
        service_name: str | None = None,
        version: str | None = None,
    ):
        context = {}
        if service_name:
            context["service_name"] = service_name
        if version:
            context["version"] = version

        super().__init__(
            message,
            context=context,
            recovery_hint="Choose a plan and add-ons that exist in the target pricing version",
        )
        self.error_code = "INVALID_SUBSCRIPTION"


# ============================================================================
# Contract state
# ============================================================================


class SubscriptionExpiredError(SpaceError):
    """The billing period has ended and the contract does not renew."""

    def __init__(self, message: str, user_id: str | None = None) -> None:
        context = {}
        if user_id:
            context["user_id"] = user_id

        super().__init__(
            message,
            "SUBSCRIPTION_EXPIRED",
            status_code=403,
            context=context,
            recovery_hint="Purchase a new subscription or enable automatic renewal",
        )


class NovationError(SpaceError):
    """Affected contracts could not all be novated."""

    def __init__(
        self, message: str, expected: int | None = None, updated: int | None = None
    ) -> None:
        context: dict[str, Any] = {}
        if expected is not None:
            context["expected"] = expected
        if updated is not None:
            context["updated"] = updated

        super().__init__(
            message,
            "NOVATION_FAILED",
            status_code=500,
            context=context,
            recovery_hint="Retry the operation; no partial novation was reported as success",
        )


# ============================================================================
# Remote pricings
# ============================================================================


class RemoteFetchError(SpaceError):
    """A URL-backed pricing could not be retrieved."""

    def __init__(self, message: str, url: str | None = None, status: int | None = None) -> None:
        context: dict[str, Any] = {}
        if url:
            context["url"] = url
        if status is not None:
            context["status"] = status

        super().__init__(
            message,
            "REMOTE_FETCH_ERROR",
            status_code=502,
            context=context,
            recovery_hint="Check that the pricing URL is reachable and serves a pricing document",
        )


class RemoteFetchTimeoutError(RemoteFetchError):
    """Fetching a URL-backed pricing exceeded its deadline."""

    def __init__(self, message: str, url: str | None = None, timeout: float | None = None) -> None:
        super().__init__(message, url=url)
        if timeout is not None:
            self.context["timeout"] = timeout
        self.error_code = "REMOTE_FETCH_TIMEOUT"
        self.status_code = 504


# ============================================================================
# Expressions
# ============================================================================


class ExpressionError(SpaceError):
    """An evaluation expression is malformed or references unknown variables."""

    def __init__(
        self,
        message: str,
        expression: str | None = None,
        variable: str | None = None,
    ):
        context = {}
        if expression is not None:
            context["expression"] = expression
        if variable:
            context["variable"] = variable

        super().__init__(
            message,
            "EXPRESSION_ERROR",
            status_code=422,
            context=context,
            recovery_hint="Fix the feature expression in the pricing document",
        )
