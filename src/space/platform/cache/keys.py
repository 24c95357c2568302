"""Cache key namespace for the evaluation engine."""


class CacheKey:
    """Cache key generator for engine entities."""

    @staticmethod
    def service(organization_id: str, service_name: str) -> str:
        """Generate cache key for a service record."""
        return f"service.{organization_id}.{service_name}".lower()

    @staticmethod
    def pricing_by_id(pricing_id: str) -> str:
        """Generate cache key for a stored pricing."""
        return f"pricing.id.{pricing_id}".lower()

    @staticmethod
    def pricing_by_url(url: str) -> str:
        """Generate cache key for a URL-backed pricing."""
        return f"pricing.url.{url}".lower()

    @staticmethod
    def evaluation(user_id: str) -> str:
        """Generate cache key for the aggregate evaluation of a user."""
        return f"features.{user_id}.eval".lower()

    @staticmethod
    def feature_evaluation(user_id: str, feature_id: str) -> str:
        """Generate cache key for a single feature evaluation."""
        return f"features.{user_id}.eval.{feature_id}".lower()

    @staticmethod
    def evaluations_pattern(user_id: str) -> str:
        """Pattern matching every cached evaluation of a user."""
        return f"features.{user_id}.eval*".lower()

    @staticmethod
    def contract(user_id: str) -> str:
        """Generate cache key for a user's contract."""
        return f"contracts.{user_id}".lower()

    @staticmethod
    def all_evaluations() -> str:
        """Pattern matching every cached evaluation."""
        return "features.*"
