"""Feature evaluation: expressions, contexts, the pure core and the orchestrator."""

from space.platform.evaluation.expressions import ExpressionEvaluator, evaluate
from space.platform.evaluation.models import (
    EvaluationContexts,
    EvaluationEnvelope,
    EvaluationOptions,
    FeatureEvaluationResult,
    FeatureListFilters,
    SingleEvaluationOptions,
)

__all__ = [
    "EvaluationContexts",
    "EvaluationEnvelope",
    "EvaluationOptions",
    "ExpressionEvaluator",
    "FeatureEvaluationResult",
    "FeatureListFilters",
    "SingleEvaluationOptions",
    "evaluate",
]
