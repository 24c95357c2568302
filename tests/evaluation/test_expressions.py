"""Tests for the gating expression evaluator."""

import pytest

from space.platform.evaluation.expressions import (
    ExpressionEvaluator,
    evaluate,
    normalize_expression,
)
from space.platform.exceptions import ExpressionError


@pytest.fixture
def evaluator() -> ExpressionEvaluator:
    return ExpressionEvaluator()


CONTEXT = {
    "features.maxSeats": True,
    "features.supportLevel": "priority",
    "usage.seats": 4,
    "usageLimits.seats": 10,
    "pricingContext.features.apiAccess": False,
    "subscriptionContext.apiCalls": 3,
    "features.channels": ["email", "chat"],
}


@pytest.mark.unit
class TestNormalizeExpression:
    """JavaScript spellings."""

    @pytest.mark.parametrize(
        "source,expected",
        [
            ("a && b", "a  and  b"),
            ("a || !b", "a  or   not b"),
            ("a === b", "a  ==  b"),
            ("a !== b", "a  !=  b"),
            ("a != b", "a != b"),
            ("x == true", "x == True"),
            ("x == null", "x == None"),
            ("x == undefined", "x == None"),
        ],
    )
    def test_rewrites(self, source, expected):
        assert normalize_expression(source) == expected

    def test_string_literals_are_untouched(self):
        assert normalize_expression("x == 'a && true'") == "x == 'a && true'"
        assert normalize_expression('x == "it\\"s !"') == 'x == "it\\"s !"'

    def test_attribute_names_keep_spelling(self):
        assert normalize_expression("features.true") == "features.true"

    def test_identifiers_containing_literals(self):
        assert normalize_expression("trueValue || nullable") == "trueValue  or  nullable"


@pytest.mark.unit
class TestEvaluate:
    """Evaluation against flat contexts."""

    @pytest.mark.parametrize(
        "expression,expected",
        [
            ("features.maxSeats && usage.seats <= usageLimits.seats", True),
            ("usage.seats + 7 > usageLimits.seats", True),
            ("usage.seats * 2 - 1", 7),
            ("usage.seats / 8", 0.5),
            ("usage.seats // 3", 1),
            ("usage.seats % 3", 1),
            ("2 ** 3", 8),
            ("-usage.seats", -4),
            ("!features.maxSeats", False),
            ("features.supportLevel === 'priority'", True),
            ("features.supportLevel !== 'priority'", False),
            ("'chat' in features.channels", True),
            ("1 < usage.seats < 5", True),
            ("1 < usage.seats < 3", False),
            ("pricingContext['features']['apiAccess'] || subscriptionContext['apiCalls']", 3),
            ("usage.seats if features.maxSeats else 0", 4),
            ("min(usage.seats, 2) + max(1, 3) + abs(-1)", 6),
            ("round(2.6)", 3),
            ("[1, 2][1]", 2),
            ("features.channels[0]", "email"),
            ("null == null", True),
        ],
    )
    def test_expressions(self, evaluator, expression, expected):
        assert evaluator.evaluate(expression, CONTEXT) == expected

    def test_short_circuit_skips_undefined_names(self, evaluator):
        assert evaluator.evaluate("false && missing.value", {}) is False
        assert evaluator.evaluate("true || missing.value", {}) is True

    def test_module_level_evaluate(self):
        assert evaluate("usage.seats < 5", CONTEXT) is True

    def test_referenced_names(self, evaluator):
        names = evaluator.referenced_names(
            "features.maxSeats && usage.seats <= usageLimits.seats && "
            "min(usage.seats, 1) > 0 && pricingContext['features']['apiAccess']"
        )

        assert names == [
            "features.maxSeats",
            "usage.seats",
            "usageLimits.seats",
            "pricingContext.features.apiAccess",
        ]

    def test_parse_is_memoized(self, evaluator):
        assert evaluator.parse("usage.seats > 1") is evaluator.parse("usage.seats > 1")


@pytest.mark.unit
class TestEvaluateErrors:
    """Rejected expressions."""

    def test_undefined_variable(self, evaluator):
        with pytest.raises(ExpressionError) as exc_info:
            evaluator.evaluate("usage.ghost > 1", CONTEXT)

        assert exc_info.value.context == {
            "expression": "usage.ghost > 1",
            "variable": "usage.ghost",
        }
        assert exc_info.value.status_code == 422

    @pytest.mark.parametrize(
        "expression",
        [
            "",
            "   ",
            "usage.seats >",
            "__import__('os')",
            "lambda: 1",
            "(x for x in [1])",
            "{'a': 1}",
            "open('f')",
            "max(*[1, 2])",
            "max(1, key=abs)",
            "usage.seats.__class__",
            "features.channels[5]",
            "1 / 0",
            "2 ** 5000",
            "'a' < 1",
            "'a' - 1",
        ],
    )
    def test_rejected(self, evaluator, expression):
        with pytest.raises(ExpressionError):
            evaluator.evaluate(expression, CONTEXT)

    def test_too_long(self):
        evaluator = ExpressionEvaluator(max_length=10)

        with pytest.raises(ExpressionError, match="longer than 10"):
            evaluator.evaluate("usage.seats > 1", CONTEXT)
