"""
Expression evaluator for feature gating.

Expressions are parsed with ``ast`` and interpreted by a whitelisting
visitor: arithmetic, comparisons, boolean logic, conditionals, list
literals and the functions ``min``, ``max``, ``abs`` and ``round``.
Variables are dotted names (``usage.seats``) or constant-string subscripts
(``pricingContext['features']['maxSeats']``), both resolved against a flat
context keyed by the dotted path.

Pricing documents may use the JavaScript spellings ``&&``, ``||``, ``!``,
``===``, ``!==``, ``true``, ``false`` and ``null``; they are rewritten to
Python outside string literals before parsing.
"""

import ast
import operator
from collections.abc import Callable, Mapping
from typing import Any

from cachetools import LRUCache, cached

from space.platform.exceptions import ExpressionError

_JS_OPERATORS = (("===", " == "), ("!==", " != "), ("&&", " and "), ("||", " or "))
_JS_LITERALS = {"true": "True", "false": "False", "null": "None", "undefined": "None"}

_BINARY_OPERATORS: dict[type[ast.operator], Callable[[Any, Any], Any]] = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
    ast.FloorDiv: operator.floordiv,
    ast.Mod: operator.mod,
    ast.Pow: operator.pow,
}

_COMPARISONS: dict[type[ast.cmpop], Callable[[Any, Any], bool]] = {
    ast.Eq: operator.eq,
    ast.NotEq: operator.ne,
    ast.Lt: operator.lt,
    ast.LtE: operator.le,
    ast.Gt: operator.gt,
    ast.GtE: operator.ge,
    ast.In: lambda left, right: left in right,
    ast.NotIn: lambda left, right: left not in right,
    ast.Is: operator.is_,
    ast.IsNot: operator.is_not,
}

_UNARY_OPERATORS: dict[type[ast.unaryop], Callable[[Any], Any]] = {
    ast.Not: operator.not_,
    ast.USub: operator.neg,
    ast.UAdd: operator.pos,
}

FUNCTIONS: dict[str, Callable[..., Any]] = {
    "min": min,
    "max": max,
    "abs": abs,
    "round": round,
}

_MAX_EXPONENT = 1000


def normalize_expression(expression: str) -> str:
    """Rewrite JavaScript operator and literal spellings to Python."""
    out: list[str] = []
    i, n = 0, len(expression)
    while i < n:
        char = expression[i]

        if char in "'\"":
            end = i + 1
            while end < n and expression[end] != char:
                end += 2 if expression[end] == "\\" else 1
            out.append(expression[i : end + 1])
            i = end + 1
            continue

        replacement = next(
            ((js, py) for js, py in _JS_OPERATORS if expression.startswith(js, i)), None
        )
        if replacement is not None:
            out.append(replacement[1])
            i += len(replacement[0])
        elif char == "!" and not expression.startswith("!=", i):
            out.append(" not ")
            i += 1
        elif char.isalpha() or char == "_":
            end = i
            while end < n and (expression[end].isalnum() or expression[end] == "_"):
                end += 1
            word = expression[i:end]
            # Attribute names keep their spelling
            after_dot = "".join(out).rstrip().endswith(".")
            out.append(word if after_dot else _JS_LITERALS.get(word, word))
            i = end
        else:
            out.append(char)
            i += 1

    return "".join(out).strip()


def dotted_path(node: ast.AST) -> str | None:
    """Dotted variable name of a Name/Attribute/constant-Subscript chain."""
    if isinstance(node, ast.Name):
        return node.id
    if isinstance(node, ast.Attribute):
        parent = dotted_path(node.value)
        return f"{parent}.{node.attr}" if parent is not None else None
    if (
        isinstance(node, ast.Subscript)
        and isinstance(node.slice, ast.Constant)
        and isinstance(node.slice.value, str)
    ):
        parent = dotted_path(node.value)
        return f"{parent}.{node.slice.value}" if parent is not None else None
    return None


class _Interpreter(ast.NodeVisitor):
    """Evaluates a parsed expression; any node without a visitor is rejected."""

    def __init__(self, expression: str, context: Mapping[str, Any]):
        self.expression = expression
        self.context = context

    def fail(self, message: str, variable: str | None = None) -> ExpressionError:
        return ExpressionError(message, expression=self.expression, variable=variable)

    def generic_visit(self, node: ast.AST) -> Any:
        raise self.fail(f"Unsupported construct '{type(node).__name__}'")

    def lookup(self, path: str) -> Any:
        if path not in self.context:
            raise self.fail(f"Undefined variable '{path}'", variable=path)
        return self.context[path]

    def visit_Expression(self, node: ast.Expression) -> Any:
        return self.visit(node.body)

    def visit_Constant(self, node: ast.Constant) -> Any:
        if node.value is not None and not isinstance(node.value, bool | int | float | str):
            raise self.fail(f"Unsupported literal {node.value!r}")
        return node.value

    def visit_Name(self, node: ast.Name) -> Any:
        return self.lookup(node.id)

    def visit_Attribute(self, node: ast.Attribute) -> Any:
        path = dotted_path(node)
        if path is None:
            raise self.fail("Attributes are only supported on variable names")
        return self.lookup(path)

    def visit_Subscript(self, node: ast.Subscript) -> Any:
        path = dotted_path(node)
        if path is not None:
            return self.lookup(path)
        container = self.visit(node.value)
        index = self.visit(node.slice)
        try:
            return container[index]
        except (IndexError, KeyError, TypeError) as e:
            raise self.fail(f"Invalid subscript: {e}") from e

    def visit_BoolOp(self, node: ast.BoolOp) -> Any:
        result: Any = None
        for value in node.values:
            result = self.visit(value)
            if isinstance(node.op, ast.And) and not result:
                return result
            if isinstance(node.op, ast.Or) and result:
                return result
        return result

    def visit_UnaryOp(self, node: ast.UnaryOp) -> Any:
        operand = self.visit(node.operand)
        try:
            return _UNARY_OPERATORS[type(node.op)](operand)
        except KeyError:
            raise self.fail(f"Unsupported operator '{type(node.op).__name__}'") from None
        except TypeError as e:
            raise self.fail(f"Invalid operand: {e}") from e

    def visit_BinOp(self, node: ast.BinOp) -> Any:
        func = _BINARY_OPERATORS.get(type(node.op))
        if func is None:
            raise self.fail(f"Unsupported operator '{type(node.op).__name__}'")
        left = self.visit(node.left)
        right = self.visit(node.right)
        if isinstance(node.op, ast.Pow) and isinstance(right, int | float):
            if abs(right) > _MAX_EXPONENT:
                raise self.fail("Exponent too large")
        try:
            return func(left, right)
        except ZeroDivisionError as e:
            raise self.fail("Division by zero") from e
        except (TypeError, OverflowError) as e:
            raise self.fail(f"Invalid operands: {e}") from e

    def visit_Compare(self, node: ast.Compare) -> bool:
        left = self.visit(node.left)
        for op, comparator in zip(node.ops, node.comparators, strict=True):
            right = self.visit(comparator)
            try:
                if not _COMPARISONS[type(op)](left, right):
                    return False
            except TypeError as e:
                raise self.fail(f"Cannot compare {left!r} and {right!r}") from e
            left = right
        return True

    def visit_IfExp(self, node: ast.IfExp) -> Any:
        return self.visit(node.body) if self.visit(node.test) else self.visit(node.orelse)

    def visit_List(self, node: ast.List) -> list[Any]:
        return [self.visit(element) for element in node.elts]

    def visit_Tuple(self, node: ast.Tuple) -> tuple[Any, ...]:
        return tuple(self.visit(element) for element in node.elts)

    def visit_Call(self, node: ast.Call) -> Any:
        if not isinstance(node.func, ast.Name) or node.func.id not in FUNCTIONS:
            raise self.fail(f"Unsupported function '{ast.unparse(node.func)}'")
        if node.keywords or any(isinstance(arg, ast.Starred) for arg in node.args):
            raise self.fail("Functions only accept positional arguments")
        args = [self.visit(arg) for arg in node.args]
        try:
            return FUNCTIONS[node.func.id](*args)
        except (TypeError, ValueError) as e:
            raise self.fail(f"Invalid call to {node.func.id}: {e}") from e


class _NameCollector(ast.NodeVisitor):
    def __init__(self) -> None:
        self.names: list[str] = []

    def _collect(self, node: ast.AST) -> None:
        path = dotted_path(node)
        if path is None:
            self.generic_visit(node)
        elif path not in self.names:
            self.names.append(path)

    visit_Name = _collect
    visit_Attribute = _collect
    visit_Subscript = _collect

    def visit_Call(self, node: ast.Call) -> None:
        for arg in node.args:
            self.visit(arg)


class ExpressionEvaluator:
    """Parses and evaluates gating expressions against flat contexts.

    Parsed trees are memoized, so evaluating the same expression against
    many contexts parses it once.
    """

    def __init__(self, max_length: int = 2000, cache_size: int = 1024):
        self.max_length = max_length
        self.parse = cached(LRUCache(maxsize=cache_size))(self._parse)

    def _parse(self, expression: str) -> ast.Expression:
        if not expression or not expression.strip():
            raise ExpressionError("Expression is empty", expression=expression)
        if len(expression) > self.max_length:
            raise ExpressionError(
                f"Expression longer than {self.max_length} characters", expression=expression
            )
        try:
            return ast.parse(normalize_expression(expression), mode="eval")
        except (SyntaxError, ValueError, RecursionError) as e:
            raise ExpressionError(f"Invalid expression: {e}", expression=expression) from e

    def evaluate(self, expression: str, context: Mapping[str, Any]) -> Any:
        """Evaluate ``expression`` against ``context``.

        Raises:
            ExpressionError: On syntax errors, unsupported constructs or
                undefined variables
        """
        tree = self.parse(expression)
        try:
            return _Interpreter(expression, context).visit(tree)
        except RecursionError as e:
            raise ExpressionError("Expression is nested too deeply", expression=expression) from e

    def referenced_names(self, expression: str) -> list[str]:
        """Variables an expression reads, in order of first appearance."""
        collector = _NameCollector()
        collector.visit(self.parse(expression))
        return collector.names


_default_evaluator = ExpressionEvaluator()


def evaluate(expression: str, context: Mapping[str, Any]) -> Any:
    """Evaluate with a shared default evaluator."""
    return _default_evaluator.evaluate(expression, context)
