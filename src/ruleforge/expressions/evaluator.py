"""Evaluator for the ruleforge expression language.

Walks a compiled expression's AST and computes the result against a
parameter mapping, calling functions from the registry the expression was
compiled with. An Evaluator holds per-call state only; the compiled
expression is never modified.
"""

from decimal import Decimal
from typing import Any, Mapping

from ruleforge.errors import EvaluationError, ExpressionError, TypeMismatchError
from ruleforge.expressions.builtins import default_registry
from ruleforge.expressions.compiler import CompiledExpression, compile_expression
from ruleforge.expressions.functions import FunctionRegistry
from ruleforge.expressions.parser import (
    ASTNode,
    BinaryOp,
    FunctionCall,
    Identifier,
    Literal,
    UnaryOp,
)

_NUMBER_TYPES = (int, float, Decimal)


def _is_number(value: Any) -> bool:
    return isinstance(value, _NUMBER_TYPES) and not isinstance(value, bool)


def _align(left: Any, right: Any) -> tuple[Any, Any]:
    """Decimal and float do not mix in Python arithmetic; fall back to float."""
    if isinstance(left, Decimal) and isinstance(right, float):
        return float(left), right
    if isinstance(left, float) and isinstance(right, Decimal):
        return left, float(right)
    return left, right


def to_bool(value: Any, operator: str | None = None) -> bool:
    """Interpret a value as a boolean.

    Missing values (None) are false. Anything other than a bool is a type
    mismatch: the language has no truthiness for numbers or strings.
    """
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    if operator is not None:
        raise TypeMismatchError.for_operands(operator, value)
    raise TypeMismatchError(
        f"Expression must produce a boolean, got {type(value).__name__}",
        operand_types=(type(value).__name__,),
    )


class Evaluator:
    """Evaluates a compiled expression against a parameter mapping.

    Usage:
        compiled = compile_expression('status == "active" && count > 0', registry)
        evaluator = Evaluator(compiled, {"status": "active", "count": 5})
        result = evaluator.run()
    """

    def __init__(self, expression: CompiledExpression, params: Mapping[str, Any]):
        self.expression = expression
        self.params = params

    @property
    def registry(self) -> FunctionRegistry:
        return self.expression.registry

    def run(self) -> Any:
        """Evaluate the whole expression."""
        try:
            return self.evaluate(self.expression.ast)
        except RecursionError:
            raise EvaluationError("Expression nested too deeply") from None

    def run_bool(self) -> bool:
        """Evaluate the whole expression, requiring a boolean result."""
        return to_bool(self.run())

    def evaluate(self, node: ASTNode) -> Any:
        """Evaluate an AST node and return the result."""
        method_name = f"_eval_{type(node).__name__.lower()}"
        method = getattr(self, method_name, None)

        if method is None:
            raise EvaluationError(f"Unknown node type: {type(node).__name__}")

        return method(node)

    # -------------------------------------------------------------------------
    # Nested evaluation (used by quantifier functions)
    # -------------------------------------------------------------------------

    def prepare(self, source: str) -> CompiledExpression:
        """Return the compiled form of a sub-expression.

        Literal sub-expressions were compiled along with the parent; others
        are compiled here against the same registry.
        """
        nested = self.expression.nested.get(source)
        if nested is not None:
            return nested
        return compile_expression(source, self.registry, self.expression.strict)

    def spawn(self, expression: CompiledExpression, params: Mapping[str, Any]) -> "Evaluator":
        """Create an evaluator for a sub-expression with its own parameters."""
        return Evaluator(expression, params)

    # -------------------------------------------------------------------------
    # Node type evaluators
    # -------------------------------------------------------------------------

    def _eval_literal(self, node: Literal) -> Any:
        """Evaluate a literal value."""
        return node.value

    def _eval_identifier(self, node: Identifier) -> Any:
        """Evaluate an identifier (field reference).

        A field that doesn't exist is None rather than an error.
        """
        return self.params.get(node.name)

    def _eval_binaryop(self, node: BinaryOp) -> Any:
        """Evaluate a binary operation."""
        op = node.operator

        if op in ("&&", "||"):
            return self._eval_logical(node)

        left = self.evaluate(node.left)
        right = self.evaluate(node.right)

        if op == "==":
            return self._equals(left, right)
        if op == "!=":
            return not self._equals(left, right)
        if op == "<":
            return self._compare(op, left, right) < 0
        if op == "<=":
            return self._compare(op, left, right) <= 0
        if op == ">":
            return self._compare(op, left, right) > 0
        if op == ">=":
            return self._compare(op, left, right) >= 0

        if op in ("+", "-", "*", "/", "%"):
            return self._arithmetic(op, left, right)

        raise EvaluationError(f"Unknown operator: {op}")

    def _eval_logical(self, node: BinaryOp) -> bool:
        """Evaluate a run of && or || with short-circuiting.

        The parser builds `a || b || c` left-deep, so the run is unrolled
        along its left spine and evaluated in a loop.
        """
        op = node.operator
        operands: list[ASTNode] = []
        current: ASTNode = node
        while isinstance(current, BinaryOp) and current.operator == op:
            operands.append(current.right)
            current = current.left
        operands.append(current)

        stop_on = op == "||"
        for operand in reversed(operands):
            if to_bool(self.evaluate(operand), op) is stop_on:
                return stop_on
        return not stop_on

    def _eval_unaryop(self, node: UnaryOp) -> Any:
        """Evaluate a unary operation."""
        operand = self.evaluate(node.operand)

        if node.operator == "!":
            return not to_bool(operand, "!")

        if node.operator == "-":
            if operand is None:
                return None
            if _is_number(operand):
                return -operand
            raise TypeMismatchError.for_operands("-", operand)

        raise EvaluationError(f"Unknown unary operator: {node.operator}")

    def _eval_functioncall(self, node: FunctionCall) -> Any:
        """Evaluate a function call.

        Arguments are validated against the function's parameter
        definitions before the implementation runs.
        """
        func_def = self.registry.get(node.name)

        args = [self.evaluate(arg) for arg in node.arguments]
        func_def.validate_arguments(args)

        try:
            if func_def.contextual:
                return func_def.implementation(self, *args)
            return func_def.implementation(*args)
        except ExpressionError as e:
            # A leaf function may re-raise one shared instance
            if not func_def.contextual:
                e.trail = []
            raise
        except Exception as e:
            raise EvaluationError(f"Error calling {node.name}: {e}") from e

    # -------------------------------------------------------------------------
    # Helper methods
    # -------------------------------------------------------------------------

    def _equals(self, left: Any, right: Any) -> bool:
        """Check equality. Values of different types are never equal."""
        if left is None or right is None:
            return left is None and right is None

        if _is_number(left) and _is_number(right):
            left, right = _align(left, right)
            return left == right

        if type(left) is not type(right) and (
            isinstance(left, bool) or isinstance(right, bool)
        ):
            return False

        return left == right

    def _compare(self, op: str, left: Any, right: Any) -> int:
        """Compare two values, returning -1, 0, or 1."""
        if left is None or right is None:
            # None comparisons: None < any non-None value
            if left is None and right is None:
                return 0
            if left is None:
                return -1
            return 1

        if (_is_number(left) and _is_number(right)) or (
            isinstance(left, str) and isinstance(right, str)
        ):
            left, right = _align(left, right)
            if left < right:
                return -1
            if left > right:
                return 1
            return 0

        raise TypeMismatchError.for_operands(op, left, right)

    def _arithmetic(self, op: str, left: Any, right: Any) -> Any:
        """Apply an arithmetic operator. None operands yield None."""
        if left is None or right is None:
            return None

        if op == "+" and isinstance(left, str) and isinstance(right, str):
            return left + right

        if not (_is_number(left) and _is_number(right)):
            raise TypeMismatchError.for_operands(op, left, right)

        left, right = _align(left, right)

        if op == "+":
            return left + right
        if op == "-":
            return left - right
        if op == "*":
            return left * right
        if right == 0:
            raise EvaluationError("Division by zero" if op == "/" else "Modulo by zero")
        if op == "/":
            return left / right
        return left % right


# -----------------------------------------------------------------------------
# Convenience functions
# -----------------------------------------------------------------------------


def _resolve(
    expression: CompiledExpression | str,
    registry: FunctionRegistry | None,
) -> CompiledExpression:
    if isinstance(expression, CompiledExpression):
        return expression
    if registry is None:
        registry = default_registry()
    return compile_expression(expression, registry)


def evaluate(
    expression: CompiledExpression | str,
    params: Mapping[str, Any],
    registry: FunctionRegistry | None = None,
) -> Any:
    """Evaluate an expression against a parameter mapping.

    Args:
        expression: A compiled expression, or a source string to compile
        params: Field name -> value
        registry: Registry used to compile a source string (defaults to the
            read-only built-in registry)

    Returns:
        The result of evaluating the expression

    Example:
        result = evaluate(
            'regexMatch(tag, "^JIRA:") && count > 0',
            {"tag": "JIRA:EPLT", "count": 5}
        )
        # result = True
    """
    return Evaluator(_resolve(expression, registry), params).run()


def evaluate_bool(
    expression: CompiledExpression | str,
    params: Mapping[str, Any],
    registry: FunctionRegistry | None = None,
) -> bool:
    """Evaluate an expression that must produce a boolean.

    A None result (e.g. a bare missing field) counts as False; any other
    non-boolean result raises TypeMismatchError.
    """
    return Evaluator(_resolve(expression, registry), params).run_bool()
