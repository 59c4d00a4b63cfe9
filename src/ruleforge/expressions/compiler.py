"""Compiler for the ruleforge expression language.

Compiling parses the source once and resolves it against a function
registry, producing an immutable CompiledExpression that can be evaluated
many times, from many threads, against different parameter mappings.
Nothing is evaluated at compile time.
"""

import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping

from ruleforge.errors import ExpressionError, ExpressionSyntaxError, UnknownFunctionError
from ruleforge.expressions.functions import FunctionRegistry
from ruleforge.expressions.parser import ASTNode, FunctionCall, Literal, parse, walk

logger = logging.getLogger(__name__)

_EMPTY: Mapping[str, "CompiledExpression"] = MappingProxyType({})


@dataclass(frozen=True)
class CompiledExpression:
    """A parsed, resolved expression.

    Attributes:
        source: The original expression string
        ast: Root of the (frozen) syntax tree
        functions: Names of every function the expression calls
        registry: Registry the expression was compiled against and is
            evaluated with
        nested: Sub-expressions passed as string literals to
            expression-typed parameters (e.g. the first argument of any()),
            compiled ahead of time and keyed by their source
        strict: Whether unknown function names were rejected
    """

    source: str
    ast: ASTNode
    functions: frozenset[str]
    registry: FunctionRegistry = field(repr=False, compare=False)
    nested: Mapping[str, "CompiledExpression"] = field(
        default_factory=lambda: _EMPTY, repr=False, compare=False
    )
    strict: bool = True


def compile_expression(
    source: str,
    registry: FunctionRegistry,
    strict: bool = True,
) -> CompiledExpression:
    """Compile an expression string.

    Args:
        source: The expression string
        registry: Functions the expression may call
        strict: Reject calls to unregistered functions now rather than
            at evaluation time

    Returns:
        The compiled expression

    Raises:
        ExpressionSyntaxError: If the source (or a literal sub-expression)
            is malformed or nested deeper than the parser can follow
        UnknownFunctionError: In strict mode, if a called function is not
            registered
    """
    if not isinstance(source, str):
        raise ExpressionSyntaxError(
            f"Expression must be a string, got {type(source).__name__}", 0
        )

    try:
        ast = parse(source)
    except RecursionError:
        raise ExpressionSyntaxError("Expression nested too deeply", 0) from None

    calls = [node for node in walk(ast) if isinstance(node, FunctionCall)]
    nested: dict[str, CompiledExpression] = {}

    for call in calls:
        if not registry.is_registered(call.name):
            if strict:
                raise UnknownFunctionError(call.name)
            continue

        func_def = registry.get(call.name)
        for index, arg in enumerate(call.arguments):
            param = func_def.parameter_at(index)
            if param is None or param.type != "expression":
                continue
            if not isinstance(arg, Literal) or not isinstance(arg.value, str):
                continue
            if arg.value in nested:
                continue
            try:
                nested[arg.value] = compile_expression(arg.value, registry, strict)
            except ExpressionError as e:
                e.annotate(f"{call.name} argument {index + 1}")
                raise

    compiled = CompiledExpression(
        source=source,
        ast=ast,
        functions=frozenset(call.name for call in calls),
        registry=registry,
        nested=MappingProxyType(nested) if nested else _EMPTY,
        strict=strict,
    )
    logger.debug(
        "Compiled expression %r (functions: %s, nested: %d)",
        source,
        ", ".join(sorted(compiled.functions)) or "none",
        len(nested),
    )
    return compiled
