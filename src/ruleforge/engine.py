"""Rule engine: the host-facing API.

A RuleEngine owns a function registry (seeded with the built-ins),
compiles expression strings, and evaluates them against records.

Example:
    engine = RuleEngine()
    valid_tag = engine.rule(
        "validTag",
        'any("regexMatch(Value, \\"^JIRA:[A-Za-z]{3}[A-Za-z]*$\\")", Tags)',
    )
    result = engine.check([valid_tag], flag)
    result.passed  # True if every rule passed
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Sequence

from ruleforge.config import EngineConfig
from ruleforge.errors import ExpressionError
from ruleforge.expressions import (
    CompiledExpression,
    FunctionCategory,
    FunctionDefinition,
    FunctionParameter,
    FunctionRegistry,
    compile_expression,
    evaluate_bool,
    register_all_builtins,
)
from ruleforge.extraction import extract

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Rule:
    """A named, compiled expression.

    Attributes:
        name: Rule identifier used in reports
        expression: The expression source
        compiled: The compiled expression
        description: Human-readable description
    """

    name: str
    expression: str
    compiled: CompiledExpression = field(repr=False)
    description: str = ""


@dataclass(frozen=True)
class RuleResult:
    """Outcome of one rule against one record.

    A rule whose evaluation raised is reported as failed, with the error.
    """

    rule: str
    passed: bool
    error: ExpressionError | None = None

    @property
    def status(self) -> str:
        if self.error is not None:
            return "error"
        return "pass" if self.passed else "fail"


@dataclass(frozen=True)
class RuleSetResult:
    """Outcomes of a list of rules against one record."""

    results: tuple[RuleResult, ...]

    @property
    def passed(self) -> bool:
        return all(r.passed for r in self.results)

    @property
    def failures(self) -> list[RuleResult]:
        return [r for r in self.results if not r.passed]

    @property
    def errors(self) -> list[RuleResult]:
        return [r for r in self.results if r.error is not None]


class RuleEngine:
    """Compiles and evaluates rules against records.

    Each engine has its own function registry. Register custom functions
    before compiling expressions that call them; call freeze() once
    registration is done to make the registry read-only.
    """

    def __init__(
        self,
        config: EngineConfig | None = None,
        registry: FunctionRegistry | None = None,
    ):
        self.config = config or EngineConfig()
        if registry is None:
            registry = FunctionRegistry()
            register_all_builtins(registry, self.config)
        self.registry = registry

    def register(
        self,
        name: str,
        fn: Callable[..., Any],
        parameters: Iterable[FunctionParameter] | None = None,
        description: str = "",
        category: FunctionCategory = FunctionCategory.CUSTOM,
        return_type: str = "any",
        contextual: bool = False,
    ) -> None:
        """Register a function callable from expressions.

        Args:
            name: Function name as used in expressions
            fn: The implementation; raise an ExpressionError subclass to fail
            parameters: Parameter definitions used to validate arguments
                (None disables validation)
            description: Human-readable description
            category: Documentation category
            return_type: Type of the return value
            contextual: Pass the active Evaluator as the first argument

        Raises:
            DuplicateFunctionError: If the name is already registered
            RegistryFrozenError: If the engine has been frozen
        """
        self.registry.register(
            FunctionDefinition(
                name=name,
                implementation=fn,
                parameters=tuple(parameters) if parameters is not None else None,
                description=description,
                category=category,
                return_type=return_type,
                contextual=contextual,
            )
        )
        logger.debug("Registered function %s", name)

    def freeze(self) -> None:
        """Stop accepting function registrations."""
        self.registry.freeze()

    def compile(self, source: str) -> CompiledExpression:
        """Compile an expression against this engine's registry.

        Raises:
            ExpressionSyntaxError: On malformed input
            UnknownFunctionError: If strict and a function is unregistered
        """
        return compile_expression(source, self.registry, strict=self.config.strict_functions)

    def evaluate(self, expression: CompiledExpression | str, record: Any) -> bool:
        """Evaluate an expression against a record.

        Args:
            expression: A compiled expression or a source string
            record: A Record, Mapping or dataclass instance

        Returns:
            The boolean result

        Raises:
            ExpressionError: Any typed error from extraction or evaluation
        """
        if isinstance(expression, str):
            expression = self.compile(expression)
        return evaluate_bool(expression, extract(record))

    def rule(self, name: str, expression: str, description: str = "") -> Rule:
        """Compile an expression into a named rule."""
        return Rule(
            name=name,
            expression=expression,
            compiled=self.compile(expression),
            description=description,
        )

    def check(self, rules: Sequence[Rule], record: Any) -> RuleSetResult:
        """Evaluate every rule against a record.

        Evaluation errors are captured per rule instead of aborting the
        whole check. The record itself must be extractable.

        Raises:
            UnsupportedRecordShapeError: If the record cannot be extracted
        """
        params = extract(record)
        results: list[RuleResult] = []

        for rule in rules:
            try:
                passed = evaluate_bool(rule.compiled, params)
            except ExpressionError as e:
                logger.warning("Rule '%s' failed to evaluate: %s", rule.name, e)
                results.append(RuleResult(rule=rule.name, passed=False, error=e))
                continue
            results.append(RuleResult(rule=rule.name, passed=passed))

        return RuleSetResult(results=tuple(results))
