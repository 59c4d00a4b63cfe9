"""Built-in functions for the ruleforge expression language.

register_all_builtins() seeds a FunctionRegistry with:
- String: regexMatch, len, isEmpty, lower, upper, startsWith, endsWith
- Collection: any, all (quantifiers over sequences of records)
"""

import functools
import logging
import re
from typing import TYPE_CHECKING, Any

from ruleforge.config import EngineConfig
from ruleforge.errors import (
    ExpressionError,
    InvalidArgumentError,
    PatternError,
    UnsupportedRecordShapeError,
)
from ruleforge.expressions.functions import (
    FunctionCategory,
    FunctionDefinition,
    FunctionParameter,
    FunctionRegistry,
)
from ruleforge.extraction import extract

if TYPE_CHECKING:
    from ruleforge.expressions.evaluator import Evaluator

logger = logging.getLogger(__name__)


def register_all_builtins(
    registry: FunctionRegistry,
    config: EngineConfig | None = None,
) -> None:
    """Register all built-in functions with a registry."""
    config = config or EngineConfig()
    _register_string_functions(registry, config)
    _register_collection_functions(registry)


@functools.lru_cache(maxsize=None)
def default_registry() -> FunctionRegistry:
    """Frozen registry holding only the built-ins, for one-off evaluation."""
    registry = FunctionRegistry()
    register_all_builtins(registry)
    registry.freeze()
    return registry


# -----------------------------------------------------------------------------
# String Functions
# -----------------------------------------------------------------------------


@functools.lru_cache(maxsize=256)
def _compile_pattern(pattern: str) -> re.Pattern[str]:
    try:
        return re.compile(pattern)
    except re.error as e:
        raise PatternError(pattern, str(e)) from e


def _regex_match(subject: str | None, pattern: str | None, max_pattern_length: int) -> bool:
    """Test whether pattern matches anywhere in subject.

    Anchor the pattern (^...$) to require a full match.
    """
    if subject is None or pattern is None:
        return False
    if len(pattern) > max_pattern_length:
        raise PatternError(pattern, f"longer than {max_pattern_length} characters")
    return _compile_pattern(pattern).search(subject) is not None


def _len(value: Any) -> int:
    """Return length of a string or sequence, 0 for None."""
    if value is None:
        return 0
    if isinstance(value, (str, list, tuple)):
        return len(value)
    raise InvalidArgumentError(
        "len",
        f"argument 1 (value) must be string or array, got {type(value).__name__}",
        position=1,
        expected="string|array",
        actual=type(value).__name__,
    )


def _is_empty(value: Any) -> bool:
    """Return True if value is None, a blank string, or an empty sequence."""
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    if isinstance(value, (list, tuple)):
        return len(value) == 0
    return False


def _lower(value: str | None) -> str:
    return "" if value is None else value.lower()


def _upper(value: str | None) -> str:
    return "" if value is None else value.upper()


def _starts_with(value: str | None, prefix: str | None) -> bool:
    if value is None or prefix is None:
        return False
    return value.startswith(prefix)


def _ends_with(value: str | None, suffix: str | None) -> bool:
    if value is None or suffix is None:
        return False
    return value.endswith(suffix)


def _register_string_functions(registry: FunctionRegistry, config: EngineConfig) -> None:
    max_pattern_length = config.max_pattern_length

    def regex_match(subject: str | None, pattern: str | None) -> bool:
        return _regex_match(subject, pattern, max_pattern_length)

    registry.register(
        FunctionDefinition(
            name="regexMatch",
            implementation=regex_match,
            description="Tests if a string matches a regular expression",
            category=FunctionCategory.STRING,
            parameters=(
                FunctionParameter("subject", "string", "The string to test"),
                FunctionParameter("pattern", "string", "Regular expression"),
            ),
            return_type="boolean",
            examples=('regexMatch(tag, "^JIRA:[A-Za-z]{3}[A-Za-z]*$")',),
        )
    )
    registry.register(
        FunctionDefinition(
            name="len",
            implementation=_len,
            description="Returns length of string or array",
            category=FunctionCategory.STRING,
            parameters=(FunctionParameter("value", "any", "The value to measure"),),
            return_type="number",
            examples=("len(Key) > 0", "len(Tags) >= 1"),
        )
    )
    registry.register(
        FunctionDefinition(
            name="isEmpty",
            implementation=_is_empty,
            description="Returns true if value is null, blank, or an empty array",
            category=FunctionCategory.STRING,
            parameters=(FunctionParameter("value", "any", "The value to check"),),
            return_type="boolean",
            examples=("!isEmpty(Key)",),
        )
    )
    registry.register(
        FunctionDefinition(
            name="lower",
            implementation=_lower,
            description="Converts string to lowercase",
            category=FunctionCategory.STRING,
            parameters=(FunctionParameter("value", "string", "The string to convert"),),
            return_type="string",
        )
    )
    registry.register(
        FunctionDefinition(
            name="upper",
            implementation=_upper,
            description="Converts string to uppercase",
            category=FunctionCategory.STRING,
            parameters=(FunctionParameter("value", "string", "The string to convert"),),
            return_type="string",
        )
    )
    registry.register(
        FunctionDefinition(
            name="startsWith",
            implementation=_starts_with,
            description="Tests if string starts with prefix",
            category=FunctionCategory.STRING,
            parameters=(
                FunctionParameter("value", "string", "The string to test"),
                FunctionParameter("prefix", "string", "The prefix to look for"),
            ),
            return_type="boolean",
            examples=('startsWith(Value, "JIRA:")',),
        )
    )
    registry.register(
        FunctionDefinition(
            name="endsWith",
            implementation=_ends_with,
            description="Tests if string ends with suffix",
            category=FunctionCategory.STRING,
            parameters=(
                FunctionParameter("value", "string", "The string to test"),
                FunctionParameter("suffix", "string", "The suffix to look for"),
            ),
            return_type="boolean",
        )
    )


# -----------------------------------------------------------------------------
# Collection Functions
# -----------------------------------------------------------------------------


def _quantify(
    name: str,
    evaluator: "Evaluator",
    sub_expression: str | None,
    elements: list | tuple | None,
    stop_on: bool,
) -> bool:
    """Evaluate sub_expression once per element until one yields stop_on.

    Returns stop_on if some element produced it, otherwise its negation.
    """
    if sub_expression is None:
        raise InvalidArgumentError(
            name,
            "argument 1 (subExpression) must be expression, got NoneType",
            position=1,
            expected="expression",
            actual="NoneType",
        )

    compiled = None
    for index, element in enumerate(elements or ()):
        try:
            params = extract(element)
        except UnsupportedRecordShapeError as e:
            raise InvalidArgumentError(
                name,
                f"element {index} of argument 2 is not a record: {e.message}",
                position=2,
                expected="record",
                actual=type(element).__name__,
            ) from e

        if compiled is None:
            try:
                compiled = evaluator.prepare(sub_expression)
            except ExpressionError as e:
                e.annotate(f"{name} argument 1")
                raise

        logger.debug("%s[%d]: evaluating %r with %s", name, index, sub_expression, params)
        try:
            result = evaluator.spawn(compiled, params).run_bool()
        except ExpressionError as e:
            e.annotate(f"{name}[{index}]")
            raise

        if result is stop_on:
            return stop_on

    return not stop_on


def _any(evaluator: "Evaluator", sub_expression: str | None, elements: list | None) -> bool:
    """True if sub_expression holds for at least one element."""
    return _quantify("any", evaluator, sub_expression, elements, stop_on=True)


def _all(evaluator: "Evaluator", sub_expression: str | None, elements: list | None) -> bool:
    """True if sub_expression holds for every element (vacuously for none)."""
    return _quantify("all", evaluator, sub_expression, elements, stop_on=False)


def _quantifier_parameters() -> tuple[FunctionParameter, ...]:
    return (
        FunctionParameter(
            "subExpression",
            "expression",
            "Expression evaluated against each element's fields",
        ),
        FunctionParameter("elements", "array", "Sequence of records"),
    )


def _register_collection_functions(registry: FunctionRegistry) -> None:
    registry.register(
        FunctionDefinition(
            name="any",
            implementation=_any,
            description="Returns true if the sub-expression is true for any element",
            category=FunctionCategory.COLLECTION,
            parameters=_quantifier_parameters(),
            return_type="boolean",
            contextual=True,
            examples=(
                'any("regexMatch(Value, \\"^JIRA:\\")", Tags)',
                'any("RolloutPercent > 10", Segments)',
            ),
        )
    )
    registry.register(
        FunctionDefinition(
            name="all",
            implementation=_all,
            description="Returns true if the sub-expression is true for every element",
            category=FunctionCategory.COLLECTION,
            parameters=_quantifier_parameters(),
            return_type="boolean",
            contextual=True,
            examples=('all("RolloutPercent <= 100", Segments)',),
        )
    )
