"""Function registry for the ruleforge expression language.

Functions are callable from expressions (e.g., `regexMatch(tag, "^JIRA:")`,
`any("RolloutPercent > 10", Segments)`). Each function is registered with
parameter metadata, which the evaluator uses to validate arguments before
the implementation runs.

Registries are plain instances owned by an engine; there is no process-wide
function table.
"""

import threading
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any, Callable

from ruleforge.errors import (
    DuplicateFunctionError,
    InvalidArgumentError,
    RegistryFrozenError,
    UnknownFunctionError,
)


class FunctionCategory(Enum):
    """Categories for organizing functions in documentation."""

    STRING = "string"
    COLLECTION = "collection"
    LOGIC = "logic"
    CUSTOM = "custom"


# Parameter type name -> predicate over a (non-None) argument value
_TYPE_CHECKS: dict[str, Callable[[Any], bool]] = {
    "string": lambda v: isinstance(v, str),
    "expression": lambda v: isinstance(v, str),
    "number": lambda v: isinstance(v, (int, float, Decimal)) and not isinstance(v, bool),
    "boolean": lambda v: isinstance(v, bool),
    "array": lambda v: isinstance(v, (list, tuple)),
    "any": lambda v: True,
}


@dataclass(frozen=True)
class FunctionParameter:
    """Definition of a function parameter.

    Attributes:
        name: Parameter name
        type: Expected type ("string", "number", "boolean", "array",
            "expression", "any"). "expression" is a string holding a
            sub-expression; literal ones are compiled with the caller.
        description: Human-readable description
        required: Whether this parameter is required
        variadic: If True, this parameter accepts multiple values
    """

    name: str
    type: str
    description: str = ""
    required: bool = True
    variadic: bool = False

    def __post_init__(self) -> None:
        if self.type not in _TYPE_CHECKS:
            raise ValueError(f"Unknown parameter type: {self.type}")

    def accepts(self, value: Any) -> bool:
        """Check a single argument. None (a missing field) is always accepted."""
        return value is None or _TYPE_CHECKS[self.type](value)


@dataclass(frozen=True)
class FunctionDefinition:
    """Complete definition of an expression function.

    Attributes:
        name: Function name as used in expressions
        implementation: The Python callable
        parameters: Parameter definitions, or None to skip argument validation
        description: Human-readable description
        category: Category for documentation organization
        return_type: Type of the return value
        contextual: If True, the implementation receives the active Evaluator
            as its first argument (used by the quantifiers)
        examples: Example expressions using this function
    """

    name: str
    implementation: Callable[..., Any]
    parameters: tuple[FunctionParameter, ...] | None = None
    description: str = ""
    category: FunctionCategory = FunctionCategory.CUSTOM
    return_type: str = "any"
    contextual: bool = False
    examples: tuple[str, ...] = field(default_factory=tuple)

    @property
    def signature(self) -> str:
        if self.parameters is None:
            return f"{self.name}(...)"
        parts = []
        for p in self.parameters:
            text = f"{p.name}: {p.type}"
            if p.variadic:
                text = "*" + text
            elif not p.required:
                text += "?"
            parts.append(text)
        return f"{self.name}({', '.join(parts)}) -> {self.return_type}"

    def parameter_at(self, index: int) -> FunctionParameter | None:
        """Return the parameter that receives the argument at 0-based index."""
        if not self.parameters:
            return None
        if index < len(self.parameters):
            return self.parameters[index]
        if self.parameters[-1].variadic:
            return self.parameters[-1]
        return None

    def validate_arguments(self, args: list[Any]) -> None:
        """Check argument count and types against the parameter definitions.

        Raises:
            InvalidArgumentError: naming the function and the offending count
                or 1-based argument position
        """
        if self.parameters is None:
            return

        params = self.parameters
        variadic = bool(params) and params[-1].variadic
        fixed = params[:-1] if variadic else params
        min_count = sum(1 for p in fixed if p.required)
        max_count = None if variadic else len(fixed)

        if len(args) < min_count or (max_count is not None and len(args) > max_count):
            if max_count is None:
                expected = f"at least {min_count}"
            elif min_count == max_count:
                expected = str(min_count)
            else:
                expected = f"{min_count} to {max_count}"
            raise InvalidArgumentError(
                self.name,
                f"expected {expected} argument(s), but got {len(args)}",
                expected=expected,
                actual=len(args),
            )

        for index, value in enumerate(args):
            param = self.parameter_at(index)
            if param is not None and not param.accepts(value):
                raise InvalidArgumentError(
                    self.name,
                    f"argument {index + 1} ({param.name}) must be {param.type}, "
                    f"got {type(value).__name__}",
                    position=index + 1,
                    expected=param.type,
                    actual=type(value).__name__,
                )

    def to_dict(self) -> dict[str, Any]:
        """Export for the `functions` CLI listing."""
        return {
            "name": self.name,
            "description": self.description,
            "category": self.category.value,
            "signature": self.signature,
            "parameters": [
                {
                    "name": p.name,
                    "type": p.type,
                    "description": p.description,
                    "required": p.required,
                    "variadic": p.variadic,
                }
                for p in self.parameters or ()
            ],
            "returnType": self.return_type,
            "examples": list(self.examples),
        }


class FunctionRegistry:
    """Registry for expression functions.

    Names are unique; registering a name twice raises DuplicateFunctionError.
    Registration and lookup are guarded by a lock, and freeze() turns the
    registry read-only once evaluation starts.

    Example:
        registry = FunctionRegistry()
        registry.register(FunctionDefinition(
            name="double",
            implementation=lambda x: x * 2,
            parameters=(FunctionParameter("value", "number"),),
        ))

        func = registry.get("double")
        result = func.implementation(21)  # Returns 42
    """

    def __init__(self) -> None:
        self._functions: dict[str, FunctionDefinition] = {}
        self._lock = threading.Lock()
        self._frozen = False

    def register(self, func_def: FunctionDefinition) -> None:
        """Register a function definition.

        Args:
            func_def: Complete function definition with implementation

        Raises:
            DuplicateFunctionError: If the name is already registered
            RegistryFrozenError: If the registry has been frozen
        """
        with self._lock:
            if self._frozen:
                raise RegistryFrozenError(func_def.name)
            if func_def.name in self._functions:
                raise DuplicateFunctionError(func_def.name)
            self._functions[func_def.name] = func_def

    def get(self, name: str) -> FunctionDefinition:
        """Get a function definition by name.

        Raises:
            UnknownFunctionError: If function is not registered
        """
        with self._lock:
            func_def = self._functions.get(name)
        if func_def is None:
            raise UnknownFunctionError(name)
        return func_def

    def is_registered(self, name: str) -> bool:
        """Check if a function is registered."""
        with self._lock:
            return name in self._functions

    def names(self) -> frozenset[str]:
        with self._lock:
            return frozenset(self._functions)

    def freeze(self) -> None:
        """Reject any further registrations."""
        with self._lock:
            self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    def copy(self) -> "FunctionRegistry":
        """Return an unfrozen registry with the same definitions."""
        clone = FunctionRegistry()
        with self._lock:
            clone._functions = dict(self._functions)
        return clone

    def list_all(self) -> list[FunctionDefinition]:
        """List all registered functions, sorted by name."""
        with self._lock:
            return sorted(self._functions.values(), key=lambda f: f.name)

    def list_by_category(self, category: FunctionCategory) -> list[FunctionDefinition]:
        """List functions in a specific category."""
        return [f for f in self.list_all() if f.category == category]

    def export_documentation(self) -> dict[str, Any]:
        """Export full registry for documentation.

        Returns:
            Dict with all function definitions organized by category
        """
        by_category: dict[str, list[dict[str, Any]]] = {}
        functions = self.list_all()
        for func_def in functions:
            by_category.setdefault(func_def.category.value, []).append(func_def.to_dict())

        return {
            "functions": {f.name: f.to_dict() for f in functions},
            "byCategory": by_category,
        }

    def __contains__(self, name: str) -> bool:
        return self.is_registered(name)

    def __len__(self) -> int:
        with self._lock:
            return len(self._functions)
