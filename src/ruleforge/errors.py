"""Error types for ruleforge.

Every failure the engine can report is a subclass of ExpressionError:
- ExpressionSyntaxError: malformed expression source (LexerError, ParseError)
- EvaluationError: runtime failures (unknown functions, bad arguments,
  incompatible operands, malformed patterns)
- UnsupportedRecordShapeError: a record could not be turned into parameters
- RegistryError: function registration problems

None of these terminate the host. Quantifiers re-raise errors from their
elements unchanged, after annotating them with the element position.
"""

from typing import Any


class ExpressionError(Exception):
    """Base class for all ruleforge errors.

    Attributes:
        message: The error message without annotations
        trail: Outermost-first list of call sites the error passed through,
            e.g. ["any[0]", "all[2]"]
    """

    def __init__(self, message: str):
        self.message = message
        self.trail: list[str] = []
        super().__init__(message)

    @property
    def element_index(self) -> int | None:
        """Index of the innermost collection element that raised, if any."""
        for note in reversed(self.trail):
            if note.endswith("]") and "[" in note:
                return int(note[note.index("[") + 1 : -1])
        return None

    def annotate(self, note: str) -> "ExpressionError":
        """Record an enclosing call site. Returns self for re-raising."""
        self.trail.insert(0, note)
        return self

    def __str__(self) -> str:
        if self.trail:
            return f"{self.message} (in {' -> '.join(self.trail)})"
        return self.message


class ExpressionSyntaxError(ExpressionError):
    """Malformed expression source. The caller must fix the expression.

    Attributes:
        position: Character offset of the offending input
    """

    def __init__(self, message: str, position: int):
        self.position = position
        super().__init__(message)


class EvaluationError(ExpressionError):
    """Error during expression evaluation."""
    pass


class UnknownFunctionError(EvaluationError):
    """An expression referenced a function that is not registered."""

    def __init__(self, function: str):
        self.function = function
        super().__init__(f"Unknown function: {function}")


class InvalidArgumentError(EvaluationError):
    """Wrong count or type of arguments passed to a function.

    Attributes:
        function: Name of the called function
        position: 1-based argument position, or None for count errors
        expected: What was expected (a count or a type name)
        actual: What was received
    """

    def __init__(
        self,
        function: str,
        message: str,
        position: int | None = None,
        expected: Any = None,
        actual: Any = None,
    ):
        self.function = function
        self.position = position
        self.expected = expected
        self.actual = actual
        super().__init__(f"{function}: {message}")


class TypeMismatchError(EvaluationError):
    """Incompatible operand types in a comparison, logical or arithmetic
    operation, or a non-boolean result where a boolean is required.

    Attributes:
        operator: The operator involved, or None for result checks
        operand_types: Type names of the offending operands
    """

    def __init__(self, message: str, operator: str | None = None, operand_types: tuple[str, ...] = ()):
        self.operator = operator
        self.operand_types = operand_types
        super().__init__(message)

    @classmethod
    def for_operands(cls, operator: str, *operands: Any) -> "TypeMismatchError":
        names = tuple(type(o).__name__ for o in operands)
        return cls(
            f"Operator '{operator}' cannot be applied to {' and '.join(names)}",
            operator=operator,
            operand_types=names,
        )


class PatternError(EvaluationError):
    """A regular expression supplied to the engine is malformed or too long."""

    def __init__(self, pattern: str, reason: str):
        self.pattern = pattern
        super().__init__(f"Invalid pattern {pattern!r}: {reason}")


class UnsupportedRecordShapeError(ExpressionError):
    """Field extraction met a value it cannot represent.

    Attributes:
        field: Dotted path of the offending field ("" for the record itself)
        type_name: Python type name of the offending value
    """

    def __init__(self, field: str, value: Any, reason: str = "unsupported type"):
        self.field = field
        self.type_name = type(value).__name__
        location = f"field '{field}'" if field else "record"
        super().__init__(f"Cannot extract {location}: {reason} ({self.type_name})")


class RegistryError(ExpressionError):
    """Error registering a function."""
    pass


class DuplicateFunctionError(RegistryError):
    """A function with the same name is already registered."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Function '{name}' is already registered")


class RegistryFrozenError(RegistryError):
    """The registry no longer accepts registrations."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Cannot register '{name}': function registry is frozen")


class RuleFileError(ExpressionError):
    """A rule or record file failed to load or validate."""

    def __init__(self, source: str, issues: list[str]):
        self.source = source
        self.issues = issues
        super().__init__(f"{source}: " + "; ".join(issues))
