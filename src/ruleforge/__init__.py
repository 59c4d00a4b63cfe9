"""ruleforge: compile boolean rule expressions and evaluate them against records."""

from ruleforge.config import EngineConfig
from ruleforge.engine import Rule, RuleEngine, RuleResult, RuleSetResult
from ruleforge.errors import (
    DuplicateFunctionError,
    EvaluationError,
    ExpressionError,
    ExpressionSyntaxError,
    InvalidArgumentError,
    PatternError,
    RegistryFrozenError,
    RuleFileError,
    TypeMismatchError,
    UnknownFunctionError,
    UnsupportedRecordShapeError,
)
from ruleforge.extraction import Record, extract

__all__ = [
    "EngineConfig",
    "Rule",
    "RuleEngine",
    "RuleResult",
    "RuleSetResult",
    "Record",
    "extract",
    # Errors
    "DuplicateFunctionError",
    "EvaluationError",
    "ExpressionError",
    "ExpressionSyntaxError",
    "InvalidArgumentError",
    "PatternError",
    "RegistryFrozenError",
    "RuleFileError",
    "TypeMismatchError",
    "UnknownFunctionError",
    "UnsupportedRecordShapeError",
]
