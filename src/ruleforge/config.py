"""Engine configuration."""

from __future__ import annotations

import os
from dataclasses import dataclass

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}
_LOG_LEVELS = {"debug", "info", "warning", "error", "critical"}


def _parse_bool(name: str, raw: str) -> bool:
    value = raw.strip().lower()
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    raise ValueError(f"{name} must be a boolean, got {raw!r}")


@dataclass(frozen=True)
class EngineConfig:
    """Settings shared by the compiler, built-ins and CLI.

    Attributes:
        strict_functions: Reject unregistered function names at compile time.
            When False, they fail at evaluation time instead.
        max_pattern_length: Longest regular expression regexMatch will compile.
        log_level: Logging level name used by the CLI.
    """

    strict_functions: bool = True
    max_pattern_length: int = 1024
    log_level: str = "warning"

    def __post_init__(self) -> None:
        if self.max_pattern_length <= 0:
            raise ValueError("max_pattern_length must be positive")
        if self.log_level.lower() not in _LOG_LEVELS:
            raise ValueError(f"Unknown log level: {self.log_level}")

    @classmethod
    def from_env(cls) -> EngineConfig:
        """Create config from environment variables.

        Recognised variables:
        1. RULEFORGE_STRICT_FUNCTIONS (default: true)
        2. RULEFORGE_MAX_PATTERN_LENGTH (default: 1024)
        3. RULEFORGE_LOG_LEVEL (default: warning)
        """
        kwargs: dict[str, object] = {}

        strict = os.environ.get("RULEFORGE_STRICT_FUNCTIONS")
        if strict is not None:
            kwargs["strict_functions"] = _parse_bool("RULEFORGE_STRICT_FUNCTIONS", strict)

        max_length = os.environ.get("RULEFORGE_MAX_PATTERN_LENGTH")
        if max_length is not None:
            try:
                kwargs["max_pattern_length"] = int(max_length)
            except ValueError:
                raise ValueError(
                    f"RULEFORGE_MAX_PATTERN_LENGTH must be an integer, got {max_length!r}"
                ) from None

        log_level = os.environ.get("RULEFORGE_LOG_LEVEL")
        if log_level:
            kwargs["log_level"] = log_level.lower()

        return cls(**kwargs)  # type: ignore[arg-type]
