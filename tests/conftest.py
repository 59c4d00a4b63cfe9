"""Shared fixtures for ruleforge tests."""

import pytest

from ruleforge.engine import RuleEngine
from ruleforge.expressions import FunctionParameter, FunctionRegistry, register_all_builtins


@pytest.fixture
def registry():
    """A fresh registry holding the built-ins."""
    reg = FunctionRegistry()
    register_all_builtins(reg)
    return reg


@pytest.fixture
def engine():
    return RuleEngine()


@pytest.fixture
def call_log():
    """Records the arguments of every probe() call."""
    return []


@pytest.fixture
def probe_engine(call_log):
    """An engine with a probe(value) function that logs calls and returns value."""
    engine = RuleEngine()

    def probe(value):
        call_log.append(value)
        return value

    engine.register(
        "probe",
        probe,
        parameters=[FunctionParameter("value", "boolean")],
        description="Returns its argument and records the call",
        return_type="boolean",
    )
    return engine
