"""Tests for RuleEngine and the feature flag demo."""

import logging
from concurrent.futures import ThreadPoolExecutor

import pytest

from ruleforge.config import EngineConfig
from ruleforge.demo import (
    FLAG_EXAMPLES,
    FLAG_EXPRESSIONS,
    TAG_EXAMPLES,
    TAG_EXPRESSION,
    Flag,
    Segment,
    Tag,
    run_demo,
)
from ruleforge.engine import RuleEngine
from ruleforge.errors import (
    DuplicateFunctionError,
    InvalidArgumentError,
    RegistryFrozenError,
    TypeMismatchError,
    UnknownFunctionError,
    UnsupportedRecordShapeError,
)
from ruleforge.expressions import FunctionParameter

VALID_TAG, VALID_TAG_AND_SEGMENT = FLAG_EXPRESSIONS


class TestRuleEngine:
    """Tests for RuleEngine."""

    def test_evaluate_source_string(self, engine):
        assert engine.evaluate("Count > 1", {"Count": 2}) is True

    def test_evaluate_compiled(self, engine):
        compiled = engine.compile(VALID_TAG)
        flag = Flag(id=1, tags=(Tag(1, "JIRA:EPLT"),))

        assert engine.evaluate(compiled, flag) is True

    def test_compiled_expression_is_reusable(self, engine):
        compiled = engine.compile(VALID_TAG_AND_SEGMENT)

        results = [engine.evaluate(compiled, flag) for flag in FLAG_EXAMPLES]

        assert results == [engine.evaluate(compiled, flag) for flag in FLAG_EXAMPLES]

    def test_register_custom_function(self, engine):
        engine.register(
            "isEven",
            lambda value: value % 2 == 0,
            parameters=[FunctionParameter("value", "number")],
            return_type="boolean",
        )

        assert engine.evaluate("isEven(ID)", {"ID": 4}) is True
        assert engine.evaluate('any("isEven(ID)", Tags)', Flag(id=1, tags=(Tag(3, "x"),))) is False

    def test_register_duplicate(self, engine):
        with pytest.raises(DuplicateFunctionError):
            engine.register("any", lambda *a: True)

    def test_freeze(self, engine):
        engine.freeze()

        with pytest.raises(RegistryFrozenError):
            engine.register("late", lambda: True)
        assert engine.evaluate("true", {}) is True

    def test_engines_do_not_share_functions(self):
        first = RuleEngine()
        second = RuleEngine()
        first.register("only_here", lambda: True)

        with pytest.raises(UnknownFunctionError):
            second.compile("only_here()")

    def test_lenient_config_defers_unknown_functions(self):
        engine = RuleEngine(EngineConfig(strict_functions=False))
        compiled = engine.compile("ready || later()")

        assert engine.evaluate(compiled, {"ready": True}) is True
        with pytest.raises(UnknownFunctionError):
            engine.evaluate(compiled, {"ready": False})

    def test_evaluate_requires_boolean(self, engine):
        with pytest.raises(TypeMismatchError):
            engine.evaluate("Count", {"Count": 3})

    def test_evaluate_unsupported_record(self, engine):
        with pytest.raises(UnsupportedRecordShapeError):
            engine.evaluate("true", {"Values": [1, 2]})

    def test_concurrent_evaluation(self, engine):
        compiled = engine.compile(VALID_TAG_AND_SEGMENT)
        expected = [engine.evaluate(compiled, flag) for flag in FLAG_EXAMPLES]

        with ThreadPoolExecutor(max_workers=6) as pool:
            batches = list(
                pool.map(
                    lambda _: [engine.evaluate(compiled, flag) for flag in FLAG_EXAMPLES],
                    range(24),
                )
            )

        assert all(batch == expected for batch in batches)


class TestCheck:
    """Tests for RuleEngine.check()."""

    def test_all_rules_pass(self, engine):
        rules = [engine.rule("validTag", VALID_TAG), engine.rule("rolledOut", VALID_TAG_AND_SEGMENT)]
        flag = Flag(id=9, tags=(Tag(10, "JIRA:EPLT"),), segments=(Segment(11, 20),))

        result = engine.check(rules, flag)

        assert result.passed is True
        assert [r.status for r in result.results] == ["pass", "pass"]
        assert result.failures == []

    def test_failed_rule(self, engine):
        rules = [engine.rule("validTag", VALID_TAG), engine.rule("rolledOut", VALID_TAG_AND_SEGMENT)]
        flag = Flag(id=4, tags=(Tag(5, "JIRA:EPLT"),))

        result = engine.check(rules, flag)

        assert result.passed is False
        assert [r.rule for r in result.failures] == ["rolledOut"]
        assert result.errors == []

    def test_errors_are_captured_per_rule(self, engine, caplog):
        rules = [
            engine.rule("typed", "Count > 1"),
            engine.rule("named", 'Name == "checkout"'),
        ]

        with caplog.at_level(logging.WARNING, logger="ruleforge.engine"):
            result = engine.check(rules, {"Count": "many", "Name": "checkout"})

        typed, named = result.results
        assert typed.status == "error"
        assert isinstance(typed.error, TypeMismatchError)
        assert named.status == "pass"
        assert result.passed is False
        assert [r.rule for r in result.errors] == ["typed"]
        assert "Rule 'typed' failed to evaluate" in caplog.text

    def test_quantifier_error_is_reported_with_element(self, engine):
        rules = [engine.rule("validTag", VALID_TAG)]

        result = engine.check(rules, {"Tags": [{"Value": "FOO"}, {"Value": 3}]})

        error = result.results[0].error
        assert isinstance(error, InvalidArgumentError)
        assert error.element_index == 1

    def test_deep_expression_is_reported_not_raised(self, engine):
        rules = [
            engine.rule("sum", " + ".join(["Count"] * 1000) + " > 0"),
            engine.rule("allowList", " || ".join(f'Key == "k{i}"' for i in range(1000))),
        ]

        result = engine.check(rules, {"Count": 1, "Key": "k500"})

        deep, allow_list = result.results
        assert deep.status == "error"
        assert "nested too deeply" in str(deep.error)
        assert allow_list.status == "pass"

    def test_rule_keeps_source_and_description(self, engine):
        rule = engine.rule("validTag", VALID_TAG, "At least one JIRA tag")

        assert rule.expression == VALID_TAG
        assert rule.description == "At least one JIRA tag"
        assert rule.compiled.functions == frozenset({"any"})


class TestDemo:
    """The feature flag examples produce their documented results."""

    def test_tag_examples(self, engine):
        compiled = engine.compile(TAG_EXPRESSION)
        results = [engine.evaluate(compiled, {"tag": tag}) for tag in TAG_EXAMPLES]
        assert results == [True, False, False, True, False, False]

    def test_valid_tag_rule(self, engine):
        compiled = engine.compile(VALID_TAG)
        results = [engine.evaluate(compiled, flag) for flag in FLAG_EXAMPLES]
        assert results == [False, True, True, False, True, True]

    def test_valid_tag_and_segment_rule(self, engine):
        compiled = engine.compile(VALID_TAG_AND_SEGMENT)
        results = [engine.evaluate(compiled, flag) for flag in FLAG_EXAMPLES]
        assert results == [False, False, False, False, True, False]

    def test_run_demo(self):
        outcomes = list(run_demo())

        assert len(outcomes) == len(TAG_EXAMPLES) + 2 * len(FLAG_EXAMPLES)
        assert outcomes[0] == (TAG_EXPRESSION, "JIRA:EPLT", True)
        assert outcomes[-1] == (VALID_TAG_AND_SEGMENT, "flag 12", False)
