"""Tests for the function registry, argument validation and quantifiers."""

from concurrent.futures import ThreadPoolExecutor

import pytest

from ruleforge.errors import (
    DuplicateFunctionError,
    EvaluationError,
    InvalidArgumentError,
    RegistryFrozenError,
    TypeMismatchError,
    UnknownFunctionError,
)
from ruleforge.expressions import (
    FunctionCategory,
    FunctionDefinition,
    FunctionParameter,
    FunctionRegistry,
    ParseError,
    compile_expression,
    default_registry,
    evaluate,
    evaluate_bool,
)

TAG_RULE = 'any("regexMatch(Value, \\"^JIRA:[A-Za-z]{3}[A-Za-z]*$\\")", Tags)'
SEGMENT_RULE = 'any("RolloutPercent > 10", Segments)'


def _double(value):
    return value * 2


class TestFunctionParameter:
    """Tests for FunctionParameter type checks."""

    @pytest.mark.parametrize(
        "type_name, good, bad",
        [
            ("string", "x", 1),
            ("expression", "a > 1", 1),
            ("number", 1.5, True),
            ("boolean", False, 0),
            ("array", [1], "abc"),
        ],
    )
    def test_accepts(self, type_name, good, bad):
        param = FunctionParameter("p", type_name)
        assert param.accepts(good) is True
        assert param.accepts(bad) is False

    def test_none_is_always_accepted(self):
        assert FunctionParameter("p", "number").accepts(None) is True

    def test_unknown_type_is_rejected(self):
        with pytest.raises(ValueError):
            FunctionParameter("p", "date")


class TestFunctionDefinition:
    """Tests for FunctionDefinition metadata and validation."""

    def test_signature(self):
        func_def = default_registry().get("regexMatch")
        assert func_def.signature == "regexMatch(subject: string, pattern: string) -> boolean"

    def test_signature_with_optional_and_variadic(self):
        func_def = FunctionDefinition(
            "pick",
            lambda *a: a,
            parameters=(
                FunctionParameter("first", "any"),
                FunctionParameter("rest", "number", variadic=True),
            ),
        )
        assert func_def.signature == "pick(first: any, *rest: number) -> any"

        optional = FunctionDefinition(
            "pad", lambda *a: a, parameters=(FunctionParameter("width", "number", required=False),)
        )
        assert optional.signature == "pad(width: number?) -> any"

    def test_validate_count_range(self):
        func_def = FunctionDefinition(
            "pad",
            lambda *a: a,
            parameters=(
                FunctionParameter("value", "string"),
                FunctionParameter("width", "number", required=False),
            ),
        )
        func_def.validate_arguments(["a"])
        func_def.validate_arguments(["a", 2])

        with pytest.raises(InvalidArgumentError) as exc_info:
            func_def.validate_arguments([])
        assert exc_info.value.expected == "1 to 2"
        assert exc_info.value.actual == 0

    def test_validate_variadic(self):
        func_def = FunctionDefinition(
            "total",
            lambda *a: sum(a),
            parameters=(FunctionParameter("values", "number", variadic=True),),
        )
        func_def.validate_arguments([1, 2, 3])

        with pytest.raises(InvalidArgumentError) as exc_info:
            func_def.validate_arguments([1, "2"])
        assert exc_info.value.position == 2
        assert exc_info.value.expected == "number"
        assert exc_info.value.actual == "str"

    def test_validation_skipped_without_parameters(self):
        FunctionDefinition("free", lambda *a: a).validate_arguments([1, "x", None])

    def test_to_dict(self):
        data = default_registry().get("any").to_dict()

        assert data["name"] == "any"
        assert data["category"] == "collection"
        assert data["returnType"] == "boolean"
        assert [p["name"] for p in data["parameters"]] == ["subExpression", "elements"]
        assert [p["type"] for p in data["parameters"]] == ["expression", "array"]


class TestFunctionRegistry:
    """Tests for FunctionRegistry."""

    def test_register_and_get(self):
        registry = FunctionRegistry()
        func_def = FunctionDefinition("double", _double, (FunctionParameter("value", "number"),))
        registry.register(func_def)

        assert registry.get("double") is func_def
        assert "double" in registry
        assert len(registry) == 1

    def test_duplicate_name_is_rejected(self):
        registry = FunctionRegistry()
        registry.register(FunctionDefinition("double", _double))

        with pytest.raises(DuplicateFunctionError) as exc_info:
            registry.register(FunctionDefinition("double", lambda v: v))

        assert exc_info.value.name == "double"
        assert registry.get("double").implementation is _double

    def test_builtin_names_cannot_be_replaced(self, registry):
        with pytest.raises(DuplicateFunctionError):
            registry.register(FunctionDefinition("regexMatch", lambda s, p: True))

    def test_get_unknown(self):
        with pytest.raises(UnknownFunctionError) as exc_info:
            FunctionRegistry().get("missing")
        assert str(exc_info.value) == "Unknown function: missing"

    def test_freeze(self):
        registry = FunctionRegistry()
        registry.freeze()

        assert registry.frozen is True
        with pytest.raises(RegistryFrozenError):
            registry.register(FunctionDefinition("double", _double))

    def test_default_registry_is_frozen(self):
        assert default_registry().frozen is True
        with pytest.raises(RegistryFrozenError):
            default_registry().register(FunctionDefinition("double", _double))

    def test_copy_is_independent_and_unfrozen(self):
        clone = default_registry().copy()
        clone.register(FunctionDefinition("double", _double))

        assert clone.frozen is False
        assert "double" in clone
        assert "double" not in default_registry()
        assert "regexMatch" in clone

    def test_registries_are_isolated(self, registry):
        other = FunctionRegistry()
        registry.register(FunctionDefinition("double", _double))

        assert "double" in registry
        assert "double" not in other

    def test_builtins_registered(self, registry):
        assert registry.names() >= {
            "regexMatch",
            "any",
            "all",
            "len",
            "isEmpty",
            "lower",
            "upper",
            "startsWith",
            "endsWith",
        }

    def test_list_all_is_sorted(self, registry):
        names = [f.name for f in registry.list_all()]
        assert names == sorted(names)

    def test_list_by_category(self, registry):
        names = {f.name for f in registry.list_by_category(FunctionCategory.COLLECTION)}
        assert names == {"any", "all"}

    def test_export_documentation(self, registry):
        docs = registry.export_documentation()

        assert "regexMatch" in docs["functions"]
        assert {f["name"] for f in docs["byCategory"]["collection"]} == {"any", "all"}

    def test_concurrent_registration(self):
        registry = FunctionRegistry()

        def register(index):
            registry.register(FunctionDefinition(f"fn{index}", _double))

        with ThreadPoolExecutor(max_workers=8) as pool:
            list(pool.map(register, range(50)))

        assert len(registry) == 50


class TestCustomFunctions:
    """Tests for host-registered functions."""

    def test_custom_function_is_callable(self, registry):
        registry.register(
            FunctionDefinition(
                "double",
                _double,
                parameters=(FunctionParameter("value", "number"),),
                return_type="number",
            )
        )

        compiled = compile_expression("double(RolloutPercent) > 30", registry)

        assert evaluate(compiled, {"RolloutPercent": 20}) is True
        assert evaluate(compiled, {"RolloutPercent": 10}) is False

    def test_custom_function_arguments_are_validated(self, registry):
        calls = []

        def double(value):
            calls.append(value)
            return value * 2

        registry.register(
            FunctionDefinition("double", double, parameters=(FunctionParameter("value", "number"),))
        )

        with pytest.raises(InvalidArgumentError) as exc_info:
            evaluate(compile_expression('double("x")', registry), {})

        assert exc_info.value.function == "double"
        assert calls == []

    def test_custom_functions_compose_with_quantifiers(self, registry):
        registry.register(
            FunctionDefinition(
                "isJira",
                lambda value: value is not None and value.startswith("JIRA:"),
                parameters=(FunctionParameter("value", "string"),),
            )
        )

        compiled = compile_expression('any("isJira(Value)", Tags)', registry)

        assert evaluate_bool(compiled, {"Tags": [{"Value": "FOO:BAR"}, {"Value": "JIRA:X"}]})


class TestQuantifiers:
    """Tests for any() and all()."""

    def test_any_matches_one_element(self):
        params = {"Tags": [{"Value": "FOO:BAR"}, {"Value": "JIRA:EPLT"}]}
        assert evaluate_bool(TAG_RULE, params) is True

    def test_any_without_match(self):
        params = {"Tags": [{"Value": "JIRA:EP12"}]}
        assert evaluate_bool(TAG_RULE, params) is False

    def test_any_empty_is_false(self):
        assert evaluate_bool(TAG_RULE, {"Tags": []}) is False

    def test_any_missing_collection_is_false(self):
        assert evaluate_bool(TAG_RULE, {}) is False

    def test_all_requires_every_element(self):
        expr = 'all("RolloutPercent <= 50", Segments)'
        assert evaluate_bool(expr, {"Segments": [{"RolloutPercent": 5}, {"RolloutPercent": 50}]})
        assert not evaluate_bool(expr, {"Segments": [{"RolloutPercent": 5}, {"RolloutPercent": 60}]})

    def test_all_empty_is_vacuously_true(self):
        assert evaluate_bool('all("RolloutPercent > 10", Segments)', {"Segments": []}) is True

    def test_sub_expression_sees_only_element_fields(self):
        params = {"Key": "outer", "Tags": [{"Value": "x"}]}
        assert evaluate_bool('any("Key == \\"outer\\"", Tags)', params) is False

    def test_combined_rule(self):
        expr = f"{TAG_RULE} && {SEGMENT_RULE}"
        tags = [{"Value": "JIRA:EPLT"}]

        assert evaluate_bool(expr, {"Tags": tags, "Segments": [{"RolloutPercent": 20}]}) is True
        assert evaluate_bool(expr, {"Tags": tags, "Segments": [{"RolloutPercent": 5}]}) is False

    def test_nested_quantifiers(self):
        expr = 'any("all(\\"RolloutPercent > 10\\", Segments)", Flags)'
        params = {
            "Flags": [
                {"Segments": [{"RolloutPercent": 5}]},
                {"Segments": [{"RolloutPercent": 20}, {"RolloutPercent": 30}]},
            ]
        }
        assert evaluate_bool(expr, params) is True

    def test_any_stops_at_first_match(self, probe_engine, call_log):
        compiled = probe_engine.compile('any("probe(Ok)", Items)')
        record = {"Items": [{"Ok": False}, {"Ok": True}, {"Ok": True}]}

        assert probe_engine.evaluate(compiled, record) is True
        assert call_log == [False, True]

    def test_all_stops_at_first_failure(self, probe_engine, call_log):
        compiled = probe_engine.compile('all("probe(Ok)", Items)')
        record = {"Items": [{"Ok": True}, {"Ok": False}, {"Ok": True}]}

        assert probe_engine.evaluate(compiled, record) is False
        assert call_log == [True, False]

    def test_sub_expression_must_be_boolean(self):
        with pytest.raises(TypeMismatchError) as exc_info:
            evaluate_bool('any("RolloutPercent", Segments)', {"Segments": [{"RolloutPercent": 5}]})
        assert exc_info.value.trail == ["any[0]"]

    def test_error_names_failing_element(self):
        params = {"Tags": [{"Value": "JIRA:EPLT"}, {"Value": 7}]}

        with pytest.raises(InvalidArgumentError) as exc_info:
            evaluate_bool('all("regexMatch(Value, \\"^JIRA:\\")", Tags)', params)

        error = exc_info.value
        assert error.function == "regexMatch"
        assert error.element_index == 1
        assert "(in all[1])" in str(error)

    def test_nested_error_trail(self):
        expr = 'any("all(\\"RolloutPercent > 10\\", Segments)", Flags)'
        params = {
            "Flags": [
                {"Segments": [{"RolloutPercent": 5}]},
                {"Segments": [{"RolloutPercent": "high"}]},
            ]
        }

        with pytest.raises(TypeMismatchError) as exc_info:
            evaluate_bool(expr, params)

        assert exc_info.value.trail == ["any[1]", "all[0]"]
        assert exc_info.value.element_index == 0

    def test_non_record_element(self):
        with pytest.raises(InvalidArgumentError) as exc_info:
            evaluate_bool(TAG_RULE, {"Tags": ["JIRA:EPLT"]})

        assert exc_info.value.position == 2
        assert "element 0" in str(exc_info.value)

    def test_elements_must_be_array(self):
        with pytest.raises(InvalidArgumentError) as exc_info:
            evaluate_bool(TAG_RULE, {"Tags": "JIRA:EPLT"})
        assert exc_info.value.position == 2

    def test_swapped_arguments(self):
        with pytest.raises(InvalidArgumentError) as exc_info:
            evaluate_bool('any(Tags, "Value == 1")', {"Tags": [{"Value": 1}]})
        assert exc_info.value.position == 1

    def test_missing_sub_expression(self):
        with pytest.raises(InvalidArgumentError) as exc_info:
            evaluate_bool("any(check, Tags)", {"Tags": [{"Value": 1}]})
        assert exc_info.value.position == 1

    def test_sub_expression_from_field(self):
        params = {"check": "Value == 1", "Tags": [{"Value": 2}, {"Value": 1}]}
        assert evaluate_bool("any(check, Tags)", params) is True

    def test_malformed_field_sub_expression(self):
        params = {"check": "Value ==", "Tags": [{"Value": 1}]}

        with pytest.raises(ParseError) as exc_info:
            evaluate_bool("any(check, Tags)", params)

        assert exc_info.value.trail == ["any argument 1"]
        assert "(in any argument 1)" in str(exc_info.value)

    def test_reraised_error_instance_gets_a_fresh_trail(self, registry):
        shared = EvaluationError("flaky backend")

        def fail():
            raise shared

        registry.register(FunctionDefinition("fail", fail, parameters=()))
        compiled = compile_expression('any("fail()", Items)', registry)

        for _ in range(3):
            with pytest.raises(EvaluationError) as exc_info:
                evaluate_bool(compiled, {"Items": [{"ID": 1}]})
            assert exc_info.value is shared
            assert exc_info.value.trail == ["any[0]"]

    def test_malformed_sub_expression_not_compiled_for_empty_collection(self):
        params = {"check": "Value ==", "Tags": []}
        assert evaluate_bool("any(check, Tags)", params) is False

    def test_wrong_argument_count(self):
        with pytest.raises(InvalidArgumentError) as exc_info:
            evaluate_bool('any("Value == 1")', {})
        assert exc_info.value.expected == "2"
