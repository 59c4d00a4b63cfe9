"""
loader.py: load rule and record files.

Rule files are YAML documents validated against ``schemas/rules.schema.json``:

    rules:
      - name: validTag
        expression: any("regexMatch(Value, \\"^JIRA:\\")", Tags)
        description: At least one JIRA tag

Record files hold either a single mapping, a list of mappings, or a
``records:`` list. JSON is accepted too, since it parses as YAML.

Usage:
    from ruleforge.loader import load_rules, load_records

    rules = load_rules(Path("rules.yaml"), engine)
    for record in load_records(Path("flags.yaml")):
        print(engine.check(rules, record).passed)
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any

import yaml
from jsonschema import Draft202012Validator
from jsonschema.exceptions import ValidationError

from ruleforge.errors import ExpressionError, RuleFileError

if TYPE_CHECKING:
    from ruleforge.engine import Rule, RuleEngine

logger = logging.getLogger(__name__)

_SCHEMA_PATH = Path(__file__).parent / "schemas" / "rules.schema.json"


@dataclass(frozen=True)
class RuleDefinition:
    """A rule as declared in a rule file, before compilation."""

    name: str
    expression: str
    description: str = ""


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _load_schema() -> dict[str, Any]:
    with _SCHEMA_PATH.open() as fh:
        return json.load(fh)


def _json_path(error: ValidationError) -> str:
    """Convert a jsonschema ValidationError path to a readable string."""
    parts = []
    for p in error.absolute_path:
        if isinstance(p, int):
            parts.append(f"[{p}]")
        else:
            parts.append(str(p))
    return "/".join(parts).replace("/[", "[")


def _read_yaml(path: Path) -> Any:
    try:
        with path.open() as fh:
            return yaml.safe_load(fh)
    except OSError as e:
        raise RuleFileError(str(path), [f"cannot read file: {e.strerror}"]) from e
    except yaml.YAMLError as e:
        raise RuleFileError(str(path), [f"invalid YAML: {e}"]) from e


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def validate_rule_document(data: Any, source: str = "<rules>") -> list[str]:
    """Validate a parsed rule document against the rule file schema.

    Returns:
        Human-readable issues, empty on success
    """
    validator = Draft202012Validator(_load_schema())
    issues = []
    for error in sorted(validator.iter_errors(data), key=lambda e: list(e.absolute_path)):
        loc = _json_path(error)
        issues.append(f"{loc}: {error.message}" if loc else error.message)
    if issues:
        logger.debug("%s failed schema validation with %d issue(s)", source, len(issues))
    return issues


def parse_rule_document(data: Any, source: str = "<rules>") -> list[RuleDefinition]:
    """Turn a parsed rule document into rule definitions.

    Raises:
        RuleFileError: If the document fails schema validation or declares
            the same rule name twice
    """
    issues = validate_rule_document(data, source)
    if issues:
        raise RuleFileError(source, issues)

    definitions: list[RuleDefinition] = []
    seen: set[str] = set()
    for index, item in enumerate(data["rules"]):
        name = item["name"]
        if name in seen:
            issues.append(f"rules[{index}]: duplicate rule name '{name}'")
            continue
        seen.add(name)
        definitions.append(
            RuleDefinition(
                name=name,
                expression=item["expression"],
                description=item.get("description", ""),
            )
        )

    if issues:
        raise RuleFileError(source, issues)
    return definitions


def load_rule_definitions(path: Path) -> list[RuleDefinition]:
    """Read and validate a rule file."""
    return parse_rule_document(_read_yaml(path), str(path))


def load_rules(path: Path, engine: RuleEngine) -> list[Rule]:
    """Read, validate and compile every rule in a rule file.

    Raises:
        RuleFileError: If the file is invalid or any expression fails to
            compile; every compile failure is reported
    """
    rules = []
    issues = []
    for definition in load_rule_definitions(path):
        try:
            rules.append(engine.rule(definition.name, definition.expression, definition.description))
        except ExpressionError as e:
            issues.append(f"rule '{definition.name}': {e}")

    if issues:
        raise RuleFileError(str(path), issues)

    logger.info("Loaded %d rule(s) from %s", len(rules), path)
    return rules


def load_records(path: Path) -> list[dict[str, Any]]:
    """Read records from a YAML or JSON file.

    Raises:
        RuleFileError: If the file does not hold mappings
    """
    data = _read_yaml(path)

    if isinstance(data, dict) and "records" in data:
        data = data["records"]
    if isinstance(data, dict):
        data = [data]
    if not isinstance(data, list):
        raise RuleFileError(str(path), ["expected a mapping, a list, or a 'records' list"])

    issues = [
        f"records[{index}]: expected a mapping, got {type(item).__name__}"
        for index, item in enumerate(data)
        if not isinstance(item, dict)
    ]
    if issues:
        raise RuleFileError(str(path), issues)
    return data
