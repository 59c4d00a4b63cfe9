"""Rule commands: check, eval and demo."""

import json
from pathlib import Path
from typing import Any

import click
import yaml

from ruleforge.demo import run_demo
from ruleforge.engine import RuleEngine
from ruleforge.errors import ExpressionError, RuleFileError
from ruleforge.expressions import evaluate
from ruleforge.extraction import extract
from ruleforge.loader import load_records, load_rules

_STATUS_COLOURS = {"pass": "green", "fail": "red", "error": "yellow"}


def _fail(message: str, code: int) -> None:
    click.echo(click.style(f"Error: {message}", fg="red"), err=True)
    raise SystemExit(code)


def _record_label(record: dict[str, Any], index: int) -> str:
    for key in ("name", "Name", "key", "Key", "id", "ID"):
        if record.get(key) not in (None, ""):
            return f"record {index} ({key}={record[key]})"
    return f"record {index}"


@click.command()
@click.argument("rules_path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.argument("records_path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option(
    "--fail-fast",
    is_flag=True,
    default=False,
    help="Stop at the first record that does not pass every rule.",
)
@click.pass_obj
def check(engine: RuleEngine, rules_path: Path, records_path: Path, fail_fast: bool):
    """Check every record in RECORDS_PATH against the rules in RULES_PATH."""
    try:
        rules = load_rules(rules_path, engine)
        records = load_records(records_path)
    except RuleFileError as e:
        _fail(str(e), 2)

    failed = 0
    for index, record in enumerate(records):
        label = _record_label(record, index)
        try:
            result = engine.check(rules, record)
        except ExpressionError as e:
            click.echo(click.style(f"{label}: {e}", fg="red"))
            failed += 1
            if fail_fast:
                break
            continue

        click.echo(label)
        for outcome in result.results:
            line = f"  {outcome.status.upper():<5} {outcome.rule}"
            if outcome.error is not None:
                line += f": {outcome.error}"
            click.echo(click.style(line, fg=_STATUS_COLOURS[outcome.status]))

        if not result.passed:
            failed += 1
            if fail_fast:
                break

    if failed:
        click.echo(
            click.style(f"\n{failed} of {len(records)} record(s) failed", fg="red", bold=True)
        )
        raise SystemExit(1)

    click.echo(
        click.style(f"\nAll {len(records)} record(s) passed {len(rules)} rule(s).", fg="green", bold=True)
    )


@click.command("eval")
@click.argument("expression")
@click.option(
    "--record",
    "record_path",
    default=None,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="YAML or JSON file holding a single record.",
)
@click.option(
    "--param",
    "-p",
    "params",
    multiple=True,
    metavar="NAME=VALUE",
    help="Set a field. VALUE is parsed as YAML, so 5 is a number and true a boolean.",
)
@click.pass_obj
def eval_cmd(engine: RuleEngine, expression: str, record_path: Path | None, params: tuple[str, ...]):
    """Evaluate EXPRESSION and print the result as JSON."""
    record: dict[str, Any] = {}
    if record_path is not None:
        try:
            records = load_records(record_path)
        except RuleFileError as e:
            _fail(str(e), 2)
        if len(records) != 1:
            _fail(f"{record_path} holds {len(records)} records, expected 1", 2)
        record.update(records[0])

    for item in params:
        name, sep, raw = item.partition("=")
        if not sep or not name:
            raise click.BadParameter(f"expected NAME=VALUE, got {item!r}", param_hint="--param")
        record[name] = yaml.safe_load(raw) if raw else ""

    try:
        result = evaluate(engine.compile(expression), extract(record))
    except ExpressionError as e:
        _fail(str(e), 2)

    click.echo(json.dumps(result, default=str))


@click.command()
@click.pass_obj
def demo(engine: RuleEngine):
    """Run the built-in feature flag examples."""
    current = None
    for expression, subject, result in run_demo(engine):
        if expression != current:
            click.echo(click.style(f"\n{expression}", bold=True))
            current = expression
        verdict = click.style("valid" if result else "invalid", fg="green" if result else "red")
        click.echo(f"  {subject}: {verdict}")
