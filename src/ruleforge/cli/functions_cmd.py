"""Function listing command."""

import json

import click

from ruleforge.engine import RuleEngine


@click.command()
@click.option("--json", "as_json", is_flag=True, default=False, help="Print the full registry as JSON.")
@click.pass_obj
def functions(engine: RuleEngine, as_json: bool):
    """List the functions expressions may call."""
    if as_json:
        click.echo(json.dumps(engine.registry.export_documentation(), indent=2))
        return

    for func_def in engine.registry.list_all():
        click.echo(f"{func_def.signature}")
        if func_def.description:
            click.echo(click.style(f"    {func_def.description}", dim=True))
