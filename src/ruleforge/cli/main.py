"""ruleforge CLI entry point."""

import logging

import click

from ruleforge.config import EngineConfig
from ruleforge.engine import RuleEngine

_LOG_LEVELS = ["debug", "info", "warning", "error", "critical"]


@click.group()
@click.option(
    "--log-level",
    type=click.Choice(_LOG_LEVELS, case_sensitive=False),
    default=None,
    help="Logging level (default: RULEFORGE_LOG_LEVEL or warning).",
)
@click.pass_context
def cli(ctx: click.Context, log_level: str | None):
    """ruleforge: compile and evaluate rule expressions against records."""
    try:
        config = EngineConfig.from_env()
    except ValueError as e:
        raise click.ClickException(str(e))

    logging.basicConfig(
        level=(log_level or config.log_level).upper(),
        format="%(levelname)s %(name)s: %(message)s",
    )
    ctx.obj = RuleEngine(config)


# Register subcommands
from ruleforge.cli.functions_cmd import functions  # noqa: E402
from ruleforge.cli.rules_cmd import check, demo, eval_cmd  # noqa: E402

cli.add_command(check)
cli.add_command(eval_cmd)
cli.add_command(demo)
cli.add_command(functions)
