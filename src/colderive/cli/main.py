"""colderive CLI entry point."""

import logging

import click

from colderive.config.settings import HostSettings


@click.group()
@click.option(
    "--log-level",
    default=None,
    help="Logging level (default: COLDERIVE_LOG_LEVEL or WARNING).",
)
@click.pass_context
def cli(ctx: click.Context, log_level: str | None):
    """colderive: derived column recomputation for tracked items."""
    settings = HostSettings.from_env()
    if log_level:
        settings.log_level = log_level.upper()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    ctx.obj = settings


# Register subcommands
from colderive.cli.behavior_cmd import run, validate  # noqa: E402
from colderive.cli.expression_cmd import eval_cmd, functions  # noqa: E402

cli.add_command(validate)
cli.add_command(run)
cli.add_command(functions)
cli.add_command(eval_cmd)
