"""fieldforms CLI entry point."""

import logging

import click

from fieldforms.validation import register_all_builtins, register_extra_validations


@click.group()
@click.option(
    "--log-level",
    default="WARNING",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    help="Logging level.",
)
def cli(log_level: str):
    """fieldforms report validation CLI."""
    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    register_all_builtins()
    register_extra_validations()


# Register subcommands
from fieldforms.cli.rules_cmd import rules  # noqa: E402
from fieldforms.cli.validate_cmd import validate  # noqa: E402

cli.add_command(rules)
cli.add_command(validate)
